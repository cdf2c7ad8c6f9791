"""Fixed, position-dependent layout of the yearly sheet.

Summary blocks sit below the transaction rows at offsets derived from the
number of rows written. Nothing uses named ranges, so inserting a column in
the sheet shifts every block.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from rsm.domain.models import (
    PURCHASE_LABEL,
    SALE_LABEL,
    MonthlyTotals,
    ProductSheetStats,
    TopProduct,
    TransactionRow,
)
from rsm.formatting import format_date_vn

YEAR_SHEET_HEADER = [
    "STT", "Ngày", "Loại", "Sản phẩm", "Đơn vị",
    "Số lượng", "Đơn giá", "Thành tiền", "Lãi",
    "Khách/NCC", "Ghi chú", "Tháng",
]
EXPORT_HEADER = [
    "Ngày", "Loại", "Sản phẩm", "Đơn vị", "Số lượng",
    "Đơn giá", "Thành tiền", "Lãi", "Khách/NCC",
]
SUMMARY_SHEET = "Tổng hợp"
TOP_PRODUCTS_LIMIT = 10

FIRST_DATA_ROW = 2
MIN_TOP_BLOCK_ROWS = 5


@dataclass(frozen=True)
class SheetLayout:
    data_row_count: int
    top_header_row: int
    top_columns_row: int
    top_data_row: int
    stats_column: str
    product_header_row: int
    product_columns_row: int
    product_data_row: int
    monthly_header_row: int
    monthly_columns_row: int
    monthly_data_row: int

    @property
    def last_data_row(self) -> int:
        return FIRST_DATA_ROW + self.data_row_count - 1

    @property
    def monthly_total_row(self) -> int:
        return self.monthly_data_row + 12


def compute_layout(data_row_count: int, top_count: int, product_count: int) -> SheetLayout:
    top_header = data_row_count + 3
    product_header = top_header + max(top_count, MIN_TOP_BLOCK_ROWS) + 5
    product_data = product_header + 2
    monthly_header = product_data + product_count + 2
    return SheetLayout(
        data_row_count=data_row_count,
        top_header_row=top_header,
        top_columns_row=top_header + 1,
        top_data_row=top_header + 2,
        stats_column="G",
        product_header_row=product_header,
        product_columns_row=product_header + 1,
        product_data_row=product_data,
        monthly_header_row=monthly_header,
        monthly_columns_row=monthly_header + 1,
        monthly_data_row=monthly_header + 2,
    )


def transaction_values(rows: Sequence[TransactionRow]) -> list[list]:
    """One A:L row per transaction: STT first, month number last."""
    return [
        [
            i,
            format_date_vn(r.date),
            r.type_label,
            r.product_name,
            r.unit,
            r.quantity,
            r.unit_price,
            r.line_total,
            r.profit,
            r.counterparty,
            r.note,
            r.date.month,
        ]
        for i, r in enumerate(rows, start=1)
    ]


def top_products_block(top: Sequence[TopProduct]) -> list[list]:
    values: list[list] = [
        [f"TOP {TOP_PRODUCTS_LIMIT} SẢN PHẨM BÁN CHẠY", "", "", "", ""],
        ["STT", "Sản phẩm", "Số lượng", "Doanh thu", "Lãi"],
    ]
    for i, t in enumerate(top, start=1):
        values.append([i, t.product_name, t.quantity, t.revenue, t.profit])
    return values


def type_stats_block(stats: Sequence[tuple[str, int, int]]) -> list[list]:
    values: list[list] = [
        ["THỐNG KÊ THEO LOẠI", "", ""],
        ["Loại", "Số giao dịch", "Tổng tiền"],
    ]
    values += [[label, count, total] for label, count, total in stats]
    return values


def product_stats_block(stats: Sequence[ProductSheetStats]) -> list[list]:
    values: list[list] = [
        ["CHI TIẾT TỒN KHO THEO SẢN PHẨM", "", "", "", "", "", ""],
        ["Sản phẩm", "Tổng nhập", "Tổng bán", "Tồn kho", "Giá trị tồn", "Doanh thu", "Lãi"],
    ]
    for s in stats:
        values.append([s.product_name, s.quantity_in, s.quantity_out, s.stock, s.stock_value, s.revenue, s.profit])
    return values


def _abs_range(column: str, last_row: int) -> str:
    return f"${column}${FIRST_DATA_ROW}:${column}${max(last_row, FIRST_DATA_ROW)}"


def monthly_formula_block(layout: SheetLayout) -> list[list]:
    """12 months plus a total row; values are SUMIFS over the transaction rows."""
    last = layout.last_data_row
    total_col = _abs_range("H", last)
    type_col = _abs_range("C", last)
    profit_col = _abs_range("I", last)
    month_col = _abs_range("L", last)

    values: list[list] = [
        ["TỔNG HỢP THEO THÁNG", "", "", ""],
        ["Tháng", "Tổng nhập", "Tổng bán", "Lãi"],
    ]
    for month in range(1, 13):
        values.append([
            f"Tháng {month}",
            f'=SUMIFS({total_col},{type_col},"{PURCHASE_LABEL}",{month_col},{month})',
            f'=SUMIFS({total_col},{type_col},"{SALE_LABEL}",{month_col},{month})',
            f"=SUMIFS({profit_col},{month_col},{month})",
        ])
    first, end = layout.monthly_data_row, layout.monthly_data_row + 11
    values.append(["TỔNG", f"=SUM(B{first}:B{end})", f"=SUM(C{first}:C{end})", f"=SUM(D{first}:D{end})"])
    return values


def summary_tab_block(year: int, monthly: Sequence[MonthlyTotals]) -> list[list]:
    """Pre-computed monthly totals for the singleton summary tab."""
    values: list[list] = [
        [f"TỔNG HỢP NĂM {year}", "", "", ""],
        ["Tháng", "Tổng nhập", "Tổng bán", "Lãi"],
    ]
    for m in monthly:
        values.append([f"Tháng {m.month}", m.total_in, m.total_out, m.profit])
    values.append([
        "TỔNG NĂM",
        sum(m.total_in for m in monthly),
        sum(m.total_out for m in monthly),
        sum(m.profit for m in monthly),
    ])
    return values


def block_range(sheet: str, column: str, row: int, values: Sequence[Sequence]) -> str:
    """A1 range exactly covering ``values`` anchored at ``column``/``row``."""
    width = max((len(r) for r in values), default=1)
    end_col = chr(ord(column) + width - 1)
    end_row = row + max(len(values), 1) - 1
    return f"'{sheet}'!{column}{row}:{end_col}{end_row}"


_HEADER_BLUE = {"red": 0.09, "green": 0.46, "blue": 0.82}
_WHITE = {"red": 1, "green": 1, "blue": 1}


def header_format_request(sheet_id: int, end_row: int, end_column: int) -> dict:
    return {
        "repeatCell": {
            "range": {
                "sheetId": sheet_id,
                "startRowIndex": 0,
                "endRowIndex": end_row,
                "startColumnIndex": 0,
                "endColumnIndex": end_column,
            },
            "cell": {
                "userEnteredFormat": {
                    "backgroundColor": _HEADER_BLUE,
                    "textFormat": {"foregroundColor": _WHITE, "bold": True},
                    "horizontalAlignment": "CENTER",
                }
            },
            "fields": "userEnteredFormat(backgroundColor,textFormat,horizontalAlignment)",
        }
    }


def _column_rule(sheet_id: int, column: int, condition: dict, fmt: dict, index: int) -> dict:
    return {
        "addConditionalFormatRule": {
            "rule": {
                "ranges": [{
                    "sheetId": sheet_id,
                    "startRowIndex": 1,
                    "startColumnIndex": column,
                    "endColumnIndex": column + 1,
                }],
                "booleanRule": {"condition": condition, "format": fmt},
            },
            "index": index,
        }
    }


def year_sheet_format_requests(sheet_id: int) -> list[dict]:
    """Header styling plus type/profit highlighting for the yearly tab."""
    return [
        header_format_request(sheet_id, 1, len(YEAR_SHEET_HEADER)),
        _column_rule(
            sheet_id, 2,
            {"type": "TEXT_EQ", "values": [{"userEnteredValue": PURCHASE_LABEL}]},
            {
                "backgroundColor": {"red": 1, "green": 0.92, "blue": 0.93},
                "textFormat": {"foregroundColor": {"red": 0.78, "green": 0.16, "blue": 0.16}},
            },
            0,
        ),
        _column_rule(
            sheet_id, 2,
            {"type": "TEXT_EQ", "values": [{"userEnteredValue": SALE_LABEL}]},
            {
                "backgroundColor": {"red": 0.91, "green": 0.96, "blue": 0.91},
                "textFormat": {"foregroundColor": {"red": 0.18, "green": 0.49, "blue": 0.2}},
            },
            1,
        ),
        _column_rule(
            sheet_id, 8,
            {"type": "NUMBER_GREATER", "values": [{"userEnteredValue": "0"}]},
            {"textFormat": {"foregroundColor": {"red": 0.3, "green": 0.69, "blue": 0.31}}},
            2,
        ),
    ]
