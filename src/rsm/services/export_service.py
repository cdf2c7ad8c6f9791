from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from datetime import date, datetime
from io import BytesIO
from typing import Callable

from openpyxl import Workbook
from openpyxl.styles import Font

from rsm.domain import aggregation
from rsm.domain.errors import ValidationError
from rsm.domain.sheet_layout import EXPORT_HEADER
from rsm.formatting import format_date_vn, month_bounds, year_bounds
from rsm.repositories.contracts import BackendRepository
from rsm.services.parallel import fetch_all

log = logging.getLogger(__name__)

PERIODS = ("month", "year", "all")
EXPORT_SHEET = "Dữ liệu"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass(frozen=True)
class ExportResult:
    success: bool
    file_name: str
    content: bytes

    @property
    def base64(self) -> str:
        return base64.b64encode(self.content).decode("ascii")


def period_window(period: str, now: date) -> tuple[date, date, str]:
    if period == "month":
        start, end = month_bounds(now.year, now.month)
        return start, end, f"bao-cao-thang-{now.month:02d}-{now.year}.xlsx"
    if period == "year":
        start, end = year_bounds(now.year)
        return start, end, f"bao-cao-nam-{now.year}.xlsx"
    if period == "all":
        return date(2000, 1, 1), date(2099, 12, 31), f"bao-cao-tat-ca-{now.year}.xlsx"
    raise ValidationError(f"Unknown export period: {period}")


class ExportService:
    def __init__(self, repo: BackendRepository, clock: Callable[[], datetime] = datetime.now):
        self.repo = repo
        self.clock = clock

    def export(self, period: str) -> ExportResult:
        now = self.clock()
        start, end, file_name = period_window(period, now.date())

        data = fetch_all({
            "purchases": lambda: self.repo.list_purchases(start, end),
            "sales": lambda: self.repo.list_sales(start, end),
        })
        rows = aggregation.transaction_rows(data["purchases"], data["sales"])

        wb = Workbook()
        ws = wb.active
        ws.title = EXPORT_SHEET
        ws.append(EXPORT_HEADER)
        for c in ws[1]:
            c.font = Font(bold=True)

        for i, r in enumerate(rows, start=2):
            ws.append([
                format_date_vn(r.date),
                r.type_label,
                r.product_name,
                r.unit,
                int(r.quantity),
                float(r.unit_price),
                float(r.line_total),
                None if r.profit == "" else float(r.profit),
                r.counterparty,
            ])
            for col in ("F", "G", "H"):
                ws[f"{col}{i}"].number_format = "#,##0"

        ws.freeze_panes = "A2"
        for col, width in {"A": 12, "B": 8, "C": 30, "D": 10, "E": 10, "F": 14, "G": 16, "H": 14, "I": 24}.items():
            ws.column_dimensions[col].width = width

        buf = BytesIO()
        wb.save(buf)
        log.info("export_built period=%s rows=%s file=%s", period, len(rows), file_name)
        return ExportResult(success=True, file_name=file_name, content=buf.getvalue())
