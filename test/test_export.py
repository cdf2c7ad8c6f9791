import base64
from datetime import date, datetime
from io import BytesIO

import pytest
from openpyxl import load_workbook

from conftest import FakeRepository, purchase, sale
from rsm.domain.errors import ValidationError
from rsm.domain.sheet_layout import EXPORT_HEADER
from rsm.services.export_service import EXPORT_SHEET, ExportService, period_window


def _service(repo):
    return ExportService(repo, clock=lambda: datetime(2025, 3, 20, 10, 0))


def test_period_window_file_names():
    now = date(2025, 3, 20)
    assert period_window("month", now) == (date(2025, 3, 1), date(2025, 3, 31), "bao-cao-thang-03-2025.xlsx")
    assert period_window("year", now)[2] == "bao-cao-nam-2025.xlsx"
    start, end, name = period_window("all", now)
    assert (start, end, name) == (date(2000, 1, 1), date(2099, 12, 31), "bao-cao-tat-ca-2025.xlsx")


def test_unknown_period_is_rejected():
    with pytest.raises(ValidationError):
        _service(FakeRepository()).export("week")


def test_month_export_contains_only_month_rows_sorted_by_date():
    repo = FakeRepository(
        purchases=[
            purchase("a", 100, 2000, on=date(2025, 3, 5), name="Bánh mì", supplier="NCC A"),
            purchase("a", 10, 2000, on=date(2025, 2, 5), name="Bánh mì"),
        ],
        sales=[
            sale("a", 30, 5000, unit_cost=2000, on=date(2025, 3, 2), name="Bánh mì", customer="Khách lẻ",
                 product_unit="cái"),
            sale("a", 1, 1000, unit_cost=2000, on=date(2025, 3, 9), name="Bánh mì"),
        ],
    )
    result = _service(repo).export("month")

    assert result.success
    assert result.file_name == "bao-cao-thang-03-2025.xlsx"
    ws = load_workbook(BytesIO(result.content))[EXPORT_SHEET]
    rows = list(ws.iter_rows(values_only=True))
    assert list(rows[0]) == EXPORT_HEADER
    assert len(rows) == 4
    assert rows[1] == ("02/03/2025", "BÁN", "Bánh mì", "cái", 30, 5000, 150000, 90000, "Khách lẻ")
    assert rows[2][1] == "NHẬP"
    assert rows[2][7] is None
    assert rows[2][8] == "NCC A"
    # losing sale has no profit cell
    assert rows[3][7] is None
    assert ws.freeze_panes == "A2"
    assert ws["G2"].number_format == "#,##0"


def test_base64_payload_round_trips_to_same_bytes():
    result = _service(FakeRepository()).export("year")
    assert base64.b64decode(result.base64) == result.content
