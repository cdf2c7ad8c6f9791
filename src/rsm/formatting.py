from __future__ import annotations

import calendar
import math
import re
from datetime import date, datetime, timedelta

_NON_DIGITS = re.compile(r"\D")
_FRACTION = re.compile(r"\.(\d+)")


def round_number(value: float) -> int:
    """Half-up rounding to a whole currency unit (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(float(value) + 0.5))


def _group(n: int) -> str:
    return f"{n:,}".replace(",", ".")


def format_number(value: str | int | float) -> str:
    if isinstance(value, str):
        digits = _NON_DIGITS.sub("", value)
        return _group(int(digits)) if digits else ""
    n = round_number(value)
    return ("-" if n < 0 else "") + _group(abs(n))


def format_currency(amount: float) -> str:
    return format_number(amount) + "đ"


def parse_number(text: str | None) -> int:
    digits = _NON_DIGITS.sub("", text or "")
    return int(digits or "0")


def parse_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def parse_datetime(value: datetime | str | None) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip().replace("Z", "+00:00")
    # Postgres trims trailing zeros; older fromisoformat only takes 3 or 6 digits
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


def format_date_vn(value: date | datetime | str) -> str:
    d = parse_date(value)
    return f"{d.day:02d}/{d.month:02d}/{d.year}"


def today() -> date:
    return date.today()


def yesterday() -> date:
    return date.today() - timedelta(days=1)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def year_bounds(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)
