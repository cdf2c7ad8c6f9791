from datetime import date, datetime, timezone

from rsm.formatting import (
    format_currency,
    format_date_vn,
    format_number,
    month_bounds,
    parse_date,
    parse_datetime,
    parse_number,
    round_number,
    year_bounds,
)


def test_round_number_is_half_up():
    assert round_number(2.5) == 3
    assert round_number(3.5) == 4
    assert round_number(-2.5) == -2
    assert round_number(1999.49) == 1999


def test_format_number_groups_with_dots():
    assert format_number(1234567) == "1.234.567"
    assert format_number(999) == "999"
    assert format_number(-45000) == "-45.000"
    assert format_number(1500.5) == "1.501"


def test_format_number_strips_non_digits_from_text():
    assert format_number("12a3 45") == "12.345"
    assert format_number("abc") == ""


def test_format_currency_keeps_sign():
    assert format_currency(90000) == "90.000đ"
    assert format_currency(-1500) == "-1.500đ"


def test_parse_number_defaults_to_zero():
    assert parse_number("1.250.000đ") == 1250000
    assert parse_number("") == 0
    assert parse_number(None) == 0


def test_parse_date_accepts_iso_strings_and_datetimes():
    assert parse_date("2025-03-04") == date(2025, 3, 4)
    assert parse_date("2025-03-04T10:00:00Z") == date(2025, 3, 4)
    assert parse_date(datetime(2025, 3, 4, 8, 0)) == date(2025, 3, 4)


def test_parse_datetime_handles_utc_suffix():
    assert parse_datetime("2025-03-04T10:00:00Z") == datetime(2025, 3, 4, 10, 0, tzinfo=timezone.utc)
    assert parse_datetime(None) is None
    assert parse_datetime("") is None


def test_parse_datetime_pads_and_trims_fraction_digits():
    utc = timezone.utc
    assert parse_datetime("2025-10-19T12:34:56.12345+00:00") == datetime(2025, 10, 19, 12, 34, 56, 123450, tzinfo=utc)
    assert parse_datetime("2025-10-19T12:34:56.1+00:00") == datetime(2025, 10, 19, 12, 34, 56, 100000, tzinfo=utc)
    assert parse_datetime("2025-10-19T12:34:56.1234567Z") == datetime(2025, 10, 19, 12, 34, 56, 123456, tzinfo=utc)


def test_format_date_vn():
    assert format_date_vn(date(2025, 1, 7)) == "07/01/2025"
    assert format_date_vn("2024-12-31") == "31/12/2024"


def test_period_bounds():
    assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert year_bounds(2025) == (date(2025, 1, 1), date(2025, 12, 31))
