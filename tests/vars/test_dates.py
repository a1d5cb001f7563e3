from datetime import date, datetime

import pytest

from httpstages_vars import VariableFormatError
from httpstages_vars.dates import (
    DEFAULT_DATETIME_FORMAT,
    DateOperation,
    DateUnit,
    add_months,
    check_format,
    format_instant,
    parse_any,
    parse_instant,
    shift,
)


class TestShift:
    def test_add_days(self):
        assert shift(date(2024, 2, 27), DateOperation.ADD, 3, DateUnit.DAYS) == date(2024, 3, 1)

    def test_subtract_weeks(self):
        assert shift(date(2024, 1, 10), DateOperation.SUBTRACT, 2, DateUnit.WEEKS) == date(2023, 12, 27)

    def test_month_end_clamps(self):
        assert shift(date(2024, 1, 31), DateOperation.ADD, 1, DateUnit.MONTHS) == date(2024, 2, 29)
        assert shift(date(2023, 1, 31), DateOperation.ADD, 1, DateUnit.MONTHS) == date(2023, 2, 28)

    def test_leap_day_plus_year(self):
        assert shift(date(2024, 2, 29), DateOperation.ADD, 1, DateUnit.YEARS) == date(2025, 2, 28)

    def test_subtract_months_across_year(self):
        assert add_months(date(2024, 3, 15), -5) == date(2023, 10, 15)

    def test_datetime_keeps_time(self):
        value = datetime(2024, 5, 31, 10, 30)
        assert shift(value, DateOperation.SUBTRACT, 1, DateUnit.MONTHS) == datetime(2024, 4, 30, 10, 30)

    def test_out_of_range(self):
        with pytest.raises(VariableFormatError, match="out of range"):
            shift(date(9999, 12, 1), DateOperation.ADD, 2, DateUnit.MONTHS)

    def test_add_then_subtract_same_days_round_trips(self):
        start = date(2020, 6, 15)
        there = shift(start, DateOperation.ADD, 400, DateUnit.DAYS)
        assert shift(there, DateOperation.SUBTRACT, 400, DateUnit.DAYS) == start


class TestFormatInstant:
    def test_plain_strftime(self):
        assert format_instant(date(2024, 7, 4), "%d/%m/%Y") == "04/07/2024"

    @pytest.mark.parametrize(
        "micros, expected",
        [
            (0, "2024-01-02 03:04:05"),
            (120000, "2024-01-02 03:04:05.120"),
            (123456, "2024-01-02 03:04:05.123456"),
        ],
    )
    def test_variable_fraction(self, micros, expected):
        value = datetime(2024, 1, 2, 3, 4, 5, micros)
        assert format_instant(value, DEFAULT_DATETIME_FORMAT) == expected

    def test_fixed_fractions(self):
        value = datetime(2024, 1, 2, 3, 4, 5, 123456)
        assert format_instant(value, "%H:%M:%S%.3f") == "03:04:05.123"
        assert format_instant(value, "%H:%M:%S%.6f") == "03:04:05.123456"
        assert format_instant(value, "%H:%M:%S%.9f") == "03:04:05.123456000"


class TestParse:
    def test_parse_with_fraction(self):
        assert parse_instant("2024-01-02 03:04:05.5", DEFAULT_DATETIME_FORMAT) == datetime(2024, 1, 2, 3, 4, 5, 500000)

    def test_parse_without_optional_fraction(self):
        assert parse_instant("2024-01-02 03:04:05", DEFAULT_DATETIME_FORMAT) == datetime(2024, 1, 2, 3, 4, 5)

    def test_parse_nanoseconds(self):
        assert parse_instant("03:04:05.123456789", "%H:%M:%S%.9f").microsecond == 123456

    def test_parse_mismatch(self):
        with pytest.raises(VariableFormatError, match="Cannot parse"):
            parse_instant("not a date", "%Y-%m-%d")

    def test_parse_any_falls_back_to_iso(self):
        assert parse_any("2024-03-01T10:00:00", ["%d.%m.%Y"]) == datetime(2024, 3, 1, 10, 0)

    def test_parse_any_uses_first_matching_format(self):
        assert parse_any("01.03.2024", ["%Y-%m-%d", "%d.%m.%Y"]) == datetime(2024, 3, 1)


class TestCheckFormat:
    @pytest.mark.parametrize(
        "fmt",
        ["%Y-%m-%d", "%d/%m/%Y %H:%M", DEFAULT_DATETIME_FORMAT, "%Y%m%dT%H%M%S%.3f", "%Y-%m-%d %H:%M:%S%.f %Z", "%Y-%m-%dT%H:%M:%S%z"],
    )
    def test_valid(self, fmt):
        assert check_format(fmt) == fmt

    def test_no_directives(self):
        with pytest.raises(VariableFormatError, match="no directives"):
            check_format("yyyy-mm-dd")
