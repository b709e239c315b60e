"""Tests for the date and number helpers."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from invest_ledger.utils import (
    add_months,
    days_between,
    decimal_from_str,
    format_date_key,
    parse_date,
    same_year_month,
)


class TestAddMonths:
    def test_clamps_to_end_of_february_in_leap_year(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_clamps_when_subtracting(self):
        assert add_months(date(2023, 3, 31), -1) == date(2023, 2, 28)

    def test_crosses_year_boundary_backwards(self):
        assert add_months(date(2024, 1, 15), -13) == date(2022, 12, 15)

    def test_zero_months_is_identity(self):
        assert add_months(date(2024, 5, 31), 0) == date(2024, 5, 31)


class TestDaysBetween:
    def test_leap_year_has_366_days(self):
        assert days_between(date(2024, 1, 1), date(2025, 1, 1)) == 366

    def test_negative_when_reversed(self):
        assert days_between(date(2024, 1, 10), date(2024, 1, 1)) == -9

    def test_ignores_time_of_day(self):
        assert days_between(datetime(2024, 1, 1, 23, 0), datetime(2024, 1, 2, 1, 0)) == 1


class TestFormattingAndParsing:
    def test_format_date_key(self):
        assert format_date_key(datetime(2024, 3, 5, 10, 0)) == "2024-03-05"

    def test_parse_date_ignores_time_part(self):
        assert parse_date("2024-03-05T10:00:00") == date(2024, 3, 5)

    def test_parse_date_passes_dates_through(self):
        assert parse_date(date(2024, 3, 5)) == date(2024, 3, 5)

    def test_parse_date_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_date("2024-13-01")

    def test_same_year_month(self):
        assert same_year_month(date(2024, 7, 1), date(2024, 7, 31))
        assert not same_year_month(date(2024, 7, 1), date(2023, 7, 1))

    def test_decimal_from_str_strips_commas(self):
        assert decimal_from_str("1,000.50") == Decimal("1000.50")

    @pytest.mark.parametrize("raw", ["abc", "nan", "Infinity", ""])
    def test_decimal_from_str_rejects_non_numbers(self, raw):
        with pytest.raises(ValueError):
            decimal_from_str(raw)
