"""Date and number helpers for the investment ledger.

This module provides the calendar arithmetic shared by the cashflow projector
and the XIRR solver (adding months with end-of-month clamping, exact day
differences, date keys) together with helpers for parsing user input into
Python data types.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation, getcontext
import calendar
from typing import Union

getcontext().prec = 28  # increase decimal precision to avoid rounding errors


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    ``months`` may be negative. The day of the month is clamped to the last
    valid day if needed (e.g., adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def as_date(value: Union[date, datetime]) -> date:
    """Drop the time component of a ``datetime``; plain dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def days_between(start: date, end: date) -> int:
    """Return the exact number of calendar days from ``start`` to ``end``.

    The result is negative when ``end`` precedes ``start``.
    """
    return (as_date(end) - as_date(start)).days


def same_year_month(a: date, b: date) -> bool:
    return a.year == b.year and a.month == b.month


def format_date_key(dt: date) -> str:
    """Format a date as ``YYYY-MM-DD``."""
    return as_date(dt).strftime("%Y-%m-%d")


def parse_date(value: Union[str, date]) -> date:
    """Parse a ``YYYY-MM-DD`` string into a ``date`` object.

    Dates are returned unchanged and datetimes lose their time component. A
    trailing time part in the string (``2024-03-01T10:00:00``) is ignored.

    Raises
    ------
    ValueError
        If the string is not a valid calendar date.
    """
    if isinstance(value, date):
        return as_date(value)
    try:
        return date.fromisoformat(value.strip()[:10])
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid date string: {value}") from exc


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    strings. It raises ``ValueError`` if conversion fails.
    """
    try:
        cleaned = str(value).replace(",", "").strip()
        result = Decimal(cleaned)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result
