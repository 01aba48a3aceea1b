"""
Calendar date helpers shared by the importer and the period grouper.
"""
import math
import re
from datetime import date
from typing import Optional

from app.domain.exceptions import MalformedDateError


_DATE_PREFIX = re.compile(
    r"^(\d{4}-\d{2}-\d{2})"
    r"(?:[T ](\d{2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)?$"
)


def parse_calendar_date(value, field: str) -> date:
    """
    Parse a zero-padded ``YYYY-MM-DD`` string into a date.

    A trailing time of day (``THH:MM[:SS[.fff]]`` or `` HH:MM[:SS]``, with an
    optional UTC offset) is accepted and dropped so per-row timestamps can be
    used as calendar dates. Any other suffix is malformed.

    Args:
        value: Raw value from the imported document
        field: Field name, reported in the error

    Returns:
        The calendar date

    Raises:
        MalformedDateError: If the value is not a valid zero-padded date
    """
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise MalformedDateError(field, value)

    match = _DATE_PREFIX.match(value.strip())
    if not match:
        raise MalformedDateError(field, value)

    hour, minute, second = (int(g) if g else 0 for g in match.group(2, 3, 4))
    if hour > 23 or minute > 59 or second > 59:
        raise MalformedDateError(field, value)

    try:
        return date.fromisoformat(match.group(1))
    except ValueError:
        # e.g. 2024-02-30
        raise MalformedDateError(field, value)


def parse_optional_date(value, field: str) -> Optional[date]:
    """Like parse_calendar_date, but None and empty strings map to None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_calendar_date(value, field)


def month_key(day: date) -> str:
    """Monthly period key, ``YYYY-MM``."""
    return f"{day.year:04d}-{day.month:02d}"


def week_number(day: date) -> int:
    """
    Week number used by the exported reports.

    Computed as ``ceil((day_of_year + jan1_weekday + 1) / 7)`` where
    ``day_of_year`` is 0 for 1 January and ``jan1_weekday`` counts Sunday as 0.
    This is not the ISO-8601 week; keep it as is so existing reports match.
    """
    start_of_year = date(day.year, 1, 1)
    days = (day - start_of_year).days
    # date.weekday() is Monday=0, the reports count from Sunday=0
    start_weekday = (start_of_year.weekday() + 1) % 7
    return math.ceil((days + start_weekday + 1) / 7)


def week_key(day: date) -> str:
    """Weekly period key, ``YYYY-Www``."""
    return f"{day.year:04d}-W{week_number(day):02d}"
