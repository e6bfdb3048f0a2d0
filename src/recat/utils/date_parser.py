"""Date parsing utilities."""

from datetime import date, timedelta
from typing import Optional
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from recat.domain.entities import DateRange

PERIODS = ("this-week", "this-month", "this-year", "last-week", "last-month", "last-year")


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports absolute dates ("2024-01-15", "January 15, 2024", ...) and a few
    relative forms: "today", "yesterday", and "this/last week|month|year",
    which resolve to the first day of that period.

    Args:
        date_str: Date string

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    text = date_str.strip().lower()
    today = date.today()

    if text == "today":
        return today
    if text == "yesterday":
        return today - timedelta(days=1)

    words = text.split()
    if len(words) == 2 and words[0] in ("this", "last"):
        start, _ = get_date_range(f"{words[0]}-{words[1]}")
        return start

    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def get_date_range(period: str) -> tuple[date, date]:
    """Get start and end dates for a named period.

    "this-*" periods end today; "last-*" periods cover the whole previous
    week (Monday to Sunday), month or year.

    Args:
        period: One of PERIODS

    Returns:
        Tuple of (start_date, end_date)

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = date.today()
    week_start = today - timedelta(days=today.weekday())
    month_start = today.replace(day=1)
    year_start = today.replace(month=1, day=1)

    if period == "this-week":
        return week_start, today
    if period == "this-month":
        return month_start, today
    if period == "this-year":
        return year_start, today
    if period == "last-week":
        start = week_start - timedelta(days=7)
        return start, start + timedelta(days=6)
    if period == "last-month":
        return month_start - relativedelta(months=1), month_start - timedelta(days=1)
    if period == "last-year":
        return year_start - relativedelta(years=1), year_start - timedelta(days=1)

    raise ValueError(f"Unknown period: '{period}'. Supported periods: {', '.join(PERIODS)}")


def parse_date_range(start: Optional[str], end: Optional[str]) -> Optional[DateRange]:
    """Parse optional start/end strings into an inclusive DateRange.

    Returns:
        DateRange, or None when neither bound is given

    Raises:
        ValueError: If a bound cannot be parsed or start is after end
    """
    if not start and not end:
        return None
    return DateRange(
        start=parse_date(start) if start else None,
        end=parse_date(end) if end else None,
    )
