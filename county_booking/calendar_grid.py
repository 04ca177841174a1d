"""Month grids for the booking calendar.

Months are 1-indexed (January = 1), as everywhere in Python's datetime and
calendar modules. Weeks start on Sunday: column 0 is Sunday, column 6 is
Saturday.
"""
import calendar
import logging
from datetime import date, datetime
from typing import List, Tuple

logger = logging.getLogger(__name__)

Week = List[date]
MonthGrid = List[Week]

_SUNDAY_FIRST = calendar.Calendar(firstweekday=calendar.SUNDAY)


def normalize_date(value: date | datetime) -> date:
    """Drops the time of day, so only the local calendar date remains.

    Aware datetimes are converted to local time first; naive ones are taken
    as already local.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected a date or datetime, got {type(value).__name__}")


def build_month_grid(year: int, month: int) -> MonthGrid:
    """Returns the month as full Sunday-first weeks.

    Days before the 1st and after the last day are filled from the adjacent
    months, so every row has seven dates. A month starting on Sunday has no
    lead-in and a month ending on Saturday has no trail-out.
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be in 1..12, got {month}")

    weeks = _SUNDAY_FIRST.monthdatescalendar(year, month)
    logger.debug(f"Built {len(weeks)} weeks for {year}-{month:02d}")
    return weeks


def is_past_date(d: date | datetime, today: date | None = None) -> bool:
    """True when d is strictly before today. Used to disable selection."""
    today = today or date.today()
    return normalize_date(d) < normalize_date(today)


def is_today(d: date | datetime, today: date | None = None) -> bool:
    today = today or date.today()
    return normalize_date(d) == normalize_date(today)


def first_of_month(d: date | datetime) -> date:
    return normalize_date(d).replace(day=1)


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    """Moves (year, month) by delta months, crossing year boundaries."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def month_title(year: int, month: int) -> str:
    return f"{calendar.month_name[month]} {year}"
