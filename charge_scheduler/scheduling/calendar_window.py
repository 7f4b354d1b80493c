"""
Calendar Window

The schedule is shown one week at a time, Sunday to Saturday.

DESIGN DECISION: Everything here works on `datetime.date` values.
A timestamp carries a timezone (or pretends not to), and converting it
to a day is where off-by-one errors come from. Callers decide what
"today" is; this module only does calendar arithmetic.
"""

from datetime import date, datetime, timedelta
from typing import Iterable


DAYS_IN_WINDOW = 7

# Sunday-first, matching window order
DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def _require_calendar_date(value: date) -> date:
    # datetime is a subclass of date, so isinstance(value, date) is not enough
    if isinstance(value, datetime) or not isinstance(value, date):
        raise TypeError(
            f"Expected a calendar date, got {type(value).__name__}"
        )
    return value


def week_start(reference_date: date) -> date:
    """The Sunday on or before reference_date."""
    reference_date = _require_calendar_date(reference_date)
    # date.weekday(): Monday = 0 ... Sunday = 6
    days_since_sunday = (reference_date.weekday() + 1) % DAYS_IN_WINDOW
    return reference_date - timedelta(days=days_since_sunday)


def window_for(reference_date: date) -> list[date]:
    """
    The 7 consecutive dates of the week containing reference_date.

    Example:
        window_for(date(2024, 3, 12))  # Tuesday
        -> [2024-03-10 (Sun), ..., 2024-03-16 (Sat)]
    """
    start = week_start(reference_date)
    return [start + timedelta(days=offset) for offset in range(DAYS_IN_WINDOW)]


def window_bounds(reference_date: date) -> tuple[date, date]:
    """First and last day of the window, both inclusive."""
    start = week_start(reference_date)
    return start, start + timedelta(days=DAYS_IN_WINDOW - 1)


def shift_reference(reference_date: date, weeks: int) -> date:
    """Move the reference date by whole weeks (negative goes back)."""
    reference_date = _require_calendar_date(reference_date)
    return reference_date + timedelta(days=DAYS_IN_WINDOW * weeks)


def is_in_window(day: date, window: Iterable[date]) -> bool:
    """Calendar-date membership test."""
    day = _require_calendar_date(day)
    return day in set(window)


def day_name(day: date) -> str:
    """Short Sunday-first weekday label."""
    day = _require_calendar_date(day)
    return DAY_NAMES[(day.weekday() + 1) % DAYS_IN_WINDOW]
