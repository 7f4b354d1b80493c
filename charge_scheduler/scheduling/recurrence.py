"""
Recurrence Engine

Computes when a recurring charge comes due next.

MONTH-END POLICY: Monthly charges keep their day of month. When the
target month is shorter, the date clamps to that month's last day:
    2024-01-31 -> 2024-02-29 (leap year)
    2023-01-31 -> 2023-02-28
If the recurrence carries an anchor day of month, the anchor is the
target day, so a chain anchored on the 31st goes 01-31, 02-29, 03-31
instead of drifting to the 29th.

Nothing here is tied to the wall clock. A successor exists only
because someone settled its predecessor.
"""

import calendar
from datetime import date, timedelta
from typing import Optional

from charge_scheduler.models.charge import Charge, Frequency, NewCharge


WEEKLY_STEP = timedelta(days=7)


def add_months(
    day: date,
    months: int,
    day_of_month: Optional[int] = None,
) -> date:
    """
    Move `day` by whole months, clamping to the target month's last day.

    Args:
        day: Starting date
        months: Months to add (may be negative)
        day_of_month: Target day; defaults to day.day
    """
    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day_of_month or day.day, last_day))


def next_occurrence(
    due_date: date,
    frequency: Frequency,
    anchor_day_of_month: Optional[int] = None,
) -> Optional[date]:
    """
    Next due date for a charge due on `due_date`.

    Returns None for Frequency.NONE: one-off charges have no successor,
    which is not an error.
    """
    if frequency == Frequency.WEEKLY:
        return due_date + WEEKLY_STEP
    if frequency == Frequency.MONTHLY:
        return add_months(due_date, 1, anchor_day_of_month)
    return None


def next_due_date(charge: NewCharge) -> Optional[date]:
    """Next due date for the charge, or None if it does not recur."""
    recurrence = charge.recurrence
    if not recurrence.produces_successor:
        return None
    return next_occurrence(
        charge.due_date,
        recurrence.frequency,
        recurrence.anchor_day_of_month,
    )


def build_successor(charge: Charge) -> Optional[NewCharge]:
    """
    Draft the Pending occurrence that follows `charge`.

    The successor copies the identity fields and the recurrence
    descriptor, and points back at `charge` through predecessor_id.
    """
    due_date = next_due_date(charge)
    if due_date is None:
        return None

    return NewCharge(
        client_name=charge.client_name,
        reference=charge.reference,
        amount=charge.amount,
        due_date=due_date,
        due_time=charge.due_time,
        recurrence=charge.recurrence,
        predecessor_id=charge.id,
    )
