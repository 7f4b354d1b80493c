"""
Scheduling Package

Pure, synchronous building blocks of the weekly schedule: the calendar
window, the recurrence rule, the ledger totals and view reconciliation.
Nothing in here performs I/O.
"""

from charge_scheduler.scheduling.calendar_window import (
    DAY_NAMES,
    DAYS_IN_WINDOW,
    day_name,
    is_in_window,
    shift_reference,
    week_start,
    window_bounds,
    window_for,
)
from charge_scheduler.scheduling.ledger import (
    bucket_by_day,
    charges_in_window,
    format_amount,
    summarize,
    summarize_window,
)
from charge_scheduler.scheduling.recurrence import (
    add_months,
    build_successor,
    next_due_date,
    next_occurrence,
)
from charge_scheduler.scheduling.reconcile import reconcile

__all__ = [
    # Calendar window
    "DAY_NAMES",
    "DAYS_IN_WINDOW",
    "day_name",
    "is_in_window",
    "shift_reference",
    "week_start",
    "window_bounds",
    "window_for",
    # Ledger
    "bucket_by_day",
    "charges_in_window",
    "format_amount",
    "summarize",
    "summarize_window",
    # Recurrence
    "add_months",
    "build_successor",
    "next_due_date",
    "next_occurrence",
    # Reconciliation
    "reconcile",
]
