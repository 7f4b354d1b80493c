"""
Charge Ledger

Totals and per-day buckets for the weekly view.

All sums are Decimal additions starting from an exact zero, so totals
never pick up binary floating point drift, however many charges a
recurrence chain has produced.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from charge_scheduler.models.charge import Charge, ChargeStatus
from charge_scheduler.models.schedule import LedgerSummary, ZERO


CENTS = Decimal("0.01")


def summarize(charges: Iterable[Charge]) -> LedgerSummary:
    """
    Settled, outstanding and overall totals for `charges`.

    Every charge is either settled or pending, so
    total == settled_total + outstanding_total holds by construction.
    """
    settled_total = ZERO
    outstanding_total = ZERO
    settled_count = 0
    pending_count = 0

    for charge in charges:
        if charge.status == ChargeStatus.SETTLED:
            settled_total += charge.amount
            settled_count += 1
        else:
            outstanding_total += charge.amount
            pending_count += 1

    return LedgerSummary(
        settled_total=settled_total,
        outstanding_total=outstanding_total,
        settled_count=settled_count,
        pending_count=pending_count,
    )


def bucket_by_day(
    charges: Iterable[Charge],
    window: Sequence[date],
) -> dict[date, list[Charge]]:
    """
    Group charges by due date over the window's days.

    Every window day gets a key, empty or not. A charge lands in the
    bucket equal to its due date; charges outside the window are left
    out. Order inside a bucket follows the input order.
    """
    buckets: dict[date, list[Charge]] = {day: [] for day in window}
    for charge in charges:
        bucket = buckets.get(charge.due_date)
        if bucket is not None:
            bucket.append(charge)
    return buckets


def charges_in_window(
    charges: Iterable[Charge],
    window: Sequence[date],
) -> list[Charge]:
    days = set(window)
    return [charge for charge in charges if charge.due_date in days]


def summarize_window(
    charges: Iterable[Charge],
    window: Sequence[date],
) -> LedgerSummary:
    """Totals restricted to charges due inside the window."""
    return summarize(charges_in_window(charges, window))


def format_amount(amount: Decimal, symbol: str = "R$") -> str:
    """
    Format an amount the way the dashboard displays it.

    Uses '.' for thousands and ',' for cents: Decimal('1650') -> 'R$ 1.650,00'.
    """
    quantized = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    sign = "-" if quantized < 0 else ""
    grouped = f"{abs(quantized):,.2f}"
    localized = grouped.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}{symbol} {localized}"
