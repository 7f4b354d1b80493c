"""
View Reconciliation

The scheduler updates its local view before the store confirms a write.
After every mutation attempt the view is reconciled with a fresh store
snapshot here, in one place, instead of each call site guessing how to
roll its own change back.

The store snapshot always wins.
"""

from typing import Iterable

from charge_scheduler.models.charge import Charge
from charge_scheduler.models.schedule import ReconcileResult


def sort_key(charge: Charge):
    return (charge.due_date, charge.client_name.lower(), str(charge.id))


def reconcile(
    local_view: Iterable[Charge],
    store_snapshot: Iterable[Charge],
) -> ReconcileResult:
    """
    Replace the local view with the store snapshot and report the drift.

    Args:
        local_view: Charges as the view currently shows them
        store_snapshot: Charges as the store returned them

    Returns:
        ReconcileResult whose `charges` are the snapshot in display order
    """
    local = {charge.id: charge for charge in local_view}
    remote = {charge.id: charge for charge in store_snapshot}

    added = [charge_id for charge_id in remote if charge_id not in local]
    removed = [charge_id for charge_id in local if charge_id not in remote]
    changed = [
        charge_id
        for charge_id, charge in remote.items()
        if charge_id in local and local[charge_id] != charge
    ]

    return ReconcileResult(
        charges=sorted(remote.values(), key=sort_key),
        added_ids=added,
        removed_ids=removed,
        changed_ids=changed,
    )
