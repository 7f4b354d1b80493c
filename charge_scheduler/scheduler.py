"""
Scheduler Controller for the Charge Scheduler

This module ties the pure scheduling pieces to the charge store and
defines the operator-facing flows:
1. Load a week (window -> store read -> view)
2. Settle / unsettle a charge (state change + successor handling)
3. Create and delete charges

DESIGN DECISION: The controller keeps an optimistic local view so the
UI responds immediately, but the store is the source of truth. After
every mutation attempt, successful or not, the view is reconciled with
a fresh store snapshot through `reconcile()`.

SETTLE ORDERING: Settling a recurring charge is two writes, the status
update and the successor insert.
- Transactional store: both writes in one transaction.
- Otherwise: insert the successor FIRST, then update the status.
  An extra pending successor is easier to spot and delete than a
  settlement that silently never happened. If the update fails after
  the insert, SettlementIncompleteError says exactly that.
The controller never retries on its own.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union
from uuid import UUID

import structlog

from charge_scheduler.audit import AuditLogger, configure_logging, create_correlation_id
from charge_scheduler.config import get_settings
from charge_scheduler.models.charge import (
    Charge,
    ChargeStatus,
    ChargeUpdate,
    Frequency,
    NewCharge,
)
from charge_scheduler.models.schedule import (
    LedgerSummary,
    ReconcileResult,
    ScheduleView,
    SettleOutcome,
    UnsettleOutcome,
)
from charge_scheduler.scheduling import (
    bucket_by_day,
    build_successor,
    is_in_window,
    next_due_date,
    reconcile,
    shift_reference,
    summarize_window,
    window_bounds,
    window_for,
)
from charge_scheduler.scheduling.reconcile import sort_key
from charge_scheduler.services.storage import (
    ChargeStoreInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsChargeStore,
    GoogleSheetsClient,
    InMemoryChargeStore,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


class UnsettlePolicy(str, Enum):
    """
    What unsettling a recurring charge does to the successor it spawned.

    LEAVE: successor stays; two occurrences may be outstanding.
    RETRACT: successors still pending are deleted.
    """
    LEAVE = "leave"
    RETRACT = "retract"


class SchedulerError(Exception):
    """Base exception for scheduler operations."""
    pass


class SettlementIncompleteError(SchedulerError):
    """
    Only one of the two settle writes reached the store.

    Attributes say which half went through so the operator can fix it.
    """

    def __init__(
        self,
        charge_id: UUID,
        successor_id: Optional[UUID],
        settled: bool,
        successor_created: bool,
        message: str,
    ):
        self.charge_id = charge_id
        self.successor_id = successor_id
        self.settled = settled
        self.successor_created = successor_created
        super().__init__(
            f"Settlement of {charge_id} incomplete "
            f"(settled={settled}, successor_created={successor_created}): {message}"
        )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SchedulerController:
    """
    Drives the weekly charge schedule.

    Flow:
    1. load_window() -> window dates -> store read -> view
    2. settle()/unsettle()/toggle() -> optimistic view change -> store
       writes -> reconcile
    3. create_charge()/delete_charge() -> store write -> reconcile

    Single writer: one operator session per controller.
    """

    def __init__(
        self,
        store: ChargeStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        unsettle_policy: UnsettlePolicy = UnsettlePolicy.LEAVE,
        clock: Callable[[], datetime] = _utc_now,
        today: Callable[[], date] = date.today,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        self._unsettle_policy = UnsettlePolicy(unsettle_policy)
        self._clock = clock
        self._today = today

        reference = today()
        # Nothing read yet
        self._view = ScheduleView(
            reference_date=reference,
            days=window_for(reference),
            stale=True,
        )

    # -------------------------------------------------------------------------
    # View
    # -------------------------------------------------------------------------

    @property
    def view(self) -> ScheduleView:
        return self._view

    @property
    def unsettle_policy(self) -> UnsettlePolicy:
        return self._unsettle_policy

    @property
    def summary(self) -> LedgerSummary:
        """Totals for the charges in the current view."""
        return summarize_window(self._view.charges, self._view.days)

    @property
    def buckets(self) -> dict[date, list[Charge]]:
        """Charges of the current view grouped by day."""
        return bucket_by_day(self._view.charges, self._view.days)

    async def load_window(
        self,
        reference_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ScheduleView:
        """
        Load the week containing reference_date from the store.

        Defaults to the current reference date (i.e. reload).

        Raises:
            StorageError: If the store read fails; the previous view is kept
        """
        correlation_id = correlation_id or create_correlation_id()
        reference = reference_date or self._view.reference_date
        days = window_for(reference)
        start, end = window_bounds(reference)

        try:
            snapshot = await self._store.list_by_due_date_range(start, end)
        except StorageError as e:
            await self._audit_logger.log_store_error(
                operation="list_by_due_date_range",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        self._view = ScheduleView(
            reference_date=reference,
            days=days,
            charges=sorted(snapshot, key=sort_key),
        )
        await self._audit_logger.log_window_loaded(
            start=start.isoformat(),
            end=end.isoformat(),
            charge_count=len(snapshot),
            correlation_id=correlation_id,
        )
        return self._view

    async def next_week(self) -> ScheduleView:
        return await self.load_window(shift_reference(self._view.reference_date, 1))

    async def previous_week(self) -> ScheduleView:
        return await self.load_window(shift_reference(self._view.reference_date, -1))

    async def go_to_today(self) -> ScheduleView:
        return await self.load_window(self._today())

    async def refresh(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> ReconcileResult:
        """
        Reconcile the view with a fresh snapshot of the current window.

        Raises:
            StorageError: If the store read fails
        """
        snapshot = await self._store.list_by_due_date_range(
            self._view.start,
            self._view.end,
        )
        result = reconcile(self._view.charges, snapshot)
        self._view = self._view.model_copy(
            update={"charges": result.charges, "stale": False}
        )

        if not result.in_sync:
            await self._audit_logger.log_view_reconciled(
                added=len(result.added_ids),
                removed=len(result.removed_ids),
                changed=len(result.changed_ids),
                correlation_id=correlation_id,
            )
        return result

    async def _resync(
        self,
        correlation_id: UUID,
        restore: Optional[Charge] = None,
    ) -> None:
        """
        Refresh after a mutation attempt.

        If the store cannot be read either, the view is flagged stale.
        On a failed write the caller passes the charge as it was before
        its optimistic change, and that copy goes back into the view.
        """
        try:
            await self.refresh(correlation_id)
        except StorageError as e:
            if restore is not None:
                self._apply_local(restore)
            self._view = self._view.model_copy(update={"stale": True})
            await self._audit_logger.log_store_error(
                operation="refresh",
                error_message=str(e),
                correlation_id=correlation_id,
            )

    def _apply_local(self, charge: Charge) -> None:
        """Optimistically put `charge` into the view (or drop it if out of window)."""
        charges = [c for c in self._view.charges if c.id != charge.id]
        if is_in_window(charge.due_date, self._view.days):
            charges.append(charge)
        self._view = self._view.model_copy(
            update={"charges": sorted(charges, key=sort_key)}
        )

    def _remove_local(self, charge_id: UUID) -> None:
        self._view = self._view.model_copy(
            update={"charges": [c for c in self._view.charges if c.id != charge_id]}
        )

    async def _current(self, charge: Charge) -> Charge:
        """
        Latest known state of `charge`.

        The view wins over the object the caller holds, which may be
        stale. Charges outside the view, or any charge while the view
        itself is stale, are read from the store.
        """
        if not self._view.stale:
            current = self._view.find(charge.id)
            if current is not None:
                return current

        current = await self._store.get(charge.id)
        if current is None:
            raise NotFoundError(f"Charge not found: {charge.id}")
        return current

    # -------------------------------------------------------------------------
    # Settle / unsettle
    # -------------------------------------------------------------------------

    async def settle(
        self,
        charge: Charge,
        correlation_id: Optional[UUID] = None,
    ) -> SettleOutcome:
        """
        Mark a charge as settled and schedule its successor if it recurs.

        Settling an already settled charge is a no-op: no store write,
        no second successor.

        Raises:
            StorageError: A store call failed; nothing was applied
            SettlementIncompleteError: The successor was inserted but the
                status update failed
        """
        correlation_id = correlation_id or create_correlation_id()
        current = await self._current(charge)

        if current.status == ChargeStatus.SETTLED:
            await self._audit_logger.log_settle_skipped(
                charge_id=current.id,
                correlation_id=correlation_id,
            )
            return SettleOutcome(charge=current, changed=False)

        update = ChargeUpdate.settle(self._clock())
        settled = current.with_update(update)
        draft = build_successor(current)

        self._apply_local(settled)
        try:
            successor = await self._write_settlement(
                current, update, draft, correlation_id
            )
        except SettlementIncompleteError:
            await self._resync(correlation_id, restore=current)
            raise
        except StorageError as e:
            await self._audit_logger.log_store_error(
                operation="settle",
                error_message=str(e),
                charge_id=current.id,
                correlation_id=correlation_id,
            )
            await self._resync(correlation_id, restore=current)
            raise

        await self._audit_logger.log_charge_settled(
            charge_id=current.id,
            settled_at=update.settled_at.isoformat(),
            correlation_id=correlation_id,
        )
        if successor is not None:
            self._apply_local(successor)
            await self._audit_logger.log_successor_created(
                successor_id=successor.id,
                predecessor_id=current.id,
                due_date=successor.due_date.isoformat(),
                correlation_id=correlation_id,
            )

        await self._resync(correlation_id)
        return SettleOutcome(charge=settled, successor=successor, changed=True)

    async def _write_settlement(
        self,
        charge: Charge,
        update: ChargeUpdate,
        draft: Optional[NewCharge],
        correlation_id: UUID,
    ) -> Optional[Charge]:
        """Persist the status update and, for recurring charges, the successor."""
        if draft is None:
            await self._store.update(charge.id, update)
            return None

        if self._store.supports_transactions:
            async with self._store.transaction():
                await self._store.update(charge.id, update)
                return await self._store.insert(draft)

        # No transactions: successor first, see module docstring
        successor = await self._store.insert(draft)
        try:
            await self._store.update(charge.id, update)
        except StorageError as e:
            await self._audit_logger.log_settlement_incomplete(
                charge_id=charge.id,
                successor_id=successor.id,
                settled=False,
                successor_created=True,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise SettlementIncompleteError(
                charge_id=charge.id,
                successor_id=successor.id,
                settled=False,
                successor_created=True,
                message=str(e),
            ) from e
        return successor

    async def unsettle(
        self,
        charge: Charge,
        correlation_id: Optional[UUID] = None,
    ) -> UnsettleOutcome:
        """
        Revert a settled charge to pending.

        The successor spawned by the earlier settle is handled by the
        unsettle policy: left in place (LEAVE) or deleted if it is still
        pending (RETRACT). Unsettling a pending charge is a no-op.

        Raises:
            StorageError: If a store call fails
        """
        correlation_id = correlation_id or create_correlation_id()
        current = await self._current(charge)

        if current.status == ChargeStatus.PENDING:
            return UnsettleOutcome(charge=current, changed=False)

        update = ChargeUpdate.unsettle()
        unsettled = current.with_update(update)

        self._apply_local(unsettled)
        status_written = False
        try:
            await self._store.update(current.id, update)
            status_written = True
            successors = await self._pending_successors(current)
            retracted = []
            if self._unsettle_policy == UnsettlePolicy.RETRACT:
                for successor in successors:
                    await self._store.delete(successor.id)
                    self._remove_local(successor.id)
                    retracted.append(successor.id)
                    await self._audit_logger.log_successor_retracted(
                        successor_id=successor.id,
                        predecessor_id=current.id,
                        correlation_id=correlation_id,
                    )
                successors = []
        except StorageError as e:
            await self._audit_logger.log_store_error(
                operation="unsettle",
                error_message=str(e),
                charge_id=current.id,
                correlation_id=correlation_id,
            )
            await self._resync(
                correlation_id,
                restore=None if status_written else current,
            )
            raise

        await self._audit_logger.log_charge_unsettled(
            charge_id=current.id,
            pending_successors=len(successors),
            correlation_id=correlation_id,
        )
        await self._resync(correlation_id)
        return UnsettleOutcome(
            charge=unsettled,
            changed=True,
            pending_successors=successors,
            retracted_ids=retracted,
        )

    async def _pending_successors(self, charge: Charge) -> list[Charge]:
        """Pending charges whose predecessor_id points at `charge`."""
        due_date = next_due_date(charge)
        if due_date is None:
            return []

        candidates = await self._store.list_by_due_date_range(due_date, due_date)
        return [
            candidate
            for candidate in candidates
            if candidate.predecessor_id == charge.id
            and candidate.status == ChargeStatus.PENDING
        ]

    async def toggle(
        self,
        charge: Charge,
        correlation_id: Optional[UUID] = None,
    ) -> Union[SettleOutcome, UnsettleOutcome]:
        """Settle a pending charge, unsettle a settled one."""
        current = await self._current(charge)
        if current.status == ChargeStatus.SETTLED:
            return await self.unsettle(current, correlation_id)
        return await self.settle(current, correlation_id)

    # -------------------------------------------------------------------------
    # Create / delete
    # -------------------------------------------------------------------------

    async def create_charge(
        self,
        new_charge: NewCharge,
        correlation_id: Optional[UUID] = None,
    ) -> Charge:
        """
        Store a new charge.

        Missing anchors are taken from the due date, so a monthly charge
        due on the 31st keeps coming back at month end. A charge created
        already settled does not spawn a successor.

        Raises:
            StorageError: If the insert fails
        """
        correlation_id = correlation_id or create_correlation_id()
        new_charge = _with_default_anchors(new_charge)

        try:
            charge = await self._store.insert(new_charge)
        except StorageError as e:
            await self._audit_logger.log_store_error(
                operation="insert",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            await self._resync(correlation_id)
            raise

        self._apply_local(charge)
        await self._audit_logger.log_charge_created(
            charge_id=charge.id,
            client_name=charge.client_name,
            amount=str(charge.amount),
            due_date=charge.due_date.isoformat(),
            correlation_id=correlation_id,
        )
        await self._resync(correlation_id)
        return charge

    async def delete_charge(
        self,
        charge_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Delete a charge. No cascade: its successor, if any, stays.

        Raises:
            StorageError: If the delete fails
        """
        correlation_id = correlation_id or create_correlation_id()

        removed = self._view.find(charge_id)
        self._remove_local(charge_id)
        try:
            await self._store.delete(charge_id)
        except StorageError as e:
            await self._audit_logger.log_store_error(
                operation="delete",
                error_message=str(e),
                charge_id=charge_id,
                correlation_id=correlation_id,
            )
            await self._resync(correlation_id, restore=removed)
            raise

        await self._audit_logger.log_charge_deleted(
            charge_id=charge_id,
            correlation_id=correlation_id,
        )
        await self._resync(correlation_id)


def _with_default_anchors(new_charge: NewCharge) -> NewCharge:
    recurrence = new_charge.recurrence
    anchors = {}
    if recurrence.frequency == Frequency.WEEKLY and recurrence.anchor_day_of_week is None:
        # Sunday = 0
        anchors["anchor_day_of_week"] = (new_charge.due_date.weekday() + 1) % 7
    if recurrence.frequency == Frequency.MONTHLY and recurrence.anchor_day_of_month is None:
        anchors["anchor_day_of_month"] = new_charge.due_date.day

    if not anchors:
        return new_charge
    return new_charge.model_copy(
        update={"recurrence": recurrence.model_copy(update=anchors)}
    )


def create_scheduler(use_storage: bool = True) -> SchedulerController:
    """
    Factory function to create the scheduler with its store and audit logger.

    Args:
        use_storage: Whether to connect to the configured remote store.
                    Set to False to run on the in-memory store.

    Returns:
        A SchedulerController
    """
    app_settings = get_settings().app
    configure_logging(app_settings.log_level)

    store: ChargeStoreInterface = InMemoryChargeStore()
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage and app_settings.storage_backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            store = GoogleSheetsChargeStore(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))

    return SchedulerController(
        store=store,
        audit_logger=audit_logger,
        unsettle_policy=UnsettlePolicy(app_settings.unsettle_policy),
    )
