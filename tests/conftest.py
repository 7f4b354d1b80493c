"""
Shared fixtures for the Charge Scheduler tests.

No real store is touched: the scheduler runs against the in-memory
store, optionally wrapped to count writes and inject failures.
"""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

import pytest

from charge_scheduler.audit import AuditLogger
from charge_scheduler.models.charge import (
    ChargeUpdate,
    Frequency,
    NewCharge,
    Recurrence,
)
from charge_scheduler.scheduler import SchedulerController, UnsettlePolicy
from charge_scheduler.services.storage import (
    InMemoryAuditStorage,
    InMemoryChargeStore,
    StorageError,
)


FIXED_NOW = datetime(2024, 3, 12, 15, 30, tzinfo=timezone.utc)
TODAY = date(2024, 3, 12)  # Tuesday


def run(coro):
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


class RecordingChargeStore(InMemoryChargeStore):
    """
    In-memory store that counts writes and can be told to fail.

    fail_on: operation names ("insert", "update", "delete", "list")
    that raise StorageError.
    """

    def __init__(self, transactional: bool = True, **kwargs):
        super().__init__(**kwargs)
        self.supports_transactions = transactional
        self.fail_on: set[str] = set()
        self.inserts: list[NewCharge] = []
        self.updates: list[tuple[UUID, ChargeUpdate]] = []
        self.deletes: list[UUID] = []

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise StorageError(f"{operation} failed (simulated)")

    async def list_by_due_date_range(self, start, end):
        self._maybe_fail("list")
        return await super().list_by_due_date_range(start, end)

    async def insert(self, new_charge):
        self._maybe_fail("insert")
        self.inserts.append(new_charge)
        return await super().insert(new_charge)

    async def update(self, charge_id, update):
        self._maybe_fail("update")
        self.updates.append((charge_id, update))
        await super().update(charge_id, update)

    async def delete(self, charge_id):
        self._maybe_fail("delete")
        self.deletes.append(charge_id)
        await super().delete(charge_id)


def make_new_charge(
    due_date: date = date(2024, 3, 10),
    amount: str = "100.00",
    frequency: Frequency = Frequency.NONE,
    is_recurring: Optional[bool] = None,
    client_name: str = "Carlos Souza",
    reference: str = "Moto rental",
) -> NewCharge:
    if is_recurring is None:
        is_recurring = frequency != Frequency.NONE
    return NewCharge(
        client_name=client_name,
        reference=reference,
        amount=Decimal(amount),
        due_date=due_date,
        recurrence=Recurrence(is_recurring=is_recurring, frequency=frequency),
    )


@pytest.fixture
def store() -> RecordingChargeStore:
    return RecordingChargeStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def make_scheduler(audit_storage):
    def _make(
        store: RecordingChargeStore,
        policy: UnsettlePolicy = UnsettlePolicy.LEAVE,
    ) -> SchedulerController:
        return SchedulerController(
            store=store,
            audit_logger=AuditLogger(audit_storage),
            unsettle_policy=policy,
            clock=lambda: FIXED_NOW,
            today=lambda: TODAY,
        )
    return _make


@pytest.fixture
def scheduler(store, make_scheduler) -> SchedulerController:
    return make_scheduler(store)
