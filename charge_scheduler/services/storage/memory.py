"""
In-Memory Storage Implementation

Used by the test suite and as the local fallback when no remote store
is configured. It follows the same interface as the Google Sheets
backend, and additionally supports transactions, so the scheduler's
transactional settle path runs against it.
"""

from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, Optional
from uuid import UUID

from charge_scheduler.models.audit import AuditEvent
from charge_scheduler.models.charge import Charge, ChargeUpdate, NewCharge
from charge_scheduler.services.storage.interface import (
    AuditStorageInterface,
    ChargeStoreInterface,
    NotFoundError,
)


class InMemoryChargeStore(ChargeStoreInterface):
    """
    Dict-backed charge store.

    Transactions snapshot the table on entry and restore it if the
    block raises.
    """

    supports_transactions = True

    def __init__(self, charges: Optional[list[Charge]] = None):
        self._charges: dict[UUID, Charge] = {
            charge.id: charge for charge in charges or []
        }

    def __len__(self) -> int:
        return len(self._charges)

    def all(self) -> list[Charge]:
        """Every stored charge, ordered by due date."""
        return sorted(self._charges.values(), key=lambda c: (c.due_date, str(c.id)))

    async def list_by_due_date_range(
        self,
        start: date,
        end: date,
    ) -> list[Charge]:
        return [
            charge
            for charge in self.all()
            if start <= charge.due_date <= end
        ]

    async def get(self, charge_id: UUID) -> Optional[Charge]:
        return self._charges.get(charge_id)

    async def insert(self, new_charge: NewCharge) -> Charge:
        charge = Charge.from_new(new_charge)
        self._charges[charge.id] = charge
        return charge

    async def update(self, charge_id: UUID, update: ChargeUpdate) -> None:
        charge = self._charges.get(charge_id)
        if charge is None:
            raise NotFoundError(f"Charge not found: {charge_id}")
        self._charges[charge_id] = charge.with_update(update)

    async def delete(self, charge_id: UUID) -> None:
        self._charges.pop(charge_id, None)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        snapshot = dict(self._charges)
        try:
            yield
        except BaseException:
            self._charges = snapshot
            raise


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            event
            for event in self._events
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
