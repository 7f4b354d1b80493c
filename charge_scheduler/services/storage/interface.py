"""
Abstract Storage Interface

DESIGN DECISION: The scheduler only talks to storage through these
interfaces. This allows us to:
1. Swap Google Sheets for a relational database later
2. Use in-memory storage for testing
3. Keep scheduling logic decoupled from storage implementation

Every mutation is a targeted operation keyed by charge id. The store
may be shared with other sessions, so we never write back a full list
we read earlier.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, Optional
from uuid import UUID

from charge_scheduler.models.audit import AuditEvent
from charge_scheduler.models.charge import Charge, ChargeUpdate, NewCharge


class ChargeStoreInterface(ABC):
    """
    Abstract interface for charge storage operations.

    All calls may hit the network: they may fail or time out, and
    failures are raised as StorageError.
    """

    # Stores that can wrap several writes in one transaction override
    # this and transaction().
    supports_transactions: bool = False

    @abstractmethod
    async def list_by_due_date_range(
        self,
        start: date,
        end: date,
    ) -> list[Charge]:
        """
        List charges due between start and end, both inclusive.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def get(self, charge_id: UUID) -> Optional[Charge]:
        """
        Retrieve a charge by its ID.

        Returns:
            The charge if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert(self, new_charge: NewCharge) -> Charge:
        """
        Store a new charge.

        Returns:
            The stored charge with its assigned id

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def update(self, charge_id: UUID, update: ChargeUpdate) -> None:
        """
        Apply a partial update to one charge.

        Only the fields set on `update` are written.

        Raises:
            NotFoundError: If the charge doesn't exist
            StorageError: If the update fails
        """
        pass

    @abstractmethod
    async def delete(self, charge_id: UUID) -> None:
        """
        Delete a charge by ID. Deleting a missing charge is a no-op.

        Raises:
            StorageError: If the delete fails
        """
        pass

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Group writes so they apply together or not at all.

        Only available when supports_transactions is True.
        """
        raise NotImplementedError(
            f"{type(self).__name__} does not support transactions"
        )
        yield  # pragma: no cover


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
