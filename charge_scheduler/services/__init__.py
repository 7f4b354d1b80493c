"""Services package."""

from charge_scheduler.services.storage import (
    AuditStorageInterface,
    ChargeStoreInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsChargeStore,
    GoogleSheetsClient,
    InMemoryAuditStorage,
    InMemoryChargeStore,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ChargeStoreInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsChargeStore",
    "GoogleSheetsClient",
    "InMemoryAuditStorage",
    "InMemoryChargeStore",
    "NotFoundError",
    "StorageError",
]
