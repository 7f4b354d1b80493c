"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the remote backend; the in-memory store backs tests and
local development.
"""

from charge_scheduler.services.storage.interface import (
    AuditStorageInterface,
    ChargeStoreInterface,
    ConnectionError,
    NotFoundError,
    StorageError,
)
from charge_scheduler.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryChargeStore,
)
from charge_scheduler.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsChargeStore,
    GoogleSheetsClient,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ChargeStoreInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryChargeStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsChargeStore",
    "GoogleSheetsClient",
]
