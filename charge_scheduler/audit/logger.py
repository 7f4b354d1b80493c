"""
Audit Logger

DESIGN DECISION: Every state change on a charge is logged.
This provides:
1. Traceability of settlements and their successors
2. A record of which half of a failed settle went through
3. Debugging capability when the view and the store disagree

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from charge_scheduler.models.audit import AuditEvent, AuditEventBuilder
from charge_scheduler.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output to stdout at the given level."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )
    logging.getLogger().setLevel(level)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and operator visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("charge_scheduler.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_charge_created(
        self,
        charge_id: UUID,
        client_name: str,
        amount: str,
        due_date: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log charge creation."""
        await self.log(AuditEventBuilder.charge_created(
            charge_id=charge_id,
            client_name=client_name,
            amount=amount,
            due_date=due_date,
            correlation_id=correlation_id,
        ))

    async def log_charge_settled(
        self,
        charge_id: UUID,
        settled_at: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.charge_settled(
            charge_id=charge_id,
            settled_at=settled_at,
            correlation_id=correlation_id,
        ))

    async def log_settle_skipped(
        self,
        charge_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.settle_skipped(
            charge_id=charge_id,
            correlation_id=correlation_id,
        ))

    async def log_charge_unsettled(
        self,
        charge_id: UUID,
        pending_successors: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.charge_unsettled(
            charge_id=charge_id,
            pending_successors=pending_successors,
            correlation_id=correlation_id,
        ))

    async def log_charge_deleted(
        self,
        charge_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.charge_deleted(
            charge_id=charge_id,
            correlation_id=correlation_id,
        ))

    async def log_successor_created(
        self,
        successor_id: UUID,
        predecessor_id: UUID,
        due_date: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.successor_created(
            successor_id=successor_id,
            predecessor_id=predecessor_id,
            due_date=due_date,
            correlation_id=correlation_id,
        ))

    async def log_successor_retracted(
        self,
        successor_id: UUID,
        predecessor_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.successor_retracted(
            successor_id=successor_id,
            predecessor_id=predecessor_id,
            correlation_id=correlation_id,
        ))

    async def log_settlement_incomplete(
        self,
        charge_id: UUID,
        successor_id: Optional[UUID],
        settled: bool,
        successor_created: bool,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a settle where only one of the two writes went through."""
        await self.log(AuditEventBuilder.settlement_incomplete(
            charge_id=charge_id,
            successor_id=successor_id,
            settled=settled,
            successor_created=successor_created,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_window_loaded(
        self,
        start: str,
        end: str,
        charge_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.window_loaded(
            start=start,
            end=end,
            charge_count=charge_count,
            correlation_id=correlation_id,
        ))

    async def log_view_reconciled(
        self,
        added: int,
        removed: int,
        changed: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.view_reconciled(
            added=added,
            removed=removed,
            changed=changed,
            correlation_id=correlation_id,
        ))

    async def log_store_error(
        self,
        operation: str,
        error_message: str,
        charge_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed store call."""
        await self.log(AuditEventBuilder.store_error(
            operation=operation,
            error_message=error_message,
            charge_id=charge_id,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new operator action (e.g., a settle click).
    Pass it through all subsequent operations.
    """
    return uuid4()
