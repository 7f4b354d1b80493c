"""
Audit Models for the Charge Scheduler

Every state change on a charge is logged for audit purposes.
This provides:
1. Traceability of who settled what and when
2. A record of half-applied settlements (which write succeeded)
3. Debugging information when the store disagrees with the view

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Charge lifecycle
    CHARGE_CREATED = "charge_created"
    CHARGE_SETTLED = "charge_settled"
    SETTLE_SKIPPED = "settle_skipped"
    CHARGE_UNSETTLED = "charge_unsettled"
    CHARGE_DELETED = "charge_deleted"

    # Recurrence
    SUCCESSOR_CREATED = "successor_created"
    SUCCESSOR_RETRACTED = "successor_retracted"
    SETTLEMENT_INCOMPLETE = "settlement_incomplete"

    # View synchronisation
    WINDOW_LOADED = "window_loaded"
    VIEW_RECONCILED = "view_reconciled"

    # Failures
    STORE_ERROR = "store_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action on a charge creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'charge', 'window')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate the events of one operator action"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by the operator?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.charge_settled(charge_id, settled_at, correlation_id)
        event = AuditEventBuilder.store_error("update", str(exc), correlation_id)
    """

    @staticmethod
    def charge_created(
        charge_id: UUID,
        client_name: str,
        amount: str,
        due_date: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHARGE_CREATED,
            entity_type="charge",
            entity_id=charge_id,
            correlation_id=correlation_id,
            description=f"Charge created: {client_name} - {amount} due {due_date}",
            details={
                "client_name": client_name,
                "amount": amount,
                "due_date": due_date,
            },
            is_user_action=True,
        )

    @staticmethod
    def charge_settled(
        charge_id: UUID,
        settled_at: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHARGE_SETTLED,
            entity_type="charge",
            entity_id=charge_id,
            correlation_id=correlation_id,
            description="Charge marked as settled",
            details={"settled_at": settled_at},
            is_user_action=True,
        )

    @staticmethod
    def settle_skipped(
        charge_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLE_SKIPPED,
            severity=AuditSeverity.DEBUG,
            entity_type="charge",
            entity_id=charge_id,
            correlation_id=correlation_id,
            description="Charge already settled, nothing to do",
        )

    @staticmethod
    def charge_unsettled(
        charge_id: UUID,
        pending_successors: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        # Two outstanding occurrences is legal but worth a look
        severity = AuditSeverity.WARNING if pending_successors else AuditSeverity.INFO
        return AuditEvent(
            event_type=AuditEventType.CHARGE_UNSETTLED,
            severity=severity,
            entity_type="charge",
            entity_id=charge_id,
            correlation_id=correlation_id,
            description="Charge reverted to pending",
            details={"pending_successors": pending_successors},
            is_user_action=True,
        )

    @staticmethod
    def charge_deleted(
        charge_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CHARGE_DELETED,
            entity_type="charge",
            entity_id=charge_id,
            correlation_id=correlation_id,
            description="Charge deleted",
            is_user_action=True,
        )

    @staticmethod
    def successor_created(
        successor_id: UUID,
        predecessor_id: UUID,
        due_date: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUCCESSOR_CREATED,
            entity_type="charge",
            entity_id=successor_id,
            correlation_id=correlation_id,
            description=f"Next occurrence scheduled for {due_date}",
            details={
                "predecessor_id": str(predecessor_id),
                "due_date": due_date,
            },
        )

    @staticmethod
    def successor_retracted(
        successor_id: UUID,
        predecessor_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUCCESSOR_RETRACTED,
            entity_type="charge",
            entity_id=successor_id,
            correlation_id=correlation_id,
            description="Pending successor retracted after unsettle",
            details={"predecessor_id": str(predecessor_id)},
        )

    @staticmethod
    def settlement_incomplete(
        charge_id: UUID,
        successor_id: Optional[UUID],
        settled: bool,
        successor_created: bool,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_INCOMPLETE,
            severity=AuditSeverity.ERROR,
            entity_type="charge",
            entity_id=charge_id,
            correlation_id=correlation_id,
            description="Settlement only partially applied",
            details={
                "settled": settled,
                "successor_created": successor_created,
                "successor_id": str(successor_id) if successor_id else None,
            },
            error_message=error_message,
        )

    @staticmethod
    def window_loaded(
        start: str,
        end: str,
        charge_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WINDOW_LOADED,
            severity=AuditSeverity.DEBUG,
            entity_type="window",
            correlation_id=correlation_id,
            description=f"Loaded {charge_count} charges for {start}..{end}",
            details={
                "start": start,
                "end": end,
                "charge_count": charge_count,
            },
        )

    @staticmethod
    def view_reconciled(
        added: int,
        removed: int,
        changed: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VIEW_RECONCILED,
            severity=AuditSeverity.WARNING,
            entity_type="window",
            correlation_id=correlation_id,
            description="Local view disagreed with the store and was replaced",
            details={
                "added": added,
                "removed": removed,
                "changed": changed,
            },
        )

    @staticmethod
    def store_error(
        operation: str,
        error_message: str,
        charge_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_ERROR,
            severity=AuditSeverity.ERROR,
            entity_type="charge" if charge_id else None,
            entity_id=charge_id,
            correlation_id=correlation_id,
            description=f"Store operation failed: {operation}",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
