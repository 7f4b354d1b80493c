"""
Data Models Package

This package contains all Pydantic models used by the Charge Scheduler.
All data flowing between the scheduler, the store and the UI must conform
to these schemas.
"""

from charge_scheduler.models.charge import (
    Charge,
    ChargeStatus,
    ChargeUpdate,
    Frequency,
    NewCharge,
    Recurrence,
)
from charge_scheduler.models.schedule import (
    LedgerSummary,
    ReconcileResult,
    ScheduleView,
    SettleOutcome,
    UnsettleOutcome,
)
from charge_scheduler.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Charge models
    "Charge",
    "ChargeStatus",
    "ChargeUpdate",
    "Frequency",
    "NewCharge",
    "Recurrence",
    # Schedule models
    "LedgerSummary",
    "ReconcileResult",
    "ScheduleView",
    "SettleOutcome",
    "UnsettleOutcome",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
