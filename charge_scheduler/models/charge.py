"""
Core Charge Models for the Charge Scheduler

A charge is one payment expected from a client. It may recur weekly or
monthly; settling a recurring charge schedules its successor.

These models are designed to:
1. Keep money exact (Decimal, never float)
2. Keep due dates as calendar dates (no time of day, no timezone)
3. Reject inconsistent status/timestamp pairs at construction time
4. Be serializable for storage and the audit trail

DESIGN DECISION: Successors carry an explicit `predecessor_id`.
It is a back-reference only, not ownership: deleting a charge never
cascades to its successor.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS
# =============================================================================

class ChargeStatus(str, Enum):
    """
    Charge settlement status.

    Pending --settle--> Settled, Settled --unsettle--> Pending.
    There is no terminal state; deletion happens outside this machine.
    """
    PENDING = "pending"
    SETTLED = "settled"


class Frequency(str, Enum):
    """How often a recurring charge comes back."""
    NONE = "none"  # One-off charge
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# =============================================================================
# RECURRENCE
# =============================================================================

class Recurrence(BaseModel):
    """
    Recurrence descriptor shared by a charge and all of its successors.

    Anchors are what the operator picked on the entry form:
    - anchor_day_of_week: 0 = Sunday ... 6 = Saturday
    - anchor_day_of_month: 1..31, clamped to short months when projected
    """
    model_config = ConfigDict(frozen=True)

    is_recurring: bool = False
    frequency: Frequency = Frequency.NONE
    anchor_day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    anchor_day_of_month: Optional[int] = Field(default=None, ge=1, le=31)

    @property
    def produces_successor(self) -> bool:
        """Does settling a charge with this recurrence schedule another one?"""
        return self.is_recurring and self.frequency != Frequency.NONE


# =============================================================================
# CHARGE MODELS
# =============================================================================

Money = Annotated[
    Decimal,
    Field(ge=0, decimal_places=2, description="Amount (exact decimal)"),
]


class NewCharge(BaseModel):
    """
    A charge that has not been stored yet.

    The store assigns `id` and `created_at` on insert and returns a Charge.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    client_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Client the charge is collected from"
    )
    reference: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Free text reference (e.g. 'Rent week 4')"
    )
    amount: Money
    due_date: date = Field(
        ...,
        description="Calendar date the payment is expected"
    )
    due_time: Optional[str] = Field(
        default=None,
        pattern=r"^\d{2}:\d{2}$",
        description="Optional HH:MM display hint, never used for date logic"
    )

    status: ChargeStatus = ChargeStatus.PENDING
    settled_at: Optional[datetime] = Field(
        default=None,
        description="When the charge was marked settled"
    )

    recurrence: Recurrence = Field(default_factory=Recurrence)
    predecessor_id: Optional[UUID] = Field(
        default=None,
        description="Charge whose settlement spawned this one, if any"
    )

    @field_validator("due_date", mode="before")
    @classmethod
    def reject_timestamps(cls, v: Any) -> Any:
        """Due dates are calendar dates; a timestamp would drag a timezone in."""
        if isinstance(v, datetime):
            raise ValueError("due_date must be a calendar date, not a timestamp")
        return v

    @model_validator(mode="after")
    def validate_settlement(self) -> "NewCharge":
        """settled_at is present if and only if the charge is settled."""
        if self.status == ChargeStatus.SETTLED and self.settled_at is None:
            raise ValueError("Settled charge requires settled_at")
        if self.status == ChargeStatus.PENDING and self.settled_at is not None:
            raise ValueError("Pending charge cannot have settled_at")
        return self

    @property
    def is_settled(self) -> bool:
        return self.status == ChargeStatus.SETTLED


class Charge(NewCharge):
    """A stored charge."""

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique charge ID, immutable"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the charge was stored"
    )

    @classmethod
    def from_new(
        cls,
        new_charge: NewCharge,
        charge_id: Optional[UUID] = None,
    ) -> "Charge":
        """Give a NewCharge its store identity."""
        return cls(
            id=charge_id or uuid4(),
            **new_charge.model_dump(),
        )

    def with_update(self, update: "ChargeUpdate") -> "Charge":
        """Copy of this charge with the update's fields applied."""
        return self.model_copy(update=update.to_fields())


class ChargeUpdate(BaseModel):
    """
    Targeted partial update keyed by charge id.

    Only explicitly set fields are written, so the update never
    overwrites anything another session changed in the meantime.
    """

    status: Optional[ChargeStatus] = None
    settled_at: Optional[datetime] = None

    @classmethod
    def settle(cls, settled_at: datetime) -> "ChargeUpdate":
        return cls(status=ChargeStatus.SETTLED, settled_at=settled_at)

    @classmethod
    def unsettle(cls) -> "ChargeUpdate":
        return cls(status=ChargeStatus.PENDING, settled_at=None)

    def to_fields(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)
