"""
Schedule Models

Read-side models: what the weekly calendar shows and what each
scheduler operation reports back to the caller.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, computed_field

from charge_scheduler.models.charge import Charge


ZERO = Decimal("0.00")


class LedgerSummary(BaseModel):
    """
    Totals for a set of charges.

    INVARIANT: total == settled_total + outstanding_total, exactly.
    The total is derived rather than stored so it cannot drift.
    """

    settled_total: Decimal = ZERO
    outstanding_total: Decimal = ZERO
    settled_count: int = Field(default=0, ge=0)
    pending_count: int = Field(default=0, ge=0)

    @computed_field
    @property
    def total(self) -> Decimal:
        return self.settled_total + self.outstanding_total

    @computed_field
    @property
    def charge_count(self) -> int:
        return self.settled_count + self.pending_count


class ScheduleView(BaseModel):
    """
    The operator's current 7-day view.

    `charges` mirrors the store after the last reconciliation, possibly
    with an optimistic change applied on top while a write is in flight.
    `stale` is set when the store could not be re-read after a failure.
    """

    reference_date: date
    days: list[date]
    charges: list[Charge] = Field(default_factory=list)
    stale: bool = False

    @property
    def start(self) -> date:
        return self.days[0]

    @property
    def end(self) -> date:
        return self.days[-1]

    def find(self, charge_id: UUID) -> Optional[Charge]:
        for charge in self.charges:
            if charge.id == charge_id:
                return charge
        return None


class ReconcileResult(BaseModel):
    """
    Outcome of reconciling the local view with a store snapshot.

    The snapshot always wins; the id lists only describe how far the
    local view had drifted.
    """

    charges: list[Charge] = Field(default_factory=list)
    added_ids: list[UUID] = Field(default_factory=list)
    removed_ids: list[UUID] = Field(default_factory=list)
    changed_ids: list[UUID] = Field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        """Did the local view already match the store?"""
        return not (self.added_ids or self.removed_ids or self.changed_ids)


class SettleOutcome(BaseModel):
    """Result of a settle call."""

    charge: Charge
    successor: Optional[Charge] = None
    changed: bool = Field(
        ...,
        description="False when the charge was already settled (no-op)"
    )


class UnsettleOutcome(BaseModel):
    """
    Result of an unsettle call.

    `pending_successors` lists successors that are still outstanding
    after the call; under the retract policy they have been deleted and
    appear in `retracted_ids` instead.
    """

    charge: Charge
    changed: bool
    pending_successors: list[Charge] = Field(default_factory=list)
    retracted_ids: list[UUID] = Field(default_factory=list)
