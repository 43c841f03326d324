"""
Circulation models for the library circulation service.

These models represent the movement of an asset between patrons:
- CheckoutRecord: a loan of an asset to a library card, closed on return
  or when the asset is declared lost
- HoldRecord: a patron's place in an asset's waiting list
- CirculationEvent: one line of the append-only audit trail

They are read-only snapshots of the database rows; state changes go through
the circulation engine.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CheckoutClosure(str, Enum):
    """How a checkout record was closed."""

    RETURNED = "returned"
    LOST = "lost"
    FOUND = "found"


class HoldStatus(str, Enum):
    """Fulfillment state of a hold."""

    PENDING = "pending"
    CANCELLED = "cancelled"
    FULFILLED = "fulfilled"


class CirculationEventType(str, Enum):
    """Kinds of entries in the circulation audit trail."""

    CHECKED_OUT = "checked_out"
    CHECKED_IN = "checked_in"
    MARKED_LOST = "marked_lost"
    MARKED_FOUND = "marked_found"
    HOLD_PLACED = "hold_placed"
    HOLD_CANCELLED = "hold_cancelled"
    HOLD_FULFILLED = "hold_fulfilled"


class CheckoutRecord(BaseModel):
    """
    A loan of one asset to one library card.

    A record is open until it has a closure. Returning the asset sets both
    ``returned_at`` and ``closed_at``; declaring it lost sets only
    ``closed_at``.
    """

    id: int = Field(..., ge=1)
    asset_id: int = Field(..., ge=1)
    library_card_id: int = Field(..., ge=1)
    checked_out_at: datetime
    returned_at: datetime | None = None
    closed_at: datetime | None = None
    closure: CheckoutClosure | None = None

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": 12,
                "asset_id": 7,
                "library_card_id": 1001,
                "checked_out_at": "2024-03-01T10:30:00",
                "returned_at": None,
                "closed_at": None,
                "closure": None,
            }
        },
    )

    @model_validator(mode="after")
    def validate_closure(self) -> "CheckoutRecord":
        """
        Closure and closed_at travel together.

        Timestamps are not ordered against each other: they come from the
        local wall clock, which can step back (DST, NTP), and a record read
        back from the ledger must always load.
        """
        if (self.closure is None) != (self.closed_at is None):
            raise ValueError("closed_at and closure must be set together")
        return self

    @property
    def is_open(self) -> bool:
        return self.closure is None


class HoldRecord(BaseModel):
    """
    A patron's request to borrow an asset next.

    Holds are ordered by ``placed_at`` and then ``id``. ``first_hold`` marks a
    hold placed while no other hold was pending; only those holders get the
    claim-window email, and ``claim_expires_at`` records when that window ends.
    """

    id: int = Field(..., ge=1)
    asset_id: int = Field(..., ge=1)
    library_card_id: int = Field(..., ge=1)
    placed_at: datetime
    first_hold: bool = False
    status: HoldStatus = HoldStatus.PENDING
    resolved_at: datetime | None = None
    claim_expires_at: datetime | None = None

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": 3,
                "asset_id": 7,
                "library_card_id": 1002,
                "placed_at": "2024-03-02T09:00:00",
                "first_hold": True,
                "status": "pending",
                "claim_expires_at": "2024-03-03T09:00:00",
            }
        },
    )

    @property
    def is_pending(self) -> bool:
        return self.status == HoldStatus.PENDING


class HoldPlacement(BaseModel):
    """Outcome of placing a hold."""

    hold: HoldRecord
    is_first: bool


class CirculationEvent(BaseModel):
    """One entry of the circulation audit trail."""

    id: int
    asset_id: int
    event_type: CirculationEventType
    library_card_id: int | None = None
    hold_id: int | None = None
    occurred_at: datetime

    model_config = ConfigDict(from_attributes=True)
