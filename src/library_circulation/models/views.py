"""Read models assembled for the asset detail and hold pages."""

from datetime import datetime

from pydantic import BaseModel, Field

from .asset import Asset
from .circulation import CheckoutRecord


class HoldListing(BaseModel):
    """A pending hold as shown to staff: who is waiting and since when."""

    hold_id: int
    library_card_id: int
    patron_name: str | None = Field(
        None, description="Display name, or None when the account service does not know the card"
    )
    placed_at: datetime
    position: int = Field(..., ge=1, description="1-based position in the hold queue")


class AssetDetail(BaseModel):
    """Everything the asset detail page shows about circulation."""

    asset: Asset
    is_checked_out: bool
    latest_checkout: CheckoutRecord | None = None
    current_patron_id: int | None = None
    current_patron_name: str | None = None
    checkout_history: list[CheckoutRecord] = Field(default_factory=list)
    current_holds: list[HoldListing] = Field(default_factory=list)

    @property
    def hold_count(self) -> int:
        return len(self.current_holds)


class AssetHolds(BaseModel):
    """The hold page: whether the asset is on loan and who is waiting for it."""

    asset_id: int
    is_checked_out: bool
    holds: list[HoldListing] = Field(default_factory=list)

    @property
    def hold_count(self) -> int:
        return len(self.holds)
