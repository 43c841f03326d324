"""
Library circulation models.

Pydantic models for the entities the circulation core reads and returns:

- Asset: a circulating copy and its lifecycle status
- Circulation: checkout records, hold records and audit events
- Patron: the contact details resolved for a library card
- Views: detail-page aggregates
"""

from .asset import Asset, AssetCreate, AssetStatus, AssetType
from .circulation import (
    CheckoutClosure,
    CheckoutRecord,
    CirculationEvent,
    CirculationEventType,
    HoldPlacement,
    HoldRecord,
    HoldStatus,
)
from .patron import PatronContact
from .views import AssetDetail, AssetHolds, HoldListing

__all__ = [
    "Asset",
    "AssetCreate",
    "AssetDetail",
    "AssetHolds",
    "AssetStatus",
    "AssetType",
    "CheckoutClosure",
    "CheckoutRecord",
    "CirculationEvent",
    "CirculationEventType",
    "HoldListing",
    "HoldPlacement",
    "HoldRecord",
    "HoldStatus",
    "PatronContact",
]
