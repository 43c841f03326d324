"""
Asset models for the library circulation service.

An asset is one circulating copy: a book or a video. Its descriptive fields
belong to the catalog; circulation only cares about its identity, its type
and its status.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AssetType(str, Enum):
    """Kind of circulating asset."""

    BOOK = "book"
    VIDEO = "video"


class AssetStatus(str, Enum):
    """Lifecycle status of an asset.

    Holds are a queue layered on top of these states, not a state of their own.
    """

    AVAILABLE = "available"
    CHECKED_OUT = "checked_out"
    LOST = "lost"


class AssetCreate(BaseModel):
    """Catalog data needed to register a new asset."""

    asset_type: AssetType
    title: str = Field(..., min_length=1, max_length=500)
    author_or_director: str = Field(..., min_length=1, max_length=200)
    year: int = Field(..., ge=1450, le=2100)
    cost: float = Field(default=0.0, ge=0.0)
    image_url: str | None = Field(default=None, max_length=500)
    number_of_copies: int = Field(default=1, ge=1)
    isbn: str | None = Field(
        default=None,
        pattern=r"^\d{10}(\d{3})?$",
        description="ISBN-10 or ISBN-13 without hyphens; books only",
    )
    home_branch: str | None = Field(default=None, max_length=200)

    @model_validator(mode="after")
    def validate_isbn_only_for_books(self) -> "AssetCreate":
        if self.isbn and self.asset_type != AssetType.BOOK:
            raise ValueError("Only books carry an ISBN")
        return self


class Asset(BaseModel):
    """A circulating copy as seen by the circulation core."""

    id: int = Field(..., ge=1)
    asset_type: AssetType
    status: AssetStatus
    title: str
    author_or_director: str
    year: int
    cost: float
    image_url: str | None = None
    number_of_copies: int
    isbn: str | None = None
    home_branch: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": 7,
                "asset_type": "book",
                "status": "available",
                "title": "The Left Hand of Darkness",
                "author_or_director": "Ursula K. Le Guin",
                "year": 1969,
                "cost": 18.99,
                "number_of_copies": 1,
                "isbn": "9780441478125",
                "home_branch": "Central",
            }
        },
    )

    @property
    def is_available(self) -> bool:
        return self.status == AssetStatus.AVAILABLE
