"""
SQLAlchemy database schema for the library circulation service.

Tables:
1. assets - circulating copies and their lifecycle status
2. patrons - the account service's library cards (read through the patron directory)
3. checkout_records - append-only loan ledger
4. hold_records - per-asset hold queue; rows are never deleted
5. circulation_events - audit trail replayed to verify asset status

Two partial unique indexes back the circulation invariants at the storage
level: one open checkout per asset, one pending hold per (asset, card).
"""

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from ..models.asset import AssetStatus, AssetType
from ..models.circulation import CheckoutClosure, CirculationEventType, HoldStatus

Base = declarative_base()


def _enum_type(enum_cls: type[enum.Enum]) -> Enum:
    """Store enum values (not member names) so partial index predicates stay readable."""
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        validate_strings=True,
        length=20,
    )


class Asset(Base):
    """
    Assets table - one row per circulating copy.

    Only the circulation engine writes ``status``; the descriptive columns
    belong to the catalog.
    """

    __tablename__ = "assets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_type = Column(_enum_type(AssetType), nullable=False)
    status = Column(_enum_type(AssetStatus), nullable=False, default=AssetStatus.AVAILABLE)
    title = Column(String(500), nullable=False, index=True)
    author_or_director = Column(String(200), nullable=False)
    year = Column(Integer, nullable=False)
    cost = Column(Float, nullable=False, default=0.0)
    image_url = Column(String(500), nullable=True)
    number_of_copies = Column(Integer, nullable=False, default=1)
    isbn = Column(String(13), nullable=True)
    home_branch = Column(String(200), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    checkouts = relationship("CheckoutRecord", back_populates="asset")
    holds = relationship("HoldRecord", back_populates="asset")

    __table_args__ = (
        Index("idx_asset_status", "status"),
        CheckConstraint("cost >= 0", name="check_asset_cost_non_negative"),
        CheckConstraint("number_of_copies > 0", name="check_asset_copies_positive"),
        CheckConstraint("year >= 1450", name="check_asset_year_valid"),
        # Ids are never reused, even after a delete
        {"sqlite_autoincrement": True},
    )


class Patron(Base):
    """
    Patrons table - owned by the account service.

    Circulation records refer to ``library_card_id`` without a foreign key;
    the card is an opaque reference to the core.
    """

    __tablename__ = "patrons"

    library_card_id = Column(Integer, primary_key=True, autoincrement=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)

    created_at = Column(DateTime, nullable=False, default=func.now())

    __table_args__ = (CheckConstraint("library_card_id > 0", name="check_card_id_positive"),)


class CheckoutRecord(Base):
    """
    Checkout records table - the loan ledger.

    A row is open while ``closure`` is NULL.
    """

    __tablename__ = "checkout_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=False)
    library_card_id = Column(Integer, nullable=False)
    checked_out_at = Column(DateTime, nullable=False)
    returned_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    closure = Column(_enum_type(CheckoutClosure), nullable=True)

    asset = relationship("Asset", back_populates="checkouts")

    __table_args__ = (
        Index("idx_checkout_asset", "asset_id", "checked_out_at"),
        Index("idx_checkout_card", "library_card_id"),
        Index(
            "uq_checkout_open_per_asset",
            "asset_id",
            unique=True,
            sqlite_where=text("closure IS NULL"),
            postgresql_where=text("closure IS NULL"),
        ),
        CheckConstraint(
            "(closure IS NULL AND closed_at IS NULL) OR (closure IS NOT NULL AND closed_at IS NOT NULL)",
            name="check_checkout_closure_consistent",
        ),
    )


class HoldRecord(Base):
    """
    Hold records table - the per-asset waiting list.

    Rows move from pending to cancelled or fulfilled and stay for history.
    """

    __tablename__ = "hold_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=False)
    library_card_id = Column(Integer, nullable=False)
    placed_at = Column(DateTime, nullable=False)
    first_hold = Column(Boolean, nullable=False, default=False)
    status = Column(_enum_type(HoldStatus), nullable=False, default=HoldStatus.PENDING)
    resolved_at = Column(DateTime, nullable=True)
    claim_expires_at = Column(DateTime, nullable=True)

    asset = relationship("Asset", back_populates="holds")

    __table_args__ = (
        Index("idx_hold_queue", "asset_id", "status", "placed_at", "id"),
        Index("idx_hold_card", "library_card_id"),
        Index(
            "uq_hold_pending_per_card",
            "asset_id",
            "library_card_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )


class CirculationEvent(Base):
    """Circulation events table - immutable audit trail, one row per transition."""

    __tablename__ = "circulation_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=False)
    event_type = Column(_enum_type(CirculationEventType), nullable=False)
    library_card_id = Column(Integer, nullable=True)
    hold_id = Column(Integer, ForeignKey("hold_records.id"), nullable=True)
    occurred_at = Column(DateTime, nullable=False)

    __table_args__ = (Index("idx_event_asset", "asset_id", "id"),)
