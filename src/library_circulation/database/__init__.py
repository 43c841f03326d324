"""
Database package for the library circulation service.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- The circulation data components, each bound to a caller-owned session:
  asset registry, checkout ledger, hold queue and event log
- The patron directory contract and its database implementation
"""

from .asset_registry import AssetRegistry
from .checkout_ledger import CheckoutLedger
from .event_log import CirculationEventLog
from .hold_queue import HoldQueue
from .patron_directory import DatabasePatronDirectory, PatronDirectory
from .repository import PaginatedResponse, PaginationParams, SessionRepository
from .schema import Asset, Base, CheckoutRecord, CirculationEvent, HoldRecord, Patron
from .session import (
    DatabaseManager,
    get_db_manager,
    reset_db_manager,
    safe_flush,
    safe_query,
    session_scope,
)

__all__ = [
    "Asset",
    "AssetRegistry",
    "Base",
    "CheckoutLedger",
    "CheckoutRecord",
    "CirculationEvent",
    "CirculationEventLog",
    "DatabaseManager",
    "DatabasePatronDirectory",
    "HoldQueue",
    "HoldRecord",
    "PaginatedResponse",
    "PaginationParams",
    "Patron",
    "PatronDirectory",
    "SessionRepository",
    "get_db_manager",
    "reset_db_manager",
    "safe_flush",
    "safe_query",
    "session_scope",
]
