"""
Circulation service: the command and query surface used by outer layers.

Commands delegate to the circulation engine. Queries take no lock. Each one
runs in a single read transaction and sees one committed snapshot, so a page
may show the asset just before or just after a concurrent transition, never
halfway.
"""

import logging
from datetime import datetime

from ..config import get_config
from ..database.asset_registry import AssetRegistry
from ..database.checkout_ledger import CheckoutLedger
from ..database.hold_queue import HoldQueue
from ..database.patron_directory import DatabasePatronDirectory, PatronDirectory
from ..database.repository import PaginatedResponse, PaginationParams
from ..database.session import DatabaseManager, get_db_manager
from ..errors import DuplicateHoldError, NotFoundError
from ..models.asset import AssetStatus
from ..models.circulation import CheckoutRecord, HoldRecord
from ..models.views import AssetDetail, AssetHolds, HoldListing
from ..notifications import build_gateway
from .engine import CirculationEngine
from .locks import AssetLockRegistry

logger = logging.getLogger(__name__)


class CirculationService:
    """Checkout, return, hold and lost/found operations plus their read views."""

    def __init__(
        self,
        engine: CirculationEngine,
        db_manager: DatabaseManager | None = None,
        patrons: PatronDirectory | None = None,
    ):
        self.engine = engine
        self.db_manager = db_manager or engine.db_manager
        self.patrons = patrons or engine.patrons

    # === Commands ===

    def check_out_item(self, asset_id: int, library_card_id: int) -> CheckoutRecord:
        return self.engine.check_out(asset_id, library_card_id)

    def check_in_item(self, asset_id: int) -> CheckoutRecord:
        return self.engine.check_in(asset_id)

    def place_hold(self, asset_id: int, library_card_id: int) -> bool:
        """
        Place a hold for the card.

        Returns:
            True if the hold was placed, False if the card already had a
            pending hold on the asset
        """
        try:
            self.engine.place_hold(asset_id, library_card_id)
        except DuplicateHoldError as e:
            logger.info("Hold not placed: %s", e)
            return False
        return True

    def cancel_hold(self, hold_id: int) -> HoldRecord:
        return self.engine.cancel_hold(hold_id)

    def mark_lost(self, asset_id: int) -> bool:
        return self.engine.mark_lost(asset_id)

    def mark_found(self, asset_id: int) -> None:
        self.engine.mark_found(asset_id)

    # === Queries ===

    def get_status(self, asset_id: int) -> AssetStatus:
        with self.db_manager.session_scope() as session:
            return AssetRegistry(session).get_status(asset_id)

    def is_checked_out(self, asset_id: int) -> bool:
        return self.get_status(asset_id) == AssetStatus.CHECKED_OUT

    def get_current_checkout_patron(self, asset_id: int) -> int | None:
        """Library card holding the asset, or None when it is not on loan."""
        with self.db_manager.session_scope() as session:
            self._require_asset(session, asset_id)
            return CheckoutLedger(session).current_holder(asset_id)

    def get_latest_checkout(self, asset_id: int) -> CheckoutRecord | None:
        with self.db_manager.session_scope() as session:
            self._require_asset(session, asset_id)
            return CheckoutLedger(session).latest(asset_id)

    def get_checkout_history(
        self, asset_id: int, pagination: PaginationParams | None = None
    ) -> list[CheckoutRecord] | PaginatedResponse[CheckoutRecord]:
        """
        Checkouts of the asset, newest first.

        Returns the whole history as a list, or one page of it when
        ``pagination`` is given.
        """
        with self.db_manager.session_scope() as session:
            self._require_asset(session, asset_id)
            ledger = CheckoutLedger(session)
            if pagination is not None:
                return ledger.history_page(asset_id, pagination)
            return ledger.history(asset_id)

    def get_current_holds(self, asset_id: int) -> list[HoldRecord]:
        """Pending holds in queue order."""
        with self.db_manager.session_scope() as session:
            self._require_asset(session, asset_id)
            return HoldQueue(session).pending(asset_id)

    def get_pending_hold_count(self, asset_id: int) -> int:
        with self.db_manager.session_scope() as session:
            self._require_asset(session, asset_id)
            return HoldQueue(session).pending_count(asset_id)

    def get_next_pending_hold(self, asset_id: int) -> HoldRecord | None:
        with self.db_manager.session_scope() as session:
            self._require_asset(session, asset_id)
            return HoldQueue(session).next_pending(asset_id)

    def get_current_hold_patron_name(self, hold_id: int) -> str | None:
        """Display name of the hold's patron, or None if the card is unknown."""
        return self.patrons.display_name(self._get_hold(hold_id).library_card_id)

    def get_current_hold_placed(self, hold_id: int) -> datetime:
        return self._get_hold(hold_id).placed_at

    def get_asset_detail(self, asset_id: int) -> AssetDetail:
        """
        Everything the asset detail page shows.

        The asset, its loans and its holds are read in one transaction, so the
        status, the current patron and the queue always describe the same
        moment even while a transition commits.
        """
        with self.db_manager.session_scope() as session:
            asset = AssetRegistry(session).get(asset_id)
            ledger = CheckoutLedger(session)
            latest = ledger.latest(asset_id)
            current_card = ledger.current_holder(asset_id)
            history = ledger.history(asset_id)
            pending = HoldQueue(session).pending(asset_id)

        holds = self._hold_listings(pending)
        return AssetDetail(
            asset=asset,
            is_checked_out=asset.status == AssetStatus.CHECKED_OUT,
            latest_checkout=latest,
            current_patron_id=current_card,
            current_patron_name=(
                self.patrons.display_name(current_card) if current_card is not None else None
            ),
            checkout_history=history,
            current_holds=holds,
        )

    def get_asset_holds(self, asset_id: int) -> AssetHolds:
        """The hold page: loan status and the pending queue, without history."""
        with self.db_manager.session_scope() as session:
            status = AssetRegistry(session).get_status(asset_id)
            pending = HoldQueue(session).pending(asset_id)

        return AssetHolds(
            asset_id=asset_id,
            is_checked_out=status == AssetStatus.CHECKED_OUT,
            holds=self._hold_listings(pending),
        )

    def _hold_listings(self, pending: list[HoldRecord]) -> list[HoldListing]:
        # Patron names come from the directory's own sessions
        return [
            HoldListing(
                hold_id=hold.id,
                library_card_id=hold.library_card_id,
                patron_name=self.patrons.display_name(hold.library_card_id),
                placed_at=hold.placed_at,
                position=position,
            )
            for position, hold in enumerate(pending, start=1)
        ]

    def _get_hold(self, hold_id: int) -> HoldRecord:
        with self.db_manager.session_scope() as session:
            return HoldQueue(session).get(hold_id)

    @staticmethod
    def _require_asset(session, asset_id: int) -> None:
        if not AssetRegistry(session).exists(asset_id):
            raise NotFoundError(f"Asset {asset_id} not found")

    def close(self) -> None:
        """Stop notification delivery, letting queued messages go out first."""
        self.engine.gateway.close()


_service: CirculationService | None = None


def get_circulation_service() -> CirculationService:
    """
    Get the global circulation service, built from the global configuration
    and database manager on first use.
    """
    global _service  # noqa: PLW0603 - Singleton pattern for the service

    if _service is None:
        config = get_config()
        db_manager = get_db_manager()
        patrons = DatabasePatronDirectory(db_manager)
        engine = CirculationEngine(
            db_manager,
            patrons,
            build_gateway(config),
            locks=AssetLockRegistry(config.lock_timeout_seconds),
            claim_window_hours=config.claim_window_hours,
        )
        _service = CirculationService(engine)
        logger.info("Circulation service ready (claim window %sh)", config.claim_window_hours)

    return _service


def reset_circulation_service() -> None:
    """Close and forget the global circulation service (useful for testing)."""
    global _service  # noqa: PLW0603

    if _service is not None:
        _service.close()
    _service = None
