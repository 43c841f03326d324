"""
Circulation engine.

The only writer of asset status. Every mutating operation follows the same
path:

1. Resolve the library card through the patron directory (NotFoundError)
2. Take the asset's lock (ConcurrencyConflictError on timeout)
3. Open one session, read status and the hold queue, validate
4. Update registry, ledger, hold queue and event log, then commit
5. After the commit, hand any notification to the gateway

A failure at step 3 or 4 rolls back everything the operation wrote. Step 5
never raises.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from ..database.asset_registry import AssetRegistry
from ..database.checkout_ledger import CheckoutLedger
from ..database.event_log import CirculationEventLog
from ..database.hold_queue import HoldQueue
from ..database.patron_directory import PatronDirectory
from ..database.session import DatabaseManager
from ..errors import (
    AlreadyCheckedOutError,
    NotCheckedOutError,
    NotFoundError,
    NotLostError,
    StatusMismatchError,
)
from ..models.asset import AssetStatus
from ..models.circulation import (
    CheckoutClosure,
    CheckoutRecord,
    CirculationEventType,
    HoldPlacement,
    HoldRecord,
)
from ..models.patron import PatronContact
from ..notifications.gateway import Notification, NotificationGateway
from ..notifications.messages import hold_claim_notification
from ..observability.context import trace_circulation
from ..observability.metrics import record_notification
from .locks import AssetLockRegistry

logger = logging.getLogger(__name__)


class CirculationEngine:
    """Validates and applies circulation transitions."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        patrons: PatronDirectory,
        gateway: NotificationGateway,
        locks: AssetLockRegistry | None = None,
        clock: Callable[[], datetime] = datetime.now,
        claim_window_hours: int = 24,
    ):
        self.db_manager = db_manager
        self.patrons = patrons
        self.gateway = gateway
        self.locks = locks or AssetLockRegistry()
        self.clock = clock
        self.claim_window_hours = claim_window_hours

    def check_out(self, asset_id: int, library_card_id: int) -> CheckoutRecord:
        """
        Lend an asset to a library card.

        Allowed from Available and from Lost. If the card was waiting in the
        asset's hold queue, that hold is fulfilled in the same transaction.

        Raises:
            NotFoundError: Unknown asset or card
            AlreadyCheckedOutError: The asset is already on loan
        """
        with trace_circulation("check_out", asset_id, library_card_id=library_card_id):
            self._require_patron(library_card_id)
            with self.locks.hold(asset_id), self.db_manager.session_scope(write=True) as session:
                registry = AssetRegistry(session)
                if registry.get_status(asset_id) == AssetStatus.CHECKED_OUT:
                    raise AlreadyCheckedOutError(f"Asset {asset_id} is already checked out")

                now = self.clock()
                record = CheckoutLedger(session).open_checkout(asset_id, library_card_id, now)
                registry.set_status(asset_id, AssetStatus.CHECKED_OUT)

                events = CirculationEventLog(session)
                events.record(
                    asset_id, CirculationEventType.CHECKED_OUT, now, library_card_id=library_card_id
                )

                holds = HoldQueue(session)
                waiting = holds.pending_for(asset_id, library_card_id)
                if waiting is not None:
                    holds.fulfill(waiting.id, now)
                    events.record(
                        asset_id,
                        CirculationEventType.HOLD_FULFILLED,
                        now,
                        library_card_id=library_card_id,
                        hold_id=waiting.id,
                    )

        logger.info("Asset %s checked out to card %s", asset_id, library_card_id)
        return record

    def check_in(self, asset_id: int) -> CheckoutRecord:
        """
        Return a checked-out asset. The next holder is not checked out automatically.

        Raises:
            NotFoundError: Unknown asset
            NotCheckedOutError: The asset is not on loan
        """
        with trace_circulation("check_in", asset_id):
            with self.locks.hold(asset_id), self.db_manager.session_scope(write=True) as session:
                registry = AssetRegistry(session)
                if registry.get_status(asset_id) != AssetStatus.CHECKED_OUT:
                    raise NotCheckedOutError(f"Asset {asset_id} is not checked out")

                now = self.clock()
                record = CheckoutLedger(session).close_checkout(asset_id, now)
                registry.set_status(asset_id, AssetStatus.AVAILABLE)
                CirculationEventLog(session).record(
                    asset_id,
                    CirculationEventType.CHECKED_IN,
                    now,
                    library_card_id=record.library_card_id,
                )

        logger.info("Asset %s returned by card %s", asset_id, record.library_card_id)
        return record

    def place_hold(self, asset_id: int, library_card_id: int) -> HoldPlacement:
        """
        Put a library card in the asset's hold queue.

        Holds can be placed whatever the asset's status. When the new hold is
        the only pending one, its holder is emailed to come and claim the item
        within the claim window.

        Raises:
            NotFoundError: Unknown asset or card
            DuplicateHoldError: The card already has a pending hold on the asset
        """
        with trace_circulation("place_hold", asset_id, library_card_id=library_card_id):
            contact = self._require_patron(library_card_id)
            with self.locks.hold(asset_id), self.db_manager.session_scope(write=True) as session:
                asset = AssetRegistry(session).get(asset_id)

                now = self.clock()
                placement = HoldQueue(session).place_hold(
                    asset_id,
                    library_card_id,
                    now,
                    claim_expires_at=now + timedelta(hours=self.claim_window_hours),
                )
                CirculationEventLog(session).record(
                    asset_id,
                    CirculationEventType.HOLD_PLACED,
                    now,
                    library_card_id=library_card_id,
                    hold_id=placement.hold.id,
                )

        logger.info(
            "Card %s placed hold %s on asset %s (first=%s)",
            library_card_id,
            placement.hold.id,
            asset_id,
            placement.is_first,
        )
        if placement.is_first:
            self._notify(
                hold_claim_notification(contact, asset.title, self.claim_window_hours),
                kind="hold_claim",
            )
        return placement

    def cancel_hold(self, hold_id: int) -> HoldRecord:
        """
        Withdraw a pending hold.

        Raises:
            NotFoundError: Unknown hold
            NotPendingError: The hold was already fulfilled or cancelled
        """
        with self.db_manager.session_scope() as session:
            asset_id = HoldQueue(session).get(hold_id).asset_id

        with trace_circulation("cancel_hold", asset_id, hold_id=hold_id):
            with self.locks.hold(asset_id), self.db_manager.session_scope(write=True) as session:
                now = self.clock()
                hold = HoldQueue(session).cancel_hold(hold_id, now)
                CirculationEventLog(session).record(
                    asset_id,
                    CirculationEventType.HOLD_CANCELLED,
                    now,
                    library_card_id=hold.library_card_id,
                    hold_id=hold_id,
                )

        logger.info("Hold %s on asset %s cancelled", hold_id, asset_id)
        return hold

    def mark_lost(self, asset_id: int) -> bool:
        """
        Record that an asset has gone missing.

        Closes the open checkout, if any, without a return time. Pending holds
        stay where they are.

        Returns:
            False if the asset was already lost, True otherwise

        Raises:
            NotFoundError: Unknown asset
        """
        with trace_circulation("mark_lost", asset_id):
            with self.locks.hold(asset_id), self.db_manager.session_scope(write=True) as session:
                registry = AssetRegistry(session)
                status = registry.get_status(asset_id)
                if status == AssetStatus.LOST:
                    logger.info("Asset %s is already lost", asset_id)
                    return False

                now = self.clock()
                card_id = None
                if status == AssetStatus.CHECKED_OUT:
                    closed = CheckoutLedger(session).close_checkout(
                        asset_id, now, closure=CheckoutClosure.LOST
                    )
                    card_id = closed.library_card_id
                registry.set_status(asset_id, AssetStatus.LOST)
                CirculationEventLog(session).record(
                    asset_id, CirculationEventType.MARKED_LOST, now, library_card_id=card_id
                )

        logger.info("Asset %s marked lost", asset_id)
        return True

    def mark_found(self, asset_id: int) -> None:
        """
        Bring a lost asset back into circulation. The loan that was open when
        it went missing stays closed.

        Raises:
            NotFoundError: Unknown asset
            NotLostError: The asset is not lost
        """
        with trace_circulation("mark_found", asset_id):
            with self.locks.hold(asset_id), self.db_manager.session_scope(write=True) as session:
                registry = AssetRegistry(session)
                if registry.get_status(asset_id) != AssetStatus.LOST:
                    raise NotLostError(f"Asset {asset_id} is not lost")

                now = self.clock()
                ledger = CheckoutLedger(session)
                if ledger.open(asset_id) is not None:
                    ledger.close_checkout(asset_id, now, closure=CheckoutClosure.FOUND)
                registry.set_status(asset_id, AssetStatus.AVAILABLE)
                CirculationEventLog(session).record(
                    asset_id, CirculationEventType.MARKED_FOUND, now
                )

        logger.info("Asset %s found", asset_id)

    def verify_status(self, asset_id: int) -> AssetStatus:
        """
        Check the stored status against the asset's history.

        Takes no lock. The status, the event log and the ledger are read in
        one transaction, so a transition committing meanwhile is either fully
        visible or not at all.

        Returns:
            The stored status when it agrees with the event log and ledger

        Raises:
            NotFoundError: Unknown asset
            StatusMismatchError: Stored status disagrees with history
        """
        with self.db_manager.session_scope() as session:
            stored = AssetRegistry(session).get_status(asset_id)
            replayed = CirculationEventLog(session).replay_status(asset_id)
            has_open_checkout = CheckoutLedger(session).open(asset_id) is not None

        if stored != replayed:
            raise StatusMismatchError(
                f"Asset {asset_id} is stored as {stored.value} but its history says {replayed.value}"
            )
        if has_open_checkout != (stored == AssetStatus.CHECKED_OUT):
            raise StatusMismatchError(
                f"Asset {asset_id} is stored as {stored.value} but "
                f"{'has' if has_open_checkout else 'has no'} open checkout"
            )
        return stored

    def _require_patron(self, library_card_id: int) -> PatronContact:
        contact = self.patrons.get_contact(library_card_id)
        if contact is None:
            raise NotFoundError(f"Library card {library_card_id} not found")
        return contact

    def _notify(self, notification: Notification, kind: str) -> None:
        try:
            self.gateway.enqueue(notification)
        except Exception:
            # The transition is already committed
            logger.exception(
                "Could not enqueue '%s' for %s",
                notification.subject,
                notification.recipient_address,
            )
            return
        record_notification(kind)
