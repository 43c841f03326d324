"""
Hold queue for the library circulation service.

Each asset has a FIFO of hold requests ordered by placement time, with the
hold id breaking ties. A hold may be placed whatever the asset's status, but
a library card can have only one pending hold per asset.

``place_hold`` reports whether the new hold is the only pending one. That
flag decides who gets the "come claim it" email, so the count and the insert
must happen in one transaction while the engine holds the asset's lock.
"""

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateHoldError, NotFoundError, NotPendingError
from ..models.circulation import HoldPlacement, HoldStatus
from ..models.circulation import HoldRecord as HoldModel
from .repository import SessionRepository
from .schema import HoldRecord as HoldDB
from .session import safe_flush, safe_query

logger = logging.getLogger(__name__)


class HoldQueue(SessionRepository):
    """Per-asset hold queue bound to a caller-owned session."""

    def place_hold(
        self,
        asset_id: int,
        library_card_id: int,
        at: datetime,
        claim_expires_at: datetime | None = None,
    ) -> HoldPlacement:
        """
        Add a pending hold for ``library_card_id`` to the back of the queue.

        Args:
            asset_id: Asset being held
            library_card_id: Card placing the hold
            at: Placement time
            claim_expires_at: End of the claim window, recorded only when the
                hold turns out to be first

        Returns:
            The new hold and whether it is the only pending hold

        Raises:
            DuplicateHoldError: If the card already has a pending hold on the asset
        """
        if self._pending_row_for(asset_id, library_card_id) is not None:
            raise DuplicateHoldError(
                f"Card {library_card_id} already has a pending hold on asset {asset_id}"
            )

        is_first = self.pending_count(asset_id) == 0

        row = HoldDB(
            asset_id=asset_id,
            library_card_id=library_card_id,
            placed_at=at,
            first_hold=is_first,
            status=HoldStatus.PENDING,
            claim_expires_at=claim_expires_at if is_first else None,
        )
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError as e:
            raise DuplicateHoldError(
                f"Card {library_card_id} already has a pending hold on asset {asset_id}"
            ) from e

        logger.debug(
            "Placed hold %s on asset %s for card %s (first=%s)",
            row.id,
            asset_id,
            library_card_id,
            is_first,
        )
        return HoldPlacement(hold=HoldModel.model_validate(row), is_first=is_first)

    def cancel_hold(self, hold_id: int, at: datetime) -> HoldModel:
        """
        Cancel a pending hold.

        Raises:
            NotFoundError: If the hold does not exist
            NotPendingError: If the hold was already fulfilled or cancelled
        """
        return self._resolve(hold_id, HoldStatus.CANCELLED, at)

    def fulfill(self, hold_id: int, at: datetime) -> HoldModel:
        """
        Mark a pending hold fulfilled; called when its holder checks the asset out.

        Raises:
            NotFoundError: If the hold does not exist
            NotPendingError: If the hold was already fulfilled or cancelled
        """
        return self._resolve(hold_id, HoldStatus.FULFILLED, at)

    def get(self, hold_id: int) -> HoldModel:
        """
        Get a hold by id, whatever its status.

        Raises:
            NotFoundError: If the hold does not exist
        """
        return HoldModel.model_validate(self._get_row(hold_id))

    def next_pending(self, asset_id: int) -> HoldModel | None:
        """The earliest pending hold: the rightful claimant when the asset frees up."""
        row = safe_query(
            self.session,
            lambda s: s.execute(self._pending_query(asset_id).limit(1)).scalars().first(),
            "Failed to get next pending hold",
        )
        return HoldModel.model_validate(row) if row is not None else None

    def pending(self, asset_id: int) -> list[HoldModel]:
        """All pending holds on the asset in queue order."""
        rows = safe_query(
            self.session,
            lambda s: s.execute(self._pending_query(asset_id)).scalars().all(),
            "Failed to get pending holds",
        )
        return [HoldModel.model_validate(row) for row in rows]

    def pending_count(self, asset_id: int) -> int:
        count = safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count())
                .select_from(HoldDB)
                .where(HoldDB.asset_id == asset_id, HoldDB.status == HoldStatus.PENDING)
            ).scalar(),
            "Failed to count pending holds",
        )
        return count or 0

    def pending_for(self, asset_id: int, library_card_id: int) -> HoldModel | None:
        """The card's pending hold on the asset, if any."""
        row = self._pending_row_for(asset_id, library_card_id)
        return HoldModel.model_validate(row) if row is not None else None

    def position(self, hold_id: int) -> int:
        """
        1-based queue position of a pending hold.

        Raises:
            NotFoundError: If the hold does not exist
            NotPendingError: If the hold is no longer in the queue
        """
        row = self._get_row(hold_id)
        if row.status != HoldStatus.PENDING:
            raise NotPendingError(f"Hold {hold_id} is {row.status.value}, not pending")

        ahead = safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count())
                .select_from(HoldDB)
                .where(
                    HoldDB.asset_id == row.asset_id,
                    HoldDB.status == HoldStatus.PENDING,
                    (HoldDB.placed_at < row.placed_at)
                    | ((HoldDB.placed_at == row.placed_at) & (HoldDB.id < row.id)),
                )
            ).scalar(),
            "Failed to compute hold position",
        )
        return (ahead or 0) + 1

    def _resolve(self, hold_id: int, status: HoldStatus, at: datetime) -> HoldModel:
        row = self._get_row(hold_id)
        if row.status != HoldStatus.PENDING:
            raise NotPendingError(f"Hold {hold_id} is {row.status.value}, not pending")

        row.status = status
        row.resolved_at = at
        safe_flush(self.session, f"mark hold {status.value}")
        logger.debug("Hold %s on asset %s is now %s", hold_id, row.asset_id, status.value)
        return HoldModel.model_validate(row)

    def _pending_query(self, asset_id: int):
        return (
            select(HoldDB)
            .where(HoldDB.asset_id == asset_id, HoldDB.status == HoldStatus.PENDING)
            .order_by(HoldDB.placed_at, HoldDB.id)
        )

    def _pending_row_for(self, asset_id: int, library_card_id: int) -> HoldDB | None:
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(HoldDB).where(
                    HoldDB.asset_id == asset_id,
                    HoldDB.library_card_id == library_card_id,
                    HoldDB.status == HoldStatus.PENDING,
                )
            ).scalar_one_or_none(),
            "Failed to check existing hold",
        )

    def _get_row(self, hold_id: int) -> HoldDB:
        row = safe_query(
            self.session,
            lambda s: s.get(HoldDB, hold_id),
            f"Failed to get hold {hold_id}",
        )
        if row is None:
            raise NotFoundError(f"Hold {hold_id} not found")
        return row
