"""
Checkout ledger for the library circulation service.

An append-only record of loans per asset. It answers "who has this now" and
"who had it before", and it enforces the one-copy-one-loan rule: an asset has
at most one open checkout at any time. The rule is checked before inserting
and also backed by a partial unique index, so a racing writer that slipped
past the check still fails with AlreadyCheckedOutError.
"""

import logging
from datetime import datetime

from sqlalchemy import desc, select
from sqlalchemy.exc import IntegrityError

from ..errors import AlreadyCheckedOutError, NotCheckedOutError
from ..models.circulation import CheckoutClosure
from ..models.circulation import CheckoutRecord as CheckoutModel
from .repository import PaginatedResponse, PaginationParams, SessionRepository
from .schema import CheckoutRecord as CheckoutDB
from .session import safe_flush, safe_query

logger = logging.getLogger(__name__)


class CheckoutLedger(SessionRepository):
    """Loan ledger bound to a caller-owned session."""

    def open_checkout(self, asset_id: int, library_card_id: int, at: datetime) -> CheckoutModel:
        """
        Start a loan of ``asset_id`` to ``library_card_id``.

        Raises:
            AlreadyCheckedOutError: If the asset already has an open checkout
        """
        current = self._open_row(asset_id)
        if current is not None:
            raise AlreadyCheckedOutError(
                f"Asset {asset_id} is already checked out to card {current.library_card_id}"
            )

        row = CheckoutDB(asset_id=asset_id, library_card_id=library_card_id, checked_out_at=at)
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError as e:
            raise AlreadyCheckedOutError(f"Asset {asset_id} is already checked out") from e

        logger.debug("Opened checkout %s for asset %s", row.id, asset_id)
        return CheckoutModel.model_validate(row)

    def close_checkout(
        self,
        asset_id: int,
        at: datetime,
        closure: CheckoutClosure = CheckoutClosure.RETURNED,
    ) -> CheckoutModel:
        """
        Close the open checkout of ``asset_id``.

        A returned closure records ``at`` as the return time. Lost and found
        closures only record when the loan was closed.

        Raises:
            NotCheckedOutError: If the asset has no open checkout
        """
        row = self._open_row(asset_id)
        if row is None:
            raise NotCheckedOutError(f"Asset {asset_id} is not checked out")

        row.closed_at = at
        row.closure = closure
        if closure == CheckoutClosure.RETURNED:
            row.returned_at = at

        safe_flush(self.session, "close checkout")
        logger.debug("Closed checkout %s for asset %s as %s", row.id, asset_id, closure.value)
        return CheckoutModel.model_validate(row)

    def open(self, asset_id: int) -> CheckoutModel | None:
        """The open checkout of an asset, if any."""
        row = self._open_row(asset_id)
        return CheckoutModel.model_validate(row) if row is not None else None

    def current_holder(self, asset_id: int) -> int | None:
        """Library card currently holding the asset, derived from the open checkout."""
        row = self._open_row(asset_id)
        return row.library_card_id if row is not None else None

    def latest(self, asset_id: int) -> CheckoutModel | None:
        """Most recent checkout of the asset, open or closed."""
        row = safe_query(
            self.session,
            lambda s: s.execute(self._history_query(asset_id).limit(1)).scalars().first(),
            "Failed to get latest checkout",
        )
        return CheckoutModel.model_validate(row) if row is not None else None

    def history(self, asset_id: int) -> list[CheckoutModel]:
        """All checkouts of the asset, newest first."""
        rows = safe_query(
            self.session,
            lambda s: s.execute(self._history_query(asset_id)).scalars().all(),
            "Failed to get checkout history",
        )
        return [CheckoutModel.model_validate(row) for row in rows]

    def history_page(
        self, asset_id: int, pagination: PaginationParams
    ) -> PaginatedResponse[CheckoutModel]:
        """One page of :meth:`history`."""
        return self._paginate(
            self._history_query(asset_id), pagination, CheckoutModel.model_validate
        )

    def _history_query(self, asset_id: int):
        return (
            select(CheckoutDB)
            .where(CheckoutDB.asset_id == asset_id)
            .order_by(desc(CheckoutDB.checked_out_at), desc(CheckoutDB.id))
        )

    def _open_row(self, asset_id: int) -> CheckoutDB | None:
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(CheckoutDB)
                .where(CheckoutDB.asset_id == asset_id, CheckoutDB.closure.is_(None))
                .order_by(desc(CheckoutDB.checked_out_at), desc(CheckoutDB.id))
            )
            .scalars()
            .first(),
            "Failed to get open checkout",
        )
