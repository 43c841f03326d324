"""
Asset registry for the library circulation service.

Owns each circulating copy's identity, type and current status. Status is
derived state: only the circulation engine calls ``set_status``, and only as
part of a transition it is recording in the ledger, hold queue and event log
within the same session.
"""

import logging

from sqlalchemy import func, select

from ..errors import NotFoundError
from ..models.asset import Asset as AssetModel
from ..models.asset import AssetCreate, AssetStatus
from .repository import SessionRepository
from .schema import Asset as AssetDB
from .session import safe_flush, safe_query

logger = logging.getLogger(__name__)


class AssetRegistry(SessionRepository):
    """Read and update circulating assets inside a caller-owned session."""

    def find(self, asset_id: int) -> AssetModel | None:
        """Get an asset by id, or None if it does not exist."""
        row = self._find_row(asset_id)
        return AssetModel.model_validate(row) if row is not None else None

    def get(self, asset_id: int) -> AssetModel:
        """
        Get an asset by id.

        Raises:
            NotFoundError: If the asset does not exist
        """
        return AssetModel.model_validate(self._get_row(asset_id))

    def exists(self, asset_id: int) -> bool:
        count = safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count()).select_from(AssetDB).where(AssetDB.id == asset_id)
            ).scalar(),
            "Failed to check asset existence",
        )
        return bool(count)

    def get_status(self, asset_id: int) -> AssetStatus:
        """
        Get the current lifecycle status of an asset.

        Raises:
            NotFoundError: If the asset does not exist
        """
        return AssetStatus(self._get_row(asset_id).status)

    def set_status(self, asset_id: int, status: AssetStatus) -> None:
        """
        Record a new lifecycle status.

        Reserved for the circulation engine, which calls it while applying a
        transition.

        Raises:
            NotFoundError: If the asset does not exist
        """
        row = self._get_row(asset_id)
        previous = row.status
        row.status = status
        safe_flush(self.session, "set asset status")
        logger.debug("Asset %s status %s -> %s", asset_id, previous, status)

    def add(self, data: AssetCreate) -> AssetModel:
        """
        Register a new asset. New assets are always available.

        Used by the catalog service and the demo seeder.
        """
        row = AssetDB(**data.model_dump(), status=AssetStatus.AVAILABLE)
        self.session.add(row)
        safe_flush(self.session, "create asset")
        self.session.refresh(row)
        logger.info("Registered %s asset %s: %s", row.asset_type, row.id, row.title)
        return AssetModel.model_validate(row)

    def _find_row(self, asset_id: int) -> AssetDB | None:
        return safe_query(
            self.session,
            lambda s: s.get(AssetDB, asset_id),
            f"Failed to get asset {asset_id}",
        )

    def _get_row(self, asset_id: int) -> AssetDB:
        row = self._find_row(asset_id)
        if row is None:
            raise NotFoundError(f"Asset {asset_id} not found")
        return row
