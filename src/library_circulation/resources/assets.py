"""Asset Resources - Circulation Views

Read-only views of an asset's circulation state. Each read is one database
transaction over a single committed snapshot; no per-asset lock is taken.

Resources:
- library://assets/{asset_id} - Asset detail: status, current loan, history, holds
- library://assets/{asset_id}/history - Checkout history, newest first
- library://assets/{asset_id}/holds - Pending holds in queue order
"""

import asyncio
import logging
from typing import Any

from fastmcp.exceptions import ResourceError
from pydantic import BaseModel, Field

from ..circulation import get_circulation_service
from ..errors import NotFoundError
from ..models.views import HoldListing

logger = logging.getLogger(__name__)


class AssetHistoryResponse(BaseModel):
    """Response schema for the checkout history resource."""

    asset_id: int
    is_checked_out: bool
    total_checkouts: int = Field(..., description="Number of checkouts ever recorded")
    checkouts: list[dict[str, Any]] = Field(..., description="Checkout records, newest first")


class AssetHoldsResponse(BaseModel):
    """Response schema for the hold queue resource."""

    asset_id: int
    is_checked_out: bool
    hold_count: int
    holds: list[HoldListing]


def _parse_asset_id(asset_id: str) -> int:
    try:
        value = int(asset_id)
    except (TypeError, ValueError) as e:
        raise ResourceError(f"Invalid asset id: {asset_id}") from e
    if value < 1:
        raise ResourceError(f"Invalid asset id: {asset_id}")
    return value


# =============================================================================
# RESOURCE HANDLERS
# =============================================================================


async def get_asset_detail_handler(asset_id: str) -> dict[str, Any]:
    """Handle requests for an asset's detail view.

    Args:
        asset_id: The asset id from the URI template

    Returns:
        The asset with its status, latest and current checkout, full history
        and pending holds with patron names

    Raises:
        ResourceError: If the asset is not found or the read fails
    """
    asset_key = _parse_asset_id(asset_id)
    logger.debug("MCP Resource Request - assets/%s", asset_key)
    try:
        detail = await asyncio.to_thread(get_circulation_service().get_asset_detail, asset_key)
        data = detail.model_dump(mode="json")
        data["hold_count"] = detail.hold_count
        return data
    except NotFoundError as e:
        raise ResourceError(str(e)) from e
    except Exception as e:
        logger.exception("Error in assets/{id} resource")
        raise ResourceError(f"Failed to retrieve asset: {e!s}") from e


async def get_asset_history_handler(asset_id: str) -> dict[str, Any]:
    """Handle requests for an asset's checkout history.

    Raises:
        ResourceError: If the asset is not found or the read fails
    """
    asset_key = _parse_asset_id(asset_id)
    logger.debug("MCP Resource Request - assets/%s/history", asset_key)
    try:
        service = get_circulation_service()
        history = await asyncio.to_thread(service.get_checkout_history, asset_key)
        response = AssetHistoryResponse(
            asset_id=asset_key,
            is_checked_out=any(record.is_open for record in history),
            total_checkouts=len(history),
            checkouts=[record.model_dump(mode="json") for record in history],
        )
        return response.model_dump(mode="json")
    except NotFoundError as e:
        raise ResourceError(str(e)) from e
    except Exception as e:
        logger.exception("Error in assets/{id}/history resource")
        raise ResourceError(f"Failed to retrieve checkout history: {e!s}") from e


async def get_asset_holds_handler(asset_id: str) -> dict[str, Any]:
    """Handle requests for an asset's hold queue, the view behind the hold page.

    Raises:
        ResourceError: If the asset is not found or the read fails
    """
    asset_key = _parse_asset_id(asset_id)
    logger.debug("MCP Resource Request - assets/%s/holds", asset_key)
    try:
        queue = await asyncio.to_thread(get_circulation_service().get_asset_holds, asset_key)
        response = AssetHoldsResponse(
            asset_id=queue.asset_id,
            is_checked_out=queue.is_checked_out,
            hold_count=queue.hold_count,
            holds=queue.holds,
        )
        return response.model_dump(mode="json")
    except NotFoundError as e:
        raise ResourceError(str(e)) from e
    except Exception as e:
        logger.exception("Error in assets/{id}/holds resource")
        raise ResourceError(f"Failed to retrieve holds: {e!s}") from e


# =============================================================================
# RESOURCE REGISTRATION
# =============================================================================

asset_resources: list[dict[str, Any]] = [
    {
        "uri_template": "library://assets/{asset_id}",
        "name": "Asset Circulation Detail",
        "description": (
            "Circulation detail for one asset: status, latest checkout, the patron "
            "currently holding it, checkout history and pending holds."
        ),
        "mime_type": "application/json",
        "handler": get_asset_detail_handler,
    },
    {
        "uri_template": "library://assets/{asset_id}/history",
        "name": "Asset Checkout History",
        "description": "Every checkout of an asset, newest first, with how each loan closed.",
        "mime_type": "application/json",
        "handler": get_asset_history_handler,
    },
    {
        "uri_template": "library://assets/{asset_id}/holds",
        "name": "Asset Hold Queue",
        "description": (
            "Pending holds on an asset in queue order, with patron names and placement times."
        ),
        "mime_type": "application/json",
        "handler": get_asset_holds_handler,
    },
]
