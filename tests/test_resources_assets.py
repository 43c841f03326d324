"""Tests for asset circulation resources."""

import pytest
from fastmcp.exceptions import ResourceError

from library_circulation.resources import all_resources
from library_circulation.resources.assets import (
    get_asset_detail_handler,
    get_asset_history_handler,
    get_asset_holds_handler,
)


class TestResourceRegistry:
    def test_uri_templates(self):
        assert [r["uri_template"] for r in all_resources] == [
            "library://assets/{asset_id}",
            "library://assets/{asset_id}/history",
            "library://assets/{asset_id}/holds",
        ]
        assert all(r["mime_type"] == "application/json" for r in all_resources)


class TestAssetDetailResource:
    async def test_detail(self, global_service, book, patrons):
        global_service.check_out_item(book.id, 1001)
        global_service.place_hold(book.id, 1002)

        data = await get_asset_detail_handler(str(book.id))

        assert data["asset"]["title"] == book.title
        assert data["asset"]["status"] == "checked_out"
        assert data["is_checked_out"] is True
        assert data["current_patron_name"] == "Ada Lovelace"
        assert data["hold_count"] == 1
        assert data["current_holds"][0]["patron_name"] == "Grace Hopper"

    async def test_unknown_asset(self, global_service):
        with pytest.raises(ResourceError, match="Asset 77 not found"):
            await get_asset_detail_handler("77")

    @pytest.mark.parametrize("asset_id", ["abc", "0", "-3"])
    async def test_invalid_asset_id(self, global_service, asset_id):
        with pytest.raises(ResourceError, match="Invalid asset id"):
            await get_asset_detail_handler(asset_id)


class TestHistoryResource:
    async def test_history(self, global_service, book, patrons, clock):
        global_service.check_out_item(book.id, 1001)
        clock.advance(days=1)
        global_service.check_in_item(book.id)
        clock.advance(days=1)
        global_service.check_out_item(book.id, 1003)

        data = await get_asset_history_handler(str(book.id))

        assert data["total_checkouts"] == 2
        assert data["is_checked_out"] is True
        assert [c["library_card_id"] for c in data["checkouts"]] == [1003, 1001]
        assert data["checkouts"][1]["closure"] == "returned"

    async def test_unknown_asset(self, global_service):
        with pytest.raises(ResourceError):
            await get_asset_history_handler("77")


class TestHoldsResource:
    async def test_holds(self, global_service, book, patrons, clock):
        global_service.place_hold(book.id, 1003)
        clock.advance(minutes=1)
        global_service.place_hold(book.id, 1001)

        data = await get_asset_holds_handler(str(book.id))

        assert data["is_checked_out"] is False
        assert data["hold_count"] == 2
        assert [(h["library_card_id"], h["position"]) for h in data["holds"]] == [
            (1003, 1),
            (1001, 2),
        ]

    async def test_empty_queue(self, global_service, book):
        data = await get_asset_holds_handler(str(book.id))
        assert data["holds"] == []
