"""
Tests for circulation tools.

1. Input validation
2. Success responses and their structured data
3. Typed errors returned as isError responses
4. State changes behind the responses
"""

import pytest

from library_circulation.models import AssetStatus
from library_circulation.tools import all_tools
from library_circulation.tools.circulation import (
    cancel_hold_handler,
    check_in_item_handler,
    check_out_item_handler,
    mark_found_handler,
    mark_lost_handler,
    place_hold_handler,
)


def text_of(result):
    return result["content"][0]["text"]


class TestToolRegistry:
    def test_all_tools_listed(self):
        assert [t["name"] for t in all_tools] == [
            "check_out_item",
            "check_in_item",
            "place_hold",
            "cancel_hold",
            "mark_lost",
            "mark_found",
        ]
        for tool in all_tools:
            assert tool["inputSchema"]["type"] == "object"
            assert callable(tool["handler"])


class TestCheckOutItemTool:
    async def test_success(self, global_service, book, patrons):
        result = await check_out_item_handler({"asset_id": book.id, "library_card_id": 1001})

        assert not result.get("isError")
        assert f"Asset {book.id} checked out to library card 1001" in text_of(result)
        assert result["data"]["checkout"]["library_card_id"] == 1001
        assert result["data"]["checkout"]["closure"] is None
        assert global_service.get_status(book.id) == AssetStatus.CHECKED_OUT

    async def test_already_checked_out(self, global_service, book, patrons):
        await check_out_item_handler({"asset_id": book.id, "library_card_id": 1001})

        result = await check_out_item_handler({"asset_id": book.id, "library_card_id": 1002})

        assert result["isError"] is True
        assert text_of(result).startswith("Invalid transition:")
        assert "already checked out" in text_of(result)
        assert global_service.get_current_checkout_patron(book.id) == 1001

    async def test_unknown_card(self, global_service, book, patrons):
        result = await check_out_item_handler({"asset_id": book.id, "library_card_id": 5555})

        assert result["isError"] is True
        assert text_of(result).startswith("Not found:")

    @pytest.mark.parametrize(
        "arguments",
        [{}, {"asset_id": "abc", "library_card_id": 1001}, {"asset_id": 0, "library_card_id": 1}],
    )
    async def test_invalid_parameters(self, global_service, arguments):
        result = await check_out_item_handler(arguments)

        assert result["isError"] is True
        assert text_of(result).startswith("Invalid parameters:")


class TestCheckInItemTool:
    async def test_success(self, global_service, book, patrons):
        global_service.check_out_item(book.id, 1002)

        result = await check_in_item_handler({"asset_id": book.id})

        assert not result.get("isError")
        assert "returned by library card 1002" in text_of(result)
        assert result["data"]["checkout"]["closure"] == "returned"

    async def test_not_checked_out(self, global_service, book):
        result = await check_in_item_handler({"asset_id": book.id})

        assert result["isError"] is True
        assert "not checked out" in text_of(result)


class TestHoldTools:
    async def test_place_and_duplicate(self, global_service, gateway, book, patrons):
        first = await place_hold_handler({"asset_id": book.id, "library_card_id": 1001})
        again = await place_hold_handler({"asset_id": book.id, "library_card_id": 1001})

        assert first["data"] == {"placed": True, "pending_holds": 1}
        assert again["data"] == {"placed": False, "pending_holds": 1}
        assert "already has a pending hold" in text_of(again)
        assert len(gateway.notifications) == 1

    async def test_place_on_unknown_asset(self, global_service, patrons):
        result = await place_hold_handler({"asset_id": 404, "library_card_id": 1001})

        assert result["isError"] is True
        assert "Asset 404 not found" in text_of(result)

    async def test_cancel(self, global_service, book, patrons):
        global_service.place_hold(book.id, 1001)
        hold = global_service.get_next_pending_hold(book.id)

        result = await cancel_hold_handler({"hold_id": hold.id})
        repeat = await cancel_hold_handler({"hold_id": hold.id})

        assert result["data"]["hold"]["status"] == "cancelled"
        assert repeat["isError"] is True
        assert text_of(repeat).startswith("Invalid transition:")


class TestLostFoundTools:
    async def test_lost_then_found(self, global_service, book):
        lost = await mark_lost_handler({"asset_id": book.id})
        lost_again = await mark_lost_handler({"asset_id": book.id})
        found = await mark_found_handler({"asset_id": book.id})

        assert lost["data"] == {"changed": True}
        assert lost_again["data"] == {"changed": False}
        assert "already lost" in text_of(lost_again)
        assert found["data"]["status"] == "available"
        assert global_service.get_status(book.id) == AssetStatus.AVAILABLE

    async def test_found_when_not_lost(self, global_service, book):
        result = await mark_found_handler({"asset_id": book.id})

        assert result["isError"] is True
        assert "not lost" in text_of(result)


class TestUnexpectedErrors:
    async def test_unexpected_error_is_reported(self, global_service, book, monkeypatch, caplog):
        def explode(asset_id):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(global_service, "mark_lost", explode)

        result = await mark_lost_handler({"asset_id": book.id})

        assert result["isError"] is True
        assert text_of(result) == "Unexpected error: disk on fire"
        assert "Unexpected error in mark_lost tool" in caplog.text
