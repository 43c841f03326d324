"""Circulation Tools - Asset Lifecycle Commands

Change the state of circulating assets: lend and return copies, manage the
hold queue, and record copies as lost or found.

Tools:
- check_out_item: Lend an asset to a library card
- check_in_item: Return a checked-out asset
- place_hold: Join an asset's hold queue
- cancel_hold: Withdraw a pending hold
- mark_lost: Record an asset as missing
- mark_found: Return a lost asset to circulation

MCP TOOLS AND THE CIRCULATION ENGINE:
Tools are how an MCP client changes state; resources only read it. Every
tool here is a thin adapter over one CirculationService command:

1. VALIDATION: a Pydantic input model checks the raw arguments. Its JSON
   schema is also what the client sees in tools/list.
2. EXECUTION: the command runs in a worker thread. The engine takes the
   asset's lock and opens one database transaction, and both block.
3. TRANSLATION: circulation errors become ``isError`` results whose text
   starts with a fixed prefix ("Not found", "Invalid transition",
   "Conflict", "Database error"), so a client can tell a refused transition
   from a broken server.
4. RESPONSE: a short sentence for the model to read, plus a ``data``
   payload with the resulting record for programmatic use.

Tool handlers never raise. Anything unexpected is logged with its traceback
and reported as "Unexpected error".
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ..circulation import get_circulation_service
from ..errors import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    NotFoundError,
    RepositoryException,
)

logger = logging.getLogger(__name__)


def _format_error_response(error_type: str, details: str) -> dict[str, Any]:
    """Format error responses consistently across all tools."""
    return {"isError": True, "content": [{"type": "text", "text": f"{error_type}: {details}"}]}


def _log_operation(operation: str, **kwargs) -> None:
    """Log operation details for audit trail."""
    logger.info(
        "Operation: %s | Details: %s", operation, " | ".join(f"{k}={v}" for k, v in kwargs.items())
    )


async def _run_command(
    operation: str,
    input_model: type[BaseModel],
    arguments: dict[str, Any],
    command: Callable[[Any], Any],
    respond: Callable[[Any, Any], dict[str, Any]],
) -> dict[str, Any]:
    """
    Validate ``arguments``, run ``command`` off the event loop and format the
    outcome.

    TOOL LIFECYCLE:
    Every circulation tool goes through the same four phases, so they all
    share this runner and differ only in their input model, the service call
    and the success message.

    Args:
        operation: Tool name, used in logs and error text
        input_model: Pydantic schema for the tool's arguments
        arguments: Raw arguments from the tools/call request
        command: Service call taking the validated parameters
        respond: Builds the success response from parameters and result

    Returns:
        The success response, or an ``isError`` response naming the failure
    """
    # STEP 1: Validate input
    # Bad arguments are answered before anything is locked or read
    try:
        params = input_model.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid %s parameters: %s", operation, e)
        return _format_error_response("Invalid parameters", str(e))

    details = params.model_dump()
    _log_operation(f"{operation}_start", **details)

    # STEP 2: Run the command
    # The service blocks on the per-asset lock and on SQLite, so it runs in
    # a worker thread and the event loop keeps serving other requests
    try:
        result = await asyncio.to_thread(command, params)
    # STEP 3: Translate failures
    # Refused transitions are normal outcomes and log at info; only
    # database and unexpected errors carry a traceback
    except NotFoundError as e:
        logger.info("%s failed - not found: %s", operation, e)
        _log_operation(f"{operation}_failed", **details, error_type="not_found")
        return _format_error_response("Not found", str(e))
    except InvalidTransitionError as e:
        logger.info("%s failed - invalid transition: %s", operation, e)
        _log_operation(
            f"{operation}_failed", **details, error_type=type(e).__name__
        )
        return _format_error_response("Invalid transition", str(e))
    except ConcurrencyConflictError as e:
        logger.info("%s failed - lock timeout: %s", operation, e)
        _log_operation(f"{operation}_failed", **details, error_type="conflict")
        return _format_error_response("Conflict", str(e))
    except RepositoryException as e:
        logger.exception("%s database error", operation)
        return _format_error_response("Database error", f"{operation} failed: {e!s}")
    except Exception as e:
        logger.exception("Unexpected error in %s tool", operation)
        return _format_error_response("Unexpected error", str(e))

    # STEP 4: Build the response
    _log_operation(f"{operation}_success", **details)
    return respond(params, result)


class AssetInput(BaseModel):
    """
    Input schema for commands that act on a single asset.

    Ids are the numeric keys of the circulation database. Titles and ISBNs
    are not accepted, because several copies can share them and a command
    must name exactly one copy.
    """

    asset_id: int = Field(..., ge=1, description="Internal id of the asset", examples=[1, 42])


class AssetCardInput(AssetInput):
    """Input schema for commands that act on an asset for a library card."""

    library_card_id: int = Field(
        ..., ge=1, description="Library card of the patron", examples=[1001, 2040]
    )


class HoldInput(BaseModel):
    """Input schema for commands that act on a hold."""

    hold_id: int = Field(..., ge=1, description="Id of the hold record", examples=[7])


async def check_out_item_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Lend an asset to a library card.

    Client calls: tool.call("check_out_item", {"asset_id": 1, "library_card_id": 1001})

    STATE CHANGES (one transaction):
    - A new open checkout for the card
    - The asset's status becomes checked_out
    - The card's pending hold on the asset, if any, becomes fulfilled
    - The circulation events for both

    A Lost asset may be checked out: the copy was found at the desk and goes
    straight back out. Only an asset already on loan is refused.

    Args:
        arguments: Raw arguments from the MCP tools/call request

    Returns:
        The new checkout record, or an isError response
    """

    def respond(params: AssetCardInput, checkout) -> dict[str, Any]:
        return {
            "content": [
                {
                    "type": "text",
                    "text": (
                        f"Asset {params.asset_id} checked out to library card "
                        f"{params.library_card_id}."
                    ),
                }
            ],
            "data": {"checkout": checkout.model_dump(mode="json")},
        }

    return await _run_command(
        "check_out_item",
        AssetCardInput,
        arguments,
        lambda p: get_circulation_service().check_out_item(p.asset_id, p.library_card_id),
        respond,
    )


async def check_in_item_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Return a checked-out asset.

    Client calls: tool.call("check_in_item", {"asset_id": 1})
    """

    def respond(params: AssetInput, checkout) -> dict[str, Any]:
        return {
            "content": [
                {
                    "type": "text",
                    "text": (
                        f"Asset {params.asset_id} returned by library card "
                        f"{checkout.library_card_id}. It is available again."
                    ),
                }
            ],
            "data": {"checkout": checkout.model_dump(mode="json")},
        }

    return await _run_command(
        "check_in_item",
        AssetInput,
        arguments,
        lambda p: get_circulation_service().check_in_item(p.asset_id),
        respond,
    )


async def place_hold_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Put a library card in an asset's hold queue.

    A duplicate hold is not an error here: the response says the hold was
    not placed, matching the service's boolean result.

    Client calls: tool.call("place_hold", {"asset_id": 1, "library_card_id": 1001})

    NOTIFICATION:
    When the queue was empty, the holder is emailed to come and claim the
    item within the claim window. The email is queued after the hold is
    committed and sent by a background worker, so a slow or failing mail
    server never delays or fails this call.
    """

    def place(params: AssetCardInput) -> dict[str, Any]:
        service = get_circulation_service()
        placed = service.place_hold(params.asset_id, params.library_card_id)
        return {"placed": placed, "pending_holds": service.get_pending_hold_count(params.asset_id)}

    def respond(params: AssetCardInput, result: dict[str, Any]) -> dict[str, Any]:
        if result["placed"]:
            text = (
                f"Hold placed on asset {params.asset_id} for library card "
                f"{params.library_card_id}. Holds waiting: {result['pending_holds']}."
            )
        else:
            text = (
                f"Library card {params.library_card_id} already has a pending hold on "
                f"asset {params.asset_id}; no new hold was placed."
            )
        return {"content": [{"type": "text", "text": text}], "data": result}

    return await _run_command("place_hold", AssetCardInput, arguments, place, respond)


async def cancel_hold_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Withdraw a pending hold.

    Client calls: tool.call("cancel_hold", {"hold_id": 7})
    """

    def respond(params: HoldInput, hold) -> dict[str, Any]:
        return {
            "content": [
                {
                    "type": "text",
                    "text": f"Hold {params.hold_id} on asset {hold.asset_id} cancelled.",
                }
            ],
            "data": {"hold": hold.model_dump(mode="json")},
        }

    return await _run_command(
        "cancel_hold",
        HoldInput,
        arguments,
        lambda p: get_circulation_service().cancel_hold(p.hold_id),
        respond,
    )


async def mark_lost_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Record an asset as missing.

    An open loan is closed as lost, with no return date. Pending holds stay
    in the queue for when the copy turns up. Marking a lost asset again
    changes nothing and reports ``changed: false``.

    Client calls: tool.call("mark_lost", {"asset_id": 1})
    """

    def respond(params: AssetInput, changed: bool) -> dict[str, Any]:
        text = (
            f"Asset {params.asset_id} marked lost."
            if changed
            else f"Asset {params.asset_id} was already lost."
        )
        return {"content": [{"type": "text", "text": text}], "data": {"changed": changed}}

    return await _run_command(
        "mark_lost",
        AssetInput,
        arguments,
        lambda p: get_circulation_service().mark_lost(p.asset_id),
        respond,
    )


async def mark_found_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Return a lost asset to circulation.

    Client calls: tool.call("mark_found", {"asset_id": 1})
    """

    def respond(params: AssetInput, _result) -> dict[str, Any]:
        return {
            "content": [
                {"type": "text", "text": f"Asset {params.asset_id} found and available again."}
            ],
            "data": {"asset_id": params.asset_id, "status": "available"},
        }

    return await _run_command(
        "mark_found",
        AssetInput,
        arguments,
        lambda p: get_circulation_service().mark_found(p.asset_id),
        respond,
    )


check_out_item = {
    "name": "check_out_item",
    "description": (
        "Check out an asset to a library card. Fails if the asset is already on loan. "
        "If the card had a pending hold on the asset, that hold is fulfilled."
    ),
    "inputSchema": AssetCardInput.model_json_schema(),
    "handler": check_out_item_handler,
}

check_in_item = {
    "name": "check_in_item",
    "description": "Return a checked-out asset, closing its loan and making it available.",
    "inputSchema": AssetInput.model_json_schema(),
    "handler": check_in_item_handler,
}

place_hold = {
    "name": "place_hold",
    "description": (
        "Place a hold on an asset for a library card. The first holder in an empty queue "
        "is emailed to collect the item within the claim window."
    ),
    "inputSchema": AssetCardInput.model_json_schema(),
    "handler": place_hold_handler,
}

cancel_hold = {
    "name": "cancel_hold",
    "description": "Cancel a pending hold by its id.",
    "inputSchema": HoldInput.model_json_schema(),
    "handler": cancel_hold_handler,
}

mark_lost = {
    "name": "mark_lost",
    "description": (
        "Mark an asset as lost. Closes any open loan; pending holds are kept. "
        "Marking an already lost asset changes nothing."
    ),
    "inputSchema": AssetInput.model_json_schema(),
    "handler": mark_lost_handler,
}

mark_found = {
    "name": "mark_found",
    "description": "Mark a lost asset as found, making it available again.",
    "inputSchema": AssetInput.model_json_schema(),
    "handler": mark_found_handler,
}
