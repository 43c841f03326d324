"""
MCP tools for the library circulation service.

Tools are the write side of the server: each one applies a circulation
transition and reports the outcome. Each tool is a dictionary with its name,
description, JSON input schema and async handler.
"""

from .circulation import (
    cancel_hold,
    check_in_item,
    check_out_item,
    mark_found,
    mark_lost,
    place_hold,
)

# The server registers every tool in this list
all_tools = [
    check_out_item,
    check_in_item,
    place_hold,
    cancel_hold,
    mark_lost,
    mark_found,
]

__all__ = [
    "all_tools",
    "cancel_hold",
    "check_in_item",
    "check_out_item",
    "mark_found",
    "mark_lost",
    "place_hold",
]
