"""
MCP resources for the library circulation service.

Resources are the read side of the server: URI-addressed, read-only views of
circulation state. State changes go through the tools package.
"""

from .assets import asset_resources

# Combine all resources
all_resources = asset_resources

__all__ = [
    "all_resources",
    "asset_resources",
]
