"""Library Circulation MCP Server - FastMCP Implementation

Exposes the circulation engine to MCP clients over stdio or streamable HTTP.

Features exposed:
- Tools: check out, check in, place and cancel holds, mark lost and found
- Resources: per-asset circulation detail, checkout history and hold queue

SERVER LIFECYCLE:
1. Import: configuration is loaded and every tool and resource is
   registered on the FastMCP instance. A registration failure aborts the
   import, so a half-registered server never starts.
2. run_server(): the schema is created if missing and the database is
   checked. Only then does the transport start accepting requests.
3. Requests: handlers reach the circulation service singleton, which is
   built lazily on the first call.
4. Shutdown: on SIGINT/SIGTERM or when the transport returns, queued hold
   emails are flushed and the database engine is disposed.

Logging goes to stderr only. With the stdio transport, stdout carries the
JSON-RPC stream, and a stray print would corrupt it.
"""

import logging
import signal
import sys
from typing import Any

from fastmcp import FastMCP

from .circulation import reset_circulation_service
from .config import get_config
from .database import get_db_manager, reset_db_manager
from .observability import initialize_observability
from .resources import all_resources
from .tools import all_tools

# Logs go to stderr; stdout carries the stdio transport
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)

logger = logging.getLogger(__name__)

# Load configuration
config = get_config()

# Create the FastMCP server instance
mcp = FastMCP(
    name=config.service_name,
    version=config.service_version,
    instructions=(
        "Library circulation server. Use tools to check items out and in, place or "
        "cancel holds, and mark items lost or found. Read library://assets/{asset_id} "
        "resources to see an item's status, loan history and hold queue."
    ),
)

# Register all resources with the MCP server
# Templated URIs ({asset_id}) become resource templates in FastMCP
for resource in all_resources:
    uri = resource.get("uri_template", resource.get("uri"))
    if not uri:
        logger.error("Resource missing URI: %s", resource)
        continue

    logger.debug("Registering resource: %s with URI: %s", resource["name"], uri)
    try:
        mcp.resource(
            uri=uri,
            name=resource["name"],
            description=resource["description"],
            mime_type=resource["mime_type"],
        )(resource["handler"])
    except Exception:
        logger.exception("Failed to register resource %s", resource["name"])
        raise

logger.info("Registered %d resources", len(all_resources))

# Register all tools with the MCP server
# FastMCP derives each input schema from the handler; the descriptions are
# what the client's model reads when choosing a tool
for tool in all_tools:
    logger.debug("Registering tool: %s", tool["name"])
    try:
        mcp.tool(
            name=tool["name"],
            description=tool["description"],
        )(tool["handler"])
    except Exception:
        logger.exception("Failed to register tool %s", tool["name"])
        raise

logger.info("Registered %d tools", len(all_tools))


def shutdown() -> None:
    """
    Flush pending notifications and release the database.

    Safe to call more than once: the signal handler and the ``finally`` of
    run_server() may both reach it.
    """
    logger.info("Circulation server shutting down...")
    reset_circulation_service()
    reset_db_manager()
    logger.info("Shutdown complete")


def run_server() -> None:
    """
    Run the MCP server on the configured transport.

    Sets the log level, installs signal handlers and prepares the database
    before handing control to FastMCP. Exits with status 1 if the database
    cannot be reached or the transport fails.
    """
    logger.info(
        "Starting %s v%s on %s transport",
        config.service_name,
        config.service_version,
        config.transport,
    )

    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled - verbose protocol logging active")
    else:
        logging.getLogger().setLevel(config.log_level)
        logging.getLogger("fastmcp").setLevel(logging.WARNING)

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        shutdown()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    db_manager = get_db_manager(config.get_database_url())
    db_manager.init_database()
    if not db_manager.verify_connection():
        logger.error("Database at %s is not reachable", config.database_path)
        sys.exit(1)

    try:
        logger.info("MCP Server ready and waiting for connections...")
        if config.transport == "stdio":
            mcp.run(transport="stdio")
        else:
            mcp.run(transport="streamable-http")
    except Exception:
        logger.exception("Fatal error in MCP server")
        sys.exit(1)
    finally:
        shutdown()


def main() -> None:
    """Main entry point for the MCP server."""
    try:
        logger.info("=" * 60)
        logger.info("Library Circulation MCP Server")
        logger.info("Version: %s", config.service_version)
        logger.info("Transport: %s", config.transport)
        logger.info("Debug Mode: %s", config.debug)
        logger.info("=" * 60)

        initialize_observability()
        run_server()

    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Failed to start MCP server")
        sys.exit(1)


if __name__ == "__main__":
    main()
