"""Entry point for the outpost_mcp server."""

import logging

from outpost_mcp.config import Settings
from outpost_mcp.server import mcp  # Importing also configures logging

logger = logging.getLogger(__name__)


def run_server() -> None:
    """Run the MCP server with the configured transport."""
    settings = Settings.from_env()

    if settings.transport == "stdio":
        logger.info("Starting Outpost MCP server (transport=stdio)")
        mcp.run(transport="stdio")
    else:
        logger.info(
            "Starting Outpost MCP server (transport=http, host=%s, port=%d)",
            settings.http_host,
            settings.http_port,
        )
        mcp.run(
            transport="http",
            host=settings.http_host,
            port=settings.http_port,
        )


if __name__ == "__main__":
    run_server()
