"""Outpost MCP FastMCP server.

A thin wrapper wiring the provisioning tools into an MCP server. Business
logic lives in services/; tools/ adapts it to MCP.
"""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from outpost_mcp.config import Settings
from outpost_mcp.dependencies import Dependencies
from outpost_mcp.middleware import ErrorHandlingMiddleware, LoggingMiddleware
from outpost_mcp.services import set_config, set_library, set_manager
from outpost_mcp.tools import (
    check_server,
    configure_firewall,
    install_container,
    list_servers,
    read_container_file,
    uninstall_all_containers,
    uninstall_container,
)
from outpost_mcp.utils.console import MCPRequestFormatter

NOISY_LOGGERS = [
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "paramiko",
    "paramiko.transport",
    "httpx",
    "httpcore",
    "fastmcp",
    "starlette",
    "anyio",
]


def _configure_logging(settings: Settings | None = None) -> None:
    """Configure colorful logging for the outpost_mcp package.

    Called at module load time so logging is ready however the server is
    started.

    Args:
        settings: Settings to read (default: from environment).
    """
    settings = settings or Settings.from_env()
    use_colors = settings.log_colors

    if not sys.stderr.isatty():
        use_colors = False

    package_logger = logging.getLogger("outpost_mcp")
    package_logger.setLevel(getattr(logging, settings.log_level, logging.INFO))

    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(MCPRequestFormatter(use_colors=use_colors))
        package_logger.addHandler(handler)
        package_logger.propagate = False

    for name in NOISY_LOGGERS:
        lg = logging.getLogger(name)
        lg.setLevel(logging.WARNING)
        lg.handlers = []
        lg.propagate = False

    root_logger = logging.getLogger()
    root_logger.handlers = []
    root_logger.setLevel(logging.WARNING)


_configure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Create shared dependencies at startup and close sessions on shutdown.

    Args:
        server: The FastMCP server instance

    Yields:
        Dict with the configured host aliases
    """
    logger.info("Outpost MCP server starting up")

    deps = Dependencies.create()
    server.deps = deps
    set_config(deps.config)
    set_manager(deps.manager)
    set_library(deps.library)

    hosts = deps.config.get_hosts()
    logger.info(
        "Loaded %d SSH host(s): %s",
        len(hosts),
        ", ".join(sorted(hosts)) if hosts else "(none)",
    )
    logger.info("Outpost MCP server ready to accept connections")

    try:
        yield {"hosts": list(hosts)}
    finally:
        logger.info("Outpost MCP server shutting down")
        if deps.manager.pool_size > 0:
            logger.info("Closing %d SSH session(s)", deps.manager.pool_size)
        deps.cleanup()
        logger.info("Outpost MCP server shutdown complete")


def configure_middleware(server: FastMCP, settings: Settings | None = None) -> None:
    """Configure the middleware stack: ErrorHandling -> Logging.

    Args:
        server: The FastMCP server to configure.
        settings: Settings to read (default: from environment).
    """
    settings = settings or Settings.from_env()

    # First added = innermost
    server.add_middleware(ErrorHandlingMiddleware(include_traceback=settings.include_traceback))
    server.add_middleware(
        LoggingMiddleware(
            include_payloads=settings.log_payloads,
            slow_threshold_ms=float(settings.slow_threshold_ms),
        )
    )


def create_server() -> FastMCP:
    """Create and configure the MCP server with middleware and tools.

    Returns:
        Configured FastMCP server instance
    """
    server = FastMCP("outpost_mcp", lifespan=app_lifespan)

    configure_middleware(server)

    for tool in (
        list_servers,
        check_server,
        install_container,
        uninstall_container,
        uninstall_all_containers,
        configure_firewall,
        read_container_file,
    ):
        server.tool()(tool)

    @server.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> PlainTextResponse:
        """Health check endpoint."""
        client_host = request.client.host if request.client else "unknown"
        logger.debug("Health check from %s", client_host)
        return PlainTextResponse("OK")

    return server


# Default server instance
mcp = create_server()
