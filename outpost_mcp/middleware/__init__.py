"""Outpost MCP middleware components."""

from outpost_mcp.middleware.base import OutpostMiddleware
from outpost_mcp.middleware.errors import ErrorHandlingMiddleware
from outpost_mcp.middleware.logging import LoggingMiddleware

__all__ = [
    "ErrorHandlingMiddleware",
    "LoggingMiddleware",
    "OutpostMiddleware",
]
