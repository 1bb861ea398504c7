"""Utilities for Outpost MCP."""

from outpost_mcp.utils.console import ColorfulFormatter, MCPRequestFormatter
from outpost_mcp.utils.validation import PathTraversalError, validate_container_path

__all__ = [
    "ColorfulFormatter",
    "MCPRequestFormatter",
    "PathTraversalError",
    "validate_container_path",
]
