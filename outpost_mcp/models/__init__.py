"""Data models for Outpost MCP."""

from outpost_mcp.models.container import DockerContainer
from outpost_mcp.models.credentials import Identity, ServerCredentials
from outpost_mcp.models.error_code import ErrorCode
from outpost_mcp.models.execution import ScriptExecutionResult
from outpost_mcp.models.session import Session
from outpost_mcp.models.ssh import SSHHost

__all__ = [
    "DockerContainer",
    "ErrorCode",
    "Identity",
    "ScriptExecutionResult",
    "ServerCredentials",
    "Session",
    "SSHHost",
]
