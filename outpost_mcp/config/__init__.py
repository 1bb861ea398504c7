"""Configuration module for Outpost MCP.

Provides focused classes for different configuration concerns:
- Config: Main configuration class (aggregates all components)
- SSHConfigParser: Parses ~/.ssh/config files
- HostKeyVerifier: Manages SSH host key verification
- Settings: Environment variable configuration
"""

from outpost_mcp.config.host_keys import HostKeyVerifier
from outpost_mcp.config.main import Config, UnknownHostError
from outpost_mcp.config.parser import SSHConfigParser
from outpost_mcp.config.settings import Settings

__all__ = ["Config", "HostKeyVerifier", "SSHConfigParser", "Settings", "UnknownHostError"]
