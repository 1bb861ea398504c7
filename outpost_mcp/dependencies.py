"""Dependency injection container for Outpost MCP."""

from dataclasses import dataclass

from outpost_mcp.config import Config
from outpost_mcp.scripts import ScriptLibrary
from outpost_mcp.services.connection import ConnectionManager


@dataclass
class Dependencies:
    """Container for Outpost MCP dependencies.

    Holds configuration, the connection manager and the script library.

    Example:
        deps = Dependencies.create()
        code = setup_container(deps.manager, creds, container, library=deps.library)
    """

    config: Config
    manager: ConnectionManager
    library: ScriptLibrary

    @classmethod
    def create(cls) -> "Dependencies":
        """Create dependencies from the environment.

        Returns:
            Initialized Dependencies instance
        """
        return cls.from_config(Config.from_env())

    @classmethod
    def from_config(cls, config: Config) -> "Dependencies":
        """Create dependencies with custom configuration.

        Args:
            config: Custom Config instance

        Returns:
            Dependencies with manager and library initialized from config
        """
        manager = ConnectionManager(
            connect_timeout=config.settings.connect_timeout,
            keepalive_interval=config.settings.keepalive_interval,
            command_timeout=config.settings.command_timeout_or_none,
            known_hosts=config.known_hosts_path,
        )
        library = ScriptLibrary(config.settings.scripts_dir)
        return cls(config=config, manager=manager, library=library)

    def cleanup(self) -> None:
        """Close every cached SSH session."""
        self.manager.close_all()
