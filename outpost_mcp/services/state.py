"""Global state management for Outpost MCP."""

from outpost_mcp.config import Config
from outpost_mcp.scripts import ScriptLibrary
from outpost_mcp.services.connection import ConnectionManager

# Global state (initialized on first access)
_config: Config | None = None
_manager: ConnectionManager | None = None
_library: ScriptLibrary | None = None


def get_config() -> Config:
    """Get or create config."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def get_manager() -> ConnectionManager:
    """Get or create the connection manager."""
    global _manager
    if _manager is None:
        config = get_config()
        _manager = ConnectionManager(
            connect_timeout=config.settings.connect_timeout,
            keepalive_interval=config.settings.keepalive_interval,
            command_timeout=config.settings.command_timeout_or_none,
            known_hosts=config.known_hosts_path,
        )
    return _manager


def get_library() -> ScriptLibrary:
    """Get or create the script library (OUTPOST_SCRIPTS_DIR or bundled)."""
    global _library
    if _library is None:
        _library = ScriptLibrary(get_config().settings.scripts_dir)
    return _library


def reset_state() -> None:
    """Reset global state for testing.

    Clears the singleton instances without closing sessions. Should only be
    used in test fixtures.
    """
    global _config, _manager, _library
    _config = None
    _manager = None
    _library = None


def set_config(config: Config) -> None:
    """Set the global config instance.

    Args:
        config: Config instance to use globally.
    """
    global _config
    _config = config


def set_manager(manager: ConnectionManager) -> None:
    """Set the global connection manager.

    Args:
        manager: ConnectionManager instance to use globally.
    """
    global _manager
    _manager = manager


def set_library(library: ScriptLibrary) -> None:
    """Set the global script library.

    Args:
        library: ScriptLibrary instance to use globally.
    """
    global _library
    _library = library
