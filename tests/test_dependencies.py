"""Tests for dependency injection container."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from outpost_mcp.config import Config
from outpost_mcp.dependencies import Dependencies
from outpost_mcp.scripts import ScriptLibrary
from outpost_mcp.services.connection import ConnectionManager


@pytest.fixture(autouse=True)
def no_host_key_file(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OUTPOST_KNOWN_HOSTS", "none")


class TestDependencies:
    """Test Dependencies container."""

    def test_create_initializes_everything(self) -> None:
        """Dependencies.create() builds config, manager and library."""
        deps = Dependencies.create()

        assert isinstance(deps.config, Config)
        assert isinstance(deps.manager, ConnectionManager)
        assert isinstance(deps.library, ScriptLibrary)

    def test_manager_uses_config_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Manager is initialized with the configured timeouts."""
        monkeypatch.setenv("OUTPOST_CONNECT_TIMEOUT", "7")
        monkeypatch.setenv("OUTPOST_COMMAND_TIMEOUT", "0")

        deps = Dependencies.create()
        assert deps.manager.connect_timeout == 7
        assert deps.manager.command_timeout is None

    def test_from_config_uses_provided_config(self, tmp_path: Path) -> None:
        """Dependencies.from_config() uses the provided config and scripts dir."""
        config = Config.from_env()
        config.settings.scripts_dir = str(tmp_path)
        config.settings.command_timeout = 60

        deps = Dependencies.from_config(config)
        assert deps.config is config
        assert deps.library.root == tmp_path
        assert deps.manager.command_timeout == 60.0

    def test_cleanup_closes_sessions(self) -> None:
        deps = Dependencies.create()
        deps.manager = MagicMock()

        deps.cleanup()
        deps.manager.close_all.assert_called_once()
