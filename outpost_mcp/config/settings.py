"""Application settings from environment variables.

Centralized environment variable parsing and validation.
"""

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Application settings from environment.

    Connection parameters are fixed here and are not tunable per call.
    """

    # SSH session
    connect_timeout: int = field(default=10)
    keepalive_interval: int = field(default=30)

    # Host selection and verification
    ssh_config: str | None = field(default=None)
    allowlist: list[str] = field(default_factory=list)
    blocklist: list[str] = field(default_factory=list)
    known_hosts: str | None = field(default=None)
    strict_host_key_checking: bool = field(default=True)

    # Remote scripts (0 disables the limit)
    command_timeout: int = field(default=900)
    scripts_dir: str | None = field(default=None)

    # Transport
    transport: str = field(default="http")
    http_host: str = field(default="0.0.0.0")
    http_port: int = field(default=8000)

    # Logging
    log_level: str = field(default="INFO")
    log_colors: bool = field(default=True)
    log_payloads: bool = field(default=False)
    slow_threshold_ms: int = field(default=1000)
    include_traceback: bool = field(default=False)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from OUTPOST_* environment variables.

        Returns:
            Settings instance with values from environment
        """
        return cls(
            connect_timeout=cls._get_int("OUTPOST_CONNECT_TIMEOUT", 10),
            keepalive_interval=cls._get_int("OUTPOST_KEEPALIVE_INTERVAL", 30),
            ssh_config=os.getenv("OUTPOST_SSH_CONFIG") or None,
            allowlist=cls._get_list("OUTPOST_ALLOWLIST"),
            blocklist=cls._get_list("OUTPOST_BLOCKLIST"),
            known_hosts=os.getenv("OUTPOST_KNOWN_HOSTS") or None,
            strict_host_key_checking=cls._get_bool("OUTPOST_STRICT_HOST_KEY_CHECKING", True),
            command_timeout=cls._get_int("OUTPOST_COMMAND_TIMEOUT", 900),
            scripts_dir=os.getenv("OUTPOST_SCRIPTS_DIR") or None,
            transport=cls._get_transport(),
            http_host=os.getenv("OUTPOST_HTTP_HOST", "0.0.0.0"),
            http_port=cls._get_int("OUTPOST_HTTP_PORT", 8000),
            log_level=os.getenv("OUTPOST_LOG_LEVEL", "INFO").upper(),
            log_colors=cls._get_bool("OUTPOST_LOG_COLORS", True),
            log_payloads=cls._get_bool("OUTPOST_LOG_PAYLOADS", False),
            slow_threshold_ms=cls._get_int("OUTPOST_SLOW_THRESHOLD_MS", 1000),
            include_traceback=cls._get_bool("OUTPOST_INCLUDE_TRACEBACK", False),
        )

    @property
    def command_timeout_or_none(self) -> float | None:
        """Command timeout in seconds, None when disabled."""
        return float(self.command_timeout) if self.command_timeout > 0 else None

    @staticmethod
    def _get_int(key: str, default: int) -> int:
        """Get integer from environment.

        Args:
            key: Environment variable key
            default: Default value if not set or invalid

        Returns:
            Integer value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default

        try:
            parsed = int(value)
        except ValueError:
            logger.warning("Invalid int for %s: %s, using default %d", key, value, default)
            return default

        if parsed < 0:
            logger.warning("%s must be >= 0, got %d. Using default: %d", key, parsed, default)
            return default
        return parsed

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        """Get boolean from environment.

        Args:
            key: Environment variable key
            default: Default value if not set

        Returns:
            Boolean value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ("1", "true", "yes", "on")

    @staticmethod
    def _get_list(key: str) -> list[str]:
        """Get a comma-separated list of host aliases from environment."""
        value = os.getenv(key, "")
        return [item.strip() for item in value.split(",") if item.strip()]

    @staticmethod
    def _get_transport() -> str:
        """Get transport from environment with validation.

        Returns:
            Transport type ("http" or "stdio")
        """
        transport = os.getenv("OUTPOST_TRANSPORT", "").lower()
        if transport in ("http", "stdio"):
            return transport
        return "http"
