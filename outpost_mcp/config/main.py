"""Provisioning configuration.

Config joins the OUTPOST_* settings with the SSH config hosts and turns a
host alias into the ServerCredentials the services consume, including the
host key pinned for that alias.
"""

import logging
from dataclasses import dataclass, field

from outpost_mcp.config.host_keys import HostKeyVerifier
from outpost_mcp.config.parser import SSHConfigParser
from outpost_mcp.config.settings import Settings
from outpost_mcp.models import ServerCredentials, SSHHost

logger = logging.getLogger(__name__)


class UnknownHostError(LookupError):
    """Host alias is not in the (filtered) SSH config."""

    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = available
        super().__init__(f"Unknown host '{name}'. Available: {', '.join(available) or '(none)'}")


@dataclass
class Config:
    """Application configuration."""

    settings: Settings
    parser: SSHConfigParser
    host_keys: HostKeyVerifier
    _hosts: dict[str, SSHHost] | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from OUTPOST_* environment variables."""
        return cls.from_settings(Settings.from_env())

    @classmethod
    def from_settings(cls, settings: Settings) -> "Config":
        """Create config from already loaded settings.

        Raises:
            FileNotFoundError: If strict host key checking is on and the
                known_hosts file is missing
        """
        parser = SSHConfigParser(
            config_path=settings.ssh_config,
            allowlist=settings.allowlist,
            blocklist=settings.blocklist,
        )
        host_keys = HostKeyVerifier(
            known_hosts_path=settings.known_hosts,
            strict_checking=settings.strict_host_key_checking,
        )
        logger.debug(
            "Config initialized: ssh_config=%s, known_hosts=%s",
            parser.config_path,
            host_keys.get_known_hosts_path() or "disabled",
        )
        return cls(settings=settings, parser=parser, host_keys=host_keys)

    def get_hosts(self) -> dict[str, SSHHost]:
        """Host alias to SSHHost, parsed once."""
        if self._hosts is None:
            self._hosts = self.parser.parse()
        return self._hosts

    def get_host(self, name: str) -> SSHHost | None:
        return self.get_hosts().get(name)

    def credentials_for(self, name: str, password: str | None = None) -> ServerCredentials:
        """Build credentials for a host alias.

        Args:
            name: Host alias from the SSH config
            password: Password, used when the entry has no IdentityFile

        Returns:
            Credentials carrying the entry's key material and pinned host key

        Raises:
            UnknownHostError: If the alias is unknown or filtered out
            OSError: If the identity file cannot be read
            ValueError: If no authentication material is available
        """
        host = self.get_host(name)
        if host is None:
            raise UnknownHostError(name, sorted(self.get_hosts()))

        host_key = self.host_keys.pinned_key(host)
        if host_key is None and not self.host_keys.is_enabled():
            logger.warning("%s has no pinned host key and verification is disabled", name)
        return host.to_credentials(password=password, host_key=host_key)

    @property
    def known_hosts_path(self) -> str | None:
        """Path to known_hosts file or None if disabled."""
        return self.host_keys.get_known_hosts_path()
