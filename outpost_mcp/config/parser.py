"""SSH config reader.

Every literal Host alias in ~/.ssh/config is a server outpost_mcp can
provision. paramiko resolves each alias the way ssh(1) does, so ``Host *``
defaults, ``Key=Value`` lines and multi-pattern Host lines all apply.
OUTPOST_ALLOWLIST and OUTPOST_BLOCKLIST narrow the offered aliases with
shell-style globs (``vpn-*``).
"""

import logging
from collections.abc import Iterable
from fnmatch import fnmatchcase
from pathlib import Path

import paramiko

from outpost_mcp.models import SSHHost

logger = logging.getLogger(__name__)

_PATTERN_CHARS = ("*", "?", "!")


class SSHConfigParser:
    """Turns SSH config Host aliases into provisioning targets.

    When an allowlist is given only matching aliases are offered and the
    blocklist is ignored.
    """

    def __init__(
        self,
        config_path: Path | str | None = None,
        allowlist: Iterable[str] = (),
        blocklist: Iterable[str] = (),
    ):
        """
        Args:
            config_path: SSH config to read, ~/.ssh/config when omitted
            allowlist: Alias globs to offer
            blocklist: Alias globs to hide
        """
        self.config_path = Path(config_path) if config_path else Path.home() / ".ssh" / "config"
        self.allowlist = tuple(allowlist or ())
        self.blocklist = tuple(blocklist or ())

    def parse(self) -> dict[str, SSHHost]:
        """Read the config and resolve every offered alias.

        Returns:
            Host alias to SSHHost; empty if the file is missing or invalid
        """
        if not self.config_path.is_file():
            logger.warning("No SSH config at %s, no servers available", self.config_path)
            return {}

        try:
            ssh_config = paramiko.SSHConfig.from_path(str(self.config_path))
        except (OSError, paramiko.ConfigParseError) as e:
            logger.warning("Cannot read SSH config %s: %s", self.config_path, e)
            return {}

        aliases = sorted(a for a in ssh_config.get_hostnames() if not any(c in a for c in _PATTERN_CHARS))
        hosts: dict[str, SSHHost] = {}
        for alias in filter(self._offered, aliases):
            try:
                options = ssh_config.lookup(alias)
            except paramiko.SSHException as e:
                logger.warning("Skipping SSH config host %s: %s", alias, e)
            else:
                hosts[alias] = self._to_host(alias, options)

        logger.info("Offering %d of %d SSH config host(s) from %s", len(hosts), len(aliases), self.config_path)
        return hosts

    @staticmethod
    def _to_host(alias: str, options: paramiko.SSHConfigDict) -> SSHHost:
        """Build an SSHHost from resolved options."""
        port = 22
        if "port" in options:
            try:
                port = options.as_int("port")
            except ValueError:
                logger.warning("Invalid Port %r for %s, using 22", options["port"], alias)

        identity_files = options.get("identityfile") or []
        return SSHHost(
            name=alias,
            hostname=options["hostname"],
            user=options.get("user", "root"),
            port=port,
            identity_file=identity_files[0] if identity_files else None,
            host_key_alias=options.get("hostkeyalias"),
            known_hosts_files=(options.get("userknownhostsfile") or "").split(),
        )

    def _offered(self, alias: str) -> bool:
        if self.allowlist:
            return any(fnmatchcase(alias, glob) for glob in self.allowlist)
        return not any(fnmatchcase(alias, glob) for glob in self.blocklist)
