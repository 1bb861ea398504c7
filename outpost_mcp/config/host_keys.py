"""SSH host key trust.

Two sources decide which host key a server may present:

- a host key pinned for one SSH config entry, read from that entry's
  UserKnownHostsFile under its HostKeyAlias (or host name). It becomes
  ``ServerCredentials.host_key`` and is the only key accepted.
- the shared known_hosts file (OUTPOST_KNOWN_HOSTS, default
  ~/.ssh/known_hosts) for entries without a pinned key.
"""

import logging
import os
from pathlib import Path

import paramiko
from paramiko.hostkeys import InvalidHostKey

from outpost_mcp.models import SSHHost

logger = logging.getLogger(__name__)

# Preferred order when a pinned entry lists several key types
_KEY_TYPE_ORDER = ("ssh-ed25519", "ecdsa-sha2-nistp256", "ssh-rsa")


def known_hosts_name(host: str, port: int) -> str:
    """Name a host is stored under in known_hosts files."""
    return host if port == 22 else f"[{host}]:{port}"


def _missing_file_help(path: Path) -> str:
    return (
        f"SSH host key verification required but known_hosts not found at {path}.\n\n"
        f"To fix this:\n"
        f"1. Add host keys: ssh-keyscan <hostname> >> {path}\n"
        f"2. Or pin a key per host with UserKnownHostsFile in ~/.ssh/config\n"
        f"3. Or disable verification (NOT RECOMMENDED): OUTPOST_KNOWN_HOSTS=none"
    )


class HostKeyVerifier:
    """Resolves trusted host keys for provisioning targets."""

    def __init__(
        self,
        known_hosts_path: str | None = None,
        strict_checking: bool = True,
    ):
        """Initialize host key verifier.

        Args:
            known_hosts_path: Path to known_hosts file or 'none' to disable
            strict_checking: Fail if the known_hosts file is missing

        Raises:
            FileNotFoundError: If strict mode and file missing
        """
        self.strict_checking = strict_checking
        self._known_hosts = self._resolve_known_hosts(known_hosts_path)

    def _resolve_known_hosts(self, env_value: str | None) -> str | None:
        """Resolve the shared known_hosts path, None to disable verification.

        Raises:
            FileNotFoundError: If strict mode and file missing
        """
        if env_value and env_value.lower() == "none":
            logger.critical(
                "SSH HOST KEY VERIFICATION DISABLED (OUTPOST_KNOWN_HOSTS=none). "
                "Hosts without a pinned key will be accepted unverified. "
                "Only use in trusted networks for testing."
            )
            return None

        if env_value:
            path = Path(os.path.expanduser(env_value))
        else:
            path = Path.home() / ".ssh" / "known_hosts"

        if not path.exists():
            if self.strict_checking:
                raise FileNotFoundError(_missing_file_help(path))
            logger.warning(
                "known_hosts not found at %s, only pinned host keys will be accepted",
                path,
            )
        return str(path)

    def get_known_hosts_path(self) -> str | None:
        """Path to the shared known_hosts file, None if verification is disabled."""
        return self._known_hosts

    def is_enabled(self) -> bool:
        """Check if host key verification is enabled."""
        return self._known_hosts is not None

    def pinned_key(self, host: SSHHost) -> str | None:
        """Find the host key pinned for an SSH config entry.

        Looks up ``HostKeyAlias`` (or ``[hostname]:port``) in each of the
        entry's UserKnownHostsFile files, first match wins.

        Args:
            host: SSH config entry

        Returns:
            OpenSSH public key line ("<type> <base64>"), or None when the
            entry pins no key
        """
        name = host.host_key_alias or known_hosts_name(host.hostname, host.port)
        for filename in host.known_hosts_files:
            path = Path(os.path.expanduser(filename))
            if not path.is_file():
                logger.debug("Pinned key file for %s not found: %s", host.name, path)
                continue
            try:
                keys = paramiko.HostKeys(str(path))
            except (OSError, InvalidHostKey) as e:
                logger.warning("Cannot read host keys from %s: %s", path, e)
                continue

            entry = keys.lookup(name)
            if not entry:
                continue
            key_type = next((t for t in _KEY_TYPE_ORDER if t in entry), next(iter(entry)))
            key = entry[key_type]
            logger.debug("Pinned %s host key for %s from %s", key_type, host.name, path)
            return f"{key.get_name()} {key.get_base64()}"
        return None
