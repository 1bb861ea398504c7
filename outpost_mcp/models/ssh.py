"""SSH config host entries."""

from dataclasses import dataclass, field
from pathlib import Path

from outpost_mcp.models.credentials import ServerCredentials


@dataclass
class SSHHost:
    """Host entry read from an SSH config file.

    ``host_key_alias`` and ``known_hosts_files`` mirror the HostKeyAlias and
    UserKnownHostsFile options; they locate the host key pinned for this
    entry.
    """

    name: str
    hostname: str
    user: str = "root"
    port: int = 22
    identity_file: str | None = None
    host_key_alias: str | None = None
    known_hosts_files: list[str] = field(default_factory=list)

    @property
    def target(self) -> str:
        """user@hostname:port."""
        return f"{self.user}@{self.hostname}:{self.port}"

    def to_credentials(
        self,
        password: str | None = None,
        host_key: str | None = None,
    ) -> ServerCredentials:
        """Build credentials for this host.

        The identity file, if any, is read into memory so the credentials
        carry key material rather than a path.

        Args:
            password: Password used when the entry has no identity file
            host_key: Pre-approved OpenSSH host key line

        Returns:
            ServerCredentials for this host

        Raises:
            FileNotFoundError: If the identity file does not exist
            ValueError: If no authentication material is available
        """
        private_key = None
        if self.identity_file:
            private_key = Path(self.identity_file).expanduser().read_text()
        return ServerCredentials(
            host=self.hostname,
            port=self.port,
            username=self.user,
            password=password,
            private_key=private_key,
            host_key=host_key,
        )
