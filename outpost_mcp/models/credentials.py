"""SSH credential data models."""

from dataclasses import dataclass

Identity = tuple[str, int, str]


@dataclass(frozen=True)
class ServerCredentials:
    """Credentials for one remote server.

    Supplied by whoever stores server settings; never mutated afterwards.
    ``host_key`` is an OpenSSH public key line (``"ssh-ed25519 AAAA..."``)
    the caller has already approved for this host.
    """

    host: str
    port: int = 22
    username: str = "root"
    password: str | None = None
    private_key: str | None = None
    private_key_passphrase: str | None = None
    host_key: str | None = None

    def __post_init__(self) -> None:
        """Validate credential fields.

        Raises:
            ValueError: If host/username are empty, port is out of range,
                or no authentication material is present
        """
        if not self.host:
            raise ValueError("host must be a non-empty string")
        if not self.username:
            raise ValueError("username must be a non-empty string")
        if not 0 < self.port <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")
        if not self.password and not self.private_key:
            raise ValueError("Either password or private_key must be provided")

    @property
    def identity(self) -> Identity:
        """Session cache key: (host, port, username)."""
        return (self.host, self.port, self.username)

    @property
    def display_name(self) -> str:
        """user@host:port, safe for logs."""
        return f"{self.username}@{self.host}:{self.port}"

    def __repr__(self) -> str:
        auth = "key" if self.private_key else "password"
        pinned = ", host_key=pinned" if self.host_key else ""
        return f"ServerCredentials({self.display_name}, auth={auth}{pinned})"
