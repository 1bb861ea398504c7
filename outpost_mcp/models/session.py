"""SSH session data models."""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from outpost_mcp.models.credentials import Identity

if TYPE_CHECKING:
    import paramiko


@dataclass
class Session:
    """One open SSH connection bound to a credential identity.

    ``lock`` serialises executions: a session carries at most one
    in-flight script or transfer at a time.
    """

    identity: Identity
    client: "paramiko.SSHClient"
    opened_at: datetime = field(default_factory=datetime.now)
    last_used: datetime = field(default_factory=datetime.now)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def touch(self) -> None:
        """Update last-used timestamp."""
        self.last_used = datetime.now()

    @property
    def is_stale(self) -> bool:
        """Check if the underlying transport is gone."""
        transport = self.client.get_transport()
        return transport is None or not transport.is_active()

    def close(self) -> None:
        """Close the SSH connection."""
        self.client.close()
