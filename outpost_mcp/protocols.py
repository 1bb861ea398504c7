"""Protocol interfaces for dependency inversion.

Defines the small contracts services depend on, so tests and callers can
substitute their own implementations.

Usage Example:

    from outpost_mcp.protocols import LineSink

    class ProgressLog:
        def __init__(self) -> None:
            self.lines: list[str] = []

        def __call__(self, line: str) -> None:
            self.lines.append(line)

    run(session, script, stdout=ProgressLog())
"""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from outpost_mcp.models import ErrorCode, ServerCredentials, Session


@runtime_checkable
class LineSink(Protocol):
    """Consumer of remote output, one line at a time.

    Lines arrive without their trailing newline, in the order the remote
    stream produced them. Called synchronously from the executing thread.
    """

    def __call__(self, line: str) -> None:
        """Consume one line of output."""
        ...


@runtime_checkable
class SessionProvider(Protocol):
    """Protocol for SSH session caching.

    Implementations hand out one live session per credential identity.
    """

    command_timeout: float | None

    def acquire(self, credentials: "ServerCredentials") -> "Session":
        """Get or open the session for these credentials.

        Raises:
            SessionError: If the session cannot be opened
        """
        ...

    def release(self, credentials: "ServerCredentials") -> None:
        """Close and forget the session for these credentials."""
        ...

    def close_all(self) -> None:
        """Close every cached session."""
        ...

    def check_connection(self, credentials: "ServerCredentials") -> "tuple[str, ErrorCode]":
        """Probe the host and return its identification text."""
        ...


def null_sink(line: str) -> None:
    """Discard a line of output."""
    return None


class LineCollector:
    """Sink that keeps every line it receives."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    def __call__(self, line: str) -> None:
        self.lines.append(line)

    @property
    def text(self) -> str:
        """Collected lines joined with newlines."""
        return "\n".join(self.lines)

    def contains(self, needle: str) -> bool:
        """Check if any collected line contains ``needle`` (case-insensitive)."""
        lowered = needle.lower()
        return any(lowered in line.lower() for line in self.lines)


def tee(*sinks: LineSink) -> LineSink:
    """Combine sinks so each line reaches all of them, in order."""

    def _tee(line: str) -> None:
        for sink in sinks:
            sink(line)

    return _tee
