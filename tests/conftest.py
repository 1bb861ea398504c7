"""Shared fixtures: an in-memory stand-in for a remote SSH server.

FakeHost plays the server side. Each executed command goes to its
responder, which returns a Response describing the process outcome.
FakeSSHClient/FakeTransport/FakeChannel expose the small part of the
paramiko API the services use.
"""

import base64
import errno
import posixpath
import shlex
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

import paramiko
import pytest

from outpost_mcp.models import ErrorCode, ServerCredentials, Session
from outpost_mcp.services.errors import SessionError

# Small chunks so multi-byte characters and lines get split across reads
CHUNK = 3


@dataclass
class Response:
    """Outcome of one remote command."""

    stdout: str = ""
    stderr: str = ""
    exit_status: int = 0
    drop: bool = False
    hang: bool = False
    # Repeat stdout forever without ever exiting
    endless: bool = False


Responder = Callable[[str, bytes], Response]


def _chunks(text: str) -> list[bytes]:
    data = text.encode("utf-8")
    return [data[i : i + CHUNK] for i in range(0, len(data), CHUNK)]


@dataclass
class FakeHost:
    """Server side of the fake connection."""

    responder: Responder = field(default=lambda command, stdin: Response())
    commands: list[str] = field(default_factory=list)
    stdins: list[bytes] = field(default_factory=list)
    files: dict[str, bytes] = field(default_factory=dict)
    # None means every directory exists
    dirs: set[str] | None = None
    readonly_dirs: set[str] = field(default_factory=set)
    connect_error: BaseException | None = None
    stdin_stalls: bool = False
    # connect() blocks until this is set
    connect_gate: threading.Event | None = None
    connects: list[dict] = field(default_factory=list)

    def respond(self, command: str, stdin: bytes) -> Response:
        self.commands.append(command)
        self.stdins.append(stdin)
        return self.responder(command, stdin)

    def ran(self, fragment: str) -> bool:
        return any(fragment in command for command in self.commands)

    def index_of(self, fragment: str) -> int:
        for i, command in enumerate(self.commands):
            if fragment in command:
                return i
        raise AssertionError(f"No command containing {fragment!r}")


class FakeChannel:
    def __init__(self, transport: "FakeTransport") -> None:
        self.transport = transport
        self.command: str | None = None
        self.stdin = b""
        self.timeout: float | None = None
        self.closed = False
        self._response: Response | None = None
        self._out: list[bytes] = []
        self._err: list[bytes] = []

    def settimeout(self, timeout: float | None) -> None:
        self.timeout = timeout

    def exec_command(self, command: str) -> None:
        self.command = command

    def sendall(self, data: bytes) -> None:
        if self.transport.host.stdin_stalls:
            raise TimeoutError("timed out")
        self.stdin += data

    def shutdown_write(self) -> None:
        self._response = self.transport.host.respond(self.command, self.stdin)
        self._out = _chunks(self._response.stdout)
        self._err = _chunks(self._response.stderr)

    def recv_ready(self) -> bool:
        return bool(self._out) or self._response.endless

    def recv(self, size: int) -> bytes:
        if not self._out and self._response.endless:
            return self._response.stdout.encode("utf-8")
        return self._out.pop(0)

    def recv_stderr_ready(self) -> bool:
        return bool(self._err)

    def recv_stderr(self, size: int) -> bytes:
        return self._err.pop(0)

    def exit_status_ready(self) -> bool:
        if self._response.endless:
            return False
        if self._out or self._err:
            return False
        if self._response.drop:
            self.transport.active = False
            return False
        return not self._response.hang

    def recv_exit_status(self) -> int:
        return self._response.exit_status

    def close(self) -> None:
        self.closed = True


class FakeTransport:
    def __init__(self, host: FakeHost) -> None:
        self.host = host
        self.active = True
        self.keepalive: int | None = None
        self.channels: list[FakeChannel] = []

    def is_active(self) -> bool:
        return self.active

    def open_session(self, timeout: float | None = None) -> FakeChannel:
        if not self.active:
            raise paramiko.SSHException("SSH session not active")
        channel = FakeChannel(self)
        self.channels.append(channel)
        return channel

    def set_keepalive(self, interval: int) -> None:
        self.keepalive = interval


class FakeSFTP:
    def __init__(self, host: FakeHost) -> None:
        self.host = host
        self.closed = False

    def putfo(self, fl, remotepath: str, file_size: int = 0, callback=None, confirm: bool = True):
        directory = posixpath.dirname(remotepath)
        if self.host.dirs is not None and directory not in self.host.dirs:
            raise OSError(errno.ENOENT, "No such file")
        if directory in self.host.readonly_dirs:
            raise OSError(errno.EACCES, "Permission denied")
        self.host.files[remotepath] = fl.read()

    def close(self) -> None:
        self.closed = True


class FakeSSHClient:
    """Replacement for paramiko.SSHClient bound to a FakeHost."""

    def __init__(self, host: FakeHost) -> None:
        self.host = host
        self.policy: paramiko.MissingHostKeyPolicy | None = None
        self.closed = False
        self._host_keys = paramiko.HostKeys()
        self._transport: FakeTransport | None = None

    def get_host_keys(self) -> paramiko.HostKeys:
        return self._host_keys

    def set_missing_host_key_policy(self, policy: paramiko.MissingHostKeyPolicy) -> None:
        self.policy = policy

    def connect(self, **kwargs) -> None:
        self.host.connects.append(kwargs)
        if self.host.connect_gate is not None:
            self.host.connect_gate.wait(5)
        if self.host.connect_error is not None:
            raise self.host.connect_error
        self._transport = FakeTransport(self.host)

    def get_transport(self) -> FakeTransport | None:
        return self._transport

    def open_sftp(self) -> FakeSFTP:
        return FakeSFTP(self.host)

    def close(self) -> None:
        self.closed = True
        if self._transport is not None:
            self._transport.active = False


def open_client(host: FakeHost) -> FakeSSHClient:
    """A FakeSSHClient that is already connected."""
    client = FakeSSHClient(host)
    client.connect()
    host.connects.clear()
    return client


class FakeManager:
    """SessionProvider handing out sessions on a FakeHost."""

    def __init__(self, host: FakeHost, command_timeout: float | None = None) -> None:
        self.host = host
        self.command_timeout = command_timeout
        self.acquire_error: ErrorCode | None = None
        self.sessions: dict = {}

    def acquire(self, credentials: ServerCredentials) -> Session:
        if self.acquire_error is not None:
            raise SessionError(credentials.identity, self.acquire_error)
        session = self.sessions.get(credentials.identity)
        if session is None or session.is_stale:
            session = Session(identity=credentials.identity, client=open_client(self.host))
            self.sessions[credentials.identity] = session
        return session

    def release(self, credentials: ServerCredentials) -> None:
        session = self.sessions.pop(credentials.identity, None)
        if session is not None:
            session.close()

    def close_all(self) -> None:
        for session in self.sessions.values():
            session.close()
        self.sessions.clear()

    def check_connection(self, credentials: ServerCredentials) -> tuple[str, ErrorCode]:
        return ("", ErrorCode.NO_ERROR)


class FakeDocker:
    """Responder emulating ``docker exec`` file access on a host.

    Containers map to {path: bytes}. Commands that are not ``docker exec``
    file operations go to ``fallback``.
    """

    def __init__(
        self,
        containers: dict[str, dict[str, bytes]] | None = None,
        fallback: Responder | None = None,
    ) -> None:
        self.containers = containers if containers is not None else {"amnezia-openvpn": {}}
        self.fallback = fallback or (lambda command, stdin: Response())

    def __call__(self, command: str, stdin: bytes) -> Response:
        try:
            argv = shlex.split(command)
        except ValueError:
            return self.fallback(command, stdin)
        if argv[:4] != ["sudo", "docker", "exec", "-i"] or len(argv) < 6:
            return self.fallback(command, stdin)

        name = argv[4]
        if name not in self.containers:
            return Response(
                stderr=f"Error response from daemon: No such container: {name}\n",
                exit_status=1,
            )
        if argv[5:7] != ["sh", "-c"]:
            return self.fallback(command, stdin)

        files = self.containers[name]
        inner = shlex.split(argv[7])
        if inner[0] == "mkdir":
            files[inner[-1]] = stdin
            return Response()
        if inner[0] == "[":
            path = inner[2]
            if path not in files:
                return Response(stderr=f"No such file: {path}\n", exit_status=2)
            return Response(stdout=base64.encodebytes(files[path]).decode("ascii"))
        return self.fallback(command, stdin)


@pytest.fixture
def credentials() -> ServerCredentials:
    """Password credentials for a test server."""
    return ServerCredentials(host="vpn.example.com", username="root", password="secret")


@pytest.fixture
def fake_host() -> FakeHost:
    """Fake server that succeeds at everything."""
    return FakeHost()


@pytest.fixture
def session(fake_host: FakeHost, credentials: ServerCredentials) -> Session:
    """Open session on the fake server."""
    return Session(identity=credentials.identity, client=open_client(fake_host))


@pytest.fixture
def manager(fake_host: FakeHost) -> FakeManager:
    """Session provider on the fake server."""
    return FakeManager(fake_host)
