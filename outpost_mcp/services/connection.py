"""SSH session cache keyed by credential identity.

Locking Strategy:
- `_meta_lock`: Protects the _sessions dict and _identity_locks dict structure
- Per-identity locks: Make lookup + open + insert atomic for one identity,
  so two threads asking for the same server never open two connections
- Lock acquisition order: Always per-identity lock first, then meta-lock if needed
- Per-identity locks are dropped when their session is removed

Sessions are opened lazily, reused while their transport is alive, and
closed on release() or close_all(). Failed connections are not retried.
"""

import base64
import binascii
import io
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import paramiko

from outpost_mcp.config.host_keys import known_hosts_name
from outpost_mcp.models import ErrorCode, Identity, ServerCredentials, Session
from outpost_mcp.protocols import LineCollector
from outpost_mcp.services.errors import (
    PrivateKeyError,
    SessionError,
    UnknownHostKeyError,
    from_connection_error,
)
from outpost_mcp.services.executor import run
from outpost_mcp.services.templating import replace_vars

logger = logging.getLogger(__name__)

CHECK_CONNECTION_SCRIPT = "uname -a"

_KEY_CLASSES: tuple[type[paramiko.PKey], ...] = (
    paramiko.Ed25519Key,
    paramiko.ECDSAKey,
    paramiko.RSAKey,
)


class RejectUnknownHostKeyPolicy(paramiko.MissingHostKeyPolicy):
    """Refuse any host key that is neither pinned nor in known_hosts."""

    def missing_host_key(self, client: paramiko.SSHClient, hostname: str, key: paramiko.PKey) -> None:
        raise UnknownHostKeyError(
            f"Host key for {hostname} ({key.get_name()} "
            f"{key.get_fingerprint().hex()}) is not trusted"
        )


def load_private_key(text: str, passphrase: str | None = None) -> paramiko.PKey:
    """Parse private key material held in memory.

    Args:
        text: PEM or OpenSSH private key text
        passphrase: Passphrase for encrypted keys

    Returns:
        Loaded key

    Raises:
        paramiko.PasswordRequiredException: If the key is encrypted and no
            passphrase was given
        PrivateKeyError: If no supported key type can parse the text
    """
    for key_class in _KEY_CLASSES:
        try:
            return key_class.from_private_key(io.StringIO(text), password=passphrase)
        except paramiko.PasswordRequiredException:
            raise
        except (paramiko.SSHException, ValueError):
            continue
    raise PrivateKeyError("Unsupported or invalid private key")


def parse_host_key(line: str) -> paramiko.PKey:
    """Parse an OpenSSH public key line ("<type> <base64> [comment]").

    Raises:
        UnknownHostKeyError: If the line is not a usable public key
    """
    parts = line.split()
    if len(parts) < 2:
        raise UnknownHostKeyError(f"Malformed pinned host key: {line!r}")
    key_type, data = parts[0], parts[1]
    try:
        return paramiko.PKey.from_type_string(key_type, base64.b64decode(data))
    except (binascii.Error, ValueError, paramiko.SSHException, paramiko.UnknownKeyType) as e:
        raise UnknownHostKeyError(f"Malformed pinned host key: {e}") from e


class ConnectionManager:
    """Cache of open SSH sessions, one per (host, port, username)."""

    def __init__(
        self,
        connect_timeout: int = 10,
        keepalive_interval: int = 30,
        command_timeout: float | None = None,
        known_hosts: str | None = None,
    ) -> None:
        """Initialize the manager with fixed connection parameters.

        Args:
            connect_timeout: Seconds allowed for TCP connect, banner and auth
            keepalive_interval: Seconds between keepalives (0 disables)
            command_timeout: Default script timeout used by run_on()
            known_hosts: Path to known_hosts, or None to disable verification
                for credentials without a pinned host key
        """
        self.connect_timeout = connect_timeout
        self.keepalive_interval = keepalive_interval
        self.command_timeout = command_timeout
        self._known_hosts = known_hosts
        self._sessions: dict[Identity, Session] = {}
        self._identity_locks: dict[Identity, threading.Lock] = {}
        self._meta_lock = threading.Lock()

        if self._known_hosts is None:
            logger.warning(
                "SSH host key verification DISABLED for hosts without a pinned key - "
                "vulnerable to MITM attacks. Set OUTPOST_KNOWN_HOSTS to a known_hosts file."
            )
        else:
            logger.info("SSH host key verification enabled (known_hosts=%s)", self._known_hosts)

        logger.info(
            "ConnectionManager initialized (connect_timeout=%ds, keepalive=%ds)",
            connect_timeout,
            keepalive_interval,
        )

    @contextmanager
    def _identity_locked(self, identity: Identity) -> Iterator[None]:
        """Hold the lock for one identity.

        _remove evicts the lock of a released identity, so a waiter that
        wakes up holding an evicted lock retries with the current one.
        """
        while True:
            with self._meta_lock:
                lock = self._identity_locks.get(identity)
                if lock is None:
                    lock = self._identity_locks[identity] = threading.Lock()
            lock.acquire()
            with self._meta_lock:
                current = self._identity_locks.get(identity) is lock
            if current:
                break
            lock.release()
        try:
            yield
        finally:
            lock.release()

    def acquire(self, credentials: ServerCredentials) -> Session:
        """Get the cached session for these credentials, opening one if needed.

        Args:
            credentials: Server credentials

        Returns:
            Live session

        Raises:
            SessionError: If the connection cannot be established
        """
        identity = credentials.identity
        with self._identity_locked(identity):
            session = self._sessions.get(identity)

            if session and not session.is_stale:
                session.touch()
                logger.debug(
                    "Reusing existing session to %s (pool_size=%d)",
                    credentials.display_name,
                    len(self._sessions),
                )
                return session

            if session:
                logger.info(
                    "Session to %s is stale, opening a new one",
                    credentials.display_name,
                )
                session.close()

            logger.info("Opening SSH connection to %s", credentials.display_name)
            try:
                client = self._open_client(credentials)
            except SessionError:
                with self._meta_lock:
                    self._sessions.pop(identity, None)
                    self._identity_locks.pop(identity, None)
                raise
            session = Session(identity=identity, client=client)

            with self._meta_lock:
                self._sessions[identity] = session

            logger.info(
                "SSH connection established to %s (pool_size=%d)",
                credentials.display_name,
                len(self._sessions),
            )
            return session

    def _open_client(self, credentials: ServerCredentials) -> paramiko.SSHClient:
        """Connect a new paramiko client.

        Raises:
            SessionError: If key loading or connecting fails
        """
        client = paramiko.SSHClient()
        try:
            self._configure_host_keys(client, credentials)
            pkey = None
            if credentials.private_key:
                pkey = load_private_key(
                    credentials.private_key,
                    credentials.private_key_passphrase,
                )

            client.connect(
                hostname=credentials.host,
                port=credentials.port,
                username=credentials.username,
                password=credentials.password,
                pkey=pkey,
                timeout=self.connect_timeout,
                banner_timeout=self.connect_timeout,
                auth_timeout=self.connect_timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except Exception as e:
            client.close()
            code = from_connection_error(e)
            logger.error(
                "Connection to %s failed: %s (%s)",
                credentials.display_name,
                code.name,
                e,
            )
            raise SessionError(credentials.identity, code, e) from e

        transport = client.get_transport()
        if transport is not None and self.keepalive_interval > 0:
            transport.set_keepalive(self.keepalive_interval)
        return client

    def _configure_host_keys(self, client: paramiko.SSHClient, credentials: ServerCredentials) -> None:
        """Install the trusted host keys and the missing-key policy."""
        if credentials.host_key:
            key = parse_host_key(credentials.host_key)
            client.get_host_keys().add(
                known_hosts_name(credentials.host, credentials.port),
                key.get_name(),
                key,
            )
            client.set_missing_host_key_policy(RejectUnknownHostKeyPolicy())
            return

        if self._known_hosts is None:
            logger.warning(
                "Accepting unverified host key for %s (verification disabled)",
                credentials.display_name,
            )
            client.set_missing_host_key_policy(paramiko.WarningPolicy())
            return

        if Path(self._known_hosts).exists():
            client.get_host_keys().load(self._known_hosts)
        client.set_missing_host_key_policy(RejectUnknownHostKeyPolicy())

    def release(self, credentials: ServerCredentials) -> None:
        """Close and evict the session for these credentials.

        Calling it for an identity without a session is a no-op.
        """
        self._remove(credentials.identity)

    def _remove(self, identity: Identity) -> None:
        with self._identity_locked(identity):
            with self._meta_lock:
                session = self._sessions.pop(identity, None)
                self._identity_locks.pop(identity, None)
            if session is None:
                logger.debug("No session to remove for %s@%s:%d", identity[2], identity[0], identity[1])
                return
            logger.info(
                "Removing session to %s@%s:%d (pool_size=%d)",
                identity[2],
                identity[0],
                identity[1],
                len(self._sessions),
            )
            session.close()

    def close_all(self) -> None:
        """Close every cached session."""
        with self._meta_lock:
            identities = list(self._sessions.keys())

        if identities:
            logger.info("Closing all %d session(s)", len(identities))
            for identity in identities:
                self._remove(identity)

    def check_connection(self, credentials: ServerCredentials) -> tuple[str, ErrorCode]:
        """Probe a server and return its system identification.

        Args:
            credentials: Server credentials

        Returns:
            Tuple of (``uname -a`` output, ErrorCode). The text is empty
            unless the code is NO_ERROR.
        """
        try:
            session = self.acquire(credentials)
        except SessionError as e:
            return ("", e.code)

        collector = LineCollector()
        code = run(
            session,
            replace_vars(CHECK_CONNECTION_SCRIPT, []),
            stdout=collector,
            timeout=float(self.connect_timeout) if self.connect_timeout else None,
        )
        if not code.ok:
            return ("", code)
        return (collector.text.strip(), code)

    @property
    def pool_size(self) -> int:
        """Return the current number of cached sessions."""
        return len(self._sessions)

    @property
    def active_identities(self) -> list[Identity]:
        """Return identities with cached sessions."""
        with self._meta_lock:
            return list(self._sessions.keys())
