"""Remote script execution with line-by-line output streaming."""

import codecs
import logging
import time
from typing import TYPE_CHECKING

import paramiko

from outpost_mcp.models import ErrorCode, ScriptExecutionResult, ServerCredentials, Session
from outpost_mcp.protocols import LineSink, null_sink
from outpost_mcp.services.errors import SessionError, from_connection_error, from_process_exit
from outpost_mcp.services.templating import RenderedScript

if TYPE_CHECKING:
    from outpost_mcp.protocols import SessionProvider

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 32768
_POLL_INTERVAL = 0.05
# paramiko reports -1 when the channel closed without an exit-status message
_NO_EXIT_STATUS = -1


class _LineSplitter:
    """Decode a byte stream incrementally and emit complete lines."""

    def __init__(self, sink: LineSink, store: list[str]) -> None:
        self._sink = sink
        self._store = store
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, data: bytes) -> None:
        self._pending += self._decoder.decode(data)
        *lines, self._pending = self._pending.split("\n")
        for line in lines:
            self._emit(line)

    def flush(self) -> None:
        self._pending += self._decoder.decode(b"", final=True)
        if self._pending:
            self._emit(self._pending)
            self._pending = ""

    def _emit(self, line: str) -> None:
        line = line.rstrip("\r")
        self._store.append(line)
        self._sink(line)


def _summary(script: str) -> str:
    """First non-empty line of a script, shortened for logs."""
    for line in script.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            return line if len(line) <= 60 else line[:60] + "..."
    return "<empty>"


def execute(
    session: Session,
    script: RenderedScript,
    stdout: LineSink = null_sink,
    stderr: LineSink = null_sink,
    *,
    stdin: bytes | None = None,
    timeout: float | None = None,
) -> ScriptExecutionResult:
    """Run a rendered script on an open session and collect its outcome.

    Holds the session lock for the whole run, so two scripts never share
    the channel concurrently. Output lines are passed to the sinks as soon
    as they arrive; stdout and stderr each keep their own order.

    Args:
        session: Session from ConnectionManager.acquire
        script: Output of replace_vars
        stdout: Sink for stdout lines
        stderr: Sink for stderr lines
        stdin: Bytes written to the process before closing its stdin
        timeout: Seconds before the process is abandoned (None = no limit)

    Returns:
        ScriptExecutionResult with collected lines, exit status and code

    Raises:
        TypeError: If ``script`` did not come from replace_vars
    """
    if not isinstance(script, RenderedScript):
        raise TypeError("Scripts must be rendered with replace_vars before execution")

    result = ScriptExecutionResult()
    host, port, user = session.identity

    with session.lock:
        if session.is_stale:
            logger.warning("Session to %s@%s:%d is closed, not running script", user, host, port)
            result.code = ErrorCode.SSH_DISCONNECTED
            return result

        session.touch()
        transport = session.client.get_transport()
        start = time.perf_counter()
        logger.debug("Running on %s: %s", host, _summary(script))

        try:
            channel = transport.open_session(timeout=timeout)
        except (paramiko.SSHException, EOFError, OSError) as e:
            logger.error("Cannot open channel to %s: %s", host, e)
            result.code = from_connection_error(e)
            return result

        try:
            _drive(channel, transport, script, stdout, stderr, stdin, timeout, result)
        except (paramiko.SSHException, EOFError, OSError) as e:
            logger.error("Transport failure while running script on %s: %s", host, e)
            result.code = from_connection_error(e)
        finally:
            channel.close()

    duration_ms = (time.perf_counter() - start) * 1000
    logger.log(
        logging.INFO if result.code.ok else logging.WARNING,
        "Script on %s finished: %s (exit=%s) [%.1fms]",
        host,
        result.code.name,
        result.exit_status,
        duration_ms,
    )
    return result


def _drive(
    channel: paramiko.Channel,
    transport: paramiko.Transport,
    script: str,
    stdout: LineSink,
    stderr: LineSink,
    stdin: bytes | None,
    timeout: float | None,
    result: ScriptExecutionResult,
) -> None:
    """Pump one channel until the remote process exits."""
    out = _LineSplitter(stdout, result.stdout)
    err = _LineSplitter(stderr, result.stderr)
    deadline = time.monotonic() + timeout if timeout else None

    channel.settimeout(timeout)
    channel.exec_command(script)
    if stdin:
        try:
            channel.sendall(stdin)
        except TimeoutError:
            # The process stopped reading its input
            result.code = ErrorCode.PROCESS_TIMEOUT
            return
    channel.shutdown_write()

    while True:
        if deadline is not None and time.monotonic() > deadline:
            out.flush()
            err.flush()
            result.code = ErrorCode.PROCESS_TIMEOUT
            return

        received = False
        if channel.recv_ready():
            out.feed(channel.recv(_CHUNK_SIZE))
            received = True
        if channel.recv_stderr_ready():
            err.feed(channel.recv_stderr(_CHUNK_SIZE))
            received = True
        if received:
            continue

        if channel.exit_status_ready():
            break
        if not transport.is_active():
            out.flush()
            err.flush()
            result.code = ErrorCode.SSH_DISCONNECTED
            return
        time.sleep(_POLL_INTERVAL)

    while channel.recv_ready():
        out.feed(channel.recv(_CHUNK_SIZE))
    while channel.recv_stderr_ready():
        err.feed(channel.recv_stderr(_CHUNK_SIZE))
    out.flush()
    err.flush()

    status = channel.recv_exit_status()
    if status == _NO_EXIT_STATUS and not transport.is_active():
        result.code = ErrorCode.SSH_DISCONNECTED
        return

    signaled = status == _NO_EXIT_STATUS
    result.killed = signaled
    result.exit_status = None if signaled else status
    result.code = from_process_exit(result.exit_status, signaled)


def run(
    session: Session,
    script: RenderedScript,
    stdout: LineSink = null_sink,
    stderr: LineSink = null_sink,
    *,
    stdin: bytes | None = None,
    timeout: float | None = None,
) -> ErrorCode:
    """Run a rendered script and return only its ErrorCode.

    See execute() for argument details.
    """
    return execute(session, script, stdout, stderr, stdin=stdin, timeout=timeout).code


def run_on(
    manager: "SessionProvider",
    credentials: ServerCredentials,
    script: RenderedScript,
    stdout: LineSink = null_sink,
    stderr: LineSink = null_sink,
    *,
    stdin: bytes | None = None,
) -> ErrorCode:
    """Acquire the session for ``credentials`` and run a script on it.

    Uses the manager's command timeout. Connection failures are returned
    as their ErrorCode.
    """
    try:
        session = manager.acquire(credentials)
    except SessionError as e:
        return e.code
    return run(session, script, stdout, stderr, stdin=stdin, timeout=manager.command_timeout)
