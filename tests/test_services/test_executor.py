"""Tests for remote script execution."""

import threading
import time

import pytest
from conftest import FakeHost, FakeManager, Response

from outpost_mcp.models import ErrorCode, Session
from outpost_mcp.protocols import LineCollector
from outpost_mcp.services.executor import execute, run, run_on
from outpost_mcp.services.templating import replace_vars


def _script(text: str = "echo hello"):
    return replace_vars(text, [])


def test_streams_lines_in_order(fake_host: FakeHost, session: Session) -> None:
    """Stdout lines reach the sink in order without newlines."""
    fake_host.responder = lambda command, stdin: Response(stdout="A\nB\n")
    out = LineCollector()

    assert run(session, _script(), stdout=out) is ErrorCode.NO_ERROR
    assert out.lines == ["A", "B"]


def test_final_partial_line_is_flushed(fake_host: FakeHost, session: Session) -> None:
    """Output without a trailing newline still produces its last line."""
    fake_host.responder = lambda command, stdin: Response(stdout="A\nB")
    out = LineCollector()

    run(session, _script(), stdout=out)
    assert out.lines == ["A", "B"]


def test_crlf_and_multibyte(fake_host: FakeHost, session: Session) -> None:
    """CR is stripped and UTF-8 split across reads decodes intact."""
    fake_host.responder = lambda command, stdin: Response(stdout="héllo wörld\r\nçà\n")
    out = LineCollector()

    run(session, _script(), stdout=out)
    assert out.lines == ["héllo wörld", "çà"]


def test_stdout_and_stderr_are_separate(fake_host: FakeHost, session: Session) -> None:
    """Each stream keeps its own lines."""
    fake_host.responder = lambda command, stdin: Response(stdout="out1\nout2\n", stderr="err1\n")
    out, err = LineCollector(), LineCollector()

    result = execute(session, _script(), out, err)
    assert out.lines == ["out1", "out2"]
    assert err.lines == ["err1"]
    assert result.stdout == ["out1", "out2"]
    assert result.error == "err1"


def test_script_is_sent_as_command(fake_host: FakeHost, session: Session) -> None:
    """The rendered text is what runs remotely."""
    run(session, replace_vars("docker rm $NAME", [("NAME", "vpn")]))
    assert fake_host.commands == ["docker rm vpn"]


def test_stdin_is_delivered(fake_host: FakeHost, session: Session) -> None:
    """stdin bytes reach the remote process."""
    run(session, _script("cat > /tmp/x"), stdin=b"payload")
    assert fake_host.stdins == [b"payload"]


def test_nonzero_exit_is_process_failed(fake_host: FakeHost, session: Session) -> None:
    """Exit status 3 is PROCESS_FAILED."""
    fake_host.responder = lambda command, stdin: Response(exit_status=3)

    result = execute(session, _script())
    assert result.code is ErrorCode.PROCESS_FAILED
    assert result.exit_status == 3
    assert not result.killed


def test_missing_exit_status_is_killed(fake_host: FakeHost, session: Session) -> None:
    """A channel closing without exit status means the process was killed."""
    fake_host.responder = lambda command, stdin: Response(exit_status=-1)

    result = execute(session, _script())
    assert result.code is ErrorCode.PROCESS_KILLED
    assert result.killed
    assert result.exit_status is None


def test_dropped_connection_is_disconnected(fake_host: FakeHost, session: Session) -> None:
    """Losing the transport before exit is SSH_DISCONNECTED, not a process failure."""
    fake_host.responder = lambda command, stdin: Response(stdout="partial", drop=True)
    out = LineCollector()

    assert run(session, _script(), stdout=out) is ErrorCode.SSH_DISCONNECTED
    assert out.lines == ["partial"]


def test_timeout(fake_host: FakeHost, session: Session) -> None:
    """A process outliving the timeout is PROCESS_TIMEOUT and its channel is closed."""
    fake_host.responder = lambda command, stdin: Response(hang=True)

    assert run(session, _script(), timeout=0.2) is ErrorCode.PROCESS_TIMEOUT
    channel = session.client.get_transport().channels[-1]
    assert channel.closed


def test_timeout_while_output_keeps_arriving(fake_host: FakeHost, session: Session) -> None:
    """A process that never stops printing still hits the timeout."""
    fake_host.responder = lambda command, stdin: Response(stdout="tick\n", endless=True)
    out = LineCollector()
    outcome = []

    worker = threading.Thread(
        target=lambda: outcome.append(run(session, _script("yes tick"), stdout=out, timeout=0.3))
    )
    worker.start()
    worker.join(5)

    assert not worker.is_alive()
    assert outcome == [ErrorCode.PROCESS_TIMEOUT]
    assert out.lines[:2] == ["tick", "tick"]
    assert session.client.get_transport().channels[-1].closed


def test_stalled_stdin_is_process_timeout(fake_host: FakeHost, session: Session) -> None:
    """A process that stops reading its stdin times out at the process layer."""
    fake_host.stdin_stalls = True

    code = run(session, _script("cat > /dev/null"), stdin=b"payload", timeout=0.2)

    assert code is ErrorCode.PROCESS_TIMEOUT
    assert session.client.get_transport().channels[-1].closed


def test_channel_closed_after_success(session: Session) -> None:
    """Channels are closed after every run."""
    run(session, _script())
    assert session.client.get_transport().channels[-1].closed


def test_stale_session_fails_fast(fake_host: FakeHost, session: Session) -> None:
    """A closed session returns SSH_DISCONNECTED without running anything."""
    session.close()

    assert run(session, _script()) is ErrorCode.SSH_DISCONNECTED
    assert fake_host.commands == []


def test_plain_string_rejected(session: Session) -> None:
    """Only templated scripts may run."""
    with pytest.raises(TypeError):
        run(session, "rm -rf /")


def test_executions_on_one_session_are_serialised(fake_host: FakeHost, session: Session) -> None:
    """A second script waits until the first has finished."""
    release = threading.Event()

    def responder(command: str, stdin: bytes) -> Response:
        if command == "first":
            release.wait(5)
        return Response()

    fake_host.responder = responder
    first = threading.Thread(target=run, args=(session, _script("first")))
    second = threading.Thread(target=run, args=(session, _script("second")))

    first.start()
    time.sleep(0.1)
    second.start()
    time.sleep(0.2)
    assert fake_host.commands == ["first"]

    release.set()
    first.join(5)
    second.join(5)
    assert fake_host.commands == ["first", "second"]


class TestRunOn:
    """Tests for run_on."""

    def test_acquires_and_runs(self, fake_host: FakeHost, credentials) -> None:
        """run_on opens a session and runs the script."""
        manager = FakeManager(fake_host)
        assert run_on(manager, credentials, _script()) is ErrorCode.NO_ERROR
        assert fake_host.commands == ["echo hello"]

    def test_connection_failure_becomes_code(self, fake_host: FakeHost, credentials) -> None:
        """A failed acquire is returned as its ErrorCode."""
        manager = FakeManager(fake_host)
        manager.acquire_error = ErrorCode.SSH_AUTHENTICATION_FAILED

        assert run_on(manager, credentials, _script()) is ErrorCode.SSH_AUTHENTICATION_FAILED
        assert fake_host.commands == []

    def test_uses_manager_timeout(self, fake_host: FakeHost, credentials) -> None:
        """The manager's command timeout applies."""
        fake_host.responder = lambda command, stdin: Response(hang=True)
        manager = FakeManager(fake_host, command_timeout=0.2)

        assert run_on(manager, credentials, _script()) is ErrorCode.PROCESS_TIMEOUT
