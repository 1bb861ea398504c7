"""Translation of transport and process failures into ErrorCode.

Everything paramiko (or the socket layer underneath it) can raise is
classified here and nowhere else. Review CONNECTION_ERROR_TABLE whenever
the paramiko version changes; tests walk ``paramiko.ssh_exception`` to make
sure every exception class it defines resolves to a failure code.
"""

import logging

import paramiko

from outpost_mcp.models import ErrorCode, Identity

logger = logging.getLogger(__name__)


class UnknownHostKeyError(paramiko.SSHException):
    """Server presented a host key that was not pre-approved."""


class PrivateKeyError(paramiko.SSHException):
    """Private key material could not be parsed."""


class SessionError(Exception):
    """Failed to acquire an SSH session.

    Raised only by ConnectionManager.acquire; every public operation turns
    it back into its ``code``.
    """

    def __init__(self, identity: Identity, code: ErrorCode, original_error: BaseException | None = None):
        """Initialize session error.

        Args:
            identity: (host, port, username) of the failed session
            code: Translated error code
            original_error: Exception raised by the transport, if any
        """
        self.identity = identity
        self.code = code
        self.original_error = original_error
        host, port, user = identity
        detail = f": {original_error}" if original_error else ""
        super().__init__(f"Cannot connect to {user}@{host}:{port} ({code.name}){detail}")


# Most specific classes first is not required: lookup walks the MRO of the
# raised exception, so a subclass entry always wins over its base.
CONNECTION_ERROR_TABLE: dict[type[BaseException], ErrorCode] = {
    UnknownHostKeyError: ErrorCode.SSH_HOST_KEY_ERROR,
    paramiko.BadHostKeyException: ErrorCode.SSH_HOST_KEY_ERROR,
    PrivateKeyError: ErrorCode.SSH_KEY_FILE_ERROR,
    paramiko.PasswordRequiredException: ErrorCode.SSH_KEY_FILE_ERROR,
    paramiko.BadAuthenticationType: ErrorCode.SSH_AUTHENTICATION_FAILED,
    paramiko.ssh_exception.PartialAuthentication: ErrorCode.SSH_AUTHENTICATION_FAILED,
    paramiko.AuthenticationException: ErrorCode.SSH_AUTHENTICATION_FAILED,
    paramiko.ChannelException: ErrorCode.SSH_CHANNEL_ERROR,
    paramiko.ProxyCommandFailure: ErrorCode.SSH_HOST_UNREACHABLE,
    paramiko.ssh_exception.NoValidConnectionsError: ErrorCode.SSH_HOST_UNREACHABLE,
    paramiko.SSHException: ErrorCode.SSH_PROTOCOL_ERROR,
    EOFError: ErrorCode.SSH_DISCONNECTED,
    TimeoutError: ErrorCode.SSH_TIMEOUT,
    ConnectionRefusedError: ErrorCode.SSH_HOST_UNREACHABLE,
    ConnectionResetError: ErrorCode.SSH_DISCONNECTED,
    ConnectionAbortedError: ErrorCode.SSH_DISCONNECTED,
    BrokenPipeError: ErrorCode.SSH_DISCONNECTED,
    OSError: ErrorCode.SSH_HOST_UNREACHABLE,
}


def from_connection_error(error: BaseException) -> ErrorCode:
    """Map a transport exception to an ErrorCode.

    Args:
        error: Exception raised while connecting or talking to the host

    Returns:
        The table entry for the closest class in the exception's MRO, or
        SSH_CONNECTION_FAILED for anything unmapped (never NO_ERROR)
    """
    for klass in type(error).__mro__:
        code = CONNECTION_ERROR_TABLE.get(klass)
        if code is not None:
            return code

    logger.warning(
        "Unmapped transport error %s: %s",
        type(error).__name__,
        error,
    )
    return ErrorCode.SSH_CONNECTION_FAILED


def from_process_exit(exit_status: int | None, signaled: bool) -> ErrorCode:
    """Map a remote process exit to an ErrorCode.

    Args:
        exit_status: Exit status reported by the server, None if none was sent
        signaled: Whether the process was terminated by a signal

    Returns:
        NO_ERROR for status 0, PROCESS_KILLED for signals or a missing
        status, PROCESS_FAILED for any other status
    """
    if signaled or exit_status is None:
        return ErrorCode.PROCESS_KILLED
    if exit_status == 0:
        return ErrorCode.NO_ERROR
    return ErrorCode.PROCESS_FAILED


# Line prefix a script prints to report a failure it detected itself
SCRIPT_ERROR_MARKER = "OUTPOST_ERROR:"
PORT_ALLOCATED_MARKER = "port is already allocated"
CONTAINER_MISSING_MARKERS = ("No such container", "is not running")


def from_script_output(code: ErrorCode, stdout: list[str], stderr: list[str]) -> ErrorCode:
    """Refine a script's ErrorCode using what it printed.

    Connection-layer codes are returned unchanged. A script that reports
    its own failure with SCRIPT_ERROR_MARKER fails even when it exits 0.

    Args:
        code: Code returned by the executor
        stdout: Collected stdout lines
        stderr: Collected stderr lines
    """
    if code.is_connection_error:
        return code
    if not code.ok:
        errors = "\n".join(stderr)
        if PORT_ALLOCATED_MARKER in errors:
            return ErrorCode.SERVER_PORT_ALREADY_ALLOCATED
        if any(marker in errors for marker in CONTAINER_MISSING_MARKERS):
            return ErrorCode.CONTAINER_NOT_FOUND
    if any(line.startswith(SCRIPT_ERROR_MARKER) for line in stdout):
        return ErrorCode.SCRIPT_REPORTED_FAILURE
    return code
