"""Unified result codes for provisioning operations."""

from enum import IntEnum


class ErrorCode(IntEnum):
    """Outcome of a provisioning operation.

    Codes are grouped in numeric ranges so callers can classify a failure
    without enumerating members:

    - 0: success
    - 100-199: SSH connection layer
    - 200-299: remote process layer
    - 300-399: application layer (script or resource specific)
    """

    NO_ERROR = 0
    UNKNOWN_ERROR = 1

    # SSH connection layer
    SSH_CONNECTION_FAILED = 100
    SSH_TIMEOUT = 101
    SSH_AUTHENTICATION_FAILED = 102
    SSH_HOST_UNREACHABLE = 103
    SSH_PROTOCOL_ERROR = 104
    SSH_HOST_KEY_ERROR = 105
    SSH_KEY_FILE_ERROR = 106
    SSH_DISCONNECTED = 107
    SSH_CHANNEL_ERROR = 108

    # Remote process layer
    PROCESS_FAILED = 200
    PROCESS_KILLED = 201
    PROCESS_TIMEOUT = 202

    # Application layer
    SCRIPT_REPORTED_FAILURE = 300
    CONTAINER_NOT_FOUND = 301
    REMOTE_FILE_NOT_FOUND = 302
    REMOTE_FILE_ACCESS_DENIED = 303
    SERVER_CHECK_FAILED = 304
    SERVER_PORT_ALREADY_ALLOCATED = 305

    @property
    def ok(self) -> bool:
        """True only for NO_ERROR."""
        return self is ErrorCode.NO_ERROR

    @property
    def is_connection_error(self) -> bool:
        """Check if the code belongs to the SSH connection layer."""
        return 100 <= self.value < 200

    @property
    def is_process_error(self) -> bool:
        """Check if the code belongs to the remote process layer."""
        return 200 <= self.value < 300

    @property
    def is_application_error(self) -> bool:
        """Check if the code belongs to the application layer."""
        return 300 <= self.value < 400

    def describe(self) -> str:
        """Human-readable description for result messages."""
        return _DESCRIPTIONS.get(self, self.name.replace("_", " ").lower())


_DESCRIPTIONS: dict[ErrorCode, str] = {
    ErrorCode.NO_ERROR: "no error",
    ErrorCode.SSH_CONNECTION_FAILED: "SSH connection failed",
    ErrorCode.SSH_TIMEOUT: "SSH connection timed out",
    ErrorCode.SSH_AUTHENTICATION_FAILED: "SSH authentication failed",
    ErrorCode.SSH_HOST_UNREACHABLE: "host unreachable",
    ErrorCode.SSH_PROTOCOL_ERROR: "SSH protocol error",
    ErrorCode.SSH_HOST_KEY_ERROR: "host key not trusted",
    ErrorCode.SSH_KEY_FILE_ERROR: "private key could not be loaded",
    ErrorCode.SSH_DISCONNECTED: "SSH session closed",
    ErrorCode.SSH_CHANNEL_ERROR: "SSH channel could not be opened",
    ErrorCode.PROCESS_FAILED: "remote process exited with an error",
    ErrorCode.PROCESS_KILLED: "remote process was killed",
    ErrorCode.PROCESS_TIMEOUT: "remote process timed out",
    ErrorCode.SCRIPT_REPORTED_FAILURE: "provisioning script reported a failure",
    ErrorCode.CONTAINER_NOT_FOUND: "container not found or not running",
    ErrorCode.REMOTE_FILE_NOT_FOUND: "remote file not found",
    ErrorCode.REMOTE_FILE_ACCESS_DENIED: "remote file access denied",
    ErrorCode.SERVER_CHECK_FAILED: "server check failed",
    ErrorCode.SERVER_PORT_ALREADY_ALLOCATED: "server port already allocated",
}
