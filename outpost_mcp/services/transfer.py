"""File transfer to hosts and into/out of containers.

Host uploads go over SFTP. Container files travel through ``docker exec``:
uploads stream the content on stdin, downloads print it base64-encoded so
arbitrary text survives the line splitter unchanged.
"""

import base64
import binascii
import io
import logging
import posixpath
import shlex

import paramiko

from outpost_mcp.models import DockerContainer, ErrorCode, ServerCredentials
from outpost_mcp.protocols import LineCollector, SessionProvider
from outpost_mcp.services.errors import (
    CONTAINER_MISSING_MARKERS,
    SessionError,
    from_connection_error,
)
from outpost_mcp.services.executor import run_on
from outpost_mcp.services.templating import replace_vars

logger = logging.getLogger(__name__)

DOCKER_EXEC_SCRIPT = "sudo docker exec -i $CONTAINER_NAME sh -c $CONTAINER_COMMAND"

_MISSING_FILE_MARKER = "No such file:"


def _container_error(stderr: LineCollector) -> ErrorCode | None:
    """Classify docker exec failures that are not plain process failures."""
    if any(stderr.contains(marker) for marker in CONTAINER_MISSING_MARKERS):
        return ErrorCode.CONTAINER_NOT_FOUND
    if stderr.contains(_MISSING_FILE_MARKER):
        return ErrorCode.REMOTE_FILE_NOT_FOUND
    return None


def _docker_exec_vars(container: DockerContainer, command: str) -> list[tuple[str, str]]:
    return [
        ("CONTAINER_NAME", container.container_name),
        ("CONTAINER_COMMAND", shlex.quote(command)),
    ]


def upload_file(
    manager: SessionProvider,
    credentials: ServerCredentials,
    data: bytes,
    remote_path: str,
) -> ErrorCode:
    """Write bytes to a path on the host over SFTP.

    Args:
        manager: Session provider
        credentials: Server credentials
        data: File content
        remote_path: Absolute destination path on the host

    Returns:
        NO_ERROR, REMOTE_FILE_NOT_FOUND when the parent directory is
        missing, REMOTE_FILE_ACCESS_DENIED when it is not writable, or a
        connection-layer code
    """
    try:
        session = manager.acquire(credentials)
    except SessionError as e:
        return e.code

    with session.lock:
        if session.is_stale:
            return ErrorCode.SSH_DISCONNECTED
        session.touch()
        sftp = None
        try:
            sftp = session.client.open_sftp()
            sftp.putfo(io.BytesIO(data), remote_path)
        except FileNotFoundError:
            logger.warning("Upload to %s:%s failed: no such directory", credentials.host, remote_path)
            return ErrorCode.REMOTE_FILE_NOT_FOUND
        except PermissionError:
            logger.warning("Upload to %s:%s failed: permission denied", credentials.host, remote_path)
            return ErrorCode.REMOTE_FILE_ACCESS_DENIED
        except (paramiko.SSHException, EOFError, OSError) as e:
            logger.error("Upload to %s:%s failed: %s", credentials.host, remote_path, e)
            return from_connection_error(e)
        finally:
            if sftp is not None:
                sftp.close()

    logger.info("Uploaded %d bytes to %s:%s", len(data), credentials.host, remote_path)
    return ErrorCode.NO_ERROR


def upload_text_file_to_container(
    manager: SessionProvider,
    container: DockerContainer,
    credentials: ServerCredentials,
    content: str,
    path: str,
) -> ErrorCode:
    """Write a text file inside a running container.

    Parent directories are created as needed and an existing file is
    replaced.

    Returns:
        NO_ERROR, CONTAINER_NOT_FOUND if the container is absent or
        stopped, or the failing process/connection code
    """
    directory = posixpath.dirname(path) or "/"
    command = f"mkdir -p {shlex.quote(directory)} && cat > {shlex.quote(path)}"
    script = replace_vars(DOCKER_EXEC_SCRIPT, _docker_exec_vars(container, command))

    stderr = LineCollector()
    code = run_on(manager, credentials, script, stderr=stderr, stdin=content.encode("utf-8"))
    if not code.ok:
        return _container_error(stderr) or code

    logger.info("Uploaded %s into %s on %s", path, container.container_name, credentials.host)
    return ErrorCode.NO_ERROR


def get_text_file_from_container(
    manager: SessionProvider,
    container: DockerContainer,
    credentials: ServerCredentials,
    path: str,
) -> tuple[str, ErrorCode]:
    """Read a text file from a running container.

    Returns:
        Tuple of (file content, ErrorCode). The content is empty unless
        the code is NO_ERROR.
    """
    quoted = shlex.quote(path)
    command = (
        f"[ -f {quoted} ] || {{ echo '{_MISSING_FILE_MARKER} '{quoted} >&2; exit 2; }}; "
        f"base64 {quoted}"
    )
    script = replace_vars(DOCKER_EXEC_SCRIPT, _docker_exec_vars(container, command))

    stdout = LineCollector()
    stderr = LineCollector()
    code = run_on(manager, credentials, script, stdout, stderr)
    if not code.ok:
        return ("", _container_error(stderr) or code)

    try:
        content = base64.b64decode("".join(stdout.lines), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        logger.error("Unreadable content for %s in %s: %s", path, container.container_name, e)
        return ("", ErrorCode.UNKNOWN_ERROR)

    return (content, ErrorCode.NO_ERROR)

