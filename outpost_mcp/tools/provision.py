"""Provisioning tools exposed over MCP.

Each tool resolves a host alias from the SSH config, runs the blocking
service call in a worker thread, and returns a one-line verdict
(``OK ...`` or ``ERROR <CODE>: ...``) followed by any useful detail.
"""

import asyncio
import logging
from typing import Any

from outpost_mcp.config import UnknownHostError
from outpost_mcp.models import DockerContainer, ErrorCode, ServerCredentials
from outpost_mcp.protocols import LineCollector
from outpost_mcp.services import (
    get_config,
    get_library,
    get_manager,
    get_text_file_from_container,
    remove_all_containers,
    remove_container,
    setup_container,
    setup_firewall,
)
from outpost_mcp.utils.validation import validate_container_path

logger = logging.getLogger(__name__)

# Output lines appended to a failed provisioning result
FAILURE_TAIL_LINES = 20


def _resolve_credentials(host: str, password: str | None) -> ServerCredentials | str:
    """Look up a host alias and build its credentials.

    Returns:
        ServerCredentials, or an error message string
    """
    try:
        return get_config().credentials_for(host, password=password)
    except UnknownHostError as e:
        return f"Error: {e}"
    except (OSError, ValueError) as e:
        return f"Error: Cannot build credentials for '{host}': {e}"


def _parse_container(name: str) -> DockerContainer | str:
    try:
        container = DockerContainer.from_name(name)
    except ValueError as e:
        return f"Error: {e}"
    if container is DockerContainer.NONE:
        return "Error: A container is required"
    return container


def _format(code: ErrorCode, success: str, output: LineCollector | None = None) -> str:
    """Render an ErrorCode as tool output."""
    if code.ok:
        return f"OK {success}"
    text = f"ERROR {code.name}: {code.describe()}"
    if output is not None and output.lines:
        tail = "\n".join(output.lines[-FAILURE_TAIL_LINES:])
        text = f"{text}\n\nLast output:\n{tail}"
    return text


async def list_servers() -> str:
    """List the servers available from the SSH config.

    Returns:
        One line per host alias with its SSH target.
    """
    hosts = get_config().get_hosts()
    if not hosts:
        return "No SSH hosts configured."
    lines = [f"{name}: {h.target}" for name, h in sorted(hosts.items())]
    return "\n".join(lines)


async def check_server(host: str, password: str | None = None) -> str:
    """Check that a server accepts SSH connections.

    Args:
        host: Host alias from the SSH config.
        password: Password, when the host entry has no IdentityFile.

    Returns:
        The server's ``uname -a`` line on success.
    """
    credentials = _resolve_credentials(host, password)
    if isinstance(credentials, str):
        return credentials

    text, code = await asyncio.to_thread(get_manager().check_connection, credentials)
    if not code.ok:
        return _format(code, "")
    return f"OK {host} is reachable\n{text}"


async def install_container(
    host: str,
    container: str = "openvpn",
    config: dict[str, Any] | None = None,
    password: str | None = None,
) -> str:
    """Install a VPN container on a server, replacing any existing copy.

    Docker is installed first when it is missing.

    Args:
        host: Host alias from the SSH config.
        container: One of openvpn, shadowsocks, cloak.
        config: Protocol settings, e.g. {"openvpn": {"port": "1194"}}.
        password: Password, when the host entry has no IdentityFile.
    """
    credentials = _resolve_credentials(host, password)
    if isinstance(credentials, str):
        return credentials
    target = _parse_container(container)
    if isinstance(target, str):
        return target

    output = LineCollector()
    code = await asyncio.to_thread(
        setup_container,
        get_manager(),
        credentials,
        target,
        config,
        progress=output,
        library=get_library(),
    )
    return _format(code, f"{target.container_name} installed on {host}", output)


async def uninstall_container(
    host: str,
    container: str,
    password: str | None = None,
) -> str:
    """Remove a VPN container, its image and its files from a server.

    Args:
        host: Host alias from the SSH config.
        container: One of openvpn, shadowsocks, cloak.
        password: Password, when the host entry has no IdentityFile.
    """
    credentials = _resolve_credentials(host, password)
    if isinstance(credentials, str):
        return credentials
    target = _parse_container(container)
    if isinstance(target, str):
        return target

    code = await asyncio.to_thread(
        remove_container, get_manager(), credentials, target, library=get_library()
    )
    return _format(code, f"{target.container_name} removed from {host}")


async def uninstall_all_containers(host: str, password: str | None = None) -> str:
    """Remove every managed container from a server."""
    credentials = _resolve_credentials(host, password)
    if isinstance(credentials, str):
        return credentials

    code = await asyncio.to_thread(
        remove_all_containers, get_manager(), credentials, library=get_library()
    )
    return _format(code, f"all containers removed from {host}")


async def configure_firewall(host: str, password: str | None = None) -> str:
    """Apply the host firewall ruleset. Safe to run repeatedly."""
    credentials = _resolve_credentials(host, password)
    if isinstance(credentials, str):
        return credentials

    output = LineCollector()
    code = await asyncio.to_thread(
        setup_firewall, get_manager(), credentials, library=get_library(), progress=output
    )
    return _format(code, f"firewall configured on {host}", output)


async def read_container_file(
    host: str,
    container: str,
    path: str,
    password: str | None = None,
) -> str:
    """Read a text file from inside a running container.

    Args:
        host: Host alias from the SSH config.
        container: One of openvpn, shadowsocks, cloak.
        path: Absolute path inside the container.
        password: Password, when the host entry has no IdentityFile.
    """
    credentials = _resolve_credentials(host, password)
    if isinstance(credentials, str):
        return credentials
    target = _parse_container(container)
    if isinstance(target, str):
        return target
    try:
        path = validate_container_path(path)
    except ValueError as e:
        return f"Error: {e}"

    text, code = await asyncio.to_thread(
        get_text_file_from_container, get_manager(), target, credentials, path
    )
    if not code.ok:
        return _format(code, "")
    return text
