"""Tests for the MCP provisioning tools."""

from unittest.mock import MagicMock, patch

import paramiko
import pytest
from conftest import FakeDocker, Response

from outpost_mcp.config import Config, HostKeyVerifier, Settings
from outpost_mcp.models import DockerContainer, ErrorCode, SSHHost
from outpost_mcp.scripts import ScriptLibrary
from outpost_mcp.services.orchestrator import OPENVPN_CA_CERT
from outpost_mcp.tools import (
    check_server,
    configure_firewall,
    install_container,
    list_servers,
    read_container_file,
    uninstall_all_containers,
    uninstall_container,
)

CA_CERT = b"-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n"


@pytest.fixture
def hosts() -> dict[str, SSHHost]:
    return {
        "vpn": SSHHost(name="vpn", hostname="203.0.113.10", user="root"),
        "edge": SSHHost(name="edge", hostname="198.51.100.7", user="deploy", port=2222),
    }


@pytest.fixture
def config(hosts) -> Config:
    """Config over the in-memory hosts with verification disabled."""
    parser = MagicMock()
    parser.parse.return_value = hosts
    return Config(settings=Settings(), parser=parser, host_keys=HostKeyVerifier("none"))


@pytest.fixture
def env(config, manager):
    """Patch the global config, manager and library used by the tools."""
    with (
        patch("outpost_mcp.tools.provision.get_config", return_value=config),
        patch("outpost_mcp.tools.provision.get_manager", return_value=manager),
        patch("outpost_mcp.tools.provision.get_library", return_value=ScriptLibrary()),
    ):
        yield manager


@pytest.mark.asyncio
async def test_list_servers(env) -> None:
    result = await list_servers()

    assert result == "edge: deploy@198.51.100.7:2222\nvpn: root@203.0.113.10:22"


@pytest.mark.asyncio
async def test_list_servers_empty(env, hosts) -> None:
    hosts.clear()
    assert await list_servers() == "No SSH hosts configured."


@pytest.mark.asyncio
async def test_unknown_host(env) -> None:
    result = await check_server("nope", password="x")
    assert result == "Error: Unknown host 'nope'. Available: edge, vpn"


@pytest.mark.asyncio
async def test_host_without_auth(env) -> None:
    """A host with no identity file needs a password."""
    result = await check_server("vpn")
    assert result.startswith("Error: Cannot build credentials for 'vpn'")


@pytest.mark.asyncio
async def test_check_server_ok(env, monkeypatch) -> None:
    monkeypatch.setattr(
        env, "check_connection", lambda creds: ("Linux vpn 6.1.0 x86_64", ErrorCode.NO_ERROR)
    )

    result = await check_server("vpn", password="x")
    assert result == "OK vpn is reachable\nLinux vpn 6.1.0 x86_64"


@pytest.mark.asyncio
async def test_check_server_failure(env, monkeypatch) -> None:
    monkeypatch.setattr(env, "check_connection", lambda creds: ("", ErrorCode.SSH_TIMEOUT))

    result = await check_server("vpn", password="x")
    assert result == "ERROR SSH_TIMEOUT: SSH connection timed out"


@pytest.mark.asyncio
async def test_install_container_end_to_end(env, fake_host) -> None:
    """A full OpenVPN install against the fake host succeeds."""
    fake_host.responder = FakeDocker({"amnezia-openvpn": {OPENVPN_CA_CERT: CA_CERT}})

    result = await install_container("vpn", "openvpn", password="x")

    assert result == "OK amnezia-openvpn installed on vpn"
    assert fake_host.ran("docker build")


@pytest.mark.asyncio
async def test_install_container_failure_shows_output(env) -> None:
    """Failures include the tail of the script output."""

    def failing_setup(manager, credentials, container, config, *, progress, library):
        progress("Bind for 0.0.0.0:1194 failed: port is already allocated.")
        return ErrorCode.SERVER_PORT_ALREADY_ALLOCATED

    with patch("outpost_mcp.tools.provision.setup_container", side_effect=failing_setup):
        result = await install_container("vpn", "openvpn", password="x")

    assert result.startswith("ERROR SERVER_PORT_ALREADY_ALLOCATED: server port already allocated")
    assert "Last output:\nBind for 0.0.0.0:1194 failed" in result


@pytest.mark.asyncio
async def test_install_container_passes_config(env) -> None:
    config = {"shadowsocks": {"port": "8388"}}
    with patch("outpost_mcp.tools.provision.setup_container", return_value=ErrorCode.NO_ERROR) as setup:
        result = await install_container("edge", "shadowsocks", config=config, password="x")

    assert result == "OK amnezia-shadowsocks installed on edge"
    args = setup.call_args[0]
    assert args[2] is DockerContainer.OPENVPN_OVER_SHADOWSOCKS
    assert args[3] == config
    assert args[1].port == 2222


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("container", "message"),
    [("wireguard", "Error: Unknown container 'wireguard'"), ("none", "Error: A container is required")],
)
async def test_install_container_rejects_bad_container(env, container: str, message: str) -> None:
    result = await install_container("vpn", container, password="x")
    assert result.startswith(message)


@pytest.mark.asyncio
async def test_uninstall_container(env, fake_host) -> None:
    result = await uninstall_container("vpn", "cloak", password="x")

    assert result == "OK amnezia-openvpn-cloak removed from vpn"
    assert fake_host.ran("docker rm -fv amnezia-openvpn-cloak")


@pytest.mark.asyncio
async def test_uninstall_all_containers(env) -> None:
    result = await uninstall_all_containers("vpn", password="x")
    assert result == "OK all containers removed from vpn"


@pytest.mark.asyncio
async def test_configure_firewall(env, fake_host) -> None:
    result = await configure_firewall("edge", password="x")

    assert result == "OK firewall configured on edge"
    assert fake_host.ran("--dport 2222 -j ACCEPT")


@pytest.mark.asyncio
async def test_configure_firewall_connection_error(env) -> None:
    env.acquire_error = ErrorCode.SSH_AUTHENTICATION_FAILED

    result = await configure_firewall("vpn", password="x")
    assert result == "ERROR SSH_AUTHENTICATION_FAILED: SSH authentication failed"


@pytest.mark.asyncio
async def test_read_container_file(env, fake_host) -> None:
    fake_host.responder = FakeDocker({"amnezia-openvpn": {"/opt/amnezia/openvpn/ca.crt": CA_CERT}})

    result = await read_container_file("vpn", "openvpn", "/opt/amnezia//openvpn/ca.crt", password="x")
    assert result == CA_CERT.decode()


@pytest.mark.asyncio
async def test_read_container_file_missing(env, fake_host) -> None:
    fake_host.responder = FakeDocker()

    result = await read_container_file("vpn", "openvpn", "/etc/nothing", password="x")
    assert result == "ERROR REMOTE_FILE_NOT_FOUND: remote file not found"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("path", "message"),
    [
        ("/opt/../etc/shadow", "Error: Path traversal not allowed"),
        ("etc/hosts", "Error: Container paths must be absolute"),
        ("", "Error: Path cannot be empty"),
    ],
)
async def test_read_container_file_rejects_paths(env, fake_host, path: str, message: str) -> None:
    result = await read_container_file("vpn", "openvpn", path, password="x")

    assert result.startswith(message)
    assert fake_host.commands == []


@pytest.mark.asyncio
async def test_read_container_file_process_failure(env, fake_host) -> None:
    fake_host.responder = lambda command, stdin: Response(stderr="permission denied\n", exit_status=1)

    result = await read_container_file("vpn", "openvpn", "/etc/hosts", password="x")
    assert result == "ERROR PROCESS_FAILED: remote process exited with an error"


@pytest.mark.asyncio
async def test_pinned_host_key_reaches_credentials(env, hosts, tmp_path) -> None:
    """A key pinned through UserKnownHostsFile is carried by the credentials."""
    key = paramiko.RSAKey.generate(2048)
    pinned = tmp_path / "pinned_hosts"
    pinned.write_text(f"[198.51.100.7]:2222 ssh-rsa {key.get_base64()}\n")
    hosts["edge"].known_hosts_files = [str(pinned)]
    seen = []

    def check(creds):
        seen.append(creds)
        return ("Linux edge", ErrorCode.NO_ERROR)

    env.check_connection = check

    assert await check_server("edge", password="x") == "OK edge is reachable\nLinux edge"
    assert seen[0].host_key == f"ssh-rsa {key.get_base64()}"
