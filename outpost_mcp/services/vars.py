"""Template variables for container and host scripts.

gen_vars_for_script is the only place that generates secrets. Pass a
seeded ``random.Random`` to get the same secrets for the same input.
"""

import base64
import random
import secrets
import string
from collections.abc import Mapping
from typing import Any

from outpost_mcp.models import DockerContainer, ServerCredentials
from outpost_mcp.services.templating import Vars

CONTAINERS_ROOT = "/opt/amnezia"

OPENVPN_DEFAULTS: dict[str, str] = {
    "subnet_ip": "10.8.0.0",
    "subnet_cidr": "24",
    "subnet_mask": "255.255.255.0",
    "port": "1194",
    "transport_proto": "udp",
    "cipher": "AES-256-GCM",
    "hash": "SHA512",
    "ncp_disable": "false",
    "tls_auth": "true",
}

SHADOWSOCKS_DEFAULTS: dict[str, str] = {
    "port": "6789",
    "local_port": "8585",
    "cipher": "chacha20-ietf-poly1305",
}

CLOAK_DEFAULTS: dict[str, str] = {
    "port": "443",
    "site": "tile.openstreetmap.org",
}

_PASSWORD_ALPHABET = string.ascii_letters + string.digits
_PASSWORD_LENGTH = 32
_UID_BYTES = 16


def _section(config: Mapping[str, Any] | None, name: str, defaults: dict[str, str]) -> dict[str, str]:
    """Merge one protocol section of the config over its defaults."""
    merged = dict(defaults)
    if config:
        for key, value in (config.get(name) or {}).items():
            if value is not None:
                merged[key] = str(value)
    return merged


def _is_true(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


def generate_password(rng: random.Random) -> str:
    """Random alphanumeric password."""
    return "".join(rng.choice(_PASSWORD_ALPHABET) for _ in range(_PASSWORD_LENGTH))


def generate_uid(rng: random.Random) -> str:
    """Random 16-byte UID, base64-encoded as Cloak expects."""
    raw = bytes(rng.getrandbits(8) for _ in range(_UID_BYTES))
    return base64.b64encode(raw).decode("ascii")


def gen_vars_for_script(
    credentials: ServerCredentials,
    container: DockerContainer = DockerContainer.NONE,
    config: Mapping[str, Any] | None = None,
    rng: random.Random | None = None,
) -> Vars:
    """Build the variables for every template touched by one operation.

    Host variables are always present. Protocol variables appear only for
    containers that use them. Secrets missing from ``config`` are
    generated with ``rng`` (default: the system CSPRNG).

    Args:
        credentials: Server credentials
        container: Target container, NONE for host-level scripts
        config: Protocol configuration, e.g. ``{"openvpn": {"port": "1194"}}``
        rng: Random source for generated secrets

    Returns:
        Ordered template variables
    """
    rng = rng or secrets.SystemRandom()

    vars: Vars = [
        ("REMOTE_HOST", credentials.host),
        ("REMOTE_USER", credentials.username),
        ("REMOTE_SSH_PORT", str(credentials.port)),
    ]
    if container is DockerContainer.NONE:
        return vars

    vars += [
        ("CONTAINER_NAME", container.container_name),
        ("DOCKERFILE_FOLDER", f"{CONTAINERS_ROOT}/{container.container_name}"),
    ]

    openvpn = _section(config, "openvpn", OPENVPN_DEFAULTS)
    if container is not DockerContainer.OPENVPN:
        # Tunnelled variants carry OpenVPN over a local TCP stream
        openvpn["transport_proto"] = "tcp"

    vars += [
        ("OPENVPN_SUBNET_IP", openvpn["subnet_ip"]),
        ("OPENVPN_SUBNET_CIDR", openvpn["subnet_cidr"]),
        ("OPENVPN_SUBNET_MASK", openvpn["subnet_mask"]),
        ("OPENVPN_PORT", openvpn["port"]),
        ("OPENVPN_TRANSPORT_PROTO", openvpn["transport_proto"]),
        ("OPENVPN_CIPHER", openvpn["cipher"]),
        ("OPENVPN_HASH", openvpn["hash"]),
        ("OPENVPN_NCP_DISABLE", "ncp-disable" if _is_true(openvpn["ncp_disable"]) else ""),
        (
            "OPENVPN_TLS_AUTH",
            "tls-auth /opt/amnezia/openvpn/ta.key 0" if _is_true(openvpn["tls_auth"]) else "",
        ),
    ]

    if container is DockerContainer.OPENVPN:
        server_port, server_proto = openvpn["port"], openvpn["transport_proto"]

    elif container is DockerContainer.OPENVPN_OVER_SHADOWSOCKS:
        shadowsocks = _section(config, "shadowsocks", SHADOWSOCKS_DEFAULTS)
        password = shadowsocks.get("password") or generate_password(rng)
        vars += [
            ("SHADOWSOCKS_SERVER_PORT", shadowsocks["port"]),
            ("SHADOWSOCKS_LOCAL_PORT", shadowsocks["local_port"]),
            ("SHADOWSOCKS_CIPHER", shadowsocks["cipher"]),
            ("SHADOWSOCKS_PASSWORD", password),
        ]
        server_port, server_proto = shadowsocks["port"], "tcp"

    else:
        cloak = _section(config, "cloak", CLOAK_DEFAULTS)
        user_uid = cloak.get("user_uid") or generate_uid(rng)
        admin_uid = cloak.get("admin_uid") or generate_uid(rng)
        vars += [
            ("CLOAK_SERVER_PORT", cloak["port"]),
            ("FAKE_WEB_SITE_ADDRESS", cloak["site"]),
            ("CLOAK_USER_UID", user_uid),
            ("CLOAK_ADMIN_UID", admin_uid),
        ]
        server_port, server_proto = cloak["port"], "tcp"

    vars += [
        ("SERVER_PORT", server_port),
        ("SERVER_TRANSPORT_PROTO", server_proto),
    ]
    return vars
