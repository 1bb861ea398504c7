"""Provisionable container variants."""

from enum import Enum


class DockerContainer(Enum):
    """Containers this server knows how to provision.

    ``NONE`` selects host-level operations that target no container.
    """

    NONE = "none"
    OPENVPN = "openvpn"
    OPENVPN_OVER_SHADOWSOCKS = "shadowsocks"
    OPENVPN_OVER_CLOAK = "cloak"

    @property
    def container_name(self) -> str:
        """Docker container (and image) name on the remote host."""
        return _CONTAINER_NAMES[self]

    @property
    def script_folder(self) -> str:
        """Folder under the script library holding this container's templates."""
        return self.value

    @property
    def runs_openvpn(self) -> bool:
        """Whether an OpenVPN server runs inside the container."""
        return self is not DockerContainer.NONE

    @classmethod
    def from_name(cls, name: str) -> "DockerContainer":
        """Parse a user-facing name (enum value, member name or container name).

        Raises:
            ValueError: If the name matches no container
        """
        key = name.strip().lower()
        for member in cls:
            if key in (member.value, member.name.lower(), member.container_name):
                return member
        choices = ", ".join(m.value for m in cls if m is not cls.NONE)
        raise ValueError(f"Unknown container '{name}'. Choose one of: {choices}")


_CONTAINER_NAMES: dict[DockerContainer, str] = {
    DockerContainer.NONE: "",
    DockerContainer.OPENVPN: "amnezia-openvpn",
    DockerContainer.OPENVPN_OVER_SHADOWSOCKS: "amnezia-shadowsocks",
    DockerContainer.OPENVPN_OVER_CLOAK: "amnezia-openvpn-cloak",
}
