"""Shell script templates used to provision servers.

Templates use ``$NAME`` placeholders filled by replace_vars. Shell
variables inside templates are lowercase so they never collide with
template variables, which are uppercase.
"""

import logging
from pathlib import Path

from outpost_mcp.models import DockerContainer

logger = logging.getLogger(__name__)

CHECK_DOCKER = "check_docker.sh"
INSTALL_DOCKER = "install_docker.sh"
PREPARE_HOST = "prepare_host.sh"
BUILD_CONTAINER = "build_container.sh"
RUN_CONTAINER = "run_container.sh"
CONFIGURE_OPENVPN = "configure_openvpn.sh"
CONFIGURE_CONTAINER = "configure_container.sh"
START_CONTAINER = "start_container.sh"
CHECK_OPENVPN = "check_openvpn.sh"
RUN_IN_CONTAINER = "run_in_container.sh"
REMOVE_CONTAINER = "remove_container.sh"
REMOVE_ALL_CONTAINERS = "remove_all_containers.sh"
SETUP_HOST_FIREWALL = "setup_host_firewall.sh"
DOCKERFILE = "Dockerfile"
START_SCRIPT = "start.sh"


class ScriptLibrary:
    """Locates script templates on disk.

    A container-specific template (``<root>/<container folder>/<name>``)
    takes precedence over the shared one (``<root>/<name>``).
    """

    def __init__(self, root: Path | str | None = None) -> None:
        """Initialize the library.

        Args:
            root: Directory holding the templates (default: this package)
        """
        self.root = Path(root) if root else Path(__file__).parent
        logger.debug("Script library root: %s", self.root)

    def _resolve(self, name: str, container: DockerContainer) -> Path | None:
        if container is not DockerContainer.NONE:
            candidate = self.root / container.script_folder / name
            if candidate.is_file():
                return candidate
        candidate = self.root / name
        if candidate.is_file():
            return candidate
        return None

    def find(self, name: str, container: DockerContainer = DockerContainer.NONE) -> str | None:
        """Return a template's text, or None if it does not exist."""
        path = self._resolve(name, container)
        if path is None:
            return None
        return path.read_text()

    def load(self, name: str, container: DockerContainer = DockerContainer.NONE) -> str:
        """Return a template's text.

        Raises:
            FileNotFoundError: If no template with that name exists
        """
        text = self.find(name, container)
        if text is None:
            raise FileNotFoundError(
                f"Script template '{name}' not found for container "
                f"'{container.value}' under {self.root}"
            )
        return text


__all__ = ["ScriptLibrary"]
