"""Container lifecycle on a remote host.

setup_container runs five steps and stops at the first failure, returning
that step's ErrorCode unchanged:

1. EnsureRuntime: install Docker if it is missing
2. GenerateVars: build template variables (and secrets)
3. ContainerSetup: build the image and (re)start the container
4. PostInstallFileUpload: push config and start scripts, configure, restart
5. Verify: check that the OpenVPN server came up
"""

import logging
import random
from collections.abc import Mapping
from typing import Any

from outpost_mcp.models import DockerContainer, ErrorCode, ServerCredentials
from outpost_mcp.protocols import LineCollector, LineSink, SessionProvider, null_sink, tee
from outpost_mcp.scripts import (
    BUILD_CONTAINER,
    CHECK_DOCKER,
    CHECK_OPENVPN,
    CONFIGURE_CONTAINER,
    CONFIGURE_OPENVPN,
    DOCKERFILE,
    INSTALL_DOCKER,
    PREPARE_HOST,
    REMOVE_ALL_CONTAINERS,
    REMOVE_CONTAINER,
    RUN_CONTAINER,
    RUN_IN_CONTAINER,
    START_CONTAINER,
    START_SCRIPT,
    ScriptLibrary,
)
from outpost_mcp.services.errors import from_script_output
from outpost_mcp.services.executor import run_on
from outpost_mcp.services.templating import Vars, replace_vars
from outpost_mcp.services.transfer import (
    get_text_file_from_container,
    upload_file,
    upload_text_file_to_container,
)
from outpost_mcp.services.vars import CONTAINERS_ROOT, gen_vars_for_script

logger = logging.getLogger(__name__)

OPENVPN_CA_CERT = "/opt/amnezia/openvpn/ca.crt"
CONTAINER_START_SCRIPT = "/opt/amnezia/start.sh"

# Protocol config templates and where they go inside the container
CONFIG_FILES: dict[DockerContainer, list[tuple[str, str]]] = {
    DockerContainer.OPENVPN: [],
    DockerContainer.OPENVPN_OVER_SHADOWSOCKS: [
        ("ss-config.json", "/opt/amnezia/shadowsocks/ss-config.json"),
    ],
    DockerContainer.OPENVPN_OVER_CLOAK: [
        ("ck-config.json", "/opt/amnezia/cloak/ck-config.json"),
    ],
}


def _run_script(
    manager: SessionProvider,
    credentials: ServerCredentials,
    library: ScriptLibrary,
    name: str,
    container: DockerContainer,
    vars: Vars,
    progress: LineSink,
) -> ErrorCode:
    """Render a library template, run it, and classify the outcome."""
    script = replace_vars(library.load(name, container), vars)
    stdout = LineCollector()
    stderr = LineCollector()
    code = run_on(manager, credentials, script, tee(stdout, progress), tee(stderr, progress))
    code = from_script_output(code, stdout.lines, stderr.lines)
    if not code.ok:
        logger.warning("%s on %s failed: %s", name, credentials.host, code.name)
    return code


def install_docker(
    manager: SessionProvider,
    credentials: ServerCredentials,
    *,
    library: ScriptLibrary | None = None,
    progress: LineSink = null_sink,
) -> ErrorCode:
    """Make sure Docker is installed and running on the host.

    Returns:
        NO_ERROR if Docker was already present or got installed
    """
    library = library or ScriptLibrary()
    vars = gen_vars_for_script(credentials)

    code = _run_script(manager, credentials, library, CHECK_DOCKER, DockerContainer.NONE, vars, null_sink)
    if code.ok:
        logger.info("Docker already present on %s", credentials.host)
        return code
    if code.is_connection_error:
        return code

    logger.info("Docker not found on %s, installing", credentials.host)
    return _run_script(manager, credentials, library, INSTALL_DOCKER, DockerContainer.NONE, vars, progress)


def _step(credentials: ServerCredentials, container: DockerContainer, number: int, name: str) -> None:
    logger.info("[%s/%s] step %d/5: %s", credentials.host, container.value, number, name)


def setup_container(
    manager: SessionProvider,
    credentials: ServerCredentials,
    container: DockerContainer,
    config: Mapping[str, Any] | None = None,
    *,
    rng: random.Random | None = None,
    progress: LineSink = null_sink,
    library: ScriptLibrary | None = None,
) -> ErrorCode:
    """Install, configure, start and verify a container.

    Any container with the same name is replaced.

    Args:
        manager: Session provider
        credentials: Server credentials
        container: Container to deploy (not NONE)
        config: Protocol configuration overriding the defaults
        rng: Random source for generated secrets
        progress: Sink receiving script output as it arrives
        library: Script templates (default: bundled scripts)

    Returns:
        ErrorCode of the first failing step, or NO_ERROR

    Raises:
        ValueError: If ``container`` is NONE
    """
    if container is DockerContainer.NONE:
        raise ValueError("setup_container needs a container")
    library = library or ScriptLibrary()

    _step(credentials, container, 1, "ensure container runtime")
    code = install_docker(manager, credentials, library=library, progress=progress)
    if not code.ok:
        return code

    _step(credentials, container, 2, "generate variables")
    vars = gen_vars_for_script(credentials, container, config, rng)

    _step(credentials, container, 3, "build and run container")
    code = _container_setup(manager, credentials, container, vars, library, progress)
    if not code.ok:
        return code

    _step(credentials, container, 4, "upload configuration")
    code = _post_install(manager, credentials, container, vars, library, progress)
    if not code.ok:
        return code

    _step(credentials, container, 5, "verify")
    if container.runs_openvpn:
        code = check_openvpn_server(manager, credentials, container, library=library, progress=progress)
        if not code.ok:
            return code

    logger.info("Container %s is up on %s", container.container_name, credentials.host)
    return ErrorCode.NO_ERROR


def _container_setup(
    manager: SessionProvider,
    credentials: ServerCredentials,
    container: DockerContainer,
    vars: Vars,
    library: ScriptLibrary,
    progress: LineSink,
) -> ErrorCode:
    code = _run_script(manager, credentials, library, PREPARE_HOST, container, vars, progress)
    if not code.ok:
        return code

    dockerfile = replace_vars(library.load(DOCKERFILE, container), vars)
    code = upload_file(
        manager,
        credentials,
        dockerfile.encode("utf-8"),
        f"{CONTAINERS_ROOT}/{container.container_name}/{DOCKERFILE}",
    )
    if not code.ok:
        return code

    for name in (BUILD_CONTAINER, RUN_CONTAINER):
        code = _run_script(manager, credentials, library, name, container, vars, progress)
        if not code.ok:
            return code
    return ErrorCode.NO_ERROR


def _post_install(
    manager: SessionProvider,
    credentials: ServerCredentials,
    container: DockerContainer,
    vars: Vars,
    library: ScriptLibrary,
    progress: LineSink,
) -> ErrorCode:
    for template, path in CONFIG_FILES[container]:
        content = replace_vars(library.load(template, container), vars)
        code = upload_text_file_to_container(manager, container, credentials, content, path)
        if not code.ok:
            return code

    for name in (CONFIGURE_OPENVPN, CONFIGURE_CONTAINER):
        template = library.find(name, container)
        if template is None:
            continue
        path = f"{CONTAINERS_ROOT}/{name}"
        code = upload_text_file_to_container(
            manager, container, credentials, replace_vars(template, vars), path
        )
        if not code.ok:
            return code
        code = _run_script(
            manager,
            credentials,
            library,
            RUN_IN_CONTAINER,
            container,
            vars + [("CONTAINER_SCRIPT", path)],
            progress,
        )
        if not code.ok:
            return code

    start_script = replace_vars(library.load(START_SCRIPT, container), vars)
    code = upload_text_file_to_container(
        manager, container, credentials, start_script, CONTAINER_START_SCRIPT
    )
    if not code.ok:
        return code

    return _run_script(manager, credentials, library, START_CONTAINER, container, vars, progress)


def check_openvpn_server(
    manager: SessionProvider,
    credentials: ServerCredentials,
    container: DockerContainer,
    *,
    library: ScriptLibrary | None = None,
    progress: LineSink = null_sink,
) -> ErrorCode:
    """Verify that the container's OpenVPN server is set up and running.

    Reads the CA certificate from the container, then checks the daemon.

    Returns:
        NO_ERROR, SERVER_CHECK_FAILED, or a connection-layer code
    """
    library = library or ScriptLibrary()

    text, code = get_text_file_from_container(manager, container, credentials, OPENVPN_CA_CERT)
    if code.is_connection_error:
        return code
    if not code.ok or "BEGIN CERTIFICATE" not in text:
        logger.warning(
            "OpenVPN CA certificate missing in %s on %s (%s)",
            container.container_name,
            credentials.host,
            code.name,
        )
        return ErrorCode.SERVER_CHECK_FAILED

    vars = gen_vars_for_script(credentials) + [("CONTAINER_NAME", container.container_name)]
    code = _run_script(manager, credentials, library, CHECK_OPENVPN, container, vars, progress)
    if code.is_connection_error:
        return code
    if not code.ok:
        return ErrorCode.SERVER_CHECK_FAILED
    return ErrorCode.NO_ERROR


def remove_container(
    manager: SessionProvider,
    credentials: ServerCredentials,
    container: DockerContainer,
    *,
    library: ScriptLibrary | None = None,
    progress: LineSink = null_sink,
) -> ErrorCode:
    """Stop and delete a container, its image and build folder.

    Removing a container that does not exist returns NO_ERROR.

    Raises:
        ValueError: If ``container`` is NONE
    """
    if container is DockerContainer.NONE:
        raise ValueError("remove_container needs a container")
    library = library or ScriptLibrary()
    vars = gen_vars_for_script(credentials) + [
        ("CONTAINER_NAME", container.container_name),
        ("DOCKERFILE_FOLDER", f"{CONTAINERS_ROOT}/{container.container_name}"),
    ]
    code = _run_script(manager, credentials, library, REMOVE_CONTAINER, container, vars, progress)
    if code.ok:
        logger.info("Removed %s from %s", container.container_name, credentials.host)
    return code


def remove_all_containers(
    manager: SessionProvider,
    credentials: ServerCredentials,
    *,
    library: ScriptLibrary | None = None,
    progress: LineSink = null_sink,
) -> ErrorCode:
    """Remove every managed container from the host."""
    library = library or ScriptLibrary()
    vars = gen_vars_for_script(credentials)
    code = _run_script(
        manager, credentials, library, REMOVE_ALL_CONTAINERS, DockerContainer.NONE, vars, progress
    )
    if code.ok:
        logger.info("Removed all containers from %s", credentials.host)
    return code
