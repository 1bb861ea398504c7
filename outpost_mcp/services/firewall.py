"""Host firewall configuration."""

import logging

from outpost_mcp.models import DockerContainer, ErrorCode, ServerCredentials
from outpost_mcp.protocols import LineCollector, LineSink, SessionProvider, null_sink, tee
from outpost_mcp.scripts import SETUP_HOST_FIREWALL, ScriptLibrary
from outpost_mcp.services.errors import from_script_output
from outpost_mcp.services.executor import run_on
from outpost_mcp.services.templating import replace_vars
from outpost_mcp.services.vars import gen_vars_for_script

logger = logging.getLogger(__name__)

FIREWALL_RULESET_VERSION = 1


def setup_firewall(
    manager: SessionProvider,
    credentials: ServerCredentials,
    *,
    library: ScriptLibrary | None = None,
    progress: LineSink = null_sink,
) -> ErrorCode:
    """Apply the host firewall ruleset.

    Every rule is checked before it is added, so running this again on a
    configured host changes nothing.

    Returns:
        NO_ERROR, SCRIPT_REPORTED_FAILURE if iptables is unavailable, or
        the failing process/connection code
    """
    library = library or ScriptLibrary()
    script = replace_vars(
        library.load(SETUP_HOST_FIREWALL, DockerContainer.NONE),
        gen_vars_for_script(credentials),
    )

    stdout = LineCollector()
    stderr = LineCollector()
    code = run_on(manager, credentials, script, tee(stdout, progress), tee(stderr, progress))
    code = from_script_output(code, stdout.lines, stderr.lines)

    if code.ok:
        logger.info(
            "Firewall ruleset v%d applied on %s",
            FIREWALL_RULESET_VERSION,
            credentials.host,
        )
    else:
        logger.warning("Firewall setup on %s failed: %s", credentials.host, code.name)
    return code
