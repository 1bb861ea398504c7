"""Services for Outpost MCP."""

from outpost_mcp.services.connection import ConnectionManager
from outpost_mcp.services.errors import (
    SessionError,
    from_connection_error,
    from_process_exit,
    from_script_output,
)
from outpost_mcp.services.executor import execute, run, run_on
from outpost_mcp.services.firewall import setup_firewall
from outpost_mcp.services.orchestrator import (
    check_openvpn_server,
    install_docker,
    remove_all_containers,
    remove_container,
    setup_container,
)
from outpost_mcp.services.state import (
    get_config,
    get_library,
    get_manager,
    reset_state,
    set_config,
    set_library,
    set_manager,
)
from outpost_mcp.services.templating import RenderedScript, Vars, replace_vars
from outpost_mcp.services.transfer import (
    get_text_file_from_container,
    upload_file,
    upload_text_file_to_container,
)
from outpost_mcp.services.vars import gen_vars_for_script

__all__ = [
    "ConnectionManager",
    "RenderedScript",
    "SessionError",
    "Vars",
    "check_openvpn_server",
    "execute",
    "from_connection_error",
    "from_process_exit",
    "from_script_output",
    "gen_vars_for_script",
    "get_config",
    "get_library",
    "get_manager",
    "get_text_file_from_container",
    "install_docker",
    "remove_all_containers",
    "remove_container",
    "replace_vars",
    "reset_state",
    "run",
    "run_on",
    "set_config",
    "set_library",
    "set_manager",
    "setup_container",
    "setup_firewall",
    "upload_file",
    "upload_text_file_to_container",
]
