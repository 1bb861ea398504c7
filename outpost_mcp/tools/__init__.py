"""MCP tools for Outpost MCP."""

from outpost_mcp.tools.provision import (
    check_server,
    configure_firewall,
    install_container,
    list_servers,
    read_container_file,
    uninstall_all_containers,
    uninstall_container,
)

__all__ = [
    "check_server",
    "configure_firewall",
    "install_container",
    "list_servers",
    "read_container_file",
    "uninstall_all_containers",
    "uninstall_container",
]
