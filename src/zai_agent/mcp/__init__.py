"""
MCP (Model Context Protocol) client package.
"""

from .client import MCPClient
from .connection_manager import MCPConnectionManager
from .server_config import MCPServerConfig, load_server_configs, parse_server_configs

__all__ = [
    "MCPClient",
    "MCPConnectionManager",
    "MCPServerConfig",
    "load_server_configs",
    "parse_server_configs",
]
