"""
MCP server configuration data structures.

This module defines the configuration class for plugin (MCP) servers and a
loader for the JSON server file referenced by ``MCP_SERVERS_CONFIG``.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

TRANSPORTS = ("stdio", "sse", "http")


@dataclass
class MCPServerConfig:
    """Configuration for an MCP server.

    Attributes:
        name: Unique identifier for this server instance
        transport: One of "stdio" (default), "sse" or "http" (streamable HTTP)
        command: Command to launch a stdio server (e.g., "uvx", "npx")
        args: Arguments for the server command
        env: Extra environment variables, overlaid on the current environment
        url: Endpoint for sse/http servers
    """

    name: str
    transport: str = "stdio"
    command: Optional[str] = None
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    url: Optional[str] = None

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues.

        Returns:
            list[str]: List of validation error messages. Empty if valid.
        """
        issues = []

        if not self.name:
            issues.append("Server name cannot be empty")

        if self.transport not in TRANSPORTS:
            issues.append(
                f"Invalid transport: {self.transport} (must be one of {', '.join(TRANSPORTS)})"
            )
        elif self.transport == "sse" and not self.url:
            issues.append("SSE server requires URL")
        elif self.transport == "http" and not self.url:
            issues.append("HTTP server requires URL")
        elif self.transport == "stdio" and not self.command:
            issues.append("Stdio server requires command")

        return issues

    def stdio_env(self) -> dict[str, str]:
        """Environment for a stdio server: the current one plus server-specific entries."""
        return {**os.environ, **self.env}

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "MCPServerConfig":
        """Build a config from a host-style mapping.

        Accepts either ``type`` or ``transport`` for the transport name.
        """
        transport = data.get("transport") or data.get("type") or "stdio"
        return cls(
            name=name,
            transport=transport,
            command=data.get("command"),
            args=list(data.get("args") or []),
            env={str(k): str(v) for k, v in (data.get("env") or {}).items()},
            url=data.get("url"),
        )


def parse_server_configs(data: Mapping[str, Any]) -> Dict[str, MCPServerConfig]:
    """Parse ``{"mcpServers": {...}}`` or a bare name -> server mapping.

    Insertion order is kept; it decides which server wins on tool-name collisions.
    """
    servers = data.get("mcpServers", data)
    if not isinstance(servers, Mapping):
        raise ValueError("MCP server configuration must be a mapping of name -> server")

    configs = {}
    for name, entry in servers.items():
        if not isinstance(entry, Mapping):
            raise ValueError(f"Invalid configuration for MCP server '{name}'")
        configs[name] = MCPServerConfig.from_dict(name, entry)
    return configs


def load_server_configs(path: str) -> Dict[str, MCPServerConfig]:
    """Load server configurations from a JSON file.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not valid JSON or has the wrong shape
    """
    text = Path(path).expanduser().read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid MCP server configuration file {path}: {e}") from e
    if not isinstance(data, Mapping):
        raise ValueError(f"Invalid MCP server configuration file {path}: expected an object")

    configs = parse_server_configs(data)
    logger.debug("Loaded %d MCP server config(s) from %s", len(configs), path)
    return configs
