"""
MCP connection manager for multiple plugin servers.

Connects to every configured server concurrently, aggregates their tools and
routes tool calls to the server that advertises the tool. A connection
failure only removes that server; it never fails the caller.

The manager is an ordinary object owned by the host. Sharing it between
conversations on the same event loop means passing the same instance around;
the server name is the key for both connections and in-flight connects.
"""

import asyncio
import logging
from typing import Dict, List, Mapping, Optional, Union

from ..config import AppConfig, get_config_or_default
from ..messages import ToolDescriptor, ToolResult
from .client import MCPClient
from .server_config import MCPServerConfig

logger = logging.getLogger(__name__)

ServerConfigs = Mapping[str, Union[MCPServerConfig, Mapping]]


class MCPConnectionManager:
    """Manager for plugin server connections.

    Per-server state goes absent -> connecting -> connected, or back to
    absent when connecting fails or the session later drops. There is no
    automatic reconnection; ``initialize`` or ``connect`` replaces a dropped
    client.
    """

    def __init__(self, config: Optional[AppConfig] = None, client_factory=MCPClient):
        self.config = config or get_config_or_default()
        self._client_factory = client_factory
        self._connections: Dict[str, MCPClient] = {}
        self._connecting: Dict[str, asyncio.Task] = {}

    def _live_connections(self) -> Dict[str, MCPClient]:
        # a client whose session dropped stays in _connections until
        # connect() replaces it or close() reaps it, but counts as absent
        return {name: client for name, client in self._connections.items() if client.connected}

    @property
    def server_names(self) -> List[str]:
        """Names of connected servers, in connection order."""
        return list(self._live_connections())

    def is_connected(self, name: str) -> bool:
        client = self._connections.get(name)
        return client is not None and client.connected

    async def initialize(self, servers: ServerConfigs) -> None:
        """Connect to all configured servers in parallel.

        Args:
            servers: Mapping of server name to MCPServerConfig or a raw
                ``{"type"/"transport", "url", "command", "args", "env"}`` mapping
        """
        if not servers:
            logger.info("No MCP servers configured")
            return

        names = list(servers)
        logger.info("Initializing %d MCP server(s): %s", len(names), ", ".join(names))

        configs = []
        for name in names:
            entry = servers[name]
            if isinstance(entry, MCPServerConfig):
                configs.append(entry)
            else:
                configs.append(MCPServerConfig.from_dict(name, entry))

        await asyncio.gather(*(self.connect(cfg.name, cfg) for cfg in configs))

    async def connect(self, name: str, config: MCPServerConfig) -> Optional[MCPClient]:
        """Connect to a single server.

        Concurrent calls for the same name share one connection attempt.

        Returns:
            The connected client, or None if the connection failed.
        """
        pending = self._connecting.get(name)
        if pending is not None:
            return await asyncio.shield(pending)

        existing = self._connections.get(name)
        if existing is not None and existing.connected:
            return existing

        task = asyncio.create_task(
            self._do_connect(name, config, stale=existing), name=f"mcp-connect-{name}"
        )
        self._connecting[name] = task

        def _forget(done: asyncio.Task) -> None:
            if self._connecting.get(name) is done:
                del self._connecting[name]

        task.add_done_callback(_forget)
        return await asyncio.shield(task)

    async def _do_connect(
        self, name: str, config: MCPServerConfig, stale: Optional[MCPClient] = None
    ) -> Optional[MCPClient]:
        if stale is not None:
            logger.warning("MCP server %s connection was lost, reconnecting", name)
            self._connections.pop(name, None)
            try:
                await stale.close()
            except Exception as e:
                logger.error("Error closing dropped connection to %s: %s", name, e)

        issues = config.validate()
        if issues:
            logger.error("Failed to connect to %s: %s", name, "; ".join(issues))
            return None

        logger.info("Connecting to MCP server: %s", name)
        client = self._client_factory(
            config,
            connect_timeout=self.config.mcp_connect_timeout_seconds,
            list_tools_timeout=self.config.mcp_list_tools_timeout_seconds,
            call_timeout=self.config.mcp_call_timeout_seconds,
        )
        try:
            await client.connect()
        except Exception as e:
            logger.error("Failed to connect to %s: %s", name, e)
            return None

        logger.info(
            "Connected to %s, found %d tools: %s",
            name,
            len(client.tools),
            ", ".join(tool.name for tool in client.tools),
        )
        self._connections[name] = client
        return client

    def get_all_tools(self) -> List[ToolDescriptor]:
        """All tools across connected servers, in connection order."""
        return [tool for client in self._live_connections().values() for tool in client.tools]

    def find_server_for_tool(self, tool_name: str) -> Optional[str]:
        """Name of the first connected server advertising ``tool_name``."""
        for server_name, client in self._live_connections().items():
            if any(tool.name == tool_name for tool in client.tools):
                return server_name
        return None

    def is_mcp_tool(self, tool_name: str) -> bool:
        return self.find_server_for_tool(tool_name) is not None

    async def call_tool(self, tool_name: str, arguments: dict) -> ToolResult:
        """Call a plugin tool. Never raises; failures become failed results."""
        server_name = self.find_server_for_tool(tool_name)
        if server_name is None:
            return ToolResult.fail(f'Tool "{tool_name}" not found in any MCP server')

        client = self._connections[server_name]

        logger.info("Calling tool %s on server %s", tool_name, server_name)
        try:
            result = await client.call_tool(tool_name, arguments or {})
        except asyncio.TimeoutError:
            logger.error("Tool %s timed out", tool_name)
            return ToolResult.fail(f"Tool call {tool_name} timed out")
        except Exception as e:
            logger.error("Tool %s failed: %s", tool_name, e)
            return ToolResult.fail(str(e) or type(e).__name__)

        output = "\n".join(
            item["text"]
            for item in result.get("content", [])
            if item.get("type") == "text" and isinstance(item.get("text"), str)
        )
        logger.info("Tool %s returned %d chars", tool_name, len(output))

        if result.get("isError"):
            return ToolResult.fail(output or f"Tool {tool_name} reported an error")
        return ToolResult.ok(output)

    async def close(self) -> None:
        """Close all connections. A failure on one does not stop the others."""
        for name, client in list(self._connections.items()):
            try:
                await client.close()
                logger.info("Closed connection to %s", name)
            except Exception as e:
                logger.error("Error closing connection to %s: %s", name, e)
        self._connections.clear()
