"""
MCP client implementation for connecting to MCP servers.

Supports the three transports of the ``mcp`` SDK: stdio, SSE and streamable
HTTP. The SDK's transport and session contexts are anyio-based and must be
exited by the task that entered them, so each client owns one background
runner task that holds the contexts open until ``close()`` is called.
"""

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Any, Optional

from mcp.client.session import ClientSession
from mcp.client.sse import sse_client
from mcp.client.stdio import StdioServerParameters, stdio_client
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import Implementation

from .. import __version__
from ..messages import ToolDescriptor
from .server_config import MCPServerConfig

logger = logging.getLogger(__name__)

CLIENT_INFO = Implementation(name="zai-agent", version=__version__)


class MCPClient:
    """Client for a single MCP server.

    Usage:
        async with MCPClient(config) as client:
            tools = client.tools
            result = await client.call_tool("get_time", {})
    """

    def __init__(
        self,
        config: MCPServerConfig,
        connect_timeout: float = 30.0,
        list_tools_timeout: float = 30.0,
        call_timeout: float = 60.0,
    ):
        """Initialize MCPClient.

        Args:
            config: Server configuration (transport, command/url, env)
            connect_timeout: Seconds allowed for transport setup and session initialization
            list_tools_timeout: Seconds allowed for the initial tool listing
            call_timeout: Seconds allowed for each tool call
        """
        self.config = config
        self.connect_timeout = connect_timeout
        self.list_tools_timeout = list_tools_timeout
        self.call_timeout = call_timeout
        self.session: Optional[ClientSession] = None
        self.tools: list[ToolDescriptor] = []
        self._runner: Optional[asyncio.Task] = None
        self._ready: Optional[asyncio.Future] = None
        self._closing: Optional[asyncio.Event] = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def connected(self) -> bool:
        return self.session is not None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _open_transport(self):
        """Return the async context manager for the configured transport."""
        transport = self.config.transport
        if transport == "sse":
            if not self.config.url:
                raise ValueError("SSE server requires URL")
            return sse_client(self.config.url)
        if transport == "http":
            if not self.config.url:
                raise ValueError("HTTP server requires URL")
            return streamablehttp_client(self.config.url)
        if not self.config.command:
            raise ValueError("Stdio server requires command")
        params = StdioServerParameters(
            command=self.config.command,
            args=self.config.args,
            env=self.config.stdio_env(),
        )
        return stdio_client(params)

    async def _run(self) -> None:
        """Hold the transport and session open until close() is requested."""
        try:
            async with AsyncExitStack() as stack:
                streams = await stack.enter_async_context(self._open_transport())
                # streamable HTTP yields a third item (session id getter)
                read_stream, write_stream = streams[0], streams[1]
                session = await stack.enter_async_context(
                    ClientSession(read_stream, write_stream, client_info=CLIENT_INFO)
                )
                await session.initialize()
                self.session = session
                if not self._ready.done():
                    self._ready.set_result(None)
                await self._closing.wait()
        except Exception as e:
            if self._ready is not None and not self._ready.done():
                self._ready.set_exception(e)
            else:
                logger.error("MCP server '%s' connection ended with error: %s", self.name, e)
        finally:
            self.session = None
            self.tools = []
            if self._ready is not None and not self._ready.done():
                self._ready.cancel()

    async def connect(self) -> None:
        """Connect, initialize the session and fetch the tool list.

        Raises:
            ConnectionError: On any failure or timeout. The client is left closed.
        """
        if self.connected:
            return

        self._ready = asyncio.get_running_loop().create_future()
        self._closing = asyncio.Event()
        self._runner = asyncio.create_task(self._run(), name=f"mcp-{self.name}")

        try:
            try:
                await asyncio.wait_for(self._ready, timeout=self.connect_timeout)
            except asyncio.TimeoutError as e:
                raise ConnectionError(f"Connection to {self.name} timed out") from e
            except asyncio.CancelledError:
                if self._runner.done():
                    raise ConnectionError(f"Connection to {self.name} was closed") from None
                raise

            try:
                self.tools = await asyncio.wait_for(
                    self.list_tools(), timeout=self.list_tools_timeout
                )
            except asyncio.TimeoutError as e:
                raise ConnectionError(f"Listing tools from {self.name} timed out") from e
        except ConnectionError:
            await self.close()
            raise
        except Exception as e:
            await self.close()
            raise ConnectionError(f"Failed to connect to MCP server {self.name}: {e}") from e

    async def close(self) -> None:
        """Shut down the session and transport (idempotent)."""
        runner = self._runner
        if runner is None:
            return
        self._runner = None
        self._closing.set()
        if self.session is None and not runner.done():
            # still connecting; nothing to exit gracefully
            runner.cancel()
        await asyncio.gather(runner, return_exceptions=True)
        self.session = None
        self.tools = []

    async def list_tools(self) -> list[ToolDescriptor]:
        """List available tools from the connected MCP server.

        Raises:
            ConnectionError: if the client is not connected.
        """
        if not self.session:
            raise ConnectionError(f"MCP server \"{self.name}\" not connected")

        response = await self.session.list_tools()
        return [
            ToolDescriptor(
                server_name=self.name,
                name=tool.name,
                description=tool.description,
                input_schema=tool.inputSchema,
            )
            for tool in response.tools
        ]

    async def call_tool(self, name: str, arguments: dict) -> dict[str, Any]:
        """Execute a tool on the MCP server.

        Args:
            name: Tool name (e.g., "get_weather")
            arguments: Tool arguments as dict (e.g., {"location": "Tokyo"})

        Returns:
            Tool result with structure:
            {
                "content": [
                    {"type": "text", "text": "..."},
                    # or {"type": "image", "data": "...", "mimeType": "..."},
                    # or {"type": "resource", "resource": {...}}
                ],
                "isError": bool
            }

        Raises:
            ConnectionError: If session is not initialized
            asyncio.TimeoutError: If the call exceeds call_timeout
        """
        if not self.session:
            raise ConnectionError(f"MCP server \"{self.name}\" not connected")

        response = await asyncio.wait_for(
            self.session.call_tool(name, arguments), timeout=self.call_timeout
        )

        content = []
        for item in response.content:
            item_dict = {"type": item.type}
            item_dict.update(item.model_dump(exclude={"type"}))
            content.append(item_dict)

        return {
            "content": content,
            "isError": bool(getattr(response, "isError", False)),
        }
