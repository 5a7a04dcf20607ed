"""
Tests for MCP client implementation.
"""

import asyncio
import unittest
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

from mcp.types import CallToolResult, ImageContent, ListToolsResult, TextContent, Tool

from zai_agent.mcp.client import CLIENT_INFO, MCPClient
from zai_agent.mcp.server_config import MCPServerConfig


def fake_transport(events, streams=("read", "write"), error=None):
    """Build a stand-in for the SDK transport context managers."""

    @asynccontextmanager
    async def _transport(*args, **kwargs):
        events.append(("enter", args))
        if error is not None:
            raise error
        try:
            yield streams
        finally:
            events.append(("exit",))

    return _transport


def make_session(tools=None):
    session = AsyncMock()
    session.__aenter__.return_value = session
    session.initialize = AsyncMock()
    session.list_tools = AsyncMock(return_value=ListToolsResult(tools=tools or []))
    return session


TIME_TOOL = Tool(
    name="get_time",
    description="Get current time",
    inputSchema={"type": "object", "properties": {"tz": {"type": "string"}}},
)


class TestMCPClient(unittest.IsolatedAsyncioTestCase):
    """Test MCPClient for connecting to MCP servers and calling tools."""

    def setUp(self):
        self.events = []
        self.stdio_config = MCPServerConfig(
            name="time", command="uvx", args=["mcp-server-time"], env={"TZ": "UTC"}
        )

    def test_initialization(self):
        """MCPClientが正常に初期化できる"""
        client = MCPClient(self.stdio_config, connect_timeout=5)
        self.assertEqual(client.name, "time")
        self.assertEqual(client.connect_timeout, 5)
        self.assertFalse(client.connected)
        self.assertEqual(client.tools, [])

    @patch("zai_agent.mcp.client.ClientSession")
    async def test_stdio_connect_lists_tools(self, mock_session_class):
        """stdioサーバーに接続してツール一覧を取得できる"""
        session = make_session([TIME_TOOL])
        mock_session_class.return_value = session

        with patch("zai_agent.mcp.client.stdio_client", new=fake_transport(self.events)):
            async with MCPClient(self.stdio_config) as client:
                self.assertTrue(client.connected)
                session.initialize.assert_awaited_once()
                self.assertEqual(len(client.tools), 1)
                tool = client.tools[0]
                self.assertEqual(tool.server_name, "time")
                self.assertEqual(tool.name, "get_time")
                self.assertEqual(tool.description, "Get current time")
                self.assertEqual(tool.input_schema["type"], "object")

                params = self.events[0][1][0]
                self.assertEqual(params.command, "uvx")
                self.assertEqual(params.args, ["mcp-server-time"])
                self.assertEqual(params.env["TZ"], "UTC")

            self.assertFalse(client.connected)
            self.assertEqual(client.tools, [])

        mock_session_class.assert_called_once_with("read", "write", client_info=CLIENT_INFO)
        self.assertEqual(self.events[-1], ("exit",))

    @patch("zai_agent.mcp.client.ClientSession")
    async def test_sse_transport(self, mock_session_class):
        """SSEサーバーはURLで接続する"""
        mock_session_class.return_value = make_session()
        config = MCPServerConfig(name="remote", transport="sse", url="http://localhost:9000/sse")

        with patch("zai_agent.mcp.client.sse_client", new=fake_transport(self.events)):
            async with MCPClient(config):
                pass

        self.assertEqual(self.events[0], ("enter", ("http://localhost:9000/sse",)))

    @patch("zai_agent.mcp.client.ClientSession")
    async def test_http_transport_three_tuple(self, mock_session_class):
        """streamable HTTPは3要素のタプルを返す"""
        mock_session_class.return_value = make_session()
        config = MCPServerConfig(name="web", transport="http", url="http://localhost:9000/mcp")
        transport = fake_transport(self.events, streams=("read", "write", lambda: "sid"))

        with patch("zai_agent.mcp.client.streamablehttp_client", new=transport):
            async with MCPClient(config) as client:
                self.assertTrue(client.connected)

        mock_session_class.assert_called_once_with("read", "write", client_info=CLIENT_INFO)

    async def test_transport_error_becomes_connection_error(self):
        """トランスポートのエラーはConnectionErrorになる"""
        transport = fake_transport(self.events, error=FileNotFoundError("uvx not found"))
        client = MCPClient(self.stdio_config)

        with patch("zai_agent.mcp.client.stdio_client", new=transport):
            with self.assertRaises(ConnectionError) as cm:
                await client.connect()

        self.assertEqual(
            str(cm.exception), "Failed to connect to MCP server time: uvx not found"
        )
        self.assertFalse(client.connected)

    @patch("zai_agent.mcp.client.ClientSession")
    async def test_connect_timeout(self, mock_session_class):
        """初期化が終わらない場合はタイムアウトする"""

        async def _hang():
            await asyncio.sleep(10)

        session = make_session()
        session.initialize = AsyncMock(side_effect=_hang)
        mock_session_class.return_value = session
        client = MCPClient(self.stdio_config, connect_timeout=0.05)

        with patch("zai_agent.mcp.client.stdio_client", new=fake_transport(self.events)):
            with self.assertRaises(ConnectionError) as cm:
                await client.connect()

        self.assertEqual(str(cm.exception), "Connection to time timed out")
        # transport context was exited by the runner task
        self.assertEqual(self.events[-1], ("exit",))

    @patch("zai_agent.mcp.client.ClientSession")
    async def test_list_tools_timeout(self, mock_session_class):
        """ツール一覧の取得がタイムアウトする"""

        async def _hang():
            await asyncio.sleep(10)

        session = make_session()
        session.list_tools = AsyncMock(side_effect=_hang)
        mock_session_class.return_value = session
        client = MCPClient(self.stdio_config, list_tools_timeout=0.05)

        with patch("zai_agent.mcp.client.stdio_client", new=fake_transport(self.events)):
            with self.assertRaises(ConnectionError) as cm:
                await client.connect()

        self.assertEqual(str(cm.exception), "Listing tools from time timed out")
        self.assertFalse(client.connected)

    @patch("zai_agent.mcp.client.ClientSession")
    async def test_call_tool(self, mock_session_class):
        """ツール呼び出しの結果を辞書で返す"""
        session = make_session([TIME_TOOL])
        session.call_tool = AsyncMock(
            return_value=CallToolResult(
                content=[
                    TextContent(type="text", text="12:00"),
                    ImageContent(type="image", data="aGk=", mimeType="image/png"),
                ],
                isError=False,
            )
        )
        mock_session_class.return_value = session

        with patch("zai_agent.mcp.client.stdio_client", new=fake_transport(self.events)):
            async with MCPClient(self.stdio_config) as client:
                result = await client.call_tool("get_time", {"tz": "UTC"})

        session.call_tool.assert_awaited_once_with("get_time", {"tz": "UTC"})
        self.assertFalse(result["isError"])
        self.assertEqual(result["content"][0]["type"], "text")
        self.assertEqual(result["content"][0]["text"], "12:00")
        self.assertEqual(result["content"][1]["type"], "image")
        self.assertEqual(result["content"][1]["mimeType"], "image/png")

    @patch("zai_agent.mcp.client.ClientSession")
    async def test_call_tool_error_flag(self, mock_session_class):
        """isErrorフラグが引き継がれる"""
        session = make_session()
        session.call_tool = AsyncMock(
            return_value=CallToolResult(
                content=[TextContent(type="text", text="bad tz")], isError=True
            )
        )
        mock_session_class.return_value = session

        with patch("zai_agent.mcp.client.stdio_client", new=fake_transport(self.events)):
            async with MCPClient(self.stdio_config) as client:
                result = await client.call_tool("get_time", {})

        self.assertTrue(result["isError"])

    async def test_call_tool_not_connected(self):
        """未接続でツールを呼ぶとエラーになる"""
        client = MCPClient(self.stdio_config)
        with self.assertRaises(ConnectionError) as cm:
            await client.call_tool("get_time", {})
        self.assertEqual(str(cm.exception), 'MCP server "time" not connected')

    async def test_close_without_connect(self):
        """接続前のcloseは何もしない"""
        client = MCPClient(self.stdio_config)
        await client.close()
        await client.close()
        self.assertFalse(client.connected)

    @patch("zai_agent.mcp.client.ClientSession")
    async def test_dropped_session_clears_tools(self, mock_session_class):
        """セッションが途中で終了するとツール一覧も消える"""
        mock_session_class.return_value = make_session([TIME_TOOL])
        client = MCPClient(self.stdio_config)

        with patch("zai_agent.mcp.client.stdio_client", new=fake_transport(self.events)):
            await client.connect()
            self.assertEqual(len(client.tools), 1)

            client._runner.cancel()
            await asyncio.gather(client._runner, return_exceptions=True)

            self.assertFalse(client.connected)
            self.assertEqual(client.tools, [])
            await client.close()


if __name__ == "__main__":
    unittest.main()
