"""Route tool calls to plugin servers or built-in tools."""

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..messages import ToolCall, ToolResult
from .builtin import BUILTIN_TOOL_NAMES, BuiltinToolExecutor
from .schemas import builtin_tool_schemas, function_tool

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """Dispatch tool calls and build the tool schema sent to the model.

    Args:
        mcp_manager: Optional MCPConnectionManager; plugin tools take
            precedence over built-ins with the same name
        executor: Optional built-in executor (one is created if omitted)
    """

    def __init__(self, mcp_manager=None, executor: Optional[BuiltinToolExecutor] = None):
        self.mcp_manager = mcp_manager
        self.executor = executor or BuiltinToolExecutor(mcp_manager=mcp_manager)

    async def dispatch(self, tool_call: ToolCall, cwd: str) -> ToolResult:
        if self.mcp_manager is not None and self.mcp_manager.is_mcp_tool(tool_call.name):
            logger.info("Routing to MCP tool: %s", tool_call.name)
            return await self.mcp_manager.call_tool(tool_call.name, tool_call.input)
        return await self.executor.execute(tool_call.name, tool_call.input, cwd)

    def build_tools_schema(
        self, allowed_tools: Optional[Sequence[str]] = None
    ) -> List[Dict[str, Any]]:
        """Merge built-in schemas with every known plugin tool.

        Args:
            allowed_tools: Built-in tool names to advertise. None advertises
                all built-ins; an empty sequence advertises none.

        Returns:
            OpenAI ``function`` tool definitions. Plugin tools whose name
            matches an allowed built-in (case-insensitively) are skipped.
        """
        names = list(BUILTIN_TOOL_NAMES) if allowed_tools is None else list(allowed_tools)
        tools = builtin_tool_schemas(names)
        reserved = {name.lower() for name in names}

        if self.mcp_manager is None:
            return tools

        for tool in self.mcp_manager.get_all_tools():
            if tool.name.lower() in reserved:
                logger.debug(
                    "Skipping MCP tool %s from %s: collides with built-in", tool.name, tool.server_name
                )
                continue
            tools.append(
                function_tool(
                    tool.name,
                    tool.description or f"MCP Tool: {tool.name}",
                    tool.input_schema,
                )
            )
        return tools
