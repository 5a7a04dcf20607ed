"""Public API of the agent.

Typical use from async code:

    from zai_agent.core import QueryOptions, execute_query

    async for event in execute_query(QueryOptions(prompt="list files", cwd=".")):
        ...
"""

from .core_modules.agentic_loop import (
    ABORTED_MESSAGE,
    MISSING_API_KEY_MESSAGE,
    QueryOptions,
    QueryResult,
    QueryRun,
    build_initial_messages,
    execute_query,
    run_query,
    run_query_sync,
)
from .credentials import (
    CredentialsProvider,
    EnvCredentialsProvider,
    StaticCredentialsProvider,
)
from .events import event_text, is_terminal
from .mcp import MCPConnectionManager, MCPServerConfig, load_server_configs
from .messages import Message, ToolCall, ToolCallRef, ToolDescriptor, ToolResult
from .models import ZAI_MODELS, default_model, get_model
from .prompts import SystemPromptPreset
from .tools import BuiltinToolExecutor, ToolDispatcher, is_dangerous

__all__ = [
    "ABORTED_MESSAGE",
    "MISSING_API_KEY_MESSAGE",
    "QueryOptions",
    "QueryResult",
    "QueryRun",
    "build_initial_messages",
    "execute_query",
    "run_query",
    "run_query_sync",
    "CredentialsProvider",
    "EnvCredentialsProvider",
    "StaticCredentialsProvider",
    "event_text",
    "is_terminal",
    "MCPConnectionManager",
    "MCPServerConfig",
    "load_server_configs",
    "Message",
    "ToolCall",
    "ToolCallRef",
    "ToolDescriptor",
    "ToolResult",
    "ZAI_MODELS",
    "default_model",
    "get_model",
    "SystemPromptPreset",
    "BuiltinToolExecutor",
    "ToolDispatcher",
    "is_dangerous",
]
