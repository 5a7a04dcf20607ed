"""Agentic Loop implementation module

This module contains the streaming completion loop with tool support.
The loop repeatedly calls the Z.ai completion endpoint and executes the
requested tools until:
- the model returns a turn without tool calls
- max_turns is reached
- the caller's cancellation event fires
- an error occurs

Main components:
- QueryOptions: Inputs for one query
- QueryRun: One query execution (streams events, tracks turns and history)
- QueryResult: Immutable collect-all result
- execute_query: Streaming version (yields events in real-time)
- run_query: Collect-all version (returns QueryResult)
- run_query_sync: Synchronous wrapper

Every query ends with exactly one terminal event, either
``{"type": "result", ...}`` or ``{"type": "error", ...}``.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Union

import httpx

from ..config import AppConfig, get_config_or_default
from ..credentials import CredentialsProvider, EnvCredentialsProvider, load_api_keys, resolve_credentials
from ..errors import ConfigurationError, RequestAborted, ZaiAgentError
from ..events import Event, error_event, result_event, text_event, tool_use_event
from ..history_utils import history_to_wire, trim_history
from ..mcp.connection_manager import MCPConnectionManager
from ..messages import Content, Message, ToolCall
from ..prompts import SystemPrompt, resolve_system_prompt
from ..providers.zai import TurnResult, ZaiCompletionClient
from ..tools.builtin import BuiltinToolExecutor
from ..tools.dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)

MISSING_API_KEY_MESSAGE = (
    "Z.ai API key not configured. Please add your API key in Settings > Providers > Z.ai"
)
ABORTED_MESSAGE = "Request aborted"


@dataclass
class QueryOptions:
    """Inputs for a single query.

    Attributes:
        prompt: Current user prompt (text, or a list of text/image blocks)
        model: Model id (defaults to the configured model)
        system_prompt: Literal text or a SystemPromptPreset
        conversation_history: Prior messages (Message objects or wire dicts)
        allowed_tools: Built-in tools to advertise (None means all)
        cwd: Working directory for built-in tools (defaults to the process cwd)
        max_turns: Turn budget (defaults to the configured AGENT_MAX_TURNS)
        mcp_servers: Plugin server configs to connect before the first turn
        cancel_event: Set by the caller to abort the query
    """

    prompt: Content
    model: Optional[str] = None
    system_prompt: Optional[SystemPrompt] = None
    conversation_history: Sequence[Union[Message, Dict[str, Any]]] = field(default_factory=list)
    allowed_tools: Optional[Sequence[str]] = None
    cwd: Optional[str] = None
    max_turns: Optional[int] = None
    mcp_servers: Optional[Mapping[str, Any]] = None
    cancel_event: Optional[asyncio.Event] = None


@dataclass(frozen=True)
class QueryResult:
    """Result of run_query() execution.

    Attributes:
        events: All events yielded during execution, terminal event last
        final_text: Accumulated assistant text
        turns_used: Number of completion requests made
        history_delta: Messages added after the prior history (wire dicts),
            starting with the user prompt
        error: Error message if the query failed (None on success)
    """

    events: List[Event]
    final_text: str
    turns_used: int
    history_delta: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None


def build_initial_messages(options: QueryOptions) -> List[Dict[str, Any]]:
    """System prompt (if any), prior history, then the current prompt."""
    messages = []
    system_text = resolve_system_prompt(options.system_prompt)
    if system_text:
        messages.append(Message(role="system", content=system_text).to_wire())
    messages.extend(history_to_wire(options.conversation_history))
    messages.append(Message(role="user", content=options.prompt).to_wire())
    return messages


class QueryRun:
    """One execution of the agentic loop.

    Args:
        options: Query inputs
        credentials_provider: Source of API keys (defaults to the environment)
        mcp_manager: Shared connection manager. When omitted and
            ``options.mcp_servers`` is set, a manager is created for this run
            and closed when it ends.
        http_client: Optional shared ``httpx.AsyncClient``
        config: Optional configuration (defaults to the global one)
    """

    def __init__(
        self,
        options: QueryOptions,
        credentials_provider: Optional[CredentialsProvider] = None,
        mcp_manager: Optional[MCPConnectionManager] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        config: Optional[AppConfig] = None,
    ):
        self.options = options
        self.config = config or get_config_or_default()
        self.credentials_provider = credentials_provider or EnvCredentialsProvider(self.config)
        self.mcp_manager = mcp_manager
        self.http_client = http_client
        self.turns_used = 0
        self.total_text = ""
        self.history_delta: List[Dict[str, Any]] = []
        self.error: Optional[str] = None

    async def _connect_servers(self) -> Optional[MCPConnectionManager]:
        """Initialize plugin servers; returns the manager if this run owns it."""
        if not self.options.mcp_servers:
            return None
        owned = None
        if self.mcp_manager is None:
            owned = self.mcp_manager = MCPConnectionManager(self.config)
        await self.mcp_manager.initialize(self.options.mcp_servers)
        logger.info(
            "MCP client initialized with %d server(s)", len(self.options.mcp_servers)
        )
        return owned

    def _aborted(self) -> bool:
        event = self.options.cancel_event
        return event is not None and event.is_set()

    async def events(self) -> AsyncIterator[Event]:
        """Run the loop, yielding events as they are produced."""
        owned_manager = None
        client = None
        try:
            api_keys = await load_api_keys(self.credentials_provider)
            resolved = resolve_credentials(api_keys, self.config)
            if resolved is None:
                raise ConfigurationError(MISSING_API_KEY_MESSAGE)
            api_key, base_url = resolved

            owned_manager = await self._connect_servers()

            dispatcher = ToolDispatcher(
                self.mcp_manager, BuiltinToolExecutor(self.mcp_manager, self.config)
            )
            tools = dispatcher.build_tools_schema(self.options.allowed_tools) or None
            cwd = self.options.cwd or os.getcwd()

            messages = build_initial_messages(self.options)
            self.history_delta.append(messages[-1])
            client = ZaiCompletionClient(api_key, base_url, self.config, self.http_client)

            max_turns = self.options.max_turns or self.config.max_turns
            while self.turns_used < max_turns:
                if self._aborted():
                    raise RequestAborted()

                self.turns_used += 1
                logger.info("Turn %d/%d", self.turns_used, max_turns)

                messages = trim_history(messages)

                turn: Optional[TurnResult] = None
                async for item in client.stream_turn(
                    messages, self.options.model, tools, self.options.cancel_event
                ):
                    if isinstance(item, TurnResult):
                        turn = item
                    else:
                        self.total_text += item["content"]
                        yield text_event(item["content"])

                if self._aborted():
                    raise RequestAborted()

                if not turn.tool_calls:
                    if turn.text:
                        self.history_delta.append(
                            Message(role="assistant", content=turn.text).to_wire()
                        )
                    logger.info("No tool calls, ending loop after %d turns", self.turns_used)
                    break

                assistant = Message(
                    role="assistant", content=turn.text, tool_calls=turn.tool_calls
                ).to_wire()
                messages.append(assistant)
                self.history_delta.append(assistant)

                for ref in turn.tool_calls:
                    call = ToolCall.from_ref(ref)
                    logger.info("Executing tool: %s", call.name)
                    yield tool_use_event(call.id, call.name, call.input)

                    # the consumer may cancel while handling tool_use
                    if self._aborted():
                        raise RequestAborted()

                    result = await dispatcher.dispatch(call, cwd)
                    result_text = result.to_message_text()
                    logger.info("Tool %s result: %s", call.name, result_text[:200])

                    # tool results go back to the model only
                    tool_message = Message(
                        role="tool", content=result_text, tool_call_id=call.id
                    ).to_wire()
                    messages.append(tool_message)
                    self.history_delta.append(tool_message)
            else:
                logger.warning("Reached max turns (%d)", max_turns)

            yield result_event(self.total_text)

        except RequestAborted:
            logger.info("Query aborted after %d turns", self.turns_used)
            self.error = ABORTED_MESSAGE
            yield error_event(ABORTED_MESSAGE)
        except ZaiAgentError as e:
            logger.error("Query failed: %s", e)
            self.error = str(e)
            yield error_event(self.error)
        except Exception as e:
            logger.exception("Unhandled error during agentic loop execution: %s", e)
            self.error = str(e) or "Unknown error occurred"
            yield error_event(self.error)
        finally:
            if client is not None:
                await client.aclose()
            if owned_manager is not None:
                await owned_manager.close()


async def execute_query(
    options: QueryOptions,
    credentials_provider: Optional[CredentialsProvider] = None,
    mcp_manager: Optional[MCPConnectionManager] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    config: Optional[AppConfig] = None,
) -> AsyncIterator[Event]:
    """Execute a query with the agentic loop, streaming events in real-time.

    This is the recommended API for streaming scenarios (CLI, servers).

    Args:
        options: Query inputs (prompt, history, system prompt, tools, cwd, ...)
        credentials_provider: Object exposing ``get_credentials()``
        mcp_manager: Optional shared MCPConnectionManager
        http_client: Optional shared httpx.AsyncClient
        config: Optional AppConfig (defaults to the global one)

    Yields:
        Event dicts: assistant text, assistant tool_use, then one terminal
        ``result`` or ``error`` event.
    """
    run = QueryRun(options, credentials_provider, mcp_manager, http_client, config)
    async for event in run.events():
        yield event


async def run_query(
    options: QueryOptions,
    credentials_provider: Optional[CredentialsProvider] = None,
    mcp_manager: Optional[MCPConnectionManager] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    config: Optional[AppConfig] = None,
) -> QueryResult:
    """Execute a query and collect every event (buffered version).

    For streaming scenarios, use execute_query() instead.

    Returns:
        QueryResult: Immutable result object containing:
            - events: All events
            - final_text: Accumulated assistant text
            - turns_used: Number of turns used
            - history_delta: New wire messages
            - error: Terminal error message, if any
    """
    run = QueryRun(options, credentials_provider, mcp_manager, http_client, config)
    events = [event async for event in run.events()]
    return QueryResult(
        events=events,
        final_text=run.total_text,
        turns_used=run.turns_used,
        history_delta=list(run.history_delta),
        error=run.error,
    )


def run_query_sync(
    options: QueryOptions,
    credentials_provider: Optional[CredentialsProvider] = None,
    mcp_manager: Optional[MCPConnectionManager] = None,
    config: Optional[AppConfig] = None,
) -> QueryResult:
    """
    Synchronous wrapper for run_query().

    Raises:
        RuntimeError: If called from within an async context
    """
    try:
        asyncio.get_running_loop()
        raise RuntimeError(
            "run_query_sync() cannot be called from an async context. "
            "Use 'await run_query()' instead."
        )
    except RuntimeError as e:
        error_msg = str(e).lower()
        if "no running event loop" not in error_msg and "no running loop" not in error_msg:
            raise

    return asyncio.run(
        run_query(
            options,
            credentials_provider=credentials_provider,
            mcp_manager=mcp_manager,
            config=config,
        )
    )
