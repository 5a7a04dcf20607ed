import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import zai_agent.cli as cli
from zai_agent.config import AppConfig
from zai_agent.events import error_event, result_event, text_event, tool_use_event

from tests.conftest_zai import FakeMCPManager

load_mcp_manager = cli._load_mcp_manager


class FakeRun:
    """Stand-in for core.QueryRun that replays canned events."""

    instances = []

    def __init__(self, options, mcp_manager=None, **kwargs):
        self.options = options
        self.mcp_manager = mcp_manager
        self.history_delta = [
            {"role": "user", "content": options.prompt},
            {"role": "assistant", "content": f"echo: {options.prompt}"},
        ]
        FakeRun.instances.append(self)

    async def events(self):
        yield text_event(f"echo: {self.options.prompt}")
        yield result_event(f"echo: {self.options.prompt}")


@pytest.fixture(autouse=True)
def fake_query_run():
    FakeRun.instances = []
    with (
        patch("zai_agent.cli.core.QueryRun", FakeRun),
        patch("zai_agent.cli._load_mcp_manager", new=AsyncMock(return_value=None)),
    ):
        yield


def _inputs(*lines):
    return MagicMock(side_effect=list(lines))


@pytest.mark.asyncio
@pytest.mark.parametrize("command", ["exit", "quit", "EXIT"])
async def test_repl_exit_commands(command):
    """CLI should exit on 'exit' or 'quit' commands"""
    with patch("builtins.print"):
        history, system_prompt = await cli.amain(_inputs(command))
    assert history == []
    assert system_prompt == ""


@pytest.mark.asyncio
async def test_eof_ends_loop():
    with patch("builtins.print"):
        history, _ = await cli.amain(_inputs(EOFError()))
    assert history == []


@pytest.mark.asyncio
async def test_prompt_accumulates_history():
    """Each prompt's history delta is appended and passed to the next query"""
    with patch("builtins.print") as mock_print:
        history, _ = await cli.amain(_inputs("hello", "", "again", "exit"))

    assert [m["content"] for m in history] == ["hello", "echo: hello", "again", "echo: again"]
    assert FakeRun.instances[1].options.conversation_history == history[:2]
    printed = "".join(str(c.args[0]) for c in mock_print.call_args_list if c.args)
    assert "echo: hello" in printed


@pytest.mark.asyncio
async def test_system_command_set_and_clear():
    """CLI /system <prompt> should set system prompt"""
    with patch("builtins.print") as mock_print:
        _, system_prompt = await cli.amain(
            _inputs("/system You are a helpful assistant.", "hello", "exit")
        )
    assert system_prompt == "You are a helpful assistant."
    assert FakeRun.instances[0].options.system_prompt == "You are a helpful assistant."
    mock_print.assert_any_call("System prompt set: You are a helpful assistant.")

    with patch("builtins.print") as mock_print:
        _, system_prompt = await cli.amain(_inputs("/system foo", "/system clear", "/system", "exit"))
    assert system_prompt == ""
    mock_print.assert_any_call("System prompt cleared.")
    mock_print.assert_any_call("No system prompt set.")


@pytest.mark.asyncio
async def test_clear_command_resets_history():
    with patch("builtins.print") as mock_print:
        history, _ = await cli.amain(_inputs("hello", "/clear", "exit"))
    assert history == []
    mock_print.assert_any_call("Conversation cleared.")


@pytest.mark.asyncio
async def test_unknown_command():
    with patch("builtins.print") as mock_print:
        await cli.amain(_inputs("/nope", "exit"))
    printed = [c.args[0] for c in mock_print.call_args_list if c.args]
    assert any(line.startswith("Error: unknown command `/nope`") for line in printed)


def test_tools_command_lists_builtin_and_mcp():
    manager = FakeMCPManager(tools=[("time", "get_time", "Current time")])
    with patch("builtins.print") as mock_print:
        cli._handle_tools_command(manager)
    mock_print.assert_any_call("Built-in tools: Read, Write, Edit, Bash, Glob, Grep, List")
    mock_print.assert_any_call("  get_time (time) - Current time")


def test_tools_command_without_mcp():
    with patch("builtins.print") as mock_print:
        cli._handle_tools_command(None)
    mock_print.assert_any_call("MCP tools: none configured")


def test_print_event_renders_tool_use_and_error():
    with patch("builtins.print") as mock_print:
        cli._print_event(tool_use_event("c1", "List", {"path": "."}))
        cli._print_event(error_event("Request aborted"))
    mock_print.assert_any_call("\n[Tool: List] {'path': '.'}", flush=True)
    mock_print.assert_any_call("\n[Error] Request aborted", flush=True)



@pytest.mark.asyncio
async def test_load_mcp_manager_without_config():
    with patch("zai_agent.cli.get_config", return_value=AppConfig()):
        assert await load_mcp_manager() is None


@pytest.mark.asyncio
async def test_load_mcp_manager_skips_unreachable_servers(tmp_path):
    path = tmp_path / "mcp.json"
    path.write_text(json.dumps({"mcpServers": {"broken": {"type": "sse"}}}), encoding="utf-8")

    with (
        patch("zai_agent.cli.get_config", return_value=AppConfig(mcp_servers_config=str(path))),
        patch("builtins.print") as mock_print,
    ):
        manager = await load_mcp_manager()

    assert manager.server_names == []
    mock_print.assert_any_call("[System: connected MCP servers: none]")


@pytest.mark.asyncio
async def test_load_mcp_manager_bad_file(tmp_path):
    path = tmp_path / "mcp.json"
    path.write_text("{not json", encoding="utf-8")

    with (
        patch("zai_agent.cli.get_config", return_value=AppConfig(mcp_servers_config=str(path))),
        patch("builtins.print") as mock_print,
    ):
        assert await load_mcp_manager() is None

    assert "could not load MCP servers" in mock_print.call_args.args[0]


def test_run_exits_130_on_keyboard_interrupt():
    with patch("zai_agent.cli.main", side_effect=KeyboardInterrupt), patch("builtins.print"):
        with pytest.raises(SystemExit) as excinfo:
            cli.run()
    assert excinfo.value.code == 130


def test_main_initializes_runtime_with_log_level(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    with (
        patch("zai_agent.cli.init_runtime") as mock_init,
        patch("zai_agent.cli.amain", new=AsyncMock(return_value=([], ""))),
    ):
        assert cli.main() == ([], "")
    mock_init.assert_called_once_with(log_level="DEBUG")
