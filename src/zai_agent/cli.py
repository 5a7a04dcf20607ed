import asyncio
import logging
import os
import signal
import sys

from . import core
from .config import get_config
from .events import event_text
from .mcp import MCPConnectionManager, load_server_configs
from .runtime import init_runtime
from .tools.builtin import BUILTIN_TOOL_NAMES

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Commands: /system [text|clear], /clear, /tools, exit | quit. "
    "Anything else is sent to the model."
)


def _handle_system_command(args, system_prompt):
    """Handle /system command"""
    if not args:
        if system_prompt:
            print(f"Current system prompt: {system_prompt}")
        else:
            print("No system prompt set.")
        return system_prompt

    if args == "clear":
        print("System prompt cleared.")
        return ""

    print(f"System prompt set: {args}")
    return args


def _handle_tools_command(manager):
    """Handle /tools command"""
    print(f"Built-in tools: {', '.join(BUILTIN_TOOL_NAMES)}")
    tools = manager.get_all_tools() if manager is not None else []
    if not tools:
        print("MCP tools: none configured")
        return
    print("MCP tools:")
    for tool in tools:
        description = f" - {tool.description}" if tool.description else ""
        print(f"  {tool.name} ({tool.server_name}){description}")


def _print_event(event):
    """Render a single query event to stdout."""
    event_type = event.get("type")
    if event_type == "assistant":
        text = event_text(event)
        if text:
            print(text, end="", flush=True)
        for block in event["message"]["content"]:
            if block.get("type") == "tool_use":
                print(f"\n[Tool: {block['name']}] {block['input']}", flush=True)
    elif event_type == "error":
        print(f"\n[Error] {event['error']}", flush=True)
    elif event_type == "result":
        print(flush=True)


async def _load_mcp_manager():
    """Connect to the servers listed in MCP_SERVERS_CONFIG, if any."""
    path = get_config().mcp_servers_config
    if not path:
        return None
    try:
        servers = load_server_configs(path)
    except (OSError, ValueError) as e:
        print(f"[System: could not load MCP servers from {path}: {e}]")
        return None

    manager = MCPConnectionManager()
    await manager.initialize(servers)
    connected = manager.server_names
    print(f"[System: connected MCP servers: {', '.join(connected) or 'none'}]")
    return manager


async def _run_prompt(prompt, history, system_prompt, manager, cwd):
    """Stream one query and return the messages it added to the conversation."""
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        handler_installed = False

    options = core.QueryOptions(
        prompt=prompt,
        system_prompt=system_prompt or None,
        conversation_history=list(history),
        cwd=cwd,
        cancel_event=cancel_event,
    )
    run = core.QueryRun(options, mcp_manager=manager)
    try:
        print("[Assistant]: ", end="", flush=True)
        async for event in run.events():
            _print_event(event)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)
    return run.history_delta


async def amain(read_input=None):
    """Main CLI loop (async)"""
    read_input = read_input or input
    history = []
    system_prompt = ""
    cwd = os.getcwd()
    manager = await _load_mcp_manager()

    try:
        while True:
            try:
                prompt = (await asyncio.to_thread(read_input, "> ")).strip()
            except EOFError:
                break

            if not prompt:
                continue

            if prompt.lower() in ["exit", "quit"]:
                break

            if prompt.startswith("/"):
                parts = prompt.split(None, 1)
                command = parts[0]
                args = parts[1] if len(parts) > 1 else ""

                if command == "/system":
                    system_prompt = _handle_system_command(args, system_prompt)
                elif command == "/clear":
                    history = []
                    print("Conversation cleared.")
                elif command == "/tools":
                    _handle_tools_command(manager)
                elif command == "/help":
                    print(HELP_TEXT)
                else:
                    print(f"Error: unknown command `{command}`. {HELP_TEXT}")
                continue

            history.extend(await _run_prompt(prompt, history, system_prompt, manager, cwd))
    finally:
        if manager is not None:
            await manager.close()

    return history, system_prompt


def main():
    """Initialize the runtime and run the CLI loop."""
    init_runtime(log_level=os.getenv("LOG_LEVEL"))
    return asyncio.run(amain())


def run():
    """Console script entry point."""
    try:
        main()
    except KeyboardInterrupt:
        print()
        sys.exit(130)
