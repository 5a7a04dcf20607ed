"""Built-in file and shell tools.

The executor gives the model a minimal toolbox that works without any plugin
server: read, write and edit files, run shell commands, and search the tree
(glob, grep, list). Paths are resolved against the query's working directory
unless they are absolute.

``BuiltinToolExecutor.execute`` never raises. Every failure, including bad
input and unknown tool names, comes back as ``ToolResult(success=False)`` so
the model can read the error and try again.
"""

import asyncio
import logging
import os
import re
import shutil
import signal
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..config import AppConfig, get_config_or_default
from ..errors import ToolInputError
from ..messages import ToolResult
from .inputs import (
    BashInput,
    EditInput,
    GlobInput,
    GrepInput,
    ListInput,
    ReadInput,
    WriteInput,
    parse_tool_input,
)
from .safety import is_dangerous

logger = logging.getLogger(__name__)

BUILTIN_TOOL_NAMES = ("Read", "Write", "Edit", "Bash", "Glob", "Grep", "List")
TOOL_ALIASES = {"ls": "list"}
EXTRA_PATH_DIRS = ("/opt/homebrew/bin", "/usr/local/bin")
_READ_CHUNK = 64 * 1024


def canonical_tool_name(name: str) -> Optional[str]:
    """Map a tool name to its lowercase built-in name (None if not built-in)."""
    lowered = name.lower()
    lowered = TOOL_ALIASES.get(lowered, lowered)
    if lowered in {n.lower() for n in BUILTIN_TOOL_NAMES}:
        return lowered
    return None


def _resolve(cwd: str, path: str) -> Path:
    return Path(cwd) / Path(path).expanduser()


def shell_env() -> Dict[str, str]:
    """Environment for shell commands with common tool directories on PATH."""
    env = dict(os.environ)
    env["PATH"] = ":".join([*EXTRA_PATH_DIRS, env.get("PATH", "")])
    return env


class BuiltinToolExecutor:
    """Execute built-in tools.

    Args:
        mcp_manager: Optional connection manager, only used to list plugin
            tool names when reporting an unknown tool.
        config: Optional configuration (defaults to the global one)
    """

    def __init__(self, mcp_manager=None, config: Optional[AppConfig] = None):
        self.mcp_manager = mcp_manager
        self.config = config or get_config_or_default()

    async def execute(self, name: str, tool_input: Dict[str, Any], cwd: str) -> ToolResult:
        logger.info("Executing built-in tool: %s", name)
        tool = canonical_tool_name(name)
        if tool is None:
            return self._unknown_tool(name)

        try:
            parsed = parse_tool_input(tool, tool_input or {})
            handler = getattr(self, f"_execute_{tool}")
            return await handler(parsed, cwd)
        except ToolInputError as e:
            logger.warning("Invalid input for tool %s: %s", name, e)
            return ToolResult.fail(str(e))
        except Exception as e:
            logger.exception("Error executing tool %s", name)
            return ToolResult.fail(str(e) or type(e).__name__)

    def _unknown_tool(self, name: str) -> ToolResult:
        mcp_names: List[str] = []
        if self.mcp_manager is not None:
            mcp_names = [tool.name for tool in self.mcp_manager.get_all_tools()]
        return ToolResult.fail(
            f"Unknown tool: {name}. Built-in tools: {', '.join(BUILTIN_TOOL_NAMES)}. "
            f"MCP tools: {', '.join(mcp_names) or 'none configured'}"
        )

    async def _execute_read(self, args: ReadInput, cwd: str) -> ToolResult:
        try:
            content = _resolve(cwd, args.path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return ToolResult.fail(f"Failed to read file: {e}")
        return ToolResult.ok(content)

    async def _execute_write(self, args: WriteInput, cwd: str) -> ToolResult:
        target = _resolve(cwd, args.path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(args.content, encoding="utf-8")
        except OSError as e:
            return ToolResult.fail(f"Failed to write file: {e}")
        return ToolResult.ok(f"Successfully wrote to {args.path}")

    async def _execute_edit(self, args: EditInput, cwd: str) -> ToolResult:
        target = _resolve(cwd, args.path)
        try:
            content = target.read_text(encoding="utf-8")
            if args.old not in content:
                return ToolResult.fail(
                    "Could not find the specified text in the file. "
                    "Make sure old_string matches exactly."
                )
            target.write_text(content.replace(args.old, args.new, 1), encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return ToolResult.fail(f"Failed to edit file: {e}")
        return ToolResult.ok(f"Successfully edited {args.path}")

    async def _execute_bash(self, args: BashInput, cwd: str) -> ToolResult:
        verdict = is_dangerous(args.command)
        if verdict.dangerous:
            return ToolResult.fail(verdict.reason or "Command blocked for safety")

        timeout = self.config.bash_timeout_seconds
        limit = self.config.bash_max_output_bytes
        process = await asyncio.create_subprocess_shell(
            args.command,
            cwd=cwd,
            env=shell_env(),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            executable=shutil.which("bash"),
            start_new_session=True,
        )

        buffer = bytearray()
        overflow = False

        async def _collect():
            nonlocal overflow
            while True:
                chunk = await process.stdout.read(_READ_CHUNK)
                if not chunk:
                    break
                buffer.extend(chunk)
                if len(buffer) > limit:
                    overflow = True
                    return
            await process.wait()

        try:
            await asyncio.wait_for(_collect(), timeout=timeout)
            if overflow:
                await _kill(process)
        except asyncio.TimeoutError:
            await _kill(process)
            output = _decode(buffer).strip()
            logger.warning("Command timed out after %ss: %s", timeout, args.command)
            return ToolResult.fail(f"Command timed out after {timeout:g} seconds", output=output)

        output = _decode(buffer[:limit]).strip()
        if overflow:
            return ToolResult.fail(f"Command output exceeded {limit} bytes", output=output)
        if process.returncode != 0:
            detail = output or "Command failed"
            return ToolResult.fail(
                f"Exit code {process.returncode}: {detail}", output=output
            )
        return ToolResult.ok(output)

    async def _execute_glob(self, args: GlobInput, cwd: str) -> ToolResult:
        root = Path(cwd)
        limit = self.config.glob_max_results
        try:
            matches = await asyncio.to_thread(_glob_files, root, args.pattern, limit)
        except (OSError, ValueError, NotImplementedError) as e:
            return ToolResult.fail(f"Glob failed: {e}")
        return ToolResult.ok("\n".join(matches) or "No files found")

    async def _execute_grep(self, args: GrepInput, cwd: str) -> ToolResult:
        try:
            regex = re.compile(args.pattern)
        except re.error:
            regex = re.compile(re.escape(args.pattern))
        target = _resolve(cwd, args.path)
        limit = self.config.grep_max_output_bytes
        try:
            lines, truncated = await asyncio.to_thread(_grep, target, regex, limit)
        except OSError as e:
            return ToolResult.fail(f"Grep failed: {e}")
        if truncated:
            logger.warning("Grep output for %r truncated at %d bytes", args.pattern, limit)
            lines.append(f"[Output truncated: more than {limit} bytes of matches]")
        return ToolResult.ok("\n".join(lines) or "No matches found")

    async def _execute_list(self, args: ListInput, cwd: str) -> ToolResult:
        target = _resolve(cwd, args.path)
        try:
            with os.scandir(target) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            return ToolResult.fail(f"Failed to list directory: {e}")
        lines = [
            f"{'[DIR]' if entry.is_dir() else '[FILE]'} {entry.name}" for entry in entries
        ]
        return ToolResult.ok("\n".join(lines))


async def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        # group already gone
        pass
    await process.wait()


def _decode(data: bytes) -> str:
    return bytes(data).decode("utf-8", errors="replace")


def _glob_files(root: Path, pattern: str, limit: int) -> List[str]:
    # bare names match at any depth, like `find -name`
    if "/" in pattern or "**" in pattern:
        candidates = root.glob(pattern)
    else:
        candidates = root.rglob(pattern)

    # the first `limit` paths in sorted order
    results = sorted(
        f"./{path.relative_to(root).as_posix()}" for path in candidates if path.is_file()
    )
    return results[:limit]


def _grep(target: Path, regex: "re.Pattern[str]", limit_bytes: int) -> Tuple[List[str], bool]:
    """Matching lines as ``path:lineno:text``; stops once output would pass ``limit_bytes``.

    Returns the lines and whether the output was truncated.
    """
    if not target.exists():
        return [], False
    files = [target] if target.is_file() else sorted(p for p in target.rglob("*") if p.is_file())

    results = []
    size = 0
    for path in files:
        try:
            with path.open(encoding="utf-8") as handle:
                for lineno, line in enumerate(handle, start=1):
                    if not regex.search(line):
                        continue
                    entry = f"{path}:{lineno}:{line.rstrip()}"
                    # +1 for the joining newline
                    size += len(entry.encode("utf-8")) + 1
                    if size > limit_bytes:
                        return results, True
                    results.append(entry)
        except (OSError, UnicodeDecodeError):
            logger.debug("Skipping unreadable file during grep: %s", path)
            continue
    return results, False
