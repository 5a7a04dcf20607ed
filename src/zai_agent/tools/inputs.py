"""Typed input shapes for the built-in tools.

Models are loose about argument names, so every field accepts a small set of
aliases. ``parse_tool_input`` validates a raw argument dict once and returns
the typed shape; tools never look at the raw dict themselves.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from ..errors import ToolInputError


@dataclass(frozen=True)
class FieldSpec:
    """One input field and the argument keys that may carry it.

    Attributes:
        name: Attribute name on the typed input
        aliases: Accepted argument keys, in priority order
        default: Value used when no alias is present (None means required)
        allow_empty: Whether an empty string counts as present
    """

    name: str
    aliases: Tuple[str, ...]
    default: Optional[str] = None
    allow_empty: bool = False


@dataclass(frozen=True)
class ReadInput:
    path: str


@dataclass(frozen=True)
class WriteInput:
    path: str
    content: str


@dataclass(frozen=True)
class EditInput:
    path: str
    old: str
    new: str


@dataclass(frozen=True)
class BashInput:
    command: str


@dataclass(frozen=True)
class GlobInput:
    pattern: str


@dataclass(frozen=True)
class GrepInput:
    pattern: str
    path: str = "."


@dataclass(frozen=True)
class ListInput:
    path: str = "."


_PATH = FieldSpec("path", ("file_path", "path", "file"))

# tool name -> (input type, fields)
INPUT_SPECS: Dict[str, Tuple[type, Tuple[FieldSpec, ...]]] = {
    "read": (ReadInput, (_PATH,)),
    "write": (
        WriteInput,
        (_PATH, FieldSpec("content", ("content", "text", "data"), allow_empty=True)),
    ),
    "edit": (
        EditInput,
        (
            _PATH,
            FieldSpec("old", ("old_string", "old", "find")),
            FieldSpec("new", ("new_string", "new", "replace"), allow_empty=True),
        ),
    ),
    "bash": (BashInput, (FieldSpec("command", ("command", "cmd")),)),
    "glob": (GlobInput, (FieldSpec("pattern", ("pattern", "glob")),)),
    "grep": (
        GrepInput,
        (
            FieldSpec("pattern", ("pattern", "query", "search")),
            FieldSpec("path", ("path", "directory"), default="."),
        ),
    ),
    "list": (ListInput, (FieldSpec("path", ("path", "directory"), default="."),)),
}


def _coerce(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _lookup(raw: Mapping[str, Any], spec: FieldSpec) -> Optional[str]:
    for key in spec.aliases:
        if key not in raw or raw[key] is None:
            continue
        value = _coerce(raw[key])
        if value == "" and not spec.allow_empty:
            continue
        return value
    return None


def parse_tool_input(tool: str, raw: Mapping[str, Any]):
    """Validate raw arguments for a built-in tool.

    Args:
        tool: Lowercase built-in tool name (read, write, edit, bash, glob, grep, list)
        raw: Arguments as sent by the model

    Returns:
        The typed input dataclass for the tool.

    Raises:
        ToolInputError: If a required field is missing.
        KeyError: If ``tool`` is not a built-in tool.
    """
    input_type, fields = INPUT_SPECS[tool]
    values = {}
    for spec in fields:
        value = _lookup(raw, spec)
        if value is None:
            if spec.default is None:
                raise ToolInputError(
                    f"Missing required field '{spec.name}' for tool '{tool}' "
                    f"(accepted keys: {', '.join(spec.aliases)})"
                )
            value = spec.default
        values[spec.name] = value
    return input_type(**values)
