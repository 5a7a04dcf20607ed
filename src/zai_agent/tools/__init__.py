"""Built-in tools, command safety filter and tool dispatch."""

from .builtin import BUILTIN_TOOL_NAMES, BuiltinToolExecutor
from .dispatcher import ToolDispatcher
from .safety import SAFETY_RULES, SafetyRule, SafetyVerdict, is_dangerous

__all__ = [
    "BUILTIN_TOOL_NAMES",
    "BuiltinToolExecutor",
    "ToolDispatcher",
    "SAFETY_RULES",
    "SafetyRule",
    "SafetyVerdict",
    "is_dangerous",
]
