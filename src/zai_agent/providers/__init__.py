"""Completion endpoint clients and stream parsing."""

from .stream import DONE, SSEParser, ToolCallAssembler
from .zai import TurnResult, ZaiCompletionClient

__all__ = ["DONE", "SSEParser", "ToolCallAssembler", "TurnResult", "ZaiCompletionClient"]
