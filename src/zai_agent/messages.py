"""Conversation and tool-call data structures.

These are the in-memory shapes used by the agentic loop. ``Message.to_wire``
converts them into the OpenAI-compatible dicts sent to the completion endpoint.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

ROLES = {"system", "user", "assistant", "tool"}

ContentBlock = Dict[str, Any]
Content = Union[str, List[ContentBlock]]


@dataclass
class ToolCallRef:
    """A tool call as requested by the model.

    ``arguments_json`` is accumulated from streamed fragments and only holds
    valid JSON once the turn's stream has ended.
    """

    id: str
    name: str
    arguments_json: str = ""

    def to_wire(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments_json},
        }


@dataclass
class ToolCall:
    """A tool call with parsed arguments, ready for dispatch."""

    id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_ref(cls, ref: ToolCallRef) -> "ToolCall":
        return cls(id=ref.id, name=ref.name, input=parse_tool_arguments(ref.arguments_json))


@dataclass
class ToolResult:
    """Outcome of a single tool execution.

    Attributes:
        success: Whether the tool completed successfully
        output: Tool output (may be partial output on failure)
        error: Error message when success is False
    """

    success: bool
    output: str = ""
    error: Optional[str] = None

    @classmethod
    def ok(cls, output: str) -> "ToolResult":
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, error: str, output: str = "") -> "ToolResult":
        return cls(success=False, output=output, error=error)

    def to_message_text(self) -> str:
        """Text fed back to the model as the tool message content."""
        if self.success:
            return self.output
        return f"Error: {self.error}"


@dataclass(frozen=True)
class ToolDescriptor:
    """A tool advertised by a plugin server."""

    server_name: str
    name: str
    description: Optional[str] = None
    input_schema: Optional[Dict[str, Any]] = None


@dataclass
class Message:
    """A single conversation message.

    Attributes:
        role: One of system, user, assistant, tool
        content: Plain text or an ordered list of text/image blocks
        tool_calls: Tool calls requested by an assistant message
        tool_call_id: Id of the call a tool message answers
    """

    role: str
    content: Content = ""
    tool_calls: Optional[List[ToolCallRef]] = None
    tool_call_id: Optional[str] = None

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Invalid role: '{self.role}'. Must be one of {sorted(ROLES)}")
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("role='tool' must carry tool_call_id")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Build a Message from a plain dict (history supplied by a host)."""
        tool_calls = None
        raw_calls = data.get("tool_calls")
        if raw_calls:
            tool_calls = []
            for call in raw_calls:
                function = call.get("function") or {}
                tool_calls.append(
                    ToolCallRef(
                        id=call.get("id", ""),
                        name=function.get("name", call.get("name", "")),
                        arguments_json=function.get("arguments", call.get("arguments_json", "")),
                    )
                )
        return cls(
            role=data.get("role", ""),
            content=data.get("content", ""),
            tool_calls=tool_calls,
            tool_call_id=data.get("tool_call_id"),
        )

    def to_wire(self) -> Dict[str, Any]:
        """Convert to the OpenAI-compatible chat message shape."""
        wire: Dict[str, Any] = {"role": self.role, "content": content_to_wire(self.content)}
        if self.tool_calls:
            wire["tool_calls"] = [call.to_wire() for call in self.tool_calls]
        if self.tool_call_id:
            wire["tool_call_id"] = self.tool_call_id
        return wire


def content_to_wire(content: Content) -> Union[str, List[Dict[str, Any]]]:
    """Convert text/image blocks to the wire shape.

    Text blocks pass through, image blocks become ``image_url`` parts carrying
    the block's ``source``. Anything else becomes an empty text part.
    """
    if isinstance(content, str):
        return content

    parts = []
    for block in content:
        block_type = block.get("type") if isinstance(block, dict) else None
        if block_type == "text" and block.get("text"):
            parts.append({"type": "text", "text": block["text"]})
        elif block_type == "image" and block.get("source"):
            parts.append({"type": "image_url", "image_url": block["source"]})
        else:
            logger.debug("Unsupported content block replaced with empty text: %s", block_type)
            parts.append({"type": "text", "text": ""})
    return parts


def parse_tool_arguments(arguments_json: str) -> Dict[str, Any]:
    """Parse accumulated tool-call arguments.

    Empty text parses to ``{}``. Text that is not a JSON object is kept
    verbatim under ``raw`` so the tool can still report it.
    """
    if not arguments_json or not arguments_json.strip():
        return {}
    try:
        parsed = json.loads(arguments_json)
    except json.JSONDecodeError:
        logger.warning("Tool arguments are not valid JSON: %r", arguments_json[:200])
        return {"raw": arguments_json}
    if not isinstance(parsed, dict):
        return {"raw": arguments_json}
    return parsed
