import logging
from typing import Any, Dict, List, Sequence, Union

from .messages import ROLES, Message, content_to_wire

logger = logging.getLogger(__name__)

TRIM_THRESHOLD = 42
TRIM_KEEP_LAST = 40

HistoryEntry = Union[Message, Dict[str, Any]]


def validate_history_entry(entry: Dict[str, Any]) -> None:
    """Validate a single wire-shaped history entry for structural correctness.

    Args:
        entry: History entry to validate

    Raises:
        ValueError: If entry structure is invalid

    Examples:
        >>> validate_history_entry({"role": "user", "content": "hello"})
        # Valid - no exception

        >>> validate_history_entry({"role": "tool", "tool_call_id": "call_1", "content": "OK"})
        # Valid - no exception

        >>> validate_history_entry({"role": "invalid_role", "content": "test"})
        # Raises ValueError
    """
    if not isinstance(entry, dict):
        raise ValueError(f"History entry must be dict, got {type(entry).__name__}")

    role = entry.get("role")
    if role not in ROLES:
        raise ValueError(f"Invalid role: '{role}'. Must be one of {sorted(ROLES)}")

    if "content" not in entry or entry["content"] is None:
        if not (role == "assistant" and entry.get("tool_calls")):
            raise ValueError("History entry must have 'content' field")

    content = entry.get("content")
    if content is not None and not isinstance(content, (str, list)):
        raise ValueError(f"Content must be str or list, got {type(content).__name__}")

    if role == "tool" and not entry.get("tool_call_id"):
        raise ValueError("role='tool' must have 'tool_call_id' field")

    tool_calls = entry.get("tool_calls")
    if tool_calls:
        if role != "assistant":
            raise ValueError(f"Only assistant messages may carry tool_calls, got role='{role}'")
        for i, call in enumerate(tool_calls):
            if not isinstance(call, dict) or not call.get("id"):
                raise ValueError(f"tool_calls[{i}] must have an 'id' field")


def history_to_wire(history: Sequence[HistoryEntry]) -> List[Dict[str, Any]]:
    """Convert prior conversation history to wire messages.

    Entries may be Message objects or plain dicts; image blocks in list
    content become ``image_url`` parts.
    """
    wire = []
    for entry in history:
        if isinstance(entry, Message):
            wire.append(entry.to_wire())
            continue
        converted = dict(entry)
        if "content" in converted and converted["content"] is not None:
            converted["content"] = content_to_wire(converted["content"])
        validate_history_entry(converted)
        wire.append(converted)
    return wire


def trim_history(
    messages: List[Dict[str, Any]],
    threshold: int = TRIM_THRESHOLD,
    keep_last: int = TRIM_KEEP_LAST,
) -> List[Dict[str, Any]]:
    """Bound the message list sent to the model.

    When there are more than ``threshold`` messages, keep the first one
    (normally the system prompt) plus the last ``keep_last``.

    Returns:
        A new list when trimmed, otherwise ``messages`` itself.
    """
    if len(messages) <= threshold:
        return messages
    trimmed = [messages[0], *messages[-keep_last:]]
    logger.info("Trimmed message history to %d messages", len(trimmed))
    return trimmed
