"""Builders for the events yielded by ``execute_query``."""

from typing import Any, Dict

Event = Dict[str, Any]


def text_event(text: str) -> Event:
    return {
        "type": "assistant",
        "message": {"role": "assistant", "content": [{"type": "text", "text": text}]},
    }


def tool_use_event(tool_use_id: str, name: str, tool_input: Dict[str, Any]) -> Event:
    return {
        "type": "assistant",
        "message": {
            "role": "assistant",
            "content": [
                {"type": "tool_use", "tool_use_id": tool_use_id, "name": name, "input": tool_input}
            ],
        },
    }


def error_event(message: str) -> Event:
    return {"type": "error", "error": message}


def result_event(text: str) -> Event:
    return {"type": "result", "result": text}


def is_terminal(event: Event) -> bool:
    """True for the ``error`` and ``result`` events that end a query."""
    return event.get("type") in ("error", "result")


def event_text(event: Event) -> str:
    """Concatenate the text blocks of an assistant event (empty for others)."""
    if event.get("type") != "assistant":
        return ""
    blocks = event.get("message", {}).get("content", [])
    return "".join(block.get("text", "") for block in blocks if block.get("type") == "text")
