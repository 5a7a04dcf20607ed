"""Incremental parsing of streamed chat-completion responses.

The endpoint streams ``text/event-stream`` lines of the form
``data: <json>`` and ends with ``data: [DONE]``. Network chunks can split a
line anywhere, so ``SSEParser`` keeps the incomplete trailing line buffered
until the rest arrives.
"""

import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Union

from ..messages import ToolCallRef

logger = logging.getLogger(__name__)

DONE = object()

Payload = Union[Dict[str, Any], object]


class SSEParser:
    """Split a stream of text chunks into decoded ``data:`` payloads.

    Usage:
        parser = SSEParser()
        async for chunk in response.aiter_text():
            for payload in parser.feed(chunk):
                if payload is DONE:
                    break
                handle(payload)
        for payload in parser.flush():
            ...

    Non-``data`` lines (comments, ``event:``, blank separators) are ignored.
    Lines whose JSON does not parse are logged and skipped.
    """

    def __init__(self):
        self._buffer = ""
        self.skipped_lines = 0

    def feed(self, chunk: str) -> Iterator[Payload]:
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        for line in lines:
            payload = self._parse_line(line)
            if payload is not None:
                yield payload

    def flush(self) -> Iterator[Payload]:
        """Parse whatever is left in the buffer once the stream has ended."""
        line, self._buffer = self._buffer, ""
        payload = self._parse_line(line)
        if payload is not None:
            yield payload

    def _parse_line(self, line: str) -> Optional[Payload]:
        line = line.rstrip("\r")
        if not line.startswith("data:"):
            return None
        data = line[5:]
        if data.startswith(" "):
            data = data[1:]
        if data.strip() == "[DONE]":
            return DONE
        try:
            parsed = json.loads(data)
        except json.JSONDecodeError:
            self.skipped_lines += 1
            logger.warning("Skipping malformed stream line: %r", data[:200])
            return None
        if not isinstance(parsed, dict):
            self.skipped_lines += 1
            return None
        return parsed


def extract_delta(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return ``choices[0].delta`` of a completion chunk, if present."""
    choices = payload.get("choices")
    if not choices or not isinstance(choices, list):
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    return delta if isinstance(delta, dict) else None


class ToolCallAssembler:
    """Assembles streamed tool calls.

    Tool calls arrive as fragments keyed by ``index``. The id and name usually
    come with the first fragment; ``function.arguments`` is a partial JSON
    string spread across many fragments and only parses once the turn's
    stream has ended.

    State Management:
        _calls_by_index: Dict[int, ToolCallRef]
            Key: tool_call.index
            Value: accumulated ToolCallRef (id falls back to ``call_<index>``)
    """

    def __init__(self):
        self._calls_by_index: Dict[int, ToolCallRef] = {}

    def reset(self) -> None:
        """Clear all internal state for reuse."""
        self._calls_by_index.clear()

    def process(self, tool_call_deltas: List[Dict[str, Any]]) -> None:
        """Merge the ``delta.tool_calls`` fragments of one chunk.

        Args:
            tool_call_deltas: Fragments with structure:
                {
                    "index": int,
                    "id": str (optional),
                    "function": {"name": str (optional), "arguments": str (partial)}
                }
        """
        for fragment in tool_call_deltas:
            if not isinstance(fragment, dict):
                continue
            index = fragment.get("index")
            if not isinstance(index, int):
                index = 0

            call = self._calls_by_index.get(index)
            if call is None:
                call = ToolCallRef(id=fragment.get("id") or f"call_{index}", name="")
                self._calls_by_index[index] = call

            if fragment.get("id"):
                call.id = fragment["id"]

            function = fragment.get("function") or {}
            if function.get("name"):
                call.name = function["name"]
            if function.get("arguments"):
                call.arguments_json += function["arguments"]

    def finalize(self) -> List[ToolCallRef]:
        """Completed calls in index order, dropping any without id or name."""
        calls = []
        for index in sorted(self._calls_by_index):
            call = self._calls_by_index[index]
            if not call.id or not call.name:
                logger.warning("Dropping incomplete tool call at index %s", index)
                continue
            logger.debug(
                "Finalizing tool_call: index=%s, id=%s, name=%s", index, call.id, call.name
            )
            calls.append(call)
        return calls
