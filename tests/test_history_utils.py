"""Tests for history conversion, validation and trimming."""

import pytest

from zai_agent.history_utils import history_to_wire, trim_history, validate_history_entry
from zai_agent.messages import Message, ToolCallRef


class TestValidateHistoryEntry:
    @pytest.mark.parametrize(
        "entry",
        [
            {"role": "user", "content": "hello"},
            {"role": "system", "content": "be nice"},
            {"role": "tool", "tool_call_id": "call_1", "content": "OK"},
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [{"id": "call_1", "type": "function", "function": {"name": "Read"}}],
            },
        ],
    )
    def test_valid_entries(self, entry):
        validate_history_entry(entry)

    def test_invalid_role(self):
        with pytest.raises(ValueError, match="Invalid role"):
            validate_history_entry({"role": "gemini", "content": "x"})

    def test_missing_content(self):
        with pytest.raises(ValueError, match="must have 'content'"):
            validate_history_entry({"role": "user"})

    def test_tool_without_call_id(self):
        with pytest.raises(ValueError, match="tool_call_id"):
            validate_history_entry({"role": "tool", "content": "x"})

    def test_tool_calls_on_user_message(self):
        with pytest.raises(ValueError, match="Only assistant"):
            validate_history_entry({"role": "user", "content": "", "tool_calls": [{"id": "a"}]})

    def test_tool_call_without_id(self):
        with pytest.raises(ValueError, match=r"tool_calls\[0\]"):
            validate_history_entry({"role": "assistant", "content": "", "tool_calls": [{}]})

    def test_not_a_dict(self):
        with pytest.raises(ValueError, match="must be dict"):
            validate_history_entry(["user", "hi"])


class TestHistoryToWire:
    def test_mixed_messages_and_dicts(self):
        history = [
            {"role": "user", "content": "hi"},
            Message(
                role="assistant",
                content="",
                tool_calls=[ToolCallRef(id="c1", name="List", arguments_json="{}")],
            ),
            Message(role="tool", content="[FILE] a", tool_call_id="c1"),
        ]
        wire = history_to_wire(history)
        assert wire[0] == {"role": "user", "content": "hi"}
        assert wire[1]["tool_calls"][0]["id"] == "c1"
        assert wire[2] == {"role": "tool", "content": "[FILE] a", "tool_call_id": "c1"}

    def test_image_blocks_converted(self):
        wire = history_to_wire(
            [{"role": "user", "content": [{"type": "image", "source": {"url": "http://x/y.png"}}]}]
        )
        assert wire[0]["content"] == [{"type": "image_url", "image_url": {"url": "http://x/y.png"}}]

    def test_input_not_mutated(self):
        entry = {"role": "user", "content": [{"type": "text", "text": "hi"}]}
        history_to_wire([entry])
        assert entry == {"role": "user", "content": [{"type": "text", "text": "hi"}]}

    def test_invalid_entry_raises(self):
        with pytest.raises(ValueError):
            history_to_wire([{"role": "bogus", "content": "x"}])


class TestTrimHistory:
    def _messages(self, n):
        return [{"role": "user", "content": str(i)} for i in range(n)]

    def test_at_threshold_untouched(self):
        messages = self._messages(42)
        assert trim_history(messages) is messages

    def test_over_threshold_keeps_first_and_last_40(self):
        messages = self._messages(43)
        trimmed = trim_history(messages)
        assert len(trimmed) == 41
        assert trimmed[0]["content"] == "0"
        assert trimmed[1]["content"] == "3"
        assert trimmed[-1]["content"] == "42"
        assert len(messages) == 43

    def test_custom_limits(self):
        trimmed = trim_history(self._messages(10), threshold=5, keep_last=3)
        assert [m["content"] for m in trimmed] == ["0", "7", "8", "9"]
