"""Tests for the streaming chat-completion decoder."""

from __future__ import annotations

import json
import logging
from typing import Any

import pytest

from copilot_bridge.chat.sse import ServerSentEvent
from copilot_bridge.chat.stream import StreamDecoder, decode_stream
from copilot_bridge.exceptions import RuntimeError_
from copilot_bridge.models import ToolCall, ToolCallResult

DONE = "[DONE]"


def _chunk(delta: dict[str, Any]) -> str:
    return json.dumps({"choices": [{"index": 0, "delta": delta}]})


def _text(content: Any) -> str:
    return _chunk({"content": content})


def _tool(index: int, *, id: str | None = None, name: str | None = None, args: str | None = None) -> str:
    fragment: dict[str, Any] = {"index": index, "function": {}}
    if id is not None:
        fragment["id"] = id
        fragment["type"] = "function"
    if name is not None:
        fragment["function"]["name"] = name
    if args is not None:
        fragment["function"]["arguments"] = args
    return _chunk({"tool_calls": [fragment]})


# ------------------------------------------------------------------ #
# Text
# ------------------------------------------------------------------ #


class TestText:
    def test_fragments_in_order(self) -> None:
        assert list(decode_stream([_text("Hel"), _text("lo"), DONE])) == ["Hel", "lo"]

    def test_plain_strings_are_not_trimmed(self) -> None:
        assert list(decode_stream([_text(" Hi "), DONE])) == [" Hi "]

    def test_empty_content_is_skipped(self) -> None:
        events = [_text(""), _chunk({"role": "assistant"}), _text("x"), DONE]
        assert list(decode_stream(events)) == ["x"]

    def test_part_list_is_joined_and_trimmed(self) -> None:
        parts = [{"type": "text", "text": " a"}, {"type": "image"}, {"type": "text", "text": "b "}]
        assert list(decode_stream([_text(parts), DONE])) == ["a\nb"]

    def test_chunks_without_choices_are_ignored(self) -> None:
        events = [json.dumps({"usage": {"total_tokens": 3}}), _text("x"), DONE]
        assert list(decode_stream(events)) == ["x"]

    def test_accepts_event_objects_and_dicts(self) -> None:
        events = [
            ServerSentEvent(data=_text("a")),
            json.loads(_text("b")),
            ServerSentEvent(data=DONE),
        ]
        assert list(decode_stream(events)) == ["a", "b"]

    def test_stops_at_terminator(self) -> None:
        assert list(decode_stream([_text("a"), DONE, _text("ignored")])) == ["a"]

    def test_is_lazy(self) -> None:
        def events():
            yield _text("first")
            raise AssertionError("read too far")

        stream = decode_stream(events())
        assert next(stream) == "first"


# ------------------------------------------------------------------ #
# Tool calls
# ------------------------------------------------------------------ #


class TestToolCalls:
    def test_fragments_are_assembled(self) -> None:
        events = [
            _tool(0, id="c1", name="f", args='{"a"'),
            _tool(0, args=":1}"),
            DONE,
        ]
        assert list(decode_stream(events)) == [
            ToolCallResult(tool_calls=[ToolCall(id="c1", name="f", arguments={"a": 1})])
        ]

    def test_multiple_calls_keep_index_order(self) -> None:
        events = [
            _tool(0, id="c1", name="first", args=""),
            _tool(1, id="c2", name="second", args='{"x": '),
            _tool(0, args='{"y": 2}'),
            _tool(1, args="true}"),
            DONE,
        ]
        (result,) = list(decode_stream(events))
        assert [call.name for call in result.tool_calls] == ["first", "second"]
        assert result.tool_calls[0].arguments == {"y": 2}
        assert result.tool_calls[1].arguments == {"x": True}

    def test_text_then_tool_calls(self) -> None:
        events = [_text("Thinking"), _tool(0, id="c1", name="f", args="{}"), DONE]
        items = list(decode_stream(events))
        assert items[0] == "Thinking"
        assert isinstance(items[1], ToolCallResult)
        assert len(items) == 2

    def test_empty_arguments_become_empty_dict(self) -> None:
        (result,) = list(decode_stream([_tool(0, id="c1", name="f"), DONE]))
        assert result.tool_calls[0].arguments == {}

    def test_non_object_arguments_become_empty_dict(self) -> None:
        (result,) = list(decode_stream([_tool(0, id="c1", name="f", args="[1, 2]"), DONE]))
        assert result.tool_calls[0].arguments == {}

    def test_malformed_arguments_raise(self) -> None:
        with pytest.raises(RuntimeError_):
            list(decode_stream([_tool(0, id="c1", name="f", args='{"a":'), DONE]))

    def test_continuation_without_start_is_dropped(self) -> None:
        events = [_tool(3, args='{"lost": 1}'), _tool(0, id="c1", name="f", args="{}"), DONE]
        (result,) = list(decode_stream(events))
        assert [call.id for call in result.tool_calls] == ["c1"]

    def test_new_id_restarts_call(self) -> None:
        events = [
            _tool(0, id="c1", name="old", args='{"stale"'),
            _tool(0, id="c2", name="new", args="{}"),
            DONE,
        ]
        (result,) = list(decode_stream(events))
        assert result.tool_calls == [ToolCall(id="c2", name="new", arguments={})]

    def test_missing_index_falls_back_to_position(self) -> None:
        chunk = json.dumps(
            {
                "choices": [
                    {
                        "delta": {
                            "tool_calls": [
                                {"id": "a", "function": {"name": "fa", "arguments": "{}"}},
                                {"id": "b", "function": {"name": "fb", "arguments": "{}"}},
                            ]
                        }
                    }
                ]
            }
        )
        (result,) = list(decode_stream([chunk, DONE]))
        assert [call.id for call in result.tool_calls] == ["a", "b"]

    def test_no_tool_calls_no_result(self) -> None:
        assert list(decode_stream([DONE])) == []


# ------------------------------------------------------------------ #
# Failure modes
# ------------------------------------------------------------------ #


class TestFailures:
    def test_malformed_chunk_raises(self) -> None:
        with pytest.raises(RuntimeError_):
            list(decode_stream(["{not json"]))

    def test_non_object_chunk_raises(self) -> None:
        with pytest.raises(RuntimeError_):
            list(decode_stream(["[1, 2]"]))

    def test_unsupported_event_type_raises(self) -> None:
        with pytest.raises(RuntimeError_):
            list(decode_stream([42]))

    def test_closed_without_terminator_discards_pending(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        events = [_text("partial"), _tool(0, id="c1", name="f", args='{"a"')]
        with caplog.at_level(logging.WARNING, logger="copilot_bridge.chat.stream"):
            assert list(decode_stream(events)) == ["partial"]
        assert "discarding 1" in caplog.text

    def test_decoder_instance(self) -> None:
        decoder = StreamDecoder()
        assert list(decoder.decode([_text("x"), DONE])) == ["x"]

    def test_reuse_after_unterminated_stream(self) -> None:
        decoder = StreamDecoder()
        assert list(decoder.decode([_tool(0, id="stale", name="f", args='{"a"')])) == []

        result = list(decoder.decode([_tool(1, id="fresh", name="g", args="{}"), DONE]))
        assert result == [ToolCallResult(tool_calls=[ToolCall(id="fresh", name="g", arguments={})])]

    def test_reuse_after_malformed_chunk(self) -> None:
        decoder = StreamDecoder()
        with pytest.raises(RuntimeError_):
            list(decoder.decode([_tool(0, id="stale", name="f", args="{"), "{not json"]))

        assert list(decoder.decode([_text("ok"), DONE])) == ["ok"]
