"""Streaming chat-completion decoder.

Consumes server-sent events carrying JSON chunks and turns them into a
lazy sequence of text fragments, optionally followed by one
:class:`~copilot_bridge.models.ToolCallResult`.

Tool calls arrive fragmented: the first fragment at a given ``index``
carries the call ``id``, the function name and the start of the argument
string; later fragments at that index carry only more argument text. The
decoder keeps an ordered ``index -> ToolCallFragment`` map, appends to each
argument buffer in arrival order, and parses the buffers once the
``[DONE]`` terminator arrives.

The decoder is single-pass. It cannot be rewound, just like the live
stream it reads.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, Optional, Union

from copilot_bridge.chat.content import normalize_content, to_tool_call
from copilot_bridge.chat.sse import ServerSentEvent
from copilot_bridge.exceptions import RuntimeError_
from copilot_bridge.models import ToolCallFragment, ToolCallResult

logger = logging.getLogger(__name__)

STREAM_TERMINATOR = "[DONE]"

StreamEvent = Union[ServerSentEvent, str, dict]


class StreamDecoder:
    """Decode one chat-completion stream.

    Example::

        decoder = StreamDecoder()
        for item in decoder.decode(iter_events(response.iter_lines())):
            if isinstance(item, ToolCallResult):
                run_tools(item.tool_calls)
            else:
                print(item, end="")
    """

    def __init__(self) -> None:
        self._tool_calls: dict[int, ToolCallFragment] = {}

    def decode(self, events: Iterable[StreamEvent]) -> Iterator[Union[str, ToolCallResult]]:
        """Yield text fragments, then at most one :class:`ToolCallResult`.

        Raises:
            RuntimeError_: If a chunk is not a JSON object or a tool call's
                accumulated arguments are not valid JSON.
        """
        self._tool_calls = {}
        try:
            for event in events:
                raw = _event_data(event)
                if isinstance(raw, str):
                    if raw.strip() == STREAM_TERMINATOR:
                        if self._tool_calls:
                            yield self._build_tool_call_result()
                        return
                    if not raw.strip():
                        continue

                delta = _first_delta(_parse_chunk(raw))
                if delta is None:
                    continue

                tool_call_deltas = delta.get("tool_calls")
                if isinstance(tool_call_deltas, list):
                    self._merge_tool_calls(tool_call_deltas)

                content = normalize_content(delta.get("content"))
                if content:
                    yield content

            if self._tool_calls:
                logger.warning(
                    "Stream ended without %s; discarding %d partial tool call(s)",
                    STREAM_TERMINATOR,
                    len(self._tool_calls),
                )
        finally:
            self._tool_calls = {}

    def _merge_tool_calls(self, deltas: list[Any]) -> None:
        for position, fragment in enumerate(deltas):
            if not isinstance(fragment, dict):
                continue
            index = fragment.get("index")
            if isinstance(index, bool) or not isinstance(index, int):
                index = position
            function = fragment.get("function")
            if not isinstance(function, dict):
                function = {}
            arguments = function.get("arguments")

            if fragment.get("id"):
                name = function.get("name")
                self._tool_calls[index] = ToolCallFragment(
                    id=str(fragment["id"]),
                    name=name if isinstance(name, str) else "",
                    arguments=arguments if isinstance(arguments, str) else "",
                )
                continue

            existing = self._tool_calls.get(index)
            if existing is None or not isinstance(arguments, str):
                logger.debug("Dropping tool call continuation for unknown index %s", index)
                continue
            existing.arguments += arguments

    def _build_tool_call_result(self) -> ToolCallResult:
        calls = [
            to_tool_call(fragment.id, fragment.name, fragment.arguments)
            for fragment in self._tool_calls.values()
        ]
        self._tool_calls = {}
        return ToolCallResult(tool_calls=calls)


def decode_stream(events: Iterable[StreamEvent]) -> Iterator[Union[str, ToolCallResult]]:
    """Decode *events* with a fresh :class:`StreamDecoder`."""
    return StreamDecoder().decode(events)


def _event_data(event: StreamEvent) -> Union[str, dict]:
    if isinstance(event, ServerSentEvent):
        return event.data
    if isinstance(event, (str, dict)):
        return event
    raise RuntimeError_(f"Unsupported stream event type: {type(event).__name__}")


def _parse_chunk(raw: Union[str, dict]) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        chunk = ServerSentEvent(raw).json()
    except ValueError as exc:
        raise RuntimeError_(f"Malformed stream chunk: {exc}") from exc
    if not isinstance(chunk, dict):
        raise RuntimeError_("Malformed stream chunk: expected a JSON object")
    return chunk


def _first_delta(chunk: dict[str, Any]) -> Optional[dict[str, Any]]:
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    return delta if isinstance(delta, dict) else None
