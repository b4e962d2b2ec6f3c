"""Helpers shared by the streaming and non-streaming result converters."""

from __future__ import annotations

import json
from typing import Any

from copilot_bridge.exceptions import RuntimeError_
from copilot_bridge.models import ToolCall


def normalize_content(content: Any) -> str:
    """Return message content as a string.

    Plain strings are returned unchanged. A list of typed parts is reduced
    to the ``text`` of every part that carries one, joined by newlines and
    trimmed. Anything else yields ``""``.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [
            part["text"]
            for part in content
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        return "\n".join(parts).strip()
    return ""


def to_tool_call(call_id: Any, name: Any, raw_arguments: Any) -> ToolCall:
    """Build a :class:`ToolCall`, decoding its JSON argument string.

    An empty or missing argument string, or JSON that is not an object,
    gives empty arguments.

    Raises:
        RuntimeError_: If the arguments are not valid JSON.
    """
    arguments: Any = {}
    if isinstance(raw_arguments, str) and raw_arguments != "":
        try:
            arguments = json.loads(raw_arguments)
        except ValueError as exc:
            raise RuntimeError_(
                f"Failed to decode tool call arguments for '{name}': {exc}"
            ) from exc
    elif isinstance(raw_arguments, dict):
        arguments = raw_arguments

    return ToolCall(
        id=call_id if isinstance(call_id, str) else "",
        name=name if isinstance(name, str) else "",
        arguments=arguments if isinstance(arguments, dict) else {},
    )
