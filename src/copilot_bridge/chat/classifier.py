"""Map a chat-completion HTTP response to a typed result or an error.

:func:`classify` is the only entry point. It never performs I/O: the caller
hands it the status code and either the decoded JSON body or, for
streaming requests, the iterable of events to decode lazily.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Iterable, Optional, Union

from copilot_bridge.chat.content import normalize_content, to_tool_call
from copilot_bridge.chat.stream import decode_stream
from copilot_bridge.exceptions import AuthenticationError, RateLimitExceeded, RuntimeError_
from copilot_bridge.models import (
    ChatResult,
    ChoiceResult,
    StreamResult,
    TextResult,
    TokenUsage,
    ToolCallResult,
)

logger = logging.getLogger(__name__)

# TokenUsage field -> accepted payload keys, first non-null value wins.
_USAGE_KEYS: dict[str, tuple[str, ...]] = {
    "prompt_tokens": ("prompt_tokens", "input_tokens", "promptTokens"),
    "completion_tokens": ("completion_tokens", "output_tokens", "completionTokens"),
    "thinking_tokens": ("reasoning_tokens", "thinking_tokens"),
    "tool_tokens": ("tool_tokens", "tool_calls_tokens"),
    "cached_tokens": ("cached_tokens", "cache_tokens"),
    "remaining_tokens": ("remaining_tokens",),
    "remaining_tokens_minute": ("remaining_tokens_minute",),
    "remaining_tokens_month": ("remaining_tokens_month",),
    "total_tokens": ("total_tokens", "totalTokens"),
}


def classify(status_code: int, payload: Any, stream: bool = False) -> ChatResult:
    """Turn a response into a result.

    Args:
        status_code: HTTP status of the response.
        payload: Decoded JSON body (a dict), a raw text body for error
            responses, or the iterable of events when *stream* is true.
        stream: Whether the request asked for a streamed answer.

    Returns:
        A :class:`TextResult` or :class:`ToolCallResult` for a single
        choice, a :class:`ChoiceResult` for several, or a
        :class:`StreamResult` when *stream* is true.

    Raises:
        AuthenticationError: On HTTP 401.
        RateLimitExceeded: On HTTP 429.
        RuntimeError_: On any other status >= 400, or a malformed body.
    """
    if status_code == 401:
        raise AuthenticationError(
            _error_message(payload) or "The provider rejected the provided access token."
        )
    if status_code == 429:
        raise RateLimitExceeded()
    if status_code >= 400:
        raise RuntimeError_(
            _error_message(payload) or f"Unexpected response status {status_code}"
        )

    if stream:
        return StreamResult(decode_stream(_as_events(payload)))

    if not isinstance(payload, dict) or not isinstance(payload.get("choices"), list):
        raise RuntimeError_("Unexpected response payload: missing 'choices' list")
    if not payload["choices"]:
        raise RuntimeError_("Response contained no choices")

    results = [_convert_choice(choice) for choice in payload["choices"]]
    if len(results) == 1:
        result: ChatResult = results[0]
    else:
        result = ChoiceResult(results=results)
    result.metadata.update(_metadata(payload))
    return result


def _convert_choice(choice: Any) -> Union[TextResult, ToolCallResult]:
    message = choice.get("message") if isinstance(choice, dict) else None
    if not isinstance(message, dict):
        raise RuntimeError_("Unexpected response payload: choice without a message")

    tool_calls = message.get("tool_calls")
    if isinstance(tool_calls, list) and tool_calls:
        calls = []
        for call in tool_calls:
            if not isinstance(call, dict):
                continue
            function = call.get("function")
            if not isinstance(function, dict):
                function = {}
            calls.append(to_tool_call(call.get("id"), function.get("name"), function.get("arguments")))
        return ToolCallResult(tool_calls=calls)

    content = normalize_content(message.get("content")).strip()
    if not content:
        raise RuntimeError_("Response choice carried no content")
    return TextResult(content=content)


def _metadata(payload: dict[str, Any]) -> dict[str, Any]:
    metadata: dict[str, Any] = {}

    usage = payload.get("usage")
    if isinstance(usage, dict):
        token_usage = _token_usage(usage)
        if token_usage is not None:
            metadata["token_usage"] = token_usage

    if isinstance(payload.get("id"), str):
        metadata["response_id"] = payload["id"]
    if isinstance(payload.get("model"), str):
        metadata["model"] = payload["model"]
    return metadata


def _token_usage(usage: dict[str, Any]) -> Optional[TokenUsage]:
    values: dict[str, Optional[int]] = {}
    for field, keys in _USAGE_KEYS.items():
        raw = next((usage[key] for key in keys if usage.get(key) is not None), None)
        values[field] = _to_int_or_none(raw)

    if all(value is None for value in values.values()):
        return None
    return TokenUsage(**values)


def _to_int_or_none(value: Any) -> Optional[int]:
    """Coerce ints, floats and numeric strings; everything else is ``None``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except (ValueError, OverflowError):
            return None
    return None


def _error_message(payload: Any) -> Optional[str]:
    if isinstance(payload, (bytes, str)):
        try:
            payload = json.loads(payload)
        except ValueError:
            return None
    if not isinstance(payload, dict):
        return None

    error = payload.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str) and error:
        return error
    message = payload.get("message")
    return message if isinstance(message, str) and message else None


def _as_events(payload: Any) -> Iterable[Any]:
    if payload is None:
        logger.debug("Streaming response without events")
        return ()
    if isinstance(payload, (str, bytes, dict)):
        raise RuntimeError_("Streaming payload must be an iterable of events")
    return payload
