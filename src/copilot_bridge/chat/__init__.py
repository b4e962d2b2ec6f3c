"""Chat completions: request, classification and stream decoding.

- :class:`ChatClient` -- sends a completion request with a fresh API token.
- :func:`classify` -- maps a status code and body to a typed result.
- :func:`decode_stream` -- turns server-sent events into text fragments and
  a final :class:`~copilot_bridge.models.ToolCallResult`.
- :func:`iter_events` -- splits an event-stream body into events.
"""

from copilot_bridge.chat.classifier import classify
from copilot_bridge.chat.client import ChatClient
from copilot_bridge.chat.sse import ServerSentEvent, iter_events
from copilot_bridge.chat.stream import StreamDecoder, decode_stream

__all__ = [
    "ChatClient",
    "ServerSentEvent",
    "StreamDecoder",
    "classify",
    "decode_stream",
    "iter_events",
]
