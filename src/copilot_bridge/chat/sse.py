"""Server-sent event framing.

Turns the text lines of an ``text/event-stream`` response into
:class:`ServerSentEvent` objects. Only the framing lives here; deciding what
an event *means* is the job of :mod:`copilot_bridge.chat.stream`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Optional


@dataclass(frozen=True)
class ServerSentEvent:
    """A single dispatched event."""

    data: str
    event: str = "message"
    id: Optional[str] = None
    retry: Optional[int] = None

    def json(self) -> Any:
        """Parse :attr:`data` as JSON. Raises :class:`ValueError` if malformed."""
        return json.loads(self.data)


def iter_events(lines: Iterable[str]) -> Iterator[ServerSentEvent]:
    """Yield events from an iterable of lines (without trailing newlines).

    * ``data:`` lines of one event are joined with ``\\n``.
    * A blank line dispatches the pending event; events without data are
      dropped.
    * Lines starting with ``:`` are comments.
    * A pending event is dispatched when *lines* is exhausted.
    """
    data_lines: list[str] = []
    event = "message"
    event_id: Optional[str] = None
    retry: Optional[int] = None

    for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            if data_lines:
                yield ServerSentEvent("\n".join(data_lines), event, event_id, retry)
            data_lines, event, retry = [], "message", None
            continue
        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "data":
            data_lines.append(value)
        elif field == "event":
            event = value or "message"
        elif field == "id":
            event_id = value
        elif field == "retry" and value.isdigit():
            retry = int(value)

    if data_lines:
        yield ServerSentEvent("\n".join(data_lines), event, event_id, retry)
