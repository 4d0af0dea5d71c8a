"""
llmbridge - Server-Sent Events Framing

All three providers stream over SSE. One event is one raw frame; its
`data` field is what the normalizers consume.
"""

from dataclasses import dataclass
from typing import AsyncIterator, List, Optional


@dataclass
class SSEEvent:
    """A dispatched SSE event."""
    data: str
    event: Optional[str] = None
    id: Optional[str] = None


class SSEDecoder:
    """
    Line-oriented SSE decoder.

    Multi-line `data:` fields are joined with newlines. Comment lines
    (starting with ':') and unknown fields are ignored.
    """

    def __init__(self):
        self._data: List[str] = []
        self._event: Optional[str] = None
        self._id: Optional[str] = None

    def feed_line(self, line: str) -> Optional[SSEEvent]:
        """Feed one line (without its terminator). Returns an event on dispatch."""
        line = line.rstrip("\r\n")

        if not line:
            return self._dispatch()

        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "data":
            self._data.append(value)
        elif name == "event":
            self._event = value
        elif name == "id":
            self._id = value

        return None

    def flush(self) -> Optional[SSEEvent]:
        """Dispatch an event left pending when the stream ended without a blank line."""
        return self._dispatch()

    def _dispatch(self) -> Optional[SSEEvent]:
        if not self._data:
            self._event = None
            return None
        event = SSEEvent(data="\n".join(self._data), event=self._event, id=self._id)
        self._data = []
        self._event = None
        return event


async def aiter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[SSEEvent]:
    """Decode an async iterator of lines into SSE events."""
    decoder = SSEDecoder()
    async for line in lines:
        event = decoder.feed_line(line)
        if event is not None:
            yield event
    event = decoder.flush()
    if event is not None:
        yield event
