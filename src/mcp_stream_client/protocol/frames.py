"""Server-Sent Events framing.

Wire format:
- UTF-8 text, frames separated by a blank line ("\\n\\n")
- Within a frame: optional `event:<type>` and `id:<id>` lines, plus one or
  more `data:<chunk>` lines whose contents are concatenated
- A frame without an `event:` line has type "message"

The reassembler is fed arbitrary chunks of the byte stream and emits only
complete frames. Multi-byte UTF-8 sequences split across chunks are kept in
the incremental decoder until the rest arrives.
"""

from __future__ import annotations

import codecs
import logging
from collections.abc import AsyncIterable, AsyncIterator

from pydantic import BaseModel

logger = logging.getLogger(__name__)

FRAME_DELIMITER = "\n\n"
DEFAULT_EVENT_TYPE = "message"


class Frame(BaseModel):
    """One delimited unit of the event stream."""

    event: str = DEFAULT_EVENT_TYPE
    id: str = ""
    data: str = ""

    def has_data(self) -> bool:
        return bool(self.data)


class FrameReassembler:
    """Turns an unbounded chunk stream into complete frame strings."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    @property
    def buffered(self) -> str:
        """Text held back as the prefix of a not-yet-complete frame."""
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[str]:
        """Append a chunk and return the frames it completed, in order."""
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        if not text:
            return []

        self._buffer += text
        segments = self._buffer.split(FRAME_DELIMITER)
        self._buffer = segments.pop()
        return [segment for segment in segments if segment.strip()]

    def finish(self) -> None:
        """Signal end of input. An incomplete trailing frame is dropped."""
        remainder = self._buffer + self._decoder.decode(b"", final=True)
        if remainder.strip():
            logger.debug(f"Discarding incomplete trailing frame ({len(remainder)} chars)")
        self._buffer = ""
        self._decoder.reset()


async def iter_frames(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """Yield complete frame strings from a byte stream, in arrival order."""
    reassembler = FrameReassembler()
    async for chunk in chunks:
        for frame in reassembler.feed(chunk):
            yield frame
    reassembler.finish()


def encode_frame(data: str, event: str | None = None, event_id: str | None = None) -> str:
    """Render one frame in wire format, delimiter included."""
    lines: list[str] = []
    if event:
        lines.append(f"event: {event}")
    if event_id:
        lines.append(f"id: {event_id}")
    lines.extend(f"data: {part}" for part in data.split("\n"))
    return "\n".join(lines) + FRAME_DELIMITER


def _field_value(line: str, prefix: str) -> str:
    return line[len(prefix) :]


def parse_frame(frame: str) -> Frame:
    """Classify one frame string into its event type, id and data payload.

    Unrecognized lines (including `:` comments) are ignored. Each `data:`
    line loses at most one leading space before concatenation.
    """
    event = DEFAULT_EVENT_TYPE
    event_id = ""
    data_parts: list[str] = []

    for line in frame.split("\n"):
        if line.startswith("event:"):
            event = _field_value(line, "event:").strip() or DEFAULT_EVENT_TYPE
        elif line.startswith("data:"):
            value = _field_value(line, "data:")
            if value.startswith(" "):
                value = value[1:]
            data_parts.append(value)
        elif line.startswith("id:"):
            event_id = _field_value(line, "id:").strip()

    return Frame(event=event, id=event_id, data="".join(data_parts))
