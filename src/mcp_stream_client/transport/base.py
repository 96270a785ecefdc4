"""Transport abstraction.

The session engine never talks HTTP itself. A transport can:
- open the shared server-to-client byte stream (if the mode has one)
- send one outbound JSON-RPC message, optionally handing back a reply
  stream attached to that send

Implementations:
- SSETransport: legacy GET stream + POST to the announced endpoint
- StreamableHTTPTransport: POST per message, replies on the POST response
- MockTransport: in-memory, for tests
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

EVENT_STREAM_CONTENT_TYPE = "text/event-stream"
JSON_CONTENT_TYPE = "application/json"


class TransportState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


async def _noop_close() -> None:
    return None


@dataclass
class Reply:
    """A reply body attached to one send."""

    content_type: str
    chunks: AsyncIterator[bytes]
    aclose: Callable[[], Awaitable[None]] = _noop_close

    @property
    def is_event_stream(self) -> bool:
        return self.content_type.split(";", 1)[0].strip().lower() == EVENT_STREAM_CONTENT_TYPE


@runtime_checkable
class Transport(Protocol):
    """Protocol for session transports."""

    async def open(self) -> AsyncIterator[bytes] | None:
        """Open the shared server-to-client stream.

        Returns None for transports without a shared stream.

        Raises:
            TransportError: If the stream cannot be established
        """
        ...

    async def send(self, message: dict[str, Any], endpoint: str | None = None) -> Reply | None:
        """Send one JSON-RPC message.

        Args:
            message: The wire payload
            endpoint: Endpoint announced by the server, if the mode has one

        Returns:
            A reply stream attached to this send, or None if replies arrive
            on the shared stream (or no reply is expected)

        Raises:
            TransportError: If the send fails
        """
        ...

    async def close(self) -> None:
        """Release the stream and any connection resources."""
        ...
