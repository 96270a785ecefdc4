"""In-memory transport for tests.

No I/O. The shared stream is fed by hand, and every sent message is
recorded.

Usage:
    transport = MockTransport()
    session = ClientSession(transport, ClientConfig(url="http://mock/mcp/sse"))
    await session.open()                    # consumes the announced endpoint

    future = await session.issue("tools/list")
    transport.push_envelope({"jsonrpc": "2.0", "id": 1, "result": {"tools": []}})
    assert (await future) == {"tools": []}
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

from ..protocol.frames import encode_frame
from .base import EVENT_STREAM_CONTENT_TYPE, JSON_CONTENT_TYPE, Reply

# Given a sent message, returns the payloads the "server" answers with.
Responder = Callable[[dict[str, Any]], list[dict[str, Any]] | dict[str, Any] | None]

_END = object()


class MockTransport:
    """Mock transport with a hand-fed shared stream.

    Args:
        endpoint: Endpoint announced as the first frame on open (None to skip)
        shared_stream: False to behave like streamable HTTP (replies attached
            to each send instead of the shared stream)
        responder: Optional auto-reply hook for sent requests
        reply_as_event_stream: With shared_stream=False, attach replies as
            SSE bodies (True) or as a single JSON body (False)
    """

    def __init__(
        self,
        endpoint: str | None = "/messages",
        *,
        shared_stream: bool = True,
        responder: Responder | None = None,
        reply_as_event_stream: bool = True,
    ) -> None:
        self.endpoint = endpoint
        self.shared_stream = shared_stream
        self.responder = responder
        self.reply_as_event_stream = reply_as_event_stream
        self._stream: asyncio.Queue[Any] = asyncio.Queue()
        self._send_failures: list[BaseException] = []
        self._sent: list[dict[str, Any]] = []
        self._sent_endpoints: list[str | None] = []
        self.opened = False
        self.closed = False

    @property
    def sent(self) -> list[dict[str, Any]]:
        """All messages sent through this transport."""
        return list(self._sent)

    @property
    def sent_endpoints(self) -> list[str | None]:
        """Endpoint passed with each send, in order."""
        return list(self._sent_endpoints)

    def sent_methods(self) -> list[str]:
        return [message.get("method", "") for message in self._sent]

    # Feeding the shared stream

    def push(self, chunk: bytes | str) -> None:
        """Push raw stream bytes (any split, partial frames included)."""
        self._stream.put_nowait(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)

    def push_envelope(
        self,
        payload: dict[str, Any],
        event: str | None = None,
        event_id: str | None = None,
    ) -> None:
        """Push one complete frame carrying a JSON payload."""
        self.push(encode_frame(json.dumps(payload), event=event, event_id=event_id))

    def push_endpoint(self, endpoint: str) -> None:
        self.push(encode_frame(endpoint, event="endpoint"))

    def end(self) -> None:
        """End the shared stream normally."""
        self._stream.put_nowait(_END)

    def fail(self, error: BaseException) -> None:
        """End the shared stream with a read error."""
        self._stream.put_nowait(error)

    def fail_next_send(self, error: BaseException) -> None:
        """Make the next send raise `error`."""
        self._send_failures.append(error)

    # Transport protocol

    async def open(self) -> AsyncIterator[bytes] | None:
        if self.closed:
            self._stream = asyncio.Queue()
        self.opened = True
        self.closed = False
        if not self.shared_stream:
            return None
        if self.endpoint is not None:
            self.push_endpoint(self.endpoint)
        return self._iter_stream()

    async def _iter_stream(self) -> AsyncIterator[bytes]:
        while True:
            item = await self._stream.get()
            if item is _END:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    async def send(self, message: dict[str, Any], endpoint: str | None = None) -> Reply | None:
        self._sent.append(message)
        self._sent_endpoints.append(endpoint)

        if self._send_failures:
            raise self._send_failures.pop(0)

        if self.responder is None:
            return None
        answer = self.responder(message)
        if answer is None:
            return None
        payloads = answer if isinstance(answer, list) else [answer]

        if self.shared_stream:
            for payload in payloads:
                self.push_envelope(payload)
            return None

        if self.reply_as_event_stream:
            body = "".join(encode_frame(json.dumps(p)) for p in payloads).encode("utf-8")
            return Reply(content_type=EVENT_STREAM_CONTENT_TYPE, chunks=_chunks(body))
        body = json.dumps(payloads[-1]).encode("utf-8")
        return Reply(content_type=JSON_CONTENT_TYPE, chunks=_chunks(body))

    async def close(self) -> None:
        self.closed = True
        self.end()


async def _chunks(body: bytes) -> AsyncIterator[bytes]:
    yield body
