"""Client session: request lifecycle over a shared event stream.

One session owns one connection and its correlation table:
- open() starts the single reader task for the shared stream and, in SSE
  mode, waits for the `endpoint` event naming where requests are sent
- issue() registers a pending request, arms its timer, then sends
- the reader settles requests as responses arrive and routes progress
  to the request that owns the token
- stream end, read errors and close() fail every pending request

Ordering guarantee: a request is registered before its message is handed to
the transport, so any reply the transport can deliver finds a live entry.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import json
import logging
import time
from collections.abc import AsyncIterator, Callable
from typing import Any

from pydantic import ValidationError

from .config import ClientConfig
from .correlation import CorrelationTable
from .errors import (
    DisconnectedError,
    NotConnectedError,
    ProtocolParseError,
    RemoteError,
    RequestCancelledError,
    RequestTimeoutError,
    TransportError,
)
from .progress import ProgressCallback, ProgressRouter
from .protocol.envelope import (
    CANCELLED_METHOD,
    Envelope,
    JsonRpcNotification,
    JsonRpcRequest,
    NotificationEnvelope,
    ProgressNotification,
    ResponseEnvelope,
    classify_payload,
    decode_envelope,
)
from .protocol.frames import DEFAULT_EVENT_TYPE, iter_frames, parse_frame
from .transport.base import Reply, Transport, TransportState
from .transport.sse import resolve_endpoint
from .types import ConnectionStatus

logger = logging.getLogger(__name__)

ENDPOINT_EVENT = "endpoint"
TOOLS_CALL_METHOD = "tools/call"

NotificationHandler = Callable[[NotificationEnvelope], Any]


class ClientSession:
    """Correlates many concurrent requests over one server event stream.

    Usage:
        async with ClientSession(SSETransport(config), config) as session:
            tools = await session.request("tools/list")
            result = await session.request(
                "tools/call",
                {"name": "toolA", "arguments": {"hostName": "device01"}},
                on_progress=lambda p: print(p.percentage, p.message),
            )
    """

    def __init__(self, transport: Transport, config: ClientConfig | None = None) -> None:
        self.config = config or ClientConfig()
        self._transport = transport
        self._state = TransportState.DISCONNECTED
        self._table = CorrelationTable()
        self._progress = ProgressRouter(self._table)
        self._request_id = 0
        self._endpoint: str | None = None
        self._endpoint_ready = asyncio.Event()
        self._reader_task: asyncio.Task[None] | None = None
        self._reply_tasks: set[asyncio.Task[None]] = set()
        self._notification_handlers: list[NotificationHandler] = []
        self._lock = asyncio.Lock()

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == TransportState.CONNECTED

    @property
    def endpoint(self) -> str | None:
        """Where requests are sent, once known."""
        return self._endpoint

    @property
    def pending_requests(self) -> int:
        return len(self._table)

    def status(self) -> ConnectionStatus:
        return ConnectionStatus(
            connected=self.is_connected,
            endpoint=self._endpoint,
            pending_requests=len(self._table),
        )

    def _expects_endpoint(self) -> bool:
        return self.config.mode == "sse"

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def open(self) -> None:
        """Open the transport and start reading the shared stream.

        Raises:
            TransportError: If the stream cannot be opened, or (SSE mode) no
                endpoint event arrives within `endpoint_timeout`
        """
        async with self._lock:
            if self._state == TransportState.CONNECTED:
                logger.debug("Session already connected")
                return

            self._state = TransportState.CONNECTING
            self._request_id = 0
            self._endpoint = None
            self._endpoint_ready = asyncio.Event()

            try:
                stream = await self._transport.open()
            except TransportError:
                self._state = TransportState.DISCONNECTED
                raise
            except Exception as e:
                self._state = TransportState.DISCONNECTED
                raise TransportError(f"Failed to connect: {e}") from e

            if stream is None and self._expects_endpoint():
                await self._transport.close()
                self._state = TransportState.DISCONNECTED
                raise TransportError("Transport opened without an event stream")

            if stream is not None:
                self._reader_task = asyncio.create_task(self._read_loop(stream))

            if stream is not None and self._expects_endpoint():
                try:
                    await self._wait_for_endpoint()
                except BaseException:
                    await self._teardown()
                    self._state = TransportState.DISCONNECTED
                    raise
            elif not self._expects_endpoint():
                self._endpoint = self.config.url

            self._state = TransportState.CONNECTED
            logger.info(f"Session ready (endpoint: {self._endpoint})")

    async def _wait_for_endpoint(self) -> None:
        assert self._reader_task is not None
        waiter = asyncio.create_task(self._endpoint_ready.wait())
        try:
            await asyncio.wait(
                {waiter, self._reader_task},
                timeout=self.config.endpoint_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            waiter.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await waiter

        if self._endpoint is None:
            if self._reader_task.done():
                raise TransportError("SSE stream closed before endpoint event")
            raise TransportError("Timeout waiting for SSE endpoint event")

        if self._reader_task.done():
            raise TransportError("SSE stream closed")

    async def close(self) -> None:
        """Stop reading, fail every pending request, release the transport."""
        async with self._lock:
            if self._state == TransportState.CLOSED:
                return
            self._state = TransportState.CLOSED

            drained = self._table.drain_all(DisconnectedError)
            if drained:
                logger.info(f"Failed {drained} pending request(s) on disconnect")

            await self._teardown()
            self._endpoint = None
            self._request_id = 0
            logger.info("Disconnected")

    async def _teardown(self) -> None:
        tasks = [t for t in (self._reader_task, *self._reply_tasks) if t is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._reader_task = None
        self._reply_tasks.clear()
        await self._transport.close()

    async def __aenter__(self) -> ClientSession:
        await self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # =========================================================================
    # Issuing
    # =========================================================================

    def _next_progress_token(self, request_id: int) -> str:
        return f"req-{request_id}-{int(time.time() * 1000)}"

    def _prepare_params(
        self, method: str, params: dict[str, Any] | None, token: str
    ) -> dict[str, Any]:
        params = dict(params or {})
        # Tool servers read the token from the arguments to tag their progress
        if method == TOOLS_CALL_METHOD and isinstance(params.get("arguments"), dict):
            params["arguments"] = {**params["arguments"], "progressToken": token}
        if self.config.meta_progress_token:
            meta = dict(params.get("_meta") or {})
            meta.setdefault("progressToken", token)
            params["_meta"] = meta
        return params

    def _ensure_ready(self) -> None:
        if not self.is_connected or (self._expects_endpoint() and not self._endpoint):
            raise NotConnectedError()

    async def issue(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        progress_token: str | None = None,
        timeout: float | None = None,
    ) -> asyncio.Future[Any]:
        """Send a request and return the future its response will settle.

        The future resolves with the response `result`, or fails with
        RemoteError, RequestTimeoutError, TransportError (send failed),
        DisconnectedError or RequestCancelledError.

        Raises:
            NotConnectedError: If the session is not open
            DuplicateKeyError: If `progress_token` is already in use
        """
        self._ensure_ready()
        loop = asyncio.get_running_loop()

        self._request_id += 1
        request_id = self._request_id
        token = progress_token or self._next_progress_token(request_id)
        timeout = self.config.request_timeout if timeout is None else timeout

        message = JsonRpcRequest(
            id=request_id,
            method=method,
            params=self._prepare_params(method, params, token),
        ).to_wire()

        future: asyncio.Future[Any] = loop.create_future()
        pending = self._table.register(
            request_id,
            token,
            future,
            on_progress=on_progress,
            deadline=loop.time() + timeout,
            method=method,
        )
        pending.timer = loop.call_later(timeout, self._expire, request_id, timeout)
        future.add_done_callback(functools.partial(self._on_future_done, request_id))

        try:
            reply = await self._transport.send(message, self._endpoint)
        except asyncio.CancelledError:
            self._table.discard(request_id)
            future.cancel()
            raise
        except Exception as e:
            error = e if isinstance(e, TransportError) else TransportError(f"Send failed: {e}")
            logger.error(f"[Request {request_id}] {method} failed to send: {error}")
            self._table.settle(request_id, error=error)
            return future

        logger.debug(f"[Request {request_id}] {method}")
        if reply is not None:
            self._consume_reply(reply, request_id)
        return future

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        progress_token: str | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and wait for its result."""
        future = await self.issue(
            method,
            params,
            on_progress=on_progress,
            progress_token=progress_token,
            timeout=timeout,
        )
        return await future

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a notification. Nothing is registered and nothing is awaited."""
        self._ensure_ready()
        message = JsonRpcNotification(method=method, params=params or None).to_wire()
        try:
            reply = await self._transport.send(message, self._endpoint)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"Send failed: {e}") from e

        logger.debug(f"Notification sent: {method}")
        if reply is not None:
            self._consume_reply(reply, None)

    async def cancel(self, request_id: int, reason: str | None = None) -> bool:
        """Cancel a pending request and tell the server.

        Returns False if the request already settled.
        """
        if request_id not in self._table:
            return False

        self._table.settle(request_id, error=RequestCancelledError(request_id, reason))
        params: dict[str, Any] = {"requestId": request_id}
        if reason:
            params["reason"] = reason
        try:
            await self.notify(CANCELLED_METHOD, params)
        except TransportError as e:
            logger.warning(f"Could not send cancellation for request {request_id}: {e}")
        return True

    def _expire(self, request_id: int, timeout: float) -> None:
        if request_id not in self._table:
            return
        logger.warning(f"[Request {request_id}] timed out after {timeout}s")
        self._table.settle(request_id, error=RequestTimeoutError(request_id, timeout))

    def _on_future_done(self, request_id: int, future: asyncio.Future[Any]) -> None:
        if future.cancelled() and self._table.discard(request_id):
            logger.debug(f"[Request {request_id}] abandoned by caller")

    # =========================================================================
    # Notifications
    # =========================================================================

    def on_notification(self, handler: NotificationHandler) -> Callable[[], None]:
        """Subscribe to server notifications other than progress.

        Returns:
            Unsubscribe function
        """
        self._notification_handlers.append(handler)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._notification_handlers.remove(handler)

        return unsubscribe

    def _publish_notification(self, notification: NotificationEnvelope) -> None:
        logger.info(f"Notification: {notification.method}")
        for handler in list(self._notification_handlers):
            try:
                handler(notification)
            except Exception:
                logger.exception(f"Error in notification handler for {notification.method}")

    # =========================================================================
    # Reading
    # =========================================================================

    async def _read_loop(self, stream: AsyncIterator[bytes]) -> None:
        """Sole consumer of the shared stream."""
        try:
            async for raw in iter_frames(stream):
                self._dispatch_frame(raw)
        except Exception as e:
            logger.error(f"SSE read error: {e}")
            self._on_stream_end(f"SSE read error: {e}")
        else:
            logger.info("SSE stream closed")
            self._on_stream_end("SSE stream closed")

    def _on_stream_end(self, reason: str) -> None:
        if self._state == TransportState.CONNECTED:
            self._state = TransportState.DISCONNECTED
        drained = self._table.drain_all(lambda: DisconnectedError(reason))
        if drained:
            logger.warning(f"Failed {drained} pending request(s): {reason}")

    def _consume_reply(self, reply: Reply, request_id: int | None) -> None:
        task = asyncio.create_task(self._read_reply(reply, request_id))
        self._reply_tasks.add(task)
        task.add_done_callback(self._reply_tasks.discard)

    async def _read_reply(self, reply: Reply, request_id: int | None) -> None:
        """Consume a reply body attached to one send."""
        try:
            if reply.is_event_stream:
                async for raw in iter_frames(reply.chunks):
                    self._dispatch_frame(raw)
            else:
                body = b"".join([chunk async for chunk in reply.chunks])
                if body.strip():
                    self._dispatch_json_body(body.decode("utf-8", errors="replace"))
        except Exception as e:
            logger.error(f"Reply stream error: {e}")
            if request_id is not None and request_id in self._table:
                self._table.settle(request_id, error=TransportError(f"Reply stream error: {e}"))
        finally:
            await reply.aclose()

        if request_id is not None and request_id in self._table:
            self._table.settle(
                request_id,
                error=TransportError(
                    f"Reply stream for request {request_id} ended without a response"
                ),
            )

    def _dispatch_frame(self, raw: str) -> None:
        frame = parse_frame(raw)

        if frame.event == ENDPOINT_EVENT:
            self._on_endpoint(frame.data)
            return

        if frame.event != DEFAULT_EVENT_TYPE or not frame.has_data():
            logger.debug(f"Ignoring '{frame.event}' frame")
            return

        try:
            envelope = decode_envelope(frame.data)
        except ProtocolParseError as e:
            logger.warning(f"Failed to parse SSE message: {e} (data: {frame.data[:200]})")
            return
        self._dispatch_envelope(envelope)

    def _dispatch_json_body(self, text: str) -> None:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse JSON reply: {e}")
            return

        # A JSON reply may be a batch
        for item in payload if isinstance(payload, list) else [payload]:
            if not isinstance(item, dict):
                logger.warning(f"Ignoring non-object JSON reply item: {item!r}")
                continue
            try:
                envelope = classify_payload(item)
            except (ProtocolParseError, ValidationError) as e:
                logger.warning(f"Failed to classify JSON reply: {e}")
                continue
            self._dispatch_envelope(envelope)

    def _dispatch_envelope(self, envelope: Envelope) -> None:
        if isinstance(envelope, ResponseEnvelope):
            self._settle_response(envelope)
        elif isinstance(envelope, ProgressNotification):
            self._progress.route(envelope)
        else:
            self._publish_notification(envelope)

    def _settle_response(self, response: ResponseEnvelope) -> None:
        if response.is_server_request():
            logger.warning(
                f"Ignoring server-initiated request: {response.method} (id={response.id})"
            )
            return

        if response.is_error():
            error = RemoteError.from_error_object(response.error)
            if self._table.settle(response.id, error=error):
                logger.error(f"[Request {response.id}] Error: {error}")
        elif self._table.settle(response.id, response.result):
            logger.debug(f"[Request {response.id}] Success")

    def _on_endpoint(self, data: str) -> None:
        if self._endpoint is not None:
            logger.debug(f"Ignoring repeated endpoint event: {data}")
            return
        self._endpoint = resolve_endpoint(self.config.url, data.strip())
        logger.info(f"Message endpoint: {self._endpoint}")
        self._endpoint_ready.set()
