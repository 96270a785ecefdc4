"""Legacy Server-Sent Events transport.

Flow:
- GET the SSE URL; the server keeps the response open as the shared stream
- The first `endpoint` event names where requests must be POSTed
- Every reply (responses, progress, notifications) arrives on the stream;
  the POST response body is ignored
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from ..config import ClientConfig
from ..errors import TransportError
from .base import EVENT_STREAM_CONTENT_TYPE, JSON_CONTENT_TYPE, Reply

logger = logging.getLogger(__name__)


def resolve_endpoint(stream_url: str, endpoint: str) -> str:
    """Resolve an announced endpoint against the stream URL.

    Relative endpoints resolve against the stream URL with a trailing
    `/sse` segment removed.
    """
    base = stream_url.rstrip("/")
    if base.endswith("/sse"):
        base = base[: -len("/sse")]
    return str(httpx.URL(base).join(endpoint))


class SSETransport:
    """Shared GET stream plus POST-per-message, over httpx."""

    def __init__(self, config: ClientConfig, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._client = client
        self._owns_client = client is None
        self._response: httpx.Response | None = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                # No read timeout for SSE
                timeout=httpx.Timeout(self.config.connect_timeout, read=None),
                follow_redirects=True,
            )
        return self._client

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = dict(extra)
        if self.config.access_token:
            headers["Authorization"] = f"Bearer {self.config.access_token}"
        return headers

    async def open(self) -> AsyncIterator[bytes]:
        """Open the shared event stream."""
        client = self._ensure_client()
        request = client.build_request(
            "GET",
            self.config.url,
            headers=self._headers(Accept=EVENT_STREAM_CONTENT_TYPE),
        )
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(f"SSE connection failed: {e}") from e

        if response.is_error:
            await response.aclose()
            raise TransportError(
                f"SSE connection failed: {response.status_code} {response.reason_phrase}"
            )

        logger.info(f"SSE connected to {self.config.url}, waiting for endpoint event...")
        self._response = response
        return self._iter_stream(response)

    async def _iter_stream(self, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            raise TransportError(f"SSE read error: {e}") from e
        finally:
            await response.aclose()

    async def send(self, message: dict[str, Any], endpoint: str | None = None) -> Reply | None:
        """POST a message to the announced endpoint."""
        if not endpoint:
            raise TransportError("No message endpoint announced by the server")

        client = self._ensure_client()
        try:
            response = await client.post(
                endpoint,
                json=message,
                headers=self._headers(**{"Content-Type": JSON_CONTENT_TYPE}),
            )
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP request failed: {e}") from e

        if response.is_error:
            raise TransportError(f"HTTP error: {response.status_code} {response.reason_phrase}")
        return None

    async def close(self) -> None:
        """Close the stream and, if owned, the HTTP client."""
        if self._response is not None:
            await self._response.aclose()
            self._response = None
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
