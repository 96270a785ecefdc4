"""Streamable HTTP transport.

Every message is a POST to one URL. The reply rides on the POST response:
- application/json: a single JSON-RPC response
- text/event-stream: progress notifications followed by the response
- 202 Accepted / empty body: nothing to read (notifications)

The server may issue a session id on any response via the
`Mcp-Session-Id` header; it is echoed on every later request and
released with DELETE on close.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import ClientConfig
from ..errors import TransportError
from .base import EVENT_STREAM_CONTENT_TYPE, JSON_CONTENT_TYPE, Reply

logger = logging.getLogger(__name__)

SESSION_ID_HEADER = "Mcp-Session-Id"


class StreamableHTTPTransport:
    """POST-per-message transport with replies attached to each POST."""

    def __init__(self, config: ClientConfig, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._client = client
        self._owns_client = client is None
        self._session_id: str | None = None

    @property
    def session_id(self) -> str | None:
        """Session id issued by the server, if any."""
        return self._session_id

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.connect_timeout, read=None),
                follow_redirects=True,
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": JSON_CONTENT_TYPE,
            "Accept": f"{JSON_CONTENT_TYPE}, {EVENT_STREAM_CONTENT_TYPE}",
        }
        if self.config.access_token:
            headers["Authorization"] = f"Bearer {self.config.access_token}"
        if self._session_id:
            headers[SESSION_ID_HEADER] = self._session_id
        return headers

    async def open(self) -> None:
        """No shared stream in this mode."""
        self._ensure_client()
        return None

    async def send(self, message: dict[str, Any], endpoint: str | None = None) -> Reply | None:
        """POST a message and hand back its reply body, if any."""
        client = self._ensure_client()
        request = client.build_request(
            "POST", endpoint or self.config.url, json=message, headers=self._headers()
        )
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP request failed: {e}") from e

        if response.is_error:
            await response.aclose()
            raise TransportError(f"HTTP error: {response.status_code} {response.reason_phrase}")

        if session_id := response.headers.get(SESSION_ID_HEADER):
            if session_id != self._session_id:
                logger.info(f"Server issued session id {session_id}")
            self._session_id = session_id

        content_type = response.headers.get("content-type", "")
        if response.status_code == 202 or not content_type:
            await response.aclose()
            return None

        return Reply(
            content_type=content_type,
            chunks=response.aiter_bytes(),
            aclose=response.aclose,
        )

    async def close(self) -> None:
        """Release the server session (if one was issued) and the client."""
        if self._client is None:
            return

        if self._session_id:
            try:
                response = await self._client.delete(self.config.url, headers=self._headers())
                logger.info(f"Session close status: {response.status_code}")
            except httpx.HTTPError as e:
                logger.warning(f"Failed to close session {self._session_id}: {e}")
            self._session_id = None

        if self._owns_client:
            await self._client.aclose()
            self._client = None
