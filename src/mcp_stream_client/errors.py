"""Error types for the MCP stream client.

Per-request failures reach only the caller that issued the request, through
its future. Stream-level failures reach every pending request via a drain.
Parse failures and unknown correlation ids are logged by the readers and
never raised to callers.
"""

from __future__ import annotations

from typing import Any


class McpClientError(Exception):
    """Base class for all client errors."""


class TransportError(McpClientError):
    """Connecting to or sending through the transport failed."""


class NotConnectedError(TransportError):
    """A request was issued on a session that is not open."""

    def __init__(self, message: str = "Not connected. Call open() first.") -> None:
        super().__init__(message)


class DisconnectedError(TransportError):
    """The session stream ended while requests were still pending."""

    def __init__(self, message: str = "Disconnected") -> None:
        super().__init__(message)


class RequestTimeoutError(McpClientError, TimeoutError):
    """No terminal response arrived before the request deadline."""

    def __init__(self, request_id: int, timeout: float) -> None:
        self.request_id = request_id
        self.timeout = timeout
        super().__init__(f"Request {request_id} timed out after {int(timeout * 1000)}ms")


class RequestCancelledError(McpClientError):
    """The request was cancelled by the client before it settled."""

    def __init__(self, request_id: int, reason: str | None = None) -> None:
        self.request_id = request_id
        self.reason = reason
        message = f"Request {request_id} cancelled"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ProtocolParseError(McpClientError):
    """A frame payload could not be decoded into a JSON-RPC envelope."""

    def __init__(self, message: str, payload: str | None = None) -> None:
        self.payload = payload
        super().__init__(message)


class RemoteError(McpClientError):
    """The remote side answered a request with a JSON-RPC error object."""

    def __init__(self, code: int | None, message: str, data: Any = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"[{code}] {message}" if code is not None else message)

    @classmethod
    def from_error_object(cls, error: Any) -> RemoteError:
        """Build from the `error` member of a response."""
        if isinstance(error, dict):
            return cls(
                code=error.get("code"),
                message=str(error.get("message", "Unknown error")),
                data=error.get("data"),
            )
        return cls(code=None, message=str(error))


class DuplicateKeyError(McpClientError):
    """A request id or progress token is already registered."""
