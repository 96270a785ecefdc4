"""Transport layer.

Transports move bytes; the session engine owns framing and correlation:
- SSE (legacy): shared GET stream, POST to the announced endpoint
- Streamable HTTP: POST per message, reply attached to the POST response
- Mock: in-memory, for tests
"""

from .base import Reply, Transport, TransportState
from .mock import MockTransport
from .sse import SSETransport, resolve_endpoint
from .streamable_http import SESSION_ID_HEADER, StreamableHTTPTransport

__all__ = [
    "Reply",
    "Transport",
    "TransportState",
    "MockTransport",
    "SSETransport",
    "StreamableHTTPTransport",
    "SESSION_ID_HEADER",
    "resolve_endpoint",
]
