"""MCP stream client - JSON-RPC request correlation over a shared event stream.

Many requests can be in flight at once over one Server-Sent Events stream.
Each response settles only the request with its id, each progress
notification reaches only the request that owns its token, and every
request settles exactly once: by response, timeout, cancellation, send
failure or disconnect.

Entry points:
- McpClient: initialize, list_tools, call_tool, call_tools_parallel
- ClientSession: the correlation engine (issue/request/notify/cancel)
- Transports: SSETransport, StreamableHTTPTransport, MockTransport
"""

__version__ = "0.1.0"

from .client import (
    McpClient,
    create_client,
    create_client_from_env,
    create_http_client,
    create_sse_client,
    create_test_client,
)
from .config import ClientConfig
from .correlation import CorrelationTable, PendingRequest
from .errors import (
    DisconnectedError,
    DuplicateKeyError,
    McpClientError,
    NotConnectedError,
    ProtocolParseError,
    RemoteError,
    RequestCancelledError,
    RequestTimeoutError,
    TransportError,
)
from .progress import ProgressRouter, ProgressUpdate
from .session import ClientSession
from .transport import MockTransport, Reply, SSETransport, StreamableHTTPTransport, Transport
from .types import ConnectionStatus, InitializeResult, ToolCall, ToolCallOutcome, ToolInfo

__all__ = [
    "__version__",
    # Client
    "McpClient",
    "create_client",
    "create_client_from_env",
    "create_http_client",
    "create_sse_client",
    "create_test_client",
    "ClientConfig",
    # Engine
    "ClientSession",
    "CorrelationTable",
    "PendingRequest",
    "ProgressRouter",
    "ProgressUpdate",
    # Transports
    "Transport",
    "Reply",
    "SSETransport",
    "StreamableHTTPTransport",
    "MockTransport",
    # Types
    "ConnectionStatus",
    "InitializeResult",
    "ToolCall",
    "ToolCallOutcome",
    "ToolInfo",
    # Errors
    "McpClientError",
    "TransportError",
    "NotConnectedError",
    "DisconnectedError",
    "RequestTimeoutError",
    "RequestCancelledError",
    "ProtocolParseError",
    "RemoteError",
    "DuplicateKeyError",
]
