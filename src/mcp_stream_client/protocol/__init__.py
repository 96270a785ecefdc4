"""Wire protocol layer.

Two levels:
- Frames: Server-Sent Events framing of the byte stream
- Envelopes: JSON-RPC 2.0 payloads carried in frame data

Classification:
- Response: payload carries an `id`, settles the matching request
- Progress: `notifications/progress`, routed by progress token
- Notification: any other method, logged and published to subscribers
"""

from .envelope import (
    CANCELLED_METHOD,
    INITIALIZED_METHOD,
    JSONRPC_VERSION,
    PROGRESS_METHOD,
    Envelope,
    JsonRpcNotification,
    JsonRpcRequest,
    NotificationEnvelope,
    ProgressNotification,
    ResponseEnvelope,
    classify_payload,
    decode_envelope,
)
from .frames import (
    DEFAULT_EVENT_TYPE,
    FRAME_DELIMITER,
    Frame,
    FrameReassembler,
    encode_frame,
    iter_frames,
    parse_frame,
)

__all__ = [
    "CANCELLED_METHOD",
    "DEFAULT_EVENT_TYPE",
    "FRAME_DELIMITER",
    "INITIALIZED_METHOD",
    "JSONRPC_VERSION",
    "PROGRESS_METHOD",
    "Envelope",
    "Frame",
    "FrameReassembler",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "NotificationEnvelope",
    "ProgressNotification",
    "ResponseEnvelope",
    "classify_payload",
    "decode_envelope",
    "encode_frame",
    "iter_frames",
    "parse_frame",
]
