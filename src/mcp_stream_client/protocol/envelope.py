"""JSON-RPC 2.0 envelopes.

Outbound:
- Request: {"jsonrpc": "2.0", "id": ..., "method": ..., "params": {...}}
- Notification: {"jsonrpc": "2.0", "method": ..., "params": {...}} (no id,
  params omitted when empty)

Inbound payloads are classified by shape:
- Response: carries an `id` (with `result` or `error`)
- ProgressNotification: no id, method "notifications/progress"
- NotificationEnvelope: any other payload with a `method`
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ProtocolParseError

JSONRPC_VERSION = "2.0"
PROGRESS_METHOD = "notifications/progress"
CANCELLED_METHOD = "notifications/cancelled"
INITIALIZED_METHOD = "notifications/initialized"


class JsonRpcRequest(BaseModel):
    """A request expecting exactly one terminal response."""

    jsonrpc: str = JSONRPC_VERSION
    id: int | str
    method: str
    params: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump()


class JsonRpcNotification(BaseModel):
    """A fire-and-forget message. No response is ever correlated to it."""

    jsonrpc: str = JSONRPC_VERSION
    method: str
    params: dict[str, Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"jsonrpc": self.jsonrpc, "method": self.method}
        if self.params:
            payload["params"] = self.params
        return payload


class ResponseEnvelope(BaseModel):
    """Terminal response to a request."""

    jsonrpc: str = JSONRPC_VERSION
    id: int | str | None
    result: Any = None
    error: Any = None
    method: str | None = None  # set only on server-initiated requests

    def is_error(self) -> bool:
        return self.error is not None

    def is_server_request(self) -> bool:
        """True if this payload is a request from the server, not an answer."""
        return self.method is not None


class ProgressNotification(BaseModel):
    """Out-of-band progress for the request that owns `progress_token`."""

    model_config = ConfigDict(populate_by_name=True)

    progress_token: str | int = Field(alias="progressToken")
    progress: float
    total: float | None = None
    message: str | None = None


class NotificationEnvelope(BaseModel):
    """Any other server notification."""

    jsonrpc: str = JSONRPC_VERSION
    method: str
    params: dict[str, Any] | None = None


Envelope = ResponseEnvelope | ProgressNotification | NotificationEnvelope


def decode_envelope(data: str) -> Envelope:
    """Decode a frame's data payload and classify it.

    Raises:
        ProtocolParseError: malformed JSON, or a payload matching no shape.
    """
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise ProtocolParseError(f"Invalid JSON payload: {e}", data) from e

    if not isinstance(payload, dict):
        raise ProtocolParseError(f"Expected a JSON object, got {type(payload).__name__}", data)

    try:
        return classify_payload(payload)
    except ValidationError as e:
        raise ProtocolParseError(
            f"Malformed envelope: {e.error_count()} validation error(s)", data
        ) from e


def classify_payload(payload: dict[str, Any]) -> Envelope:
    """Classify an already-decoded JSON object."""
    if "id" in payload:
        return ResponseEnvelope.model_validate(payload)

    method = payload.get("method")
    if method == PROGRESS_METHOD:
        return ProgressNotification.model_validate(payload.get("params") or {})
    if isinstance(method, str):
        return NotificationEnvelope.model_validate(payload)

    raise ProtocolParseError("Payload has neither an id nor a method", json.dumps(payload))
