"""Client type definitions."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .progress import ProgressCallback


class ConnectionStatus(BaseModel):
    """Snapshot of a session's connection state."""

    connected: bool
    endpoint: str | None = None
    pending_requests: int = 0


class ServerInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str | None = None
    version: str | None = None


class InitializeResult(BaseModel):
    """Result of the initialize handshake."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    protocol_version: str | None = Field(default=None, alias="protocolVersion")
    capabilities: dict[str, Any] = Field(default_factory=dict)
    server_info: ServerInfo | None = Field(default=None, alias="serverInfo")
    instructions: str | None = None


class ToolInfo(BaseModel):
    """A tool advertised by the server."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    description: str | None = None
    input_schema: dict[str, Any] = Field(default_factory=dict, alias="inputSchema")


class ToolCall(BaseModel):
    """One entry of a parallel tool call batch."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    on_progress: ProgressCallback | None = None


class ToolCallOutcome(BaseModel):
    """Settled outcome of one call in a parallel batch."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    index: int
    name: str
    success: bool
    result: Any = None
    error: BaseException | None = None
