"""Client configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from . import __version__

DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_ENDPOINT_TIMEOUT = 10.0
DEFAULT_PROTOCOL_VERSION = "2025-03-26"


@dataclass
class ClientConfig:
    """Configuration for a client session and its transport."""

    # Connection
    url: str = "http://localhost:5050/mcp/sse"
    mode: str = "sse"  # "sse" | "http"
    access_token: str = ""
    connect_timeout: float = 30.0

    # Requests
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    endpoint_timeout: float = DEFAULT_ENDPOINT_TIMEOUT
    meta_progress_token: bool = True

    # Handshake
    protocol_version: str = DEFAULT_PROTOCOL_VERSION
    client_name: str = "mcp-stream-client"
    client_version: str = __version__
    capabilities: dict[str, Any] = field(
        default_factory=lambda: {"roots": {"listChanged": True}, "sampling": {}}
    )

    def client_info(self) -> dict[str, str]:
        return {"name": self.client_name, "version": self.client_version}

    @classmethod
    def from_env(cls, prefix: str = "MCP_", **overrides: Any) -> ClientConfig:
        """Build a config from environment variables.

        Reads {prefix}URL, {prefix}MODE, {prefix}ACCESS_TOKEN,
        {prefix}REQUEST_TIMEOUT and {prefix}ENDPOINT_TIMEOUT. Explicit
        keyword overrides win over the environment.
        """
        values: dict[str, Any] = {}
        if url := os.getenv(f"{prefix}URL"):
            values["url"] = url
        if mode := os.getenv(f"{prefix}MODE"):
            values["mode"] = mode
        if token := os.getenv(f"{prefix}ACCESS_TOKEN"):
            values["access_token"] = token
        if request_timeout := os.getenv(f"{prefix}REQUEST_TIMEOUT"):
            values["request_timeout"] = float(request_timeout)
        if endpoint_timeout := os.getenv(f"{prefix}ENDPOINT_TIMEOUT"):
            values["endpoint_timeout"] = float(endpoint_timeout)
        values.update(overrides)
        return cls(**values)
