"""High-level MCP client.

Wraps a ClientSession with the protocol operations:
- initialize handshake (+ notifications/initialized)
- tools/list, tools/call (with per-call progress), ping
- parallel tool calls, each settled independently

Usage:
    async with create_sse_client("http://localhost:5050/mcp/sse") as client:
        await client.initialize()
        tools = await client.list_tools()
        result = await client.call_tool(
            "toolA",
            {"hostName": "device01", "commands": ["show version"]},
            on_progress=lambda p: print(f"{p.percentage}% - {p.message}"),
        )
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from .config import ClientConfig
from .progress import ProgressCallback
from .protocol.envelope import INITIALIZED_METHOD
from .session import ClientSession
from .transport.base import Transport
from .transport.mock import MockTransport
from .transport.sse import SSETransport
from .transport.streamable_http import StreamableHTTPTransport
from .types import ConnectionStatus, InitializeResult, ToolCall, ToolCallOutcome, ToolInfo

logger = logging.getLogger(__name__)


@dataclass
class McpClient:
    """Protocol-level operations over one session."""

    _session: ClientSession
    _initialize_result: InitializeResult | None = field(default=None, repr=False)

    @property
    def session(self) -> ClientSession:
        """Access the underlying session."""
        return self._session

    @property
    def config(self) -> ClientConfig:
        return self._session.config

    @property
    def server_info(self) -> InitializeResult | None:
        """Result of the last initialize handshake."""
        return self._initialize_result

    @property
    def is_connected(self) -> bool:
        return self._session.is_connected

    async def connect(self) -> None:
        await self._session.open()

    async def close(self) -> None:
        self._initialize_result = None
        await self._session.close()

    async def __aenter__(self) -> McpClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def status(self) -> ConnectionStatus:
        return self._session.status()

    async def initialize(self, client_info: dict[str, Any] | None = None) -> InitializeResult:
        """Run the initialize handshake and announce readiness."""
        config = self.config
        raw = await self._session.request(
            "initialize",
            {
                "protocolVersion": config.protocol_version,
                "capabilities": config.capabilities,
                "clientInfo": client_info or config.client_info(),
            },
        )
        result = InitializeResult.model_validate(raw or {})

        await self._session.notify(INITIALIZED_METHOD)

        server_name = result.server_info.name if result.server_info else None
        logger.info(f"Session initialized: {server_name}")
        self._initialize_result = result
        return result

    async def ping(self, timeout: float | None = None) -> None:
        await self._session.request("ping", timeout=timeout)

    async def list_tools(self) -> list[ToolInfo]:
        """List available tools."""
        result = await self._session.request("tools/list") or {}
        tools = [ToolInfo.model_validate(t) for t in result.get("tools") or []]
        logger.info(f"Available tools: {len(tools)}")
        return tools

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        on_progress: ProgressCallback | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Call a tool, reporting its progress to `on_progress`."""
        return await self._session.request(
            "tools/call",
            {"name": name, "arguments": dict(arguments or {})},
            on_progress=on_progress,
            timeout=timeout,
        )

    async def call_tools_parallel(self, calls: list[ToolCall]) -> list[ToolCallOutcome]:
        """Run several tool calls concurrently over the one stream.

        A failing call does not affect the others. Outcomes are returned in
        the order of `calls`.
        """

        async def run(index: int, call: ToolCall) -> ToolCallOutcome:
            try:
                result = await self.call_tool(call.name, call.arguments, call.on_progress)
            except Exception as e:
                logger.warning(f"Tool {call.name} failed: {e}")
                return ToolCallOutcome(index=index, name=call.name, success=False, error=e)
            return ToolCallOutcome(index=index, name=call.name, success=True, result=result)

        return list(await asyncio.gather(*(run(i, c) for i, c in enumerate(calls))))


# Factory functions


def create_client(transport: Transport, config: ClientConfig | None = None) -> McpClient:
    """Create a client over any transport."""
    return McpClient(_session=ClientSession(transport, config))


def create_sse_client(
    url: str,
    access_token: str = "",
    request_timeout: float | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> McpClient:
    """Create a client for a legacy SSE server.

    Args:
        url: SSE stream URL (e.g., http://localhost:5050/mcp/sse)
        access_token: Optional bearer token
        request_timeout: Per-request timeout in seconds (default: 60)
        http_client: Optional preconfigured httpx client
    """
    config = ClientConfig(url=url, mode="sse", access_token=access_token)
    if request_timeout is not None:
        config.request_timeout = request_timeout
    return create_client(SSETransport(config, http_client), config)


def create_http_client(
    url: str,
    access_token: str = "",
    request_timeout: float | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> McpClient:
    """Create a client for a streamable HTTP server."""
    config = ClientConfig(url=url, mode="http", access_token=access_token)
    if request_timeout is not None:
        config.request_timeout = request_timeout
    return create_client(StreamableHTTPTransport(config, http_client), config)


def create_client_from_env(**overrides: Any) -> McpClient:
    """Create a client from MCP_* environment variables."""
    config = ClientConfig.from_env(**overrides)
    if config.mode == "http":
        return create_client(StreamableHTTPTransport(config), config)
    return create_client(SSETransport(config), config)


def create_test_client(
    transport: MockTransport | None = None,
    config: ClientConfig | None = None,
) -> McpClient:
    """Create a client over an in-memory transport."""
    return create_client(
        transport or MockTransport(),
        config or ClientConfig(url="http://mock/mcp/sse"),
    )
