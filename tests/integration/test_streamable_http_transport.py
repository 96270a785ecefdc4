"""Integration tests for the streamable HTTP transport."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
import pytest
import pytest_asyncio

from mcp_stream_client import (
    ClientConfig,
    ProgressUpdate,
    RemoteError,
    StreamableHTTPTransport,
    TransportError,
    create_http_client,
)
from mcp_stream_client.protocol.frames import encode_frame
from mcp_stream_client.transport.streamable_http import SESSION_ID_HEADER

MCP_URL = "http://testserver/mcp"


class FakeStreamableServer:
    """Single-endpoint MCP server answering on each POST response."""

    def __init__(self, issue_session: bool = True) -> None:
        self.issue_session = issue_session
        self.requests: list[httpx.Request] = []
        self.fail_status: int | None = None

    def posted(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.method == "POST"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "DELETE":
            return httpx.Response(200)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status)

        message = json.loads(request.content)
        if "id" not in message:
            return httpx.Response(202)

        request_id = message["id"]
        method = message["method"]
        if method == "initialize":
            headers = {SESSION_ID_HEADER: "sess-1"} if self.issue_session else {}
            return httpx.Response(
                200,
                headers=headers,
                json={
                    "jsonrpc": "2.0",
                    "id": request_id,
                    "result": {"protocolVersion": "2025-03-26", "serverInfo": {"name": "fake"}},
                },
            )
        if method == "tools/call":
            token = message["params"]["arguments"]["progressToken"]
            frames = [
                {
                    "jsonrpc": "2.0",
                    "method": "notifications/progress",
                    "params": {"progressToken": token, "progress": step, "total": 3},
                }
                for step in (1, 2, 3)
            ]
            frames.append({"jsonrpc": "2.0", "id": request_id, "result": {"done": True}})
            body = "".join(encode_frame(json.dumps(f)) for f in frames)
            return httpx.Response(
                200, headers={"content-type": "text/event-stream"}, content=body.encode()
            )
        if method == "bad":
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": request_id, "error": {"code": -1, "message": "bad"}},
            )
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": request_id, "result": {}})


@pytest.fixture
def server() -> FakeStreamableServer:
    return FakeStreamableServer()


@pytest_asyncio.fixture
async def http_client(server: FakeStreamableServer) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(server.handler)) as client:
        yield client


class TestStreamableHTTPTransport:
    """Tests for StreamableHTTPTransport through McpClient."""

    @pytest.mark.asyncio
    async def test_json_and_event_stream_replies(
        self, server: FakeStreamableServer, http_client: httpx.AsyncClient
    ) -> None:
        """JSON bodies and SSE bodies both settle their request."""
        updates: list[ProgressUpdate] = []

        async with create_http_client(MCP_URL, http_client=http_client) as client:
            info = await client.initialize()
            result = await client.call_tool("toolA", {"hostName": "device01"}, updates.append)

        assert info.server_info is not None and info.server_info.name == "fake"
        assert result == {"done": True}
        assert [u.percentage for u in updates] == [33, 67, 100]
        assert [m.get("method") for m in server.posted()] == [
            "initialize",
            "notifications/initialized",
            "tools/call",
        ]

    @pytest.mark.asyncio
    async def test_headers(
        self, server: FakeStreamableServer, http_client: httpx.AsyncClient
    ) -> None:
        client = create_http_client(MCP_URL, access_token="tkn", http_client=http_client)
        async with client:
            await client.ping()

        request = server.requests[0]
        assert request.url == MCP_URL
        assert request.headers["accept"] == "application/json, text/event-stream"
        assert request.headers["authorization"] == "Bearer tkn"

    @pytest.mark.asyncio
    async def test_session_id_echoed_and_released(
        self, server: FakeStreamableServer, http_client: httpx.AsyncClient
    ) -> None:
        """The issued session id rides on later requests and is DELETEd on close."""
        async with create_http_client(MCP_URL, http_client=http_client) as client:
            await client.initialize()
            await client.ping()

        first, *rest = server.requests
        assert SESSION_ID_HEADER.lower() not in first.headers
        assert all(r.headers[SESSION_ID_HEADER] == "sess-1" for r in rest)
        assert rest[-1].method == "DELETE"

    @pytest.mark.asyncio
    async def test_no_delete_without_session(self) -> None:
        server = FakeStreamableServer(issue_session=False)
        async with httpx.AsyncClient(transport=httpx.MockTransport(server.handler)) as http_client:
            async with create_http_client(MCP_URL, http_client=http_client) as client:
                await client.initialize()

        assert [r.method for r in server.requests] == ["POST", "POST"]

    @pytest.mark.asyncio
    async def test_accepted_returns_no_reply(self, http_client: httpx.AsyncClient) -> None:
        transport = StreamableHTTPTransport(ClientConfig(url=MCP_URL, mode="http"), http_client)

        reply = await transport.send({"jsonrpc": "2.0", "method": "notifications/initialized"})

        assert reply is None

    @pytest.mark.asyncio
    async def test_remote_error(self, http_client: httpx.AsyncClient) -> None:
        async with create_http_client(MCP_URL, http_client=http_client) as client:
            with pytest.raises(RemoteError, match="bad"):
                await client.session.request("bad")

    @pytest.mark.asyncio
    async def test_http_error_fails_request(
        self, server: FakeStreamableServer, http_client: httpx.AsyncClient
    ) -> None:
        server.fail_status = 503

        async with create_http_client(MCP_URL, http_client=http_client) as client:
            with pytest.raises(TransportError, match="HTTP error: 503"):
                await client.ping()
            assert client.status().pending_requests == 0
