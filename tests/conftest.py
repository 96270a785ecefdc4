"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from mcp_stream_client import ClientConfig, ClientSession, MockTransport


@pytest.fixture
def config() -> ClientConfig:
    """Config pointing at the in-memory server."""
    return ClientConfig(url="http://mock/mcp/sse", request_timeout=5.0, endpoint_timeout=1.0)


@pytest.fixture
def transport() -> MockTransport:
    """Mock transport announcing /messages as its endpoint."""
    return MockTransport(endpoint="/messages?session_id=abc")


@pytest_asyncio.fixture
async def session(transport: MockTransport, config: ClientConfig) -> AsyncIterator[ClientSession]:
    """An open session over the mock transport."""
    client_session = ClientSession(transport, config)
    await client_session.open()
    yield client_session
    await client_session.close()


@pytest.fixture
def flush():
    """Let the reader task catch up with pushed frames."""

    async def _flush(rounds: int = 10) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _flush
