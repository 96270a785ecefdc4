"""Unit tests for ClientConfig."""

from __future__ import annotations

import pytest

from mcp_stream_client import ClientConfig, __version__


class TestClientConfig:
    """Tests for ClientConfig defaults and environment loading."""

    def test_defaults(self) -> None:
        config = ClientConfig()

        assert config.url == "http://localhost:5050/mcp/sse"
        assert config.mode == "sse"
        assert config.request_timeout == 60.0
        assert config.endpoint_timeout == 10.0
        assert config.meta_progress_token is True
        assert config.client_info() == {"name": "mcp-stream-client", "version": __version__}

    def test_capabilities_not_shared(self) -> None:
        """Each config gets its own capabilities dict."""
        first = ClientConfig()
        first.capabilities["experimental"] = {}

        assert "experimental" not in ClientConfig().capabilities

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MCP_URL", "http://device-hub:8080/mcp/sse")
        monkeypatch.setenv("MCP_ACCESS_TOKEN", "token-123")
        monkeypatch.setenv("MCP_REQUEST_TIMEOUT", "120")
        monkeypatch.setenv("MCP_ENDPOINT_TIMEOUT", "2.5")

        config = ClientConfig.from_env()

        assert config.url == "http://device-hub:8080/mcp/sse"
        assert config.access_token == "token-123"
        assert config.request_timeout == 120.0
        assert config.endpoint_timeout == 2.5
        assert config.mode == "sse"

    def test_from_env_overrides_win(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MCP_URL", "http://from-env/sse")

        config = ClientConfig.from_env(url="http://explicit/sse", request_timeout=3.0)

        assert config.url == "http://explicit/sse"
        assert config.request_timeout == 3.0

    def test_from_env_custom_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NETOPS_MODE", "http")

        assert ClientConfig.from_env(prefix="NETOPS_").mode == "http"

    def test_from_env_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for suffix in ("URL", "MODE", "ACCESS_TOKEN", "REQUEST_TIMEOUT", "ENDPOINT_TIMEOUT"):
            monkeypatch.delenv(f"MCP_{suffix}", raising=False)

        assert ClientConfig.from_env() == ClientConfig()
