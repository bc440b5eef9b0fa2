"""Tests for the uapf-mcp command line entry point."""

from unittest.mock import AsyncMock, patch

import pytest

from uapf_mcp.cli import main
from uapf_mcp.errors import StartupError


class TestMain:
    def test_flags_override_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MCP_PORT", "7000")
        monkeypatch.setenv("MCP_TRANSPORT", "websocket")
        run_gateway = AsyncMock()

        with (
            patch("uapf_mcp.config.load_dotenv"),
            patch("uapf_mcp.cli.run_gateway", new=run_gateway),
        ):
            main(["--port", "7100", "--transport", "stdio", "--engine-url", "http://engine:3001/"])

        config = run_gateway.call_args.args[0]
        assert config.port == 7100
        assert config.transport == "stdio"
        assert config.engine_url == "http://engine:3001"

    def test_invalid_configuration_exits_non_zero(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("UAPF_SECURITY_MODE", "paranoid")

        with patch("uapf_mcp.config.load_dotenv"), pytest.raises(SystemExit) as excinfo:
            main([])

        assert excinfo.value.code == 1

    def test_startup_failure_exits_non_zero(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("UAPF_SECURITY_MODE", raising=False)
        run_gateway = AsyncMock(side_effect=StartupError("no_packages", "No packages"))

        with (
            patch("uapf_mcp.config.load_dotenv"),
            patch("uapf_mcp.cli.run_gateway", new=run_gateway),
            pytest.raises(SystemExit) as excinfo,
        ):
            main([])

        assert excinfo.value.code == 1
