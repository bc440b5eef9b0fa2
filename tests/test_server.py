"""Tests for the MCP server binding and the startup sequence."""

import asyncio
import json
from typing import Any
from unittest.mock import Mock

import pytest
import requests
from fake_engine import FakeEngineClient, make_context
from mcp import types
from mcp.shared.exceptions import McpError

from uapf_mcp.config import GatewayConfig
from uapf_mcp.engine.client import EngineClient
from uapf_mcp.errors import ConfigError, EngineClientError, StartupError
from uapf_mcp.mcp_gateway.registry import ToolRegistry
from uapf_mcp.mcp_gateway.resources import ResourceRegistry
from uapf_mcp.mcp_gateway.server import bootstrap, create_server


def _server(**context_kwargs: Any) -> Any:
    context = make_context(**context_kwargs)
    return create_server("uapf-mcp", ToolRegistry(context), ResourceRegistry(context))


def _handle(server: Any, request: Any) -> Any:
    handler = server.request_handlers[type(request)]
    return asyncio.run(handler(request)).root


class TestCreateServer:
    def test_lists_tools_with_annotations(self) -> None:
        server = _server(tool_prefix="bank")

        result = _handle(server, types.ListToolsRequest(method="tools/list"))

        tools = {tool.name: tool for tool in result.tools}
        assert "uapf.run_process" in tools
        assert "bank.run_process" in tools
        assert tools["uapf.get_artifact"].title == "Get UAPF Artifact"
        assert tools["uapf.get_artifact"].annotations.readOnlyHint is True
        assert tools["uapf.run_process"].inputSchema["required"] == ["packageId", "processId"]

    def test_call_tool_returns_structured_content(self) -> None:
        server = _server()

        result = _handle(
            server,
            types.CallToolRequest(
                method="tools/call",
                params=types.CallToolRequestParams(name="uapf.list", arguments={"tag": "finance"}),
            ),
        )

        assert result.isError is False
        assert [p["packageId"] for p in result.structuredContent["packages"]] == ["pkg-a", "pkg-b"]
        assert json.loads(result.content[0].text) == result.structuredContent

    def test_call_tool_error_sets_is_error(self) -> None:
        server = _server(mode="package")

        result = _handle(
            server,
            types.CallToolRequest(
                method="tools/call",
                params=types.CallToolRequestParams(
                    name="uapf.validate", arguments={"packageId": "pkg-b"}
                ),
            ),
        )

        assert result.isError is True
        assert result.structuredContent["error"]["code"] == "scope_mismatch"

    def test_lists_resources_and_templates(self) -> None:
        server = _server(mode="package")

        resources = _handle(server, types.ListResourcesRequest(method="resources/list"))
        templates = _handle(
            server, types.ListResourceTemplatesRequest(method="resources/templates/list")
        )

        assert [str(r.uri) for r in resources.resources] == [
            "uapf://manifest/pkg-a",
            "uapf://policies/pkg-a",
        ]
        assert "uapf://bindings/pkg-a{?processId,taskId}" in [
            t.uriTemplate for t in templates.resourceTemplates
        ]

    def test_read_resource_carries_claims_meta(self) -> None:
        server = _server(security_mode="declare")

        result = _handle(
            server,
            types.ReadResourceRequest(
                method="resources/read",
                params=types.ReadResourceRequestParams(uri="uapf://policies/pkg-a"),  # type: ignore[arg-type]
            ),
        )

        dumped = result.model_dump(by_alias=True, exclude_none=True)
        assert dumped["contents"][0]["_meta"] == {"requiredClaims": ["kyc"], "claimsSatisfied": True}
        assert json.loads(dumped["contents"][0]["text"])["packageId"] == "pkg-a"

    def test_read_resource_error_is_protocol_error(self) -> None:
        server = _server()

        with pytest.raises(McpError) as excinfo:
            _handle(
                server,
                types.ReadResourceRequest(
                    method="resources/read",
                    params=types.ReadResourceRequestParams(uri="uapf://manifest/pkg-z"),  # type: ignore[arg-type]
                ),
            )

        assert excinfo.value.error.code == types.INVALID_PARAMS
        assert excinfo.value.error.data == {"code": "unknown_package"}


class TestBootstrap:
    def test_workspace_override_without_pointer_fails_before_network(self) -> None:
        client = FakeEngineClient()

        with pytest.raises(ConfigError):
            asyncio.run(bootstrap(GatewayConfig(mode="workspace"), client))

        assert client.calls == []

    def test_unimplemented_transport_fails_before_network(self) -> None:
        client = FakeEngineClient()

        with pytest.raises(ConfigError):
            asyncio.run(bootstrap(GatewayConfig(transport="sse"), client))

        assert client.calls == []

    def test_http_verifier_without_url_fails_before_network(self) -> None:
        client = FakeEngineClient()

        with pytest.raises(ConfigError):
            asyncio.run(bootstrap(GatewayConfig(claims_verifier="http"), client))

        assert client.calls == []

    def test_engine_503_on_listing_is_engine_unavailable(self) -> None:
        response = requests.Response()
        response.status_code = 503
        response.reason = "Service Unavailable"
        response.url = "http://engine.test/uapf/packages"
        response._content = b""
        session = Mock(spec=requests.Session)
        session.request.return_value = response
        client = EngineClient("http://engine.test", session=session)

        with pytest.raises(EngineClientError) as excinfo:
            asyncio.run(bootstrap(GatewayConfig(), client))

        assert excinfo.value.code == "engine_unavailable"

    def test_zero_packages_is_fatal(self) -> None:
        with pytest.raises(StartupError):
            asyncio.run(bootstrap(GatewayConfig(), FakeEngineClient(packages=[])))

    def test_probe_selects_workspace_scope(self) -> None:
        client = FakeEngineClient(meta={"mode": "workspace"})

        runtime = asyncio.run(bootstrap(GatewayConfig(transport="stdio"), client))

        assert runtime.context.scope.mode == "workspace"
        assert runtime.context.engine_mode == "workspace"
        assert runtime.transport.name == "stdio"
        assert [call[0] for call in client.calls] == ["get_meta", "list_packages"]

    def test_probe_failure_defaults_to_package_scope(self) -> None:
        client = FakeEngineClient(meta=EngineClientError("engine_unavailable", "down", 503))

        runtime = asyncio.run(bootstrap(GatewayConfig(), client))

        assert runtime.context.scope.mode == "package"
        assert runtime.context.scope.scoped_package is not None
        assert runtime.context.scope.scoped_package.package_id == "pkg-a"

    def test_explicit_engine_mode_skips_probe(self) -> None:
        client = FakeEngineClient()

        asyncio.run(bootstrap(GatewayConfig(engine_mode="packages"), client))

        assert [call[0] for call in client.calls] == ["list_packages"]
