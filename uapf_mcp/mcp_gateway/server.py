"""
UAPF MCP Gateway server.

Binds the tool and resource registries to an MCP low-level ``Server`` and
runs the fail-fast startup sequence: transport and verifier selection, mode
resolution (with a best-effort engine probe), package discovery, then the
selected transport.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from mcp import types
from mcp.server.lowlevel import Server
from mcp.shared.exceptions import McpError

from uapf_mcp.config import GatewayConfig
from uapf_mcp.engine.client import EngineClient
from uapf_mcp.errors import GatewayError, jsonrpc_code
from uapf_mcp.mcp_gateway.context import GatewayContext
from uapf_mcp.mcp_gateway.mode import Scope, check_mode_override, probe_engine_mode, resolve_mode
from uapf_mcp.mcp_gateway.registry import ToolCallResult, ToolDescriptor, ToolRegistry
from uapf_mcp.mcp_gateway.resources import ResourceDescriptor, ResourceRegistry
from uapf_mcp.mcp_gateway.transports import GatewayTransport, select_transport
from uapf_mcp.security.verifier import build_verifier

_gateway_log = logging.getLogger("uapf_mcp.gateway")


def _make_tool(descriptor: ToolDescriptor) -> types.Tool:
    kwargs: dict[str, Any] = {
        "name": descriptor.name,
        "description": descriptor.description,
        "inputSchema": descriptor.input_schema,
    }
    if descriptor.output_schema is not None:
        kwargs["outputSchema"] = descriptor.output_schema
    if descriptor.annotations is not None:
        title = descriptor.annotations.get("title")
        if isinstance(title, str) and title:
            kwargs["title"] = title
        kwargs["annotations"] = types.ToolAnnotations(**descriptor.annotations)
    return types.Tool(**kwargs)


def _serialize_tool_result(result: ToolCallResult) -> types.CallToolResult:
    json_text = json.dumps(result.payload, indent=2, ensure_ascii=False)
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=json_text)],
        structuredContent=result.payload,
        isError=result.is_error,
    )


def _make_resource(descriptor: ResourceDescriptor) -> types.Resource:
    return types.Resource(
        uri=descriptor.uri,  # type: ignore[arg-type]
        name=descriptor.name,
        description=descriptor.description,
        mimeType=descriptor.mime_type,
    )


def _make_resource_template(descriptor: ResourceDescriptor) -> types.ResourceTemplate:
    return types.ResourceTemplate(
        uriTemplate=descriptor.uri,
        name=descriptor.name,
        description=descriptor.description,
        mimeType=descriptor.mime_type,
    )


def _resource_contents(
    content: dict[str, Any],
) -> types.TextResourceContents | types.BlobResourceContents:
    if "blob" in content:
        return types.BlobResourceContents.model_validate(content)
    return types.TextResourceContents.model_validate(content)


def to_mcp_error(error: GatewayError) -> McpError:
    """Surface a gateway error as a JSON-RPC error carrying the gateway code."""
    return McpError(
        types.ErrorData(
            code=jsonrpc_code(error.code),
            message=error.message,
            data={"code": error.code},
        )
    )


def create_server(name: str, tools: ToolRegistry, resources: ResourceRegistry) -> Server[Any, Any]:
    """Create the MCP server with every tool and resource handler registered."""
    server: Server[Any, Any] = Server(name)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return [_make_tool(descriptor) for descriptor in tools.descriptors()]

    @server.call_tool(validate_input=False)
    async def handle_call_tool(
        name: str, arguments: dict[str, Any] | None
    ) -> types.CallToolResult:
        result = await tools.call(name, arguments)
        return _serialize_tool_result(result)

    @server.list_resources()
    async def handle_list_resources() -> list[types.Resource]:
        return [_make_resource(descriptor) for descriptor in resources.list_resources()]

    @server.list_resource_templates()
    async def handle_list_resource_templates() -> list[types.ResourceTemplate]:
        return [_make_resource_template(descriptor) for descriptor in resources.list_templates()]

    async def handle_read_resource(request: types.ReadResourceRequest) -> types.ServerResult:
        try:
            contents = await resources.read(str(request.params.uri))
        except GatewayError as error:
            raise to_mcp_error(error) from error
        return types.ServerResult(
            types.ReadResourceResult(contents=[_resource_contents(item) for item in contents])
        )

    # Installed directly so resource contents can carry ``_meta``.
    server.request_handlers[types.ReadResourceRequest] = handle_read_resource

    return server


@dataclass
class GatewayRuntime:
    """Everything assembled by :func:`bootstrap`, ready to be served."""

    config: GatewayConfig
    context: GatewayContext
    tools: ToolRegistry
    resources: ResourceRegistry
    server: Server[Any, Any]
    transport: GatewayTransport


async def bootstrap(config: GatewayConfig, client: Any = None) -> GatewayRuntime:
    """Run the startup sequence and build the server.

    Configuration problems fail before any network call. Engine failures
    while listing packages propagate as :class:`EngineClientError`.
    """
    transport = select_transport(config)
    verifier = build_verifier(config.claims_verifier, config.claims_verifier_url)
    check_mode_override(config)

    if client is None:
        client = EngineClient(config.engine_url, timeout=config.engine_timeout_seconds)

    engine_mode = await probe_engine_mode(config, client.get_meta)
    mode = resolve_mode(config, engine_mode)
    packages = await client.list_packages()
    scope = Scope.build(mode, packages)

    context = GatewayContext(
        config=config,
        client=client,
        scope=scope,
        verifier=verifier,
        engine_mode=engine_mode,
    )
    tools = ToolRegistry(context)
    resources = ResourceRegistry(context)
    server = create_server(config.server_name, tools, resources)

    _gateway_log.info(
        "gateway_ready mode=%s packages=%d transport=%s security=%s",
        scope.mode,
        len(scope.packages),
        transport.name,
        config.security_mode,
        extra={
            "mode": scope.mode,
            "packages": [package.package_id for package in scope.packages],
            "transport": transport.name,
            "security_mode": config.security_mode,
        },
    )
    return GatewayRuntime(
        config=config,
        context=context,
        tools=tools,
        resources=resources,
        server=server,
        transport=transport,
    )


async def run_gateway(config: GatewayConfig) -> None:
    """Bootstrap and serve until the transport stops."""
    client = EngineClient(config.engine_url, timeout=config.engine_timeout_seconds)
    try:
        runtime = await bootstrap(config, client)
        await runtime.transport.serve(runtime.server)
    finally:
        client.close()
