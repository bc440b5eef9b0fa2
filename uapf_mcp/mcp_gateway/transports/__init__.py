"""Transport adapters and selection."""

from uapf_mcp.config import GatewayConfig
from uapf_mcp.errors import ConfigError
from uapf_mcp.mcp_gateway.transports.base import GatewayTransport
from uapf_mcp.mcp_gateway.transports.http import StreamableHttpTransport
from uapf_mcp.mcp_gateway.transports.stdio import StdioTransport
from uapf_mcp.mcp_gateway.transports.websocket import WebSocketServerTransport


def select_transport(config: GatewayConfig) -> GatewayTransport:
    """Build the transport named by ``config.transport``; never falls back."""
    if config.transport == "streamable-http":
        return StreamableHttpTransport(config)
    if config.transport == "websocket":
        return WebSocketServerTransport(config)
    if config.transport == "stdio":
        return StdioTransport()
    if config.transport == "sse":
        raise ConfigError("MCP_TRANSPORT=sse is not implemented; use streamable-http")
    raise ConfigError(f"Unsupported MCP_TRANSPORT: {config.transport}")


__all__ = [
    "GatewayTransport",
    "StdioTransport",
    "StreamableHttpTransport",
    "WebSocketServerTransport",
    "select_transport",
]
