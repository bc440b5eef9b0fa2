"""MCP gateway over a UAPF engine."""

from uapf_mcp.mcp_gateway.server import GatewayRuntime, bootstrap, create_server, run_gateway

__all__ = ["GatewayRuntime", "bootstrap", "create_server", "run_gateway"]
