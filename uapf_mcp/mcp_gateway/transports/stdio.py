"""Standard-stream transport for embedding inside a parent process."""

from __future__ import annotations

import logging
from typing import Any

from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from uapf_mcp.mcp_gateway.transports.base import GatewayTransport

_transport_log = logging.getLogger("uapf_mcp.transport")


class StdioTransport(GatewayTransport):
    name = "stdio"

    async def serve(self, server: Server[Any, Any]) -> None:
        _transport_log.info("transport_started transport=stdio", extra={"transport": "stdio"})
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
