"""Transport contract shared by every binding."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from mcp.server.lowlevel import Server


class GatewayTransport(ABC):
    """Carries one MCP server session over a concrete channel."""

    name: str = "abstract"

    @abstractmethod
    async def serve(self, server: Server[Any, Any]) -> None:
        """Serve ``server`` until the channel shuts down."""
        raise NotImplementedError
