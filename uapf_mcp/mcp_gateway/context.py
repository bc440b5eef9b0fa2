"""Read-only state shared by the tool and resource registries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from uapf_mcp.config import GatewayConfig
from uapf_mcp.mcp_gateway.mode import Scope
from uapf_mcp.security.verifier import ClaimsVerifier

if TYPE_CHECKING:
    from uapf_mcp.engine.client import EngineClient


@dataclass(frozen=True)
class GatewayContext:
    """Assembled once at startup and passed to every handler group."""

    config: GatewayConfig
    client: "EngineClient | Any"
    scope: Scope
    verifier: ClaimsVerifier
    engine_mode: str | None = None

    @property
    def security_mode(self) -> str:
        return self.config.security_mode
