"""Error taxonomy for the UAPF MCP gateway."""

from __future__ import annotations

from typing import Any

from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, INVALID_REQUEST

SCOPE_MISMATCH = "scope_mismatch"
UNKNOWN_PACKAGE = "unknown_package"
CLAIMS_NOT_SATISFIED = "claims_not_satisfied"
ENGINE_UNAVAILABLE = "engine_unavailable"
ENGINE_REQUEST_FAILED = "engine_request_failed"
INTERNAL = "internal_error"
INVALID_ARGUMENTS = "invalid_arguments"
UNKNOWN_TOOL = "unknown_tool"
UNKNOWN_RESOURCE = "unknown_resource"
CONFIG_ERROR = "config_error"
NO_PACKAGES = "no_packages"

# JSON-RPC codes used when a gateway error surfaces as a protocol error.
_JSONRPC_CODES: dict[str, int] = {
    SCOPE_MISMATCH: INVALID_PARAMS,
    UNKNOWN_PACKAGE: INVALID_PARAMS,
    INVALID_ARGUMENTS: INVALID_PARAMS,
    UNKNOWN_RESOURCE: INVALID_PARAMS,
    UNKNOWN_TOOL: INVALID_PARAMS,
    CLAIMS_NOT_SATISFIED: INVALID_REQUEST,
}


def jsonrpc_code(code: str) -> int:
    """Map a gateway error code to a JSON-RPC error code."""
    return _JSONRPC_CODES.get(code, INTERNAL_ERROR)


class GatewayError(Exception):
    """Base error carrying a machine-readable code and optional HTTP status."""

    def __init__(self, code: str, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status

    def to_payload(self) -> dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message}}


class EngineClientError(GatewayError):
    """Raised when a call to the UAPF engine fails."""


class ToolError(GatewayError):
    """Structured protocol error raised by tool and resource handlers."""


class ConfigError(GatewayError):
    """Invalid or incomplete gateway configuration. Fatal at startup."""

    def __init__(self, message: str) -> None:
        super().__init__(CONFIG_ERROR, message)


class StartupError(GatewayError):
    """Startup could not complete (for example no packages visible)."""
