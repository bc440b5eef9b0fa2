"""Gateway configuration, read once at startup from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Literal

from dotenv import load_dotenv

from uapf_mcp.constants import (
    CANONICAL_TOOL_PREFIX,
    DEFAULT_CORS_ORIGIN,
    DEFAULT_ENGINE_TIMEOUT_MS,
    DEFAULT_ENGINE_URL,
    DEFAULT_HOST,
    DEFAULT_PATH,
    DEFAULT_PORT,
    DEFAULT_SERVER_NAME,
)
from uapf_mcp.errors import ConfigError

GatewayMode = Literal["package", "workspace", "auto"]
EngineMode = Literal["packages", "workspace", "auto"]
SecurityMode = Literal["off", "declare", "enforce"]
VerifierKind = Literal["none", "http"]
TransportKind = Literal["streamable-http", "websocket", "stdio", "sse"]

GATEWAY_MODES: tuple[str, ...] = ("package", "workspace", "auto")
ENGINE_MODES: tuple[str, ...] = ("packages", "workspace", "auto")
SECURITY_MODES: tuple[str, ...] = ("off", "declare", "enforce")
VERIFIER_KINDS: tuple[str, ...] = ("none", "http")
TRANSPORT_KINDS: tuple[str, ...] = ("streamable-http", "websocket", "stdio", "sse")

_SECURITY_MODE_ALIASES: dict[str, str] = {
    "claims_declare": "declare",
    "claims_enforce": "enforce",
}

_TRANSPORT_ALIASES: dict[str, str] = {
    "http": "streamable-http",
    "streamable_http": "streamable-http",
    "streamablehttp": "streamable-http",
    "ws": "websocket",
    "socket": "websocket",
    "standard-stream": "stdio",
    "event-stream": "sse",
}


def _choice(raw: str | None, name: str, choices: tuple[str, ...], default: str) -> Any:
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value not in choices:
        raise ConfigError(f"{name} must be one of {', '.join(choices)} (got '{raw}')")
    return value


def _integer(raw: str | None, name: str, default: int) -> int:
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer (got '{raw}')") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive (got {value})")
    return value


def _optional(raw: str | None) -> str | None:
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def normalize_transport(raw: str | None) -> str:
    value = (raw or "").strip().lower()
    value = _TRANSPORT_ALIASES.get(value, value)
    return _choice(value, "MCP_TRANSPORT", TRANSPORT_KINDS, "streamable-http")


def normalize_security_mode(raw: str | None) -> str:
    value = (raw or "").strip().lower()
    value = _SECURITY_MODE_ALIASES.get(value, value)
    return _choice(value, "UAPF_SECURITY_MODE", SECURITY_MODES, "off")


@dataclass(frozen=True)
class GatewayConfig:
    """Immutable gateway settings shared by every component."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    path: str = DEFAULT_PATH
    cors_origin: str = DEFAULT_CORS_ORIGIN
    transport: TransportKind = "streamable-http"
    server_name: str = DEFAULT_SERVER_NAME
    tool_prefix: str = CANONICAL_TOOL_PREFIX
    log_level: str = "INFO"
    mode: GatewayMode = "auto"
    package_path: str | None = None
    workspace_dir: str | None = None
    engine_url: str = DEFAULT_ENGINE_URL
    engine_mode: EngineMode = "auto"
    engine_timeout_ms: int = DEFAULT_ENGINE_TIMEOUT_MS
    security_mode: SecurityMode = "off"
    claims_verifier: VerifierKind = "none"
    claims_verifier_url: str | None = None

    def __post_init__(self) -> None:
        if not self.path.startswith("/"):
            raise ConfigError(f"MCP_PATH must start with '/' (got '{self.path}')")
        object.__setattr__(self, "engine_url", self.engine_url.rstrip("/"))

    @property
    def engine_timeout_seconds(self) -> float:
        return self.engine_timeout_ms / 1000.0

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, *, load_env_file: bool = True
    ) -> "GatewayConfig":
        """Build the configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.
            load_env_file: Load a ``.env`` file first (ignored when ``environ`` is given).
        """
        if environ is None:
            if load_env_file:
                load_dotenv()
            environ = os.environ

        return cls(
            host=environ.get("MCP_HOST") or DEFAULT_HOST,
            port=_integer(environ.get("MCP_PORT"), "MCP_PORT", DEFAULT_PORT),
            path=environ.get("MCP_PATH") or DEFAULT_PATH,
            cors_origin=environ.get("MCP_CORS_ORIGIN") or DEFAULT_CORS_ORIGIN,
            transport=normalize_transport(environ.get("MCP_TRANSPORT")),
            server_name=environ.get("MCP_SERVER_NAME") or DEFAULT_SERVER_NAME,
            tool_prefix=(environ.get("MCP_TOOL_PREFIX") or CANONICAL_TOOL_PREFIX).strip(),
            log_level=(environ.get("MCP_LOG_LEVEL") or "INFO").upper(),
            mode=_choice(environ.get("UAPF_MODE"), "UAPF_MODE", GATEWAY_MODES, "auto"),
            package_path=_optional(environ.get("UAPF_PACKAGE_PATH")),
            workspace_dir=_optional(environ.get("UAPF_WORKSPACE_DIR")),
            engine_url=environ.get("UAPF_ENGINE_URL") or DEFAULT_ENGINE_URL,
            engine_mode=_choice(
                environ.get("UAPF_ENGINE_MODE"), "UAPF_ENGINE_MODE", ENGINE_MODES, "auto"
            ),
            engine_timeout_ms=_integer(
                environ.get("UAPF_ENGINE_TIMEOUT_MS"),
                "UAPF_ENGINE_TIMEOUT_MS",
                DEFAULT_ENGINE_TIMEOUT_MS,
            ),
            security_mode=normalize_security_mode(environ.get("UAPF_SECURITY_MODE")),
            claims_verifier=_choice(
                environ.get("UAPF_CLAIMS_VERIFIER"), "UAPF_CLAIMS_VERIFIER", VERIFIER_KINDS, "none"
            ),
            claims_verifier_url=_optional(environ.get("UAPF_CLAIMS_VERIFIER_URL")),
        )

    def with_overrides(self, **overrides: Any) -> "GatewayConfig":
        """Return a copy with non-None overrides applied (used by the CLI)."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self
