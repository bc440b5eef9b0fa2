"""Resolve whether the gateway runs scoped to one package or a whole workspace."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from uapf_mcp.config import GatewayConfig
from uapf_mcp.engine.types import Package
from uapf_mcp.errors import (
    NO_PACKAGES,
    SCOPE_MISMATCH,
    UNKNOWN_PACKAGE,
    ConfigError,
    StartupError,
    ToolError,
)

_mode_log = logging.getLogger("uapf_mcp.gateway")

ScopeMode = Literal["package", "workspace"]

MetaProbe = Callable[[], Awaitable[dict[str, Any]]]


def check_mode_override(config: GatewayConfig) -> None:
    """Validate an explicit mode against its companion pointer."""
    if config.mode == "package" and not config.package_path:
        raise ConfigError("UAPF_MODE=package requires UAPF_PACKAGE_PATH")
    if config.mode == "workspace" and not config.workspace_dir:
        raise ConfigError("UAPF_MODE=workspace requires UAPF_WORKSPACE_DIR")


async def probe_engine_mode(config: GatewayConfig, probe: MetaProbe) -> str | None:
    """Return the engine's mode (``packages`` or ``workspace``), best effort.

    An explicit ``UAPF_ENGINE_MODE`` skips the network call. Probe failures
    are logged and yield ``None``.
    """
    if config.engine_mode != "auto":
        return config.engine_mode
    try:
        meta = await probe()
    except Exception as error:
        _mode_log.warning(
            "engine_probe_failed error=%s",
            str(error),
            extra={"error": str(error)},
        )
        return None
    mode = meta.get("mode")
    if mode in ("packages", "workspace"):
        return str(mode)
    return None


def resolve_mode(config: GatewayConfig, engine_mode: str | None) -> ScopeMode:
    """Pick ``package`` or ``workspace``.

    Priority: explicit override, workspace pointer, package pointer, engine
    mode, then ``package``.
    """
    check_mode_override(config)
    if config.mode in ("package", "workspace"):
        return config.mode  # type: ignore[return-value]
    if config.workspace_dir:
        return "workspace"
    if config.package_path:
        return "package"
    if engine_mode == "workspace":
        return "workspace"
    if engine_mode == "packages":
        return "package"
    return "package"


@dataclass(frozen=True)
class Scope:
    """The resolved scope and the packages visible within it."""

    mode: ScopeMode
    packages: tuple[Package, ...]
    scoped_package: Package | None = None

    @classmethod
    def build(cls, mode: ScopeMode, packages: Sequence[Package]) -> "Scope":
        if not packages:
            raise StartupError(NO_PACKAGES, "No UAPF packages are visible from the engine")
        if mode == "package":
            scoped = packages[0]
            if len(packages) > 1:
                _mode_log.warning(
                    "package_scope_multiple_packages scoped=%s visible=%d",
                    scoped.package_id,
                    len(packages),
                    extra={"package_id": scoped.package_id, "visible": len(packages)},
                )
            return cls(mode=mode, packages=(scoped,), scoped_package=scoped)
        return cls(mode=mode, packages=tuple(packages))

    @property
    def is_package(self) -> bool:
        return self.mode == "package"

    def get(self, package_id: str) -> Package | None:
        return next((p for p in self.packages if p.package_id == package_id), None)

    def require_package(self, package_id: str) -> Package:
        """Return the visible package targeted by an operation.

        Package scope rejects any other id with ``scope_mismatch``; an id not
        in the visible set is ``unknown_package``.
        """
        if self.scoped_package is not None and package_id != self.scoped_package.package_id:
            raise ToolError(
                SCOPE_MISMATCH,
                f"Package mode is locked to {self.scoped_package.package_id}",
            )
        package = self.get(package_id)
        if package is None:
            raise ToolError(UNKNOWN_PACKAGE, f"Package {package_id} is not available")
        return package
