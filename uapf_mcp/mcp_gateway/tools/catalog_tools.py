"""Catalog tools: describe the gateway and list visible packages."""

from collections.abc import Callable
from typing import Any

from uapf_mcp.constants import ARTIFACT_KINDS, CANONICAL_TOOLS
from uapf_mcp.engine.types import Package
from uapf_mcp.mcp_gateway.context import GatewayContext
from uapf_mcp.mcp_gateway.tools.helpers import optional_string


def _matches_query(package: Package, query: str) -> bool:
    needle = query.lower()
    return needle in (package.name or "").lower() or needle in (package.description or "").lower()


class CatalogTools:
    """Static gateway metadata and package discovery."""

    def __init__(
        self,
        context: GatewayContext,
        alias_names: Callable[[str], list[str]],
    ) -> None:
        """Initialize catalog tools.

        Args:
            context: Shared gateway context
            alias_names: Returns every registered name for a canonical tool
        """
        self.context = context
        self.alias_names = alias_names

    async def describe(self, arguments: dict[str, Any]) -> dict[str, Any]:
        config = self.context.config
        scope = self.context.scope

        alias_map = {
            name: [alias for alias in self.alias_names(name) if alias != name]
            for name in CANONICAL_TOOLS
        }
        aliases: list[str] = []
        for name in CANONICAL_TOOLS:
            for alias in self.alias_names(name):
                if alias not in aliases:
                    aliases.append(alias)

        payload: dict[str, Any] = {
            "name": config.server_name,
            "mode": scope.mode,
            "engine": {
                "url": config.engine_url,
                "mode": self.context.engine_mode or "packages",
            },
            "security": {
                "mode": config.security_mode,
                "verifier": self.context.verifier.kind,
            },
            "capabilities": {
                "runProcess": True,
                "evaluateDecision": True,
                "validate": True,
                "resolveResources": True,
                "artifactKinds": list(ARTIFACT_KINDS),
            },
            "tooling": {
                "canonicalTools": list(CANONICAL_TOOLS),
                "aliases": [{"name": alias} for alias in aliases],
                "aliasMap": alias_map,
            },
        }
        if scope.scoped_package is not None:
            payload["packageId"] = scope.scoped_package.package_id
        return payload

    async def list_packages(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Filter visible packages; all supplied filters must match."""
        tag = optional_string(arguments, "tag")
        domain = optional_string(arguments, "domain")
        query = optional_string(arguments, "q")

        scope = self.context.scope
        candidates = (
            [scope.scoped_package] if scope.scoped_package is not None else list(scope.packages)
        )

        selected = [
            package
            for package in candidates
            if (tag is None or tag in package.tags)
            and (domain is None or package.domain == domain)
            and (query is None or _matches_query(package, query))
        ]
        return {"packages": [package.to_dict() for package in selected]}
