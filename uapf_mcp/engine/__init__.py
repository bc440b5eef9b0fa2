"""UAPF engine client and data model."""

from uapf_mcp.engine.client import EngineClient
from uapf_mcp.engine.types import ArtifactResponse, Package, PackageDecision, PackageProcess

__all__ = [
    "EngineClient",
    "ArtifactResponse",
    "Package",
    "PackageProcess",
    "PackageDecision",
]
