"""MCP Gateway tool modules."""

from uapf_mcp.mcp_gateway.tools.artifact_tools import ArtifactTools
from uapf_mcp.mcp_gateway.tools.catalog_tools import CatalogTools
from uapf_mcp.mcp_gateway.tools.execution_tools import ExecutionTools

__all__ = [
    "ArtifactTools",
    "CatalogTools",
    "ExecutionTools",
]
