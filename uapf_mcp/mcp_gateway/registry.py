"""Tool registry: canonical tool specs, aliasing and uniform failure wrapping."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from uapf_mcp.constants import ARTIFACT_KINDS, CANONICAL_TOOL_PREFIX
from uapf_mcp.errors import INTERNAL, UNKNOWN_TOOL, EngineClientError, ToolError
from uapf_mcp.mcp_gateway.context import GatewayContext
from uapf_mcp.mcp_gateway.tools import ArtifactTools, CatalogTools, ExecutionTools
from uapf_mcp.mcp_gateway.tools.helpers import error_payload

_gateway_log = logging.getLogger("uapf_mcp.gateway")

ToolHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]

_OBJECT_OUTPUT_SCHEMA: dict[str, Any] = {"type": "object", "additionalProperties": True}

_LIST_OUTPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "packages": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "packageId": {"type": "string"},
                    "version": {"type": "string"},
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                    "tags": {"type": "array", "items": {"type": "string"}},
                    "domain": {"type": "string"},
                },
                "required": ["packageId"],
            },
        }
    },
    "required": ["packages"],
}

_ARTIFACT_OUTPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "mediaType": {"type": "string"},
        "contentBase64": {"type": "string"},
    },
    "additionalProperties": True,
}


def _annotations(title: str, *, read_only: bool, idempotent: bool) -> dict[str, Any]:
    return {
        "title": title,
        "readOnlyHint": read_only,
        "destructiveHint": False,
        "idempotentHint": idempotent,
        "openWorldHint": True,
    }


TOOL_SPECS: list[dict[str, Any]] = [
    {
        "name": "uapf.describe",
        "description": "Describe the UAPF MCP server: scope, engine, security mode and tool aliases.",
        "input_schema": {"type": "object", "properties": {}},
        "output_schema": _OBJECT_OUTPUT_SCHEMA,
        "annotations": _annotations("Describe UAPF Gateway", read_only=True, idempotent=True),
    },
    {
        "name": "uapf.list",
        "description": "List available UAPF packages. Filters are combined: every supplied filter must match.",
        "input_schema": {
            "type": "object",
            "properties": {
                "tag": {"type": "string", "description": "Capability tag the package must carry"},
                "domain": {"type": "string", "description": "Exact package domain"},
                "q": {
                    "type": "string",
                    "description": "Case-insensitive text matched against name and description",
                },
            },
        },
        "output_schema": _LIST_OUTPUT_SCHEMA,
        "annotations": _annotations("List UAPF Packages", read_only=True, idempotent=True),
    },
    {
        "name": "uapf.run_process",
        "description": "Execute a UAPF process (BPMN) once through the engine.",
        "input_schema": {
            "type": "object",
            "properties": {
                "packageId": {"type": "string"},
                "processId": {
                    "type": "string",
                    "description": "Process id or BPMN process id from the package manifest",
                },
                "input": {"description": "Structured JSON input expected by the process"},
            },
            "required": ["packageId", "processId"],
        },
        "output_schema": _OBJECT_OUTPUT_SCHEMA,
        "annotations": _annotations("Run UAPF Process", read_only=False, idempotent=False),
    },
    {
        "name": "uapf.evaluate_decision",
        "description": "Evaluate a UAPF decision (DMN) through the engine.",
        "input_schema": {
            "type": "object",
            "properties": {
                "packageId": {"type": "string"},
                "decisionId": {
                    "type": "string",
                    "description": "Decision id or DMN decision id from the package manifest",
                },
                "input": {"description": "Structured JSON input expected by the decision"},
            },
            "required": ["packageId", "decisionId"],
        },
        "output_schema": _OBJECT_OUTPUT_SCHEMA,
        "annotations": _annotations("Evaluate UAPF Decision", read_only=True, idempotent=True),
    },
    {
        "name": "uapf.resolve_resources",
        "description": "Resolve the resource bindings of a package, optionally for one process or task.",
        "input_schema": {
            "type": "object",
            "properties": {
                "packageId": {"type": "string"},
                "processId": {"type": "string"},
                "taskId": {"type": "string"},
            },
            "required": ["packageId"],
        },
        "output_schema": _OBJECT_OUTPUT_SCHEMA,
        "annotations": _annotations("Resolve UAPF Resources", read_only=True, idempotent=True),
    },
    {
        "name": "uapf.get_artifact",
        "description": "Get a UAPF artifact (manifest, BPMN, DMN, CMMN, docs, tests). Non-manifest artifacts are base64 encoded.",
        "input_schema": {
            "type": "object",
            "properties": {
                "packageId": {"type": "string"},
                "kind": {"type": "string", "enum": list(ARTIFACT_KINDS)},
                "id": {"type": "string", "description": "Artifact id when a package has several"},
            },
            "required": ["packageId", "kind"],
        },
        "output_schema": _ARTIFACT_OUTPUT_SCHEMA,
        "annotations": _annotations("Get UAPF Artifact", read_only=True, idempotent=True),
    },
    {
        "name": "uapf.validate",
        "description": "Validate a UAPF package, or the whole workspace when packageId is omitted.",
        "input_schema": {
            "type": "object",
            "properties": {"packageId": {"type": "string"}},
        },
        "output_schema": _OBJECT_OUTPUT_SCHEMA,
        "annotations": _annotations("Validate UAPF Package", read_only=True, idempotent=True),
    },
]


def tool_names(canonical_name: str, prefix: str) -> list[str]:
    """Every registered name for a canonical tool: itself plus the prefixed alias."""
    names = [canonical_name]
    if prefix and prefix != CANONICAL_TOOL_PREFIX:
        base = canonical_name.split(".", 1)[1]
        alias = f"{prefix}.{base}"
        if alias not in names:
            names.append(alias)
    return names


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    canonical_name: str
    description: str
    input_schema: dict[str, Any]
    output_schema: dict[str, Any] | None
    annotations: dict[str, Any] | None
    handler: ToolHandler


@dataclass(frozen=True)
class ToolCallResult:
    payload: dict[str, Any]
    is_error: bool = False


class ToolRegistry:
    """Canonical tools and their aliases bound to one shared implementation each."""

    def __init__(self, context: GatewayContext) -> None:
        self.context = context
        self.prefix = context.config.tool_prefix
        self.catalog_tools = CatalogTools(context, self.names_for)
        self.execution_tools = ExecutionTools(context)
        self.artifact_tools = ArtifactTools(context)
        self._descriptors = self._build_descriptors()

    def names_for(self, canonical_name: str) -> list[str]:
        return tool_names(canonical_name, self.prefix)

    def _handler_map(self) -> dict[str, ToolHandler]:
        return {
            "uapf.describe": self.catalog_tools.describe,
            "uapf.list": self.catalog_tools.list_packages,
            "uapf.run_process": self.execution_tools.run_process,
            "uapf.evaluate_decision": self.execution_tools.evaluate_decision,
            "uapf.resolve_resources": self.execution_tools.resolve_resources,
            "uapf.get_artifact": self.artifact_tools.get_artifact,
            "uapf.validate": self.artifact_tools.validate,
        }

    def _build_descriptors(self) -> dict[str, ToolDescriptor]:
        handlers = self._handler_map()
        descriptors: dict[str, ToolDescriptor] = {}
        for spec in TOOL_SPECS:
            canonical_name = str(spec["name"])
            for name in self.names_for(canonical_name):
                descriptors[name] = ToolDescriptor(
                    name=name,
                    canonical_name=canonical_name,
                    description=str(spec["description"]),
                    input_schema=spec["input_schema"],
                    output_schema=spec.get("output_schema"),
                    annotations=spec.get("annotations"),
                    handler=handlers[canonical_name],
                )
        return descriptors

    def descriptors(self) -> list[ToolDescriptor]:
        return list(self._descriptors.values())

    def get(self, name: str) -> ToolDescriptor | None:
        return self._descriptors.get(name)

    async def call(self, name: str, arguments: dict[str, Any] | None) -> ToolCallResult:
        """Invoke a tool by canonical name or alias. Never raises."""
        args = arguments or {}
        descriptor = self._descriptors.get(name)
        if descriptor is None:
            return ToolCallResult(error_payload(UNKNOWN_TOOL, f"Unknown tool: {name}"), True)

        _gateway_log.info(
            "tool_call tool=%s package_id=%s",
            name,
            args.get("packageId") or "(none)",
            extra={"tool": name, "package_id": args.get("packageId")},
        )
        try:
            payload = await descriptor.handler(args)
        except Exception as error:
            return self._handle_tool_exception(name, error)
        return ToolCallResult(payload)

    @staticmethod
    def _handle_tool_exception(name: str, error: Exception) -> ToolCallResult:
        if isinstance(error, ToolError):
            return ToolCallResult(error.to_payload(), True)

        if isinstance(error, EngineClientError):
            _gateway_log.warning(
                "tool_engine_error tool=%s code=%s status=%s error=%s",
                name,
                error.code,
                error.status,
                error.message,
                extra={"tool": name, "code": error.code, "status": error.status},
            )
            return ToolCallResult(error_payload(error.code, error.message), True)

        _gateway_log.exception(
            "tool_error tool=%s error=%s",
            name,
            str(error),
            extra={"tool": name, "error": str(error), "error_type": type(error).__name__},
        )
        return ToolCallResult(error_payload(INTERNAL, str(error) or "Unknown error"), True)
