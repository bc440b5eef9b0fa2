"""Resource registry: ``uapf://`` URIs for manifests, artifacts, bindings and policies."""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, unquote, urlsplit

from uapf_mcp.constants import DEFAULT_ARTIFACT_MEDIA_TYPE, JSON_MEDIA_TYPE, RESOURCE_SCHEME
from uapf_mcp.engine.types import ArtifactResponse, Package
from uapf_mcp.errors import INTERNAL, UNKNOWN_RESOURCE, GatewayError, ToolError
from uapf_mcp.mcp_gateway.context import GatewayContext
from uapf_mcp.mcp_gateway.tools.helpers import drop_none
from uapf_mcp.security.claims import ClaimsDecision, require_claims, resolve_required_claims

_resource_log = logging.getLogger("uapf_mcp.gateway")


@dataclass(frozen=True)
class ResourceKind:
    kind: str
    label: str
    mime_type: str
    query: str = ""

    @property
    def templated(self) -> bool:
        return bool(self.query)


RESOURCE_KINDS: tuple[ResourceKind, ...] = (
    ResourceKind("manifest", "UAPF manifest", JSON_MEDIA_TYPE),
    ResourceKind("bpmn", "BPMN diagram", DEFAULT_ARTIFACT_MEDIA_TYPE, "{?id}"),
    ResourceKind("dmn", "DMN model", DEFAULT_ARTIFACT_MEDIA_TYPE, "{?id}"),
    ResourceKind("cmmn", "CMMN model", DEFAULT_ARTIFACT_MEDIA_TYPE, "{?id}"),
    ResourceKind("docs", "Documentation", DEFAULT_ARTIFACT_MEDIA_TYPE, "{?id}"),
    ResourceKind("tests", "Test assets", DEFAULT_ARTIFACT_MEDIA_TYPE, "{?id}"),
    ResourceKind("bindings", "Task bindings", JSON_MEDIA_TYPE, "{?processId,taskId}"),
    ResourceKind("policies", "Policies", JSON_MEDIA_TYPE),
)

_KINDS_BY_NAME: dict[str, ResourceKind] = {kind.kind: kind for kind in RESOURCE_KINDS}


@dataclass(frozen=True)
class ResourceDescriptor:
    """A concrete resource (``uri``) or a URI template (``templated``)."""

    uri: str
    name: str
    description: str
    mime_type: str
    templated: bool = False


@dataclass(frozen=True)
class ResourceAddress:
    kind: str
    package_id: str
    params: dict[str, str]

    def param(self, key: str) -> str | None:
        return self.params.get(key) or None


def resource_uri(kind: str, package_id: str) -> str:
    return f"{RESOURCE_SCHEME}://{kind}/{package_id}"


def parse_resource_uri(uri: str) -> ResourceAddress:
    """Split ``uapf://<kind>/<packageId>?query`` into its parts."""
    parts = urlsplit(uri)
    if parts.scheme != RESOURCE_SCHEME or not parts.netloc:
        raise ToolError(UNKNOWN_RESOURCE, f"Unknown resource: {uri}")
    package_id = unquote(parts.path.lstrip("/"))
    if not package_id:
        raise ToolError(UNKNOWN_RESOURCE, f"Resource URI is missing a package id: {uri}")
    params = {key: values[0] for key, values in parse_qs(parts.query).items() if values}
    return ResourceAddress(kind=parts.netloc, package_id=package_id, params=params)


def _is_json(content_type: str | None) -> bool:
    return content_type is not None and "json" in content_type.lower()


def _pretty_manifest(artifact: ArtifactResponse) -> str:
    text = artifact.text()
    try:
        return json.dumps(json.loads(text), indent=2)
    except ValueError:
        return text


class ResourceRegistry:
    """Per-package resources, claims-gated from the containing package."""

    def __init__(self, context: GatewayContext) -> None:
        self.context = context

    def _describe(self, kind: ResourceKind, package: Package) -> ResourceDescriptor:
        return ResourceDescriptor(
            uri=resource_uri(kind.kind, package.package_id) + kind.query,
            name=f"uapf-{kind.kind}-{package.package_id}",
            description=f"{kind.label} for package {package.package_id}",
            mime_type=kind.mime_type,
            templated=kind.templated,
        )

    def list_resources(self) -> list[ResourceDescriptor]:
        """Directly addressable resources. Templated kinds are never enumerated."""
        return [
            self._describe(kind, package)
            for package in self.context.scope.packages
            for kind in RESOURCE_KINDS
            if not kind.templated
        ]

    def list_templates(self) -> list[ResourceDescriptor]:
        return [
            self._describe(kind, package)
            for package in self.context.scope.packages
            for kind in RESOURCE_KINDS
            if kind.templated
        ]

    async def read(self, uri: str) -> list[dict[str, Any]]:
        """Read one resource and return its contents list.

        Raises:
            GatewayError: for every failure, already translated to a gateway code.
        """
        try:
            return await self._read(uri)
        except GatewayError:
            raise
        except Exception as error:
            _resource_log.exception(
                "resource_error uri=%s error=%s",
                uri,
                str(error),
                extra={"uri": uri, "error": str(error), "error_type": type(error).__name__},
            )
            raise ToolError(INTERNAL, str(error) or "Unknown error") from error

    async def _read(self, uri: str) -> list[dict[str, Any]]:
        address = parse_resource_uri(uri)
        kind = _KINDS_BY_NAME.get(address.kind)
        if kind is None:
            raise ToolError(UNKNOWN_RESOURCE, f"Unknown resource kind: {address.kind}")
        package = self.context.scope.require_package(address.package_id)

        _resource_log.info(
            "resource_read kind=%s package_id=%s",
            kind.kind,
            package.package_id,
            extra={"kind": kind.kind, "package_id": package.package_id},
        )
        decision = await require_claims(
            resolve_required_claims(package),
            self.context.security_mode,
            self.context.verifier,
            drop_none(
                {
                    "resource": uri,
                    "packageId": package.package_id,
                    "kind": kind.kind,
                    "id": address.param("id"),
                    "processId": address.param("processId"),
                    "taskId": address.param("taskId"),
                }
            ),
        )

        client = self.context.client
        if kind.kind == "bindings":
            result = await client.resolve_resources(
                package.package_id, address.param("processId"), address.param("taskId")
            )
            content = self._json_content(uri, result)
        elif kind.kind == "policies":
            result = await client.validate(package.package_id)
            content = self._json_content(uri, result)
        elif kind.kind == "manifest":
            artifact = await client.get_artifact(package.package_id, "manifest")
            content = {"uri": uri, "mimeType": JSON_MEDIA_TYPE, "text": _pretty_manifest(artifact)}
        else:
            artifact = await client.get_artifact(
                package.package_id, kind.kind, address.param("id")
            )
            content = self._artifact_content(uri, artifact)
        return [self._with_meta(content, decision)]

    @staticmethod
    def _json_content(uri: str, result: Any) -> dict[str, Any]:
        return {"uri": uri, "mimeType": JSON_MEDIA_TYPE, "text": json.dumps(result, indent=2)}

    @staticmethod
    def _artifact_content(uri: str, artifact: ArtifactResponse) -> dict[str, Any]:
        content_type = artifact.content_type
        if _is_json(content_type):
            return {"uri": uri, "mimeType": content_type, "text": artifact.text()}
        return {
            "uri": uri,
            "mimeType": content_type or DEFAULT_ARTIFACT_MEDIA_TYPE,
            "blob": base64.b64encode(artifact.data).decode("ascii"),
        }

    @staticmethod
    def _with_meta(content: dict[str, Any], decision: ClaimsDecision) -> dict[str, Any]:
        annotation = decision.annotation()
        if annotation:
            content["_meta"] = annotation
        return content
