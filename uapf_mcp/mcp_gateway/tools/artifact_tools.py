"""Artifact retrieval and validation tools."""

import base64
import json
from typing import Any

from uapf_mcp.constants import ARTIFACT_KINDS, DEFAULT_ARTIFACT_MEDIA_TYPE
from uapf_mcp.engine.types import ArtifactResponse
from uapf_mcp.errors import INVALID_ARGUMENTS, SCOPE_MISMATCH, UNKNOWN_PACKAGE, ToolError
from uapf_mcp.mcp_gateway.context import GatewayContext
from uapf_mcp.mcp_gateway.tools.helpers import (
    as_payload,
    drop_none,
    optional_string,
    require_string,
)
from uapf_mcp.security.claims import require_claims, resolve_required_claims


def decode_manifest(artifact: ArtifactResponse) -> Any:
    """Parse manifest bytes as JSON; unparseable text comes back under ``raw``."""
    text = artifact.text()
    try:
        return json.loads(text)
    except ValueError:
        return {"raw": text}


def encode_artifact(artifact: ArtifactResponse) -> dict[str, str]:
    return {
        "mediaType": artifact.content_type or DEFAULT_ARTIFACT_MEDIA_TYPE,
        "contentBase64": base64.b64encode(artifact.data).decode("ascii"),
    }


class ArtifactTools:
    """get_artifact and validate."""

    def __init__(self, context: GatewayContext) -> None:
        self.context = context

    async def get_artifact(self, arguments: dict[str, Any]) -> dict[str, Any]:
        package_id = require_string(arguments, "packageId")
        kind = require_string(arguments, "kind")
        artifact_id = optional_string(arguments, "id")
        if kind not in ARTIFACT_KINDS:
            raise ToolError(
                INVALID_ARGUMENTS,
                f"Unsupported artifact kind: {kind} (expected one of {', '.join(ARTIFACT_KINDS)})",
            )
        package = self.context.scope.require_package(package_id)

        decision = await require_claims(
            resolve_required_claims(package),
            self.context.security_mode,
            self.context.verifier,
            drop_none(
                {"tool": "get_artifact", "packageId": package_id, "kind": kind, "id": artifact_id}
            ),
        )
        artifact = await self.context.client.get_artifact(package_id, kind, artifact_id)

        if kind == "manifest":
            manifest = decode_manifest(artifact)
            payload = manifest if isinstance(manifest, dict) else {"manifest": manifest}
            return decision.annotate(payload)
        return decision.annotate(encode_artifact(artifact))

    async def validate(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Validate one package, or the whole workspace when no package is given."""
        package_id = optional_string(arguments, "packageId")
        scope = self.context.scope

        if scope.scoped_package is not None:
            expected = scope.scoped_package.package_id
            if package_id is not None and package_id != expected:
                raise ToolError(SCOPE_MISMATCH, f"Package mode is locked to {expected}")
            target = scope.scoped_package
        elif package_id is not None:
            target = scope.get(package_id)
            if target is None:
                raise ToolError(UNKNOWN_PACKAGE, f"Package {package_id} is not available")
        else:
            target = None

        target_id = target.package_id if target is not None else None
        decision = await require_claims(
            resolve_required_claims(target),
            self.context.security_mode,
            self.context.verifier,
            drop_none({"tool": "validate", "packageId": target_id}),
        )
        result = await self.context.client.validate(target_id)
        return decision.annotate(as_payload(result))
