"""Claims enforcement gate shared by tool and resource handlers."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from uapf_mcp.engine.types import Package, PackageDecision, PackageProcess
from uapf_mcp.errors import CLAIMS_NOT_SATISFIED, ToolError
from uapf_mcp.security.verifier import ClaimsVerifier

_claims_log = logging.getLogger("uapf_mcp.security")

ClaimsOutcome = Literal["allow", "annotate", "reject"]


def resolve_required_claims(
    package: Package | None,
    target: PackageProcess | PackageDecision | None = None,
) -> tuple[str, ...]:
    """Operation-level claims replace package-level claims when present."""
    if target is not None and target.required_claims is not None:
        return target.required_claims
    if package is not None and package.required_claims is not None:
        return package.required_claims
    return ()


@dataclass(frozen=True)
class ClaimsDecision:
    """Result of running the gate for one operation."""

    outcome: ClaimsOutcome
    required_claims: tuple[str, ...] = ()
    satisfied: bool = True
    reason: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome != "reject"

    def annotation(self) -> dict[str, Any]:
        if self.outcome != "annotate":
            return {}
        return {"requiredClaims": list(self.required_claims), "claimsSatisfied": self.satisfied}

    def annotate(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Merge the claims annotation into a successful response payload."""
        annotation = self.annotation()
        if not annotation:
            return payload
        return {**payload, **annotation}


async def enforce_claims(
    required_claims: Sequence[str] | None,
    security_mode: str,
    verifier: ClaimsVerifier,
    context: Mapping[str, Any],
) -> ClaimsDecision:
    """Decide allow / annotate / reject for one operation.

    An empty requirement or ``security_mode == "off"`` never calls the verifier.
    """
    if not required_claims or security_mode == "off":
        return ClaimsDecision(outcome="allow")

    claims = tuple(required_claims)
    result = await verifier.verify(claims, context)
    if not result.satisfied and security_mode == "enforce":
        return ClaimsDecision(
            outcome="reject", required_claims=claims, satisfied=False, reason=result.reason
        )
    return ClaimsDecision(
        outcome="annotate",
        required_claims=claims,
        satisfied=result.satisfied,
        reason=result.reason,
    )


async def require_claims(
    required_claims: Sequence[str] | None,
    security_mode: str,
    verifier: ClaimsVerifier,
    context: Mapping[str, Any],
) -> ClaimsDecision:
    """Run the gate and raise ``claims_not_satisfied`` on rejection."""
    decision = await enforce_claims(required_claims, security_mode, verifier, context)
    if decision.outcome == "reject":
        _claims_log.info(
            "claims_denied claims=%s context=%s reason=%s",
            ",".join(decision.required_claims),
            dict(context),
            decision.reason,
            extra={"required_claims": list(decision.required_claims), "context": dict(context)},
        )
        raise ToolError(
            CLAIMS_NOT_SATISFIED, decision.reason or "Required claims not satisfied"
        )
    if not decision.satisfied:
        _claims_log.info(
            "claims_declared_unsatisfied claims=%s context=%s",
            ",".join(decision.required_claims),
            dict(context),
            extra={"required_claims": list(decision.required_claims), "context": dict(context)},
        )
    return decision
