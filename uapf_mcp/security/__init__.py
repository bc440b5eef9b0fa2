"""Claims verification and enforcement."""

from uapf_mcp.security.claims import (
    ClaimsDecision,
    enforce_claims,
    require_claims,
    resolve_required_claims,
)
from uapf_mcp.security.verifier import (
    ClaimsVerifier,
    HttpVerifier,
    NoneVerifier,
    VerificationResult,
    build_verifier,
)

__all__ = [
    "ClaimsDecision",
    "ClaimsVerifier",
    "HttpVerifier",
    "NoneVerifier",
    "VerificationResult",
    "build_verifier",
    "enforce_claims",
    "require_claims",
    "resolve_required_claims",
]
