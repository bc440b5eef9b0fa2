"""Claims verifiers: answer whether required claims are satisfied in a context."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, cast

import requests

from uapf_mcp.constants import DEFAULT_VERIFIER_TIMEOUT_S
from uapf_mcp.errors import ConfigError

_verifier_log = logging.getLogger("uapf_mcp.security")


@dataclass(frozen=True)
class VerificationResult:
    satisfied: bool
    reason: str | None = None


class ClaimsVerifier(ABC):
    """Policy decision point contract."""

    kind: str = "abstract"

    @abstractmethod
    async def verify(
        self, required_claims: Sequence[str], context: Mapping[str, Any]
    ) -> VerificationResult:
        raise NotImplementedError


class NoneVerifier(ClaimsVerifier):
    """Always satisfied. Used when no external policy engine is configured."""

    kind = "none"

    async def verify(
        self, required_claims: Sequence[str], context: Mapping[str, Any]
    ) -> VerificationResult:
        return VerificationResult(satisfied=True)


class HttpVerifier(ClaimsVerifier):
    """Posts ``{requiredClaims, context}`` to a remote policy decision point.

    Any non-success response or transport failure counts as not satisfied.
    """

    kind = "http"

    def __init__(self, url: str, timeout: float = DEFAULT_VERIFIER_TIMEOUT_S) -> None:
        self.url = url
        self.timeout = timeout

    async def verify(
        self, required_claims: Sequence[str], context: Mapping[str, Any]
    ) -> VerificationResult:
        payload = {"requiredClaims": list(required_claims), "context": dict(context)}
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._post, payload), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            _verifier_log.warning(
                "claims_verifier_timeout url=%s timeout=%s",
                self.url,
                self.timeout,
                extra={"url": self.url, "timeout": self.timeout},
            )
            return VerificationResult(
                satisfied=False, reason=f"Claims verifier did not respond within {self.timeout:g}s"
            )

    def _post(self, payload: dict[str, Any]) -> VerificationResult:
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as error:
            _verifier_log.warning(
                "claims_verifier_unreachable url=%s error=%s",
                self.url,
                str(error),
                extra={"url": self.url, "error": str(error)},
            )
            return VerificationResult(satisfied=False, reason=f"Claims verifier unreachable: {error}")

        if not response.ok:
            reason = response.text or response.reason or f"HTTP {response.status_code}"
            return VerificationResult(satisfied=False, reason=reason)

        try:
            data = response.json()
        except ValueError:
            return VerificationResult(
                satisfied=False, reason="Claims verifier returned invalid JSON"
            )
        if not isinstance(data, dict):
            return VerificationResult(
                satisfied=False, reason="Claims verifier returned an unexpected payload"
            )

        body = cast(dict[str, Any], data)
        satisfied = body.get("ok", body.get("satisfied"))
        reason = body.get("reason")
        return VerificationResult(
            satisfied=satisfied is True,
            reason=reason if isinstance(reason, str) else None,
        )


def build_verifier(kind: str, url: str | None = None) -> ClaimsVerifier:
    """Create the verifier selected by configuration."""
    if kind == "http":
        if not url:
            raise ConfigError("UAPF_CLAIMS_VERIFIER_URL is required when UAPF_CLAIMS_VERIFIER=http")
        return HttpVerifier(url)
    if kind == "none":
        return NoneVerifier()
    raise ConfigError(f"Unsupported claims verifier: {kind}")
