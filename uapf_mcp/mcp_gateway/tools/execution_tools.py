"""Execution tools: run processes, evaluate decisions, resolve task resources."""

from typing import Any

from uapf_mcp.mcp_gateway.context import GatewayContext
from uapf_mcp.mcp_gateway.tools.helpers import (
    as_payload,
    drop_none,
    optional_string,
    require_string,
)
from uapf_mcp.security.claims import ClaimsDecision, require_claims, resolve_required_claims


class ExecutionTools:
    """Engine-executing tools, each gated by claims before the engine call."""

    def __init__(self, context: GatewayContext) -> None:
        self.context = context

    async def _gate(self, claims: tuple[str, ...], context: dict[str, Any]) -> ClaimsDecision:
        return await require_claims(
            claims, self.context.security_mode, self.context.verifier, context
        )

    async def run_process(self, arguments: dict[str, Any]) -> dict[str, Any]:
        package_id = require_string(arguments, "packageId")
        process_id = require_string(arguments, "processId")
        package = self.context.scope.require_package(package_id)

        claims = resolve_required_claims(package, package.find_process(process_id))
        decision = await self._gate(
            claims, {"tool": "run_process", "packageId": package_id, "processId": process_id}
        )
        result = await self.context.client.run_process(
            package_id, process_id, arguments.get("input")
        )
        return decision.annotate(as_payload(result))

    async def evaluate_decision(self, arguments: dict[str, Any]) -> dict[str, Any]:
        package_id = require_string(arguments, "packageId")
        decision_id = require_string(arguments, "decisionId")
        package = self.context.scope.require_package(package_id)

        claims = resolve_required_claims(package, package.find_decision(decision_id))
        decision = await self._gate(
            claims,
            {"tool": "evaluate_decision", "packageId": package_id, "decisionId": decision_id},
        )
        result = await self.context.client.evaluate_decision(
            package_id, decision_id, arguments.get("input")
        )
        return decision.annotate(as_payload(result))

    async def resolve_resources(self, arguments: dict[str, Any]) -> dict[str, Any]:
        package_id = require_string(arguments, "packageId")
        process_id = optional_string(arguments, "processId")
        task_id = optional_string(arguments, "taskId")
        package = self.context.scope.require_package(package_id)

        decision = await self._gate(
            resolve_required_claims(package),
            drop_none(
                {
                    "tool": "resolve_resources",
                    "packageId": package_id,
                    "processId": process_id,
                    "taskId": task_id,
                }
            ),
        )
        result = await self.context.client.resolve_resources(package_id, process_id, task_id)
        return decision.annotate(as_payload(result))
