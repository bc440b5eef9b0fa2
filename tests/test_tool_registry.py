"""Tests for the MCP gateway tool registry and its handlers."""

import asyncio
import base64
from typing import Any

import pytest
from fake_engine import FakeEngineClient, SpyVerifier, make_context

from uapf_mcp.engine.types import ArtifactResponse
from uapf_mcp.errors import EngineClientError
from uapf_mcp.mcp_gateway.registry import TOOL_SPECS, ToolCallResult, ToolRegistry, tool_names


def _call(registry: ToolRegistry, name: str, arguments: dict[str, Any] | None = None) -> ToolCallResult:
    return asyncio.run(registry.call(name, arguments or {}))


class TestToolNames:
    def test_default_prefix_has_no_aliases(self) -> None:
        assert tool_names("uapf.run_process", "uapf") == ["uapf.run_process"]

    def test_custom_prefix_adds_alias(self) -> None:
        assert tool_names("uapf.run_process", "bank") == ["uapf.run_process", "bank.run_process"]

    def test_empty_prefix_has_no_aliases(self) -> None:
        assert tool_names("uapf.list", "") == ["uapf.list"]

    def test_registry_registers_aliases_for_every_tool(self) -> None:
        registry = ToolRegistry(make_context(tool_prefix="bank"))

        names = [descriptor.name for descriptor in registry.descriptors()]

        assert len(names) == 2 * len(TOOL_SPECS)
        assert "bank.describe" in names
        assert "uapf.validate" in names
        assert registry.get("bank.validate").canonical_name == "uapf.validate"  # type: ignore[union-attr]


class TestDescribeTool:
    def test_workspace_describe(self) -> None:
        registry = ToolRegistry(make_context(tool_prefix="bank", security_mode="declare"))

        payload = _call(registry, "uapf.describe").payload

        assert payload["name"] == "uapf-mcp"
        assert payload["mode"] == "workspace"
        assert "packageId" not in payload
        assert payload["engine"] == {"url": "http://localhost:3001", "mode": "workspace"}
        assert payload["security"] == {"mode": "declare", "verifier": "none"}
        assert payload["capabilities"]["artifactKinds"] == [
            "manifest",
            "bpmn",
            "dmn",
            "cmmn",
            "docs",
            "tests",
        ]
        assert payload["tooling"]["aliasMap"]["uapf.list"] == ["bank.list"]
        assert {"name": "bank.list"} in payload["tooling"]["aliases"]

    def test_package_describe_reports_scoped_package(self) -> None:
        registry = ToolRegistry(make_context(mode="package", engine_mode=None))

        payload = _call(registry, "uapf.describe").payload

        assert payload["mode"] == "package"
        assert payload["packageId"] == "pkg-a"
        assert payload["engine"]["mode"] == "packages"
        assert payload["tooling"]["aliasMap"]["uapf.describe"] == []


class TestListTool:
    def test_lists_all_visible_packages(self) -> None:
        registry = ToolRegistry(make_context())

        payload = _call(registry, "uapf.list").payload

        assert [p["packageId"] for p in payload["packages"]] == ["pkg-a", "pkg-b"]

    def test_filters_are_conjunctive(self) -> None:
        registry = ToolRegistry(make_context())

        payload = _call(registry, "uapf.list", {"tag": "finance", "domain": "insurance"}).payload

        assert [p["packageId"] for p in payload["packages"]] == ["pkg-b"]

    def test_query_matches_name_or_description_case_insensitively(self) -> None:
        registry = ToolRegistry(make_context())

        by_name = _call(registry, "uapf.list", {"q": "CLAIMS"}).payload
        by_description = _call(registry, "uapf.list", {"q": "kyc checks"}).payload

        assert [p["packageId"] for p in by_name["packages"]] == ["pkg-b"]
        assert [p["packageId"] for p in by_description["packages"]] == ["pkg-a"]

    def test_package_scope_filters_the_scoped_package_only(self) -> None:
        registry = ToolRegistry(make_context(mode="package"))

        matching = _call(registry, "uapf.list", {"tag": "finance"}).payload
        excluded = _call(registry, "uapf.list", {"domain": "insurance"}).payload

        assert [p["packageId"] for p in matching["packages"]] == ["pkg-a"]
        assert excluded["packages"] == []


class TestExecutionTools:
    def test_run_process_forwards_input(self) -> None:
        client = FakeEngineClient()
        registry = ToolRegistry(make_context(client=client))

        result = _call(
            registry,
            "uapf.run_process",
            {"packageId": "pkg-b", "processId": "triage", "input": {"claim": 7}},
        )

        assert result.is_error is False
        assert result.payload == {"status": "completed", "outputs": {"claim": 7}}
        assert client.engine_calls() == [("run_process", "pkg-b", "triage", {"claim": 7})]

    def test_missing_argument_is_invalid(self) -> None:
        client = FakeEngineClient()
        registry = ToolRegistry(make_context(client=client))

        result = _call(registry, "uapf.evaluate_decision", {"packageId": "pkg-a"})

        assert result.is_error is True
        assert result.payload["error"]["code"] == "invalid_arguments"
        assert client.engine_calls() == []

    def test_package_scope_mismatch_never_calls_engine(self) -> None:
        client = FakeEngineClient()
        registry = ToolRegistry(make_context(mode="package", client=client))

        for name, arguments in [
            ("uapf.run_process", {"packageId": "pkg-b", "processId": "triage"}),
            ("uapf.evaluate_decision", {"packageId": "pkg-b", "decisionId": "x"}),
            ("uapf.resolve_resources", {"packageId": "pkg-b"}),
            ("uapf.get_artifact", {"packageId": "pkg-b", "kind": "bpmn"}),
            ("uapf.validate", {"packageId": "pkg-b"}),
        ]:
            result = _call(registry, name, arguments)
            assert result.is_error is True
            assert result.payload == {
                "error": {"code": "scope_mismatch", "message": "Package mode is locked to pkg-a"}
            }

        assert client.engine_calls() == []

    def test_package_scope_matching_package_proceeds(self) -> None:
        client = FakeEngineClient()
        registry = ToolRegistry(make_context(mode="package", client=client))

        result = _call(registry, "uapf.resolve_resources", {"packageId": "pkg-a", "taskId": "t9"})

        assert result.is_error is False
        assert client.engine_calls() == [("resolve_resources", "pkg-a", None, "t9")]

    def test_unknown_package_is_rejected(self) -> None:
        client = FakeEngineClient()
        registry = ToolRegistry(make_context(client=client))

        result = _call(registry, "uapf.run_process", {"packageId": "pkg-z", "processId": "p"})

        assert result.payload["error"]["code"] == "unknown_package"
        assert client.engine_calls() == []

    def test_engine_error_is_wrapped(self) -> None:
        client = FakeEngineClient(fail_with=EngineClientError("engine_unavailable", "down", 503))
        registry = ToolRegistry(make_context(client=client))

        result = _call(registry, "uapf.validate", {"packageId": "pkg-b"})

        assert result.is_error is True
        assert result.payload == {"error": {"code": "engine_unavailable", "message": "down"}}

    def test_unexpected_error_becomes_internal_error(self) -> None:
        client = FakeEngineClient(fail_with=RuntimeError("boom"))
        registry = ToolRegistry(make_context(client=client))

        result = _call(registry, "uapf.run_process", {"packageId": "pkg-b", "processId": "triage"})

        assert result.payload == {"error": {"code": "internal_error", "message": "boom"}}

    def test_unknown_tool(self) -> None:
        result = _call(ToolRegistry(make_context()), "uapf.delete")

        assert result.is_error is True
        assert result.payload["error"]["code"] == "unknown_tool"


class TestClaimsOnTools:
    def test_off_mode_never_calls_verifier(self) -> None:
        verifier = SpyVerifier(satisfied=False)
        registry = ToolRegistry(make_context(verifier=verifier, security_mode="off"))

        result = _call(registry, "uapf.run_process", {"packageId": "pkg-a", "processId": "onboard"})

        assert result.is_error is False
        assert "requiredClaims" not in result.payload
        assert verifier.calls == []

    def test_enforce_rejects_before_engine_call(self) -> None:
        client = FakeEngineClient()
        verifier = SpyVerifier(satisfied=False, reason="aml claim missing")
        registry = ToolRegistry(
            make_context(client=client, verifier=verifier, security_mode="enforce")
        )

        result = _call(registry, "uapf.run_process", {"packageId": "pkg-a", "processId": "onboard"})

        assert result.is_error is True
        assert result.payload == {
            "error": {"code": "claims_not_satisfied", "message": "aml claim missing"}
        }
        assert client.engine_calls() == []
        assert verifier.calls == [
            (("aml",), {"tool": "run_process", "packageId": "pkg-a", "processId": "onboard"})
        ]

    def test_process_lookup_by_bpmn_id_uses_process_claims(self) -> None:
        verifier = SpyVerifier()
        registry = ToolRegistry(make_context(verifier=verifier, security_mode="enforce"))

        result = _call(
            registry, "uapf.run_process", {"packageId": "pkg-a", "processId": "Process_Onboard"}
        )

        assert result.payload["requiredClaims"] == ["aml"]
        assert result.payload["claimsSatisfied"] is True

    def test_empty_decision_claims_skip_verifier(self) -> None:
        verifier = SpyVerifier(satisfied=False)
        registry = ToolRegistry(make_context(verifier=verifier, security_mode="enforce"))

        result = _call(
            registry, "uapf.evaluate_decision", {"packageId": "pkg-a", "decisionId": "eligibility"}
        )

        assert result.is_error is False
        assert result.payload == {"result": "approved"}
        assert verifier.calls == []

    def test_declare_mode_validate_reports_required_claims(self) -> None:
        registry = ToolRegistry(make_context(security_mode="declare"))

        result = _call(registry, "uapf.validate", {"packageId": "pkg-a"})

        assert result.is_error is False
        assert result.payload["valid"] is True
        assert result.payload["requiredClaims"] == ["kyc"]

    def test_declare_mode_never_blocks(self) -> None:
        client = FakeEngineClient()
        registry = ToolRegistry(
            make_context(client=client, verifier=SpyVerifier(satisfied=False), security_mode="declare")
        )

        result = _call(registry, "uapf.resolve_resources", {"packageId": "pkg-a"})

        assert result.is_error is False
        assert result.payload["claimsSatisfied"] is False
        assert len(client.engine_calls()) == 1

    def test_annotation_not_merged_on_engine_failure(self) -> None:
        client = FakeEngineClient(fail_with=EngineClientError("engine_request_failed", "bad", 400))
        registry = ToolRegistry(make_context(client=client, security_mode="declare"))

        result = _call(registry, "uapf.validate", {"packageId": "pkg-a"})

        assert result.payload == {"error": {"code": "engine_request_failed", "message": "bad"}}


class TestArtifactTool:
    def test_manifest_is_parsed(self) -> None:
        client = FakeEngineClient(
            artifacts={
                ("pkg-a", "manifest"): ArtifactResponse(
                    data=b'{"packageId": "pkg-a", "version": "1.0.0"}',
                    headers={"content-type": "application/json"},
                )
            }
        )
        registry = ToolRegistry(make_context(client=client))

        result = _call(registry, "uapf.get_artifact", {"packageId": "pkg-a", "kind": "manifest"})

        assert result.payload == {"packageId": "pkg-a", "version": "1.0.0"}

    def test_unparseable_manifest_returns_raw_text(self) -> None:
        client = FakeEngineClient(
            artifacts={("pkg-a", "manifest"): ArtifactResponse(data=b"name: loan\n", headers={})}
        )
        registry = ToolRegistry(make_context(client=client))

        result = _call(registry, "uapf.get_artifact", {"packageId": "pkg-a", "kind": "manifest"})

        assert result.is_error is False
        assert result.payload == {"raw": "name: loan\n"}

    def test_binary_artifact_is_base64_encoded(self) -> None:
        client = FakeEngineClient(
            artifacts={
                ("pkg-b", "dmn"): ArtifactResponse(data=b"<dmn/>", headers={"Content-Type": "text/xml"})
            }
        )
        registry = ToolRegistry(make_context(client=client))

        result = _call(
            registry, "uapf.get_artifact", {"packageId": "pkg-b", "kind": "dmn", "id": "main"}
        )

        assert result.payload == {
            "mediaType": "text/xml",
            "contentBase64": base64.b64encode(b"<dmn/>").decode("ascii"),
        }
        assert client.engine_calls() == [("get_artifact", "pkg-b", "dmn", "main")]

    def test_missing_media_type_defaults_to_xml(self) -> None:
        client = FakeEngineClient(
            artifacts={("pkg-b", "docs"): ArtifactResponse(data=b"<doc/>", headers={})}
        )
        registry = ToolRegistry(make_context(client=client))

        result = _call(registry, "uapf.get_artifact", {"packageId": "pkg-b", "kind": "docs"})

        assert result.payload["mediaType"] == "application/xml"

    def test_unsupported_kind_is_invalid(self) -> None:
        client = FakeEngineClient()
        registry = ToolRegistry(make_context(client=client))

        result = _call(registry, "uapf.get_artifact", {"packageId": "pkg-a", "kind": "png"})

        assert result.payload["error"]["code"] == "invalid_arguments"
        assert client.engine_calls() == []


class TestValidateTool:
    def test_workspace_without_package_validates_workspace(self) -> None:
        client = FakeEngineClient()
        verifier = SpyVerifier()
        registry = ToolRegistry(
            make_context(client=client, verifier=verifier, security_mode="enforce")
        )

        result = _call(registry, "uapf.validate")

        assert result.payload == {"valid": True, "packageId": None}
        assert client.engine_calls() == [("validate", None)]
        assert verifier.calls == []

    def test_workspace_unknown_package(self) -> None:
        result = _call(ToolRegistry(make_context()), "uapf.validate", {"packageId": "pkg-z"})

        assert result.payload["error"]["code"] == "unknown_package"

    def test_package_scope_always_targets_scoped_package(self) -> None:
        client = FakeEngineClient()
        registry = ToolRegistry(make_context(mode="package", client=client))

        _call(registry, "uapf.validate")
        _call(registry, "uapf.validate", {"packageId": "pkg-a"})

        assert client.engine_calls() == [("validate", "pkg-a"), ("validate", "pkg-a")]


class TestAliases:
    @pytest.mark.parametrize(
        ("base", "arguments"),
        [
            ("describe", {}),
            ("list", {"tag": "finance"}),
            ("run_process", {"packageId": "pkg-a", "processId": "onboard", "input": {"x": 1}}),
            ("evaluate_decision", {"packageId": "pkg-a", "decisionId": "pricing"}),
            ("resolve_resources", {"packageId": "pkg-b"}),
            ("get_artifact", {"packageId": "pkg-b", "kind": "bpmn"}),
            ("validate", {"packageId": "pkg-z"}),
        ],
    )
    def test_alias_matches_canonical(self, base: str, arguments: dict[str, Any]) -> None:
        registry = ToolRegistry(make_context(tool_prefix="bank", security_mode="declare"))

        canonical = _call(registry, f"uapf.{base}", arguments)
        alias = _call(registry, f"bank.{base}", arguments)

        assert alias == canonical
