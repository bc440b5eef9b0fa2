"""Data model for packages reported by the UAPF engine."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, cast


def _claims(value: Any) -> tuple[str, ...] | None:
    """Normalize a requiredClaims field. ``None`` means the field was absent."""
    if value is None:
        return None
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list | tuple):
        return tuple(str(item) for item in cast(list[Any], value))
    return None


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


@dataclass(frozen=True)
class PackageProcess:
    id: str
    bpmn_process_id: str
    label: str | None = None
    required_claims: tuple[str, ...] | None = None

    def matches(self, process_id: str) -> bool:
        return process_id in (self.id, self.bpmn_process_id)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PackageProcess":
        process_id = str(data.get("id", ""))
        return cls(
            id=process_id,
            bpmn_process_id=str(data.get("bpmnProcessId") or process_id),
            label=_optional_str(data.get("label")),
            required_claims=_claims(data.get("requiredClaims")),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"id": self.id, "bpmnProcessId": self.bpmn_process_id}
        if self.label is not None:
            d["label"] = self.label
        if self.required_claims is not None:
            d["requiredClaims"] = list(self.required_claims)
        return d


@dataclass(frozen=True)
class PackageDecision:
    id: str
    dmn_decision_id: str
    label: str | None = None
    required_claims: tuple[str, ...] | None = None

    def matches(self, decision_id: str) -> bool:
        return decision_id in (self.id, self.dmn_decision_id)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PackageDecision":
        decision_id = str(data.get("id", ""))
        return cls(
            id=decision_id,
            dmn_decision_id=str(data.get("dmnDecisionId") or decision_id),
            label=_optional_str(data.get("label")),
            required_claims=_claims(data.get("requiredClaims")),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"id": self.id, "dmnDecisionId": self.dmn_decision_id}
        if self.label is not None:
            d["label"] = self.label
        if self.required_claims is not None:
            d["requiredClaims"] = list(self.required_claims)
        return d


@dataclass(frozen=True)
class Package:
    """A versioned bundle of processes and decisions exposed by the engine."""

    package_id: str
    version: str = ""
    name: str | None = None
    description: str | None = None
    processes: tuple[PackageProcess, ...] = ()
    decisions: tuple[PackageDecision, ...] = ()
    tags: tuple[str, ...] = ()
    domain: str | None = None
    required_claims: tuple[str, ...] | None = None

    def find_process(self, process_id: str) -> PackageProcess | None:
        return next((p for p in self.processes if p.matches(process_id)), None)

    def find_decision(self, decision_id: str) -> PackageDecision | None:
        return next((d for d in self.decisions if d.matches(decision_id)), None)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Package":
        processes_raw = data.get("processes")
        decisions_raw = data.get("decisions")
        tags_raw = data.get("tags")
        return cls(
            package_id=str(data["packageId"]),
            version=str(data.get("version", "")),
            name=_optional_str(data.get("name")),
            description=_optional_str(data.get("description")),
            processes=tuple(
                PackageProcess.from_dict(item)
                for item in cast(list[Any], processes_raw)
                if isinstance(item, dict)
            )
            if isinstance(processes_raw, list)
            else (),
            decisions=tuple(
                PackageDecision.from_dict(item)
                for item in cast(list[Any], decisions_raw)
                if isinstance(item, dict)
            )
            if isinstance(decisions_raw, list)
            else (),
            tags=tuple(str(tag) for tag in cast(list[Any], tags_raw))
            if isinstance(tags_raw, list)
            else (),
            domain=_optional_str(data.get("domain")),
            required_claims=_claims(data.get("requiredClaims")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the engine's camelCase field names."""
        d: dict[str, Any] = {
            "packageId": self.package_id,
            "version": self.version,
            "processes": [p.to_dict() for p in self.processes],
            "decisions": [dec.to_dict() for dec in self.decisions],
        }
        if self.name is not None:
            d["name"] = self.name
        if self.description is not None:
            d["description"] = self.description
        if self.tags:
            d["tags"] = list(self.tags)
        if self.domain is not None:
            d["domain"] = self.domain
        if self.required_claims is not None:
            d["requiredClaims"] = list(self.required_claims)
        return d


@dataclass(frozen=True)
class ArtifactResponse:
    """Raw artifact bytes plus the engine's response headers."""

    data: bytes
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def content_type(self) -> str | None:
        for key, value in self.headers.items():
            if key.lower() == "content-type" and value:
                return value
        return None

    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")
