"""Result types returned by the AI-assisted features."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Rows after column mapping and coercion.

    ``degraded`` is true when the provider could not be used and the rows are
    returned as uploaded.
    """

    processed_rows: tuple[dict[str, object], ...]
    column_mappings: dict[str, str] = field(default_factory=dict)
    suggestions: tuple[str, ...] = ()
    degraded: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "processedData": [dict(row) for row in self.processed_rows],
            "columnMappings": dict(self.column_mappings),
            "suggestions": list(self.suggestions),
        }


@dataclass(frozen=True, slots=True)
class SearchResult:
    clients: tuple[object, ...]
    workers: tuple[object, ...]
    tasks: tuple[object, ...]
    explanation: str
    degraded: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "clients": list(self.clients),
            "workers": list(self.workers),
            "tasks": list(self.tasks),
            "explanation": self.explanation,
        }


@dataclass(frozen=True, slots=True)
class RuleProposal:
    rule_type: str
    name: str
    description: str
    config: object = None
    reasoning: str = ""
    rule_id: str | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> RuleProposal:
        rule_id = payload.get("id")
        return cls(
            rule_type=str(payload.get("type", "")),
            name=str(payload.get("name", "")),
            description=str(payload.get("description", "")),
            config=payload.get("config"),
            reasoning=str(payload.get("reasoning", "")),
            rule_id=str(rule_id) if rule_id is not None else None,
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "type": self.rule_type,
            "name": self.name,
            "description": self.description,
            "config": self.config,
        }
        if self.rule_id is not None:
            payload["id"] = self.rule_id
        if self.reasoning:
            payload["reasoning"] = self.reasoning
        return payload


@dataclass(frozen=True, slots=True)
class RuleCreationResult:
    rule: RuleProposal | None = None
    error: str | None = None
    degraded: bool = False

    @property
    def ok(self) -> bool:
        return self.rule is not None and self.error is None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {}
        if self.rule is not None:
            payload["rule"] = self.rule.to_dict()
        if self.error is not None:
            payload["error"] = self.error
        return payload


__all__ = ["ParseResult", "RuleCreationResult", "RuleProposal", "SearchResult"]
