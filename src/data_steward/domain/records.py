"""
data-steward - record model and validation value types

File: src/data_steward/domain/records.py
Last updated: 2026-10-18

Purpose
- Typed client, worker and task records accepted as snapshot input.
- Immutable ValidationError / CorrectionSuggestion value objects shared by the
  validation engine, the AI-assisted features and the service boundary.

What should be included in this file
- Closed error taxonomy and severity enums.
- Wire (camelCase) export/import helpers used at the service boundary.
- DataSnapshot: the immutable triple of row collections handed to the engine.

Functional requirements
- Value objects are never mutated in place; every validation pass produces fresh values.

Non-functional requirements
- No I/O and no third-party imports; safe to import from every layer.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Final, TypeAlias

JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
Row: TypeAlias = Mapping[str, object]

AUTO_APPLY_CONFIDENCE: Final[float] = 0.8


class EntityType(StrEnum):
    """The three record kinds handled by the steward."""

    CLIENTS = "clients"
    WORKERS = "workers"
    TASKS = "tasks"


class Severity(StrEnum):
    """Finding severity; only ``error`` blocks export/finalize actions."""

    ERROR = "error"
    WARNING = "warning"


class ErrorKind(StrEnum):
    """Closed taxonomy of validation findings."""

    MISSING_COLUMNS = "MissingColumns"
    DUPLICATE_ID = "DuplicateId"
    MALFORMED_ARRAY = "MalformedArray"
    INVALID_ARRAY_ELEMENT = "InvalidArrayElement"
    OUT_OF_RANGE = "OutOfRange"
    BELOW_MINIMUM = "BelowMinimum"
    INVALID_JSON = "InvalidJSON"
    UNKNOWN_REFERENCE = "UnknownReference"
    OVERLOADED_WORKER = "OverloadedWorker"
    UNCOVERED_SKILL = "UncoveredSkill"

    @property
    def default_severity(self) -> Severity:
        if self in (ErrorKind.OVERLOADED_WORKER, ErrorKind.UNCOVERED_SKILL):
            return Severity.WARNING
        return Severity.ERROR


@dataclass(frozen=True, slots=True)
class ValidationError:
    """One field-level finding produced by a validation rule."""

    error_id: str
    kind: ErrorKind
    message: str
    severity: Severity
    entity_type: EntityType
    row_index: int
    column_name: str
    suggestions: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", ErrorKind(self.kind))
        object.__setattr__(self, "severity", Severity(self.severity))
        object.__setattr__(self, "entity_type", EntityType(self.entity_type))
        if isinstance(self.row_index, bool) or not isinstance(self.row_index, int):
            raise TypeError("ValidationError.row_index must be an integer")
        if self.row_index < 0:
            raise ValueError("ValidationError.row_index must be >= 0")
        object.__setattr__(self, "suggestions", tuple(str(item) for item in self.suggestions))

    @property
    def is_blocking(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> dict[str, JSONValue]:
        """Wire representation used by the ``validate`` boundary."""

        return {
            "id": self.error_id,
            "type": self.kind.value,
            "message": self.message,
            "severity": self.severity.value,
            "entityType": self.entity_type.value,
            "rowIndex": self.row_index,
            "columnName": self.column_name,
            "suggestions": list(self.suggestions),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> ValidationError:
        suggestions = payload.get("suggestions") or ()
        if isinstance(suggestions, str) or not isinstance(suggestions, Sequence):
            raise ValueError("ValidationError.suggestions must be a list of strings")
        return cls(
            error_id=_require_str(payload.get("id"), "ValidationError.id"),
            kind=ErrorKind(_require_str(payload.get("type"), "ValidationError.type")),
            message=_require_str(payload.get("message"), "ValidationError.message"),
            severity=Severity(_require_str(payload.get("severity"), "ValidationError.severity")),
            entity_type=EntityType(
                _require_str(payload.get("entityType"), "ValidationError.entityType")
            ),
            row_index=_require_int(payload.get("rowIndex"), "ValidationError.rowIndex"),
            column_name=_require_str(payload.get("columnName"), "ValidationError.columnName"),
            suggestions=tuple(str(item) for item in suggestions),
        )


@dataclass(frozen=True, slots=True)
class CorrectionSuggestion:
    """Field-level repair proposal referencing a ValidationError by id."""

    suggestion_id: str
    error_id: str
    entity_type: EntityType
    row_index: int
    field: str
    current_value: object
    suggested_value: object
    confidence: float
    auto_applicable: bool
    description: str = ""
    reasoning: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "entity_type", EntityType(self.entity_type))
        if isinstance(self.confidence, bool) or not isinstance(self.confidence, (int, float)):
            raise TypeError("CorrectionSuggestion.confidence must be a number")
        confidence = float(self.confidence)
        if not math.isfinite(confidence) or not 0.0 <= confidence <= 1.0:
            raise ValueError("CorrectionSuggestion.confidence must be within [0, 1]")
        object.__setattr__(self, "confidence", confidence)
        if self.row_index < 0:
            raise ValueError("CorrectionSuggestion.row_index must be >= 0")
        object.__setattr__(self, "auto_applicable", bool(self.auto_applicable))

    @property
    def is_safe_to_apply(self) -> bool:
        """Auto-apply only flagged suggestions above the confidence threshold."""

        return self.auto_applicable and self.confidence > AUTO_APPLY_CONFIDENCE

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.suggestion_id,
            "errorId": self.error_id,
            "description": self.description,
            "entityType": self.entity_type.value,
            "rowIndex": self.row_index,
            "field": self.field,
            "currentValue": self.current_value,
            "suggestedValue": self.suggested_value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "autoApplicable": self.auto_applicable,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> CorrectionSuggestion:
        confidence = payload.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise ValueError("CorrectionSuggestion.confidence must be a number")
        return cls(
            suggestion_id=_require_str(payload.get("id"), "CorrectionSuggestion.id"),
            error_id=_require_str(payload.get("errorId"), "CorrectionSuggestion.errorId"),
            entity_type=EntityType(
                _require_str(payload.get("entityType"), "CorrectionSuggestion.entityType")
            ),
            row_index=_require_int(payload.get("rowIndex"), "CorrectionSuggestion.rowIndex"),
            field=_require_str(payload.get("field"), "CorrectionSuggestion.field"),
            current_value=payload.get("currentValue"),
            suggested_value=payload.get("suggestedValue"),
            confidence=float(confidence),
            auto_applicable=bool(payload.get("autoApplicable", False)),
            description=str(payload.get("description", "")),
            reasoning=str(payload.get("reasoning", "")),
        )


@dataclass(frozen=True, slots=True)
class ModificationChange:
    """One cell edit inside a natural-language modification proposal."""

    row_index: int
    field: str
    old_value: object
    new_value: object
    confidence: float

    def __post_init__(self) -> None:
        if isinstance(self.row_index, bool) or not isinstance(self.row_index, int):
            raise TypeError("ModificationChange.row_index must be an integer")
        if self.row_index < 0:
            raise ValueError("ModificationChange.row_index must be >= 0")
        if isinstance(self.confidence, bool) or not isinstance(self.confidence, (int, float)):
            raise TypeError("ModificationChange.confidence must be a number")
        confidence = float(self.confidence)
        if not math.isfinite(confidence) or not 0.0 <= confidence <= 1.0:
            raise ValueError("ModificationChange.confidence must be within [0, 1]")
        object.__setattr__(self, "confidence", confidence)

    def to_dict(self) -> dict[str, object]:
        return {
            "rowIndex": self.row_index,
            "field": self.field,
            "oldValue": self.old_value,
            "newValue": self.new_value,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> ModificationChange:
        confidence = payload.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise ValueError("ModificationChange.confidence must be a number")
        return cls(
            row_index=_require_int(payload.get("rowIndex"), "ModificationChange.rowIndex"),
            field=_require_str(payload.get("field"), "ModificationChange.field"),
            old_value=payload.get("oldValue"),
            new_value=payload.get("newValue"),
            confidence=float(confidence),
        )


@dataclass(frozen=True, slots=True)
class ModificationSuggestion:
    """A group of cell edits against one entity collection."""

    suggestion_id: str
    description: str
    entity_type: EntityType
    changes: tuple[ModificationChange, ...]
    reasoning: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "entity_type", EntityType(self.entity_type))
        object.__setattr__(self, "changes", tuple(self.changes))

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.suggestion_id,
            "description": self.description,
            "entityType": self.entity_type.value,
            "changes": [change.to_dict() for change in self.changes],
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> ModificationSuggestion:
        changes = payload.get("changes") or ()
        if isinstance(changes, (str, bytes)) or not isinstance(changes, Sequence):
            raise ValueError("ModificationSuggestion.changes must be a list")
        parsed: list[ModificationChange] = []
        for item in changes:
            if not isinstance(item, Mapping):
                raise ValueError("ModificationSuggestion.changes entries must be objects")
            parsed.append(ModificationChange.from_dict(item))
        return cls(
            suggestion_id=_require_str(payload.get("id"), "ModificationSuggestion.id"),
            description=str(payload.get("description", "")),
            entity_type=EntityType(
                _require_str(payload.get("entityType"), "ModificationSuggestion.entityType")
            ),
            changes=tuple(parsed),
            reasoning=str(payload.get("reasoning", "")),
        )


@dataclass(frozen=True, slots=True)
class ClientRecord:
    client_id: str
    client_name: str
    priority_level: int
    requested_task_ids: tuple[str, ...] = ()
    group_tag: str = ""
    attributes_json: str | None = None

    def to_row(self) -> dict[str, object]:
        row: dict[str, object] = {
            "ClientID": self.client_id,
            "ClientName": self.client_name,
            "PriorityLevel": self.priority_level,
            "RequestedTaskIDs": list(self.requested_task_ids),
            "GroupTag": self.group_tag,
        }
        if self.attributes_json is not None:
            row["AttributesJSON"] = self.attributes_json
        return row


@dataclass(frozen=True, slots=True)
class WorkerRecord:
    worker_id: str
    worker_name: str
    skills: tuple[str, ...]
    available_slots: tuple[int, ...]
    max_load_per_phase: int
    worker_group: str = ""
    qualification_level: int = 0
    attributes_json: str | None = None

    def to_row(self) -> dict[str, object]:
        row: dict[str, object] = {
            "WorkerID": self.worker_id,
            "WorkerName": self.worker_name,
            "Skills": list(self.skills),
            "AvailableSlots": list(self.available_slots),
            "MaxLoadPerPhase": self.max_load_per_phase,
            "WorkerGroup": self.worker_group,
            "QualificationLevel": self.qualification_level,
        }
        if self.attributes_json is not None:
            row["AttributesJSON"] = self.attributes_json
        return row


@dataclass(frozen=True, slots=True)
class TaskRecord:
    task_id: str
    task_name: str
    duration: int
    required_skills: tuple[str, ...] = ()
    preferred_phases: tuple[int, ...] = ()
    max_concurrent: int = 1
    category: str = ""
    attributes_json: str | None = None

    def to_row(self) -> dict[str, object]:
        row: dict[str, object] = {
            "TaskID": self.task_id,
            "TaskName": self.task_name,
            "Category": self.category,
            "Duration": self.duration,
            "RequiredSkills": list(self.required_skills),
            "PreferredPhases": list(self.preferred_phases),
            "MaxConcurrent": self.max_concurrent,
        }
        if self.attributes_json is not None:
            row["AttributesJSON"] = self.attributes_json
        return row


AnyRecord: TypeAlias = ClientRecord | WorkerRecord | TaskRecord


@dataclass(frozen=True, slots=True)
class DataSnapshot:
    """Immutable triple of row collections for one upload/edit cycle."""

    clients: tuple[dict[str, object], ...] = field(default_factory=tuple)
    workers: tuple[dict[str, object], ...] = field(default_factory=tuple)
    tasks: tuple[dict[str, object], ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "clients", _freeze_rows(self.clients))
        object.__setattr__(self, "workers", _freeze_rows(self.workers))
        object.__setattr__(self, "tasks", _freeze_rows(self.tasks))

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> DataSnapshot:
        """Build a snapshot from ``{clients, workers, tasks}``; absent keys are empty."""

        collections: dict[EntityType, tuple[Any, ...]] = {}
        for entity in EntityType:
            raw = payload.get(entity.value)
            if raw is None:
                collections[entity] = ()
                continue
            if isinstance(raw, (str, bytes)) or not isinstance(raw, Sequence):
                raise ValueError(f"{entity.value} must be a list of rows")
            collections[entity] = tuple(raw)
        return cls(
            clients=collections[EntityType.CLIENTS],
            workers=collections[EntityType.WORKERS],
            tasks=collections[EntityType.TASKS],
        )

    def rows(self, entity: EntityType | str) -> tuple[dict[str, object], ...]:
        resolved = EntityType(entity)
        if resolved is EntityType.CLIENTS:
            return self.clients
        if resolved is EntityType.WORKERS:
            return self.workers
        return self.tasks

    def with_rows(self, entity: EntityType | str, rows: Iterable[Any]) -> DataSnapshot:
        current: dict[EntityType, tuple[Any, ...]] = {item: self.rows(item) for item in EntityType}
        current[EntityType(entity)] = tuple(rows)
        return DataSnapshot(
            clients=current[EntityType.CLIENTS],
            workers=current[EntityType.WORKERS],
            tasks=current[EntityType.TASKS],
        )

    def counts(self) -> dict[str, int]:
        return {entity.value: len(self.rows(entity)) for entity in EntityType}

    def to_payload(self) -> dict[str, list[dict[str, object]]]:
        return {entity.value: [dict(row) for row in self.rows(entity)] for entity in EntityType}


def as_row(item: object) -> object:
    """Return the row mapping for typed records; other values pass through."""

    if isinstance(item, (ClientRecord, WorkerRecord, TaskRecord)):
        return item.to_row()
    return item


def _freeze_rows(rows: Iterable[object]) -> tuple[dict[str, object], ...]:
    frozen: list[dict[str, object]] = []
    for item in rows:
        candidate = as_row(item)
        if isinstance(candidate, Mapping):
            frozen.append({str(key): copy.deepcopy(value) for key, value in candidate.items()})
        else:
            # Non-object rows are kept; the required_columns rule reports each one.
            frozen.append(candidate)  # type: ignore[arg-type]
    return tuple(frozen)


def _require_str(value: object, name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string")
    return value


def _require_int(value: object, name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, int):
        raise ValueError(f"{name} must be an integer")
    return value


__all__ = [
    "AUTO_APPLY_CONFIDENCE",
    "AnyRecord",
    "ClientRecord",
    "CorrectionSuggestion",
    "DataSnapshot",
    "EntityType",
    "ErrorKind",
    "JSONScalar",
    "JSONValue",
    "ModificationChange",
    "ModificationSuggestion",
    "Row",
    "Severity",
    "TaskRecord",
    "ValidationError",
    "WorkerRecord",
    "as_row",
]
