"""
data-steward - validation rule catalog

File: src/data_steward/validation/rules.py
Last updated: 2026-10-18

Purpose
- Eight independent pure rules over the (clients, workers, tasks) triple.
- Deterministic registration order that defines the engine's output grouping.

What should be included in this file
- RuleInput snapshot view shared by every rule.
- RuleRegistry with decorator-based builtin registration.
- JS-compatible truthiness/number coercion used when reading loosely typed cells.

Functional requirements
- Rules never raise for malformed rows; a bad cell becomes a field-level finding.
- Within a rule: entities in catalog order, fields in declaration order, rows ascending.
- Empty collections produce no findings.

Non-functional requirements
- No I/O, no logging, no third-party imports beyond the domain layer.
"""

from __future__ import annotations

import json
import math
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field

from data_steward.domain.entity_schema import (
    ArrayField,
    EntityCatalog,
    EntitySchema,
    NumericBound,
    default_catalog,
)
from data_steward.domain.records import DataSnapshot, EntityType, ErrorKind, ValidationError

RuleCheck = Callable[["RuleInput"], Iterable[ValidationError]]

REQUESTED_TASKS_COLUMN = "RequestedTaskIDs"
SKILLS_COLUMN = "Skills"
REQUIRED_SKILLS_COLUMN = "RequiredSkills"
AVAILABLE_SLOTS_COLUMN = "AvailableSlots"
MAX_LOAD_COLUMN = "MaxLoadPerPhase"


@dataclass(frozen=True, slots=True)
class RuleInput:
    """Read-only view handed to every rule."""

    snapshot: DataSnapshot
    catalog: EntityCatalog

    def rows(self, entity: EntityType) -> tuple[object, ...]:
        return self.snapshot.rows(entity)

    def schemas(self) -> Iterator[EntitySchema]:
        return iter(self.catalog)


@dataclass(frozen=True, slots=True)
class RuleSpec:
    rule_id: str
    description: str
    check: RuleCheck


@dataclass(slots=True)
class RuleRegistry:
    """Ordered rule registry; registration order is evaluation order."""

    _rules: dict[str, RuleSpec] = field(default_factory=dict)

    def register(self, rule_id: str, check: RuleCheck, *, description: str = "") -> None:
        normalized = rule_id.strip()
        if not normalized:
            raise ValueError("rule_id must not be empty")
        if normalized in self._rules:
            raise ValueError(f"rule already registered: {normalized!r}")
        self._rules[normalized] = RuleSpec(
            rule_id=normalized, description=description, check=check
        )

    def get(self, rule_id: str) -> RuleSpec:
        try:
            return self._rules[rule_id]
        except KeyError:
            known = ", ".join(self._rules)
            raise KeyError(f"unknown rule {rule_id!r}; registered: [{known}]") from None

    def rule_ids(self) -> tuple[str, ...]:
        return tuple(self._rules)

    def catalog(self) -> tuple[RuleSpec, ...]:
        return tuple(self._rules.values())


DEFAULT_RULE_REGISTRY = RuleRegistry()


def builtin_rule(rule_id: str, description: str) -> Callable[[RuleCheck], RuleCheck]:
    """Decorator that appends a rule to the default registry."""

    def decorator(check: RuleCheck) -> RuleCheck:
        DEFAULT_RULE_REGISTRY.register(rule_id, check, description=description)
        return check

    return decorator


@builtin_rule("required_columns", "Required-column presence per entity")
def check_required_columns(data: RuleInput) -> list[ValidationError]:
    errors: list[ValidationError] = []
    for schema in data.schemas():
        rows = data.rows(schema.entity)
        if not rows:
            continue
        first = rows[0]
        if isinstance(first, Mapping):
            missing = [column for column in schema.required_columns if column not in first]
            if missing:
                listed = ", ".join(missing)
                errors.append(
                    _finding(
                        f"missing-columns-{schema.entity.value}",
                        ErrorKind.MISSING_COLUMNS,
                        f"Missing required columns: {listed}",
                        schema.entity,
                        0,
                        missing[0],
                        f"Add columns: {listed}",
                    )
                )
        # Rows that are not objects have no cells for the other rules to read.
        expected = ", ".join(schema.required_columns)
        for index, row in enumerate(rows):
            if isinstance(row, Mapping):
                continue
            errors.append(
                _finding(
                    f"malformed-row-{schema.entity.value}-{index}",
                    ErrorKind.MISSING_COLUMNS,
                    f"Row is not an object, got {type(row).__name__}",
                    schema.entity,
                    index,
                    schema.id_column,
                    f"Replace the row with an object holding columns: {expected}",
                )
            )
    return errors


@builtin_rule("unique_ids", "Uniqueness of the primary identifier per entity")
def check_unique_ids(data: RuleInput) -> list[ValidationError]:
    errors: list[ValidationError] = []
    for schema in data.schemas():
        column = schema.id_column
        seen: set[object] = set()
        for index, row in enumerate(data.rows(schema.entity)):
            value = _cell(row, column)
            if not _is_truthy(value):
                continue
            key = _identity_key(value)
            if key in seen:
                errors.append(
                    _finding(
                        f"duplicate-id-{schema.entity.value}-{index}",
                        ErrorKind.DUPLICATE_ID,
                        f"Duplicate {column}: {_display(value)}",
                        schema.entity,
                        index,
                        column,
                        f"Change {column} to a unique value",
                    )
                )
            else:
                seen.add(key)
    return errors


@builtin_rule("array_fields", "Array fields are sequences of the declared element type")
def check_array_fields(data: RuleInput) -> list[ValidationError]:
    errors: list[ValidationError] = []
    for schema in data.schemas():
        for spec in schema.array_fields:
            for index, row in enumerate(data.rows(schema.entity)):
                finding = _check_array_cell(schema.entity, spec, index, _cell(row, spec.field))
                if finding is not None:
                    errors.append(finding)
    return errors


@builtin_rule("numeric_bounds", "Bounded ranges and minimum values of numeric fields")
def check_numeric_bounds(data: RuleInput) -> list[ValidationError]:
    errors: list[ValidationError] = []
    for schema in data.schemas():
        rows = data.rows(schema.entity)
        for bound in schema.ranges:
            for index, row in enumerate(rows):
                finding = _check_range(schema.entity, bound, index, _cell(row, bound.field))
                if finding is not None:
                    errors.append(finding)
        for bound in schema.minimums:
            for index, row in enumerate(rows):
                finding = _check_minimum(schema.entity, bound, index, _cell(row, bound.field))
                if finding is not None:
                    errors.append(finding)
    return errors


@builtin_rule("attribute_json", "Attribute blobs parse as JSON when present")
def check_attribute_json(data: RuleInput) -> list[ValidationError]:
    errors: list[ValidationError] = []
    for schema in data.schemas():
        column = schema.attributes_column
        if column is None:
            continue
        for index, row in enumerate(data.rows(schema.entity)):
            value = _cell(row, column)
            if not isinstance(value, str) or not value:
                continue
            if _parses_as_json(value):
                continue
            errors.append(
                _finding(
                    f"invalid-json-{schema.entity.value}-{index}-{column}",
                    ErrorKind.INVALID_JSON,
                    f"{column} contains invalid JSON",
                    schema.entity,
                    index,
                    column,
                    "Fix JSON syntax or use empty object {}",
                )
            )
    return errors


@builtin_rule("task_references", "Client-requested task ids exist in the task collection")
def check_task_references(data: RuleInput) -> list[ValidationError]:
    clients = data.rows(EntityType.CLIENTS)
    tasks = data.rows(EntityType.TASKS)
    if not clients or not tasks:
        return []

    task_column = data.catalog.get(EntityType.TASKS).id_column
    known: set[object] = set()
    for row in tasks:
        task_id = _cell(row, task_column)
        if _is_truthy(task_id):
            known.add(_identity_key(task_id))

    errors: list[ValidationError] = []
    for index, row in enumerate(clients):
        requested = _cell(row, REQUESTED_TASKS_COLUMN)
        if not isinstance(requested, (list, tuple)):
            continue
        unknown = [item for item in requested if _identity_key(item) not in known]
        if not unknown:
            continue
        errors.append(
            _finding(
                f"unknown-task-refs-{index}",
                ErrorKind.UNKNOWN_REFERENCE,
                f"Unknown task references: {_join(unknown)}",
                EntityType.CLIENTS,
                index,
                REQUESTED_TASKS_COLUMN,
                "Remove unknown task IDs or add missing tasks",
            )
        )
    return errors


@builtin_rule("worker_capacity", "Available slot count covers max load per phase")
def check_worker_capacity(data: RuleInput) -> list[ValidationError]:
    errors: list[ValidationError] = []
    for index, row in enumerate(data.rows(EntityType.WORKERS)):
        slots = _cell(row, AVAILABLE_SLOTS_COLUMN)
        max_load = _cell(row, MAX_LOAD_COLUMN)
        if not isinstance(slots, (list, tuple)):
            continue
        if isinstance(max_load, bool) or not isinstance(max_load, (int, float)):
            continue
        slot_count = len(slots)
        if slot_count >= max_load:
            continue
        errors.append(
            _finding(
                f"overloaded-worker-{index}",
                ErrorKind.OVERLOADED_WORKER,
                f"Worker has {slot_count} available slots but "
                f"{MAX_LOAD_COLUMN} is {_format_number(max_load)}",
                EntityType.WORKERS,
                index,
                MAX_LOAD_COLUMN,
                f"Reduce {MAX_LOAD_COLUMN} to {slot_count} or add more available slots",
            )
        )
    return errors


@builtin_rule("skill_coverage", "Every required skill is offered by some worker")
def check_skill_coverage(data: RuleInput) -> list[ValidationError]:
    workers = data.rows(EntityType.WORKERS)
    tasks = data.rows(EntityType.TASKS)
    if not workers or not tasks:
        return []

    offered: set[object] = set()
    for row in workers:
        skills = _cell(row, SKILLS_COLUMN)
        if isinstance(skills, (list, tuple)):
            offered.update(_identity_key(skill) for skill in skills)

    errors: list[ValidationError] = []
    for index, row in enumerate(tasks):
        required = _cell(row, REQUIRED_SKILLS_COLUMN)
        if not isinstance(required, (list, tuple)):
            continue
        uncovered = [skill for skill in required if _identity_key(skill) not in offered]
        if not uncovered:
            continue
        errors.append(
            _finding(
                f"uncovered-skills-{index}",
                ErrorKind.UNCOVERED_SKILL,
                f"Required skills not available in worker pool: {_join(uncovered)}",
                EntityType.TASKS,
                index,
                REQUIRED_SKILLS_COLUMN,
                "Add workers with these skills or remove skill requirements",
            )
        )
    return errors


RULE_CATALOG: tuple[RuleSpec, ...] = DEFAULT_RULE_REGISTRY.catalog()


def make_rule_input(
    clients: Iterable[object] = (),
    workers: Iterable[object] = (),
    tasks: Iterable[object] = (),
    *,
    catalog: EntityCatalog | None = None,
) -> RuleInput:
    """Convenience constructor for running a single rule in isolation."""

    return RuleInput(
        snapshot=DataSnapshot(
            clients=tuple(clients),  # type: ignore[arg-type]
            workers=tuple(workers),  # type: ignore[arg-type]
            tasks=tuple(tasks),  # type: ignore[arg-type]
        ),
        catalog=catalog if catalog is not None else default_catalog(),
    )


def _check_array_cell(
    entity: EntityType, spec: ArrayField, index: int, value: object
) -> ValidationError | None:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        return _finding(
            f"malformed-array-{entity.value}-{index}-{spec.field}",
            ErrorKind.MALFORMED_ARRAY,
            f"{spec.field} should be an array",
            entity,
            index,
            spec.field,
            f"Convert {spec.field} to array format",
        )
    if spec.element == "number":
        invalid = [item for item in value if not math.isfinite(to_number(item))]
    else:
        invalid = [item for item in value if not isinstance(item, str)]
    if not invalid:
        return None
    return _finding(
        f"invalid-array-elements-{entity.value}-{index}-{spec.field}",
        ErrorKind.INVALID_ARRAY_ELEMENT,
        f"{spec.field} contains invalid {spec.element} values: {_join(invalid)}",
        entity,
        index,
        spec.field,
        f"Ensure all {spec.field} values are valid {spec.element}s",
    )


def _check_range(
    entity: EntityType, bound: NumericBound, index: int, value: object
) -> ValidationError | None:
    if value is None:
        return None
    number = to_number(value)
    maximum = bound.maximum if bound.maximum is not None else math.inf
    if math.isfinite(number) and bound.minimum <= number <= maximum:
        return None
    low = _format_number(bound.minimum)
    high = _format_number(maximum)
    return _finding(
        f"out-of-range-{entity.value}-{index}-{bound.field}",
        ErrorKind.OUT_OF_RANGE,
        f"{bound.field} must be between {low} and {high}, got: {_display(value)}",
        entity,
        index,
        bound.field,
        f"Set {bound.field} to a value between {low} and {high}",
    )


def _check_minimum(
    entity: EntityType, bound: NumericBound, index: int, value: object
) -> ValidationError | None:
    if value is None:
        return None
    number = to_number(value)
    if math.isfinite(number) and number >= bound.minimum:
        return None
    low = _format_number(bound.minimum)
    return _finding(
        f"below-minimum-{entity.value}-{index}-{bound.field}",
        ErrorKind.BELOW_MINIMUM,
        f"{bound.field} must be at least {low}, got: {_display(value)}",
        entity,
        index,
        bound.field,
        f"Set {bound.field} to {low} or higher",
    )


def _finding(
    error_id: str,
    kind: ErrorKind,
    message: str,
    entity: EntityType,
    row_index: int,
    column: str,
    suggestion: str,
) -> ValidationError:
    return ValidationError(
        error_id=error_id,
        kind=kind,
        message=message,
        severity=kind.default_severity,
        entity_type=entity,
        row_index=row_index,
        column_name=column,
        suggestions=(suggestion,),
    )


def to_number(value: object) -> float:
    """Coerce a loosely typed cell to a float; unparseable values become NaN.

    Mirrors spreadsheet-style coercion: blank strings are 0, booleans are 0/1,
    and containers or other objects are NaN. Float spellings such as "inf" or
    "nan" are not numbers here either.
    """

    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if "_" in text:
            return math.nan
        try:
            parsed = float(text)
        except ValueError:
            return math.nan
        return parsed if math.isfinite(parsed) else math.nan
    return math.nan


def _cell(row: object, column: str) -> object:
    if isinstance(row, Mapping):
        return row.get(column)
    return None


def _is_truthy(value: object) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    return True


def _identity_key(value: object) -> object:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return (type(value).__name__ if isinstance(value, bool) else "scalar", value)
    return ("json", json.dumps(value, sort_keys=True, default=repr))


def _parses_as_json(text: str) -> bool:
    try:
        json.loads(text, parse_constant=_reject_constant)
    except ValueError:
        return False
    return True


def _reject_constant(token: str) -> object:
    raise ValueError(f"non-standard JSON constant {token}")


def _format_number(value: float) -> str:
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _display(value: object) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return "NaN"
        return _format_number(value) if isinstance(value, float) else str(value)
    if isinstance(value, Sequence):
        return ",".join(_display(item) for item in value)
    return json.dumps(value, sort_keys=True, default=repr)


def _join(values: Sequence[object]) -> str:
    return ", ".join(_display(item) for item in values)


__all__ = [
    "AVAILABLE_SLOTS_COLUMN",
    "DEFAULT_RULE_REGISTRY",
    "MAX_LOAD_COLUMN",
    "REQUESTED_TASKS_COLUMN",
    "REQUIRED_SKILLS_COLUMN",
    "RULE_CATALOG",
    "RuleCheck",
    "RuleInput",
    "RuleRegistry",
    "RuleSpec",
    "SKILLS_COLUMN",
    "builtin_rule",
    "check_array_fields",
    "check_attribute_json",
    "check_numeric_bounds",
    "check_required_columns",
    "check_skill_coverage",
    "check_task_references",
    "check_unique_ids",
    "check_worker_capacity",
    "make_rule_input",
    "to_number",
]
