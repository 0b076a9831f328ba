"""
data-steward - declarative target schemas for structured model output

File: src/data_steward/structured/schema.py
Last updated: 2026-10-18

Purpose
- Describe the shape a model response must take, independently of any feature.

What should be included in this file
- FieldSpec tree (string, number, integer, boolean, array, map, object, enum, any).
- Recursive example builder used for prompt augmentation.
- Conformance check returning the normalized value plus path-addressed issues.

Functional requirements
- Objects drop unknown keys; optional fields accept absence or null.
- ``any`` fields accept every value, including absence.

Non-functional requirements
- Pure functions only; schemas are immutable and shareable across concurrent calls.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any


class FieldKind(StrEnum):
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ARRAY = "array"
    MAP = "map"
    OBJECT = "object"
    ENUM = "enum"
    ANY = "any"


@dataclass(frozen=True, slots=True)
class FieldSpec:
    kind: FieldKind
    optional: bool = False
    element: FieldSpec | None = None
    fields: tuple[tuple[str, FieldSpec], ...] = ()
    choices: tuple[str, ...] = ()
    minimum: float | None = None
    maximum: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", FieldKind(self.kind))
        if self.kind in (FieldKind.ARRAY, FieldKind.MAP) and self.element is None:
            raise ValueError(f"{self.kind.value} field requires an element spec")
        if self.kind is FieldKind.ENUM and not self.choices:
            raise ValueError("enum field requires at least one choice")
        if (
            self.minimum is not None
            and self.maximum is not None
            and self.minimum > self.maximum
        ):
            raise ValueError("minimum must be <= maximum")
        names = [name for name, _ in self.fields]
        if len(set(names)) != len(names):
            raise ValueError("object field names must be unique")


@dataclass(frozen=True, slots=True)
class SchemaIssue:
    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass(frozen=True, slots=True)
class ConformanceResult:
    value: Any
    issues: tuple[SchemaIssue, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.issues


@dataclass(frozen=True, slots=True)
class StructuredSchema:
    """Named target shape for one AI-assisted feature."""

    name: str
    root: FieldSpec
    description: str = ""
    _example: Any = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("StructuredSchema.name cannot be empty")
        if self.root.kind is not FieldKind.OBJECT:
            raise ValueError("StructuredSchema.root must be an object spec")
        object.__setattr__(self, "_example", build_example(self.root))

    def example(self) -> Any:
        return _copy_json(self._example)

    def check(self, value: object) -> ConformanceResult:
        return check_conformance(self.root, value)


def string() -> FieldSpec:
    return FieldSpec(FieldKind.STRING)


def number(*, minimum: float | None = None, maximum: float | None = None) -> FieldSpec:
    return FieldSpec(FieldKind.NUMBER, minimum=minimum, maximum=maximum)


def integer(*, minimum: float | None = None, maximum: float | None = None) -> FieldSpec:
    return FieldSpec(FieldKind.INTEGER, minimum=minimum, maximum=maximum)


def boolean() -> FieldSpec:
    return FieldSpec(FieldKind.BOOLEAN)


def any_value() -> FieldSpec:
    return FieldSpec(FieldKind.ANY)


def enum_of(*choices: str) -> FieldSpec:
    return FieldSpec(FieldKind.ENUM, choices=tuple(choices))


def array_of(element: FieldSpec) -> FieldSpec:
    return FieldSpec(FieldKind.ARRAY, element=element)


def map_of(values: FieldSpec) -> FieldSpec:
    return FieldSpec(FieldKind.MAP, element=values)


def object_of(fields: Mapping[str, FieldSpec] | Iterable[tuple[str, FieldSpec]]) -> FieldSpec:
    items = tuple(fields.items()) if isinstance(fields, Mapping) else tuple(fields)
    return FieldSpec(FieldKind.OBJECT, fields=items)


def optional(spec: FieldSpec) -> FieldSpec:
    return replace(spec, optional=True)


def build_example(spec: FieldSpec) -> Any:
    """Representative value for ``spec``; appended to prompts as a format template."""

    kind = spec.kind
    if kind is FieldKind.STRING:
        return "optional_string" if spec.optional else "example_string"
    if kind in (FieldKind.NUMBER, FieldKind.INTEGER):
        return _example_number(spec)
    if kind is FieldKind.BOOLEAN:
        return True
    if kind is FieldKind.ENUM:
        return spec.choices[0]
    if kind is FieldKind.ARRAY:
        assert spec.element is not None
        if spec.element.kind is FieldKind.STRING:
            return ["string1", "string2"]
        if spec.element.kind in (FieldKind.NUMBER, FieldKind.INTEGER):
            return [1, 2, 3]
        return [build_example(spec.element)]
    if kind is FieldKind.MAP:
        assert spec.element is not None
        if spec.element.kind is FieldKind.STRING:
            return {"key1": "value1", "key2": "value2"}
        return {"key1": build_example(spec.element)}
    if kind is FieldKind.OBJECT:
        return {name: build_example(child) for name, child in spec.fields}
    return "any_value"


def check_conformance(spec: FieldSpec, value: object, *, path: str = "$") -> ConformanceResult:
    """Validate ``value`` against ``spec``; return normalized value and all issues."""

    issues: list[SchemaIssue] = []
    normalized = _check(spec, value, path, issues)
    return ConformanceResult(value=normalized, issues=tuple(issues))


def _check(spec: FieldSpec, value: object, path: str, issues: list[SchemaIssue]) -> Any:
    kind = spec.kind
    if kind is FieldKind.ANY:
        return value

    if kind is FieldKind.STRING:
        if not isinstance(value, str):
            issues.append(SchemaIssue(path, f"expected string, got {_type_name(value)}"))
        return value

    if kind in (FieldKind.NUMBER, FieldKind.INTEGER):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            issues.append(SchemaIssue(path, f"expected {kind.value}, got {_type_name(value)}"))
            return value
        if not math.isfinite(value):
            issues.append(SchemaIssue(path, "expected finite number"))
            return value
        if kind is FieldKind.INTEGER and not float(value).is_integer():
            issues.append(SchemaIssue(path, f"expected integer, got {value!r}"))
            return value
        if spec.minimum is not None and value < spec.minimum:
            issues.append(SchemaIssue(path, f"must be >= {spec.minimum:g}"))
        if spec.maximum is not None and value > spec.maximum:
            issues.append(SchemaIssue(path, f"must be <= {spec.maximum:g}"))
        return int(value) if kind is FieldKind.INTEGER else value

    if kind is FieldKind.BOOLEAN:
        if not isinstance(value, bool):
            issues.append(SchemaIssue(path, f"expected boolean, got {_type_name(value)}"))
        return value

    if kind is FieldKind.ENUM:
        if value not in spec.choices:
            allowed = ", ".join(spec.choices)
            issues.append(SchemaIssue(path, f"expected one of [{allowed}], got {value!r}"))
        return value

    if kind is FieldKind.ARRAY:
        assert spec.element is not None
        if not isinstance(value, list):
            issues.append(SchemaIssue(path, f"expected array, got {_type_name(value)}"))
            return value
        return [
            _check(spec.element, item, f"{path}[{index}]", issues)
            for index, item in enumerate(value)
        ]

    if kind is FieldKind.MAP:
        assert spec.element is not None
        if not isinstance(value, dict):
            issues.append(SchemaIssue(path, f"expected object, got {_type_name(value)}"))
            return value
        return {
            str(key): _check(spec.element, item, f"{path}.{key}", issues)
            for key, item in value.items()
        }

    if not isinstance(value, dict):
        issues.append(SchemaIssue(path, f"expected object, got {_type_name(value)}"))
        return value
    result: dict[str, Any] = {}
    for name, child in spec.fields:
        child_path = f"{path}.{name}"
        present = name in value and value[name] is not None
        if not present:
            if child.optional:
                continue
            if child.kind is FieldKind.ANY:
                if name in value:
                    result[name] = None
                continue
            issues.append(SchemaIssue(child_path, "required field missing"))
            continue
        result[name] = _check(child, value[name], child_path, issues)
    return result


def _example_number(spec: FieldSpec) -> int | float:
    if spec.minimum is not None and spec.maximum is not None:
        midpoint = spec.minimum + (spec.maximum - spec.minimum) / 2
        if spec.kind is FieldKind.INTEGER:
            return int(midpoint)
        return midpoint
    if spec.minimum is not None and spec.minimum > 123:
        return int(spec.minimum) if spec.kind is FieldKind.INTEGER else spec.minimum
    if spec.maximum is not None and spec.maximum < 123:
        return int(spec.maximum) if spec.kind is FieldKind.INTEGER else spec.maximum
    return 123


def _type_name(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _copy_json(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _copy_json(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_copy_json(item) for item in value]
    return value


__all__ = [
    "ConformanceResult",
    "FieldKind",
    "FieldSpec",
    "SchemaIssue",
    "StructuredSchema",
    "any_value",
    "array_of",
    "boolean",
    "build_example",
    "check_conformance",
    "enum_of",
    "integer",
    "map_of",
    "number",
    "object_of",
    "optional",
    "string",
]
