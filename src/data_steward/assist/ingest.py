"""
data-steward - ingest coercion

File: src/data_steward/assist/ingest.py
Last updated: 2026-10-18

Purpose
- Apply an inferred column mapping to every uploaded row and normalize cell formats.

What should be included in this file
- Field classification by target column name (array / numeric / JSON / plain).
- Array parsing: bracket JSON, "a - b" inclusive integer ranges, comma lists.
- Example rows per entity used by the column-mapping prompt.

Functional requirements
- Deterministic and local: no provider calls, no I/O.
- Never mutates input rows.

Non-functional requirements
- Unparseable cells degrade to empty/zero/"{}" values; the validation rules report them.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any, Final

from data_steward.domain.records import EntityType

_ARRAY_MARKERS: Final[tuple[str, ...]] = ("Skills", "TaskIDs", "Phases", "Slots")
_NUMERIC_ARRAY_MARKERS: Final[tuple[str, ...]] = ("Slots", "Phases")
_NUMBER_MARKERS: Final[tuple[str, ...]] = ("Level", "Duration", "Load", "Concurrent")
_JSON_MARKER: Final[str] = "JSON"
_RANGE_SEPARATOR: Final[str] = " - "
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")

ENTITY_EXAMPLES: Final[Mapping[EntityType, Mapping[str, object]]] = MappingProxyType(
    {
        EntityType.CLIENTS: {
            "ClientID": "C001",
            "ClientName": "Example Client",
            "PriorityLevel": 3,
            "RequestedTaskIDs": ["T1", "T2"],
            "GroupTag": "GroupA",
            "AttributesJSON": "{}",
        },
        EntityType.WORKERS: {
            "WorkerID": "W001",
            "WorkerName": "Example Worker",
            "Skills": ["coding", "analysis"],
            "AvailableSlots": [1, 2, 3],
            "MaxLoadPerPhase": 2,
            "WorkerGroup": "GroupA",
            "QualificationLevel": 4,
            "AttributesJSON": "{}",
        },
        EntityType.TASKS: {
            "TaskID": "T001",
            "TaskName": "Example Task",
            "Category": "Development",
            "Duration": 2,
            "RequiredSkills": ["coding"],
            "PreferredPhases": [1, 2],
            "MaxConcurrent": 1,
            "AttributesJSON": "{}",
        },
    }
)


def is_array_field(name: str) -> bool:
    return any(marker in name for marker in _ARRAY_MARKERS)


def is_number_field(name: str) -> bool:
    return any(marker in name for marker in _NUMBER_MARKERS)


def is_json_field(name: str) -> bool:
    return _JSON_MARKER in name


def coerce_rows(
    rows: Iterable[Mapping[str, object]], column_mappings: Mapping[str, str]
) -> list[dict[str, object]]:
    return [coerce_row(row, column_mappings) for row in rows]


def coerce_row(row: Mapping[str, object], column_mappings: Mapping[str, str]) -> dict[str, object]:
    """Keep mapped source columns only, renamed and coerced to the target field's format."""

    processed: dict[str, object] = {}
    for source, target in column_mappings.items():
        if source not in row:
            continue
        processed[target] = coerce_cell(target, row[source])
    return processed


def coerce_cell(field: str, value: object) -> object:
    if is_array_field(field):
        return _coerce_array(field, value)
    if is_number_field(field):
        number = _js_number(value)
        return 0 if math.isnan(number) else _tidy_number(number)
    if is_json_field(field):
        if not isinstance(value, str):
            return "{}"
        try:
            json.loads(value, parse_constant=_reject_constant)
        except ValueError:
            return "{}"
        return value
    return value


def parse_range(text: str) -> list[int]:
    """Expand ``"2 - 5"`` into ``[2, 3, 4, 5]``; invalid bounds yield ``[]``."""

    parts = text.split(_RANGE_SEPARATOR)
    start = _leading_int(parts[0])
    end = _leading_int(parts[1]) if len(parts) > 1 else None
    if start is None or end is None:
        return []
    return list(range(start, end + 1))


def _coerce_array(field: str, value: object) -> object:
    if not isinstance(value, str):
        return value

    trimmed = value.strip()
    parsed: Any
    if trimmed.startswith("[") and trimmed.endswith("]"):
        try:
            parsed = json.loads(trimmed)
        except ValueError:
            parsed = [item.strip() for item in trimmed[1:-1].split(",") if item.strip()]
    elif _RANGE_SEPARATOR in value:
        parsed = parse_range(value)
    else:
        parsed = [item.strip() for item in value.split(",") if item.strip()]

    if any(marker in field for marker in _NUMERIC_ARRAY_MARKERS) and isinstance(parsed, list):
        numbers: list[object] = []
        for item in parsed:
            if isinstance(item, (int, float)) and not isinstance(item, bool):
                numbers.append(item)
                continue
            converted = _js_number(item)
            if not math.isnan(converted):
                numbers.append(_tidy_number(converted))
        return numbers
    return parsed


def _js_number(value: object) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if value is None:
        return 0.0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if "_" in text:
            return math.nan
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def _reject_constant(token: str) -> object:
    raise ValueError(f"non-standard JSON constant {token}")


def _tidy_number(value: float) -> int | float:
    if math.isfinite(value) and value.is_integer():
        return int(value)
    return value


def _leading_int(text: str) -> int | None:
    match = _LEADING_INT_RE.match(text)
    if match is None:
        return None
    return int(match.group(1))


__all__ = [
    "ENTITY_EXAMPLES",
    "coerce_cell",
    "coerce_row",
    "coerce_rows",
    "is_array_field",
    "is_json_field",
    "is_number_field",
    "parse_range",
]
