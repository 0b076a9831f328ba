"""Named target schemas for the AI-assisted features."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Final

from data_steward.domain.records import EntityType
from data_steward.structured.schema import (
    StructuredSchema,
    any_value,
    array_of,
    boolean,
    enum_of,
    map_of,
    number,
    object_of,
    optional,
    string,
)

RULE_TYPES: Final[tuple[str, ...]] = (
    "coRun",
    "slotRestriction",
    "loadLimit",
    "phaseWindow",
    "patternMatch",
    "precedence",
)

RULE_TYPE_DESCRIPTIONS: Final[Mapping[str, str]] = MappingProxyType(
    {
        "coRun": "Tasks that must run together",
        "slotRestriction": "Minimum common slots requirement",
        "loadLimit": "Maximum slots per phase for workers",
        "phaseWindow": "Allowed phases for specific tasks",
        "patternMatch": "Regex-based rules",
        "precedence": "Rule priority ordering",
    }
)

_ENTITY_TYPE = enum_of(*(entity.value for entity in EntityType))
_CONFIDENCE = number(minimum=0, maximum=1)

COLUMN_MAPPING = StructuredSchema(
    name="column_mapping",
    description="Maps uploaded headers onto entity fields and normalizes sample rows.",
    root=object_of(
        {
            "columnMappings": map_of(string()),
            "processedRows": array_of(map_of(any_value())),
            "suggestions": array_of(string()),
        }
    ),
)

SEARCH_RESULTS = StructuredSchema(
    name="search_results",
    description="Records matching a natural-language query, per entity.",
    root=object_of(
        {
            "clients": array_of(any_value()),
            "workers": array_of(any_value()),
            "tasks": array_of(any_value()),
            "explanation": string(),
        }
    ),
)

RULE_CREATION = StructuredSchema(
    name="rule_creation",
    description="One business rule synthesized from a natural-language request.",
    root=object_of(
        {
            "rule": optional(
                object_of(
                    {
                        "type": string(),
                        "name": string(),
                        "description": string(),
                        "config": any_value(),
                    }
                )
            ),
            "error": optional(string()),
        }
    ),
)

RULE_SUGGESTIONS = StructuredSchema(
    name="rule_suggestions",
    description="Data-driven business rule recommendations.",
    root=object_of(
        {
            "suggestions": array_of(
                object_of(
                    {
                        "id": string(),
                        "type": string(),
                        "name": string(),
                        "description": string(),
                        "config": any_value(),
                        "reasoning": string(),
                    }
                )
            ),
        }
    ),
)

CORRECTIONS = StructuredSchema(
    name="corrections",
    description="Field-level fixes for validation errors.",
    root=object_of(
        {
            "corrections": array_of(
                object_of(
                    {
                        "id": string(),
                        "errorId": string(),
                        "description": string(),
                        "entityType": _ENTITY_TYPE,
                        "rowIndex": number(),
                        "field": string(),
                        "currentValue": any_value(),
                        "suggestedValue": any_value(),
                        "confidence": _CONFIDENCE,
                        "reasoning": string(),
                        "autoApplicable": boolean(),
                    }
                )
            ),
        }
    ),
)

MODIFICATIONS = StructuredSchema(
    name="modifications",
    description="Cell edits implementing a natural-language instruction.",
    root=object_of(
        {
            "suggestions": array_of(
                object_of(
                    {
                        "id": string(),
                        "description": string(),
                        "entityType": _ENTITY_TYPE,
                        "changes": array_of(
                            object_of(
                                {
                                    "rowIndex": number(),
                                    "field": string(),
                                    "oldValue": any_value(),
                                    "newValue": any_value(),
                                    "confidence": _CONFIDENCE,
                                }
                            )
                        ),
                        "reasoning": string(),
                    }
                )
            ),
        }
    ),
)

SCHEMAS: Final[Mapping[str, StructuredSchema]] = MappingProxyType(
    {
        schema.name: schema
        for schema in (
            COLUMN_MAPPING,
            SEARCH_RESULTS,
            RULE_CREATION,
            RULE_SUGGESTIONS,
            CORRECTIONS,
            MODIFICATIONS,
        )
    }
)


class UnknownSchemaError(KeyError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"unknown schema {name!r}; expected one of: {', '.join(SCHEMAS)}")

    def __str__(self) -> str:
        return str(self.args[0])


def get_schema(name: str) -> StructuredSchema:
    try:
        return SCHEMAS[name.strip()]
    except KeyError:
        raise UnknownSchemaError(name) from None


def schema_names() -> tuple[str, ...]:
    return tuple(SCHEMAS)


__all__ = [
    "COLUMN_MAPPING",
    "CORRECTIONS",
    "MODIFICATIONS",
    "RULE_CREATION",
    "RULE_SUGGESTIONS",
    "RULE_TYPES",
    "RULE_TYPE_DESCRIPTIONS",
    "SCHEMAS",
    "SEARCH_RESULTS",
    "UnknownSchemaError",
    "get_schema",
    "schema_names",
]
