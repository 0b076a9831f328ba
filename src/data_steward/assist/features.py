"""
data-steward - AI-assisted features

File: src/data_steward/assist/features.py
Last updated: 2026-10-18

Purpose
- Six provider-backed helpers over one mediated call each: column mapping, search,
  rule synthesis, rule suggestions, correction suggestions and data modification.

What should be included in this file
- Prompt rendering through PromptTemplateEngine with per-feature variable whitelists.
- One StructuredOutputMediator invocation per feature call.
- Documented fallbacks when the provider is unavailable or the retry budget is spent.

Functional requirements
- Prompts carry only small samples (1-3 rows per entity) plus record counts.
- StructuredOutputError and ProviderError degrade to the fallback and are logged as
  ``assist_feature_degraded``; everything else propagates.

Non-functional requirements
- Stateless between calls; safe to run many features concurrently.
"""

from __future__ import annotations

import asyncio
import random as random_module
from collections.abc import Mapping, Sequence
from typing import Any

from data_steward.assist.ingest import ENTITY_EXAMPLES, coerce_rows
from data_steward.assist.models import ParseResult, RuleCreationResult, RuleProposal, SearchResult
from data_steward.assist.prompts import PromptTemplateEngine, to_prompt_json
from data_steward.assist.schemas import (
    COLUMN_MAPPING,
    CORRECTIONS,
    MODIFICATIONS,
    RULE_CREATION,
    RULE_SUGGESTIONS,
    RULE_TYPE_DESCRIPTIONS,
    RULE_TYPES,
    SEARCH_RESULTS,
)
from data_steward.domain.records import (
    CorrectionSuggestion,
    DataSnapshot,
    EntityType,
    ModificationSuggestion,
    ValidationError,
)
from data_steward.observability.logging import get_logger
from data_steward.providers.base import ProviderError, ProviderRegistry, ProviderSettings
from data_steward.structured.mediator import (
    SleepFn,
    StructuredOutputError,
    StructuredOutputMediator,
)
from data_steward.structured.retry import RandomFn, RetryPolicy
from data_steward.structured.schema import StructuredSchema

logger = get_logger(__name__)

SEARCH_FAILED_EXPLANATION = "Search failed. Please try again."
RULE_CREATION_FAILED = "Failed to create rule"

_MAPPING_SAMPLE_ROWS = 3
_SEARCH_SAMPLE_ROWS = 2
_RULE_SAMPLE_ROWS = 1
_SUGGESTION_SAMPLE_ROWS = 3
_CORRECTION_SAMPLE_ROWS = 2


class _FeatureDegraded(Exception):
    pass


class DataAssistant:
    """Entry point for the AI-assisted features against one provider configuration."""

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        policy: RetryPolicy | None = None,
        registry: ProviderRegistry | None = None,
        templates: PromptTemplateEngine | None = None,
        sleep: SleepFn = asyncio.sleep,
        random_fn: RandomFn = random_module.random,
    ) -> None:
        self._settings = settings
        self._policy = policy
        self._registry = registry
        self._templates = templates if templates is not None else PromptTemplateEngine()
        self._sleep = sleep
        self._random_fn = random_fn

    async def parse_rows(
        self, entity_type: EntityType | str, rows: Sequence[Mapping[str, object]]
    ) -> ParseResult:
        """Infer a header mapping from a sample, then coerce every row locally."""

        entity = EntityType(entity_type)
        originals = tuple(dict(row) for row in rows)
        if not originals:
            return ParseResult(processed_rows=())

        sample = [dict(row) for row in originals[:_MAPPING_SAMPLE_ROWS]]
        variables = {
            "entity_type": entity.value,
            "headers": ", ".join(str(key) for key in sample[0]),
            "sample_rows": to_prompt_json(sample),
            "expected_example": to_prompt_json(dict(ENTITY_EXAMPLES[entity])),
        }
        try:
            value = await self._mediate("column_mapping", variables, COLUMN_MAPPING)
        except _FeatureDegraded:
            return ParseResult(processed_rows=originals, degraded=True)

        mappings = {str(key): str(target) for key, target in value["columnMappings"].items()}
        return ParseResult(
            processed_rows=tuple(coerce_rows(originals, mappings)),
            column_mappings=mappings,
            suggestions=tuple(value["suggestions"]),
        )

    async def search(self, query: str, snapshot: DataSnapshot) -> SearchResult:
        variables = {"query": query, **_counts_and_samples(snapshot, _SEARCH_SAMPLE_ROWS)}
        try:
            value = await self._mediate("search", variables, SEARCH_RESULTS)
        except _FeatureDegraded:
            return SearchResult(
                clients=(),
                workers=(),
                tasks=(),
                explanation=SEARCH_FAILED_EXPLANATION,
                degraded=True,
            )
        return SearchResult(
            clients=tuple(value["clients"]),
            workers=tuple(value["workers"]),
            tasks=tuple(value["tasks"]),
            explanation=value["explanation"],
        )

    async def create_rule(
        self,
        request: str,
        snapshot: DataSnapshot,
        existing_rules: Sequence[Mapping[str, object]] = (),
    ) -> RuleCreationResult:
        variables = {
            "request": request,
            "rule_types": "\n".join(
                f"- {name}: {text}" for name, text in RULE_TYPE_DESCRIPTIONS.items()
            ),
            **_counts(snapshot),
            "sample": to_prompt_json(_sample(snapshot, _RULE_SAMPLE_ROWS)),
            "existing_rule_count": len(existing_rules),
        }
        try:
            value = await self._mediate("rule_creation", variables, RULE_CREATION)
        except _FeatureDegraded:
            return RuleCreationResult(error=RULE_CREATION_FAILED, degraded=True)

        raw_rule = value.get("rule")
        error = value.get("error")
        if raw_rule is None:
            return RuleCreationResult(error=error or RULE_CREATION_FAILED)
        rule = RuleProposal.from_dict(raw_rule)
        if rule.rule_type not in RULE_TYPES:
            return RuleCreationResult(error=f"Unsupported rule type: {rule.rule_type}")
        return RuleCreationResult(rule=rule, error=error)

    async def suggest_rules(
        self,
        snapshot: DataSnapshot,
        existing_rules: Sequence[Mapping[str, object]] = (),
    ) -> list[RuleProposal]:
        variables = {
            **_counts(snapshot),
            "sample": to_prompt_json(_sample(snapshot, _SUGGESTION_SAMPLE_ROWS)),
            "existing_rule_count": len(existing_rules),
            "existing_rules": "\n".join(
                f"- {rule.get('name', '')} ({rule.get('type', '')})" for rule in existing_rules
            ),
            "rule_types": ", ".join(RULE_TYPES),
        }
        try:
            value = await self._mediate("rule_suggestions", variables, RULE_SUGGESTIONS)
        except _FeatureDegraded:
            return []
        return [RuleProposal.from_dict(item) for item in value["suggestions"]]

    async def suggest_corrections(
        self,
        snapshot: DataSnapshot,
        errors: Sequence[ValidationError],
    ) -> list[CorrectionSuggestion]:
        if not errors:
            return []
        variables = {
            **_counts(snapshot),
            "sample": to_prompt_json(_sample(snapshot, _CORRECTION_SAMPLE_ROWS)),
            "errors": to_prompt_json([error.to_dict() for error in errors]),
        }
        try:
            value = await self._mediate("corrections", variables, CORRECTIONS)
        except _FeatureDegraded:
            return []
        return _parse_items(
            value["corrections"], CorrectionSuggestion.from_dict, feature="corrections"
        )

    async def suggest_modifications(
        self, instruction: str, snapshot: DataSnapshot
    ) -> list[ModificationSuggestion]:
        variables = {
            "instruction": instruction,
            **_counts_and_samples(snapshot, _SEARCH_SAMPLE_ROWS),
        }
        try:
            value = await self._mediate("modifications", variables, MODIFICATIONS)
        except _FeatureDegraded:
            return []
        return _parse_items(
            value["suggestions"], ModificationSuggestion.from_dict, feature="modifications"
        )

    async def _mediate(
        self,
        template: str,
        variables: Mapping[str, object],
        schema: StructuredSchema,
    ) -> Any:
        rendered = self._templates.render(
            template, variables=variables, allowed_variables=tuple(variables)
        )
        mediator = StructuredOutputMediator(
            self._settings,
            policy=self._policy,
            registry=self._registry,
            sleep=self._sleep,
            random_fn=self._random_fn,
        )
        logger.debug(
            "assist_prompt_rendered",
            feature=schema.name,
            template_version=rendered.template_metadata.template_version,
            prompt_hash=rendered.prompt_hash,
        )
        try:
            return await mediator.generate(rendered.prompt, schema)
        except (StructuredOutputError, ProviderError) as exc:
            logger.warning(
                "assist_feature_degraded",
                feature=schema.name,
                provider=self._settings.kind,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise _FeatureDegraded(schema.name) from exc


def _counts(snapshot: DataSnapshot) -> dict[str, int]:
    return {f"{entity}_count": count for entity, count in snapshot.counts().items()}


def _sample(snapshot: DataSnapshot, size: int) -> dict[str, list[object]]:
    return {entity.value: list(snapshot.rows(entity)[:size]) for entity in EntityType}


def _counts_and_samples(snapshot: DataSnapshot, size: int) -> dict[str, object]:
    variables: dict[str, object] = dict(_counts(snapshot))
    for entity, rows in _sample(snapshot, size).items():
        variables[f"{entity}_sample"] = to_prompt_json(rows)
    return variables


def _parse_items(items: Sequence[Mapping[str, object]], parse: Any, *, feature: str) -> list[Any]:
    parsed: list[Any] = []
    for index, item in enumerate(items):
        try:
            parsed.append(parse(item))
        except (TypeError, ValueError) as exc:
            logger.info("assist_item_discarded", feature=feature, index=index, error=str(exc))
    return parsed


__all__ = [
    "DataAssistant",
    "RULE_CREATION_FAILED",
    "SEARCH_FAILED_EXPLANATION",
]
