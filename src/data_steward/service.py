"""
data-steward - service boundary

File: src/data_steward/service.py
Last updated: 2026-10-18

Purpose
- JSON-in / JSON-out functions consumed by upload, grid and export collaborators.

What should be included in this file
- ``validate_payload``: ``{clients, workers, tasks}`` -> ``{errors: [...]}``.
- ``generate_structured_payload``: prompt + schema name + provider config -> value or ``{error}``.
- ``dispatch_feature``: named AI-assisted feature over a JSON request body.

Functional requirements
- Validation never raises for well-formed payloads.
- Provider and mediator failures become ``{"error": ...}`` at this boundary.

Non-functional requirements
- No state kept between calls.
"""

from __future__ import annotations

import asyncio
import random as random_module
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, TypeAlias

from data_steward.assist.apply import apply_corrections, apply_modifications
from data_steward.assist.features import DataAssistant
from data_steward.assist.schemas import UnknownSchemaError, get_schema
from data_steward.domain.records import DataSnapshot, ValidationError
from data_steward.observability.logging import get_logger
from data_steward.providers.base import ProviderError, ProviderRegistry, ProviderSettings
from data_steward.structured.mediator import (
    SleepFn,
    StructuredOutputError,
    StructuredOutputMediator,
)
from data_steward.structured.retry import RandomFn, RetryPolicy
from data_steward.validation.engine import summarize, validate

logger = get_logger(__name__)

FeatureHandler: TypeAlias = Callable[
    [DataAssistant, Mapping[str, Any]], Awaitable[dict[str, Any]]
]

_SETTINGS_KEYS: dict[str, tuple[str, ...]] = {
    "kind": ("kind", "provider"),
    "model": ("model",),
    "base_url": ("base_url", "baseUrl"),
    "api_key_env": ("api_key_env", "apiKeyEnv"),
    "timeout_seconds": ("timeout_seconds", "timeoutSeconds"),
    "temperature": ("temperature",),
}


class UnknownFeatureError(KeyError):
    def __str__(self) -> str:
        return str(self.args[0])


def validate_payload(payload: Mapping[str, object]) -> dict[str, object]:
    snapshot = DataSnapshot.from_payload(payload)
    errors = validate(snapshot.clients, snapshot.workers, snapshot.tasks)
    return {
        "errors": [error.to_dict() for error in errors],
        "summary": summarize(errors).to_dict(),
    }


def provider_settings_from_payload(
    provider_config: ProviderSettings | Mapping[str, object],
    *,
    defaults: ProviderSettings | None = None,
) -> ProviderSettings:
    """Accept snake_case or camelCase provider keys; fill gaps from ``defaults``."""

    if isinstance(provider_config, ProviderSettings):
        return provider_config

    values: dict[str, Any] = {}
    if defaults is not None:
        values = {
            "kind": defaults.kind,
            "model": defaults.model,
            "base_url": defaults.base_url,
            "api_key_env": defaults.api_key_env,
            "timeout_seconds": defaults.timeout_seconds,
            "temperature": defaults.temperature,
        }
    for target, aliases in _SETTINGS_KEYS.items():
        for alias in aliases:
            if alias in provider_config and provider_config[alias] is not None:
                values[target] = provider_config[alias]
                break
    if "kind" not in values or "model" not in values:
        raise ValueError("provider config requires 'provider' (or 'kind') and 'model'")
    return ProviderSettings(**values)


async def generate_structured_payload(
    prompt: str,
    schema_name: str,
    provider_config: ProviderSettings | Mapping[str, object],
    *,
    policy: RetryPolicy | None = None,
    registry: ProviderRegistry | None = None,
    sleep: SleepFn = asyncio.sleep,
    random_fn: RandomFn = random_module.random,
) -> Any:
    """One mediated call; failures are reported as ``{"error": message}``."""

    try:
        schema = get_schema(schema_name)
        settings = provider_settings_from_payload(provider_config)
    except (UnknownSchemaError, ValueError, TypeError) as exc:
        return {"error": str(exc)}

    mediator = StructuredOutputMediator(
        settings, policy=policy, registry=registry, sleep=sleep, random_fn=random_fn
    )
    try:
        return await mediator.generate(prompt, schema)
    except (StructuredOutputError, ProviderError) as exc:
        logger.warning(
            "structured_generation_failed",
            schema_name=schema.name,
            provider=settings.kind,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return {"error": str(exc)}


async def dispatch_feature(
    feature: str,
    request: Mapping[str, Any],
    assistant: DataAssistant,
) -> dict[str, Any]:
    """Run one named feature over a JSON request body and return its JSON response."""

    try:
        handler = FEATURES[feature]
    except KeyError:
        expected = ", ".join(FEATURES)
        raise UnknownFeatureError(
            f"unknown feature {feature!r}; expected one of: {expected}"
        ) from None
    return await handler(assistant, request)


async def _parse_data(assistant: DataAssistant, request: Mapping[str, Any]) -> dict[str, Any]:
    result = await assistant.parse_rows(request["entityType"], _rows(request.get("data")))
    return result.to_dict()


async def _search(assistant: DataAssistant, request: Mapping[str, Any]) -> dict[str, Any]:
    result = await assistant.search(str(request["query"]), _snapshot(request))
    return result.to_dict()


async def _create_rule(assistant: DataAssistant, request: Mapping[str, Any]) -> dict[str, Any]:
    result = await assistant.create_rule(
        str(request["naturalLanguage"]),
        _snapshot(request),
        _rows(request.get("existingRules")),
    )
    return result.to_dict()


async def _suggest_rules(assistant: DataAssistant, request: Mapping[str, Any]) -> dict[str, Any]:
    suggestions = await assistant.suggest_rules(
        _snapshot(request), _rows(request.get("existingRules"))
    )
    return {"suggestions": [item.to_dict() for item in suggestions]}


async def _generate_corrections(
    assistant: DataAssistant, request: Mapping[str, Any]
) -> dict[str, Any]:
    errors = [ValidationError.from_dict(item) for item in _rows(request.get("errors"))]
    snapshot = _snapshot(request)
    corrections = await assistant.suggest_corrections(snapshot, errors)
    response: dict[str, Any] = {"corrections": [item.to_dict() for item in corrections]}
    if request.get("autoApply"):
        applied = apply_corrections(snapshot, corrections)
        response["data"] = applied.snapshot.to_payload()
        response["applied"] = applied.applied
        response["errors"] = _error_dicts(applied.snapshot)
    return response


async def _modify_data(assistant: DataAssistant, request: Mapping[str, Any]) -> dict[str, Any]:
    snapshot = _snapshot(request)
    suggestions = await assistant.suggest_modifications(str(request["instruction"]), snapshot)
    response: dict[str, Any] = {"suggestions": [item.to_dict() for item in suggestions]}
    if request.get("apply"):
        min_confidence = float(request.get("minConfidence", 0.0))
        applied = apply_modifications(snapshot, suggestions, min_confidence=min_confidence)
        response["data"] = applied.snapshot.to_payload()
        response["applied"] = applied.applied
        response["errors"] = _error_dicts(applied.snapshot)
    return response


def validate_snapshot_rows(snapshot: DataSnapshot) -> list[ValidationError]:
    return validate(snapshot.clients, snapshot.workers, snapshot.tasks)


def _error_dicts(snapshot: DataSnapshot) -> list[dict[str, Any]]:
    return [error.to_dict() for error in validate_snapshot_rows(snapshot)]


def _snapshot(request: Mapping[str, Any]) -> DataSnapshot:
    data = request.get("data")
    if data is None:
        return DataSnapshot()
    if not isinstance(data, Mapping):
        raise ValueError("'data' must be an object with clients, workers and tasks")
    return DataSnapshot.from_payload(data)


def _rows(value: object) -> list[Mapping[str, Any]]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ValueError("expected a list of objects")
    rows: list[Mapping[str, Any]] = []
    for item in value:
        if not isinstance(item, Mapping):
            raise ValueError("expected a list of objects")
        rows.append(item)
    return rows


FEATURES: dict[str, FeatureHandler] = {
    "parse-data": _parse_data,
    "search": _search,
    "create-rule": _create_rule,
    "suggest-rules": _suggest_rules,
    "generate-corrections": _generate_corrections,
    "modify-data": _modify_data,
}

__all__ = [
    "FEATURES",
    "UnknownFeatureError",
    "dispatch_feature",
    "generate_structured_payload",
    "provider_settings_from_payload",
    "validate_payload",
    "validate_snapshot_rows",
]
