"""
data-steward - unit tests for the JSON service boundary

File: tests/unit/test_service.py
Last updated: 2026-10-18

Purpose
- Validate the JSON-in / JSON-out functions used by upload, grid and export callers.

What this test file should cover
- validate_payload wire shape and summary.
- Provider config normalization (snake_case and camelCase).
- generate_structured_payload error reporting as {"error": ...}.
- Feature dispatch, including auto-apply of corrections followed by re-validation.
"""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass, field

import pytest

from data_steward.assist.features import DataAssistant
from data_steward.providers.base import (
    ProviderAuthenticationError,
    ProviderRegistry,
    ProviderSettings,
)
from data_steward.service import (
    FEATURES,
    UnknownFeatureError,
    dispatch_feature,
    generate_structured_payload,
    provider_settings_from_payload,
    validate_payload,
)
from data_steward.structured.retry import RetryPolicy


@dataclass(slots=True)
class _ScriptedProvider:
    outcomes: deque[object]
    provider_name: str = "scripted"
    prompts: list[str] = field(default_factory=list)

    async def generate_text(self, prompt: str) -> str:
        self.prompts.append(prompt)
        outcome = self.outcomes.popleft()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome if isinstance(outcome, str) else json.dumps(outcome)

    async def is_healthy(self) -> bool:
        return True


async def _no_sleep(seconds: float) -> None:
    return None


def _registry(provider: _ScriptedProvider) -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register("scripted", lambda settings: provider)
    return registry


def _assistant(*outcomes: object) -> tuple[DataAssistant, _ScriptedProvider]:
    provider = _ScriptedProvider(outcomes=deque(outcomes))
    assistant = DataAssistant(
        ProviderSettings(kind="scripted", model="m"),
        policy=RetryPolicy(max_attempts=1),
        registry=_registry(provider),
        sleep=_no_sleep,
        random_fn=lambda: 0.5,
    )
    return assistant, provider


_OUT_OF_RANGE_DATA = {
    "clients": [{"ClientID": "C1", "ClientName": "Acme", "PriorityLevel": 9}],
    "workers": [],
    "tasks": [],
}


def test_validate_payload_returns_wire_errors_and_summary() -> None:
    response = validate_payload(_OUT_OF_RANGE_DATA)

    (error,) = response["errors"]
    assert error["type"] == "OutOfRange"
    assert error["entityType"] == "clients"
    assert error["rowIndex"] == 0
    assert error["columnName"] == "PriorityLevel"
    assert error["message"] == "PriorityLevel must be between 1 and 5, got: 9"
    assert response["summary"] == {"errors": 1, "warnings": 0, "byKind": {"OutOfRange": 1}}


def test_validate_payload_accepts_absent_collections() -> None:
    assert validate_payload({}) == {
        "errors": [],
        "summary": {"errors": 0, "warnings": 0, "byKind": {}},
    }


def test_provider_settings_accept_camel_case_keys() -> None:
    settings = provider_settings_from_payload(
        {
            "provider": "Ollama",
            "model": "llama3",
            "baseUrl": "http://gpu:11434",
            "timeoutSeconds": 5,
        }
    )

    assert settings.kind == "ollama"
    assert settings.base_url == "http://gpu:11434"
    assert settings.timeout_seconds == 5


def test_provider_settings_fill_gaps_from_defaults() -> None:
    defaults = ProviderSettings(kind="gemini", model="gemini-1.5-pro", api_key_env="GEMINI_API_KEY")

    settings = provider_settings_from_payload({"model": "gemini-1.5-flash"}, defaults=defaults)

    assert settings.kind == "gemini"
    assert settings.model == "gemini-1.5-flash"
    assert settings.api_key_env == "GEMINI_API_KEY"


def test_provider_settings_require_kind_and_model() -> None:
    with pytest.raises(ValueError, match="requires 'provider'"):
        provider_settings_from_payload({"model": "llama3"})


async def test_generate_structured_payload_returns_value() -> None:
    provider = _ScriptedProvider(
        outcomes=deque(['```json\n{"clients": [], "workers": [], "tasks": [], '
                        '"explanation": "none"}\n```'])
    )

    value = await generate_structured_payload(
        "find nothing",
        "search_results",
        {"provider": "scripted", "model": "m"},
        registry=_registry(provider),
        sleep=_no_sleep,
    )

    assert value == {"clients": [], "workers": [], "tasks": [], "explanation": "none"}


async def test_generate_structured_payload_reports_unknown_schema() -> None:
    value = await generate_structured_payload("p", "nope", {"provider": "ollama", "model": "m"})

    assert value == {
        "error": "unknown schema 'nope'; expected one of: column_mapping, search_results, "
        "rule_creation, rule_suggestions, corrections, modifications"
    }


async def test_generate_structured_payload_reports_provider_errors() -> None:
    provider = _ScriptedProvider(
        outcomes=deque([ProviderAuthenticationError("bad key", provider="scripted")])
    )

    value = await generate_structured_payload(
        "p",
        "search_results",
        {"provider": "scripted", "model": "m"},
        policy=RetryPolicy(max_attempts=1),
        registry=_registry(provider),
        sleep=_no_sleep,
    )

    assert set(value) == {"error"}
    assert "bad key" in value["error"]


async def test_generate_structured_payload_reports_exhausted_attempts() -> None:
    provider = _ScriptedProvider(outcomes=deque(["not json", "still not json"]))

    value = await generate_structured_payload(
        "p",
        "search_results",
        {"provider": "scripted", "model": "m"},
        policy=RetryPolicy(max_attempts=2),
        registry=_registry(provider),
        sleep=_no_sleep,
    )

    assert set(value) == {"error"}
    assert len(provider.prompts) == 2


def test_feature_names() -> None:
    assert tuple(FEATURES) == (
        "parse-data",
        "search",
        "create-rule",
        "suggest-rules",
        "generate-corrections",
        "modify-data",
    )


async def test_dispatch_rejects_unknown_feature() -> None:
    assistant, _ = _assistant()

    with pytest.raises(UnknownFeatureError, match="unknown feature 'export'"):
        await dispatch_feature("export", {}, assistant)


async def test_dispatch_search_returns_wire_shape() -> None:
    assistant, _ = _assistant(
        {"clients": [{"ClientID": "C1"}], "workers": [], "tasks": [], "explanation": "by id"}
    )

    response = await dispatch_feature(
        "search", {"query": "client one", "data": _OUT_OF_RANGE_DATA}, assistant
    )

    assert response == {
        "clients": [{"ClientID": "C1"}],
        "workers": [],
        "tasks": [],
        "explanation": "by id",
    }


async def test_dispatch_generate_corrections_auto_applies_and_revalidates() -> None:
    errors = validate_payload(_OUT_OF_RANGE_DATA)["errors"]
    correction = {
        "id": "c1",
        "errorId": errors[0]["id"],
        "description": "Clamp priority",
        "entityType": "clients",
        "rowIndex": 0,
        "field": "PriorityLevel",
        "currentValue": 9,
        "suggestedValue": 5,
        "confidence": 0.95,
        "reasoning": "Nearest valid value",
        "autoApplicable": True,
    }
    assistant, _ = _assistant({"corrections": [correction]})

    response = await dispatch_feature(
        "generate-corrections",
        {"data": _OUT_OF_RANGE_DATA, "errors": errors, "autoApply": True},
        assistant,
    )

    assert response["corrections"] == [correction]
    assert response["applied"] == 1
    assert response["data"]["clients"][0]["PriorityLevel"] == 5
    assert response["errors"] == []
    assert _OUT_OF_RANGE_DATA["clients"][0]["PriorityLevel"] == 9


async def test_dispatch_modify_data_honours_min_confidence() -> None:
    assistant, _ = _assistant(
        {
            "suggestions": [
                {
                    "id": "m1",
                    "description": "Fix priority",
                    "entityType": "clients",
                    "changes": [
                        {
                            "rowIndex": 0,
                            "field": "PriorityLevel",
                            "oldValue": 9,
                            "newValue": 4,
                            "confidence": 0.6,
                        }
                    ],
                    "reasoning": "asked",
                }
            ]
        }
    )

    response = await dispatch_feature(
        "modify-data",
        {
            "instruction": "set priority to four",
            "data": _OUT_OF_RANGE_DATA,
            "apply": True,
            "minConfidence": 0.7,
        },
        assistant,
    )

    assert response["applied"] == 0
    assert response["data"]["clients"][0]["PriorityLevel"] == 9
    assert len(response["errors"]) == 1


async def test_dispatch_rejects_malformed_data() -> None:
    assistant, _ = _assistant()

    with pytest.raises(ValueError, match="'data' must be an object"):
        await dispatch_feature("search", {"query": "q", "data": [1, 2]}, assistant)
