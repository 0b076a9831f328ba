"""
data-steward - unit tests for AI-assisted features

File: tests/unit/assist/test_features.py
Last updated: 2026-10-18

Purpose
- Validate each feature's prompt inputs, response parsing and documented fallbacks.

What this test file should cover
- Column mapping followed by local coercion of every row.
- Sample sizes and counts embedded in prompts.
- Degradation to fallbacks on provider failure or exhausted retries.
- Invalid items in otherwise valid responses are discarded.
"""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass, field

import pytest

from data_steward.assist.features import (
    RULE_CREATION_FAILED,
    SEARCH_FAILED_EXPLANATION,
    DataAssistant,
)
from data_steward.domain.records import (
    DataSnapshot,
    EntityType,
    ErrorKind,
    Severity,
    ValidationError,
)
from data_steward.providers.base import (
    ProviderRegistry,
    ProviderSettings,
    ProviderUnavailableError,
)
from data_steward.structured.retry import RetryPolicy


@dataclass(slots=True)
class _ScriptedProvider:
    outcomes: deque[object]
    provider_name: str = "scripted"
    prompts: list[str] = field(default_factory=list)

    async def generate_text(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.outcomes:
            raise RuntimeError("scripted outcomes exhausted")
        outcome = self.outcomes.popleft()
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, str):
            return outcome
        return json.dumps(outcome)

    async def is_healthy(self) -> bool:
        return True


@dataclass(slots=True)
class _SleepRecorder:
    calls: list[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _assistant(*outcomes: object) -> tuple[DataAssistant, _ScriptedProvider]:
    provider = _ScriptedProvider(outcomes=deque(outcomes))
    registry = ProviderRegistry()
    registry.register("scripted", lambda settings: provider)
    assistant = DataAssistant(
        ProviderSettings(kind="scripted", model="scripted-model"),
        policy=RetryPolicy(max_attempts=2),
        registry=registry,
        sleep=_SleepRecorder(),
        random_fn=lambda: 0.5,
    )
    return assistant, provider


def _snapshot() -> DataSnapshot:
    return DataSnapshot(
        clients=tuple(
            {"ClientID": f"C{n}", "ClientName": f"Client {n}", "PriorityLevel": n}
            for n in (1, 2, 3)
        ),
        workers=({"WorkerID": "W1", "Skills": ["python"], "AvailableSlots": [1]},),
        tasks=({"TaskID": "T1", "Duration": 1},),
    )


def _unavailable() -> ProviderUnavailableError:
    return ProviderUnavailableError(provider="scripted", detail="connection refused")


async def test_parse_rows_applies_inferred_mapping_to_every_row() -> None:
    rows = [
        {"Client Id": f"C{n}", "Priority": str(n), "Tasks": "T1, T2", "Junk": "x"}
        for n in range(1, 6)
    ]
    assistant, provider = _assistant(
        {
            "columnMappings": {
                "Client Id": "ClientID",
                "Priority": "PriorityLevel",
                "Tasks": "RequestedTaskIDs",
            },
            "processedRows": [],
            "suggestions": ["Column 'Junk' was not mapped"],
        }
    )

    result = await assistant.parse_rows("clients", rows)

    assert result.degraded is False
    assert len(result.processed_rows) == 5
    assert result.processed_rows[4] == {
        "ClientID": "C5",
        "PriorityLevel": 5,
        "RequestedTaskIDs": ["T1", "T2"],
    }
    assert result.to_dict()["suggestions"] == ["Column 'Junk' was not mapped"]
    prompt = provider.prompts[0]
    assert "Client Id, Priority, Tasks, Junk" in prompt
    assert '"Client Id": "C3"' in prompt
    assert '"Client Id": "C4"' not in prompt


async def test_parse_rows_with_no_rows_skips_the_provider() -> None:
    assistant, provider = _assistant()

    result = await assistant.parse_rows(EntityType.TASKS, [])

    assert result.processed_rows == ()
    assert provider.prompts == []


async def test_parse_rows_falls_back_to_original_rows() -> None:
    rows = [{"Client Id": "C1"}]
    assistant, provider = _assistant("garbage", "still garbage")

    result = await assistant.parse_rows("clients", rows)

    assert result.degraded is True
    assert result.processed_rows == ({"Client Id": "C1"},)
    assert result.column_mappings == {}
    assert len(provider.prompts) == 2


async def test_search_returns_matches_and_samples_two_rows() -> None:
    assistant, provider = _assistant(
        {
            "clients": [{"ClientID": "C2"}],
            "workers": [],
            "tasks": [],
            "explanation": "Clients with priority 2",
        }
    )

    result = await assistant.search("priority two", _snapshot())

    assert result.clients == ({"ClientID": "C2"},)
    assert result.explanation == "Clients with priority 2"
    prompt = provider.prompts[0]
    assert "priority two" in prompt
    assert '"ClientID": "C2"' in prompt
    assert '"ClientID": "C3"' not in prompt


async def test_search_degrades_when_provider_is_unavailable() -> None:
    assistant, provider = _assistant(_unavailable())

    result = await assistant.search("anything", _snapshot())

    assert result.degraded is True
    assert result.explanation == SEARCH_FAILED_EXPLANATION
    assert result.to_dict() == {
        "clients": [],
        "workers": [],
        "tasks": [],
        "explanation": SEARCH_FAILED_EXPLANATION,
    }
    assert len(provider.prompts) == 1


async def test_create_rule_returns_supported_rule() -> None:
    assistant, _ = _assistant(
        {
            "rule": {
                "type": "coRun",
                "name": "T1 with T2",
                "description": "Run T1 and T2 together",
                "config": {"tasks": ["T1", "T2"]},
            }
        }
    )

    result = await assistant.create_rule("T1 and T2 must run together", _snapshot())

    assert result.ok
    assert result.rule is not None
    assert result.rule.config == {"tasks": ["T1", "T2"]}
    assert result.to_dict()["rule"]["type"] == "coRun"  # type: ignore[index]


@pytest.mark.parametrize(
    ("response", "expected_error"),
    [
        (
            {"rule": {"type": "teleport", "name": "n", "description": "d", "config": {}}},
            "Unsupported rule type: teleport",
        ),
        ({"error": "Cannot express this as a rule"}, "Cannot express this as a rule"),
        ({}, RULE_CREATION_FAILED),
    ],
)
async def test_create_rule_reports_errors(response: object, expected_error: str) -> None:
    assistant, _ = _assistant(response)

    result = await assistant.create_rule("do something", _snapshot())

    assert result.ok is False
    assert result.error == expected_error
    assert result.degraded is False


async def test_create_rule_degrades_on_provider_failure() -> None:
    assistant, _ = _assistant(_unavailable())

    result = await assistant.create_rule("do something", _snapshot(), [{"name": "r1"}])

    assert result.degraded is True
    assert result.to_dict() == {"error": RULE_CREATION_FAILED}


async def test_suggest_rules_lists_existing_rules_in_prompt() -> None:
    assistant, provider = _assistant(
        {
            "suggestions": [
                {
                    "id": "s1",
                    "type": "loadLimit",
                    "name": "Cap group A",
                    "description": "Limit load for group A",
                    "config": {"group": "A", "maxSlotsPerPhase": 2},
                    "reasoning": "Group A workers are overloaded",
                }
            ]
        }
    )

    suggestions = await assistant.suggest_rules(
        _snapshot(), [{"name": "Existing", "type": "coRun"}]
    )

    assert [item.rule_id for item in suggestions] == ["s1"]
    assert suggestions[0].to_dict()["reasoning"] == "Group A workers are overloaded"
    assert "- Existing (coRun)" in provider.prompts[0]


async def test_suggest_rules_falls_back_to_empty_list() -> None:
    assistant, _ = _assistant(_unavailable())

    assert await assistant.suggest_rules(_snapshot()) == []


async def test_suggest_corrections_without_errors_skips_the_provider() -> None:
    assistant, provider = _assistant()

    assert await assistant.suggest_corrections(_snapshot(), []) == []
    assert provider.prompts == []


async def test_suggest_corrections_discards_invalid_items() -> None:
    error = ValidationError(
        error_id="out-of-range-clients-2-PriorityLevel",
        kind=ErrorKind.OUT_OF_RANGE,
        message="PriorityLevel must be between 1 and 5, got: 9",
        severity=Severity.ERROR,
        entity_type=EntityType.CLIENTS,
        row_index=2,
        column_name="PriorityLevel",
    )
    item = {
        "id": "c1",
        "errorId": error.error_id,
        "description": "Clamp priority",
        "entityType": "clients",
        "rowIndex": 2,
        "field": "PriorityLevel",
        "currentValue": 9,
        "suggestedValue": 5,
        "confidence": 0.9,
        "reasoning": "Nearest valid value",
        "autoApplicable": True,
    }
    assistant, provider = _assistant({"corrections": [item, dict(item, id="c2", rowIndex=-1)]})

    corrections = await assistant.suggest_corrections(_snapshot(), [error])

    assert [suggestion.suggestion_id for suggestion in corrections] == ["c1"]
    assert corrections[0].is_safe_to_apply
    assert error.error_id in provider.prompts[0]


async def test_suggest_modifications_parses_changes() -> None:
    assistant, provider = _assistant(
        {
            "suggestions": [
                {
                    "id": "m1",
                    "description": "Raise priorities",
                    "entityType": "clients",
                    "changes": [
                        {
                            "rowIndex": 0,
                            "field": "PriorityLevel",
                            "oldValue": 1,
                            "newValue": 2,
                            "confidence": 0.75,
                        }
                    ],
                    "reasoning": "Instruction asked for +1",
                }
            ]
        }
    )

    suggestions = await assistant.suggest_modifications("raise every priority by one", _snapshot())

    assert suggestions[0].changes[0].new_value == 2
    assert "raise every priority by one" in provider.prompts[0]


async def test_unexpected_errors_are_not_swallowed() -> None:
    assistant, _ = _assistant(RuntimeError("bug in provider"))

    with pytest.raises(RuntimeError, match="bug in provider"):
        await assistant.search("q", _snapshot())
