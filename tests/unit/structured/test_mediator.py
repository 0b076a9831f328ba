"""
data-steward - unit tests for the structured-output mediator

File: tests/unit/structured/test_mediator.py
Last updated: 2026-10-18

Purpose
- Validate the clean -> parse -> conform loop and both retry budgets.

What this test file should cover
- First conforming response wins; no further provider calls.
- Parse and shape failures consume the attempt budget with a fixed delay.
- Rate limits back off exponentially without consuming attempts.
- Call timeouts are attempt failures; other provider errors propagate.

Functional requirements
- Offline; sleeps are recorded, never awaited for real.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field

import pytest

from data_steward.providers.base import (
    ProviderAuthenticationError,
    ProviderRateLimitError,
    ProviderRegistry,
    ProviderSettings,
    ProviderTimeoutError,
)
from data_steward.structured.mediator import (
    ResponseParseError,
    SchemaMismatchError,
    StructuredOutputError,
    StructuredOutputMediator,
    augment_prompt,
    decode_response,
)
from data_steward.structured.retry import BackoffConfig, RetryPolicy
from data_steward.structured.schema import StructuredSchema, number, object_of, optional, string

_SCHEMA = StructuredSchema(
    name="answer",
    root=object_of({"answer": string(), "score": optional(number())}),
)
_SETTINGS = ProviderSettings(kind="scripted", model="scripted-model")


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
        if outcome is _HANG:
            await asyncio.Event().wait()
        return str(outcome)

    async def is_healthy(self) -> bool:
        return True


@dataclass(slots=True)
class _SleepRecorder:
    calls: list[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


_HANG = object()


def _rate_limited() -> ProviderRateLimitError:
    return ProviderRateLimitError(provider="scripted", detail="429 Too Many Requests")


def _mediator(
    outcomes: list[object],
    *,
    policy: RetryPolicy | None = None,
) -> tuple[StructuredOutputMediator, _ScriptedProvider, _SleepRecorder]:
    provider = _ScriptedProvider(outcomes=deque(outcomes))
    registry = ProviderRegistry()
    registry.register("scripted", lambda settings: provider)
    sleep = _SleepRecorder()
    mediator = StructuredOutputMediator(
        _SETTINGS,
        policy=policy,
        registry=registry,
        sleep=sleep,
        random_fn=lambda: 0.5,
    )
    return mediator, provider, sleep


async def test_fenced_response_succeeds_on_first_call() -> None:
    mediator, provider, sleep = _mediator(['```json\n{"answer": "yes", "note": "x"}\n```'])

    value = await mediator.generate("Is it valid?", _SCHEMA)

    assert value == {"answer": "yes"}
    assert len(provider.prompts) == 1
    assert sleep.calls == []


async def test_prompt_is_augmented_with_schema_example() -> None:
    mediator, provider, _ = _mediator(['{"answer": "ok"}'])

    await mediator.generate("Summarize the data.", _SCHEMA)

    sent = provider.prompts[0]
    assert sent.startswith("Summarize the data.\n\nIMPORTANT:")
    assert '"answer": "example_string"' in sent
    assert "- Return ONLY the JSON object" in sent
    assert sent == augment_prompt("Summarize the data.", _SCHEMA)


async def test_rate_limit_twice_then_success_backs_off_exponentially() -> None:
    mediator, provider, sleep = _mediator(
        [_rate_limited(), _rate_limited(), '{"answer": "done"}']
    )

    value = await mediator.generate("q", _SCHEMA)

    assert value == {"answer": "done"}
    assert len(provider.prompts) == 3
    assert sleep.calls == [1.0, 2.0]


async def test_malformed_json_exhausts_attempt_budget() -> None:
    mediator, provider, sleep = _mediator(["not json", "{still not", "nope"])

    with pytest.raises(StructuredOutputError) as excinfo:
        await mediator.generate("q", _SCHEMA)

    assert len(provider.prompts) == 3
    assert sleep.calls == [1.0, 1.0]
    assert excinfo.value.attempts == 3
    assert excinfo.value.rate_limit_retries == 0
    assert isinstance(excinfo.value.last_error, ResponseParseError)
    assert isinstance(excinfo.value.__cause__, ResponseParseError)


async def test_shape_mismatch_is_retried() -> None:
    mediator, provider, sleep = _mediator(['{"score": 1}', '{"answer": "fixed"}'])

    value = await mediator.generate("q", _SCHEMA)

    assert value == {"answer": "fixed"}
    assert len(provider.prompts) == 2
    assert sleep.calls == [1.0]


async def test_rate_limits_do_not_consume_attempts() -> None:
    policy = RetryPolicy(max_attempts=1, rate_limit=BackoffConfig(max_retries=3))
    mediator, provider, _ = _mediator(
        [_rate_limited(), _rate_limited(), '{"answer": "ok"}'], policy=policy
    )

    assert await mediator.generate("q", _SCHEMA) == {"answer": "ok"}
    assert len(provider.prompts) == 3


async def test_rate_limit_budget_exhaustion_is_terminal() -> None:
    policy = RetryPolicy(rate_limit=BackoffConfig(max_retries=2))
    mediator, provider, sleep = _mediator([_rate_limited()] * 3, policy=policy)

    with pytest.raises(StructuredOutputError) as excinfo:
        await mediator.generate("q", _SCHEMA)

    assert len(provider.prompts) == 3
    assert sleep.calls == [1.0, 2.0]
    assert excinfo.value.attempts == 0
    assert excinfo.value.rate_limit_retries == 2
    assert isinstance(excinfo.value.last_error, ProviderRateLimitError)


async def test_provider_timeout_counts_as_attempt_failure() -> None:
    timeout = ProviderTimeoutError(provider="scripted", detail="deadline")
    mediator, provider, _ = _mediator([timeout, '{"answer": "late"}'])

    assert await mediator.generate("q", _SCHEMA) == {"answer": "late"}
    assert len(provider.prompts) == 2


async def test_call_deadline_is_enforced() -> None:
    policy = RetryPolicy(max_attempts=2, call_timeout_seconds=0.01)
    mediator, provider, _ = _mediator([_HANG, '{"answer": "second"}'], policy=policy)

    assert await mediator.generate("q", _SCHEMA) == {"answer": "second"}
    assert len(provider.prompts) == 2


async def test_non_retryable_provider_errors_propagate() -> None:
    auth = ProviderAuthenticationError(provider="scripted", detail="bad key", http_status=401)
    mediator, provider, sleep = _mediator([auth, '{"answer": "unused"}'])

    with pytest.raises(ProviderAuthenticationError):
        await mediator.generate("q", _SCHEMA)
    assert len(provider.prompts) == 1
    assert sleep.calls == []


def test_decode_response_reports_schema_issues() -> None:
    with pytest.raises(SchemaMismatchError, match=r"\$\.answer: required field missing"):
        decode_response('{"score": 0.4}', _SCHEMA)
    with pytest.raises(ResponseParseError):
        decode_response("plain text", _SCHEMA)
