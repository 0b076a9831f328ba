"""
data-steward - structured-output mediator

File: src/data_steward/structured/mediator.py
Last updated: 2026-10-18

Purpose
- Single entry point turning a prompt plus target schema into a validated value.

What should be included in this file
- Prompt augmentation with the schema example and formatting constraints.
- Clean -> parse -> conform pipeline per attempt.
- Attempt budget and rate-limit backoff driven by RetryState.

Functional requirements
- At-most-once success: the first conforming value is returned immediately.
- Parse/shape failures and call timeouts are attempt failures.
- Rate limits back off on their own budget; other provider errors propagate.
- Exhaustion raises StructuredOutputError carrying the last underlying error.

Non-functional requirements
- No shared mutable state between invocations; the provider is built per call.
- Sleep and randomness are injectable so tests never wait.
"""

from __future__ import annotations

import asyncio
import json
import random as random_module
from collections.abc import Awaitable, Callable
from typing import Any, TypeAlias

from data_steward.observability.logging import get_logger, preview_text
from data_steward.providers.base import (
    ProviderRateLimitError,
    ProviderRegistry,
    ProviderSettings,
    ProviderTimeoutError,
    TextProvider,
)
from data_steward.providers.factory import build_provider
from data_steward.structured.cleaning import clean_response
from data_steward.structured.retry import RandomFn, RetryPolicy, RetryState
from data_steward.structured.schema import SchemaIssue, StructuredSchema

logger = get_logger(__name__)

SleepFn: TypeAlias = Callable[[float], Awaitable[None]]

_FORMAT_RULES = (
    "- Return ONLY the JSON object, no explanations or additional text",
    "- Ensure all required fields are present",
    "- Use proper data types (strings, numbers, arrays, objects)",
    "- Do not include markdown formatting or code blocks",
    "- The response must be parseable as JSON",
)


class ResponseParseError(ValueError):
    """Cleaned model output is not valid JSON."""

    def __init__(self, detail: str, *, preview: str = "") -> None:
        self.detail = detail
        self.preview = preview
        super().__init__(f"response is not valid JSON: {detail}")


class SchemaMismatchError(ValueError):
    """Parsed model output does not conform to the target schema."""

    def __init__(self, schema_name: str, issues: tuple[SchemaIssue, ...]) -> None:
        self.schema_name = schema_name
        self.issues = issues
        listed = "; ".join(str(issue) for issue in issues[:5])
        if len(issues) > 5:
            listed += f"; ... ({len(issues) - 5} more)"
        super().__init__(f"response does not match schema {schema_name!r}: {listed}")


class StructuredOutputError(RuntimeError):
    """Terminal failure after the attempt or rate-limit budget is exhausted."""

    def __init__(
        self,
        *,
        schema_name: str,
        attempts: int,
        rate_limit_retries: int,
        last_error: BaseException | None,
    ) -> None:
        self.schema_name = schema_name
        self.attempts = attempts
        self.rate_limit_retries = rate_limit_retries
        self.last_error = last_error
        super().__init__(
            f"structured output for schema {schema_name!r} failed after "
            f"attempts={attempts} rate_limit_retries={rate_limit_retries}: {last_error}"
        )


def augment_prompt(prompt: str, schema: StructuredSchema) -> str:
    """Append the schema example and strict JSON-only formatting rules."""

    example = json.dumps(schema.example(), indent=2, ensure_ascii=False)
    rules = "\n".join(_FORMAT_RULES)
    return (
        f"{prompt}\n\n"
        "IMPORTANT: You must respond with ONLY valid JSON that matches this exact structure:\n"
        f"{example}\n\n"
        f"Rules:\n{rules}\n\n"
        f"Example response format:\n{example}"
    )


def decode_response(raw: str, schema: StructuredSchema) -> Any:
    """Clean, parse and conform one raw response; raise on failure."""

    cleaned = clean_response(raw)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ResponseParseError(str(exc), preview=preview_text(cleaned)) from exc
    result = schema.check(parsed)
    if not result.ok:
        raise SchemaMismatchError(schema.name, result.issues)
    return result.value


class StructuredOutputMediator:
    """Bounded retry/repair loop around one provider's ``generate_text``."""

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        policy: RetryPolicy | None = None,
        registry: ProviderRegistry | None = None,
        sleep: SleepFn = asyncio.sleep,
        random_fn: RandomFn = random_module.random,
    ) -> None:
        self._settings = settings
        self._policy = policy if policy is not None else RetryPolicy()
        self._registry = registry
        self._sleep = sleep
        self._random_fn = random_fn

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def generate(self, prompt: str, schema: StructuredSchema) -> Any:
        provider = build_provider(self._settings, registry=self._registry)
        full_prompt = augment_prompt(prompt, schema)
        state = RetryState(policy=self._policy, random_fn=self._random_fn)
        log = logger.bind(
            provider=self._settings.kind, model=self._settings.model, schema_name=schema.name
        )
        log.debug(
            "mediator_prompt_prepared",
            prompt_chars=len(full_prompt),
            prompt_preview=preview_text(prompt),
        )

        while True:
            state.on_call()
            failure: BaseException
            try:
                raw = await self._call(provider, full_prompt)
            except ProviderRateLimitError as exc:
                if not state.on_rate_limited(exc):
                    log.error(
                        "mediator_rate_limit_exhausted",
                        rate_limit_retries=state.rate_limit_retries,
                        attempts=state.attempts,
                    )
                    raise self._terminal(schema, state) from exc
                log.warning(
                    "provider_rate_limited",
                    retry=state.rate_limit_retries,
                    delay_seconds=round(state.next_delay, 3),
                )
                await self._sleep(state.next_delay)
                continue
            except ProviderTimeoutError as exc:
                failure = exc
            else:
                try:
                    value = decode_response(raw, schema)
                except (ResponseParseError, SchemaMismatchError) as exc:
                    failure = exc
                else:
                    log.info(
                        "mediator_succeeded",
                        attempt=state.attempt_number,
                        calls=state.calls,
                        rate_limit_retries=state.rate_limit_retries,
                    )
                    return value

            attempt = state.attempt_number
            if not state.on_attempt_failure(failure):
                log.error("mediator_exhausted", attempts=state.attempts, error=str(failure))
                raise self._terminal(schema, state) from failure
            log.warning(
                "mediator_attempt_failed",
                attempt=attempt,
                max_attempts=self._policy.max_attempts,
                error=str(failure),
            )
            await self._sleep(state.next_delay)

    async def _call(self, provider: TextProvider, prompt: str) -> str:
        timeout = self._policy.call_timeout_seconds
        if timeout is None:
            return await provider.generate_text(prompt)
        try:
            return await asyncio.wait_for(provider.generate_text(prompt), timeout=timeout)
        except TimeoutError as exc:
            raise ProviderTimeoutError(
                provider=self._settings.kind,
                detail=f"provider call exceeded {timeout:g}s deadline",
            ) from exc

    @staticmethod
    def _terminal(schema: StructuredSchema, state: RetryState) -> StructuredOutputError:
        return StructuredOutputError(
            schema_name=schema.name,
            attempts=state.attempts,
            rate_limit_retries=state.rate_limit_retries,
            last_error=state.last_error,
        )


async def generate_structured(
    prompt: str,
    schema: StructuredSchema,
    settings: ProviderSettings,
    *,
    policy: RetryPolicy | None = None,
    registry: ProviderRegistry | None = None,
    sleep: SleepFn = asyncio.sleep,
    random_fn: RandomFn = random_module.random,
) -> Any:
    """One mediated call; see ``StructuredOutputMediator.generate``."""

    mediator = StructuredOutputMediator(
        settings, policy=policy, registry=registry, sleep=sleep, random_fn=random_fn
    )
    return await mediator.generate(prompt, schema)


__all__ = [
    "ResponseParseError",
    "SchemaMismatchError",
    "SleepFn",
    "StructuredOutputError",
    "StructuredOutputMediator",
    "augment_prompt",
    "decode_response",
    "generate_structured",
]
