"""
data-steward - retry policy and backoff state machine

File: src/data_steward/structured/retry.py
Last updated: 2026-10-18

Purpose
- Bounded attempt budget for parse/shape failures.
- Separate exponential backoff budget for provider rate limiting.

What should be included in this file
- BackoffConfig / compute_backoff_delay (bounded exponential backoff with jitter).
- RetryPolicy (both budgets) and RetryState (attempt count, last error, next delay).

Functional requirements
- Rate-limit retries never consume the general attempt budget.
- Jittered delays stay within [0, max_delay_seconds].

Non-functional requirements
- Deterministic under an injected random source.
"""

from __future__ import annotations

import random as random_module
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeAlias

RandomFn: TypeAlias = Callable[[], float]

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_ATTEMPT_DELAY_SECONDS = 1.0


@dataclass(frozen=True, slots=True)
class BackoffConfig:
    """Bounded exponential backoff policy."""

    max_retries: int = 5
    initial_delay_seconds: float = 1.0
    multiplier: float = 2.0
    max_delay_seconds: float = 60.0
    jitter_ratio: float = 0.2

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must be >= 0")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if self.max_delay_seconds < 0:
            raise ValueError("max_delay_seconds must be >= 0")
        if self.initial_delay_seconds > self.max_delay_seconds:
            raise ValueError("initial_delay_seconds must be <= max_delay_seconds")
        if not (0.0 <= self.jitter_ratio <= 1.0):
            raise ValueError("jitter_ratio must be between 0.0 and 1.0")


def compute_backoff_delay(
    *,
    retry_number: int,
    config: BackoffConfig,
    random_fn: RandomFn = random_module.random,
) -> float:
    """Return bounded exponential backoff delay for retry N (1-based)."""

    if retry_number <= 0:
        raise ValueError("retry_number must be > 0")

    base_delay = config.initial_delay_seconds * (config.multiplier ** (retry_number - 1))
    bounded_delay = min(base_delay, config.max_delay_seconds)

    if config.jitter_ratio == 0.0:
        return bounded_delay

    random_value = random_fn()
    if not (0.0 <= random_value <= 1.0):
        raise ValueError("random_fn must return values in [0.0, 1.0]")

    max_jitter = bounded_delay * config.jitter_ratio
    jitter = ((random_value * 2.0) - 1.0) * max_jitter
    return max(0.0, min(config.max_delay_seconds, bounded_delay + jitter))


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    attempt_delay_seconds: float = DEFAULT_ATTEMPT_DELAY_SECONDS
    rate_limit: BackoffConfig = field(default_factory=BackoffConfig)
    call_timeout_seconds: float | None = 60.0

    def __post_init__(self) -> None:
        if isinstance(self.max_attempts, bool) or self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.attempt_delay_seconds < 0:
            raise ValueError("attempt_delay_seconds must be >= 0")
        if self.call_timeout_seconds is not None and self.call_timeout_seconds <= 0:
            raise ValueError("call_timeout_seconds must be > 0")


@dataclass(slots=True)
class RetryState:
    """Per-invocation retry bookkeeping.

    ``attempts`` counts failed general attempts, ``rate_limit_retries`` counts
    backoff retries granted after rate limiting, and ``next_delay`` is the wait
    before the next provider call. Each ``on_*`` transition returns whether
    another call is allowed.
    """

    policy: RetryPolicy
    random_fn: RandomFn = random_module.random
    attempts: int = 0
    rate_limit_retries: int = 0
    calls: int = 0
    last_error: BaseException | None = None
    next_delay: float = 0.0

    @property
    def attempt_number(self) -> int:
        """1-based number of the general attempt currently in flight."""

        return self.attempts + 1

    def on_call(self) -> None:
        self.calls += 1
        self.next_delay = 0.0

    def on_attempt_failure(self, error: BaseException) -> bool:
        self.attempts += 1
        self.last_error = error
        if self.attempts >= self.policy.max_attempts:
            self.next_delay = 0.0
            return False
        self.next_delay = self.policy.attempt_delay_seconds
        return True

    def on_rate_limited(self, error: BaseException) -> bool:
        self.last_error = error
        if self.rate_limit_retries >= self.policy.rate_limit.max_retries:
            self.next_delay = 0.0
            return False
        self.rate_limit_retries += 1
        self.next_delay = compute_backoff_delay(
            retry_number=self.rate_limit_retries,
            config=self.policy.rate_limit,
            random_fn=self.random_fn,
        )
        return True


__all__ = [
    "BackoffConfig",
    "DEFAULT_ATTEMPT_DELAY_SECONDS",
    "DEFAULT_MAX_ATTEMPTS",
    "RandomFn",
    "RetryPolicy",
    "RetryState",
    "compute_backoff_delay",
]
