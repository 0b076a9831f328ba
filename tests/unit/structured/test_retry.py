"""Unit tests for backoff and retry bookkeeping."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from data_steward.structured.retry import (
    BackoffConfig,
    RetryPolicy,
    RetryState,
    compute_backoff_delay,
)


def test_backoff_doubles_until_capped() -> None:
    config = BackoffConfig(initial_delay_seconds=1.0, max_delay_seconds=5.0, jitter_ratio=0.0)

    delays = [compute_backoff_delay(retry_number=n, config=config) for n in range(1, 6)]

    assert delays == [1.0, 2.0, 4.0, 5.0, 5.0]


@given(
    retry_number=st.integers(min_value=1, max_value=20),
    random_value=st.floats(min_value=0.0, max_value=1.0),
)
def test_jittered_backoff_stays_within_bounds(retry_number: int, random_value: float) -> None:
    config = BackoffConfig(max_delay_seconds=60.0, jitter_ratio=0.2)

    delay = compute_backoff_delay(
        retry_number=retry_number, config=config, random_fn=lambda: random_value
    )

    assert 0.0 <= delay <= config.max_delay_seconds


def test_backoff_rejects_out_of_range_random_values() -> None:
    with pytest.raises(ValueError, match="random_fn"):
        compute_backoff_delay(retry_number=1, config=BackoffConfig(), random_fn=lambda: 1.5)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_retries": -1},
        {"multiplier": 0.5},
        {"initial_delay_seconds": 10.0, "max_delay_seconds": 1.0},
        {"jitter_ratio": 1.5},
    ],
)
def test_backoff_config_validation(kwargs: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        BackoffConfig(**kwargs)  # type: ignore[arg-type]


def test_retry_policy_requires_at_least_one_attempt() -> None:
    with pytest.raises(ValueError, match="max_attempts"):
        RetryPolicy(max_attempts=0)


def test_attempt_budget_is_independent_of_rate_limit_budget() -> None:
    state = RetryState(
        policy=RetryPolicy(max_attempts=2, rate_limit=BackoffConfig(max_retries=1)),
        random_fn=lambda: 0.5,
    )

    assert state.on_rate_limited(RuntimeError("429")) is True
    assert state.next_delay == 1.0
    assert state.attempts == 0
    assert state.on_rate_limited(RuntimeError("429")) is False

    assert state.on_attempt_failure(ValueError("bad json")) is True
    assert state.next_delay == 1.0
    assert state.attempt_number == 2
    assert state.on_attempt_failure(ValueError("bad json")) is False
    assert str(state.last_error) == "bad json"
