"""Translate a validated config mapping into provider settings and retry policy."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from data_steward.constants import PROVIDER_KINDS
from data_steward.providers.base import ProviderSettings
from data_steward.structured.retry import BackoffConfig, RetryPolicy


def provider_settings_from_config(
    config: Mapping[str, Any], kind: str | None = None
) -> ProviderSettings:
    """Resolve the settings for ``kind`` (default: ``providers.default``)."""

    providers = config["providers"]
    selected = (kind or providers["default"]).strip().lower()
    if selected not in PROVIDER_KINDS:
        expected = ", ".join(PROVIDER_KINDS)
        raise ValueError(f"unknown provider kind {selected!r}; expected one of: {expected}")

    section = providers[selected]
    return ProviderSettings(
        kind=selected,
        model=section["model"],
        base_url=section.get("base_url"),
        api_key_env=section.get("api_key_env"),
        timeout_seconds=section.get("timeout_seconds"),
        temperature=config["sampling"]["temperature"],
    )


def retry_policy_from_config(config: Mapping[str, Any]) -> RetryPolicy:
    mediator = config["mediator"]
    return RetryPolicy(
        max_attempts=mediator["max_attempts"],
        attempt_delay_seconds=mediator["attempt_delay_seconds"],
        rate_limit=BackoffConfig(
            max_retries=mediator["rate_limit_max_retries"],
            initial_delay_seconds=mediator["rate_limit_base_delay_seconds"],
            max_delay_seconds=mediator["rate_limit_max_delay_seconds"],
            jitter_ratio=mediator["rate_limit_jitter_ratio"],
        ),
        call_timeout_seconds=mediator["call_timeout_seconds"],
    )


__all__ = ["provider_settings_from_config", "retry_policy_from_config"]
