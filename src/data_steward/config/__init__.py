"""Configuration loading, validation and redaction."""

from data_steward.config.loader import (
    ConfigLoadError,
    dump_effective_config,
    effective_config,
    load_config,
)
from data_steward.config.runtime import provider_settings_from_config, retry_policy_from_config
from data_steward.config.schema import (
    DEFAULT_CONFIG,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    StewardConfig,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
    validate_config,
)

__all__ = [
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "StewardConfig",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "effective_config",
    "load_config",
    "merge_config",
    "provider_settings_from_config",
    "redact_config",
    "retry_policy_from_config",
]
