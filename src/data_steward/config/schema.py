"""
data-steward - configuration schema and validation.

File: src/data_steward/config/schema.py
Last updated: 2026-10-18

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums, and numeric constraints.
- Deterministic deep-merge helpers and redaction rules for sensitive fields.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Reject embedded secrets; only ``*_env`` names of environment variables are allowed.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, NotRequired, TypedDict

from data_steward.constants import CONFIG_SCHEMA_VERSION, PROVIDER_KINDS

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

_ENV_NAME_PATTERN = re.compile(r"^[A-Z_][A-Z0-9_]*$")
_URL_PATTERN = re.compile(r"^https?://[^\s/]+", re.IGNORECASE)
_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

_SENSITIVE_KEY_TOKENS: Final[frozenset[str]] = frozenset(
    {
        "secret",
        "token",
        "password",
        "passwd",
        "api",
        "key",
        "apikey",
        "private",
        "credential",
        "credentials",
        "auth",
    }
)
_SENSITIVE_KEY_PHRASES: Final[tuple[str, ...]] = (
    "api_key",
    "access_token",
    "client_secret",
    "private_key",
    "password",
    "secret",
)

# Settings whose names contain a sensitive phrase but never hold a secret.
_NON_SECRET_KEYS: Final[frozenset[str]] = frozenset({"redact_secrets"})


class MetaConfig(TypedDict):
    schema_version: int


class OllamaSettings(TypedDict):
    base_url: str
    model: str
    timeout_seconds: float


class GeminiSettings(TypedDict):
    api_key_env: str
    model: str
    timeout_seconds: float


class OpenAISettings(TypedDict):
    api_key_env: str
    model: str
    timeout_seconds: float
    base_url: NotRequired[str]


class ProvidersConfig(TypedDict):
    default: Literal["ollama", "gemini", "openai"]
    ollama: OllamaSettings
    gemini: GeminiSettings
    openai: OpenAISettings


class SamplingConfig(TypedDict):
    temperature: float


class MediatorConfig(TypedDict):
    max_attempts: int
    attempt_delay_seconds: float
    rate_limit_max_retries: int
    rate_limit_base_delay_seconds: float
    rate_limit_max_delay_seconds: float
    rate_limit_jitter_ratio: float
    call_timeout_seconds: float


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "text"]
    log_dir: str
    log_to_stderr: bool
    redact_secrets: bool


class StewardConfig(TypedDict):
    meta: MetaConfig
    providers: ProvidersConfig
    sampling: SamplingConfig
    mediator: MediatorConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[StewardConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "providers": {
        "default": "ollama",
        "ollama": {
            "base_url": "http://localhost:11434",
            "model": "llama3.1:8b",
            "timeout_seconds": 60.0,
        },
        "gemini": {
            "api_key_env": "GEMINI_API_KEY",
            "model": "gemini-1.5-pro",
            "timeout_seconds": 60.0,
        },
        "openai": {
            "api_key_env": "OPENAI_API_KEY",
            "model": "gpt-3.5-turbo",
            "timeout_seconds": 60.0,
        },
    },
    "sampling": {
        "temperature": 0.2,
    },
    "mediator": {
        "max_attempts": 3,
        "attempt_delay_seconds": 1.0,
        "rate_limit_max_retries": 5,
        "rate_limit_base_delay_seconds": 1.0,
        "rate_limit_max_delay_seconds": 60.0,
        "rate_limit_jitter_ratio": 0.2,
        "call_timeout_seconds": 60.0,
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "json",
        "log_dir": "logs/",
        "log_to_stderr": False,
        "redact_secrets": True,
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> StewardConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade steward.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the data-steward runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Return deterministic redacted representation for logs."""

    if not isinstance(config, Mapping):
        return {}
    redacted = _redact_value(config, parent_key=None)
    if isinstance(redacted, dict):
        return redacted
    return {}


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    sections = {
        "meta": _validate_meta,
        "providers": _validate_providers,
        "sampling": _validate_sampling,
        "mediator": _validate_mediator,
        "observability": _validate_observability,
    }
    _reject_unknown_keys(payload, set(sections), "", issues)
    _require_keys(payload, set(sections), "", issues)

    out: dict[str, Any] = {}
    for key, validator in sections.items():
        raw = payload.get(key)
        if raw is None:
            continue
        section = _as_object(raw, key, issues)
        if section is None:
            continue
        out[key] = validator(section, key, issues)
    return out


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    _require_keys(payload, {"schema_version"}, path, issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_int(
            payload["schema_version"], _join(path, "schema_version"), issues, minimum=1
        )
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(_join(path, "schema_version"), migration_guidance(parsed))
    return out


def _validate_providers(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"default", *PROVIDER_KINDS}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "default" in payload:
        parsed_default = _as_enum(
            payload["default"], _join(path, "default"), issues, allowed_values=PROVIDER_KINDS
        )
        if parsed_default is not None:
            out["default"] = parsed_default

    for kind in PROVIDER_KINDS:
        raw = payload.get(kind)
        if raw is None:
            continue
        section_path = _join(path, kind)
        section = _as_object(raw, section_path, issues)
        if section is None:
            continue
        out[kind] = _validate_provider_settings(section, section_path, issues, kind=kind)
    return out


def _validate_provider_settings(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    kind: str,
) -> dict[str, Any]:
    if kind == "ollama":
        allowed = {"base_url", "model", "timeout_seconds"}
        required = allowed
    elif kind == "openai":
        allowed = {"api_key_env", "model", "timeout_seconds", "base_url"}
        required = {"api_key_env", "model", "timeout_seconds"}
    else:
        allowed = {"api_key_env", "model", "timeout_seconds"}
        required = allowed
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, required, path, issues)

    out: dict[str, Any] = {}
    if "api_key_env" in payload:
        parsed_env = _as_env_name(payload["api_key_env"], _join(path, "api_key_env"), issues)
        if parsed_env is not None:
            out["api_key_env"] = parsed_env

    if "model" in payload:
        parsed_model = _as_str(payload["model"], _join(path, "model"), issues)
        if parsed_model is not None:
            out["model"] = parsed_model

    if "base_url" in payload:
        parsed_url = _as_url(payload["base_url"], _join(path, "base_url"), issues)
        if parsed_url is not None:
            out["base_url"] = parsed_url

    if "timeout_seconds" in payload:
        parsed_timeout = _as_float(
            payload["timeout_seconds"],
            _join(path, "timeout_seconds"),
            issues,
            minimum=0.001,
        )
        if parsed_timeout is not None:
            out["timeout_seconds"] = parsed_timeout

    return out


def _validate_sampling(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"temperature"}, path, issues)
    _require_keys(payload, {"temperature"}, path, issues)

    out: dict[str, Any] = {}
    if "temperature" in payload:
        parsed = _as_float(
            payload["temperature"], _join(path, "temperature"), issues, minimum=0.0, maximum=2.0
        )
        if parsed is not None:
            out["temperature"] = parsed
    return out


def _validate_mediator(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    int_fields = {"max_attempts": 1, "rate_limit_max_retries": 0}
    float_fields: dict[str, tuple[float, float | None]] = {
        "attempt_delay_seconds": (0.0, None),
        "rate_limit_base_delay_seconds": (0.0, None),
        "rate_limit_max_delay_seconds": (0.0, None),
        "rate_limit_jitter_ratio": (0.0, 1.0),
        "call_timeout_seconds": (0.001, None),
    }
    allowed = set(int_fields) | set(float_fields)
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for key in sorted(int_fields):
        if key in payload:
            parsed_int = _as_int(payload[key], _join(path, key), issues, minimum=int_fields[key])
            if parsed_int is not None:
                out[key] = parsed_int
    for key in sorted(float_fields):
        if key in payload:
            minimum, maximum = float_fields[key]
            parsed_float = _as_float(
                payload[key], _join(path, key), issues, minimum=minimum, maximum=maximum
            )
            if parsed_float is not None:
                out[key] = parsed_float

    base = out.get("rate_limit_base_delay_seconds")
    cap = out.get("rate_limit_max_delay_seconds")
    if base is not None and cap is not None and base > cap:
        issues.add(
            _join(path, "rate_limit_base_delay_seconds"),
            "must be <= rate_limit_max_delay_seconds",
        )
    return out


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"log_level", "log_format", "log_dir", "log_to_stderr", "redact_secrets"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}

    if "log_level" in payload:
        parsed_log_level = _as_enum(
            payload["log_level"],
            _join(path, "log_level"),
            issues,
            allowed_values=("DEBUG", "INFO", "WARNING", "ERROR"),
        )
        if parsed_log_level is not None:
            out["log_level"] = parsed_log_level

    if "log_format" in payload:
        parsed_log_format = _as_enum(
            payload["log_format"],
            _join(path, "log_format"),
            issues,
            allowed_values=("json", "text"),
        )
        if parsed_log_format is not None:
            out["log_format"] = parsed_log_format

    if "log_dir" in payload:
        parsed_log_dir = _as_path_text(payload["log_dir"], _join(path, "log_dir"), issues)
        if parsed_log_dir is not None:
            out["log_dir"] = parsed_log_dir

    for flag in ("log_to_stderr", "redact_secrets"):
        if flag in payload:
            parsed_flag = _as_bool(payload[flag], _join(path, flag), issues)
            if parsed_flag is not None:
                out[flag] = parsed_flag

    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_url(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if not _URL_PATTERN.match(parsed):
        issues.add(path, "must be an http(s) URL (example: http://localhost:11434)")
        return None
    return parsed.rstrip("/")


def _as_env_name(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if not _ENV_NAME_PATTERN.fullmatch(parsed):
        issues.add(path, "must be an env var name (example: GEMINI_API_KEY)")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    if maximum is not None and parsed > maximum:
        issues.add(path, f"must be <= {maximum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key in allowed:
            continue
        key_path = _join(path, key)
        if _looks_sensitive_key(key):
            issues.add(
                key_path,
                "embedded secret values are forbidden; use an *_env key with an env var name",
            )
        else:
            issues.add(key_path, "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _looks_sensitive_key(key: str) -> bool:
    normalized = _normalize_key(key)
    if normalized.endswith("_env"):
        return False
    if normalized in _NON_SECRET_KEYS:
        return False
    if any(phrase in normalized for phrase in _SENSITIVE_KEY_PHRASES):
        return True
    tokens = tuple(token for token in normalized.split("_") if token)
    return any(token in _SENSITIVE_KEY_TOKENS for token in tokens)


def _normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        item = value[key]
        out[key] = _deep_copy_mapping(item) if isinstance(item, Mapping) else copy.deepcopy(item)
    return out


def _redact_value(value: object, parent_key: str | None) -> object:
    if isinstance(value, Mapping):
        out: dict[str, object] = {}
        for key in sorted(value):
            item = value[key]
            if _key_is_sensitive_for_redaction(key):
                out[key] = "<redacted>"
            else:
                out[key] = _redact_value(item, key)
        return out
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, parent_key) for item in value]
    return value


def _key_is_sensitive_for_redaction(key: str) -> bool:
    normalized = _normalize_key(key)
    if normalized.endswith("_env"):
        return True
    return _looks_sensitive_key(normalized)


__all__ = [
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "StewardConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "redact_config",
    "validate_config",
]
