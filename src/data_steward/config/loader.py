"""
data-steward - runtime config loader.

File: src/data_steward/config/loader.py
Last updated: 2026-10-18

Purpose
- Build the effective steward config from layered sources.

What should be included in this file
- Layer order, lowest first: defaults, legacy env, steward.toml, STEWARD_* env, CLI.
- One explicit env table per config section (providers, sampling, mediator, observability).
- log_dir resolution relative to the config file.
- Redacted JSON dump of the effective config.

Functional requirements
- AI_PROVIDER / OLLAMA_BASE_URL / OLLAMA_MODEL only fill values the file leaves unset.
- A malformed env value fails with the variable name in the message.
- Every layer combination is re-checked by the strict schema.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Final

from data_steward.config.schema import (
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
)
from data_steward.constants import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    LEGACY_OLLAMA_BASE_URL_ENV,
    LEGACY_OLLAMA_MODEL_ENV,
    LEGACY_PROVIDER_ENV,
)

EnvParser = Callable[[str], object]


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def _parse_text(raw: str) -> object:
    return raw


def _parse_int(raw: str) -> object:
    try:
        return int(raw)
    except ValueError:
        raise ValueError("must be an integer") from None


def _parse_float(raw: str) -> object:
    try:
        return float(raw)
    except ValueError:
        raise ValueError("must be a number") from None


def _parse_flag(raw: str) -> object:
    lowered = raw.lower()
    if lowered in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if lowered in {"0", "false", "f", "no", "n", "off"}:
        return False
    raise ValueError("must be a boolean (true/false/1/0/yes/no/on/off)")


_PROVIDER_FIELDS: Final[dict[str, dict[str, EnvParser]]] = {
    "ollama": {"base_url": _parse_text, "model": _parse_text, "timeout_seconds": _parse_float},
    "gemini": {"api_key_env": _parse_text, "model": _parse_text, "timeout_seconds": _parse_float},
    "openai": {
        "api_key_env": _parse_text,
        "base_url": _parse_text,
        "model": _parse_text,
        "timeout_seconds": _parse_float,
    },
}

_SECTION_FIELDS: Final[dict[str, dict[str, EnvParser]]] = {
    "sampling": {"temperature": _parse_float},
    "mediator": {
        "max_attempts": _parse_int,
        "attempt_delay_seconds": _parse_float,
        "rate_limit_max_retries": _parse_int,
        "rate_limit_base_delay_seconds": _parse_float,
        "rate_limit_max_delay_seconds": _parse_float,
        "rate_limit_jitter_ratio": _parse_float,
        "call_timeout_seconds": _parse_float,
    },
    "observability": {
        "log_level": _parse_text,
        "log_format": _parse_text,
        "log_dir": _parse_text,
        "log_to_stderr": _parse_flag,
        "redact_secrets": _parse_flag,
    },
}


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the validated effective config.

    An explicit ``config_path`` must exist; the implicit ``./steward.toml`` is optional.
    ``environ`` defaults to ``os.environ`` and ``cli_overrides`` uses dotted keys
    such as ``"mediator.max_attempts"``.
    """

    if config_path is None:
        path = (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
        file_layer = _read_toml(path) if path.exists() else {}
    else:
        path = Path(config_path).expanduser().resolve()
        if not path.exists():
            raise ConfigLoadError(f"config file not found: {path}")
        file_layer = _read_toml(path)

    env = os.environ if environ is None else environ
    config: dict[str, Any] = dict(default_config())
    for layer in (
        _legacy_layer(file_layer, env),
        file_layer,
        _env_layer(env),
        _cli_layer(cli_overrides or {}),
    ):
        config = merge_config(config, layer)
    config = assert_valid_config(config)

    observability = config["observability"]
    observability["log_dir"] = _resolve_log_dir(observability["log_dir"], path.parent)
    return assert_valid_config(config)


def effective_config(config: Mapping[str, object]) -> dict[str, Any]:
    """Return a redacted copy safe for logs and ``config show``."""

    return redact_config(config)


def dump_effective_config(config: Mapping[str, object]) -> str:
    return json.dumps(
        effective_config(config), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _legacy_layer(file_layer: Mapping[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    file_providers = file_layer.get("providers")
    if not isinstance(file_providers, Mapping):
        file_providers = {}
    file_ollama = file_providers.get("ollama")
    if not isinstance(file_ollama, Mapping):
        file_ollama = {}

    providers: dict[str, Any] = {}
    ollama: dict[str, Any] = {}
    default_kind = environ.get(LEGACY_PROVIDER_ENV, "").strip()
    if default_kind and "default" not in file_providers:
        providers["default"] = default_kind.lower()
    base_url = environ.get(LEGACY_OLLAMA_BASE_URL_ENV, "").strip()
    if base_url and "base_url" not in file_ollama:
        ollama["base_url"] = base_url
    model = environ.get(LEGACY_OLLAMA_MODEL_ENV, "").strip()
    if model and "model" not in file_ollama:
        ollama["model"] = model

    if ollama:
        providers["ollama"] = ollama
    return {"providers": providers} if providers else {}


def _env_layer(environ: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, Any] = {}

    default_kind = environ.get(f"{ENV_PREFIX}PROVIDERS_DEFAULT")
    if default_kind is not None:
        layer.setdefault("providers", {})["default"] = default_kind.strip()
    for kind, fields in _PROVIDER_FIELDS.items():
        values = _read_env_fields(environ, f"{ENV_PREFIX}PROVIDERS_{kind.upper()}_", fields)
        if values:
            layer.setdefault("providers", {})[kind] = values

    for section, fields in _SECTION_FIELDS.items():
        values = _read_env_fields(environ, f"{ENV_PREFIX}{section.upper()}_", fields)
        if values:
            layer[section] = values
    return layer


def _read_env_fields(
    environ: Mapping[str, str], prefix: str, fields: Mapping[str, EnvParser]
) -> dict[str, object]:
    values: dict[str, object] = {}
    for key, parse in fields.items():
        name = prefix + key.upper()
        raw = environ.get(name)
        if raw is None:
            continue
        try:
            values[key] = parse(raw.strip())
        except ValueError as exc:
            raise ConfigLoadError(f"{name}={raw!r} {exc}") from exc
    return values


def _cli_layer(overrides: Mapping[str, object]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for dotted, value in overrides.items():
        if value is None:
            continue
        *parents, leaf = dotted.split(".")
        if not leaf or not all(parents):
            raise ConfigLoadError(f"invalid CLI override key {dotted!r}")
        node = layer
        for part in parents:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        node[leaf] = value
    return layer


def _resolve_log_dir(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


__all__ = [
    "ConfigLoadError",
    "dump_effective_config",
    "effective_config",
    "load_config",
]
