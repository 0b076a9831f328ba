"""
data-steward - unit tests for config loader

File: tests/unit/config/test_loader.py
Last updated: 2026-10-18

Purpose
- Validate deterministic config loading from defaults, TOML, env overrides, and CLI overrides.

What this test file should cover
- Precedence: CLI > env > file > legacy env > defaults.
- Deterministic env var path mapping and type coercion.
- Path normalization relative to the config file.
- Redacted effective config dumping.

Functional requirements
- Works without provider keys or network.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path

import pytest

from data_steward.config.loader import ConfigLoadError, dump_effective_config, load_config
from data_steward.config.runtime import provider_settings_from_config, retry_policy_from_config
from data_steward.config.schema import ConfigValidationError


def _write_config(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _sha256_json(data: dict[str, object]) -> str:
    payload = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def test_defaults_load_without_a_config_file(tmp_path: Path) -> None:
    config_path = tmp_path / "steward.toml"
    _write_config(config_path, "")

    loaded = load_config(config_path, environ={})

    assert loaded["providers"]["default"] == "ollama"
    assert loaded["providers"]["ollama"]["base_url"] == "http://localhost:11434"
    assert loaded["mediator"]["max_attempts"] == 3
    assert loaded["sampling"]["temperature"] == 0.2


def test_loader_precedence_default_file_env_cli(tmp_path: Path) -> None:
    config_path = tmp_path / "steward.toml"
    _write_config(
        config_path,
        """
[mediator]
max_attempts = 4
""".strip(),
    )

    file_loaded = load_config(config_path, environ={})
    env_loaded = load_config(config_path, environ={"STEWARD_MEDIATOR_MAX_ATTEMPTS": "6"})
    cli_loaded = load_config(
        config_path,
        environ={"STEWARD_MEDIATOR_MAX_ATTEMPTS": "6"},
        cli_overrides={"mediator.max_attempts": 7},
    )

    assert file_loaded["mediator"]["max_attempts"] == 4
    assert env_loaded["mediator"]["max_attempts"] == 6
    assert cli_loaded["mediator"]["max_attempts"] == 7


def test_legacy_env_applies_only_where_the_file_is_silent(tmp_path: Path) -> None:
    config_path = tmp_path / "steward.toml"
    _write_config(
        config_path,
        """
[providers.ollama]
model = "mistral:7b"
""".strip(),
    )
    environ = {
        "AI_PROVIDER": "OLLAMA",
        "OLLAMA_BASE_URL": "http://gpu-box:11434/",
        "OLLAMA_MODEL": "ignored:latest",
    }

    loaded = load_config(config_path, environ=environ)

    assert loaded["providers"]["default"] == "ollama"
    assert loaded["providers"]["ollama"]["base_url"] == "http://gpu-box:11434"
    assert loaded["providers"]["ollama"]["model"] == "mistral:7b"


def test_steward_env_beats_legacy_env(tmp_path: Path) -> None:
    config_path = tmp_path / "steward.toml"
    _write_config(config_path, "")

    loaded = load_config(
        config_path,
        environ={"AI_PROVIDER": "openai", "STEWARD_PROVIDERS_DEFAULT": "gemini"},
    )

    assert loaded["providers"]["default"] == "gemini"


def test_optional_openai_base_url_binding(tmp_path: Path) -> None:
    config_path = tmp_path / "steward.toml"
    _write_config(config_path, "")

    loaded = load_config(
        config_path,
        environ={"STEWARD_PROVIDERS_OPENAI_BASE_URL": "https://proxy.example.com/v1/"},
    )

    assert loaded["providers"]["openai"]["base_url"] == "https://proxy.example.com/v1"


@pytest.mark.parametrize(
    ("env_name", "raw"),
    [
        ("STEWARD_MEDIATOR_MAX_ATTEMPTS", "many"),
        ("STEWARD_SAMPLING_TEMPERATURE", "warm"),
        ("STEWARD_OBSERVABILITY_LOG_TO_STDERR", "maybe"),
    ],
)
def test_invalid_env_coercion_raises_actionable_error(
    tmp_path: Path, env_name: str, raw: str
) -> None:
    config_path = tmp_path / "steward.toml"
    _write_config(config_path, "")

    with pytest.raises(ConfigLoadError, match=env_name):
        load_config(config_path, environ={env_name: raw})


def test_boolean_env_tokens(tmp_path: Path) -> None:
    config_path = tmp_path / "steward.toml"
    _write_config(config_path, "")

    loaded = load_config(config_path, environ={"STEWARD_OBSERVABILITY_LOG_TO_STDERR": "yes"})

    assert loaded["observability"]["log_to_stderr"] is True


def test_loader_is_deterministic_for_same_inputs(tmp_path: Path) -> None:
    config_path = tmp_path / "steward.toml"
    _write_config(config_path, "")
    env = {"STEWARD_MEDIATOR_MAX_ATTEMPTS": "5", "OLLAMA_MODEL": "phi3"}
    cli = {"sampling.temperature": 0.7}

    first = load_config(config_path, environ=env, cli_overrides=cli)
    second = load_config(config_path, environ=env, cli_overrides=cli)

    assert _sha256_json(first) == _sha256_json(second)


def test_path_normalization_is_relative_to_config_file(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "steward.toml"
    _write_config(
        config_path,
        """
[observability]
log_dir = "../var/logs"
""".strip(),
    )

    loaded = load_config(config_path, environ={})

    expected = (tmp_path.resolve() / "var" / "logs").as_posix()
    assert loaded["observability"]["log_dir"] == expected


def test_explicit_missing_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "absent.toml", environ={})


def test_invalid_toml_is_reported(tmp_path: Path) -> None:
    config_path = tmp_path / "steward.toml"
    _write_config(config_path, "[mediator\nmax_attempts = 1")

    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(config_path, environ={})


def test_embedded_api_keys_are_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "steward.toml"
    _write_config(
        config_path,
        """
[providers.openai]
api_key = "sk-live-value"
""".strip(),
    )

    with pytest.raises(ConfigValidationError, match="embedded secret values are forbidden"):
        load_config(config_path, environ={})


def test_dump_effective_config_redacts_env_names(tmp_path: Path) -> None:
    config_path = tmp_path / "steward.toml"
    _write_config(config_path, "")

    dumped = json.loads(dump_effective_config(load_config(config_path, environ={})))

    assert dumped["providers"]["gemini"]["api_key_env"] == "<redacted>"
    assert dumped["providers"]["gemini"]["model"] == "gemini-1.5-pro"
    assert dumped["observability"]["redact_secrets"] is True


def test_runtime_translation_uses_sampling_and_mediator_sections(tmp_path: Path) -> None:
    config_path = tmp_path / "steward.toml"
    _write_config(
        config_path,
        """
[sampling]
temperature = 0.5

[mediator]
max_attempts = 2
rate_limit_max_retries = 1
""".strip(),
    )
    loaded = load_config(config_path, environ={})

    settings = provider_settings_from_config(loaded, "Gemini")
    policy = retry_policy_from_config(loaded)

    assert settings.kind == "gemini"
    assert settings.api_key_env == "GEMINI_API_KEY"
    assert settings.temperature == 0.5
    assert policy.max_attempts == 2
    assert policy.rate_limit.max_retries == 1
    assert policy.call_timeout_seconds == 60.0
    with pytest.raises(ValueError, match="unknown provider kind"):
        provider_settings_from_config(loaded, "anthropic")


def test_section_env_tables_cover_provider_and_mediator_fields(tmp_path: Path) -> None:
    config_path = tmp_path / "steward.toml"
    _write_config(config_path, "")

    loaded = load_config(
        config_path,
        environ={
            "STEWARD_PROVIDERS_GEMINI_TIMEOUT_SECONDS": "12.5",
            "STEWARD_PROVIDERS_OLLAMA_MODEL": " phi3 ",
            "STEWARD_MEDIATOR_RATE_LIMIT_JITTER_RATIO": "0",
            "STEWARD_OBSERVABILITY_LOG_LEVEL": "DEBUG",
        },
    )

    assert loaded["providers"]["gemini"]["timeout_seconds"] == 12.5
    assert loaded["providers"]["ollama"]["model"] == "phi3"
    assert loaded["mediator"]["rate_limit_jitter_ratio"] == 0.0
    assert loaded["observability"]["log_level"] == "DEBUG"


def test_env_and_cli_layers_do_not_leak_between_sections(tmp_path: Path) -> None:
    config_path = tmp_path / "steward.toml"
    _write_config(config_path, "")

    loaded = load_config(
        config_path,
        environ={"STEWARD_PROVIDERS_OPENAI_MODEL": "gpt-4o-mini"},
        cli_overrides={"providers.ollama.model": "mistral:7b", "sampling.temperature": None},
    )

    assert loaded["providers"]["openai"]["model"] == "gpt-4o-mini"
    assert loaded["providers"]["ollama"]["model"] == "mistral:7b"
    assert loaded["providers"]["gemini"]["model"] == "gemini-1.5-pro"
    assert loaded["sampling"]["temperature"] == 0.2


def test_malformed_cli_override_key_is_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "steward.toml"
    _write_config(config_path, "")

    with pytest.raises(ConfigLoadError, match="invalid CLI override key"):
        load_config(config_path, environ={}, cli_overrides={"mediator..max_attempts": 2})
