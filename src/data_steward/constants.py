"""Stable constants shared across the steward packages."""

from __future__ import annotations

from typing import Final

# Schema version of steward.toml.
CONFIG_SCHEMA_VERSION: Final[int] = 1

DEFAULT_CONFIG_FILE: Final[str] = "steward.toml"
ENV_PREFIX: Final[str] = "STEWARD_"

# Environment variables honoured by earlier deployments when the file is silent.
LEGACY_PROVIDER_ENV: Final[str] = "AI_PROVIDER"
LEGACY_OLLAMA_BASE_URL_ENV: Final[str] = "OLLAMA_BASE_URL"
LEGACY_OLLAMA_MODEL_ENV: Final[str] = "OLLAMA_MODEL"

PROVIDER_KINDS: Final[tuple[str, ...]] = ("ollama", "gemini", "openai")

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "LEGACY_OLLAMA_BASE_URL_ENV",
    "LEGACY_OLLAMA_MODEL_ENV",
    "LEGACY_PROVIDER_ENV",
    "PROVIDER_KINDS",
]
