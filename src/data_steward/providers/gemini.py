"""
data-steward - Gemini provider adapter

File: src/data_steward/providers/gemini.py
Last updated: 2026-10-18

Purpose
- Cloud API backend over google-generativeai with rate-limit classification.

What should be included in this file
- Lazy SDK import, API key resolution from an environment variable.
- Per-call request options: configured timeout, SDK retries disabled.
- Recognition of quota/rate-limit failures that surface only in error text.

Functional requirements
- "429 Too Many Requests" and "RESOURCE_EXHAUSTED" map to ProviderRateLimitError.

Non-functional requirements
- Do not hardcode keys; the health probe performs no network call.
"""

from __future__ import annotations

import importlib
import os
from types import ModuleType
from typing import Final, Protocol, cast

from data_steward.observability.logging import get_logger
from data_steward.providers.base import (
    DEFAULT_TEMPERATURE,
    BaseTextProvider,
    ProviderAuthenticationError,
    ProviderError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderSettings,
    ProviderUnavailableError,
)

logger = get_logger(__name__)

DEFAULT_MODEL: Final[str] = "gemini-1.5-pro"
DEFAULT_API_KEY_ENV: Final[str] = "GEMINI_API_KEY"
_RATE_LIMIT_MARKERS: Final[tuple[str, ...]] = ("429 too many requests", "resource_exhausted")


class _GeminiModel(Protocol):
    async def generate_content_async(self, contents: object, **kwargs: object) -> object: ...


class GeminiProvider(BaseTextProvider):
    """google-generativeai adapter with optional injected model object."""

    provider_name = "gemini"

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL,
        api_key_env: str = DEFAULT_API_KEY_ENV,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout_seconds: float | None = None,
        client: _GeminiModel | None = None,
    ) -> None:
        if not model.strip():
            raise ValueError("model cannot be empty")
        if not api_key_env.strip():
            raise ValueError("api_key_env cannot be empty")
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self.model = model.strip()
        self.api_key_env = api_key_env.strip()
        self.temperature = temperature
        self._timeout_seconds = timeout_seconds
        self._client = client

    @classmethod
    def from_settings(cls, settings: ProviderSettings) -> GeminiProvider:
        return cls(
            model=settings.model,
            api_key_env=settings.api_key_env or DEFAULT_API_KEY_ENV,
            temperature=settings.temperature,
            timeout_seconds=settings.timeout_seconds,
        )

    async def generate_text(self, prompt: str) -> str:
        client = self._ensure_client()
        try:
            raw = await client.generate_content_async(
                prompt, request_options=self._request_options()
            )
        except Exception as exc:  # noqa: BLE001
            raise self._map_exception(exc) from exc
        return self._extract_text(raw)

    def _request_options(self) -> dict[str, object]:
        # retry=None turns off the api_core retry wrapper; the mediator owns retries.
        options: dict[str, object] = {"retry": None}
        if self._timeout_seconds is not None:
            options["timeout"] = self._timeout_seconds
        return options

    async def _probe(self) -> bool:
        configured = os.getenv(self.api_key_env)
        return configured is not None and bool(configured.strip())

    def _map_exception(self, exc: Exception) -> ProviderError:
        detail_lower = str(exc).lower()
        if any(marker in detail_lower for marker in _RATE_LIMIT_MARKERS):
            return ProviderRateLimitError(provider=self.provider_name, detail=str(exc))
        return super()._map_exception(exc)

    def _ensure_client(self) -> _GeminiModel:
        if self._client is None:
            self._client = self._create_default_client()
        return self._client

    def _create_default_client(self) -> _GeminiModel:
        genai = _import_sdk(self.provider_name)
        api_key = self._resolve_api_key()
        genai.configure(api_key=api_key)
        model_cls = getattr(genai, "GenerativeModel", None)
        if model_cls is None:
            raise ProviderUnavailableError(
                provider=self.provider_name,
                detail="google-generativeai SDK does not expose GenerativeModel",
            )
        return cast(
            "_GeminiModel",
            model_cls(
                model_name=self.model,
                generation_config={"temperature": self.temperature},
            ),
        )

    def _resolve_api_key(self) -> str:
        configured = os.getenv(self.api_key_env)
        if configured is None or not configured.strip():
            raise ProviderAuthenticationError(
                provider=self.provider_name,
                detail=f"missing Gemini API key in env var {self.api_key_env}",
                http_status=401,
            )
        return configured.strip()

    def _extract_text(self, raw: object) -> str:
        try:
            text = getattr(raw, "text", None)
        except ValueError as exc:
            # The SDK raises when the candidate was blocked or empty.
            raise ProviderResponseError(
                provider=self.provider_name, detail=f"gemini returned no text: {exc}"
            ) from exc
        if not isinstance(text, str):
            raise ProviderResponseError(
                provider=self.provider_name, detail="gemini response missing text"
            )
        logger.debug(
            "provider_response_received",
            provider=self.provider_name,
            model=self.model,
            response_chars=len(text),
        )
        return text


def _import_sdk(provider: str) -> ModuleType:
    try:
        return importlib.import_module("google.generativeai")
    except ImportError as exc:
        raise ProviderUnavailableError(
            provider=provider,
            detail="google-generativeai SDK is not installed",
        ) from exc


__all__ = ["DEFAULT_API_KEY_ENV", "DEFAULT_MODEL", "GeminiProvider"]
