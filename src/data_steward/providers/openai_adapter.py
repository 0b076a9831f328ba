"""
data-steward - OpenAI provider adapter

File: src/data_steward/providers/openai_adapter.py
Last updated: 2026-10-18

Purpose
- Chat-completion backend over the openai SDK.

What should be included in this file
- Lazy AsyncOpenAI construction with env-provided key and optional base URL.
- SDK-level retries disabled; the mediator owns the retry policy.
- First-choice message extraction.

Functional requirements
- SDK exceptions map onto the ProviderError taxonomy by status and class name.

Non-functional requirements
- Must be configurable and safe; do not hardcode endpoints/keys.
"""

from __future__ import annotations

import importlib
import os
from typing import Final, Protocol, cast

import httpx

from data_steward.observability.logging import get_logger
from data_steward.providers.base import (
    DEFAULT_TEMPERATURE,
    BaseTextProvider,
    ProviderAuthenticationError,
    ProviderResponseError,
    ProviderSettings,
    ProviderUnavailableError,
)

logger = get_logger(__name__)

DEFAULT_MODEL: Final[str] = "gpt-3.5-turbo"
DEFAULT_API_KEY_ENV: Final[str] = "OPENAI_API_KEY"


class _ChatCompletionsAPI(Protocol):
    async def create(self, **kwargs: object) -> object: ...


class _ChatAPI(Protocol):
    completions: _ChatCompletionsAPI


class _OpenAIClient(Protocol):
    chat: _ChatAPI


class OpenAIProvider(BaseTextProvider):
    """OpenAI chat-completions adapter with injected client support."""

    provider_name = "openai"

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL,
        api_key_env: str = DEFAULT_API_KEY_ENV,
        base_url: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout_seconds: float | None = None,
        client: _OpenAIClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not model.strip():
            raise ValueError("model cannot be empty")
        if not api_key_env.strip():
            raise ValueError("api_key_env cannot be empty")
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self.model = model.strip()
        self.api_key_env = api_key_env.strip()
        self._base_url = base_url.strip() if base_url else None
        self.temperature = temperature
        self._timeout_seconds = timeout_seconds
        self._client = client
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: ProviderSettings) -> OpenAIProvider:
        return cls(
            model=settings.model,
            api_key_env=settings.api_key_env or DEFAULT_API_KEY_ENV,
            base_url=settings.base_url,
            temperature=settings.temperature,
            timeout_seconds=settings.timeout_seconds,
        )

    async def generate_text(self, prompt: str) -> str:
        client = self._ensure_client()
        try:
            raw = await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
            )
        except Exception as exc:  # noqa: BLE001
            raise self._map_exception(exc) from exc
        return self._extract_text(raw)

    async def _probe(self) -> bool:
        configured = os.getenv(self.api_key_env)
        return configured is not None and bool(configured.strip())

    def _ensure_client(self) -> _OpenAIClient:
        if self._client is None:
            self._client = self._create_default_client()
        return self._client

    def _create_default_client(self) -> _OpenAIClient:
        try:
            openai_module = importlib.import_module("openai")
        except ImportError as exc:
            raise ProviderUnavailableError(
                provider=self.provider_name,
                detail="openai SDK is not installed",
            ) from exc

        async_openai = getattr(openai_module, "AsyncOpenAI", None)
        if async_openai is None:
            raise ProviderUnavailableError(
                provider=self.provider_name,
                detail="openai SDK does not expose AsyncOpenAI",
            )

        # One HTTP request per call; the mediator owns retries.
        init_kwargs: dict[str, object] = {"api_key": self._resolve_api_key(), "max_retries": 0}
        if self._base_url is not None:
            init_kwargs["base_url"] = self._base_url
        if self._timeout_seconds is not None:
            init_kwargs["timeout"] = self._timeout_seconds
        if self._transport is not None:
            init_kwargs["http_client"] = httpx.AsyncClient(transport=self._transport)
        return cast("_OpenAIClient", async_openai(**init_kwargs))

    def _resolve_api_key(self) -> str:
        configured = os.getenv(self.api_key_env)
        if configured is None or not configured.strip():
            raise ProviderAuthenticationError(
                provider=self.provider_name,
                detail=f"missing OpenAI API key in env var {self.api_key_env}",
                http_status=401,
            )
        return configured.strip()

    def _extract_text(self, raw: object) -> str:
        choices = _read_value(raw, "choices")
        if not isinstance(choices, (list, tuple)) or not choices:
            raise ProviderResponseError(
                provider=self.provider_name, detail="openai response has no choices"
            )
        message = _read_value(choices[0], "message")
        content = _read_value(message, "content") if message is not None else None
        if not isinstance(content, str):
            raise ProviderResponseError(
                provider=self.provider_name, detail="openai response missing message content"
            )
        logger.debug(
            "provider_response_received",
            provider=self.provider_name,
            model=self.model,
            response_chars=len(content),
        )
        return content


def _read_value(value: object, key: str) -> object | None:
    if isinstance(value, dict):
        return cast("object | None", value.get(key))
    return cast("object | None", getattr(value, key, None))


__all__ = ["DEFAULT_API_KEY_ENV", "DEFAULT_MODEL", "OpenAIProvider"]
