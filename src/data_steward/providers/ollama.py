"""
data-steward - Ollama provider adapter

File: src/data_steward/providers/ollama.py
Last updated: 2026-10-18

Purpose
- Local inference server backend over the Ollama HTTP API.

What should be included in this file
- Non-streaming ``/api/generate`` call with sampling temperature.
- ``/api/tags`` reachability probe and model listing.

Functional requirements
- HTTP failures map onto the ProviderError taxonomy; no retries here.

Non-functional requirements
- Transport is injectable so tests run without a server.
"""

from __future__ import annotations

from typing import Final

import httpx

from data_steward.observability.logging import get_logger
from data_steward.providers.base import (
    DEFAULT_TEMPERATURE,
    BaseTextProvider,
    ProviderResponseError,
    ProviderSettings,
    ProviderTimeoutError,
    ProviderUnavailableError,
)

logger = get_logger(__name__)

DEFAULT_BASE_URL: Final[str] = "http://localhost:11434"
DEFAULT_MODEL: Final[str] = "llama3.1:8b"
DEFAULT_TIMEOUT_SECONDS: Final[float] = 120.0
_HEALTH_TIMEOUT_SECONDS: Final[float] = 5.0


class OllamaProvider(BaseTextProvider):
    """Ollama ``/api/generate`` adapter; one short-lived httpx client per call."""

    provider_name = "ollama"

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        normalized_url = base_url.strip().rstrip("/")
        if not normalized_url:
            raise ValueError("base_url cannot be empty")
        if not model.strip():
            raise ValueError("model cannot be empty")
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self.base_url = normalized_url
        self.model = model.strip()
        self.temperature = temperature
        self._timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else DEFAULT_TIMEOUT_SECONDS
        )
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: ProviderSettings) -> OllamaProvider:
        return cls(
            base_url=settings.base_url or DEFAULT_BASE_URL,
            model=settings.model,
            temperature=settings.temperature,
            timeout_seconds=settings.timeout_seconds,
        )

    async def generate_text(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": self.temperature},
        }
        try:
            async with self._client(self._timeout_seconds) as client:
                response = await client.post("/api/generate", json=payload)
                response.raise_for_status()
                body = response.json()
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(
                provider=self.provider_name, detail=f"ollama request timed out: {exc}"
            ) from exc
        except httpx.ConnectError as exc:
            raise ProviderUnavailableError(
                provider=self.provider_name,
                detail=f"cannot reach ollama at {self.base_url}: {exc}",
            ) from exc
        except ValueError as exc:
            raise ProviderResponseError(
                provider=self.provider_name, detail=f"ollama returned non-JSON body: {exc}"
            ) from exc
        except Exception as exc:  # noqa: BLE001
            raise self._map_exception(exc) from exc

        if not isinstance(body, dict):
            raise ProviderResponseError(
                provider=self.provider_name, detail="ollama response envelope is not an object"
            )
        text = body.get("response")
        if not isinstance(text, str):
            raise ProviderResponseError(
                provider=self.provider_name, detail="ollama response missing 'response' text"
            )
        logger.debug(
            "provider_response_received",
            provider=self.provider_name,
            model=self.model,
            response_chars=len(text),
        )
        return text

    async def list_models(self) -> list[str]:
        """Return model names installed on the server."""

        try:
            async with self._client(_HEALTH_TIMEOUT_SECONDS) as client:
                response = await client.get("/api/tags")
                response.raise_for_status()
                body = response.json()
        except httpx.ConnectError as exc:
            raise ProviderUnavailableError(
                provider=self.provider_name,
                detail=f"cannot reach ollama at {self.base_url}: {exc}",
            ) from exc
        except ValueError as exc:
            raise ProviderResponseError(
                provider=self.provider_name, detail=f"ollama returned non-JSON body: {exc}"
            ) from exc
        except Exception as exc:  # noqa: BLE001
            raise self._map_exception(exc) from exc

        models = body.get("models") if isinstance(body, dict) else None
        if not isinstance(models, list):
            return []
        names: list[str] = []
        for item in models:
            if isinstance(item, dict) and isinstance(item.get("name"), str):
                names.append(item["name"])
        return names

    async def _probe(self) -> bool:
        async with self._client(_HEALTH_TIMEOUT_SECONDS) as client:
            response = await client.get("/api/tags")
        return response.is_success

    def _client(self, timeout_seconds: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=self._transport,
        )


__all__ = ["DEFAULT_BASE_URL", "DEFAULT_MODEL", "OllamaProvider"]
