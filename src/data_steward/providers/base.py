"""
data-steward - provider interface, settings and error taxonomy

File: src/data_steward/providers/base.py
Last updated: 2026-10-18

Purpose
- Uniform "generate text for prompt" capability over heterogeneous model backends.

What should be included in this file
- TextProvider protocol and a small abstract base with the health-probe contract.
- ProviderSettings resolved from configuration once per mediator invocation.
- Normalized ProviderError taxonomy and SDK/HTTP exception mapping.
- ProviderRegistry keyed by backend kind.

Functional requirements
- Providers never retry; retries belong to the structured-output mediator.
- ``is_healthy`` must never raise.

Non-functional requirements
- Adding a backend must not require touching mediator logic.
"""

from __future__ import annotations

import abc
import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, TypeAlias, runtime_checkable

from data_steward.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TEMPERATURE = 0.2


class ProviderKind(StrEnum):
    OLLAMA = "ollama"
    GEMINI = "gemini"
    OPENAI = "openai"


def _validate_non_empty_str(value: str, field_name: str, *, strip: bool = True) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    normalized = value.strip() if strip else value
    if not normalized:
        raise ValueError(f"{field_name} cannot be empty")
    return normalized


def _validate_optional_str(value: str | None, field_name: str) -> str | None:
    if value is None:
        return None
    return _validate_non_empty_str(value, field_name)


def _normalize_detail(value: object) -> str:
    text = str(value).strip()
    if not text:
        return "unknown error"
    return " ".join(text.split())


@dataclass(frozen=True, slots=True)
class ProviderSettings:
    """Read-only backend selection handed to provider factories."""

    kind: str
    model: str
    base_url: str | None = None
    api_key_env: str | None = None
    timeout_seconds: float | None = None
    temperature: float = DEFAULT_TEMPERATURE

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "kind", _validate_non_empty_str(self.kind, "ProviderSettings.kind").lower()
        )
        object.__setattr__(
            self, "model", _validate_non_empty_str(self.model, "ProviderSettings.model")
        )
        object.__setattr__(
            self, "base_url", _validate_optional_str(self.base_url, "ProviderSettings.base_url")
        )
        object.__setattr__(
            self,
            "api_key_env",
            _validate_optional_str(self.api_key_env, "ProviderSettings.api_key_env"),
        )
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("ProviderSettings.timeout_seconds must be > 0")
        if isinstance(self.temperature, bool) or not isinstance(self.temperature, (int, float)):
            raise TypeError("ProviderSettings.temperature must be a number")
        if not 0.0 <= float(self.temperature) <= 2.0:
            raise ValueError("ProviderSettings.temperature must be within [0, 2]")
        object.__setattr__(self, "temperature", float(self.temperature))


@runtime_checkable
class TextProvider(Protocol):
    """Two-operation capability set every backend implements."""

    provider_name: str

    async def generate_text(self, prompt: str) -> str:
        """Return raw model text for ``prompt``; raise ProviderError on failure."""

    async def is_healthy(self) -> bool:
        """Best-effort reachability probe; never raises."""


class BaseTextProvider(abc.ABC):
    """Shared plumbing: exception mapping and the non-raising health probe."""

    provider_name = "provider"

    @abc.abstractmethod
    async def generate_text(self, prompt: str) -> str:
        raise NotImplementedError

    @abc.abstractmethod
    async def _probe(self) -> bool:
        raise NotImplementedError

    async def is_healthy(self) -> bool:
        try:
            return bool(await self._probe())
        except Exception as exc:  # noqa: BLE001
            logger.info(
                "provider_health_probe_failed",
                provider=self.provider_name,
                error=_exception_detail(exc),
            )
            return False

    def _map_exception(self, exc: Exception) -> ProviderError:
        return map_provider_exception(exc, provider=self.provider_name)


ProviderFactory: TypeAlias = Callable[[ProviderSettings], TextProvider]


class ProviderError(RuntimeError):
    """Base normalized provider error with deterministic machine-readable fields."""

    def __init__(
        self,
        *,
        provider: str,
        code: str,
        detail: str,
        retryable: bool,
        http_status: int | None = None,
        provider_code: str | None = None,
    ) -> None:
        self.provider = _validate_non_empty_str(provider, "provider")
        self.code = _validate_non_empty_str(code, "code")
        self.detail = _normalize_detail(detail)
        self.retryable = bool(retryable)
        self.http_status = http_status
        self.provider_code = _validate_optional_str(provider_code, "provider_code")

        parts = [
            f"provider={self.provider}",
            f"code={self.code}",
            f"retryable={str(self.retryable).lower()}",
        ]
        if self.http_status is not None:
            parts.append(f"http_status={self.http_status}")
        if self.provider_code is not None:
            parts.append(f"provider_code={self.provider_code}")
        parts.append(f"detail={self.detail}")
        super().__init__(" ".join(parts))


class ProviderUnavailableError(ProviderError):
    """SDK missing, backend not registered, or backend unreachable."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="unavailable", detail=detail, retryable=False)


class ProviderAuthenticationError(ProviderError):
    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        http_status: int | None = None,
    ) -> None:
        super().__init__(
            provider=provider,
            code="auth",
            detail=detail,
            retryable=False,
            http_status=http_status,
        )


class ProviderInvalidRequestError(ProviderError):
    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        http_status: int | None = None,
    ) -> None:
        super().__init__(
            provider=provider,
            code="invalid_request",
            detail=detail,
            retryable=False,
            http_status=http_status,
        )


class ProviderRateLimitError(ProviderError):
    """Provider rate-limit responses; the only class the mediator backs off on."""

    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        http_status: int | None = 429,
    ) -> None:
        super().__init__(
            provider=provider,
            code="rate_limit",
            detail=detail,
            retryable=True,
            http_status=http_status,
        )


class ProviderTimeoutError(ProviderError):
    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="timeout", detail=detail, retryable=True)


class ProviderServiceError(ProviderError):
    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        retryable: bool = True,
        http_status: int | None = None,
        provider_code: str | None = None,
    ) -> None:
        super().__init__(
            provider=provider,
            code="service",
            detail=detail,
            retryable=retryable,
            http_status=http_status,
            provider_code=provider_code,
        )


class ProviderResponseError(ProviderError):
    """Empty or malformed response envelope."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="response_invalid", detail=detail, retryable=False)


def is_rate_limit_error(error: BaseException) -> bool:
    return isinstance(error, ProviderRateLimitError)


def map_provider_exception(exc: Exception, *, provider: str) -> ProviderError:
    """Classify an SDK/HTTP failure by status code and exception class name."""

    if isinstance(exc, ProviderError):
        return exc

    status_code = _read_status_code(exc)
    class_name = exc.__class__.__name__.lower()
    detail = _exception_detail(exc)

    if status_code in {401, 403} or "auth" in class_name or "permission" in class_name:
        return ProviderAuthenticationError(
            provider=provider, detail=detail, http_status=status_code
        )

    if status_code == 429 or "ratelimit" in class_name or "resourceexhausted" in class_name:
        return ProviderRateLimitError(provider=provider, detail=detail, http_status=status_code)

    if isinstance(exc, asyncio.TimeoutError) or "timeout" in class_name:
        return ProviderTimeoutError(provider=provider, detail=detail)

    if status_code is not None and status_code in {400, 404, 409, 422}:
        return ProviderInvalidRequestError(
            provider=provider, detail=detail, http_status=status_code
        )

    if any(token in class_name for token in ("badrequest", "invalidrequest", "invalidargument")):
        return ProviderInvalidRequestError(provider=provider, detail=detail)

    if status_code is not None and status_code >= 500:
        return ProviderServiceError(
            provider=provider,
            detail=detail,
            retryable=True,
            http_status=status_code,
        )

    if "connect" in class_name:
        return ProviderUnavailableError(provider=provider, detail=detail)

    return ProviderServiceError(provider=provider, detail=detail, retryable=True)


class ProviderRegistry:
    """Registry for provider factories keyed by backend kind."""

    def __init__(self) -> None:
        self._factories: dict[str, ProviderFactory] = {}

    def register(self, kind: str, factory: ProviderFactory, *, overwrite: bool = False) -> None:
        normalized = _validate_non_empty_str(kind, "kind").lower()
        if normalized in self._factories and not overwrite:
            raise ValueError(f"provider already registered: {normalized}")
        self._factories[normalized] = factory

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._factories))

    def create(self, settings: ProviderSettings) -> TextProvider:
        factory = self._factories.get(settings.kind)
        if factory is None:
            raise ProviderUnavailableError(
                provider=settings.kind,
                detail="provider is not registered",
            )
        adapter = factory(settings)
        if not isinstance(adapter, TextProvider):
            raise TypeError(f"provider factory returned invalid adapter for {settings.kind}")
        return adapter


def _exception_detail(exc: BaseException) -> str:
    text = str(exc).strip()
    if text:
        return " ".join(text.split())
    return exc.__class__.__name__


def _read_status_code(exc: BaseException) -> int | None:
    for key in ("status_code", "status", "http_status", "code"):
        value = getattr(exc, key, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(exc, "response", None)
    if response is not None:
        nested = getattr(response, "status_code", None)
        if isinstance(nested, int):
            return nested
    return None


__all__ = [
    "BaseTextProvider",
    "DEFAULT_TEMPERATURE",
    "ProviderAuthenticationError",
    "ProviderError",
    "ProviderFactory",
    "ProviderInvalidRequestError",
    "ProviderKind",
    "ProviderRateLimitError",
    "ProviderRegistry",
    "ProviderResponseError",
    "ProviderServiceError",
    "ProviderSettings",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "TextProvider",
    "is_rate_limit_error",
    "map_provider_exception",
]
