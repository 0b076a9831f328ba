"""Provider construction by configured kind, plus health reporting."""

from __future__ import annotations

import functools
from dataclasses import dataclass

from data_steward.observability.logging import get_logger
from data_steward.providers.base import (
    ProviderError,
    ProviderKind,
    ProviderRegistry,
    ProviderSettings,
    TextProvider,
)
from data_steward.providers.gemini import GeminiProvider
from data_steward.providers.ollama import OllamaProvider
from data_steward.providers.openai_adapter import OpenAIProvider

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class HealthReport:
    kind: str
    model: str
    healthy: bool
    detail: str = ""

    def to_dict(self) -> dict[str, object]:
        return {
            "provider": self.kind,
            "model": self.model,
            "healthy": self.healthy,
            "detail": self.detail,
        }


@functools.lru_cache(maxsize=1)
def default_registry() -> ProviderRegistry:
    """Builtin backends; the registry itself is read-only after construction."""

    registry = ProviderRegistry()
    registry.register(ProviderKind.OLLAMA.value, OllamaProvider.from_settings)
    registry.register(ProviderKind.GEMINI.value, GeminiProvider.from_settings)
    registry.register(ProviderKind.OPENAI.value, OpenAIProvider.from_settings)
    return registry


def build_provider(
    settings: ProviderSettings, *, registry: ProviderRegistry | None = None
) -> TextProvider:
    """Create a fresh provider for one mediator invocation."""

    target = registry if registry is not None else default_registry()
    provider = target.create(settings)
    logger.debug("provider_built", provider=settings.kind, model=settings.model)
    return provider


async def check_provider_health(
    settings: ProviderSettings, *, registry: ProviderRegistry | None = None
) -> HealthReport:
    try:
        provider = build_provider(settings, registry=registry)
    except ProviderError as exc:
        return HealthReport(
            kind=settings.kind, model=settings.model, healthy=False, detail=exc.detail
        )
    healthy = await provider.is_healthy()
    detail = "reachable" if healthy else "unreachable or not configured"
    return HealthReport(kind=settings.kind, model=settings.model, healthy=healthy, detail=detail)


__all__ = ["HealthReport", "build_provider", "check_provider_health", "default_registry"]
