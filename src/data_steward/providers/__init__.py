"""Generative-model backends behind one text-generation interface."""

from data_steward.providers.base import (
    BaseTextProvider,
    ProviderAuthenticationError,
    ProviderError,
    ProviderFactory,
    ProviderInvalidRequestError,
    ProviderKind,
    ProviderRateLimitError,
    ProviderRegistry,
    ProviderResponseError,
    ProviderServiceError,
    ProviderSettings,
    ProviderTimeoutError,
    ProviderUnavailableError,
    TextProvider,
    is_rate_limit_error,
    map_provider_exception,
)
from data_steward.providers.factory import (
    HealthReport,
    build_provider,
    check_provider_health,
    default_registry,
)
from data_steward.providers.gemini import GeminiProvider
from data_steward.providers.ollama import OllamaProvider
from data_steward.providers.openai_adapter import OpenAIProvider

__all__ = [
    "BaseTextProvider",
    "GeminiProvider",
    "HealthReport",
    "OllamaProvider",
    "OpenAIProvider",
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
    "build_provider",
    "check_provider_health",
    "default_registry",
    "is_rate_limit_error",
    "map_provider_exception",
]
