"""Resilient text generation across free-tier LLM vendors."""

from llm_rotator.core.config import APP_VERSION
from llm_rotator.gateway.errors import (
    ProviderError,
    ProviderFailureError,
    ProviderNotEnabledError,
    ProviderTimeoutError,
    RateLimitedError,
    RotatorConfigurationError,
    RotatorExhaustedError,
)
from llm_rotator.gateway.providers import PROVIDER_REGISTRY, Provider, get_provider
from llm_rotator.gateway.rotator import ProviderRotator, build_providers
from llm_rotator.gateway.stats import ProviderStats
from llm_rotator.gateway.types import ProviderStatus, ProviderStatusInfo
from llm_rotator.service import LlmService, LlmUnavailableError

__version__ = APP_VERSION

__all__ = [
    "LlmService",
    "LlmUnavailableError",
    "PROVIDER_REGISTRY",
    "Provider",
    "ProviderError",
    "ProviderFailureError",
    "ProviderNotEnabledError",
    "ProviderRotator",
    "ProviderStats",
    "ProviderStatus",
    "ProviderStatusInfo",
    "ProviderTimeoutError",
    "RateLimitedError",
    "RotatorConfigurationError",
    "RotatorExhaustedError",
    "build_providers",
    "get_provider",
]
