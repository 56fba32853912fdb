"""Provider Rotator — round-robin dispatch with fallback across providers.

Flow per generate():
  1. Pick the next available provider after the rotation cursor
  2. Call it; on success return immediately
  3. On failure record the error, cool the provider down if it was
     rate limited, and move on to the next provider
  4. After max_retries attempts raise one aggregated RotatorExhaustedError

When every provider is cooling down or at its RPM ceiling, the first enabled
provider is tried anyway (degraded mode) rather than failing without a call.

Usage:
    rotator = ProviderRotator.from_settings(settings)
    text = rotator.generate("Summarise this ...", timeout_seconds=30, max_retries=3)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from llm_rotator.core.config import VENDOR_PRIORITY, Settings
from llm_rotator.core.metrics import PROVIDER_COOLDOWNS, ROTATOR_DEGRADED_SELECTIONS, ROTATOR_REQUESTS
from llm_rotator.gateway.cooldown import CooldownPolicy
from llm_rotator.gateway.errors import (
    ProviderError,
    RateLimitedError,
    RotatorConfigurationError,
    RotatorExhaustedError,
)
from llm_rotator.gateway.providers import (
    DEFAULT_TIMEOUT_SECONDS,
    FireworksProvider,
    GeminiProvider,
    OpenRouterProvider,
    Provider,
    get_provider,
)
from llm_rotator.gateway.types import RATE_LIMIT_COOLDOWN, ProviderStatusInfo

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


def build_providers(cfg: Settings) -> tuple[Provider, ...]:
    """Instantiate providers for every configured key, in priority order."""
    policy = CooldownPolicy(
        rate_limit_seconds=cfg.ai_rate_limit_cooldown_seconds,
        server_error_seconds=cfg.ai_server_error_cooldown_seconds,
        honor_retry_after=cfg.ai_honor_retry_after,
        max_retry_after_seconds=cfg.ai_max_retry_after_seconds,
    )
    keys = cfg.api_keys()
    providers: list[Provider] = []

    for vendor in VENDOR_PRIORITY:
        key = keys.get(vendor)
        if not key:
            continue

        kwargs: dict = {
            "model": cfg.ai_model_overrides.get(vendor),
            "cooldown_policy": policy,
            "temperature": cfg.ai_temperature,
        }
        if vendor == OpenRouterProvider.name:
            kwargs["referer"] = cfg.openrouter_referer
            kwargs["title"] = cfg.openrouter_title
        # Fireworks and Gemini keep their larger vendor-specific token budgets
        if vendor not in (FireworksProvider.name, GeminiProvider.name):
            kwargs["max_tokens"] = cfg.ai_max_tokens

        provider = get_provider(vendor, key, **kwargs)
        providers.append(provider)
        logger.info("%s provider enabled (model=%s, rpm=%d)", vendor, provider.model, provider.rpm_limit)

    if not providers:
        logger.warning("No AI providers configured! Set at least one API key.")
    else:
        logger.info("Provider rotation initialized with %d providers", len(providers))

    return tuple(providers)


class ProviderRotator:
    """Round-robin over an ordered, fixed set of providers.

    Thread-safe: selection scans and advances the cursor under one lock;
    provider stats carry their own locks.
    """

    def __init__(self, providers: Iterable[Provider], rate_limit_cooldown: float = RATE_LIMIT_COOLDOWN):
        self._providers: tuple[Provider, ...] = tuple(providers)
        self.rate_limit_cooldown = rate_limit_cooldown
        self._cursor = 0
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, cfg: Settings) -> ProviderRotator:
        return cls(build_providers(cfg), rate_limit_cooldown=cfg.ai_rate_limit_cooldown_seconds)

    @property
    def providers(self) -> tuple[Provider, ...]:
        return self._providers

    def _next_available_provider(self) -> Provider | None:
        """Next available provider after the cursor, or a degraded fallback."""
        with self._lock:
            count = len(self._providers)
            for offset in range(count):
                index = (self._cursor + offset) % count
                provider = self._providers[index]
                if provider.is_available():
                    self._cursor = (index + 1) % count
                    return provider

        # Nothing available: fall back to the first enabled provider
        for provider in self._providers:
            if provider.is_enabled():
                logger.warning(
                    "All providers rate limited, using %s anyway",
                    provider.name,
                    extra={"provider": provider.name},
                )
                ROTATOR_DEGRADED_SELECTIONS.inc()
                return provider

        return None

    def generate(
        self,
        prompt: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> str:
        """Generate text, rotating through providers on failure.

        Raises:
            RotatorConfigurationError: no providers were configured
            RotatorExhaustedError: every attempt failed, or nothing was selectable
        """
        if not self._providers:
            ROTATOR_REQUESTS.labels(result="not_configured").inc()
            raise RotatorConfigurationError()

        errors: list[str] = []
        last_error: ProviderError | None = None

        for attempt in range(1, max_retries + 1):
            provider = self._next_available_provider()
            if provider is None:
                ROTATOR_REQUESTS.labels(result="exhausted").inc()
                raise RotatorExhaustedError(f"No AI providers available. Errors: {errors}", errors)

            try:
                logger.debug(
                    "Attempt %d/%d with %s", attempt, max_retries, provider.name, extra={"provider": provider.name}
                )
                text = provider.generate(prompt, timeout_seconds)
            except ProviderError as e:
                last_error = e
                errors.append(f"{provider.name}: {e.message}")
                logger.warning("Provider %s failed: %s", provider.name, e.message, extra={"provider": provider.name})

                if e.rate_limited:
                    cooldown = self.rate_limit_cooldown
                    if isinstance(e, RateLimitedError):
                        cooldown = max(cooldown, e.cooldown_seconds)
                    provider.set_cooldown(cooldown)
                    PROVIDER_COOLDOWNS.labels(provider=provider.name, reason="rotator").inc()
                continue

            ROTATOR_REQUESTS.labels(result="success").inc()
            logger.info("Generated response using %s (%d chars)", provider.name, len(text))
            return text

        ROTATOR_REQUESTS.labels(result="exhausted").inc()
        logger.error("All AI providers failed after %d attempts", max_retries)
        raise RotatorExhaustedError(
            f"All AI providers failed after {max_retries} attempts. Errors: {errors}",
            errors,
            rate_limited=last_error.rate_limited if last_error else False,
            timeout=last_error.timeout if last_error else False,
        )

    # -- read-only status ------------------------------------------------

    def get_providers_status(self) -> dict[str, ProviderStatusInfo]:
        return {p.name: p.status_info() for p in self._providers}

    @property
    def available_provider_count(self) -> int:
        return sum(1 for p in self._providers if p.is_available())

    @property
    def total_provider_count(self) -> int:
        return len(self._providers)

    def is_ready(self) -> bool:
        return bool(self._providers)

    def get_status(self) -> dict:
        """Aggregate status for dashboards and health endpoints."""
        providers = self.get_providers_status()
        return {
            "ready": self.is_ready(),
            "total_providers": self.total_provider_count,
            "available_providers": sum(1 for info in providers.values() if info.available),
            "providers": {name: info.to_dict() for name, info in providers.items()},
        }
