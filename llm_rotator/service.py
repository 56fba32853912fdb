"""LLM service facade used by application code.

Wraps the rotator with the master on/off switch and the configured call
defaults, so callers only deal with one exception type.
"""

from __future__ import annotations

import logging

from llm_rotator.core.config import Settings, settings
from llm_rotator.gateway.errors import ProviderError
from llm_rotator.gateway.rotator import ProviderRotator
from llm_rotator.gateway.types import ProviderStatusInfo

logger = logging.getLogger(__name__)


class LlmUnavailableError(RuntimeError):
    """AI generation is switched off, unconfigured, or every provider failed."""


class LlmService:
    def __init__(self, cfg: Settings | None = None, rotator: ProviderRotator | None = None):
        self.settings = cfg or settings
        self.enabled = self.settings.ai_enabled

        if rotator is not None:
            self.rotator = rotator
        elif self.enabled:
            self.rotator = ProviderRotator.from_settings(self.settings)
        else:
            logger.info("AI generation disabled (AI_ENABLED=false)")
            self.rotator = ProviderRotator(())

    def is_available(self) -> bool:
        return self.enabled and self.rotator.is_ready() and self.rotator.available_provider_count > 0

    def generate(self, prompt: str) -> str:
        """Generate text with the configured timeout and retry budget."""
        if not self.enabled:
            raise LlmUnavailableError("AI generation is disabled")
        if not self.rotator.is_ready():
            raise LlmUnavailableError("No AI providers configured")

        try:
            return self.rotator.generate(
                prompt,
                timeout_seconds=self.settings.ai_timeout_seconds,
                max_retries=self.settings.ai_max_retries,
            )
        except ProviderError as e:
            raise LlmUnavailableError(f"AI generation failed: {e.message}") from e

    def get_providers_status(self) -> dict[str, ProviderStatusInfo]:
        return self.rotator.get_providers_status()
