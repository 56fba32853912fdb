"""Cooldown policy — how long a failing provider sits out of the rotation.

  - HTTP 429: rate_limit_seconds, or the vendor's Retry-After hint when
    honoured (clamped to [1, max_retry_after_seconds]), never below a
    vendor floor such as Gemini's 120s
  - HTTP 5xx: server_error_seconds
  - Timeouts: no cooldown (the vendor gave no signal about its limits)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from llm_rotator.gateway.types import RATE_LIMIT_COOLDOWN, SERVER_ERROR_COOLDOWN

logger = logging.getLogger(__name__)

MIN_RETRY_AFTER = 1.0


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given as delta-seconds.

    HTTP-date values and garbage yield None (fall back to the fixed cooldown).
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        logger.debug("Ignoring non-numeric Retry-After: %r", value)
        return None
    if seconds < 0:
        return None
    return seconds


@dataclass(frozen=True)
class CooldownPolicy:
    """Cooldown durations applied by providers and the rotator."""

    rate_limit_seconds: float = RATE_LIMIT_COOLDOWN
    server_error_seconds: float = SERVER_ERROR_COOLDOWN
    honor_retry_after: bool = True
    max_retry_after_seconds: float = 300.0
    # Vendor minimum for any 429 cooldown, Retry-After included
    rate_limit_floor: float = 0.0

    def rate_limit_cooldown(self, retry_after: float | None = None) -> float:
        """Cooldown for an HTTP 429 response."""
        if self.honor_retry_after and retry_after is not None:
            seconds = min(max(retry_after, MIN_RETRY_AFTER), self.max_retry_after_seconds)
        else:
            seconds = self.rate_limit_seconds
        return max(seconds, self.rate_limit_floor)

    def server_error_cooldown(self) -> float:
        """Cooldown for an HTTP 5xx response."""
        return self.server_error_seconds

    def with_rate_limit_floor(self, seconds: float) -> CooldownPolicy:
        """Copy whose 429 cooldowns never drop below ``seconds`` (vendor-specific tuning)."""
        return CooldownPolicy(
            rate_limit_seconds=max(self.rate_limit_seconds, seconds),
            server_error_seconds=self.server_error_seconds,
            honor_retry_after=self.honor_retry_after,
            max_retry_after_seconds=self.max_retry_after_seconds,
            rate_limit_floor=seconds,
        )


DEFAULT_COOLDOWN_POLICY = CooldownPolicy()
