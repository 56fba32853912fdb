"""Core types and DTOs for the provider rotation layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProviderStatus(str, Enum):
    """Derived availability of a provider, evaluated in this order."""

    DISABLED = "DISABLED"  # No credential configured
    RATE_LIMITED = "RATE_LIMITED"  # On cooldown or at the self-imposed RPM ceiling
    AVAILABLE = "AVAILABLE"


class CallOutcome(str, Enum):
    """Classification of a single provider call (metrics label values)."""

    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    ERROR = "error"
    NOT_ENABLED = "not_enabled"


# ---------------------------------------------------------------------------
# Cooldown defaults (seconds)
# ---------------------------------------------------------------------------

RATE_LIMIT_COOLDOWN = 60.0  # HTTP 429 — the vendor's own window is the constraint
SERVER_ERROR_COOLDOWN = 30.0  # HTTP 5xx — transient, shorter
GEMINI_RATE_LIMIT_COOLDOWN = 120.0  # Gemini free tier is strictly enforced

# Sampling defaults shared by the OpenAI-style vendors
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2048


# ---------------------------------------------------------------------------
# Provider status info — observability record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderStatusInfo:
    """Point-in-time view of one provider, safe to hand to dashboards."""

    name: str
    model: str
    status: str
    available: bool
    calls_made: int
    calls_succeeded: int
    calls_failed: int
    success_rate: float
    calls_last_minute: int
    rpm_limit: int

    def to_dict(self) -> dict:
        """Serialize to JSON-compatible dict for API responses."""
        return asdict(self)
