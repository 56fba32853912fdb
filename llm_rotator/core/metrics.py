"""Prometheus metrics for provider calls and rotation."""

from prometheus_client import Counter, Histogram, Info, generate_latest

from llm_rotator.core.config import APP_VERSION

# --- Metrics ---

APP_INFO = Info("llm_rotator", "LLM provider rotator info")
APP_INFO.info({"version": APP_VERSION, "name": "llm_rotator"})

PROVIDER_CALLS = Counter(
    "llm_provider_calls_total",
    "Total provider generate() calls by outcome",
    ["provider", "outcome"],
)

PROVIDER_CALL_DURATION = Histogram(
    "llm_provider_call_duration_seconds",
    "Provider HTTP round-trip duration in seconds",
    ["provider"],
    buckets=[0.1, 0.25, 0.5, 1, 2.5, 5, 10, 20, 30, 60],
)

PROVIDER_COOLDOWNS = Counter(
    "llm_provider_cooldowns_total",
    "Cooldowns imposed on providers",
    ["provider", "reason"],
)

ROTATOR_REQUESTS = Counter(
    "llm_rotator_requests_total",
    "Rotator generate() requests by result",
    ["result"],
)

ROTATOR_DEGRADED_SELECTIONS = Counter(
    "llm_rotator_degraded_selections_total",
    "Selections made while no provider was available",
)


def metrics_text() -> bytes:
    """Render all metrics in the Prometheus text exposition format."""
    return generate_latest()
