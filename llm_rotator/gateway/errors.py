"""Typed failures raised by providers and the rotator.

Every failure is a ``ProviderError`` so callers can catch one type and still
inspect ``provider_name``, ``rate_limited`` and ``timeout``.
"""

from __future__ import annotations

ROTATOR_NAME = "rotator"


class ProviderError(Exception):
    """Base failure carrying the originating provider and its nature."""

    def __init__(
        self,
        provider_name: str,
        message: str,
        rate_limited: bool = False,
        timeout: bool = False,
    ):
        super().__init__(message)
        self.provider_name = provider_name
        self.message = message
        self.rate_limited = rate_limited
        self.timeout = timeout

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(provider_name={self.provider_name!r}, message={self.message!r}, "
            f"rate_limited={self.rate_limited}, timeout={self.timeout})"
        )


class ProviderNotEnabledError(ProviderError):
    """No credential configured — the network was never touched."""

    def __init__(self, provider_name: str):
        super().__init__(provider_name, "Provider not enabled (missing API key)")


class RateLimitedError(ProviderError):
    """The vendor answered HTTP 429."""

    def __init__(self, provider_name: str, cooldown_seconds: float, retry_after: float | None = None):
        super().__init__(provider_name, "Rate limited", rate_limited=True)
        self.cooldown_seconds = cooldown_seconds
        self.retry_after = retry_after


class ProviderTimeoutError(ProviderError):
    """No response within the per-call deadline."""

    def __init__(self, provider_name: str, timeout_seconds: float):
        super().__init__(provider_name, "Timeout", timeout=True)
        self.timeout_seconds = timeout_seconds


class ProviderFailureError(ProviderError):
    """Any other failure: HTTP error, network error, malformed response."""

    def __init__(self, provider_name: str, message: str, status_code: int | None = None):
        super().__init__(provider_name, message)
        self.status_code = status_code


class RotatorConfigurationError(ProviderError):
    """The rotator has no providers to try."""

    def __init__(self, message: str = "Provider rotator not initialized or no providers available"):
        super().__init__(ROTATOR_NAME, message)


class RotatorExhaustedError(ProviderError):
    """Every attempt failed, or no provider could be selected."""

    def __init__(
        self,
        message: str,
        errors: list[str],
        rate_limited: bool = False,
        timeout: bool = False,
    ):
        super().__init__(ROTATOR_NAME, message, rate_limited=rate_limited, timeout=timeout)
        self.errors = list(errors)
