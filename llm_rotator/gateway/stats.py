"""Provider Stats — per-provider health and usage tracking.

Tracks call counters, the last error, a self-imposed cooldown and a bounded
sliding window of recent call timestamps. The window drives proactive RPM
throttling independently of whatever the vendor enforces.

Thread-safe via threading.Lock (one lock per provider).
"""

from __future__ import annotations

import threading
import time
from collections import deque
from datetime import datetime, timezone

# Sliding window capacity (most recent calls kept)
MAX_RECENT_CALLS = 100

# Width of the RPM window in seconds
WINDOW_SECONDS = 60.0


class ProviderStats:
    """Usage and health bookkeeping owned by exactly one provider.

    Usage:
        stats = ProviderStats()

        stats.record_call(True)
        stats.record_call(False, "HTTP 503: Service Unavailable")

        if stats.is_on_cooldown() or stats.calls_in_last_minute() >= rpm_limit:
            ...  # skip this provider for now
    """

    def __init__(self, max_recent_calls: int = MAX_RECENT_CALLS):
        self.calls_made = 0
        self.calls_succeeded = 0
        self.calls_failed = 0
        self.last_call_time: datetime | None = None
        self.last_error: str | None = None
        self.last_error_time: datetime | None = None

        self._cooldown_until: float | None = None  # time.monotonic()
        self._recent_calls: deque[float] = deque(maxlen=max_recent_calls)
        self._lock = threading.Lock()

    @property
    def max_recent_calls(self) -> int:
        return self._recent_calls.maxlen or 0

    def record_call(self, success: bool, error: str | None = None) -> None:
        """Record one finished call attempt."""
        now = time.monotonic()
        with self._lock:
            self.calls_made += 1
            self.last_call_time = datetime.now(timezone.utc)
            # deque(maxlen) evicts from the front once over capacity
            self._recent_calls.append(now)

            if success:
                self.calls_succeeded += 1
            else:
                self.calls_failed += 1
                self.last_error = error
                self.last_error_time = self.last_call_time

    def set_cooldown(self, seconds: float) -> None:
        """Put the provider on cooldown, replacing any existing one."""
        with self._lock:
            self._cooldown_until = time.monotonic() + seconds

    def is_on_cooldown(self) -> bool:
        """True while a cooldown is pending. Expired cooldowns are cleared lazily."""
        with self._lock:
            if self._cooldown_until is None:
                return False
            if time.monotonic() < self._cooldown_until:
                return True
            self._cooldown_until = None
            return False

    def cooldown_remaining(self) -> float:
        """Seconds until the cooldown expires, 0 if none."""
        with self._lock:
            if self._cooldown_until is None:
                return 0.0
            return max(0.0, self._cooldown_until - time.monotonic())

    def calls_in_last_minute(self) -> int:
        """Count calls recorded within the trailing 60 seconds."""
        now = time.monotonic()
        with self._lock:
            return self._count_recent(now)

    @property
    def success_rate(self) -> float:
        """Success percentage; 100.0 before the first call."""
        with self._lock:
            return self._success_rate()

    def snapshot(self) -> dict:
        """Counters, window and cooldown state read under one lock acquisition."""
        now = time.monotonic()
        with self._lock:
            return {
                "on_cooldown": self._cooldown_until is not None and now < self._cooldown_until,
                "calls_last_minute": self._count_recent(now),
                "success_rate": self._success_rate(),
                "calls_made": self.calls_made,
                "calls_succeeded": self.calls_succeeded,
                "calls_failed": self.calls_failed,
                "last_call_time": self.last_call_time.isoformat() if self.last_call_time else None,
                "last_error": self.last_error,
                "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
                "recent_calls": len(self._recent_calls),
            }

    # Callers hold self._lock

    def _count_recent(self, now: float) -> int:
        cutoff = now - WINDOW_SECONDS
        return sum(1 for ts in self._recent_calls if ts > cutoff)

    def _success_rate(self) -> float:
        if self.calls_made == 0:
            return 100.0
        return self.calls_succeeded / self.calls_made * 100
