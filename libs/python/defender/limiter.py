"""Token bucket rate limiter consumed by the defender."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Protocol


class RateLimiter(Protocol):
    """Per-key limiter capability used by tracked clients."""

    def allow(self, now: datetime) -> bool:
        """Consume one unit at ``now``; return ``False`` when the quota is exhausted."""
        ...


LimiterFactory = Callable[[int, timedelta], RateLimiter]


class TokenBucketLimiter:
    """Continuous token bucket: ``rate`` tokens per second up to ``burst`` tokens.

    The bucket starts full. Time is supplied by the caller so that decisions are
    reproducible; a timestamp older than the last one seen refills nothing.
    """

    __slots__ = ("_rate", "_burst", "_tokens", "_last")

    def __init__(self, rate: float, burst: int) -> None:
        if rate <= 0:
            raise ValueError("rate must be positive")
        if burst <= 0:
            raise ValueError("burst must be positive")
        self._rate = float(rate)
        self._burst = burst
        self._tokens = float(burst)
        self._last: datetime | None = None

    @classmethod
    def per_window(cls, max_events: int, window: timedelta) -> "TokenBucketLimiter":
        """Build a limiter allowing ``max_events`` per ``window`` with burst ``max_events``."""
        seconds = window.total_seconds()
        if seconds <= 0:
            raise ValueError("window must be positive")
        return cls(rate=max_events / seconds, burst=max_events)

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def burst(self) -> int:
        return self._burst

    @property
    def tokens(self) -> float:
        """Tokens available as of the last call to :meth:`allow`."""
        return self._tokens

    def allow(self, now: datetime) -> bool:
        """Refill for the time elapsed since the previous call, then try to take one token."""
        if self._last is None:
            self._last = now
        elif now > self._last:
            elapsed = (now - self._last).total_seconds()
            self._tokens = min(float(self._burst), self._tokens + elapsed * self._rate)
            self._last = now
        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return True
        return False
