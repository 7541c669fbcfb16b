"""Thread-safe client tracker applying rate limits and temporary bans."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from threading import Event, Lock
from typing import Final, Generic

from .client import Client, ClientView, K
from .limiter import LimiterFactory, RateLimiter, TokenBucketLimiter

logger = logging.getLogger(__name__)

FACTOR: Final[int] = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Defender(Generic[K]):
    """Track clients by key, ban the ones exceeding their quota and forget idle ones.

    Every public method runs as a single critical section over one lock, so a
    decision made by :meth:`increment` is atomic with respect to all other
    callers. Clients never leave the defender; callers get :class:`ClientView`
    snapshots instead.

    Parameters
    ----------
    max_events:
        Burst size and number of events allowed per ``window``.
    window:
        Refill window of the rate limiter. Idle clients are forgotten after
        ``window * FACTOR``.
    ban_duration:
        How long a client stays banned once it exceeds its quota.
    limiter_factory:
        Optional callable ``(max_events, window) -> RateLimiter``; defaults to
        :meth:`TokenBucketLimiter.per_window`.
    """

    def __init__(
        self,
        max_events: int,
        window: timedelta,
        ban_duration: timedelta,
        *,
        limiter_factory: LimiterFactory | None = None,
    ) -> None:
        if isinstance(max_events, bool) or not isinstance(max_events, int) or max_events <= 0:
            raise ValueError("max_events must be a positive integer")
        if not isinstance(window, timedelta) or window <= timedelta(0):
            raise ValueError("window must be a positive timedelta")
        if not isinstance(ban_duration, timedelta) or ban_duration <= timedelta(0):
            raise ValueError("ban_duration must be a positive timedelta")
        self._max_events = max_events
        self._window = window
        self._ban_duration = ban_duration
        self._limiter_factory: LimiterFactory = limiter_factory or TokenBucketLimiter.per_window
        self._clients: dict[K, Client[K]] = {}
        self._lock = Lock()

    @property
    def max_events(self) -> int:
        return self._max_events

    @property
    def window(self) -> timedelta:
        return self._window

    @property
    def ban_duration(self) -> timedelta:
        return self._ban_duration

    @property
    def cleanup_interval(self) -> timedelta:
        """Idle horizon of an active client, also the period of the cleanup loop."""
        return self._window * FACTOR

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def _new_limiter(self) -> RateLimiter:
        return self._limiter_factory(self._max_events, self._window)

    def _valid_expiration(self, now: datetime) -> datetime:
        return now + self.cleanup_interval

    def _banned_expiration(self, now: datetime) -> datetime:
        return now + self._ban_duration

    def latest_event_time(self) -> datetime:
        """Latest ``now`` whose idle and ban horizons still fit in a ``datetime``."""
        return datetime.max.replace(tzinfo=timezone.utc) - max(self.cleanup_interval, self._ban_duration)

    def increment(self, key: K, now: datetime | None = None) -> bool:
        """Record one event for ``key`` and return ``True`` when it must be blocked."""
        if now is None:
            now = _utcnow()
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                client = Client(key, self._new_limiter(), self._valid_expiration(now))
                # a fresh bucket is full, so the first event is always admitted
                client.reached_limit(now)
                self._clients[key] = client
                return False

            # the ban lapsed but cleanup has not swept the entry yet
            if client.ban_expired(now):
                client.unban()
                logger.debug("ban lapsed for client %r", key)

            # banned clients keep their expiry and limiter untouched so the ban can run out
            if client.banned:
                return True

            # both horizons are computed before the client or its limiter change
            idle_until = self._valid_expiration(now)
            banned_until = self._banned_expiration(now)

            if client.reached_limit(now):
                client.ban()
                client.set_expiration(banned_until)
                logger.info(
                    "client %r banned until %s",
                    key,
                    client.expires_at.isoformat(),
                    extra={"event": "client_banned", "expires_at": client.expires_at.isoformat()},
                )
                return True

            client.set_expiration(idle_until)
            return False

    def client(self, key: K) -> ClientView[K] | None:
        """Return a snapshot of the client tracked under ``key``, or ``None``."""
        with self._lock:
            client = self._clients.get(key)
            return client.view() if client is not None else None

    def ban_list(self) -> list[ClientView[K]]:
        """Return snapshots of every currently banned client, in no particular order."""
        with self._lock:
            return [client.view() for client in self._clients.values() if client.banned]

    def cleanup(self, now: datetime | None = None) -> int:
        """Forget every expired client, banned or not, and return how many were removed."""
        if now is None:
            now = _utcnow()
        with self._lock:
            expired = [key for key, client in self._clients.items() if client.expired(now)]
            for key in expired:
                del self._clients[key]
            remaining = len(self._clients)
        logger.debug("cleanup removed %d clients, %d tracked", len(expired), remaining)
        return len(expired)

    def cleanup_task(self, stop_event: Event) -> None:
        """Run :meth:`cleanup` every ``cleanup_interval`` until ``stop_event`` is set.

        Blocks the calling thread; run it on a dedicated one (see
        :class:`~defender.cleanup.CleanupThread`). The lock is only taken for
        the duration of each cleanup pass.
        """
        interval = self.cleanup_interval.total_seconds()
        logger.info("cleanup loop started, interval %.1fs", interval)
        while not stop_event.wait(timeout=interval):
            self.cleanup()
        logger.info("cleanup loop stopped")
