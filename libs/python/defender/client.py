"""Per-key state tracked by the defender."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, Hashable, TypeVar

from .limiter import RateLimiter

K = TypeVar("K", bound=Hashable)


@dataclass(frozen=True, slots=True)
class ClientView(Generic[K]):
    """Read-only snapshot of a tracked client, taken under the defender lock."""

    key: K
    banned: bool
    expires_at: datetime

    def expired(self, now: datetime) -> bool:
        return now > self.expires_at


class Client(Generic[K]):
    """Mutable state for one key: its limiter, ban flag and expiration.

    Instances are owned by a :class:`~defender.defender.Defender` and are only
    touched while its lock is held, so no locking happens here.
    """

    __slots__ = ("_key", "_limiter", "_banned", "_expires_at")

    def __init__(self, key: K, limiter: RateLimiter, expires_at: datetime) -> None:
        self._key = key
        self._limiter = limiter
        self._banned = False
        self._expires_at = expires_at

    def __repr__(self) -> str:
        return (
            f"Client(key={self._key!r}, banned={self._banned}, "
            f"expires_at={self._expires_at.isoformat()})"
        )

    @property
    def key(self) -> K:
        return self._key

    @property
    def banned(self) -> bool:
        return self._banned

    @property
    def expires_at(self) -> datetime:
        return self._expires_at

    def expired(self, now: datetime) -> bool:
        return now > self._expires_at

    def ban_expired(self, now: datetime) -> bool:
        return self._banned and self.expired(now)

    def ban(self) -> None:
        self._banned = True

    def unban(self) -> None:
        self._banned = False

    def set_expiration(self, expires_at: datetime) -> None:
        self._expires_at = expires_at

    def reached_limit(self, now: datetime) -> bool:
        """Consume one unit from the limiter and report whether it was refused.

        Each call spends capacity, so call it once per event.
        """
        return not self._limiter.allow(now)

    def view(self) -> ClientView[K]:
        return ClientView(key=self._key, banned=self._banned, expires_at=self._expires_at)
