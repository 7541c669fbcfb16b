"""HTTP route definitions for the defender service."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from defender import ClientView, Defender

from ..config import get_settings
from ..security.keys import client_key, key_digest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")


class ClientResponse(BaseModel):
    """Serialised snapshot of a tracked client."""

    key: str
    banned: bool
    expires_at: datetime

    @classmethod
    def from_view(cls, view: ClientView[str]) -> "ClientResponse":
        """Build a response model from a defender snapshot."""
        return cls(key=view.key, banned=view.banned, expires_at=view.expires_at)


class BanListResponse(BaseModel):
    """Envelope for the clients currently banned."""

    items: list[ClientResponse]


class EventRequest(BaseModel):
    """Activity event submitted by an upstream pipeline."""

    key: str = Field(..., min_length=1)
    occurred_at: datetime | None = None


class EventResponse(BaseModel):
    """Admission decision for a submitted event."""

    key: str
    blocked: bool


class CleanupResponse(BaseModel):
    removed: int
    tracked: int


settings = get_settings()


def _build_defender() -> Defender[str]:
    """Instantiate the process-wide defender from settings, failing fast on bad policy."""
    logger.info(
        "defender allows %d events per %ss, bans for %ss",
        settings.max_events,
        settings.window_seconds,
        settings.ban_seconds,
    )
    return Defender(settings.max_events, settings.window, settings.ban_duration)


defender = _build_defender()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_blocked(key: str, now: datetime, path: str) -> bool:
    """Run the admission check, treating any internal fault as a block."""
    try:
        return defender.increment(key, now)
    except Exception:
        logger.exception(
            "admission check failed, rejecting",
            extra={"event": "admission_fault", "client_key": key_digest(key), "path": path},
        )
        return True


def _retry_after(key: str, now: datetime) -> int:
    view = defender.client(key)
    if view is None or not view.banned:
        return 1
    return max(1, math.ceil((view.expires_at - now).total_seconds()))


def guard_request(request: Request) -> str:
    """Reject requests from banned or over-quota callers; return the caller key."""
    key = client_key(request, settings.key_header)
    now = _utcnow()
    if _is_blocked(key, now, request.url.path):
        logger.debug(
            "request rejected",
            extra={"event": "request_blocked", "client_key": key_digest(key), "path": request.url.path},
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="client temporarily banned",
            headers={"Retry-After": str(_retry_after(key, now))},
        )
    return key


def _event_time(occurred_at: datetime | None) -> datetime:
    """Normalise a submitted timestamp to UTC, rejecting ones too late to track."""
    if occurred_at is None:
        return _utcnow()
    if occurred_at.tzinfo is None:
        occurred_at = occurred_at.replace(tzinfo=timezone.utc)
    try:
        occurred_at = occurred_at.astimezone(timezone.utc)
    except OverflowError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="occurred_at out of range"
        ) from exc
    if occurred_at > defender.latest_event_time():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="occurred_at out of range"
        )
    return occurred_at


@router.post("/events", response_model=EventResponse)
def record_event(payload: EventRequest) -> EventResponse:
    """Record one event for ``payload.key`` and report whether it must be rejected."""
    now = _event_time(payload.occurred_at)
    blocked = _is_blocked(payload.key, now, "/v1/events")
    return EventResponse(key=payload.key, blocked=blocked)


@router.get("/bans", response_model=BanListResponse, dependencies=[Depends(guard_request)])
def list_bans() -> BanListResponse:
    """Return every client currently banned."""
    items = [ClientResponse.from_view(view) for view in defender.ban_list()]
    items.sort(key=lambda item: item.expires_at)
    return BanListResponse(items=items)


@router.get("/clients/{key}", response_model=ClientResponse, dependencies=[Depends(guard_request)])
def get_client(key: str) -> ClientResponse:
    view = defender.client(key)
    if view is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="client not found")
    return ClientResponse.from_view(view)


@router.post("/cleanup", response_model=CleanupResponse, dependencies=[Depends(guard_request)])
def run_cleanup() -> CleanupResponse:
    """Evict expired clients now instead of waiting for the background loop."""
    removed = defender.cleanup()
    return CleanupResponse(removed=removed, tracked=len(defender))
