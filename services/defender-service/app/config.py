from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
import os


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime configuration values exposed to FastAPI components."""

    app_name: str = os.getenv("APP_NAME", "defender-service")
    version: str = os.getenv("VERSION", "0.1.0")
    http_host: str = os.getenv("HTTP_HOST", "0.0.0.0")
    http_port: int = int(os.getenv("HTTP_PORT", "8000"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    max_events: int = int(os.getenv("DEFENDER_MAX_EVENTS", "20"))
    window_seconds: float = float(os.getenv("DEFENDER_WINDOW_SECONDS", "60"))
    ban_seconds: float = float(os.getenv("DEFENDER_BAN_SECONDS", "900"))
    key_header: str = os.getenv("DEFENDER_KEY_HEADER", "X-Client-ID")
    cleanup_enabled: bool = _as_bool(os.getenv("DEFENDER_CLEANUP_ENABLED", "true"))

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.window_seconds)

    @property
    def ban_duration(self) -> timedelta:
        return timedelta(seconds=self.ban_seconds)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings instance for the running process."""
    return Settings()
