"""JSON log formatting for the defender service."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
import sys

from .config import get_settings

_EXTRA_FIELDS = ("event", "client_key", "path", "expires_at")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def configure_logging(root: logging.Logger | None = None) -> None:
    """Install a JSON stdout handler on the root logger unless one is already set up."""
    root = root or logging.getLogger()
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root.setLevel(getattr(logging, get_settings().log_level, logging.INFO))
    root.addHandler(handler)
