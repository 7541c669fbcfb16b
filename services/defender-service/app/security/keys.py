"""Resolution of the key a request is tracked under."""

from __future__ import annotations

import hashlib

from fastapi import Request

UNKNOWN_CLIENT = "unknown"


def client_key(request: Request, header: str) -> str:
    """Return the value of ``header`` when present, otherwise the peer address."""
    value = request.headers.get(header, "").strip()
    if value:
        return value
    if request.client is not None and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def key_digest(key: str) -> str:
    """Short, non-reversible form of ``key`` safe to put in logs."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]
