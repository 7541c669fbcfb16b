"""FastAPI application wiring for the defender service."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from defender import CleanupThread

from .api import routes
from .config import get_settings
from .logging_utils import configure_logging

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the defender cleanup loop for the lifetime of the app."""
    configure_logging()
    cleanup_thread: CleanupThread | None = None
    if settings.cleanup_enabled:
        cleanup_thread = CleanupThread(routes.defender)
        cleanup_thread.start()
    app.state.cleanup_thread = cleanup_thread
    try:
        yield
    finally:
        if cleanup_thread is not None:
            cleanup_thread.stop(timeout=5.0)
            if cleanup_thread.is_alive():
                logger.warning("cleanup thread did not stop within 5s")


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


app.include_router(routes.router)
