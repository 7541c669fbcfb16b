"""Background thread reclaiming expired defender entries."""

from __future__ import annotations

from threading import Event, Thread
from typing import Any

from .defender import Defender


class CleanupThread(Thread):
    """Daemon thread running :meth:`Defender.cleanup_task` until stopped."""

    def __init__(self, defender: Defender[Any], *, name: str = "defender-cleanup") -> None:
        super().__init__(name=name, daemon=True)
        self._defender = defender
        self.stop_event = Event()

    def run(self) -> None:
        self._defender.cleanup_task(self.stop_event)

    def stop(self, timeout: float | None = None) -> None:
        """Signal the loop to exit and wait for the thread to finish."""
        self.stop_event.set()
        if self.is_alive():
            self.join(timeout)
