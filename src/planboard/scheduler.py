"""Background timers driving the pipeline and the automatic analysis."""

from __future__ import annotations

import threading
from typing import Callable, Optional

from loguru import logger


class PeriodicRunner:
    """Call ``job`` every ``interval_seconds`` on a daemon thread.

    The first call happens one interval after :meth:`start`.  Exceptions
    raised by the job are logged and the loop keeps going.
    """

    def __init__(self, name: str, job: Callable[[], object], interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.job = job
        self.interval_seconds = float(interval_seconds)
        self._lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self.runs = 0

    @property
    def running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            self._stop.clear()
            self._thread = threading.Thread(target=self._loop, daemon=True, name=f"planboard-{self.name}")
            self._thread.start()
        logger.info("Periodic runner {} started (every {:.0f}s)", self.name, self.interval_seconds)

    def shutdown(self, *, timeout: float = 10.0) -> None:
        with self._lock:
            self._stop.set()
            thread = self._thread
        if thread and thread.is_alive():
            thread.join(timeout=max(timeout, 0.0))
        logger.info("Periodic runner {} stopped", self.name)

    def tick(self) -> None:
        """Run the job once on the calling thread."""
        try:
            self.job()
        except Exception:
            logger.exception("Periodic runner {} job failed", self.name)
        finally:
            self.runs += 1

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.tick()
