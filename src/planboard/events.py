"""Observer registry used by the stores to broadcast snapshots."""

from __future__ import annotations

import threading
from typing import Any, Callable

from loguru import logger

Subscriber = Callable[[dict[str, Any]], None]


class SubscriberRegistry:
    """Ordered list of snapshot callbacks with explicit detach.

    ``publish`` iterates over a copy of the list and re-checks membership
    before each call, so a callback removed while a broadcast is in flight
    is not invoked afterwards.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; the returned callable detaches it."""
        with self._lock:
            self._subscribers.append(callback)

        def _detach() -> None:
            self.unsubscribe(callback)

        return _detach

    def unsubscribe(self, callback: Subscriber) -> bool:
        with self._lock:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                return False
        return True

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, snapshot: dict[str, Any]) -> int:
        """Deliver ``snapshot`` in registration order; returns the delivery count."""
        with self._lock:
            targets = list(self._subscribers)
        delivered = 0
        for callback in targets:
            with self._lock:
                if callback not in self._subscribers:
                    continue
            try:
                callback(snapshot)
                delivered += 1
            except Exception:
                logger.exception("{} subscriber {!r} raised", self.name, callback)
        return delivered
