"""In-app notifications for planboard events.

Only the ``in_app`` channel is delivered (kept in a bounded in-memory list);
any other configured channel is logged as undelivered since there are no
external integrations.
"""

from __future__ import annotations

import copy
import threading
from collections import deque
from typing import Iterable, Optional

from loguru import logger

from .constants import NOTIFICATION_CAP
from .models import Notification, Priority

IN_APP = "in_app"


class NotificationCenter:
    """Bounded notification inbox."""

    def __init__(self, cap: int = NOTIFICATION_CAP) -> None:
        """Initialize the inbox.

        Args:
            cap: Maximum number of stored notifications; oldest are dropped.
        """
        self._items: deque[Notification] = deque(maxlen=cap)
        self._lock = threading.Lock()

    def notify(
        self,
        kind: str,
        title: str,
        message: str,
        *,
        channels: Iterable[str] = (IN_APP,),
        module: Optional[str] = None,
        priority: Priority = Priority.MEDIUM,
    ) -> Optional[Notification]:
        """Record a notification.

        Args:
            kind: Event kind (``task_completed``, ``pipeline_run`` ...).
            title: Short title.
            message: Body text.
            channels: Configured delivery channels.
            module: Optional related module name.
            priority: Notification priority.

        Returns:
            The stored notification, or ``None`` when ``in_app`` is not a channel.
        """
        channels = list(channels)
        for channel in channels:
            if channel != IN_APP:
                logger.debug("Notification channel {} not available; '{}' not delivered", channel, title)
        if IN_APP not in channels:
            return None
        note = Notification(
            kind=kind,
            title=title,
            message=message,
            module=module,
            priority=priority,
            channels=channels,
        )
        with self._lock:
            self._items.append(note)
            out = copy.deepcopy(note)
        logger.debug("Notification [{}] {}", kind, title)
        return out

    def list(self, *, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        """Newest first."""
        with self._lock:
            items = [n for n in reversed(self._items) if not (unread_only and n.read)]
            return copy.deepcopy(items[: max(limit, 0)])

    def unread_count(self) -> int:
        with self._lock:
            return len([n for n in self._items if not n.read])

    def mark_read(self, notification_id: str) -> bool:
        with self._lock:
            for note in self._items:
                if note.id == notification_id:
                    note.read = True
                    return True
        return False

    def mark_all_read(self) -> int:
        with self._lock:
            count = 0
            for note in self._items:
                if not note.read:
                    note.read = True
                    count += 1
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
