"""Bounded execution log attached to the action plan."""

from __future__ import annotations

from collections import deque
from typing import Iterable, Optional

from .constants import EXECUTION_LOG_CAP
from .models import ExecutionLogEntry, LogOrigin, LogOutcome, ModuleName


class ExecutionLog:
    """Ring buffer of :class:`ExecutionLogEntry`, oldest first.

    Not thread-safe on its own; the owning store appends under its lock.
    """

    def __init__(self, cap: int = EXECUTION_LOG_CAP) -> None:
        self._entries: deque[ExecutionLogEntry] = deque(maxlen=cap)

    @property
    def cap(self) -> int:
        return self._entries.maxlen or 0

    def append(
        self,
        action: str,
        *,
        outcome: LogOutcome = LogOutcome.SUCCESS,
        origin: LogOrigin = LogOrigin.MANUAL,
        module: Optional[ModuleName] = None,
        elapsed_ms: float = 0.0,
        detail: str = "",
        user: Optional[str] = None,
    ) -> ExecutionLogEntry:
        entry = ExecutionLogEntry(
            action=action,
            outcome=outcome,
            origin=origin,
            module=module,
            elapsed_ms=round(elapsed_ms, 3),
            detail=detail,
            user=user,
        )
        self._entries.append(entry)
        return entry

    def entries(self) -> list[ExecutionLogEntry]:
        return list(self._entries)

    def recent(self, limit: int = 50) -> list[ExecutionLogEntry]:
        """Newest first."""
        items: Iterable[ExecutionLogEntry] = reversed(self._entries)
        return list(items)[: max(limit, 0)]

    def __len__(self) -> int:
        return len(self._entries)
