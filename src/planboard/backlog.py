"""In-memory strategic backlog laid out as a Kanban board."""

from __future__ import annotations

import copy
import re
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

from loguru import logger

from .config import BacklogConfig
from .constants import COLUMN_DEFINITIONS, PROCESSING_HISTORY_CAP
from .events import Subscriber, SubscriberRegistry
from .exporters import ExportFormat, items_csv, kanban_board, parse_format, to_json
from .models import (
    AIAnalysis,
    BacklogCategory,
    BacklogFilter,
    BacklogItem,
    BacklogStatus,
    ChecklistItem,
    ColumnDefinition,
    Comment,
    KanbanColumn,
    Movement,
    Priority,
    ProcessingRecord,
)
from .notifications import NotificationCenter
from .utils import coerce_enum, now_iso, parse_iso

UPDATABLE_ITEM_FIELDS = {
    "title",
    "description",
    "category",
    "impacted_module",
    "priority",
    "status",
    "column",
    "tags",
    "checklist",
    "estimate_hours",
    "progress",
    "roi_estimate",
}

_ROI_JUNK = re.compile(r"[^\d.-]")


def _roi_value(raw: Optional[str]) -> float:
    if not raw:
        return 0.0
    try:
        return float(_ROI_JUNK.sub("", raw))
    except ValueError:
        return 0.0


def _checklist(raw: Any) -> list[ChecklistItem]:
    out: list[ChecklistItem] = []
    for entry in list(raw or []):
        if isinstance(entry, ChecklistItem):
            out.append(entry)
        elif isinstance(entry, dict):
            out.append(ChecklistItem.from_dict(entry))
        else:
            out.append(ChecklistItem(text=str(entry)))
    return out


def _normalize(changes: dict[str, Any]) -> dict[str, Any]:
    """Validate and coerce item fields; raises ``ValueError``."""
    out = dict(changes)
    if "title" in out:
        out["title"] = str(out["title"] or "").strip()
        if not out["title"]:
            raise ValueError("title is required")
    if "category" in out:
        out["category"] = coerce_enum(BacklogCategory, out["category"])
    if "priority" in out:
        out["priority"] = coerce_enum(Priority, out["priority"])
    if "status" in out:
        out["status"] = coerce_enum(BacklogStatus, out["status"])
    if "column" in out:
        out["column"] = coerce_enum(KanbanColumn, out["column"])
    if "progress" in out:
        try:
            pct = int(out["progress"] or 0)
        except (TypeError, ValueError):
            raise ValueError(f"progress must be an integer, got {out['progress']!r}") from None
        if pct < 0 or pct > 100:
            raise ValueError(f"progress must be within 0-100, got {pct}")
        out["progress"] = pct
    if "tags" in out:
        out["tags"] = list(out["tags"] or [])
    if "checklist" in out:
        out["checklist"] = _checklist(out["checklist"])
    if "impacted_module" in out:
        out["impacted_module"] = str(getattr(out["impacted_module"], "value", out["impacted_module"]) or "")
    return out


class BacklogStore:
    """Owns backlog items, the fixed column set and the processing history."""

    def __init__(
        self,
        config: Optional[BacklogConfig] = None,
        *,
        notifications: Optional[NotificationCenter] = None,
    ) -> None:
        self.config = config or BacklogConfig()
        self.notifications = notifications
        self.subscribers = SubscriberRegistry("backlog")
        self._lock = threading.RLock()
        self._items: list[BacklogItem] = []
        self._columns = [ColumnDefinition(*definition) for definition in COLUMN_DEFINITIONS]
        self._history: deque[ProcessingRecord] = deque(maxlen=PROCESSING_HISTORY_CAP)
        self._pending_analysis: list[str] = []
        self._statistics: dict[str, Any] = {}
        self._refresh_statistics()

    # -- subscriptions ------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return self.subscribers.subscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> bool:
        return self.subscribers.unsubscribe(callback)

    # -- internal helpers ---------------------------------------------------

    def _find(self, item_id: str) -> Optional[BacklogItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def _column(self, column: KanbanColumn) -> ColumnDefinition:
        for col in self._columns:
            if col.id == column:
                return col
        raise KeyError(column)

    def _column_counts(self) -> dict[str, int]:
        counts = {col.id.value: 0 for col in self._columns}
        for item in self._items:
            counts[item.column.value] += 1
        return counts

    def _refresh_statistics(self) -> None:
        items = self._items
        total = len(items)
        by_category: dict[str, int] = {}
        by_priority: dict[str, int] = {}
        for item in items:
            by_category[item.category.value] = by_category.get(item.category.value, 0) + 1
            by_priority[item.priority.value] = by_priority.get(item.priority.value, 0) + 1
        by_column = self._column_counts()
        approved = len([i for i in items if i.status == BacklogStatus.APPROVED])
        done = [i for i in items if i.column == KanbanColumn.DONE]

        cycle_days: list[float] = []
        for item in done:
            start = parse_iso(item.created_at)
            end = parse_iso(item.updated_at or item.created_at)
            if start and end:
                cycle_days.append((end - start).total_seconds() / 86400)

        month_start = datetime.now(timezone.utc).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        this_month = 0
        for item in items:
            created = parse_iso(item.created_at)
            if created and created >= month_start:
                this_month += 1

        scores = [i.analysis.score for i in items if i.analysis is not None]
        cap = self.config.max_items_per_column
        self._statistics = {
            "total_items": total,
            "items_by_column": by_column,
            "items_by_category": by_category,
            "items_by_priority": by_priority,
            "approval_rate": (approved / total) * 100 if total else 0.0,
            "execution_rate": (len(done) / total) * 100 if total else 0.0,
            "average_cycle_days": sum(cycle_days) / len(cycle_days) if cycle_days else 0.0,
            "items_this_month": this_month,
            "total_estimated_roi": sum(_roi_value(i.roi_estimate) for i in items),
            "average_score": sum(scores) / len(scores) if scores else 0.0,
            "columns_over_cap": sorted(col for col, count in by_column.items() if count > cap),
            "last_update": now_iso(),
        }

    def _warn_if_over_cap(self, column: KanbanColumn) -> None:
        count = len([i for i in self._items if i.column == column])
        if count > self.config.max_items_per_column:
            logger.warning(
                "Column {} holds {} items (advisory cap {})",
                column.value,
                count,
                self.config.max_items_per_column,
            )

    def _snapshot_locked(self) -> dict[str, Any]:
        return {
            "items": [i.to_dict() for i in self._items],
            "columns": [c.to_dict() for c in self._columns],
            "statistics": copy.deepcopy(self._statistics),
            "config": self.config.model_dump(),
            "processing_history": [r.to_dict() for r in reversed(self._history)],
            "pending_analysis": list(self._pending_analysis),
        }

    def _commit_locked(self) -> dict[str, Any]:
        self._refresh_statistics()
        return self._snapshot_locked()

    def _move_locked(
        self,
        item: BacklogItem,
        target: KanbanColumn,
        *,
        actor: str,
        automatic: bool,
        reason: Optional[str],
    ) -> None:
        item.movement_history.append(
            Movement(
                from_column=item.column,
                to_column=target,
                actor=actor,
                automatic=automatic,
                reason=reason,
            )
        )
        item.column = target
        self._warn_if_over_cap(target)

    # -- reads --------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return self._snapshot_locked()

    def statistics(self) -> dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._statistics)

    def columns(self) -> list[ColumnDefinition]:
        return list(self._columns)

    def items(self) -> list[BacklogItem]:
        with self._lock:
            return copy.deepcopy(self._items)

    def get_item(self, item_id: str) -> Optional[BacklogItem]:
        with self._lock:
            item = self._find(item_id)
            return copy.deepcopy(item) if item else None

    def processing_history(self) -> list[ProcessingRecord]:
        """Newest first."""
        with self._lock:
            return copy.deepcopy(list(reversed(self._history)))

    def pending_analysis(self) -> list[str]:
        with self._lock:
            return list(self._pending_analysis)

    def candidates_for_analysis(self, limit: int) -> list[BacklogItem]:
        """Unanalyzed items in ``ideas``, in insertion order."""
        with self._lock:
            picked = [i for i in self._items if i.column == KanbanColumn.IDEAS and i.analysis is None]
            return copy.deepcopy(picked[: max(limit, 0)])

    def filter_items(self, criteria: Optional[BacklogFilter] = None) -> list[BacklogItem]:
        f = criteria or BacklogFilter()
        start = parse_iso(f.created_from)
        end = parse_iso(f.created_to)
        needle = (f.search or "").strip().lower()
        with self._lock:
            out: list[BacklogItem] = []
            for item in self._items:
                if f.categories and item.category not in f.categories:
                    continue
                if f.priorities and item.priority not in f.priorities:
                    continue
                if f.statuses and item.status not in f.statuses:
                    continue
                if f.modules and item.impacted_module not in f.modules:
                    continue
                if f.creators and item.creator not in f.creators:
                    continue
                if needle:
                    haystack = " ".join([item.title, item.description, *item.tags]).lower()
                    if needle not in haystack:
                        continue
                if f.ai_analyzed_only and item.analysis is None:
                    continue
                if f.approved_only and item.status != BacklogStatus.APPROVED:
                    continue
                if f.tags and not set(f.tags) & set(item.tags):
                    continue
                created = parse_iso(item.created_at)
                if start and (created is None or created < start):
                    continue
                if end and (created is None or created > end):
                    continue
                out.append(item)
            return copy.deepcopy(out)

    # -- item operations ----------------------------------------------------

    def create_item(self, data: Union[BacklogItem, dict[str, Any]], *, actor: Optional[str] = None) -> BacklogItem:
        """Add a new item (``ideas`` column unless given); raises ``ValueError``."""
        raw = data.to_dict() if isinstance(data, BacklogItem) else dict(data)
        raw.setdefault("title", "")
        fields = _normalize({k: v for k, v in raw.items() if k in UPDATABLE_ITEM_FIELDS})
        item = BacklogItem(creator=str(actor or raw.get("creator") or "system"), **fields)

        with self._lock:
            self._items.append(item)
            queued = False
            if self.config.auto_analysis_enabled and item.id not in self._pending_analysis:
                self._pending_analysis.append(item.id)
                queued = True
            self._warn_if_over_cap(item.column)
            snapshot = self._commit_locked()
            out = copy.deepcopy(item)

        logger.debug("Backlog item {} created in {} (queued={})", out.id, out.column.value, queued)
        self.subscribers.publish(snapshot)
        prefs = self.config.notifications
        if self.notifications is not None and prefs.notify_new_items:
            self.notifications.notify(
                "new_item",
                "New backlog item",
                out.title,
                channels=prefs.channels,
                module=out.impacted_module or None,
                priority=out.priority,
            )
        return out

    def update_item(
        self,
        item_id: str,
        changes: Optional[dict[str, Any]] = None,
        *,
        actor: str = "system",
        automatic: bool = False,
        reason: Optional[str] = None,
        **kwargs: Any,
    ) -> bool:
        """Merge fields into an item; a column change is tracked as a movement."""
        updates = {**(changes or {}), **kwargs}
        unknown = set(updates) - UPDATABLE_ITEM_FIELDS
        if unknown:
            raise ValueError(f"Cannot update item fields: {sorted(unknown)}")
        updates = _normalize(updates)

        with self._lock:
            item = self._find(item_id)
            if item is None:
                return False
            target = updates.pop("column", None)
            for key, value in updates.items():
                setattr(item, key, value)
            if target is not None and target != item.column:
                self._move_locked(item, target, actor=actor, automatic=automatic, reason=reason)
            item.touch()
            snapshot = self._commit_locked()
        self.subscribers.publish(snapshot)
        return True

    def move_item(
        self,
        item_id: str,
        target_column: Union[str, KanbanColumn],
        actor: str = "user",
        *,
        automatic: bool = False,
        reason: Optional[str] = None,
    ) -> bool:
        """Move an item to another column.

        Automatic moves into a column that only accepts manual curation are
        refused.  Returns ``False`` for unknown ids and refused moves.
        """
        target = coerce_enum(KanbanColumn, target_column)
        with self._lock:
            item = self._find(item_id)
            if item is None:
                return False
            if automatic and not self._column(target).auto_movement:
                logger.warning("Automatic move of {} into {} refused", item_id, target.value)
                return False
            if item.column == target:
                return True
            self._move_locked(item, target, actor=actor, automatic=automatic, reason=reason)
            item.touch()
            snapshot = self._commit_locked()
            title = item.title
            priority = item.priority
        self.subscribers.publish(snapshot)
        prefs = self.config.notifications
        if self.notifications is not None and prefs.notify_status_changes and not automatic:
            self.notifications.notify(
                "status_change",
                f"Item moved to {target.value}",
                title,
                channels=prefs.channels,
                priority=priority,
            )
        return True

    def delete_item(self, item_id: str) -> bool:
        with self._lock:
            item = self._find(item_id)
            if item is None:
                return False
            self._items.remove(item)
            if item_id in self._pending_analysis:
                self._pending_analysis.remove(item_id)
            snapshot = self._commit_locked()
        self.subscribers.publish(snapshot)
        return True

    def attach_analysis(
        self, item_id: str, analysis: AIAnalysis, *, column: Optional[KanbanColumn] = None
    ) -> bool:
        """Attach an analysis once; an item already analyzed is left untouched.

        With ``column`` set, the item must still sit in that column.
        """
        with self._lock:
            item = self._find(item_id)
            if item is None or item.analysis is not None:
                return False
            if column is not None and item.column != column:
                return False
            item.analysis = analysis
            item.touch()
            if item_id in self._pending_analysis:
                self._pending_analysis.remove(item_id)
            snapshot = self._commit_locked()
        self.subscribers.publish(snapshot)
        return True

    def link_tasks(self, item_id: str, task_ids: list[str]) -> bool:
        with self._lock:
            item = self._find(item_id)
            if item is None:
                return False
            added = [t for t in task_ids if t not in item.linked_task_ids]
            if not added:
                return True
            item.linked_task_ids.extend(added)
            item.touch()
            snapshot = self._commit_locked()
        self.subscribers.publish(snapshot)
        return True

    def add_comment(self, item_id: str, author: str, content: str, kind: str = "comment") -> Optional[Comment]:
        if not str(content or "").strip():
            raise ValueError("comment content is required")
        with self._lock:
            item = self._find(item_id)
            if item is None:
                return None
            comment = Comment(author=author, content=content, kind=kind)
            item.comments.append(comment)
            item.touch()
            snapshot = self._commit_locked()
            out = copy.deepcopy(comment)
        self.subscribers.publish(snapshot)
        return out

    def set_checklist_done(self, item_id: str, check_id: str, done: bool = True) -> bool:
        with self._lock:
            item = self._find(item_id)
            if item is None:
                return False
            for check in item.checklist:
                if check.id == check_id:
                    check.done = done
                    check.completed_at = now_iso() if done else None
                    break
            else:
                return False
            if item.checklist:
                finished = len([c for c in item.checklist if c.done])
                item.progress = round(finished / len(item.checklist) * 100)
            item.touch()
            snapshot = self._commit_locked()
        self.subscribers.publish(snapshot)
        return True

    # -- pipeline bookkeeping -----------------------------------------------

    def record_processing(self, record: ProcessingRecord) -> None:
        with self._lock:
            self._history.append(copy.deepcopy(record))
            snapshot = self._commit_locked()
        self.subscribers.publish(snapshot)

    # -- configuration ------------------------------------------------------

    def update_config(self, **changes: Any) -> BacklogConfig:
        """Validate and apply configuration changes (nested blocks merge)."""
        current = self.config.model_dump()
        for key, value in changes.items():
            if isinstance(value, dict) and isinstance(current.get(key), dict):
                current[key] = {**current[key], **value}
            else:
                current[key] = value
        # pydantic's ValidationError is a ValueError
        new_config = BacklogConfig.model_validate(current)
        with self._lock:
            self.config = new_config
            snapshot = self._commit_locked()
        logger.info("Backlog configuration updated: {}", sorted(changes))
        self.subscribers.publish(snapshot)
        return new_config

    # -- export -------------------------------------------------------------

    def export(
        self,
        fmt: Union[str, ExportFormat] = ExportFormat.JSON,
        *,
        criteria: Optional[BacklogFilter] = None,
        include_analyses: bool = True,
        include_history: bool = True,
    ) -> str:
        fmt = parse_format(fmt, allowed=(ExportFormat.JSON, ExportFormat.CSV, ExportFormat.KANBAN))
        items = self.filter_items(criteria) if criteria else self.items()
        if fmt == ExportFormat.CSV:
            return items_csv(items)
        if fmt == ExportFormat.KANBAN:
            return kanban_board(items, self._columns)
        rows = []
        for item in items:
            row = item.to_dict()
            if not include_analyses:
                row.pop("analysis", None)
            if not include_history:
                row.pop("movement_history", None)
            rows.append(row)
        return to_json(
            {
                "metadata": {
                    "exported_at": now_iso(),
                    "format": fmt.value,
                    "total_items": len(items),
                },
                "items": rows,
                "statistics": self.statistics(),
            }
        )
