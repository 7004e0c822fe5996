"""In-memory action plan: modules, their task buckets, log and versions.

Every mutating operation runs under the store's lock, updates metrics and
the execution log, then builds a snapshot.  The snapshot is published to
subscribers only after the lock has been released so a callback may call
back into the store.
"""

from __future__ import annotations

import asyncio
import copy
import hashlib
import json
import random
import threading
import time
from typing import Any, Callable, Optional, Union

from loguru import logger

from .audit import ExecutionLog
from .config import ActionPlanConfig
from .constants import GLOBAL_SCOPE_MODULE, INITIAL_VERSION, STATUS_TO_BUCKET
from .events import Subscriber, SubscriberRegistry
from .exporters import ExportFormat, parse_format, tasks_csv, to_json
from .findings import GLOBAL_SCOPE, collect_findings, confidence_for, recommended_tasks
from .models import (
    AnalysisKind,
    AnalysisResult,
    ExecutionLogEntry,
    LogOrigin,
    LogOutcome,
    Module,
    ModuleHealth,
    ModuleName,
    PlanVersion,
    Priority,
    Task,
    TaskFilter,
    TaskStatus,
)
from .notifications import NotificationCenter
from .utils import coerce_enum, iso_in, now_iso, parse_iso

SNAPSHOT_LOG_ENTRIES = 50

UPDATABLE_TASK_FIELDS = {
    "title",
    "priority",
    "status",
    "detail",
    "ai_suggestion",
    "progress",
    "assignee",
    "tags",
    "estimate_hours",
}


def _validate_progress(value: Any) -> int:
    try:
        pct = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"progress must be an integer, got {value!r}") from None
    if pct < 0 or pct > 100:
        raise ValueError(f"progress must be within 0-100, got {pct}")
    return pct


def _validate_title(value: Any) -> str:
    title = str(value or "").strip()
    if not title:
        raise ValueError("title is required")
    return title


def _bump_minor(version: str) -> str:
    """``v2.0`` -> ``v2.1``."""
    raw = version[1:] if version.startswith("v") else version
    major, _, minor = raw.partition(".")
    try:
        return f"v{int(major)}.{int(minor or 0) + 1}"
    except ValueError:
        return f"{version}.1"


def _digest(payload: Any) -> str:
    data = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:16]


class ActionPlanStore:
    """Owns the fixed set of modules and every task in them."""

    def __init__(
        self,
        config: Optional[ActionPlanConfig] = None,
        *,
        rng: Optional[random.Random] = None,
        notifications: Optional[NotificationCenter] = None,
    ) -> None:
        self.config = config or ActionPlanConfig()
        self.rng = rng or random.Random()
        self.notifications = notifications
        self.subscribers = SubscriberRegistry("action_plan")
        self._lock = threading.RLock()
        self._modules: dict[ModuleName, Module] = {name: Module(name=name) for name in ModuleName}
        for module in self._modules.values():
            module.recompute_metrics()
        self._log = ExecutionLog()
        self._analyses: list[AnalysisResult] = []
        self._versions: list[PlanVersion] = []
        self._version_task_ids: set[str] = set()
        self._version_module_hashes = self._module_hashes()
        self._current_version = PlanVersion(
            version=INITIAL_VERSION,
            actor="system",
            summary="Initial action plan",
            affected_modules=[m.value for m in ModuleName],
            content_hash=_digest(self._version_module_hashes),
        )
        self._statistics: dict[str, Any] = {}
        self._refresh_statistics()
        logger.debug("Action plan ready with {} modules", len(self._modules))

    # -- subscriptions ------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return self.subscribers.subscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> bool:
        return self.subscribers.unsubscribe(callback)

    # -- internal helpers ---------------------------------------------------

    def _modules_payload(self) -> list[dict[str, Any]]:
        return [m.to_dict() for m in self._modules.values()]

    def _module_hashes(self) -> dict[str, str]:
        return {
            name.value: _digest([t.to_dict() for t in module.all_tasks()] + [i.to_dict() for i in module.issues])
            for name, module in self._modules.items()
        }

    def _all_tasks(self) -> list[Task]:
        return [t for m in self._modules.values() for t in m.all_tasks()]

    def _find(self, task_id: str) -> Optional[tuple[Module, Task]]:
        for module in self._modules.values():
            loc = module.locate(task_id)
            if loc is not None:
                which, idx = loc
                return module, module.bucket(which)[idx]
        return None

    def _refresh_statistics(self) -> None:
        tasks = self._all_tasks()
        done = [t for t in tasks if t.status == TaskStatus.DONE]
        hours: list[float] = []
        for task in done:
            start = parse_iso(task.created_at)
            end = parse_iso(task.updated_at or task.created_at)
            if start and end:
                hours.append((end - start).total_seconds() / 3600)
        self._statistics = {
            "total_tasks": len(tasks),
            "global_completion_rate": (len(done) / len(tasks)) * 100 if tasks else 0.0,
            "mean_resolution_hours": sum(hours) / len(hours) if hours else 0.0,
            "critical_modules": len(
                [m for m in self._modules.values() if m.health == ModuleHealth.CRITICAL]
            ),
            "completed_ai_tasks": len([t for t in done if t.ai_suggestion]),
            "last_update": now_iso(),
        }

    def _snapshot_locked(self) -> dict[str, Any]:
        return {
            "modules": self._modules_payload(),
            "statistics": dict(self._statistics),
            "current_version": self._current_version.to_dict(),
            "versions": [v.to_dict() for v in self._versions],
            "recent_logs": [e.to_dict() for e in self._log.recent(SNAPSHOT_LOG_ENTRIES)],
            "log_size": len(self._log),
            "analyses": [a.id for a in self._analyses],
        }

    def _commit_locked(self, *modules: Module) -> dict[str, Any]:
        for module in modules:
            module.recompute_metrics()
        self._refresh_statistics()
        return self._snapshot_locked()

    def _notify(self, kind: str, title: str, message: str, *, module: Optional[str] = None,
                priority: Priority = Priority.MEDIUM) -> None:
        if self.notifications is None:
            return
        self.notifications.notify(
            kind,
            title,
            message,
            channels=self.config.notification_channels,
            module=module,
            priority=priority,
        )

    # -- reads --------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return self._snapshot_locked()

    def statistics(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._statistics)

    def modules(self) -> list[Module]:
        with self._lock:
            return copy.deepcopy(list(self._modules.values()))

    def get_module(self, name: Union[str, ModuleName]) -> Optional[Module]:
        try:
            key = ModuleName(getattr(name, "value", name))
        except ValueError:
            return None
        with self._lock:
            return copy.deepcopy(self._modules[key])

    def get_task(self, task_id: str) -> Optional[Task]:
        with self._lock:
            found = self._find(task_id)
            return copy.deepcopy(found[1]) if found else None

    def all_tasks(self) -> list[Task]:
        with self._lock:
            return copy.deepcopy(self._all_tasks())

    def logs(self, limit: int = 50) -> list[ExecutionLogEntry]:
        """Newest first."""
        with self._lock:
            return copy.deepcopy(self._log.recent(limit))

    def log_size(self) -> int:
        with self._lock:
            return len(self._log)

    def analyses(self) -> list[AnalysisResult]:
        with self._lock:
            return copy.deepcopy(self._analyses)

    def current_version(self) -> PlanVersion:
        with self._lock:
            return copy.deepcopy(self._current_version)

    def versions(self) -> list[PlanVersion]:
        with self._lock:
            return copy.deepcopy(self._versions)

    # -- task operations ----------------------------------------------------

    def add_task(
        self,
        task: Union[Task, dict[str, Any]],
        *,
        origin: LogOrigin = LogOrigin.MANUAL,
    ) -> Optional[Task]:
        """Insert a task into the bucket matching its status.

        Returns ``None`` without touching the plan when the module is not one
        of the fixed modules.  Raises ``ValueError`` on invalid fields.
        """
        started = time.perf_counter()
        if isinstance(task, Task):
            raw = task.to_dict()
        else:
            raw = dict(task)
        raw.pop("id", None)

        module_raw = raw.get("module")
        try:
            module_name = ModuleName(getattr(module_raw, "value", module_raw))
        except ValueError:
            logger.warning("add_task ignored: unknown module {!r}", module_raw)
            return None

        new_task = Task(
            title=_validate_title(raw.get("title")),
            module=module_name,
            priority=coerce_enum(Priority, raw.get("priority") or Priority.MEDIUM),
            status=coerce_enum(TaskStatus, raw.get("status") or TaskStatus.PENDING),
            detail=str(raw.get("detail") or ""),
            ai_suggestion=raw.get("ai_suggestion"),
            progress=_validate_progress(raw.get("progress") or 0),
            assignee=raw.get("assignee"),
            tags=list(raw.get("tags") or []),
            estimate_hours=raw.get("estimate_hours"),
        )

        with self._lock:
            module = self._modules[module_name]
            module.bucket(STATUS_TO_BUCKET[new_task.status]).append(new_task)
            self._log.append(
                "task_created",
                origin=origin,
                module=module_name,
                elapsed_ms=(time.perf_counter() - started) * 1000,
                detail=f"Task created: {new_task.title}",
            )
            snapshot = self._commit_locked(module)
            result = copy.deepcopy(new_task)

        logger.debug("Task {} added to {} ({})", result.id, module_name.value, result.status.value)
        self.subscribers.publish(snapshot)
        if result.priority == Priority.CRITICAL:
            self._notify(
                "critical_task",
                "Critical task created",
                result.title,
                module=module_name.value,
                priority=Priority.CRITICAL,
            )
        return result

    def update_task(self, task_id: str, changes: Optional[dict[str, Any]] = None, **kwargs: Any) -> bool:
        """Merge ``changes`` into a task; moves it between buckets on status change.

        Returns ``False`` when the id is unknown.  Invalid fields raise
        ``ValueError`` before anything is modified.
        """
        started = time.perf_counter()
        updates = {**(changes or {}), **kwargs}
        unknown = set(updates) - UPDATABLE_TASK_FIELDS
        if unknown:
            raise ValueError(f"Cannot update task fields: {sorted(unknown)}")
        if "title" in updates:
            updates["title"] = _validate_title(updates["title"])
        if "priority" in updates:
            updates["priority"] = coerce_enum(Priority, updates["priority"])
        if "status" in updates:
            updates["status"] = coerce_enum(TaskStatus, updates["status"])
        if "progress" in updates:
            updates["progress"] = _validate_progress(updates["progress"])
        if "tags" in updates:
            updates["tags"] = list(updates["tags"] or [])

        with self._lock:
            found = self._find(task_id)
            if found is None:
                return False
            module, task = found
            old_status = task.status
            for key, value in updates.items():
                setattr(task, key, value)
            task.touch()
            old_bucket = STATUS_TO_BUCKET[old_status]
            new_bucket = STATUS_TO_BUCKET[task.status]
            if old_bucket != new_bucket:
                module.bucket(old_bucket).remove(task)
                module.bucket(new_bucket).append(task)
            self._log.append(
                "task_updated",
                module=module.name,
                elapsed_ms=(time.perf_counter() - started) * 1000,
                detail=f"Task updated: {task.title}",
            )
            snapshot = self._commit_locked(module)
            completed = old_status != TaskStatus.DONE and task.status == TaskStatus.DONE
            title = task.title

        self.subscribers.publish(snapshot)
        if completed:
            self._notify("task_completed", "Task completed", title, module=module.name.value)
        return True

    def delete_task(self, task_id: str) -> bool:
        started = time.perf_counter()
        with self._lock:
            found = self._find(task_id)
            if found is None:
                return False
            module, task = found
            module.bucket(STATUS_TO_BUCKET[task.status]).remove(task)
            self._log.append(
                "task_deleted",
                module=module.name,
                elapsed_ms=(time.perf_counter() - started) * 1000,
                detail=f"Task removed: {task.title}",
            )
            snapshot = self._commit_locked(module)
        self.subscribers.publish(snapshot)
        return True

    def filter_tasks(self, criteria: Optional[TaskFilter] = None) -> list[Task]:
        """Flattened list of matching tasks in module then bucket order."""
        f = criteria or TaskFilter()
        start = parse_iso(f.created_from)
        end = parse_iso(f.created_to)
        with self._lock:
            tasks = self._all_tasks()
            out: list[Task] = []
            for task in tasks:
                if f.modules and task.module not in f.modules:
                    continue
                if f.statuses and task.status not in f.statuses:
                    continue
                if f.priorities and task.priority not in f.priorities:
                    continue
                if f.assignees and task.assignee not in f.assignees:
                    continue
                if f.tags and not set(f.tags) & set(task.tags):
                    continue
                if f.ai_suggested_only and not task.ai_suggestion:
                    continue
                created = parse_iso(task.created_at)
                if start and (created is None or created < start):
                    continue
                if end and (created is None or created > end):
                    continue
                out.append(task)
            return copy.deepcopy(out)

    # -- analysis -----------------------------------------------------------

    async def run_ai_analysis(
        self,
        kind: Union[str, AnalysisKind],
        scope: str = GLOBAL_SCOPE,
        *,
        origin: LogOrigin = LogOrigin.AI,
    ) -> AnalysisResult:
        """Produce synthetic findings and turn them into ``ai-generated`` tasks.

        Args:
            kind: One of ``performance``, ``integration``, ``ux``, ``behavior``.
            scope: ``"global"`` or a module name.
            origin: Origin recorded on the summary log entry.

        Returns:
            The stored :class:`AnalysisResult`.
        """
        started = time.perf_counter()
        kind = coerce_enum(AnalysisKind, kind)
        scope = getattr(scope, "value", scope)
        if scope != GLOBAL_SCOPE:
            scope = coerce_enum(ModuleName, scope).value

        if self.config.analysis_delay_seconds > 0:
            await asyncio.sleep(self.config.analysis_delay_seconds)

        findings = collect_findings(kind, scope, self.rng)
        created: list[Task] = []
        for task in recommended_tasks(findings, scope):
            added = self.add_task(task, origin=LogOrigin.AI)
            if added is not None:
                created.append(added)

        result = AnalysisResult(
            kind=kind,
            scope=scope,
            findings=findings,
            recommended_tasks=created,
            confidence=confidence_for(findings),
            next_analysis_at=iso_in(hours=6),
        )
        log_module = GLOBAL_SCOPE_MODULE if scope == GLOBAL_SCOPE else ModuleName(scope)
        with self._lock:
            touched: list[Module] = []
            for issue in findings.issues:
                self._modules[issue.module].issues.append(copy.deepcopy(issue))
                touched.append(self._modules[issue.module])
            for suggestion in findings.improvements:
                self._modules[suggestion.module].improvements.append(copy.deepcopy(suggestion))
                touched.append(self._modules[suggestion.module])
            self._analyses.append(result)
            self._log.append(
                "ai_analysis_completed",
                origin=origin,
                module=log_module,
                elapsed_ms=(time.perf_counter() - started) * 1000,
                detail=f"{kind.value} analysis finished with {len(created)} recommendations",
            )
            snapshot = self._commit_locked(*touched)
            out = copy.deepcopy(result)

        logger.info(
            "AI analysis {} ({}) finished: {} tasks, confidence {}",
            kind.value,
            scope,
            len(created),
            out.confidence,
        )
        self.subscribers.publish(snapshot)
        self._notify(
            "ai_analysis",
            f"{kind.value.capitalize()} analysis finished",
            f"{len(created)} recommendations for {scope}",
            module=log_module.value,
        )
        return out

    # -- versions -----------------------------------------------------------

    def create_version(self, summary: str, actor: str = "ai") -> PlanVersion:
        """Archive the current version and install the next minor one."""
        started = time.perf_counter()
        with self._lock:
            task_ids = {t.id for t in self._all_tasks()}
            hashes = self._module_hashes()
            changed = sorted(
                name for name, digest in hashes.items() if self._version_module_hashes.get(name) != digest
            )
            previous = self._current_version
            previous.status = "archived"
            self._versions.append(previous)
            self._current_version = PlanVersion(
                version=_bump_minor(previous.version),
                actor=actor,
                summary=summary,
                affected_modules=changed,
                tasks_added=len(task_ids - self._version_task_ids),
                tasks_removed=len(self._version_task_ids - task_ids),
                content_hash=_digest(hashes),
            )
            self._version_task_ids = task_ids
            self._version_module_hashes = hashes
            self._log.append(
                "version_created",
                origin=LogOrigin.SYSTEM,
                elapsed_ms=(time.perf_counter() - started) * 1000,
                detail=f"{self._current_version.version}: {summary}",
                user=actor,
            )
            snapshot = self._commit_locked()
            out = copy.deepcopy(self._current_version)
        logger.info("Action plan version {} created by {}", out.version, actor)
        self.subscribers.publish(snapshot)
        return out

    def record(
        self,
        action: str,
        *,
        outcome: LogOutcome = LogOutcome.SUCCESS,
        origin: LogOrigin = LogOrigin.SYSTEM,
        module: Optional[ModuleName] = None,
        detail: str = "",
    ) -> ExecutionLogEntry:
        """Append a free-form entry to the execution log."""
        with self._lock:
            entry = self._log.append(action, outcome=outcome, origin=origin, module=module, detail=detail)
            snapshot = self._snapshot_locked()
            out = copy.deepcopy(entry)
        self.subscribers.publish(snapshot)
        return out

    # -- export -------------------------------------------------------------

    def export(
        self,
        fmt: Union[str, ExportFormat] = ExportFormat.JSON,
        *,
        include_logs: bool = False,
        include_history: bool = False,
        include_analyses: bool = False,
    ) -> str:
        """Serialize the plan as JSON or as a flat CSV of all tasks."""
        fmt = parse_format(fmt, allowed=(ExportFormat.JSON, ExportFormat.CSV))
        with self._lock:
            if fmt == ExportFormat.CSV:
                return tasks_csv(self._modules.values())
            payload: dict[str, Any] = {
                "metadata": {
                    "version": self._current_version.version,
                    "exported_at": now_iso(),
                    "format": fmt.value,
                },
                "modules": self._modules_payload(),
                "statistics": dict(self._statistics),
            }
            if include_logs:
                payload["logs"] = [e.to_dict() for e in self._log.entries()]
            if include_history:
                payload["history"] = [v.to_dict() for v in self._versions]
            if include_analyses:
                payload["analyses"] = [a.to_dict() for a in self._analyses]
        return to_json(payload)
