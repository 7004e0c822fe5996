"""Classification pipeline: triage unanalyzed backlog items in batches.

A run picks up to ``batch_size`` items sitting in ``ideas`` without an
analysis, scores them, looks for synergy with the action plan, and applies
the verdict through the same store operations a manual caller would use.
Overlapping runs are rejected through a non-blocking lock, never queued.
"""

from __future__ import annotations

import asyncio
import random
import threading
import time
from typing import Any, Awaitable, Callable, Optional

from loguru import logger

from .action_plan import ActionPlanStore
from .backlog import BacklogStore
from .config import QueueConfig
from .events import SubscriberRegistry
from .models import (
    AIAnalysis,
    BacklogItem,
    BacklogStatus,
    KanbanColumn,
    LogOrigin,
    LogOutcome,
    PipelineState,
    ProcessingDetail,
    ProcessingRecord,
    SynergyAction,
    TaskStatus,
)
from .notifications import NotificationCenter
from .scoring import analyze_item
from .similarity import detect_synergy
from .utils import iso_in, now_iso

Analyzer = Callable[[BacklogItem], Awaitable[AIAnalysis]]

PIPELINE_ACTOR = "ai"
BACKLOG_TAG = "backlog-originated"


class ClassificationPipeline:
    """Periodic triage of the backlog ``ideas`` column.

    Args:
        backlog: Store the items are read from and written back to.
        action_plan: Store scanned for synergy and receiving linked tasks.
        config: Batch size, per-item timeout, retries and artificial delay.
        rng: Random source for score jitter and confidence.
        analyzer: Optional coroutine replacing the built-in heuristic analysis.
        notifications: Optional notification inbox.
    """

    def __init__(
        self,
        backlog: BacklogStore,
        action_plan: ActionPlanStore,
        config: Optional[QueueConfig] = None,
        *,
        rng: Optional[random.Random] = None,
        analyzer: Optional[Analyzer] = None,
        notifications: Optional[NotificationCenter] = None,
    ) -> None:
        self.backlog = backlog
        self.action_plan = action_plan
        self.config = config or QueueConfig()
        self.rng = rng or random.Random()
        self.notifications = notifications
        self.subscribers = SubscriberRegistry("pipeline")
        self._analyzer = analyzer or self._heuristic_analysis
        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._state = PipelineState.IDLE
        self._last_run_at: Optional[str] = None
        self._next_run_at: Optional[str] = None
        self._last_error: Optional[str] = None
        self._last_run_failed = False

    # -- state --------------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: PipelineState, *, error: Optional[str] = None) -> None:
        with self._state_lock:
            self._state = state
            if error is not None:
                self._last_error = error
        self.subscribers.publish(self.status())

    def status(self) -> dict[str, Any]:
        with self._state_lock:
            return {
                "state": self._state.value,
                "queue": self.backlog.pending_analysis(),
                "last_run_at": self._last_run_at,
                "next_run_at": self._next_run_at,
                "last_run_failed": self._last_run_failed,
                "last_error": self._last_error,
                "config": self.config.model_dump(),
            }

    # -- analysis -----------------------------------------------------------

    async def _heuristic_analysis(self, item: BacklogItem) -> AIAnalysis:
        if self.config.analysis_delay_seconds > 0:
            await asyncio.sleep(self.config.analysis_delay_seconds)
        synergies = detect_synergy(item, self.action_plan.all_tasks())
        return analyze_item(
            item,
            rng=self.rng,
            synergies=tuple(synergies),
            next_analysis_hours=self.backlog.config.analysis_frequency_hours,
        )

    async def _analyze_with_retry(self, item: BacklogItem) -> AIAnalysis:
        attempts = max(int(self.config.retry_attempts), 1)
        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(self._analyzer(item), timeout=self.config.timeout_per_item)
            except Exception as exc:
                if attempt >= attempts:
                    raise
                logger.warning(
                    "Analysis of {} failed (attempt {}/{}): {}",
                    item.id,
                    attempt,
                    attempts,
                    exc.__class__.__name__,
                )
        raise RuntimeError("unreachable")

    # -- outcome ------------------------------------------------------------

    def _create_linked_task(self, item: BacklogItem) -> Optional[str]:
        task = self.action_plan.add_task(
            {
                "title": item.title,
                "module": item.impacted_module,
                "priority": item.priority,
                "status": TaskStatus.PENDING,
                "detail": item.description,
                "ai_suggestion": f"Originated from backlog item {item.id}",
                "estimate_hours": item.estimate_hours,
                "tags": [*item.tags, BACKLOG_TAG],
            },
            origin=LogOrigin.AI,
        )
        if task is None:
            return None
        self.backlog.link_tasks(item.id, [task.id])
        return task.id

    def _move(self, item: BacklogItem, target: KanbanColumn, reason: str) -> bool:
        return self.backlog.move_item(item.id, target, PIPELINE_ACTOR, automatic=True, reason=reason)

    def _apply(self, item: BacklogItem, analysis: AIAnalysis, record: ProcessingRecord) -> ProcessingDetail:
        verdict = analysis.classification
        settings = self.backlog.config
        integration = settings.integration
        action = "analyzed"
        target: Optional[KanbanColumn] = None

        if verdict.immediate_action:
            record.items_approved += 1
            action = "approved"
            if integration.sync_with_action_plan and integration.auto_create_tasks:
                if self._create_linked_task(item) is not None:
                    record.tasks_created += 1
                    action = "approved_task_created"
            if settings.auto_move_approved:
                if settings.require_approval_for_execution and item.status != BacklogStatus.APPROVED:
                    target = KanbanColumn.IN_ANALYSIS
                else:
                    target = KanbanColumn.IN_EXECUTION
        elif verdict.future_suggestion:
            target = KanbanColumn.IN_ANALYSIS
            action = "queued_for_review"
        elif verdict.rejected:
            record.items_rejected += 1
            target = KanbanColumn.ARCHIVED
            action = "rejected"
            self.backlog.update_item(item.id, status=BacklogStatus.REJECTED, actor=PIPELINE_ACTOR)

        column_after = item.column
        if target is not None and self._move(item, target, verdict.reason):
            record.items_moved += 1
            column_after = target
            if target == KanbanColumn.IN_EXECUTION:
                self.backlog.update_item(item.id, status=BacklogStatus.IN_EXECUTION, actor=PIPELINE_ACTOR)

        if integration.connect_related_items:
            links = [s.related_task_id for s in analysis.synergies if s.action == SynergyAction.LINK]
            if links:
                self.backlog.link_tasks(item.id, links)
        merges = [s.related_task_id for s in analysis.synergies if s.action == SynergyAction.MERGE]
        if merges:
            logger.info("Item {} looks like a duplicate of {}; merge left to a human", item.id, merges)

        return ProcessingDetail(
            item_id=item.id,
            action=action,
            outcome=LogOutcome.SUCCESS,
            reason=verdict.reason,
            confidence=analysis.confidence,
            column_before=item.column,
            column_after=column_after,
        )

    async def _process_item(self, item: BacklogItem, record: ProcessingRecord) -> ProcessingDetail:
        try:
            analysis = await self._analyze_with_retry(item)
            # the board may have changed while the analyzer ran
            live = self.backlog.get_item(item.id)
            if live is not None and live.column != KanbanColumn.IDEAS:
                logger.info("Item {} moved to {} during analysis; skipped", item.id, live.column.value)
                return ProcessingDetail(
                    item_id=item.id,
                    action="skipped",
                    outcome=LogOutcome.WARNING,
                    reason="item left ideas during analysis",
                    column_before=item.column,
                    column_after=live.column,
                )
            if live is None or not self.backlog.attach_analysis(item.id, analysis, column=KanbanColumn.IDEAS):
                return ProcessingDetail(
                    item_id=item.id,
                    action="skipped",
                    outcome=LogOutcome.WARNING,
                    reason="item removed, moved or already analyzed",
                    column_before=item.column,
                    column_after=live.column if live else None,
                )
            record.items_processed += 1
            return self._apply(live, analysis, record)
        except Exception as exc:
            logger.exception("Error processing backlog item {}", item.id)
            return ProcessingDetail(
                item_id=item.id,
                action="failed",
                outcome=LogOutcome.ERROR,
                reason=f"{exc.__class__.__name__}: {exc}",
                column_before=item.column,
                column_after=None,
            )

    # -- runs ---------------------------------------------------------------

    async def run_batch(self) -> Optional[ProcessingRecord]:
        """Process one batch; returns ``None`` if a run is already in progress."""
        if not self._run_lock.acquire(blocking=False):
            logger.info("Classification pipeline busy; run skipped")
            return None
        started = time.perf_counter()
        record = ProcessingRecord()
        try:
            with self._state_lock:
                self._last_run_at = now_iso()
            self._set_state(PipelineState.PROCESSING)
            try:
                for item in self.backlog.candidates_for_analysis(self.config.batch_size):
                    record.details.append(await self._process_item(item, record))
                with self._state_lock:
                    self._last_run_failed = False
            except Exception as exc:
                logger.exception("Classification run failed")
                record.failed = True
                with self._state_lock:
                    self._last_run_failed = True
                self._set_state(PipelineState.ERROR, error=f"{exc.__class__.__name__}: {exc}")
        finally:
            scores = [d.confidence for d in record.details if d.outcome == LogOutcome.SUCCESS]
            record.average_confidence = sum(scores) / len(scores) if scores else 0.0
            record.elapsed_ms = round((time.perf_counter() - started) * 1000, 3)
            self.backlog.record_processing(record)
            with self._state_lock:
                self._next_run_at = iso_in(hours=self.backlog.config.analysis_frequency_hours)
            self._run_lock.release()
            self._set_state(PipelineState.IDLE)

        logger.info(
            "Classification run {}: {} processed, {} approved, {} rejected, {} moved, {} tasks",
            record.id,
            record.items_processed,
            record.items_approved,
            record.items_rejected,
            record.items_moved,
            record.tasks_created,
        )
        prefs = self.backlog.config.notifications
        if self.notifications is not None and prefs.notify_ai_analysis and record.items_processed:
            self.notifications.notify(
                "pipeline_run",
                "Backlog analysis finished",
                f"{record.items_processed} items analyzed, {record.tasks_created} tasks created",
                channels=prefs.channels,
            )
        return record

    def run_batch_sync(self) -> Optional[ProcessingRecord]:
        """Blocking wrapper for threads without an event loop."""
        return asyncio.run(self.run_batch())
