"""Application object wiring settings, stores, pipeline and timers."""

from __future__ import annotations

import asyncio
import random
from typing import Optional

from loguru import logger

from .action_plan import ActionPlanStore
from .backlog import BacklogStore
from .config import Settings
from .findings import GLOBAL_SCOPE
from .models import AnalysisKind, AnalysisResult
from .notifications import NotificationCenter
from .pipeline import Analyzer, ClassificationPipeline
from .sample_data import load_sample_backlog
from .scheduler import PeriodicRunner

SECONDS_PER_HOUR = 3600


class Planboard:
    """One logical action plan and backlog per process, built explicitly.

    Args:
        settings: Validated configuration; defaults when omitted.
        rng: Shared random source. Seeded from ``settings.seed`` when omitted.
        analyzer: Optional replacement for the pipeline's per-item analysis.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        rng: Optional[random.Random] = None,
        analyzer: Optional[Analyzer] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.rng = rng or random.Random(self.settings.seed)
        self.notifications = NotificationCenter()
        self.action_plan = ActionPlanStore(
            self.settings.action_plan,
            rng=self.rng,
            notifications=self.notifications,
        )
        self.backlog = BacklogStore(self.settings.backlog, notifications=self.notifications)
        self.pipeline = ClassificationPipeline(
            self.backlog,
            self.action_plan,
            self.settings.queue,
            rng=self.rng,
            analyzer=analyzer,
            notifications=self.notifications,
        )
        self.runners: dict[str, PeriodicRunner] = {}
        if self.settings.seed_sample_data:
            load_sample_backlog(self.backlog)

    def run_auto_analysis(self) -> AnalysisResult:
        """One automatic action-plan analysis with a randomly chosen kind."""
        kind = self.rng.choice(list(AnalysisKind))
        return asyncio.run(self.action_plan.run_ai_analysis(kind, GLOBAL_SCOPE))

    def start(self) -> None:
        if self.settings.backlog.auto_analysis_enabled and "pipeline" not in self.runners:
            self.runners["pipeline"] = PeriodicRunner(
                "pipeline",
                self.pipeline.run_batch_sync,
                self.settings.backlog.analysis_frequency_hours * SECONDS_PER_HOUR,
            )
        if self.settings.action_plan.auto_analysis_enabled and "analysis" not in self.runners:
            self.runners["analysis"] = PeriodicRunner(
                "analysis",
                self.run_auto_analysis,
                self.settings.action_plan.analysis_frequency_hours * SECONDS_PER_HOUR,
            )
        for runner in self.runners.values():
            runner.start()
        logger.info("Planboard started ({} periodic runners)", len(self.runners))

    def shutdown(self, *, timeout: float = 10.0) -> None:
        for runner in self.runners.values():
            runner.shutdown(timeout=timeout)
        self.runners.clear()
        self.action_plan.subscribers.clear()
        self.backlog.subscribers.clear()
        self.pipeline.subscribers.clear()
        logger.info("Planboard shut down")
