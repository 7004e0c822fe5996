from __future__ import annotations

import random

import pytest

from planboard.action_plan import ActionPlanStore
from planboard.backlog import BacklogStore
from planboard.config import BacklogConfig, QueueConfig
from planboard.notifications import NotificationCenter
from planboard.pipeline import ClassificationPipeline


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def notifications() -> NotificationCenter:
    return NotificationCenter()


@pytest.fixture
def action_plan(rng: random.Random, notifications: NotificationCenter) -> ActionPlanStore:
    return ActionPlanStore(rng=rng, notifications=notifications)


@pytest.fixture
def backlog(notifications: NotificationCenter) -> BacklogStore:
    return BacklogStore(BacklogConfig(), notifications=notifications)


@pytest.fixture
def pipeline(backlog: BacklogStore, action_plan: ActionPlanStore, rng: random.Random) -> ClassificationPipeline:
    return ClassificationPipeline(backlog, action_plan, QueueConfig(timeout_per_item=5.0), rng=rng)
