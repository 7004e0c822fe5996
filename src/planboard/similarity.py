"""Compare backlog items with action-plan tasks."""

from __future__ import annotations

from typing import Iterable

from .constants import PRIORITY_RANK
from .models import BacklogItem, Synergy, SynergyAction, SynergyRelation, Task

TITLE_WEIGHT = 0.4
MODULE_WEIGHT = 0.3
PRIORITY_WEIGHT = 0.2
TAG_WEIGHT = 0.1

LINK_THRESHOLD = 0.7
MERGE_THRESHOLD = 0.9


def _title_words(title: str) -> list[str]:
    return title.lower().split(" ")


def similarity(item: BacklogItem, task: Task) -> float:
    """Weighted similarity in ``[0, 1]``.

    Title overlap counts the item's words found in the task title, divided
    by the larger word count, so the measure is not symmetric.
    """
    score = 0.0

    item_words = _title_words(item.title)
    task_words = _title_words(task.title)
    common = [w for w in item_words if w in task_words]
    score += (len(common) / max(len(item_words), len(task_words))) * TITLE_WEIGHT

    module = getattr(task.module, "value", task.module)
    if item.impacted_module == module:
        score += MODULE_WEIGHT

    if abs(PRIORITY_RANK[item.priority] - PRIORITY_RANK[task.priority]) <= 1:
        score += PRIORITY_WEIGHT

    if item.tags and task.tags:
        shared = [t for t in item.tags if t in task.tags]
        score += (len(shared) / max(len(item.tags), len(task.tags))) * TAG_WEIGHT

    # rounded so 0.4 + 0.3 + 0.2 lands exactly on the 0.9 boundary
    return max(0.0, min(1.0, round(score, 6)))


def relation_for(value: float) -> tuple[SynergyRelation, SynergyAction] | None:
    if value > MERGE_THRESHOLD:
        return SynergyRelation.DUPLICATE, SynergyAction.MERGE
    if value > LINK_THRESHOLD:
        return SynergyRelation.COMPLEMENT, SynergyAction.LINK
    return None


def detect_synergy(item: BacklogItem, tasks: Iterable[Task]) -> list[Synergy]:
    """Scan every task and keep the ones related to ``item``."""
    found: list[Synergy] = []
    for task in tasks:
        value = similarity(item, task)
        rel = relation_for(value)
        if rel is None:
            continue
        relation, action = rel
        found.append(
            Synergy(
                related_task_id=task.id,
                relation=relation,
                description=f'{round(value * 100)}% similar to "{task.title}"',
                action=action,
            )
        )
    return found
