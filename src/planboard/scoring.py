"""Heuristic scoring and triage of backlog items.

The score is a deterministic floor (priority, category, description and
checklist bonuses on top of a base of 50) plus a random jitter drawn from
an injected ``random.Random`` so tests can pin outcomes.
"""

from __future__ import annotations

import random
from typing import Optional

from .constants import (
    CATEGORY_COMPLEXITY,
    CATEGORY_RESOURCES,
    CATEGORY_WEIGHTS,
    DEFAULT_CATEGORY_WEIGHT,
    DEFAULT_RESOURCES,
    PRIORITY_BONUS,
)
from .models import (
    AIAnalysis,
    BacklogCategory,
    BacklogItem,
    ClassificationResult,
    Complexity,
    Priority,
    Synergy,
    TechnicalAssessment,
)
from .utils import generate_id, iso_in, now_iso

BASE_SCORE = 50
JITTER = 10

IMMEDIATE_ACTION_THRESHOLD = 80
NEEDS_VALIDATION_THRESHOLD = 60
FUTURE_SUGGESTION_THRESHOLD = 40


def base_score(item: BacklogItem) -> int:
    """Score before jitter."""
    score = BASE_SCORE
    score += PRIORITY_BONUS.get(item.priority, 0)
    score += CATEGORY_WEIGHTS.get(item.category, DEFAULT_CATEGORY_WEIGHT)
    length = len(item.description or "")
    if length > 100:
        score += 10
    if length > 200:
        score += 5
    if item.checklist:
        score += 5
    return score


def calculate_score(item: BacklogItem, rng: Optional[random.Random] = None) -> int:
    """Return the item's 0-100 score including a jitter in ``[-10, +10]``."""
    rng = rng or random.Random()
    score = base_score(item) + rng.randint(-JITTER, JITTER)
    return max(0, min(100, score))


def classify_score(score: int) -> ClassificationResult:
    """Map a score to a verdict; thresholds are evaluated top-down."""
    if score >= IMMEDIATE_ACTION_THRESHOLD:
        return ClassificationResult(
            immediate_action=True,
            reason="high business value and technical viability",
        )
    if score >= NEEDS_VALIDATION_THRESHOLD:
        return ClassificationResult(
            needs_validation=True,
            future_suggestion=True,
            reason="good idea, needs technical validation",
        )
    if score >= FUTURE_SUGGESTION_THRESHOLD:
        return ClassificationResult(
            future_suggestion=True,
            reason="future implementation recommended",
        )
    return ClassificationResult(rejected=True, reason="low return or high complexity")


# ---------------------------------------------------------------------------
# Technical assessment
# ---------------------------------------------------------------------------

def estimate_complexity(item: BacklogItem) -> Complexity:
    return CATEGORY_COMPLEXITY.get(item.category, Complexity.MEDIUM)


def identify_risks(item: BacklogItem) -> list[str]:
    risks: list[str] = []
    if item.category == BacklogCategory.AI:
        risks += ["Requires model training", "Accuracy may vary"]
    if item.category == BacklogCategory.SECURITY:
        risks += ["Touches sensitive data", "Requires a security audit"]
    if item.priority == Priority.CRITICAL:
        risks += ["Schedule pressure", "May impact other projects"]
    if not item.estimate_hours:
        risks.append("Undefined time estimate")
    return risks


def identify_dependencies(item: BacklogItem) -> list[str]:
    if item.category == BacklogCategory.AI:
        return ["AI provider service", "Training dataset"]
    if item.category == BacklogCategory.MOBILE:
        return ["Up-to-date mobile toolkit", "Device testing"]
    if item.category == BacklogCategory.BACKEND:
        return ["Database migration", "API documentation"]
    return []


def identify_resources(item: BacklogItem) -> list[str]:
    return list(CATEGORY_RESOURCES.get(item.category, DEFAULT_RESOURCES))


def recommendations_for(item: BacklogItem) -> list[str]:
    recs: list[str] = []
    if not item.estimate_hours:
        recs.append("Define a more precise time estimate")
    if not item.checklist:
        recs.append("Create a detailed implementation checklist")
    if item.category == BacklogCategory.AI:
        recs.append("Ship an MVP for early validation")
        recs.append("Add a human validation loop")
    if item.priority == Priority.CRITICAL:
        recs.append("Assign a senior developer")
        recs.append("Set up dedicated monitoring")
    return recs


def assess(item: BacklogItem) -> TechnicalAssessment:
    return TechnicalAssessment(
        complexity=estimate_complexity(item),
        risks=tuple(identify_risks(item)),
        dependencies=tuple(identify_dependencies(item)),
        resources=tuple(identify_resources(item)),
    )


def analyze_item(
    item: BacklogItem,
    *,
    rng: Optional[random.Random] = None,
    synergies: tuple[Synergy, ...] = (),
    next_analysis_hours: float = 2.0,
) -> AIAnalysis:
    """Build the full analysis record for ``item``.

    Args:
        item: The backlog item to analyze.
        rng: Random source for the score jitter and confidence.
        synergies: Relations already detected against action-plan tasks.
        next_analysis_hours: Offset used for ``next_analysis_at``.

    Returns:
        A new immutable :class:`AIAnalysis`.
    """
    rng = rng or random.Random()
    score = calculate_score(item, rng)
    return AIAnalysis(
        id=generate_id("analysis"),
        timestamp=now_iso(),
        confidence=rng.randint(70, 99),
        score=score,
        classification=classify_score(score),
        assessment=assess(item),
        recommendations=tuple(recommendations_for(item)),
        synergies=tuple(synergies),
        next_analysis_at=iso_in(hours=next_analysis_hours),
    )
