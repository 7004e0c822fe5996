"""Demo backlog used when ``seed_sample_data`` is enabled."""

from __future__ import annotations

from typing import Any

from loguru import logger

from .backlog import BacklogStore
from .models import (
    AIAnalysis,
    ClassificationResult,
    Complexity,
    TechnicalAssessment,
)
from .utils import generate_id, now_iso

SAMPLE_ITEMS: list[dict[str, Any]] = [
    {
        "title": "Smart dark mode",
        "description": (
            "Dark mode that adapts automatically to the time of day and user preferences, "
            "with smooth transitions and contrast preserved for accessibility."
        ),
        "category": "UX",
        "impacted_module": "Settings",
        "priority": "high",
        "status": "approved",
        "column": "ideas",
        "creator": "design_team",
        "tags": ["ui", "accessibility", "user-experience"],
        "checklist": [
            {"text": "Research dark mode patterns", "done": True},
            {"text": "Define the colour palette", "done": False},
        ],
        "estimate_hours": 40,
        "progress": 15,
    },
    {
        "title": "Automatic contract analysis",
        "description": (
            "Model able to analyze legal contracts, flag problematic clauses and key deadlines, "
            "and suggest improvements based on precedents."
        ),
        "category": "LegalTech",
        "impacted_module": "Legal AI",
        "priority": "critical",
        "status": "approved",
        "column": "in_analysis",
        "creator": "legal_team",
        "tags": ["ai", "nlp", "contracts", "automation"],
        "estimate_hours": 120,
        "progress": 0,
    },
    {
        "title": "Mobile performance optimization",
        "description": (
            "Significant performance work on mobile devices, including smart lazy loading, "
            "image optimization and strategic caching."
        ),
        "category": "Performance",
        "impacted_module": "Global",
        "priority": "medium",
        "status": "draft",
        "column": "ideas",
        "creator": "mobile_team",
        "tags": ["mobile", "performance", "optimization"],
        "estimate_hours": 60,
        "progress": 0,
    },
    {
        "title": "Smart push notifications",
        "description": (
            "Notifications that learn from user behaviour to send relevant messages at the "
            "right moment and avoid spam."
        ),
        "category": "AI",
        "impacted_module": "Customer Service",
        "priority": "high",
        "status": "approved",
        "column": "in_execution",
        "creator": "product_team",
        "tags": ["notifications", "ai", "personalization"],
        "estimate_hours": 80,
        "progress": 45,
    },
    {
        "title": "Executive dashboard with legal KPIs",
        "description": (
            "Dashboard for partners with legal KPIs: case success rate, ROI per case type and "
            "profitability per lawyer."
        ),
        "category": "Analytics",
        "impacted_module": "Dashboard",
        "priority": "high",
        "status": "done",
        "column": "done",
        "creator": "executive_team",
        "tags": ["dashboard", "kpi", "executive"],
        "estimate_hours": 50,
        "progress": 100,
    },
]


def _contract_analysis() -> AIAnalysis:
    return AIAnalysis(
        id=generate_id("analysis"),
        timestamp=now_iso(),
        confidence=92,
        score=95,
        classification=ClassificationResult(
            immediate_action=True,
            reason="high business value and proven technical viability",
        ),
        assessment=TechnicalAssessment(
            complexity=Complexity.COMPLEX,
            risks=(
                "Requires training a dedicated model",
                "Integration with NLP APIs",
                "Mandatory legal validation",
            ),
            dependencies=("AI provider service", "Document upload", "Legal knowledge base"),
            resources=("NLP specialist", "Lawyer for validation", "Contract dataset"),
        ),
        recommendations=(
            "Ship an MVP with the basic features",
            "Add a human validation loop",
            "Design an interface lawyers find intuitive",
        ),
    )


def load_sample_backlog(store: BacklogStore) -> list[str]:
    """Create the demo items; returns their ids in creation order."""
    ids: list[str] = []
    for raw in SAMPLE_ITEMS:
        item = store.create_item(raw)
        ids.append(item.id)
    store.attach_analysis(ids[1], _contract_analysis())
    logger.info("Loaded {} sample backlog items", len(ids))
    return ids
