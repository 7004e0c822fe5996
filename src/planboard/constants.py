"""Fixed vocabularies, heuristic weights and caps shared by the stores."""

from __future__ import annotations

from .models import (
    BacklogCategory,
    Bucket,
    Complexity,
    KanbanColumn,
    ModuleName,
    Priority,
    TaskStatus,
)

# Execution log and processing history caps (oldest evicted first).
EXECUTION_LOG_CAP = 1000
PROCESSING_HISTORY_CAP = 50
NOTIFICATION_CAP = 200

INITIAL_VERSION = "v2.0"

STATUS_TO_BUCKET: dict[TaskStatus, Bucket] = {
    TaskStatus.PENDING: Bucket.PENDING,
    TaskStatus.IN_PROGRESS: Bucket.IN_PROGRESS,
    TaskStatus.DONE: Bucket.DONE,
    # error / cancelled tasks need re-triage and live with the pending ones
    TaskStatus.ERROR: Bucket.PENDING,
    TaskStatus.CANCELLED: Bucket.PENDING,
}

PRIORITY_RANK: dict[Priority, int] = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.CRITICAL: 4,
}

PRIORITY_BONUS: dict[Priority, int] = {
    Priority.CRITICAL: 30,
    Priority.HIGH: 20,
    Priority.MEDIUM: 10,
    Priority.LOW: 0,
}

CATEGORY_WEIGHTS: dict[BacklogCategory, int] = {
    BacklogCategory.LEGALTECH: 25,
    BacklogCategory.AI: 20,
    BacklogCategory.SECURITY: 20,
    BacklogCategory.COMPLIANCE: 18,
    BacklogCategory.PERFORMANCE: 15,
    BacklogCategory.UX: 15,
    BacklogCategory.INTEGRATION: 15,
    BacklogCategory.ANALYTICS: 12,
    BacklogCategory.WORKFLOW: 12,
    BacklogCategory.BACKEND: 10,
    BacklogCategory.MOBILE: 10,
    BacklogCategory.VISUAL: 5,
}
DEFAULT_CATEGORY_WEIGHT = 5

CATEGORY_COMPLEXITY: dict[BacklogCategory, Complexity] = {
    BacklogCategory.AI: Complexity.COMPLEX,
    BacklogCategory.LEGALTECH: Complexity.COMPLEX,
    BacklogCategory.SECURITY: Complexity.COMPLEX,
    BacklogCategory.COMPLIANCE: Complexity.COMPLEX,
    BacklogCategory.UX: Complexity.SIMPLE,
    BacklogCategory.VISUAL: Complexity.SIMPLE,
}

CATEGORY_RESOURCES: dict[BacklogCategory, list[str]] = {
    BacklogCategory.AI: ["ML specialist", "Training dataset", "GPU capacity"],
    BacklogCategory.LEGALTECH: ["Legal domain expert", "Legal knowledge base"],
    BacklogCategory.UX: ["UI/UX designer", "Usability testing"],
    BacklogCategory.BACKEND: ["Backend developer", "DBA"],
    BacklogCategory.MOBILE: ["Mobile developer", "Test devices"],
    BacklogCategory.PERFORMANCE: ["Performance specialist", "Profiling tools"],
    BacklogCategory.SECURITY: ["Security specialist", "External audit"],
}
DEFAULT_RESOURCES = ["Full-stack developer"]

CATEGORY_COLORS: dict[BacklogCategory, str] = {
    BacklogCategory.AI: "blue",
    BacklogCategory.LEGALTECH: "purple",
    BacklogCategory.UX: "green",
    BacklogCategory.BACKEND: "red",
    BacklogCategory.PERFORMANCE: "orange",
    BacklogCategory.VISUAL: "pink",
    BacklogCategory.SECURITY: "black",
    BacklogCategory.MOBILE: "sky",
    BacklogCategory.ANALYTICS: "lime",
    BacklogCategory.INTEGRATION: "yellow",
    BacklogCategory.COMPLIANCE: "purple",
    BacklogCategory.WORKFLOW: "gray",
}

PRIORITY_COLORS: dict[Priority, str] = {
    Priority.LOW: "green",
    Priority.MEDIUM: "yellow",
    Priority.HIGH: "orange",
    Priority.CRITICAL: "red",
}

HOURS_BY_PRIORITY: dict[Priority, int] = {
    Priority.CRITICAL: 24,
    Priority.HIGH: 16,
    Priority.MEDIUM: 8,
    Priority.LOW: 4,
}

# Module that receives findings and log entries for a "global" scope.
GLOBAL_SCOPE_MODULE = ModuleName.SETTINGS

# (id, title, description, color, order, auto_movement)
COLUMN_DEFINITIONS: list[tuple[KanbanColumn, str, str, str, int, bool]] = [
    (KanbanColumn.IDEAS, "Ideas / Brainstorms", "New ideas and improvement suggestions", "#3B82F6", 1, False),
    (KanbanColumn.IN_ANALYSIS, "In Analysis", "Items under review by the team or the analyzer", "#F59E0B", 2, True),
    (KanbanColumn.IN_EXECUTION, "In Execution", "Approved items under development", "#EF4444", 3, True),
    (KanbanColumn.DONE, "Done", "Finished and shipped items", "#10B981", 4, True),
    (KanbanColumn.ARCHIVED, "Archived", "Discarded or cancelled items", "#6B7280", 5, True),
]
