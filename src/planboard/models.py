"""Domain model for the action plan and the strategic backlog.

The action plan groups technical :class:`Task` objects by :class:`Module`;
each module keeps three buckets (pending, in progress, done).  The backlog
holds :class:`BacklogItem` cards placed in a Kanban column.  Every record
serializes to a plain dict via ``to_dict()`` for JSON/CSV export and for the
snapshots pushed to subscribers.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional

from .utils import generate_id, now_iso, plain


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Priority(str, Enum):
    """Shared by tasks and backlog items."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"


class Bucket(str, Enum):
    """The three per-module task lists."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class ModuleHealth(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    CRITICAL = "critical"


class ModuleName(str, Enum):
    LEGAL_CRM = "Legal CRM"
    LEGAL_AI = "Legal AI"
    DOCUMENTS = "Documents"
    TASKS = "Tasks"
    PUBLICATIONS = "Publications"
    CUSTOMER_SERVICE = "Customer Service"
    CALENDAR = "Calendar"
    BILLING = "Billing"
    SETTINGS = "Settings"


class BacklogCategory(str, Enum):
    UX = "UX"
    BACKEND = "Backend"
    LEGALTECH = "LegalTech"
    PERFORMANCE = "Performance"
    VISUAL = "Visual"
    INTEGRATION = "Integration"
    SECURITY = "Security"
    AI = "AI"
    MOBILE = "Mobile"
    ANALYTICS = "Analytics"
    COMPLIANCE = "Compliance"
    WORKFLOW = "Workflow"


class BacklogStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    REJECTED = "rejected"
    DONE = "done"
    IN_EXECUTION = "in_execution"


class KanbanColumn(str, Enum):
    """Ordered lanes of the backlog board."""

    IDEAS = "ideas"
    IN_ANALYSIS = "in_analysis"
    IN_EXECUTION = "in_execution"
    DONE = "done"
    ARCHIVED = "archived"


class Classification(str, Enum):
    IMMEDIATE_ACTION = "immediate_action"
    NEEDS_VALIDATION = "needs_validation"
    FUTURE_SUGGESTION = "future_suggestion"
    REJECTED = "rejected"


class Complexity(str, Enum):
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


class SynergyRelation(str, Enum):
    DUPLICATE = "duplicate"
    COMPLEMENT = "complement"


class SynergyAction(str, Enum):
    MERGE = "merge"
    LINK = "link"


class LogOutcome(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"


class LogOrigin(str, Enum):
    MANUAL = "manual"
    AI = "ai"
    SYSTEM = "system"


class AnalysisKind(str, Enum):
    """Kinds accepted by ``ActionPlanStore.run_ai_analysis``."""

    PERFORMANCE = "performance"
    INTEGRATION = "integration"
    UX = "ux"
    BEHAVIOR = "behavior"


class IssueKind(str, Enum):
    BUG = "bug"
    PERFORMANCE = "performance"
    SECURITY = "security"
    INTEGRATION = "integration"
    RESPONSIVENESS = "responsiveness"


class PipelineState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    ERROR = "error"


def health_for(completion_rate: float) -> ModuleHealth:
    """Map a completion rate (0-100) to a health tier."""
    if completion_rate > 90:
        return ModuleHealth.EXCELLENT
    if completion_rate > 75:
        return ModuleHealth.GOOD
    if completion_rate > 50:
        return ModuleHealth.FAIR
    return ModuleHealth.CRITICAL


class _Record:
    """Mixin giving dataclasses a JSON-friendly ``to_dict``."""

    def to_dict(self) -> dict[str, Any]:
        return plain(asdict(self))  # type: ignore[call-overload]


# ---------------------------------------------------------------------------
# Action plan
# ---------------------------------------------------------------------------

@dataclass
class Task(_Record):
    """A technical task owned by exactly one module."""

    id: str = field(default_factory=lambda: generate_id("task"))
    title: str = ""
    module: ModuleName = ModuleName.SETTINGS
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    detail: str = ""
    ai_suggestion: Optional[str] = None
    created_at: str = field(default_factory=now_iso)
    updated_at: Optional[str] = None
    progress: int = 0
    assignee: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    estimate_hours: Optional[float] = None

    def touch(self) -> None:
        self.updated_at = now_iso()


@dataclass
class TechnicalIssue(_Record):
    id: str = field(default_factory=lambda: generate_id("issue"))
    title: str = ""
    description: str = ""
    kind: IssueKind = IssueKind.BUG
    severity: Priority = Priority.MEDIUM
    module: ModuleName = ModuleName.SETTINGS
    proposed_fix: Optional[str] = None
    identified_at: str = field(default_factory=now_iso)
    status: str = "open"


@dataclass
class Suggestion(_Record):
    """An improvement suggested for a module by an analysis run."""

    id: str = field(default_factory=lambda: generate_id("suggestion"))
    title: str = ""
    description: str = ""
    analysis_kind: AnalysisKind = AnalysisKind.BEHAVIOR
    module: ModuleName = ModuleName.SETTINGS
    impact: str = "medium"
    complexity: Complexity = Complexity.MEDIUM
    confidence: int = 70
    suggested_at: str = field(default_factory=now_iso)
    recommended_steps: list[str] = field(default_factory=list)


@dataclass
class ModuleMetrics(_Record):
    total_tasks: int = 0
    completed_tasks: int = 0
    completion_rate: float = 0.0
    active_bugs: int = 0
    performance_score: float = 85.0
    satisfaction_score: float = 80.0
    last_deployment: str = field(default_factory=now_iso)
    uptime_percentage: float = 99.5
    error_rate: float = 0.1


@dataclass
class Module(_Record):
    """A functional area of the product and its three task buckets."""

    name: ModuleName
    pending: list[Task] = field(default_factory=list)
    in_progress: list[Task] = field(default_factory=list)
    done: list[Task] = field(default_factory=list)
    issues: list[TechnicalIssue] = field(default_factory=list)
    improvements: list[Suggestion] = field(default_factory=list)
    updated_at: str = field(default_factory=now_iso)
    metrics: ModuleMetrics = field(default_factory=ModuleMetrics)
    active_integrations: list[str] = field(default_factory=list)
    health: ModuleHealth = ModuleHealth.GOOD

    def bucket(self, which: Bucket) -> list[Task]:
        if which == Bucket.PENDING:
            return self.pending
        if which == Bucket.IN_PROGRESS:
            return self.in_progress
        return self.done

    def all_tasks(self) -> list[Task]:
        return [*self.pending, *self.in_progress, *self.done]

    def locate(self, task_id: str) -> Optional[tuple[Bucket, int]]:
        """Linear scan of the three buckets; ``None`` when absent."""
        for which in Bucket:
            for idx, task in enumerate(self.bucket(which)):
                if task.id == task_id:
                    return which, idx
        return None

    def recompute_metrics(self) -> None:
        total = len(self.pending) + len(self.in_progress) + len(self.done)
        self.metrics.total_tasks = total
        self.metrics.completed_tasks = len(self.done)
        self.metrics.completion_rate = (len(self.done) / total) * 100 if total > 0 else 0.0
        self.metrics.active_bugs = len(
            [i for i in self.issues if i.kind == IssueKind.BUG and i.status == "open"]
        )
        self.health = health_for(self.metrics.completion_rate)
        self.updated_at = now_iso()


@dataclass
class ExecutionLogEntry(_Record):
    id: str = field(default_factory=lambda: generate_id("log"))
    timestamp: str = field(default_factory=now_iso)
    action: str = ""
    outcome: LogOutcome = LogOutcome.SUCCESS
    origin: LogOrigin = LogOrigin.MANUAL
    module: Optional[ModuleName] = None
    elapsed_ms: float = 0.0
    detail: str = ""
    user: Optional[str] = None


@dataclass
class PlanVersion(_Record):
    version: str = "v2.0"
    created_at: str = field(default_factory=now_iso)
    actor: str = "ai"
    summary: str = ""
    status: str = "active"
    affected_modules: list[str] = field(default_factory=list)
    tasks_added: int = 0
    tasks_removed: int = 0
    content_hash: str = ""


@dataclass
class PerformanceMetrics(_Record):
    load_time_avg: float = 0.0
    bundle_size: float = 0.0
    memory_usage: float = 0.0
    cpu_usage: float = 0.0
    network_requests: int = 0
    error_rate: float = 0.0
    lighthouse_score: int = 0


@dataclass
class IntegrationGap(_Record):
    source_module: ModuleName = ModuleName.SETTINGS
    target_module: ModuleName = ModuleName.LEGAL_CRM
    kind: str = "data"
    problem: str = ""
    impact: str = ""
    suggested_fix: str = ""


@dataclass
class UXIssue(_Record):
    component: str = ""
    problem: str = ""
    user_impact: str = ""
    devices: list[str] = field(default_factory=list)
    recommended_fix: str = ""
    priority: Priority = Priority.MEDIUM


@dataclass
class BehaviorInsight(_Record):
    pattern: str = ""
    frequency: float = 0.0
    business_impact: str = ""
    opportunity: str = ""
    recommended_action: str = ""


@dataclass
class Findings(_Record):
    issues: list[TechnicalIssue] = field(default_factory=list)
    improvements: list[Suggestion] = field(default_factory=list)
    performance: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    integration_gaps: list[IntegrationGap] = field(default_factory=list)
    ux_issues: list[UXIssue] = field(default_factory=list)
    behavior: list[BehaviorInsight] = field(default_factory=list)

    @property
    def actionable_count(self) -> int:
        return len(self.issues) + len(self.ux_issues) + len(self.integration_gaps)


@dataclass
class AnalysisResult(_Record):
    """Outcome of ``ActionPlanStore.run_ai_analysis``."""

    id: str = field(default_factory=lambda: generate_id("analysis"))
    kind: AnalysisKind = AnalysisKind.PERFORMANCE
    timestamp: str = field(default_factory=now_iso)
    scope: str = "global"
    findings: Findings = field(default_factory=Findings)
    recommended_tasks: list[Task] = field(default_factory=list)
    confidence: int = 70
    next_analysis_at: str = field(default_factory=now_iso)


@dataclass
class TaskFilter:
    modules: Optional[list[ModuleName]] = None
    statuses: Optional[list[TaskStatus]] = None
    priorities: Optional[list[Priority]] = None
    assignees: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    ai_suggested_only: bool = False
    created_from: Optional[str] = None
    created_to: Optional[str] = None


# ---------------------------------------------------------------------------
# Backlog
# ---------------------------------------------------------------------------

@dataclass
class ChecklistItem(_Record):
    id: str = field(default_factory=lambda: generate_id("check"))
    text: str = ""
    done: bool = False
    created_at: str = field(default_factory=now_iso)
    completed_at: Optional[str] = None
    assignee: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChecklistItem":
        return cls(
            id=str(data.get("id") or generate_id("check")),
            text=str(data.get("text") or ""),
            done=bool(data.get("done", False)),
            created_at=str(data.get("created_at") or now_iso()),
            completed_at=data.get("completed_at"),
            assignee=data.get("assignee"),
        )


@dataclass
class Attachment(_Record):
    id: str = field(default_factory=lambda: generate_id("file"))
    name: str = ""
    kind: str = "link"  # image | document | link | screenshot
    url: str = ""
    size: Optional[int] = None
    uploaded_at: str = field(default_factory=now_iso)
    uploaded_by: str = ""


@dataclass
class Comment(_Record):
    id: str = field(default_factory=lambda: generate_id("comment"))
    author: str = ""
    content: str = ""
    created_at: str = field(default_factory=now_iso)
    kind: str = "comment"  # comment | system | ai


@dataclass
class Movement(_Record):
    """One column change of a backlog item."""

    id: str = field(default_factory=lambda: generate_id("move"))
    from_column: KanbanColumn = KanbanColumn.IDEAS
    to_column: KanbanColumn = KanbanColumn.IDEAS
    timestamp: str = field(default_factory=now_iso)
    actor: str = "system"
    automatic: bool = False
    reason: Optional[str] = None


@dataclass(frozen=True)
class Synergy(_Record):
    related_task_id: str
    relation: SynergyRelation
    description: str
    action: SynergyAction


@dataclass(frozen=True)
class ClassificationResult(_Record):
    immediate_action: bool = False
    needs_validation: bool = False
    future_suggestion: bool = False
    rejected: bool = False
    reason: str = ""

    @property
    def kind(self) -> Classification:
        """The primary verdict (first flag set, evaluated top-down)."""
        if self.immediate_action:
            return Classification.IMMEDIATE_ACTION
        if self.needs_validation:
            return Classification.NEEDS_VALIDATION
        if self.future_suggestion:
            return Classification.FUTURE_SUGGESTION
        return Classification.REJECTED

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["kind"] = self.kind.value
        return data


@dataclass(frozen=True)
class TechnicalAssessment(_Record):
    complexity: Complexity = Complexity.MEDIUM
    risks: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    resources: tuple[str, ...] = ()


@dataclass(frozen=True)
class AIAnalysis:
    """Heuristic analysis attached once to a backlog item; never mutated."""

    id: str
    timestamp: str
    confidence: int
    score: int
    classification: ClassificationResult
    assessment: TechnicalAssessment
    recommendations: tuple[str, ...] = ()
    synergies: tuple[Synergy, ...] = ()
    next_analysis_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "confidence": self.confidence,
            "score": self.score,
            "classification": self.classification.to_dict(),
            "assessment": self.assessment.to_dict(),
            "recommendations": list(self.recommendations),
            "synergies": [s.to_dict() for s in self.synergies],
            "next_analysis_at": self.next_analysis_at,
        }


@dataclass
class BacklogItem(_Record):
    """A strategic idea tracked on the Kanban board."""

    id: str = field(default_factory=lambda: generate_id("item"))
    title: str = ""
    description: str = ""
    category: BacklogCategory = BacklogCategory.UX
    impacted_module: str = ""
    priority: Priority = Priority.MEDIUM
    status: BacklogStatus = BacklogStatus.DRAFT
    column: KanbanColumn = KanbanColumn.IDEAS
    creator: str = "system"
    created_at: str = field(default_factory=now_iso)
    updated_at: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    checklist: list[ChecklistItem] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    estimate_hours: Optional[float] = None
    progress: int = 0
    roi_estimate: Optional[str] = None
    analysis: Optional[AIAnalysis] = None
    linked_task_ids: list[str] = field(default_factory=list)
    movement_history: list[Movement] = field(default_factory=list)

    def touch(self) -> None:
        self.updated_at = now_iso()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "impacted_module": self.impacted_module,
            "priority": self.priority.value,
            "status": self.status.value,
            "column": self.column.value,
            "creator": self.creator,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "tags": list(self.tags),
            "checklist": [c.to_dict() for c in self.checklist],
            "attachments": [a.to_dict() for a in self.attachments],
            "comments": [c.to_dict() for c in self.comments],
            "estimate_hours": self.estimate_hours,
            "progress": self.progress,
            "roi_estimate": self.roi_estimate,
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "linked_task_ids": list(self.linked_task_ids),
            "movement_history": [m.to_dict() for m in self.movement_history],
        }


@dataclass(frozen=True)
class ColumnDefinition(_Record):
    id: KanbanColumn
    title: str
    description: str
    color: str
    order: int
    auto_movement: bool


@dataclass
class ProcessingDetail(_Record):
    item_id: str
    action: str
    outcome: LogOutcome
    reason: str
    confidence: int = 0
    column_before: Optional[KanbanColumn] = None
    column_after: Optional[KanbanColumn] = None


@dataclass
class ProcessingRecord(_Record):
    """Aggregated counters of one classification pipeline run."""

    id: str = field(default_factory=lambda: generate_id("run"))
    processed_at: str = field(default_factory=now_iso)
    items_processed: int = 0
    items_approved: int = 0
    items_rejected: int = 0
    items_moved: int = 0
    tasks_created: int = 0
    elapsed_ms: float = 0.0
    average_confidence: float = 0.0
    failed: bool = False
    details: list[ProcessingDetail] = field(default_factory=list)


@dataclass
class BacklogFilter:
    categories: Optional[list[BacklogCategory]] = None
    priorities: Optional[list[Priority]] = None
    statuses: Optional[list[BacklogStatus]] = None
    modules: Optional[list[str]] = None
    creators: Optional[list[str]] = None
    search: Optional[str] = None
    ai_analyzed_only: bool = False
    approved_only: bool = False
    tags: Optional[list[str]] = None
    created_from: Optional[str] = None
    created_to: Optional[str] = None


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

@dataclass
class Notification(_Record):
    id: str = field(default_factory=lambda: generate_id("note"))
    kind: str = "info"  # task_completed | critical_task | ai_analysis | pipeline_run | new_item
    title: str = ""
    message: str = ""
    module: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    created_at: str = field(default_factory=now_iso)
    read: bool = False
    channels: list[str] = field(default_factory=list)
