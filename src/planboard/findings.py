"""Synthetic findings for action-plan analysis runs.

There is no model behind these: performance figures are drawn from fixed
ranges and each analysis kind contributes one canned finding.
"""

from __future__ import annotations

import random
from typing import Optional

from .constants import GLOBAL_SCOPE_MODULE, HOURS_BY_PRIORITY
from .models import (
    AnalysisKind,
    BehaviorInsight,
    Complexity,
    Findings,
    IntegrationGap,
    IssueKind,
    ModuleName,
    PerformanceMetrics,
    Priority,
    Suggestion,
    Task,
    TaskStatus,
    TechnicalIssue,
    UXIssue,
)

GLOBAL_SCOPE = "global"
AI_TAG = "ai-generated"


def scope_module(scope: str) -> ModuleName:
    """Module that owns findings for ``scope``."""
    if scope == GLOBAL_SCOPE:
        return GLOBAL_SCOPE_MODULE
    return ModuleName(scope)


def sample_performance(rng: random.Random) -> PerformanceMetrics:
    return PerformanceMetrics(
        load_time_avg=round(rng.uniform(500, 3500), 1),
        bundle_size=round(rng.uniform(200, 700), 1),
        memory_usage=round(rng.uniform(50, 150), 1),
        cpu_usage=round(rng.uniform(10, 60), 1),
        network_requests=rng.randint(10, 59),
        error_rate=round(rng.uniform(0, 2), 3),
        lighthouse_score=rng.randint(80, 99),
    )


def collect_findings(kind: AnalysisKind, scope: str, rng: Optional[random.Random] = None) -> Findings:
    rng = rng or random.Random()
    module = scope_module(scope)
    findings = Findings(performance=sample_performance(rng))

    if kind == AnalysisKind.PERFORMANCE:
        findings.issues.append(
            TechnicalIssue(
                title="Large bundle size detected",
                description="The JavaScript bundle is above the recommended size",
                kind=IssueKind.PERFORMANCE,
                severity=Priority.MEDIUM,
                module=module,
                proposed_fix="Add lazy loading and code splitting",
            )
        )
    elif kind == AnalysisKind.INTEGRATION:
        # a gap needs two distinct ends
        if scope != GLOBAL_SCOPE:
            findings.integration_gaps.append(
                IntegrationGap(
                    source_module=module,
                    target_module=ModuleName.LEGAL_CRM,
                    kind="data",
                    problem="Incomplete data synchronization",
                    impact="Data may become stale",
                    suggested_fix="Add a real-time webhook",
                )
            )
    elif kind == AnalysisKind.UX:
        findings.ux_issues.append(
            UXIssue(
                component="Navigation" if scope == GLOBAL_SCOPE else f"{module.value}MainView",
                problem="Slow response time on mobile devices",
                user_impact="Frustration and feature abandonment",
                devices=["mobile"],
                recommended_fix="Optimize rendering and add loading states",
                priority=Priority.MEDIUM,
            )
        )
    elif kind == AnalysisKind.BEHAVIOR:
        insight = BehaviorInsight(
            pattern="Users abandon long forms",
            frequency=0.35,
            business_impact="35% drop in conversion",
            opportunity="Multi-step wizard",
            recommended_action="Split forms into smaller steps",
        )
        findings.behavior.append(insight)
        findings.improvements.append(
            Suggestion(
                title=insight.opportunity,
                description=f"{insight.pattern}. {insight.business_impact}",
                analysis_kind=kind,
                module=module,
                impact="high",
                complexity=Complexity.MEDIUM,
                recommended_steps=[insight.recommended_action],
            )
        )
    return findings


def recommended_tasks(findings: Findings, scope: str) -> list[Task]:
    """Turn actionable findings into pending tasks."""
    module = scope_module(scope)
    tasks: list[Task] = []
    for issue in findings.issues:
        tasks.append(
            Task(
                title=f"Fix: {issue.title}",
                module=issue.module,
                priority=issue.severity,
                status=TaskStatus.PENDING,
                ai_suggestion=issue.proposed_fix,
                detail=issue.description,
                estimate_hours=HOURS_BY_PRIORITY.get(issue.severity, 8),
                tags=[AI_TAG, "bug-fix", issue.kind.value],
            )
        )
    for ux in findings.ux_issues:
        tasks.append(
            Task(
                title=f"Improve UX: {ux.component}",
                module=module,
                priority=ux.priority,
                status=TaskStatus.PENDING,
                ai_suggestion=ux.recommended_fix,
                detail=f"{ux.problem}. Impact: {ux.user_impact}",
                estimate_hours=HOURS_BY_PRIORITY.get(ux.priority, 8),
                tags=[AI_TAG, "ux-improvement"],
            )
        )
    for gap in findings.integration_gaps:
        tasks.append(
            Task(
                title=f"Integration: {gap.source_module.value} <-> {gap.target_module.value}",
                module=gap.source_module,
                priority=Priority.HIGH,
                status=TaskStatus.PENDING,
                ai_suggestion=gap.suggested_fix,
                detail=f"{gap.problem}. {gap.impact}",
                estimate_hours=HOURS_BY_PRIORITY[Priority.HIGH],
                tags=[AI_TAG, "integration", gap.kind],
            )
        )
    return tasks


def confidence_for(findings: Findings) -> int:
    score = 70 + min(findings.actionable_count * 5, 25)
    if findings.performance.lighthouse_score > 90:
        score += 5
    if findings.performance.error_rate < 1:
        score += 5
    return min(score, 95)
