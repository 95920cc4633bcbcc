"""Feasibility scoring: can the team finish the task set before the deadline?

Pipeline::

    total hours, critical path (CPM), available hours, parallel efficiency
      -> raw score = available * efficiency / critical path
      -> complexity, scope and team risk multipliers
      -> piecewise band mapping onto [0, 1]
      -> warnings, action items

Invalid constraints are not an exception here: they produce a zero score with
an ``invalid-constraints`` warning so callers still get a verdict.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date

from plancraft import graph
from plancraft.errors import InvalidConstraintsError
from plancraft.tasks.model import Complexity, Constraints, Task
from plancraft.tasks.validate import ensure_valid

SEVERITY_ORDER: dict[str, int] = {"critical": 0, "high": 1, "medium": 2, "low": 3}

COMFORTABLE = "comfortable"
TIGHT = "tight-but-doable"
AGGRESSIVE = "aggressive"
UNREALISTIC = "unrealistic"

RECOMMENDATIONS: dict[str, str] = {
    COMFORTABLE: "Project is well-scoped. Proceed with confidence.",
    TIGHT: "Project is feasible but requires careful planning and execution.",
    AGGRESSIVE: "Project is ambitious. Risks require active mitigation.",
    UNREALISTIC: "Project is infeasible as currently scoped. Significant changes needed.",
}


def severity_rank(severity: str) -> int:
    return SEVERITY_ORDER.get(severity, len(SEVERITY_ORDER))


@dataclass(frozen=True)
class FeasibilityWarning:
    type: str
    severity: str
    title: str
    description: str
    impact: str
    suggestion: str

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "impact": self.impact,
            "suggestion": self.suggestion,
        }


@dataclass(frozen=True)
class ActionItem:
    priority: str
    action: str
    details: str
    estimated_impact: str

    def to_dict(self) -> dict:
        return {
            "priority": self.priority,
            "action": self.action,
            "details": self.details,
            "estimatedImpact": self.estimated_impact,
        }


@dataclass(frozen=True)
class Breakdown:
    total_hours: float = 0.0
    critical_path_hours: float = 0.0
    available_hours: float = 0.0
    buffer_hours: float = 0.0
    parallel_efficiency: float = 0.0
    max_parallel_tasks: int = 0
    team_size: int = 0
    hours_per_day: float = 0.0
    days_available: int = 0
    tasks_by_complexity: dict[str, int] = field(default_factory=dict)
    tasks_by_category: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "totalHours": self.total_hours,
            "criticalPathHours": self.critical_path_hours,
            "availableHours": self.available_hours,
            "bufferHours": self.buffer_hours,
            "parallelEfficiency": self.parallel_efficiency,
            "maxParallelTasks": self.max_parallel_tasks,
            "teamSize": self.team_size,
            "hoursPerDay": self.hours_per_day,
            "daysAvailable": self.days_available,
            "tasksByComplexity": dict(self.tasks_by_complexity),
            "tasksByCategory": dict(self.tasks_by_category),
        }


@dataclass(frozen=True)
class RiskAdjustments:
    """Risk factors; the applied multiplier is ``1 - factor`` for each."""

    complexity: float = 0.0
    scope: float = 0.0
    team: float = 0.0

    def to_dict(self) -> dict:
        return {"complexity": self.complexity, "scope": self.scope, "team": self.team}


@dataclass(frozen=True)
class FeasibilityReport:
    score: float
    level: str
    recommendation: str
    warnings: tuple[FeasibilityWarning, ...]
    breakdown: Breakdown
    risk_adjustments: RiskAdjustments
    raw_score: float
    adjusted_score: float
    risk_level: str
    action_items: tuple[ActionItem, ...] = ()

    def has_warning(self, warning_type: str) -> bool:
        return any(w.type == warning_type for w in self.warnings)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "level": self.level,
            "recommendation": self.recommendation,
            "breakdown": self.breakdown.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
            "riskAdjustments": self.risk_adjustments.to_dict(),
            "rawScore": self.raw_score,
            "adjustedScore": self.adjusted_score,
            "riskLevel": self.risk_level,
            "actionItems": [a.to_dict() for a in self.action_items],
        }


# ── Scoring pieces ───────────────────────────────────────────────────


def complexity_risk(tasks_by_complexity: dict[str, int]) -> float:
    """0.4 for an all-complex set, 0.1 for all-moderate, 0 for all-simple."""
    total = sum(tasks_by_complexity.values())
    if total == 0:
        return 0.0
    complex_share = tasks_by_complexity.get(Complexity.COMPLEX.value, 0) / total
    moderate_share = tasks_by_complexity.get(Complexity.MODERATE.value, 0) / total
    return complex_share * 0.4 + moderate_share * 0.1


def scope_risk(task_count: int, max_tasks: int) -> float:
    """Up to 0.05 as the task count approaches ``max_tasks``."""
    return min(task_count / max_tasks, 1.0) * 0.05


def team_risk(team_size: int) -> float:
    if team_size < 3:
        return 0.1
    if team_size < 5:
        return 0.05
    return 0.0


def map_score(adjusted: float) -> tuple[float, str]:
    """Map an adjusted capacity ratio onto a 0-1 score and a band label.

    The bands join up so the mapping never decreases as ``adjusted`` grows.
    """
    if adjusted > 1.3:
        return min(1.0, max(0.9, adjusted * 0.33)), COMFORTABLE
    if adjusted >= 1.0:
        return 0.6 + (adjusted - 1.0), TIGHT
    if adjusted >= 0.7:
        return 0.4 + (adjusted - 0.7) * (0.2 / 0.3), AGGRESSIVE
    return max(0.0, adjusted * 0.57), UNREALISTIC


def risk_level_for(score: float) -> str:
    if score > 0.75:
        return "low"
    if score > 0.5:
        return "medium"
    if score > 0.25:
        return "high"
    return "critical"


# ── Public API ───────────────────────────────────────────────────────


def calculate_feasibility(
    tasks: list[Task],
    constraints: Constraints | None = None,
    *,
    as_of: date | None = None,
) -> FeasibilityReport:
    """Score *tasks* against *constraints*.

    Raises ValidationError for malformed task sets and CycleError for cyclic
    ones; repair the graph first.  *as_of* anchors calendar deadlines, making
    the result reproducible.
    """
    constraints = constraints or Constraints()
    ensure_valid(tasks)

    try:
        constraints.check(as_of)
    except InvalidConstraintsError as exc:
        return _degenerate_report(tasks, constraints, str(exc))

    team_size = constraints.team_size
    hours_per_day = constraints.hours_per_day
    days = constraints.days_available(as_of)

    total_hours = sum(t.estimated_hours for t in tasks)
    schedule = graph.critical_path(tasks)
    plan = graph.parallel_levels(tasks, team_size)

    cp_hours = schedule.duration
    if tasks:
        cp_hours = max(cp_hours, total_hours / len(tasks))

    available = team_size * hours_per_day * days
    max_parallel = max(plan.max_parallel_tasks, 1)
    efficiency = min(max_parallel, team_size) / team_size

    if cp_hours > 0:
        raw = available * efficiency / cp_hours
    else:
        raw = 2.0 if available > 0 else 1.0

    by_complexity = {c.value: 0 for c in Complexity}
    by_category: dict[str, int] = {}
    for task in tasks:
        by_complexity[task.complexity.value] += 1
        by_category[task.category] = by_category.get(task.category, 0) + 1

    risks = RiskAdjustments(
        complexity=round(complexity_risk(by_complexity), 4),
        scope=round(scope_risk(len(tasks), constraints.max_tasks), 4),
        team=team_risk(team_size),
    )
    adjusted = raw * (1 - risks.complexity) * (1 - risks.scope) * (1 - risks.team)

    score, level = map_score(adjusted)
    score = round(score, 3)

    breakdown = Breakdown(
        total_hours=round(total_hours, 1),
        critical_path_hours=round(cp_hours, 1),
        available_hours=round(available, 1),
        buffer_hours=max(0.0, round(available - total_hours, 1)),
        parallel_efficiency=round(efficiency, 3),
        max_parallel_tasks=plan.max_parallel_tasks,
        team_size=team_size,
        hours_per_day=hours_per_day,
        days_available=days,
        tasks_by_complexity=by_complexity,
        tasks_by_category=by_category,
    )

    warnings = generate_warnings(
        tasks,
        constraints,
        adjusted=adjusted,
        total_hours=total_hours,
        cp_hours=cp_hours,
        available=available,
        max_parallel=plan.max_parallel_tasks,
        complex_count=by_complexity[Complexity.COMPLEX.value],
    )
    report = FeasibilityReport(
        score=score,
        level=level,
        recommendation=RECOMMENDATIONS[level],
        warnings=tuple(warnings),
        breakdown=breakdown,
        risk_adjustments=risks,
        raw_score=round(raw, 4),
        adjusted_score=round(adjusted, 4),
        risk_level=risk_level_for(score),
    )
    return _with_action_items(report)


def _degenerate_report(tasks: list[Task], constraints: Constraints, reason: str) -> FeasibilityReport:
    warning = FeasibilityWarning(
        type="invalid-constraints",
        severity="critical",
        title="Invalid Constraints",
        description=reason,
        impact="No capacity can be assigned to the plan",
        suggestion="Use a positive team size, 0-24 hours per day, and a future deadline",
    )
    breakdown = Breakdown(
        total_hours=round(sum(t.estimated_hours for t in tasks), 1),
        team_size=constraints.team_size,
        hours_per_day=constraints.hours_per_day,
    )
    return FeasibilityReport(
        score=0.0,
        level=UNREALISTIC,
        recommendation=RECOMMENDATIONS[UNREALISTIC],
        warnings=(warning,),
        breakdown=breakdown,
        risk_adjustments=RiskAdjustments(),
        raw_score=0.0,
        adjusted_score=0.0,
        risk_level="critical",
    )


def generate_warnings(
    tasks: list[Task],
    constraints: Constraints,
    *,
    adjusted: float,
    total_hours: float,
    cp_hours: float,
    available: float,
    max_parallel: int,
    complex_count: int,
) -> list[FeasibilityWarning]:
    team_size = constraints.team_size
    warnings: list[FeasibilityWarning] = []

    if adjusted < 1.0:
        if adjusted < 0.7:
            severity = "critical"
        elif adjusted < 0.85:
            severity = "high"
        else:
            severity = "medium"
        shortfall = max(0.0, total_hours - available)
        if shortfall > 0:
            extra_days = math.ceil(shortfall / (team_size * constraints.hours_per_day))
            impact = f"Need {round(shortfall)} more hours or {extra_days} more days"
        else:
            impact = f"Critical path of {cp_hours:.1f} hours leaves little usable capacity"
        warnings.append(FeasibilityWarning(
            type="timeline",
            severity=severity,
            title="Timeline Concern",
            description=(
                f"Timeline is {'aggressive' if adjusted >= 0.7 else 'unrealistic'} "
                "for current scope"
            ),
            impact=impact,
            suggestion=(
                "Consider reducing scope, extending deadline, or increasing team size"
                if adjusted < 0.7
                else "Plan carefully; identify and eliminate non-critical tasks"
            ),
        ))

    if max_parallel > team_size:
        excess = max_parallel - team_size
        warnings.append(FeasibilityWarning(
            type="team-capacity",
            severity="high" if excess > 5 else "medium",
            title="Team Size Constraint",
            description=(
                f"{max_parallel} tasks can run in parallel, "
                f"but only {team_size} team members available"
            ),
            impact=f"{excess} parallel tasks cannot run simultaneously",
            suggestion=f"Either increase team size to {max_parallel} or serialize {excess} tasks",
        ))

    count = len(tasks)
    if count > constraints.max_tasks:
        over = round((count / constraints.max_tasks - 1) * 100)
        warnings.append(FeasibilityWarning(
            type="scope-overflow",
            severity="high",
            title="Scope Exceeds Constraints",
            description=f"{count} tasks exceed maximum of {constraints.max_tasks}",
            impact=f"Project {over}% over scope limit",
            suggestion=f"Remove {count - constraints.max_tasks} tasks or renegotiate the task limit",
        ))

    if count and total_hours / count < 3:
        warnings.append(FeasibilityWarning(
            type="quality-risk",
            severity="high",
            title="Rushing Risk",
            description=f"Average {total_hours / count:.1f} hours per task is too low",
            impact="Tasks may lack proper design, testing, or documentation",
            suggestion="Consolidate tasks, increase estimates, or extend timeline",
        ))

    if count and complex_count / count > 0.3:
        warnings.append(FeasibilityWarning(
            type="complexity-risk",
            severity="medium",
            title="High Project Complexity",
            description=f"{complex_count / count * 100:.0f}% of tasks are complex",
            impact="Greater likelihood of technical challenges, overruns, and integration issues",
            suggestion="Plan additional time for complex tasks; schedule spike investigations early",
        ))

    if team_size < 3:
        warnings.append(FeasibilityWarning(
            type="team-risk",
            severity="high",
            title="Understaffed Team",
            description=f"Team size of {team_size} is very small",
            impact="No redundancy; any absence becomes a critical bottleneck",
            suggestion="Add team members or reduce scope significantly",
        ))
    elif team_size < 5:
        warnings.append(FeasibilityWarning(
            type="team-risk",
            severity="medium",
            title="Limited Team Flexibility",
            description=f"Team size of {team_size} provides limited flexibility",
            impact="Reduced ability to handle unexpected issues or skill gaps",
            suggestion="Plan buffers; identify cross-training opportunities",
        ))

    if total_hours > 0 and available < total_hours * 1.1:
        buffer_pct = (available / total_hours - 1) * 100
        low = round(total_hours * 0.15)
        high = round(total_hours * 0.25)
        warnings.append(FeasibilityWarning(
            type="buffer-risk",
            severity="critical" if buffer_pct < -10 else "medium",
            title="Insufficient Buffer",
            description=f"Only {max(0, round(buffer_pct))}% buffer time available",
            impact="No room for unexpected issues, rework, or learning curve",
            suggestion=f"Add {low}-{high} hours of buffer; reduce scope or extend timeline",
        ))

    if cp_hours > available / team_size:
        warnings.append(FeasibilityWarning(
            type="critical-path",
            severity="medium",
            title="Long Critical Path",
            description=f"Critical path ({cp_hours:.1f} hours) limits parallelization",
            impact="Team cannot be fully utilized even with perfect task distribution",
            suggestion="Look for dependencies that can be broken; parallelize sequential tasks",
        ))

    warnings.sort(key=lambda w: severity_rank(w.severity))
    return warnings


def generate_action_items(report: FeasibilityReport) -> list[ActionItem]:
    items: list[ActionItem] = []
    breakdown = report.breakdown

    if report.score < 0.4:
        items.append(ActionItem(
            priority="critical",
            action="Renegotiate Project Scope",
            details="Remove non-essential features; focus on the minimum viable product",
            estimated_impact="Could improve feasibility by 20-40%",
        ))
        weeks = max(1, math.ceil((breakdown.total_hours - breakdown.available_hours) / 40))
        items.append(ActionItem(
            priority="critical",
            action="Request Additional Time",
            details=f"Extend deadline by {weeks} week(s)",
            estimated_impact="Could improve feasibility to 70%+",
        ))

    if report.score < 0.6 and breakdown.team_size < 8:
        items.append(ActionItem(
            priority="high",
            action="Expand Team",
            details="Add 2-3 developers to reach an effective team size",
            estimated_impact="Could improve feasibility by 15-25%",
        ))

    if report.has_warning("quality-risk"):
        items.append(ActionItem(
            priority="high",
            action="Consolidate Tasks",
            details="Merge small tasks so each gets sufficient time",
            estimated_impact="Improves quality and reduces overhead",
        ))

    if report.has_warning("critical-path"):
        items.append(ActionItem(
            priority="medium",
            action="Review Dependencies",
            details="Identify and parallelize sequential tasks",
            estimated_impact="Could reduce the critical path by 10-20%",
        ))

    return items


def _with_action_items(report: FeasibilityReport) -> FeasibilityReport:
    return replace(report, action_items=tuple(generate_action_items(report)))


def summarize(report: FeasibilityReport, task_count: int) -> str:
    """Plain-text summary of a report."""
    b = report.breakdown
    lines = [
        f"Project Feasibility: {report.score * 100:.0f}% ({report.level})",
        "",
        report.recommendation,
        "",
        "Key Metrics:",
        f"- Total Effort: {b.total_hours} hours",
        f"- Critical Path: {b.critical_path_hours} hours",
        f"- Team Capacity: {b.available_hours} hours",
        f"- Buffer: {b.buffer_hours} hours",
        f"- Tasks: {task_count}",
        f"- Risks: {len(report.warnings)}",
    ]
    return "\n".join(lines)
