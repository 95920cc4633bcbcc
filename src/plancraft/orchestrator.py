"""End-to-end analysis: decompose, repair, schedule, score, and recommend.

Every stage runs in isolation.  A failing stage is logged and recorded under
``AnalysisReport.errors`` and the remaining stages still run with whatever
earlier stages produced.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, TypeVar

from rich.markup import escape

from plancraft import graph, log
from plancraft.decomposer import Decomposition, Feature, decompose_project
from plancraft.feasibility import FeasibilityReport, calculate_feasibility, severity_rank
from plancraft.graph import CycleReport, ParallelPlan, Schedule
from plancraft.requirements import (
    AmbiguityReport,
    ContradictionReport,
    detect_contradictions,
    score_ambiguity,
)
from plancraft.tasks.model import Constraints, Task
from plancraft.tasks.validate import ensure_valid

T = TypeVar("T")

STAGES = (
    "decomposition",
    "graph",
    "schedule",
    "parallelism",
    "contradictions",
    "ambiguity",
    "feasibility",
)


@dataclass(frozen=True)
class Recommendation:
    category: str
    severity: str
    message: str
    source: str

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "severity": self.severity,
            "message": self.message,
            "source": self.source,
        }


@dataclass
class AnalysisReport:
    description: str = ""
    constraints: Constraints = field(default_factory=Constraints)
    tasks: list[Task] = field(default_factory=list)
    features: list[Feature] = field(default_factory=list)
    decomposition: Decomposition | None = None
    cycles: CycleReport | None = None
    removed_edges: list[tuple[str, str]] = field(default_factory=list)
    schedule: Schedule | None = None
    parallel: ParallelPlan | None = None
    contradictions: ContradictionReport | None = None
    ambiguity: AmbiguityReport | None = None
    feasibility: FeasibilityReport | None = None
    recommendations: list[Recommendation] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def total_hours(self) -> float:
        return round(sum(t.estimated_hours for t in self.tasks), 1)

    def to_dict(self) -> dict:
        return {
            "description": self.description,
            "constraints": self.constraints.to_dict(),
            "tasks": [t.to_dict() for t in self.tasks],
            "features": [f.to_dict() for f in self.features],
            "cycles": self.cycles.to_dict() if self.cycles else None,
            "removedEdges": [list(e) for e in self.removed_edges],
            "schedule": self.schedule.to_dict() if self.schedule else None,
            "parallel": self.parallel.to_dict() if self.parallel else None,
            "contradictions": self.contradictions.to_dict() if self.contradictions else None,
            "ambiguity": self.ambiguity.to_dict() if self.ambiguity else None,
            "feasibility": self.feasibility.to_dict() if self.feasibility else None,
            "recommendations": [r.to_dict() for r in self.recommendations],
            "errors": dict(self.errors),
        }


def _run_stage(report: AnalysisReport, stage: str, fn: Callable[[], T]) -> T | None:
    log.debug(f"Running stage: {stage}")
    try:
        return fn()
    except Exception as exc:
        log.error(f"{stage} failed: {escape(str(exc))}")
        report.errors[stage] = f"{type(exc).__name__}: {exc}"
        return None


# ── Task-set pipeline ────────────────────────────────────────────────


def plan_tasks(
    tasks: list[Task],
    constraints: Constraints | None = None,
    *,
    as_of: date | None = None,
    report: AnalysisReport | None = None,
) -> AnalysisReport:
    """Validate and repair *tasks*, then schedule and score them."""
    constraints = constraints or Constraints()
    standalone = report is None
    if report is None:
        report = AnalysisReport(constraints=constraints, tasks=list(tasks))

    def repair() -> list[Task]:
        ensure_valid(tasks)
        report.cycles = graph.detect_cycles(tasks)
        result = graph.repair_cycles(tasks)
        report.removed_edges = list(result.removed_edges)
        for u, v in result.removed_edges:
            log.debug(f"Broke circular dependency: {u} no longer waits for {v}")
        return graph.assign_levels(result.tasks)

    repaired = _run_stage(report, "graph", repair)
    if repaired is None:
        if standalone:
            report.recommendations = generate_recommendations(report)
        return report
    report.tasks = repaired

    report.schedule = _run_stage(report, "schedule", lambda: graph.critical_path(repaired))
    report.parallel = _run_stage(
        report,
        "parallelism",
        lambda: graph.parallel_levels(repaired, max(1, int(constraints.team_size))),
    )
    report.feasibility = _run_stage(
        report,
        "feasibility",
        lambda: calculate_feasibility(repaired, constraints, as_of=as_of),
    )
    if standalone:
        report.recommendations = generate_recommendations(report)
    return report


# ── Full analysis ────────────────────────────────────────────────────


def analyze_project(
    description: str,
    constraints: Constraints | None = None,
    *,
    as_of: date | None = None,
    decomposer: Callable[..., Decomposition] = decompose_project,
    contradiction_detector: Callable[[str], ContradictionReport] = detect_contradictions,
    ambiguity_scorer: Callable[[str], AmbiguityReport] = score_ambiguity,
) -> AnalysisReport:
    """Run the whole pipeline over a free-text description."""
    constraints = constraints or Constraints()
    report = AnalysisReport(description=description, constraints=constraints)

    decomposition = _run_stage(
        report, "decomposition", lambda: decomposer(description, constraints)
    )
    if decomposition is not None:
        report.decomposition = decomposition
        report.features = list(decomposition.features)
        report.tasks = list(decomposition.tasks)
        log.debug(f"Decomposed into {len(report.tasks)} task(s)")
        plan_tasks(report.tasks, constraints, as_of=as_of, report=report)

    report.contradictions = _run_stage(
        report, "contradictions", lambda: contradiction_detector(description)
    )
    report.ambiguity = _run_stage(report, "ambiguity", lambda: ambiguity_scorer(description))

    report.recommendations = generate_recommendations(report)
    return report


def generate_recommendations(report: AnalysisReport) -> list[Recommendation]:
    """Merge findings from every stage, most severe first."""
    recs: list[Recommendation] = []

    for stage, message in report.errors.items():
        recs.append(Recommendation("pipeline", "critical", f"{stage} stage failed: {message}", stage))

    if len(report.tasks) > report.constraints.max_tasks:
        recs.append(Recommendation(
            "scope", "high",
            f"Project has {len(report.tasks)} tasks. "
            "Consider breaking it into phases or consolidating similar tasks.",
            "decomposition",
        ))

    if report.removed_edges:
        edges = ", ".join(f"{u} -> {v}" for u, v in report.removed_edges)
        recs.append(Recommendation(
            "dependencies", "high",
            f"Circular dependencies were broken automatically ({edges}). Confirm the removed edges.",
            "graph",
        ))

    if report.decomposition is not None:
        for rule in report.decomposition.rejected_rules:
            recs.append(Recommendation(
                "dependencies", "low",
                f"Skipped implicit rule '{rule.reason}' because it would create a cycle.",
                "graph",
            ))

    if report.parallel is not None and report.parallel.parallelization_score > 0.5:
        recs.append(Recommendation(
            "optimization", "medium",
            f"High parallelization opportunity ({report.parallel.parallelization_score:.0%}). "
            "Consider parallel task execution.",
            "graph",
        ))

    if report.contradictions is not None and report.contradictions.contradictions:
        critical = [c for c in report.contradictions.contradictions if c.level == "critical"]
        if critical:
            recs.append(Recommendation(
                "requirements", "critical",
                f"{len(critical)} critical requirement contradiction(s) found. Resolve before proceeding.",
                "contradictions",
            ))
        else:
            recs.append(Recommendation(
                "requirements", "medium",
                f"{len(report.contradictions.contradictions)} requirement tension(s) found.",
                "contradictions",
            ))

    if report.ambiguity is not None:
        if report.ambiguity.score < 0.7:
            recs.append(Recommendation(
                "clarity", "high",
                f"Requirements clarity is low ({report.ambiguity.score:.0%}). "
                "Answer the clarifying questions to improve it.",
                "ambiguity",
            ))
        critical_questions = [q for q in report.ambiguity.questions if q.priority == "critical"]
        if critical_questions:
            recs.append(Recommendation(
                "clarity", "critical",
                f"{len(critical_questions)} critical clarifying question(s) need answers.",
                "ambiguity",
            ))

    if report.feasibility is not None:
        if report.feasibility.score < 0.7:
            recs.append(Recommendation(
                "feasibility", "high",
                f"Project feasibility score is low ({report.feasibility.score:.0%}). "
                "Consider scope reduction, deadline extension, or team expansion.",
                "feasibility",
            ))
        for warning in report.feasibility.warnings:
            recs.append(Recommendation(
                "feasibility", warning.severity,
                f"{warning.title}: {warning.suggestion}",
                "feasibility",
            ))

    recs.sort(key=lambda r: severity_rank(r.severity))
    return recs
