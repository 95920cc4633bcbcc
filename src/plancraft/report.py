"""Console rendering of plans, schedules, and feasibility verdicts."""

from __future__ import annotations

from rich.markup import escape

from plancraft import log
from plancraft.feasibility import FeasibilityReport, summarize
from plancraft.graph import CycleReport, ParallelPlan, Schedule
from plancraft.orchestrator import AnalysisReport
from plancraft.tasks.model import Task

LEVEL_STYLE = {
    "comfortable": "green",
    "tight-but-doable": "cyan",
    "aggressive": "yellow",
    "unrealistic": "red",
}


def show_tasks(tasks: list[Task], schedule: Schedule | None = None) -> None:
    log.section(f"Tasks ({len(tasks)})")
    for task in sorted(tasks, key=lambda t: (t.level, -t.priority)):
        marker = ""
        if schedule is not None and schedule.is_critical(task.id):
            marker = " [red]*[/red]"
        deps = ""
        if task.dependencies:
            deps = f" [dim]<- {escape(', '.join(task.dependencies))}[/dim]"
        log.console.print(
            f"  L{task.level} [cyan]{escape(task.id)}[/cyan] {escape(task.title)} "
            f"({task.estimated_hours:g}h, p{task.priority}, {escape(task.category)}){marker}{deps}"
        )


def show_cycles(report: CycleReport, removed: list[tuple[str, str]] | None = None) -> None:
    log.section("Cycles")
    if not report.has_cycles:
        log.console.print("  [green]none[/green]")
        return
    for chain in report.cycles:
        log.console.print(f"  - {escape(' -> '.join(chain))}")
    for u, v in removed or []:
        log.console.print(f"  [yellow]removed[/yellow] {escape(u)} -> {escape(v)}")


def show_schedule(schedule: Schedule) -> None:
    log.section("Critical Path")
    if not schedule.critical_path:
        log.console.print("  [dim]No tasks to schedule[/dim]")
        return
    log.console.print(f"  {escape(' -> '.join(schedule.critical_path))}")
    log.console.print(f"  Duration: {schedule.duration:g} hours with unlimited workers")
    slack = [tid for tid in schedule.order if not schedule.is_critical(tid)]
    if slack:
        shown = ", ".join(f"{tid} ({schedule.slack[tid]:g}h)" for tid in slack[:8])
        more = f" and {len(slack) - 8} more" if len(slack) > 8 else ""
        log.console.print(f"  [dim]Slack: {escape(shown)}{more}[/dim]")


def show_parallel(plan: ParallelPlan) -> None:
    log.section(f"Parallel Levels (team of {plan.team_size})")
    for group in plan.levels:
        flag = " [yellow]understaffed[/yellow]" if group.understaffed else ""
        log.console.print(
            f"  Level {group.level}: {group.size} task(s), "
            f"{group.parallel_hours:g}h parallel / {group.sequential_hours:g}h sequential{flag}"
        )
    log.console.print(
        f"  Parallelization: {plan.parallelization_score:.0%} "
        f"({plan.hours_saved:g} hours saved)"
    )


def show_feasibility(report: FeasibilityReport, task_count: int) -> None:
    style = LEVEL_STYLE.get(report.level, "white")
    log.section("Feasibility")
    lines = summarize(report, task_count).splitlines()
    log.console.print(f"  [{style}]{escape(lines[0])}[/{style}]")
    for line in lines[1:]:
        log.console.print(f"  {escape(line)}" if line else "")

    if report.warnings:
        log.section("Warnings")
        for w in report.warnings:
            log.console.print(f"  {log.severity_tag(w.severity)} {escape(w.title)}: {escape(w.description)}")
            log.console.print(f"           [dim]{escape(w.suggestion)}[/dim]")

    if report.action_items:
        log.section("Action Items")
        for item in report.action_items:
            log.console.print(
                f"  {log.severity_tag(item.priority)} {escape(item.action)}: {escape(item.details)}"
            )


def show_analysis(report: AnalysisReport) -> None:
    log.rule()
    log.console.print("[bold]PLANCRAFT[/bold] - Project analysis")
    if report.features:
        names = ", ".join(f.name for f in report.features)
        log.console.print(f"Features: [cyan]{escape(names)}[/cyan]")
    log.rule()

    if report.tasks:
        show_tasks(report.tasks, report.schedule)
    if report.cycles is not None and report.cycles.has_cycles:
        show_cycles(report.cycles, report.removed_edges)
    if report.schedule is not None:
        show_schedule(report.schedule)
    if report.parallel is not None:
        show_parallel(report.parallel)
    if report.feasibility is not None:
        show_feasibility(report.feasibility, len(report.tasks))

    if report.contradictions is not None and report.contradictions.contradictions:
        log.section("Contradictions")
        for c in report.contradictions.contradictions:
            log.console.print(f"  {log.severity_tag(c.level)} {escape(c.description)}")
            log.console.print(f"           [dim]{escape(c.suggestion)}[/dim]")

    if report.ambiguity is not None:
        log.section(f"Clarity {report.ambiguity.score:.0%} ({report.ambiguity.level})")
        for q in report.ambiguity.questions[:5]:
            log.console.print(f"  {log.severity_tag(q.priority)} {escape(q.question)}")

    if report.recommendations:
        log.section("Recommendations")
        for rec in report.recommendations:
            log.console.print(f"  {log.severity_tag(rec.severity)} {escape(rec.message)}")

    log.rule()
