"""plancraft CLI.

Installed as the ``plancraft`` console_script.
"""

from __future__ import annotations

import json
import sys
from datetime import date
from pathlib import Path

import click
from rich.markup import escape

from plancraft import __version__
from plancraft.config import Config
from plancraft.errors import PlanError

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])


def _parse_deadline(
    ctx: click.Context, param: click.Parameter, value: str | None
) -> date | int | None:
    """Accept a number of days from today or an ISO ``YYYY-MM-DD`` date."""
    if value is None or value == "":
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(
            f"'{value}' is neither a number of days nor a YYYY-MM-DD date.",
            param_hint="--deadline",
        ) from None


def constraint_options(fn):
    """Attach the team / timeline / scope options shared by several commands."""
    fn = click.option("--max-tasks", type=click.IntRange(min=1), default=None,
                      help="Task count above which scope is flagged")(fn)
    fn = click.option("--deadline", default=None, callback=_parse_deadline,
                      help="Days from today, or a YYYY-MM-DD date")(fn)
    fn = click.option("--hours-per-day", type=float, default=None,
                      help="Productive hours per person per day")(fn)
    fn = click.option("--team-size", type=int, default=None, help="Number of people")(fn)
    return fn


def _config(ctx: click.Context, **values) -> Config:
    from plancraft import log

    verbose = bool(ctx.obj.get("verbose")) if ctx.obj else False
    cfg = Config(verbose=verbose, **values)
    log.set_quiet(cfg.json_output)
    return cfg


def _emit_json(data: dict) -> None:
    click.echo(json.dumps(data, indent=2))


def _load_tasks(path: str) -> list:
    from plancraft import log
    from plancraft.tasks.io import load_task_file
    from plancraft.tasks.validate import validate_and_report

    try:
        tasks = load_task_file(path)
    except PlanError as exc:
        log.error(escape(str(exc)))
        sys.exit(1)
    if not validate_and_report(tasks):
        sys.exit(1)
    log.debug(f"Loaded {len(tasks)} task(s) from {path}")
    return tasks


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.version_option(__version__, prog_name="plancraft")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """plancraft: turn a project description into a scheduled, scored plan.

    \b
    EXAMPLES:
      plancraft analyze "Shop with login, products, cart and payments"
      plancraft analyze --team-size 3 --deadline 45 "Blog with comments"
      plancraft graph tasks.yaml --repair
      plancraft feasibility tasks.yaml --deadline 2026-12-01 --json
    """
    from plancraft import log

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    log.set_verbose(verbose)


# ── Subcommand: analyze ──────────────────────────────────────────────


@main.command()
@click.argument("description")
@constraint_options
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_context
def analyze(
    ctx: click.Context,
    description: str,
    team_size: int | None,
    hours_per_day: float | None,
    deadline: date | int | None,
    max_tasks: int | None,
    as_json: bool,
) -> None:
    """Decompose DESCRIPTION into tasks, then schedule and score them."""
    from plancraft import log
    from plancraft.orchestrator import analyze_project
    from plancraft.report import show_analysis

    cfg = _config(
        ctx,
        team_size=team_size,
        hours_per_day=hours_per_day,
        deadline=deadline,
        max_tasks=max_tasks,
        json_output=as_json,
    )
    report = analyze_project(description, cfg.constraints())

    if cfg.json_output:
        _emit_json(report.to_dict())
    else:
        show_analysis(report)

    if "decomposition" in report.errors:
        sys.exit(1)
    if report.errors:
        log.warn(f"Completed with {len(report.errors)} failed stage(s)")


# ── Subcommand: graph ────────────────────────────────────────────────


@main.command("graph")
@click.argument("tasks_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--repair", is_flag=True, help="Break circular dependencies automatically")
@click.option("--team-size", type=int, default=None, help="Number of people")
@click.option("--output", "-o", default="", help="Write the repaired, levelled tasks to this YAML file")
@click.option("--json", "as_json", is_flag=True, help="Print the analysis as JSON")
@click.pass_context
def graph_cmd(
    ctx: click.Context,
    tasks_file: str,
    repair: bool,
    team_size: int | None,
    output: str,
    as_json: bool,
) -> None:
    """Check TASKS_FILE for cycles and show its critical path and levels."""
    from plancraft import graph, log
    from plancraft.report import show_cycles, show_parallel, show_schedule, show_tasks
    from plancraft.tasks.io import save_task_file

    cfg = _config(ctx, team_size=team_size, json_output=as_json)
    tasks = _load_tasks(tasks_file)

    cycles = graph.detect_cycles(tasks)
    removed: list[tuple[str, str]] = []
    if cycles.has_cycles:
        if not repair:
            if cfg.json_output:
                _emit_json({"cycles": cycles.to_dict()})
            else:
                show_cycles(cycles)
            log.error(f"Found {len(cycles.cycles)} circular dependency chain(s). Re-run with --repair.")
            sys.exit(1)
        try:
            result = graph.repair_cycles(tasks)
        except PlanError as exc:
            log.error(escape(str(exc)))
            sys.exit(1)
        tasks, removed = result.tasks, result.removed_edges
        for u, v in removed:
            log.warn(f"Removed dependency {u} -> {v}")

    try:
        tasks = graph.assign_levels(tasks)
        schedule = graph.critical_path(tasks)
        plan = graph.parallel_levels(tasks, cfg.team_size)
    except PlanError as exc:
        log.error(escape(str(exc)))
        sys.exit(1)

    if output:
        save_task_file(Path(output), tasks)
        log.success(f"Wrote {len(tasks)} task(s) to {output}")

    if cfg.json_output:
        _emit_json({
            "tasks": [t.to_dict() for t in tasks],
            "cycles": cycles.to_dict(),
            "removedEdges": [list(e) for e in removed],
            "schedule": schedule.to_dict(),
            "parallel": plan.to_dict(),
        })
        return

    show_tasks(tasks, schedule)
    show_cycles(cycles, removed)
    show_schedule(schedule)
    show_parallel(plan)


# ── Subcommand: feasibility ──────────────────────────────────────────


@main.command()
@click.argument("tasks_file", type=click.Path(exists=True, dir_okay=False))
@constraint_options
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_context
def feasibility(
    ctx: click.Context,
    tasks_file: str,
    team_size: int | None,
    hours_per_day: float | None,
    deadline: date | int | None,
    max_tasks: int | None,
    as_json: bool,
) -> None:
    """Score how achievable TASKS_FILE is for the given team and deadline."""
    from plancraft import log
    from plancraft.orchestrator import plan_tasks
    from plancraft.report import show_feasibility

    cfg = _config(
        ctx,
        team_size=team_size,
        hours_per_day=hours_per_day,
        deadline=deadline,
        max_tasks=max_tasks,
        json_output=as_json,
    )
    tasks = _load_tasks(tasks_file)
    report = plan_tasks(tasks, cfg.constraints())

    if cfg.json_output:
        _emit_json(report.to_dict())
    elif report.feasibility is not None:
        show_feasibility(report.feasibility, len(report.tasks))

    if report.feasibility is None:
        log.error("Feasibility could not be computed")
        sys.exit(1)
