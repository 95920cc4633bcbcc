"""Shared fixtures for plancraft tests.

File handling in tests:
- Use tmp_path for any task file so tests are isolated and cleaned up.
- Pin ``as_of`` when a calendar deadline is involved so results do not drift.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from plancraft import log
from plancraft.tasks.io import save_task_file
from plancraft.tasks.model import Task

AS_OF = date(2026, 1, 5)


@pytest.fixture(autouse=True)
def _reset_log_state():
    """CLI commands toggle module-level verbosity; restore it after each test."""
    yield
    log.set_verbose(False)
    log.set_quiet(False)


@pytest.fixture(autouse=True)
def _clear_plancraft_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("TEAM_SIZE", "HOURS_PER_DAY", "DEADLINE_DAYS", "MAX_TASKS"):
        monkeypatch.delenv(f"PLANCRAFT_{name}", raising=False)


def _make_task(
    id: str,
    hours: float = 4.0,
    depends_on: list[str] | None = None,
    priority: int = 5,
    category: str = "backend",
    title: str = "",
) -> Task:
    return Task(
        id=id,
        title=title or f"Task {id}",
        estimated_hours=hours,
        priority=priority,
        category=category,
        dependencies=depends_on or [],
    )


@pytest.fixture
def make_task():
    """Factory fixture that creates Task instances."""
    return _make_task


@pytest.fixture
def as_of() -> date:
    return AS_OF


@pytest.fixture
def three_cycle() -> list[Task]:
    """A -> B -> C -> A, 10 hours each."""
    return [
        _make_task("A", 10, ["B"]),
        _make_task("B", 10, ["C"]),
        _make_task("C", 10, ["A"]),
    ]


@pytest.fixture
def independent_five() -> list[Task]:
    """Five unrelated 8 hour tasks."""
    return [_make_task(f"T{i}", 8) for i in range(1, 6)]


@pytest.fixture
def diamond() -> list[Task]:
    """setup feeds api (6h) and ui (2h), both feed release (1h)."""
    return [
        _make_task("setup", 3, category="setup"),
        _make_task("api", 6, ["setup"]),
        _make_task("ui", 2, ["setup"], category="frontend"),
        _make_task("release", 1, ["api", "ui"], category="devops"),
    ]


@pytest.fixture
def write_tasks(tmp_path: Path):
    """Write tasks to a YAML file under tmp_path and return its path."""

    def _write(tasks: list[Task], name: str = "tasks.yaml") -> Path:
        path = tmp_path / name
        save_task_file(path, tasks)
        return path

    return _write
