"""Configuration defaults, env vars, and runtime options for plancraft."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import date

from plancraft import __version__
from plancraft.tasks.model import Constraints

VERSION = __version__

ENV_PREFIX = "PLANCRAFT_"

DEFAULT_TEAM_SIZE = 5
DEFAULT_HOURS_PER_DAY = 8.0
DEFAULT_MAX_TASKS = 100


def _env_number(name: str, cast: type = int, default=None):
    raw = os.environ.get(ENV_PREFIX + name, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


@dataclass
class Config:
    """Runtime configuration.  Unset values fall back to PLANCRAFT_* env vars."""

    # Team
    team_size: int | None = None
    hours_per_day: float | None = None

    # Timeline / scope
    deadline: date | int | None = None
    max_tasks: int | None = None

    # Output
    json_output: bool = False
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.team_size is None:
            self.team_size = _env_number("TEAM_SIZE", default=DEFAULT_TEAM_SIZE)
        if self.hours_per_day is None:
            self.hours_per_day = _env_number("HOURS_PER_DAY", float, DEFAULT_HOURS_PER_DAY)
        if self.deadline is None:
            self.deadline = _env_number("DEADLINE_DAYS")
        if self.max_tasks is None:
            self.max_tasks = _env_number("MAX_TASKS", default=DEFAULT_MAX_TASKS)

    def constraints(self) -> Constraints:
        return Constraints(
            team_size=self.team_size,
            hours_per_day=self.hours_per_day,
            deadline=self.deadline,
            max_tasks=self.max_tasks,
        )
