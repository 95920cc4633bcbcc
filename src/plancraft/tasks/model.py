"""Task and Constraints data models shared by the graph engine and estimator."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import Enum

from plancraft.errors import InvalidConstraintsError, ValidationError

MIN_HOURS = 0.5
MAX_HOURS = 160.0

DEFAULT_HORIZON_DAYS = 30


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


def complexity_for(hours: float) -> Complexity:
    if hours < 4:
        return Complexity.SIMPLE
    if hours < 8:
        return Complexity.MODERATE
    return Complexity.COMPLEX


def clamp_hours(hours: float) -> float:
    """Clamp an estimate into the [0.5, 160] hour domain."""
    return min(MAX_HOURS, max(MIN_HOURS, hours))


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class Task:
    id: str
    title: str = ""
    description: str = ""
    estimated_hours: float = 1.0
    priority: int = 5
    category: str = "general"
    dependencies: list[str] = field(default_factory=list)
    level: int = 0

    def __post_init__(self) -> None:
        problems: list[str] = []
        if not isinstance(self.id, str) or not self.id.strip():
            problems.append("missing id")
        label = self.id if isinstance(self.id, str) and self.id else "<unnamed>"

        hours = self.estimated_hours
        if not _is_number(hours) or not math.isfinite(hours) or hours <= 0:
            problems.append(f"{label}: estimated_hours must be a positive number (got {hours!r})")

        if not isinstance(self.priority, int) or isinstance(self.priority, bool):
            problems.append(f"{label}: priority must be an integer (got {self.priority!r})")
        elif not 1 <= self.priority <= 10:
            problems.append(f"{label}: priority must be between 1 and 10 (got {self.priority})")

        if not isinstance(self.level, int) or isinstance(self.level, bool) or self.level < 0:
            problems.append(f"{label}: level must be a non-negative integer (got {self.level!r})")

        if not isinstance(self.dependencies, (list, tuple)) or not all(
            isinstance(d, str) for d in self.dependencies
        ):
            problems.append(f"{label}: dependencies must be a list of task ids")
        else:
            # duplicate edges carry no meaning; keep first occurrence
            self.dependencies = list(dict.fromkeys(self.dependencies))

        if problems:
            raise ValidationError(problems[0], problems)

        self.estimated_hours = float(hours)
        if not self.title:
            self.title = self.id

    @property
    def complexity(self) -> Complexity:
        return complexity_for(self.estimated_hours)

    def copy(self, **changes: object) -> Task:
        """Return an independent copy, optionally overriding fields."""
        changes.setdefault("dependencies", list(self.dependencies))
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "estimatedHours": self.estimated_hours,
            "priority": self.priority,
            "category": self.category,
            "dependencies": list(self.dependencies),
            "complexity": self.complexity.value,
            "level": self.level,
        }


@dataclass
class Constraints:
    """Team and timeline limits a plan is evaluated against.

    ``deadline`` is either a calendar date or a number of days from
    ``as_of``; ``None`` means the default 30 day horizon.
    """

    team_size: int = 5
    hours_per_day: float = 8.0
    deadline: date | int | None = None
    max_tasks: int = 100

    def check(self, as_of: date | None = None) -> None:
        """Raise InvalidConstraintsError if any limit is outside its domain."""
        team = self.team_size
        if not _is_number(team) or not math.isfinite(team) or team < 1 or team != int(team):
            raise InvalidConstraintsError(
                f"team_size must be a whole number of at least 1 (got {self.team_size!r})"
            )
        if not _is_number(self.hours_per_day) or not 0 < self.hours_per_day <= 24:
            raise InvalidConstraintsError(
                f"hours_per_day must be in (0, 24] (got {self.hours_per_day!r})"
            )
        if not _is_number(self.max_tasks) or self.max_tasks < 1:
            raise InvalidConstraintsError(f"max_tasks must be at least 1 (got {self.max_tasks!r})")
        if self._raw_days(as_of) < 0:
            raise InvalidConstraintsError(f"deadline {self.deadline} is in the past")

    def deadline_date(self, as_of: date | None = None) -> date:
        today = as_of or date.today()
        if self.deadline is None:
            return today + timedelta(days=DEFAULT_HORIZON_DAYS)
        if isinstance(self.deadline, datetime):
            return self.deadline.date()
        if isinstance(self.deadline, date):
            return self.deadline
        return today + timedelta(days=int(self.deadline))

    def days_available(self, as_of: date | None = None) -> int:
        """Whole days until the deadline, never less than one."""
        return max(1, self._raw_days(as_of))

    def _raw_days(self, as_of: date | None) -> int:
        if self.deadline is None:
            return DEFAULT_HORIZON_DAYS
        if _is_number(self.deadline):
            return math.ceil(self.deadline)
        if not isinstance(self.deadline, date):
            raise InvalidConstraintsError(f"unsupported deadline value {self.deadline!r}")
        today = as_of or date.today()
        return (self.deadline_date(today) - today).days

    def to_dict(self) -> dict:
        deadline = self.deadline
        if isinstance(deadline, date):
            deadline = deadline.isoformat()
        return {
            "teamSize": self.team_size,
            "hoursPerDay": self.hours_per_day,
            "deadline": deadline,
            "maxTasks": self.max_tasks,
        }


def task_index(tasks: list[Task]) -> dict[str, Task]:
    """Map id -> task; later duplicates do not override the first."""
    index: dict[str, Task] = {}
    for task in tasks:
        index.setdefault(task.id, task)
    return index
