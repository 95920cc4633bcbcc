"""Load and dump task lists as YAML task files.

Task file layout::

    tasks:
      - id: api
        title: Build REST API
        estimatedHours: 12
        priority: 7
        category: backend
        dependsOn: [schema]
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from plancraft.errors import ValidationError
from plancraft.tasks.model import Task

# yaml key -> Task field; first match wins
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "title": ("title", "name"),
    "description": ("description",),
    "estimated_hours": ("estimatedHours", "estimated_hours", "hours"),
    "priority": ("priority",),
    "category": ("category",),
    "dependencies": ("dependsOn", "dependencies", "depends_on"),
    "level": ("level",),
}


def task_from_mapping(raw: dict[str, Any], position: int = 0) -> Task:
    if not isinstance(raw, dict):
        raise ValidationError(f"Task #{position + 1} is not a mapping")
    kwargs: dict[str, Any] = {"id": str(raw.get("id") or "")}
    for attr, keys in _FIELD_ALIASES.items():
        for key in keys:
            if key in raw and raw[key] is not None:
                kwargs[attr] = raw[key]
                break
    deps = kwargs.get("dependencies")
    if isinstance(deps, str):
        kwargs["dependencies"] = [deps]
    elif isinstance(deps, list):
        kwargs["dependencies"] = [str(d) for d in deps]
    return Task(**kwargs)


def parse_tasks(text: str) -> list[Task]:
    """Parse YAML text into tasks.  Accepts a ``tasks:`` mapping or a bare list."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValidationError(f"Invalid YAML: {exc}") from exc

    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("tasks") or []
    if not isinstance(data, list):
        raise ValidationError("Task file must contain a list under 'tasks'")
    return [task_from_mapping(item, i) for i, item in enumerate(data)]


def load_task_file(path: Path | str) -> list[Task]:
    p = Path(path)
    return parse_tasks(p.read_text(encoding="utf-8"))


def dump_tasks(tasks: list[Task]) -> str:
    records = []
    for task in tasks:
        record: dict[str, Any] = {
            "id": task.id,
            "title": task.title,
            "estimatedHours": task.estimated_hours,
            "priority": task.priority,
            "category": task.category,
            "dependsOn": list(task.dependencies),
        }
        if task.description:
            record["description"] = task.description
        records.append(record)
    return yaml.safe_dump({"tasks": records}, sort_keys=False, allow_unicode=True)


def save_task_file(path: Path | str, tasks: list[Task]) -> None:
    Path(path).write_text(dump_tasks(tasks), encoding="utf-8")
