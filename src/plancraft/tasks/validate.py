"""Structural validation for task sets: unique ids and resolvable dependencies."""

from __future__ import annotations

from plancraft import log
from plancraft.errors import ValidationError
from plancraft.tasks.model import Task


def validate(tasks: list[Task]) -> list[str]:
    """Return a list of human-readable problems; empty when the set is sound.

    Cycles are not reported here; they are a graph concern handled by
    :func:`plancraft.graph.detect_cycles`.
    """
    errors: list[str] = []
    seen: set[str] = set()

    for task in tasks:
        if not task.id:
            errors.append("Task missing id")
            continue
        if task.id in seen:
            errors.append(f"Duplicate id: {task.id}")
        seen.add(task.id)

    for task in tasks:
        for dep in task.dependencies:
            if dep not in seen:
                errors.append(f"Task {task.id}: dependency '{dep}' not found")

    return errors


def dangling_dependencies(tasks: list[Task]) -> list[tuple[str, str]]:
    """Return ``(task_id, missing_dep)`` pairs for unresolved references."""
    ids = {t.id for t in tasks}
    return [(t.id, d) for t in tasks for d in t.dependencies if d not in ids]


def ensure_valid(tasks: list[Task]) -> None:
    """Raise ValidationError carrying every problem found."""
    errors = validate(tasks)
    if errors:
        raise ValidationError(f"{len(errors)} validation error(s): {errors[0]}", errors)


def validate_and_report(tasks: list[Task]) -> bool:
    """Validate and log errors.  Returns True if valid."""
    errors = validate(tasks)
    if errors:
        log.error("Task validation failed:")
        for err in errors:
            log.error(f"  - {err}")
        return False
    log.debug(f"Validated {len(tasks)} task(s)")
    return True
