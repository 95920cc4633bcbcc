"""Dependency graph engine over task sets.

Edges point from a task to each task it depends on.  Every operation builds
its own adjacency view from the task list it is handed, so nothing here keeps
state between calls and repairs always return fresh task lists.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum

from plancraft import log
from plancraft.errors import CycleError, InvalidConstraintsError, format_cycle
from plancraft.tasks.model import Task, task_index

EPSILON = 1e-6


class NodeState(str, Enum):
    UNVISITED = "unvisited"
    VISITING = "visiting"
    VISITED = "visited"


def _existing_deps(task: Task, index: dict[str, Task]) -> list[str]:
    return [d for d in task.dependencies if d in index]


def _successors(index: dict[str, Task]) -> dict[str, list[str]]:
    succ: dict[str, list[str]] = {tid: [] for tid in index}
    for tid, task in index.items():
        for dep in _existing_deps(task, index):
            succ[dep].append(tid)
    return succ


# ── Cycle detection ──────────────────────────────────────────────────


@dataclass(frozen=True)
class CycleReport:
    has_cycles: bool
    cycles: list[list[str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"hasCycles": self.has_cycles, "cycles": [list(c) for c in self.cycles]}


def detect_cycles(tasks: list[Task]) -> CycleReport:
    """Find cycles with a three-colour depth-first scan.

    Each cycle is reported as a closed chain, e.g. ``["A", "B", "C", "A"]``
    where A depends on B, B on C, and C on A.  A self-loop is ``["A", "A"]``.
    Dependencies on unknown ids are skipped.
    """
    index = task_index(tasks)
    state = {tid: NodeState.UNVISITED for tid in index}
    cycles: list[list[str]] = []
    seen: set[tuple[str, ...]] = set()

    for root in index:
        if state[root] is not NodeState.UNVISITED:
            continue

        state[root] = NodeState.VISITING
        path = [root]
        stack = [iter(_existing_deps(index[root], index))]

        while stack:
            descended = False
            for dep in stack[-1]:
                if state[dep] is NodeState.VISITING:
                    start = path.index(dep)
                    chain = tuple(path[start:]) + (dep,)
                    if chain not in seen:
                        seen.add(chain)
                        cycles.append(list(chain))
                elif state[dep] is NodeState.UNVISITED:
                    state[dep] = NodeState.VISITING
                    path.append(dep)
                    stack.append(iter(_existing_deps(index[dep], index)))
                    descended = True
                    break
            if not descended:
                stack.pop()
                state[path.pop()] = NodeState.VISITED

    return CycleReport(has_cycles=bool(cycles), cycles=cycles)


# ── Cycle repair ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class CycleBreak:
    success: bool
    tasks: list[Task]
    removed_edge: tuple[str, str] | None = None
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "removedEdge": list(self.removed_edge) if self.removed_edge else None,
            "message": self.message,
        }


def edge_weakness(task: Task) -> float:
    """Lower means the task's dependency is cheaper to drop."""
    return task.priority + task.estimated_hours / 10


def break_cycle(tasks: list[Task], chain: list[str]) -> CycleBreak:
    """Remove the weakest dependency edge along *chain*.

    For each edge ``u -> v`` (u depends on v) the dependent task ``u`` is
    scored with :func:`edge_weakness`; the lowest score loses its edge, the
    first in chain order on ties.  The input list is never modified.
    """
    index = task_index(tasks)
    unknown = [tid for tid in chain if tid not in index]
    if len(chain) < 2 or unknown:
        msg = f"Cannot resolve cycle {format_cycle(chain)} against current tasks"
        log.debug(msg)
        return CycleBreak(False, list(tasks), None, msg)

    best: tuple[float, str, str] | None = None
    for u, v in zip(chain, chain[1:]):
        if v not in index[u].dependencies:
            continue
        score = edge_weakness(index[u])
        if best is None or score < best[0]:
            best = (score, u, v)

    if best is None:
        msg = f"Cycle {format_cycle(chain)} has no remaining edges"
        log.debug(msg)
        return CycleBreak(False, list(tasks), None, msg)

    _, u, v = best
    target = index[u]
    repaired: list[Task] = []
    for task in tasks:
        if task is target:
            repaired.append(task.copy(dependencies=[d for d in task.dependencies if d != v]))
        else:
            repaired.append(task.copy())

    msg = f"Removed dependency {u} -> {v} to break cycle {format_cycle(chain)}"
    log.debug(msg)
    return CycleBreak(True, repaired, (u, v), msg)


@dataclass(frozen=True)
class RepairResult:
    tasks: list[Task]
    removed_edges: list[tuple[str, str]] = field(default_factory=list)


def repair_cycles(tasks: list[Task], max_attempts: int | None = None) -> RepairResult:
    """Alternate detect_cycles and break_cycle until the graph is acyclic."""
    if max_attempts is None:
        max_attempts = sum(len(t.dependencies) for t in tasks) + 1

    current = list(tasks)
    removed: list[tuple[str, str]] = []
    for _ in range(max_attempts):
        report = detect_cycles(current)
        if not report.has_cycles:
            return RepairResult(current, removed)
        result = break_cycle(current, report.cycles[0])
        if not result.success:
            raise CycleError(result.message, report.cycles)
        current = result.tasks
        removed.append(result.removed_edge)

    report = detect_cycles(current)
    if report.has_cycles:
        raise CycleError(f"Cycles remain after {max_attempts} repair attempts", report.cycles)
    return RepairResult(current, removed)


# ── Topological order / critical path ────────────────────────────────


def topological_order(tasks: list[Task]) -> list[str]:
    """Kahn's algorithm.  Raises CycleError when not every task can be ordered."""
    index = task_index(tasks)
    succ = _successors(index)
    indegree = {tid: len(_existing_deps(t, index)) for tid, t in index.items()}

    queue = deque(tid for tid in index if indegree[tid] == 0)
    order: list[str] = []
    while queue:
        tid = queue.popleft()
        order.append(tid)
        for nxt in succ[tid]:
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                queue.append(nxt)

    if len(order) < len(index):
        cycles = detect_cycles(tasks).cycles
        shown = format_cycle(cycles[0]) if cycles else "unknown"
        raise CycleError(f"Dependency graph has cycles (e.g. {shown})", cycles)
    return order


@dataclass(frozen=True)
class Schedule:
    order: list[str]
    earliest_start: dict[str, float]
    earliest_finish: dict[str, float]
    latest_start: dict[str, float]
    latest_finish: dict[str, float]
    slack: dict[str, float]
    critical_path: list[str]
    duration: float

    def is_critical(self, task_id: str) -> bool:
        return abs(self.slack.get(task_id, 1.0)) <= EPSILON

    @property
    def critical_tasks(self) -> list[str]:
        return [tid for tid in self.order if self.is_critical(tid)]

    def to_dict(self) -> dict:
        return {
            "order": list(self.order),
            "earliestStart": dict(self.earliest_start),
            "earliestFinish": dict(self.earliest_finish),
            "latestStart": dict(self.latest_start),
            "latestFinish": dict(self.latest_finish),
            "slack": dict(self.slack),
            "criticalPath": list(self.critical_path),
            "duration": self.duration,
        }


def critical_path(tasks: list[Task]) -> Schedule:
    """Critical path method over an acyclic task set.

    ``duration`` assumes unlimited parallel capacity.  Raises CycleError on a
    cyclic graph instead of approximating.
    """
    index = task_index(tasks)
    order = topological_order(tasks)
    succ = _successors(index)

    es: dict[str, float] = {}
    ef: dict[str, float] = {}
    for tid in order:
        task = index[tid]
        es[tid] = max((ef[d] for d in _existing_deps(task, index)), default=0.0)
        ef[tid] = es[tid] + task.estimated_hours

    duration = max(ef.values(), default=0.0)

    ls: dict[str, float] = {}
    lf: dict[str, float] = {}
    for tid in reversed(order):
        # sinks: no outgoing edge
        lf[tid] = min((ls[s] for s in succ[tid]), default=duration)
        ls[tid] = lf[tid] - index[tid].estimated_hours

    slack = {tid: ls[tid] - es[tid] for tid in order}

    def critical(tid: str) -> bool:
        return abs(slack[tid]) <= EPSILON

    chain: list[str] = []
    start = next(
        (tid for tid in order if critical(tid) and not _existing_deps(index[tid], index)),
        None,
    )
    current = start
    while current is not None:
        chain.append(current)
        current = next(
            (
                s for s in succ[current]
                if critical(s) and abs(ef[current] - es[s]) <= EPSILON
            ),
            None,
        )

    return Schedule(
        order=order,
        earliest_start=es,
        earliest_finish=ef,
        latest_start=ls,
        latest_finish=lf,
        slack=slack,
        critical_path=chain,
        duration=duration,
    )


# ── Levels / parallelism ─────────────────────────────────────────────


def compute_levels(tasks: list[Task]) -> dict[str, int]:
    """Longest dependency-chain depth of every task (roots are level 0)."""
    index = task_index(tasks)
    levels: dict[str, int] = {}
    for tid in topological_order(tasks):
        deps = _existing_deps(index[tid], index)
        levels[tid] = 1 + max(levels[d] for d in deps) if deps else 0
    return levels


def assign_levels(tasks: list[Task]) -> list[Task]:
    """Return copies of *tasks* with ``level`` recomputed."""
    levels = compute_levels(tasks)
    return [t.copy(level=levels[t.id]) for t in tasks]


@dataclass(frozen=True)
class LevelGroup:
    level: int
    task_ids: list[str]
    sequential_hours: float
    parallel_hours: float
    team_required: int
    executable: bool
    understaffed: bool
    parallelizable: bool

    @property
    def size(self) -> int:
        return len(self.task_ids)

    @property
    def hours_saved(self) -> float:
        return max(0.0, self.sequential_hours - self.parallel_hours)

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "taskIds": list(self.task_ids),
            "taskCount": self.size,
            "sequentialHours": self.sequential_hours,
            "parallelHours": self.parallel_hours,
            "hoursSaved": self.hours_saved,
            "teamRequired": self.team_required,
            "executable": self.executable,
            "understaffed": self.understaffed,
            "parallelizable": self.parallelizable,
        }


@dataclass(frozen=True)
class ParallelPlan:
    levels: list[LevelGroup]
    team_size: int
    sequential_hours: float
    parallel_hours: float
    parallelization_score: float

    @property
    def hours_saved(self) -> float:
        return self.sequential_hours - self.parallel_hours

    @property
    def max_parallel_tasks(self) -> int:
        return max((g.size for g in self.levels), default=0)

    @property
    def understaffed_levels(self) -> list[LevelGroup]:
        return [g for g in self.levels if g.understaffed]

    def to_dict(self) -> dict:
        return {
            "levels": [g.to_dict() for g in self.levels],
            "teamSize": self.team_size,
            "parallelizationScore": self.parallelization_score,
            "maxParallelTasks": self.max_parallel_tasks,
            "estimate": {
                "sequentialHours": self.sequential_hours,
                "parallelHours": self.parallel_hours,
                "hoursSaved": self.hours_saved,
            },
        }


def parallel_levels(tasks: list[Task], team_size: int) -> ParallelPlan:
    """Group tasks into waves of mutually independent work."""
    if team_size < 1:
        raise InvalidConstraintsError(f"team_size must be positive (got {team_size})")

    index = task_index(tasks)
    levels = compute_levels(tasks)

    grouped: dict[int, list[str]] = {}
    for tid in index:
        grouped.setdefault(levels[tid], []).append(tid)

    groups: list[LevelGroup] = []
    for level in sorted(grouped):
        ids = grouped[level]
        hours = [index[tid].estimated_hours for tid in ids]
        members = set(ids)
        independent = not any(
            d in members for tid in ids for d in index[tid].dependencies
        )
        team_required = min(len(ids), team_size)
        groups.append(LevelGroup(
            level=level,
            task_ids=ids,
            sequential_hours=sum(hours),
            parallel_hours=max(hours),
            team_required=team_required,
            executable=team_required <= team_size,
            understaffed=len(ids) > team_size,
            parallelizable=independent,
        ))

    sequential = sum(g.sequential_hours for g in groups)
    parallel = sum(g.parallel_hours for g in groups)
    score = (sequential - parallel) / sequential if sequential > 0 else 0.0

    return ParallelPlan(
        levels=groups,
        team_size=team_size,
        sequential_hours=sequential,
        parallel_hours=parallel,
        parallelization_score=min(1.0, max(0.0, score)),
    )


# ── Implicit dependencies ────────────────────────────────────────────


@dataclass(frozen=True)
class DependencyRule:
    """``dependent`` tasks must wait for ``prerequisite`` tasks.

    ``kind="category"`` matches the terms against a task's category,
    ``kind="keyword"`` against its title (case-insensitive substring).
    """

    kind: str
    dependent: tuple[str, ...]
    prerequisite: tuple[str, ...]
    reason: str = ""

    def __post_init__(self) -> None:
        if self.kind not in ("category", "keyword"):
            raise ValueError(f"Unknown rule kind: {self.kind!r}")

    def _matches(self, task: Task, terms: tuple[str, ...]) -> bool:
        if self.kind == "category":
            category = task.category.lower()
            return any(term.lower() == category for term in terms)
        title = task.title.lower()
        return any(term.lower() in title for term in terms)

    def matches_dependent(self, task: Task) -> bool:
        return self._matches(task, self.dependent)

    def matches_prerequisite(self, task: Task) -> bool:
        return self._matches(task, self.prerequisite)


@dataclass(frozen=True)
class AddedDependency:
    task_id: str
    depends_on: str
    reason: str
    kind: str

    def to_dict(self) -> dict:
        return {
            "taskId": self.task_id,
            "dependsOn": self.depends_on,
            "reason": self.reason,
            "pattern": self.kind,
        }


@dataclass(frozen=True)
class ImplicitDependencies:
    tasks: list[Task]
    added: list[AddedDependency] = field(default_factory=list)
    conflict_detected: bool = False
    cycles: list[list[str]] = field(default_factory=list)


def _reaches(index: dict[str, Task], start: str, target: str) -> bool:
    stack = [start]
    seen = {start}
    while stack:
        tid = stack.pop()
        if tid == target:
            return True
        for dep in _existing_deps(index[tid], index):
            if dep not in seen:
                seen.add(dep)
                stack.append(dep)
    return False


def add_implicit_dependencies(
    tasks: list[Task],
    rules: list[DependencyRule] | tuple[DependencyRule, ...],
) -> ImplicitDependencies:
    """Insert edges implied by *rules* as one all-or-nothing batch.

    If any inferred edge closes a cycle the batch is dropped and the original
    list is returned with ``conflict_detected`` set.  Cycles that already
    existed before inference do not count as conflicts.
    """
    index = task_index(tasks)
    pending: dict[str, list[str]] = {}
    added: list[AddedDependency] = []

    for rule in rules:
        dependents = [t for t in index.values() if rule.matches_dependent(t)]
        prerequisites = [t for t in index.values() if rule.matches_prerequisite(t)]
        for dep_task in dependents:
            for pre_task in prerequisites:
                if pre_task.id == dep_task.id:
                    continue
                new_deps = pending.setdefault(dep_task.id, [])
                if pre_task.id in dep_task.dependencies or pre_task.id in new_deps:
                    continue
                new_deps.append(pre_task.id)
                added.append(AddedDependency(dep_task.id, pre_task.id, rule.reason, rule.kind))

    if not added:
        return ImplicitDependencies(list(tasks))

    augmented: list[Task] = []
    for task in tasks:
        extra = pending.get(task.id, []) if task is index[task.id] else []
        augmented.append(task.copy(dependencies=list(task.dependencies) + extra))

    aug_index = task_index(augmented)
    conflicting = [a for a in added if _reaches(aug_index, a.depends_on, a.task_id)]
    if conflicting:
        cycles = detect_cycles(augmented).cycles
        first = conflicting[0]
        log.debug(
            f"Discarding {len(added)} inferred dependencies: "
            f"{first.task_id} -> {first.depends_on} closes a cycle"
        )
        return ImplicitDependencies(list(tasks), [], True, cycles)

    log.debug(f"Added {len(added)} implicit dependencies")
    return ImplicitDependencies(augmented, added)
