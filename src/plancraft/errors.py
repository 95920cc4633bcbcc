"""Error taxonomy shared by the graph engine, estimator, and decomposer."""

from __future__ import annotations


class PlanError(Exception):
    """Base class for every error raised by plancraft."""


class ValidationError(PlanError):
    """Malformed input: bad task fields, duplicate ids, dangling dependencies."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors: list[str] = list(errors) if errors else [message]


class CycleError(PlanError):
    """An ordering operation was asked to run on a cyclic graph."""

    def __init__(self, message: str, cycles: list[list[str]] | None = None) -> None:
        super().__init__(message)
        self.cycles: list[list[str]] = [list(c) for c in cycles or []]


class NoFeaturesFoundError(PlanError):
    """The decomposer matched no known feature in the description."""


class InvalidConstraintsError(PlanError):
    """Team size, hours per day, or deadline are outside their domain."""


def format_cycle(chain: list[str]) -> str:
    return " -> ".join(chain)
