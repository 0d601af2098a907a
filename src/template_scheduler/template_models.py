from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Iterator, Literal


RowLevel = Literal["phase", "package", "task"]
"""Allowed render row levels: phase heading, work package bracket, task bar."""


class DependencyType(str, Enum):
    """Precedence relation between a predecessor and a successor task."""

    FINISH_TO_START = "FS"
    START_TO_START = "SS"
    FINISH_TO_FINISH = "FF"
    START_TO_FINISH = "SF"

    @classmethod
    def coerce(cls, value: DependencyType | str) -> DependencyType | None:
        """Return the matching member, or None when the value is not a known type."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass
class Dependency:
    """Directed precedence edge between two tasks, referenced by id."""

    predecessor_task_id: str
    successor_task_id: str
    dependency_type: DependencyType | str = DependencyType.FINISH_TO_START
    lag_days: int = 0
    id: str | None = None


@dataclass
class Task:
    """Lowest-level WBS node and the only one carrying a duration estimate."""

    id: str
    name: str
    wbs_code: str
    estimated_duration_days: int
    estimated_cost: float | None = None
    is_optional: bool = False
    description: str | None = None


@dataclass
class WorkPackage:
    """Second WBS level; its timing is always derived from its tasks."""

    id: str
    name: str
    wbs_code: str
    tasks: list[Task] = field(default_factory=list)
    estimated_cost: float | None = None
    description: str | None = None


@dataclass
class Phase:
    """Top-level lifecycle phase that groups work packages."""

    id: str
    name: str
    wbs_code: str
    packages: list[WorkPackage] = field(default_factory=list)
    description: str | None = None


@dataclass
class WorkBreakdownTemplate:
    """Root template container with ordered phases and template-wide dependencies."""

    name: str
    phases: list[Phase] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)
    id: str | None = None
    description: str | None = None
    meta: dict[str, Any] | None = None

    def iter_tasks(self) -> Iterator[tuple[Phase, WorkPackage, Task]]:
        """Yield every task with its owning phase and package, in document order."""
        for phase in self.phases:
            for package in phase.packages:
                for task in package.tasks:
                    yield phase, package, task


@dataclass(frozen=True)
class ScheduledTask:
    """Task with computed dates; `end` is exclusive (start + duration days)."""

    id: str
    name: str
    wbs_code: str
    start: date
    end: date
    duration: int
    package_id: str
    phase_id: str
    is_critical: bool = False


@dataclass(frozen=True)
class ScheduledPackage:
    """Work package whose span is the union of its task spans."""

    id: str
    name: str
    wbs_code: str
    start: date
    end: date
    duration: int
    phase_id: str
    tasks: tuple[ScheduledTask, ...] = ()


@dataclass(frozen=True)
class ScheduledPhase:
    """Phase whose span is the union of its package spans."""

    id: str
    name: str
    wbs_code: str
    start: date
    end: date
    duration: int
    packages: tuple[ScheduledPackage, ...] = ()


@dataclass(frozen=True)
class ScheduleResult:
    """Complete forward-pass schedule of a template."""

    phases: tuple[ScheduledPhase, ...]
    tasks: tuple[ScheduledTask, ...]
    total_days: int
    critical_path: tuple[str, ...]
    start_date: date
    end_date: date


@dataclass
class FlatRenderRow:
    """
    Flattened view of a schedule used by renderers.

    Only the fields relevant to drawing are kept: positional order,
    indentation level, row level, phase ownership, and date boundaries.
    """

    order: int
    indent: int
    level: RowLevel
    node_id: str
    wbs_code: str
    name: str
    phase_id: str
    start: date
    end: date
    is_critical: bool = False
    depends_on: list[str] = field(default_factory=list)
