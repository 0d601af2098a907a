from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Iterable, Mapping, Sequence

from .template_models import (
    Dependency,
    DependencyType,
    ScheduledPackage,
    ScheduledPhase,
    ScheduledTask,
    ScheduleResult,
    Task,
    WorkBreakdownTemplate,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DependencyDescription:
    """Human-readable view of one incoming dependency of a task."""

    predecessor: str
    dependency_type: str
    lag_days: int


def calculate_schedule(template: WorkBreakdownTemplate, start_date: date | None = None) -> ScheduleResult:
    """
    Compute a forward-pass schedule for a template and return it.

    - Tasks without predecessors start on `start_date` (today when omitted).
    - Each task starts at the latest date allowed by its FS/SS/FF/SF
      predecessors including lag, never before `start_date`.
    - Package and phase spans are the union of their children's spans.
    - A task is critical when it ends on the project end date.

    Dependencies naming unknown tasks are ignored. Dependency cycles do not
    raise: the cycle is logged and broken where it is first re-entered.
    The template is never mutated.
    """

    if start_date is None:
        start_date = date.today()

    predecessors = _index_predecessors(template.dependencies)
    tasks = _collect_tasks(template, start_date)

    order = _topological_order(list(tasks), predecessors)
    for task_id in order:
        tasks[task_id] = _schedule_task(tasks[task_id], predecessors.get(task_id, []), tasks, start_date)

    project_end = max((task.end for task in tasks.values()), default=start_date)
    for task_id, task in tasks.items():
        if (project_end - task.end).days <= 0:
            tasks[task_id] = replace(task, is_critical=True)

    phases = _roll_up(template, tasks, start_date)
    return ScheduleResult(
        phases=phases,
        tasks=tuple(tasks.values()),
        total_days=(project_end - start_date).days,
        critical_path=tuple(task_id for task_id, task in tasks.items() if task.is_critical),
        start_date=start_date,
        end_date=project_end,
    )


def calculate_total_duration(template: WorkBreakdownTemplate, start_date: date | None = None) -> int:
    """Project duration in days, respecting dependencies."""
    return calculate_schedule(template, start_date).total_days


def get_task_dependencies(
    task_id: str,
    dependencies: Iterable[Dependency],
    tasks: Mapping[str, Task],
) -> list[DependencyDescription]:
    """Describe the direct predecessors of `task_id` as '<wbs_code> <name>' labels."""

    described: list[DependencyDescription] = []
    for dep in dependencies:
        if dep.successor_task_id != task_id:
            continue
        predecessor = tasks.get(dep.predecessor_task_id)
        label = f"{predecessor.wbs_code} {predecessor.name}" if predecessor else dep.predecessor_task_id
        dep_type = dep.dependency_type
        described.append(
            DependencyDescription(
                predecessor=label,
                dependency_type=dep_type.value if isinstance(dep_type, DependencyType) else str(dep_type),
                lag_days=dep.lag_days,
            )
        )
    return described


def _index_predecessors(dependencies: Iterable[Dependency]) -> dict[str, list[Dependency]]:
    index: dict[str, list[Dependency]] = {}
    for dep in dependencies:
        index.setdefault(dep.successor_task_id, []).append(dep)
    return index


def _collect_tasks(template: WorkBreakdownTemplate, start_date: date) -> dict[str, ScheduledTask]:
    tasks: dict[str, ScheduledTask] = {}
    for phase, package, task in template.iter_tasks():
        duration = task.estimated_duration_days
        tasks[task.id] = ScheduledTask(
            id=task.id,
            name=task.name,
            wbs_code=task.wbs_code,
            start=start_date,
            end=start_date + timedelta(days=duration),
            duration=duration,
            package_id=package.id,
            phase_id=phase.id,
        )
    return tasks


def _topological_order(task_ids: Sequence[str], predecessors: Mapping[str, list[Dependency]]) -> list[str]:
    # Depth-first over predecessor edges with an explicit stack; a node is
    # emitted once all of its known predecessors have been emitted.
    known = set(task_ids)
    done: set[str] = set()
    in_progress: set[str] = set()
    order: list[str] = []

    def pending_predecessors(task_id: str) -> Iterable[str]:
        return [dep.predecessor_task_id for dep in predecessors.get(task_id, []) if dep.predecessor_task_id in known]

    for root in task_ids:
        if root in done:
            continue
        in_progress.add(root)
        stack = [(root, iter(pending_predecessors(root)))]
        while stack:
            node, remaining = stack[-1]
            for pred in remaining:
                if pred in done:
                    continue
                if pred in in_progress:
                    logger.warning(
                        "Circular dependency detected involving task %s (via %s); breaking cycle",
                        pred,
                        node,
                        extra={"task_id": pred, "successor_task_id": node},
                    )
                    continue
                in_progress.add(pred)
                stack.append((pred, iter(pending_predecessors(pred))))
                break
            else:
                stack.pop()
                in_progress.discard(node)
                done.add(node)
                order.append(node)

    return order


def _schedule_task(
    task: ScheduledTask,
    deps: list[Dependency],
    tasks: Mapping[str, ScheduledTask],
    start_date: date,
) -> ScheduledTask:
    earliest_start = start_date
    for dep in deps:
        predecessor = tasks.get(dep.predecessor_task_id)
        if predecessor is None:
            continue
        candidate = _dependency_start(dep, predecessor, task.duration)
        if candidate > earliest_start:
            earliest_start = candidate
    return replace(task, start=earliest_start, end=earliest_start + timedelta(days=task.duration))


def _dependency_start(dep: Dependency, predecessor: ScheduledTask, duration: int) -> date:
    """Earliest start of the successor allowed by a single dependency edge."""
    dep_type = DependencyType.coerce(dep.dependency_type)
    if dep_type is DependencyType.START_TO_START:
        return predecessor.start + timedelta(days=dep.lag_days)
    if dep_type is DependencyType.FINISH_TO_FINISH:
        return predecessor.end + timedelta(days=dep.lag_days - duration)
    if dep_type is DependencyType.START_TO_FINISH:
        return predecessor.start + timedelta(days=dep.lag_days - duration)
    if dep_type is None:
        logger.debug(
            "Unknown dependency type %r from %s to %s; treating as FS",
            dep.dependency_type,
            dep.predecessor_task_id,
            dep.successor_task_id,
        )
    return predecessor.end + timedelta(days=dep.lag_days)


def _roll_up(
    template: WorkBreakdownTemplate,
    tasks: Mapping[str, ScheduledTask],
    start_date: date,
) -> tuple[ScheduledPhase, ...]:
    phases: list[ScheduledPhase] = []
    for phase in template.phases:
        packages: list[ScheduledPackage] = []
        for package in phase.packages:
            scheduled = tuple(tasks[task.id] for task in package.tasks if task.id in tasks)
            pkg_start, pkg_end = _span(scheduled, start_date)
            packages.append(
                ScheduledPackage(
                    id=package.id,
                    name=package.name,
                    wbs_code=package.wbs_code,
                    start=pkg_start,
                    end=pkg_end,
                    duration=(pkg_end - pkg_start).days,
                    phase_id=phase.id,
                    tasks=scheduled,
                )
            )

        phase_start, phase_end = _span(packages, start_date)
        phases.append(
            ScheduledPhase(
                id=phase.id,
                name=phase.name,
                wbs_code=phase.wbs_code,
                start=phase_start,
                end=phase_end,
                duration=(phase_end - phase_start).days,
                packages=tuple(packages),
            )
        )
    return tuple(phases)


def _span(children: Sequence[ScheduledTask | ScheduledPackage], start_date: date) -> tuple[date, date]:
    if not children:
        return start_date, start_date
    return min(child.start for child in children), max(child.end for child in children)
