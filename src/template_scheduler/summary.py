from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .template_models import Task, WorkBreakdownTemplate


@dataclass(frozen=True)
class TemplateMetrics:
    """Naive totals over the tasks selected for a template application."""

    total_days: int
    total_cost: float
    task_count: int


def calculate_total_cost(template: WorkBreakdownTemplate) -> float:
    """Sum of all package and task cost estimates; missing estimates count as zero."""

    total = 0.0
    for phase in template.phases:
        for package in phase.packages:
            total += package.estimated_cost or 0
            for task in package.tasks:
                total += task.estimated_cost or 0
    return total


def calculate_template_metrics(
    template: WorkBreakdownTemplate,
    excluded_task_ids: Iterable[str] = (),
) -> TemplateMetrics:
    """
    Totals for previewing a template with some tasks switched off.

    Durations are summed as if every task ran back to back, without
    consulting dependencies; only task costs are counted.
    """

    excluded = set(excluded_task_ids)
    total_days = 0
    total_cost = 0.0
    task_count = 0
    for _, _, task in template.iter_tasks():
        if task.id in excluded:
            continue
        total_days += task.estimated_duration_days
        total_cost += task.estimated_cost or 0
        task_count += 1
    return TemplateMetrics(total_days=total_days, total_cost=total_cost, task_count=task_count)


def get_optional_tasks(template: WorkBreakdownTemplate) -> list[Task]:
    return [task for _, _, task in template.iter_tasks() if task.is_optional]


def get_task_by_id(template: WorkBreakdownTemplate, task_id: str) -> Task | None:
    for _, _, task in template.iter_tasks():
        if task.id == task_id:
            return task
    return None


def get_affected_by_exclusion(template: WorkBreakdownTemplate, task_id: str) -> list[str]:
    """Ids of tasks that directly follow `task_id` and lose a predecessor if it is excluded."""
    return [dep.successor_task_id for dep in template.dependencies if dep.predecessor_task_id == task_id]


def format_duration(days: int) -> str:
    """
    Format a day count as German text with a week breakdown.

    Examples: 0 -> '0 Tage', 1 -> '1 Tag', 7 -> '1 Woche', 8 -> '1 Wo. 1 Tag',
    16 -> '2 Wo. 2 Tage'.
    """

    if days == 1:
        return "1 Tag"
    if days < 7:
        return f"{days} Tage"

    weeks, remaining = divmod(days, 7)
    if remaining == 0:
        return "1 Woche" if weeks == 1 else f"{weeks} Wochen"

    week_part = "1 Wo." if weeks == 1 else f"{weeks} Wo."
    day_part = "1 Tag" if remaining == 1 else f"{remaining} Tage"
    return f"{week_part} {day_part}"
