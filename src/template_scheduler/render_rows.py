from __future__ import annotations

from typing import Iterable, List

from .template_models import Dependency, FlatRenderRow, ScheduleResult


def to_render_rows(schedule: ScheduleResult, dependencies: Iterable[Dependency] = ()) -> list[FlatRenderRow]:
    """
    Convert a schedule into a flat list of render rows with indentation.

    Phase headings are emitted first, followed by their packages in input
    order; each package row precedes its task rows. Task rows list the ids of
    their direct predecessors so renderers can draw connectors.
    """

    predecessors: dict[str, list[str]] = {}
    for dep in dependencies:
        predecessors.setdefault(dep.successor_task_id, []).append(dep.predecessor_task_id)

    rows: List[FlatRenderRow] = []
    order = 0

    for phase in schedule.phases:
        rows.append(
            FlatRenderRow(
                order=order,
                indent=0,
                level="phase",
                node_id=phase.id,
                wbs_code=phase.wbs_code,
                name=phase.name,
                phase_id=phase.id,
                start=phase.start,
                end=phase.end,
            )
        )
        order += 1
        for package in phase.packages:
            rows.append(
                FlatRenderRow(
                    order=order,
                    indent=1,
                    level="package",
                    node_id=package.id,
                    wbs_code=package.wbs_code,
                    name=package.name,
                    phase_id=phase.id,
                    start=package.start,
                    end=package.end,
                )
            )
            order += 1
            for task in package.tasks:
                rows.append(
                    FlatRenderRow(
                        order=order,
                        indent=2,
                        level="task",
                        node_id=task.id,
                        wbs_code=task.wbs_code,
                        name=task.name,
                        phase_id=phase.id,
                        start=task.start,
                        end=task.end,
                        is_critical=task.is_critical,
                        depends_on=list(predecessors.get(task.id, [])),
                    )
                )
                order += 1

    return rows
