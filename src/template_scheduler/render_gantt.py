from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Iterable

import matplotlib

matplotlib.use("Agg")  # ensure headless, deterministic output
import matplotlib.dates as mdates
import matplotlib.pyplot as plt
from matplotlib.patches import FancyArrowPatch, Polygon

from .template_models import FlatRenderRow

TIMELINE_PAD_DAYS = 2  # add breathing room before first and after last date
ROW_HEIGHT = 0.6
BRACKET_LW = 2.5
INDENT_STEP = 0.04  # label offset per indent level, in label-axis coords
TITLE_FONT = 14
LABEL_FONT = 10
TICK_FONT = 9
TASK_COLOR = "#7fbf7f"
CRITICAL_COLOR = "#d9534f"
PHASE_COLOR = "#3b6fb6"
PACKAGE_COLOR = "#9b7fc9"


def render_gantt(
    rows: list[FlatRenderRow],
    out_path: str,
    title: str,
    min_date: dt.date | None = None,
    max_date: dt.date | None = None,
) -> None:
    """
    Render a static SVG Gantt chart of a schedule to `out_path`.

    - Expects rows produced by `to_render_rows` (dates already computed).
    - Phases and packages draw as brackets, tasks as bars; critical tasks
      are highlighted and zero-length tasks draw as lozenges.
    - Predecessor connectors run from the predecessor bar end to the task bar start.
    """

    if not rows:
        raise ValueError("rows must not be empty")

    min_date, max_date = _resolve_date_window(rows, min_date, max_date)
    span_days = max((max_date - min_date).days, 1)

    fig_height = max(3.0, ROW_HEIGHT * len(rows) + 2.0)
    fig_width = max(12.0, min(24.0, span_days / 7.0 * 2.0 + 6.0))
    fig = plt.figure(figsize=(fig_width, fig_height))
    gs = fig.add_gridspec(1, 2, width_ratios=[1.2, 4.0], wspace=0.05, left=0.04, right=0.98, top=0.85, bottom=0.1)
    label_ax = fig.add_subplot(gs[0, 0])
    ax = fig.add_subplot(gs[0, 1], sharey=label_ax)

    ax.set_ylim(-1, len(rows))
    ax.invert_yaxis()
    ax.set_xlim(
        mdates.date2num(min_date - dt.timedelta(days=TIMELINE_PAD_DAYS)),
        mdates.date2num(max_date + dt.timedelta(days=TIMELINE_PAD_DAYS)),
    )
    ax.xaxis_date()
    ax.xaxis.tick_top()
    major_locator, major_formatter = _major_tick_strategy(span_days)
    ax.xaxis.set_major_locator(major_locator)
    ax.xaxis.set_major_formatter(major_formatter)
    ax.grid(True, axis="x", which="major", linestyle="--", alpha=0.4)
    ax.tick_params(axis="x", labelrotation=30, labelsize=TICK_FONT, pad=4)
    ax.set_yticks([])

    label_ax.set_xlim(0, 1)
    label_ax.axis("off")

    fig.suptitle(title, x=0.5, fontsize=TITLE_FONT, y=0.985)

    positions: dict[str, tuple[float, float, float]] = {}  # id -> (x_start, x_end, y)

    for idx, row in enumerate(rows):
        y = idx
        label_ax.text(
            0.02 + INDENT_STEP * row.indent,
            y,
            f"{row.wbs_code}  {row.name}",
            ha="left",
            va="center",
            fontsize=LABEL_FONT,
            fontweight="bold" if row.level == "phase" else "normal",
            transform=label_ax.transData,
        )

        x_start = mdates.date2num(row.start)
        x_end = mdates.date2num(row.end)

        if row.level == "task" and x_end > x_start:
            ax.barh(
                y,
                width=x_end - x_start,
                left=x_start,
                height=ROW_HEIGHT,
                color=CRITICAL_COLOR if row.is_critical else TASK_COLOR,
                edgecolor="black",
                linewidth=0.5,
            )
            positions[row.node_id] = (x_start, x_end, y)

        elif row.level == "task":
            half_width = 0.45
            half_height = ROW_HEIGHT / 1.5
            diamond = [
                (x_start - half_width, y),
                (x_start, y - half_height),
                (x_start + half_width, y),
                (x_start, y + half_height),
            ]
            color = CRITICAL_COLOR if row.is_critical else "#666666"
            ax.add_patch(Polygon(diamond, closed=True, facecolor=color, edgecolor="black"))
            positions[row.node_id] = (x_start, x_start, y)

        else:
            cap = ROW_HEIGHT / 2.2
            color = PHASE_COLOR if row.level == "phase" else PACKAGE_COLOR
            ax.plot([x_start, x_end], [y, y], color=color, linewidth=BRACKET_LW, zorder=2)
            ax.plot([x_start, x_start], [y - cap, y + cap], color=color, linewidth=BRACKET_LW, zorder=2)
            ax.plot([x_end, x_end], [y - cap, y + cap], color=color, linewidth=BRACKET_LW, zorder=2)

    _draw_dependencies(ax, rows, positions)

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, format="svg", bbox_inches="tight")
    plt.close(fig)


def _resolve_date_window(
    rows: Iterable[FlatRenderRow], min_date: dt.date | None, max_date: dt.date | None
) -> tuple[dt.date, dt.date]:
    starts = [row.start for row in rows]
    ends = [row.end for row in rows]
    return min_date or min(starts), max_date or max(ends)


def _major_tick_strategy(span_days: int) -> tuple[mdates.DateLocator, mdates.DateFormatter]:
    """Choose a major tick locator/formatter to avoid overlapping labels."""
    if span_days > 180:
        return mdates.MonthLocator(interval=1), mdates.DateFormatter("%m.%Y")
    if span_days > 90:
        return mdates.WeekdayLocator(byweekday=mdates.MO, interval=2), mdates.DateFormatter("%d.%m.")
    if span_days > 30:
        return mdates.WeekdayLocator(byweekday=mdates.MO, interval=1), mdates.DateFormatter("%d.%m.")
    return mdates.DayLocator(interval=2), mdates.DateFormatter("%d.%m.")


def _draw_dependencies(
    ax: plt.Axes,
    rows: list[FlatRenderRow],
    positions: dict[str, tuple[float, float, float]],
) -> None:
    for row in rows:
        target = positions.get(row.node_id)
        if target is None:
            continue
        for dep_id in row.depends_on:
            source = positions.get(dep_id)
            if source is None:
                continue
            _, source_end, source_y = source
            target_start, _, target_y = target
            arrow = FancyArrowPatch(
                (source_end, source_y),
                (target_start, target_y),
                connectionstyle="angle,angleA=0,angleB=90,rad=0",
                arrowstyle="-|>",
                mutation_scale=8.0,
                lw=0.9,
                color="#3a3a3a",
                shrinkA=0.5,
                shrinkB=0.5,
            )
            ax.add_patch(arrow)
