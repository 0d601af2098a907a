from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
from pathlib import Path

import yaml

from .parse_template import TemplateValidationError, load_template
from .render_gantt import render_gantt
from .render_rows import to_render_rows
from .scheduling import calculate_schedule
from .summary import calculate_total_cost, format_duration
from .template_models import ScheduleResult, WorkBreakdownTemplate


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="template-scheduler",
        description="Schedule a renovation template and report its critical path",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("template", help="Path to template YAML")
    parser.add_argument(
        "--start-date",
        type=_parse_date,
        default=None,
        help="Project start date (YYYY-MM-DD); defaults to today",
    )
    parser.add_argument("--out", default=None, help="Write an SVG Gantt preview to this path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _format_report(template: WorkBreakdownTemplate, schedule: ScheduleResult) -> str:
    lines = [template.name, ""]
    for phase in schedule.phases:
        lines.append(f"{phase.wbs_code:<10} {phase.name:<40} {phase.start} {phase.end} {format_duration(phase.duration)}")
        for package in phase.packages:
            lines.append(
                f"  {package.wbs_code:<8} {package.name:<40} {package.start} {package.end} "
                f"{format_duration(package.duration)}"
            )
            for task in package.tasks:
                marker = "*" if task.is_critical else " "
                lines.append(
                    f"  {marker} {task.wbs_code:<6} {task.name:<40} {task.start} {task.end} "
                    f"{format_duration(task.duration)}"
                )
    lines.append("")
    lines.append(f"Dauer:        {format_duration(schedule.total_days)}")
    lines.append(f"Start:        {schedule.start_date}")
    lines.append(f"Ende:         {schedule.end_date}")
    lines.append(f"Kosten:       {calculate_total_cost(template):.2f}")
    lines.append(f"Kritisch (*): {len(schedule.critical_path)} Aufgaben")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    template_path = Path(args.template)

    try:
        template = load_template(str(template_path))
    except (yaml.YAMLError, TemplateValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: template file not found: {template_path}", file=sys.stderr)
        return 1
    except Exception as exc:  # Unexpected
        print(f"Unexpected error while loading template: {exc}", file=sys.stderr)
        return 1

    schedule = calculate_schedule(template, args.start_date)
    print(_format_report(template, schedule))

    if args.out:
        rows = to_render_rows(schedule, template.dependencies)
        if not rows:
            print("Error: template has no phases to render", file=sys.stderr)
            return 2
        try:
            render_gantt(rows=rows, out_path=args.out, title=template.name)
        except Exception as exc:
            print(f"Unexpected error while rendering: {exc}", file=sys.stderr)
            return 1

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
