from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import yaml

from .template_models import Dependency, DependencyType, Phase, Task, WorkBreakdownTemplate, WorkPackage

logger = logging.getLogger(__name__)


class TemplateValidationError(Exception):
    """Raised when a template document is malformed (bad fields, duplicate ids, bad edges)."""


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like phases[0].packages[1]."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


def load_template(path: str) -> WorkBreakdownTemplate:
    """Load a WorkBreakdownTemplate from a YAML file at the given path (no scheduling)."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_template(raw)


def parse_template(data: Any) -> WorkBreakdownTemplate:
    """Build a WorkBreakdownTemplate from an already-loaded YAML/JSON mapping."""

    path = _Path()
    if not isinstance(data, dict):
        raise TemplateValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"template", "phases", "dependencies"}, path)

    header = data.get("template")
    if not isinstance(header, dict):
        raise TemplateValidationError(f"{path}: missing required mapping 'template'")
    header_path = path.child("template")
    _assert_allowed_keys(header, {"id", "name", "description", "meta"}, header_path)
    name = _require_str(header, "name", header_path)
    template_id = _optional_str(header, "id", header_path)
    description = _optional_str(header, "description", header_path)
    meta = header.get("meta")
    if meta is not None and not isinstance(meta, dict):
        raise TemplateValidationError(f"{header_path.child('meta')}: expected mapping for meta")

    phases_raw = _optional_list(data, "phases", path)
    ids: set[str] = set()
    task_ids: set[str] = set()
    phases = [
        _parse_phase(phase_raw, path.child(f"phases[{idx}]"), ids, task_ids)
        for idx, phase_raw in enumerate(phases_raw)
    ]

    deps_raw = _optional_list(data, "dependencies", path)
    dependencies = [
        _parse_dependency(dep_raw, path.child(f"dependencies[{idx}]"), task_ids)
        for idx, dep_raw in enumerate(deps_raw)
    ]

    return WorkBreakdownTemplate(
        name=name,
        phases=phases,
        dependencies=dependencies,
        id=template_id,
        description=description,
        meta=meta,
    )


def _parse_phase(data: Any, path: _Path, ids: set[str], task_ids: set[str]) -> Phase:
    if not isinstance(data, dict):
        raise TemplateValidationError(f"{path}: expected mapping for phase")

    _assert_allowed_keys(data, {"id", "name", "wbs_code", "description", "packages"}, path)
    phase_id = _require_id(data, path, ids)
    packages = [
        _parse_package(package_raw, path.child(f"packages[{idx}]"), ids, task_ids)
        for idx, package_raw in enumerate(_optional_list(data, "packages", path))
    ]
    return Phase(
        id=phase_id,
        name=_require_str(data, "name", path),
        wbs_code=_require_wbs_code(data, path),
        packages=packages,
        description=_optional_str(data, "description", path),
    )


def _parse_package(data: Any, path: _Path, ids: set[str], task_ids: set[str]) -> WorkPackage:
    if not isinstance(data, dict):
        raise TemplateValidationError(f"{path}: expected mapping for work package")

    _assert_allowed_keys(data, {"id", "name", "wbs_code", "description", "estimated_cost", "tasks"}, path)
    package_id = _require_id(data, path, ids)
    tasks: list[Task] = []
    for idx, task_raw in enumerate(_optional_list(data, "tasks", path)):
        task = _parse_task(task_raw, path.child(f"tasks[{idx}]"), ids)
        task_ids.add(task.id)
        tasks.append(task)
    return WorkPackage(
        id=package_id,
        name=_require_str(data, "name", path),
        wbs_code=_require_wbs_code(data, path),
        tasks=tasks,
        estimated_cost=_optional_cost(data, path),
        description=_optional_str(data, "description", path),
    )


def _parse_task(data: Any, path: _Path, ids: set[str]) -> Task:
    if not isinstance(data, dict):
        raise TemplateValidationError(f"{path}: expected mapping for task")

    _assert_allowed_keys(
        data,
        {
            "id",
            "name",
            "wbs_code",
            "description",
            "estimated_duration_days",
            "estimated_cost",
            "is_optional",
        },
        path,
    )
    task_id = _require_id(data, path, ids)

    duration = _require_value(data, "estimated_duration_days", path)
    if not isinstance(duration, int) or isinstance(duration, bool):
        raise TemplateValidationError(f"{path.child('estimated_duration_days')}: expected integer")
    if duration < 0:
        raise TemplateValidationError(f"{path.child('estimated_duration_days')}: must not be negative, got {duration}")

    is_optional = data.get("is_optional", False)
    if not isinstance(is_optional, bool):
        raise TemplateValidationError(f"{path.child('is_optional')}: expected boolean")

    return Task(
        id=task_id,
        name=_require_str(data, "name", path),
        wbs_code=_require_wbs_code(data, path),
        estimated_duration_days=duration,
        estimated_cost=_optional_cost(data, path),
        is_optional=is_optional,
        description=_optional_str(data, "description", path),
    )


def _parse_dependency(data: Any, path: _Path, task_ids: set[str]) -> Dependency:
    if not isinstance(data, dict):
        raise TemplateValidationError(f"{path}: expected mapping for dependency")

    _assert_allowed_keys(
        data,
        {"id", "predecessor_task_id", "successor_task_id", "dependency_type", "lag_days"},
        path,
    )
    predecessor = _require_str(data, "predecessor_task_id", path)
    successor = _require_str(data, "successor_task_id", path)
    if predecessor == successor:
        raise TemplateValidationError(f"{path}: task '{predecessor}' cannot depend on itself")

    raw_type = data.get("dependency_type", DependencyType.FINISH_TO_START.value)
    dep_type = DependencyType.coerce(raw_type) if isinstance(raw_type, str) else None
    if dep_type is None:
        allowed = [member.value for member in DependencyType]
        raise TemplateValidationError(f"{path.child('dependency_type')}: expected one of {allowed}, got {raw_type!r}")

    lag_days = data.get("lag_days", 0)
    if not isinstance(lag_days, int) or isinstance(lag_days, bool):
        raise TemplateValidationError(f"{path.child('lag_days')}: expected integer")

    for task_id in (predecessor, successor):
        if task_id not in task_ids:
            logger.warning("%s: dependency references unknown task '%s'; it will be ignored", path, task_id)

    return Dependency(
        predecessor_task_id=predecessor,
        successor_task_id=successor,
        dependency_type=dep_type,
        lag_days=lag_days,
        id=_optional_str(data, "id", path),
    )


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise TemplateValidationError(f"{path}: unexpected fields {extras}")


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise TemplateValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _optional_str(data: dict[str, Any], key: str, path: _Path) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise TemplateValidationError(f"{path.child(key)}: expected string")
    return value


def _optional_list(data: dict[str, Any], key: str, path: _Path) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise TemplateValidationError(f"{path.child(key)}: expected list")
    return value


def _optional_cost(data: dict[str, Any], path: _Path) -> float | None:
    value = data.get("estimated_cost")
    if value is None:
        return None
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise TemplateValidationError(f"{path.child('estimated_cost')}: expected number")
    if value < 0:
        raise TemplateValidationError(f"{path.child('estimated_cost')}: must not be negative, got {value}")
    return float(value)


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise TemplateValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _require_wbs_code(data: dict[str, Any], path: _Path) -> str:
    # YAML reads unquoted codes like 1 as int and 1.10 as the float 1.1.
    value = _require_value(data, "wbs_code", path)
    if isinstance(value, bool):
        raise TemplateValidationError(f"{path.child('wbs_code')}: expected string")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        raise TemplateValidationError(
            f"{path.child('wbs_code')}: got number {value!r}, quote dotted codes like \"1.10\" as strings"
        )
    return _require_str(data, "wbs_code", path)


def _require_id(data: dict[str, Any], path: _Path, ids: set[str]) -> str:
    value = _require_str(data, "id", path)
    if value in ids:
        raise TemplateValidationError(f"{path.child('id')}: duplicate id '{value}'")
    ids.add(value)
    return value
