import logging
import textwrap
from pathlib import Path

import pytest
import yaml

from template_scheduler.parse_template import TemplateValidationError, load_template, parse_template
from template_scheduler.template_models import DependencyType

SAMPLE = Path(__file__).resolve().parents[1] / "templates" / "bad_sanierung.yaml"


def _document(**overrides):
    doc = {
        "template": {"name": "Maler"},
        "phases": [
            {
                "id": "p1",
                "name": "Vorbereitung",
                "wbs_code": "1",
                "packages": [
                    {
                        "id": "k1",
                        "name": "Abdecken",
                        "wbs_code": "1.1",
                        "estimated_cost": 120,
                        "tasks": [
                            {"id": "t1", "name": "Boden abdecken", "wbs_code": "1.1.1", "estimated_duration_days": 1},
                            {
                                "id": "t2",
                                "name": "Waende streichen",
                                "wbs_code": "1.1.2",
                                "estimated_duration_days": 3,
                                "estimated_cost": 900.5,
                            },
                        ],
                    }
                ],
            }
        ],
        "dependencies": [{"predecessor_task_id": "t1", "successor_task_id": "t2"}],
    }
    doc.update(overrides)
    return doc


def _task_doc(doc):
    return doc["phases"][0]["packages"][0]["tasks"][0]


def test_parse_builds_hierarchy_with_defaults():
    template = parse_template(_document())

    assert template.name == "Maler"
    package = template.phases[0].packages[0]
    assert package.estimated_cost == 120.0
    assert [task.id for task in package.tasks] == ["t1", "t2"]
    assert package.tasks[0].estimated_cost is None
    assert package.tasks[0].is_optional is False
    dep = template.dependencies[0]
    assert dep.dependency_type is DependencyType.FINISH_TO_START
    assert dep.lag_days == 0


def test_integer_wbs_code_is_read_as_string():
    doc = _document()
    doc["phases"][0]["wbs_code"] = 1

    template = parse_template(doc)

    assert template.phases[0].wbs_code == "1"


def test_unquoted_dotted_wbs_code_is_rejected():
    doc = yaml.safe_load(
        textwrap.dedent(
            """
        template: {name: Maler}
        phases:
          - id: p1
            name: Vorbereitung
            wbs_code: 1
            packages:
              - {id: k1, name: Abdecken, wbs_code: 1.1}
              - {id: k10, name: Reinigen, wbs_code: 1.10}
        """
        )
    )

    with pytest.raises(TemplateValidationError, match=r"packages\[0\]\.wbs_code: got number 1\.1"):
        parse_template(doc)


def test_quoted_dotted_wbs_codes_keep_trailing_zeros():
    doc = yaml.safe_load(
        textwrap.dedent(
            """
        template: {name: Maler}
        phases:
          - id: p1
            name: Vorbereitung
            wbs_code: "1"
            packages:
              - {id: k1, name: Abdecken, wbs_code: "1.1"}
              - {id: k10, name: Reinigen, wbs_code: "1.10"}
        """
        )
    )

    template = parse_template(doc)

    assert [package.wbs_code for package in template.phases[0].packages] == ["1.1", "1.10"]


def test_missing_collections_are_empty():
    template = parse_template({"template": {"name": "Leer"}})

    assert template.phases == []
    assert template.dependencies == []


def test_unknown_field_is_rejected_with_path():
    doc = _document()
    _task_doc(doc)["colour"] = "red"

    with pytest.raises(TemplateValidationError, match=r"phases\[0\]\.packages\[0\]\.tasks\[0\]: unexpected fields"):
        parse_template(doc)


def test_negative_duration_is_rejected():
    doc = _document()
    _task_doc(doc)["estimated_duration_days"] = -2

    with pytest.raises(TemplateValidationError, match="must not be negative"):
        parse_template(doc)


def test_non_integer_duration_is_rejected():
    doc = _document()
    _task_doc(doc)["estimated_duration_days"] = "3"

    with pytest.raises(TemplateValidationError, match="expected integer"):
        parse_template(doc)


def test_duplicate_ids_are_rejected():
    doc = _document()
    _task_doc(doc)["id"] = "k1"

    with pytest.raises(TemplateValidationError, match="duplicate id 'k1'"):
        parse_template(doc)


def test_unknown_dependency_type_is_rejected():
    doc = _document(dependencies=[{"predecessor_task_id": "t1", "successor_task_id": "t2", "dependency_type": "XY"}])

    with pytest.raises(TemplateValidationError, match="dependency_type"):
        parse_template(doc)


def test_self_dependency_is_rejected():
    doc = _document(dependencies=[{"predecessor_task_id": "t1", "successor_task_id": "t1"}])

    with pytest.raises(TemplateValidationError, match="cannot depend on itself"):
        parse_template(doc)


def test_dangling_dependency_is_kept_and_logged(caplog):
    doc = _document(dependencies=[{"predecessor_task_id": "gone", "successor_task_id": "t2", "lag_days": -1}])

    with caplog.at_level(logging.WARNING, logger="template_scheduler.parse_template"):
        template = parse_template(doc)

    assert template.dependencies[0].predecessor_task_id == "gone"
    assert template.dependencies[0].lag_days == -1
    assert "unknown task 'gone'" in caplog.text


def test_top_level_must_be_mapping():
    with pytest.raises(TemplateValidationError, match="expected mapping"):
        parse_template(["not", "a", "template"])


def test_load_template_reads_yaml_file(tmp_path):
    path = tmp_path / "template.yaml"
    path.write_text(yaml.safe_dump(_document()), encoding="utf-8")

    template = load_template(str(path))

    assert [task.id for _, _, task in template.iter_tasks()] == ["t1", "t2"]


def test_sample_template_loads():
    template = load_template(str(SAMPLE))

    assert template.id == "tpl-bad"
    assert len(template.phases) == 3
    assert len(template.dependencies) == 7
    assert {dep.dependency_type for dep in template.dependencies} == {
        DependencyType.FINISH_TO_START,
        DependencyType.START_TO_START,
        DependencyType.FINISH_TO_FINISH,
    }
