import pytest

from template_scheduler.dependencies import (
    CyclicDependencyError,
    DependencyValidationError,
    detect_circular_dependency,
    get_dependent_tasks,
    get_direct_predecessors,
    get_direct_successors,
    get_prerequisite_tasks,
    validate_dependency,
)
from template_scheduler.template_models import Dependency


def _edges(*pairs):
    return [Dependency(pred, succ) for pred, succ in pairs]


def test_acyclic_graph_has_no_cycle():
    assert detect_circular_dependency(_edges(("a", "b"), ("b", "c"), ("a", "c"))) is None
    assert detect_circular_dependency([]) is None


def test_cycle_is_traced_as_closed_path():
    cycle = detect_circular_dependency(_edges(("start", "a"), ("a", "b"), ("b", "c"), ("c", "a")))

    assert cycle is not None
    assert cycle.path[0] == cycle.path[-1]
    assert set(cycle.path) == {"a", "b", "c"}


def test_validate_dependency_accepts_new_edge_in_dag():
    assert validate_dependency(_edges(("a", "b")), "b", "c") is None


def test_validate_dependency_rejects_self_reference():
    with pytest.raises(DependencyValidationError, match="cannot depend on itself"):
        validate_dependency([], "a", "a")


def test_validate_dependency_rejects_cycle():
    with pytest.raises(CyclicDependencyError) as excinfo:
        validate_dependency(_edges(("a", "b"), ("b", "c")), "c", "a")

    cycle = excinfo.value.cycle
    assert set(cycle.path) == {"a", "b", "c"}
    assert str(cycle) == " -> ".join(cycle.path)
    assert str(cycle) in str(excinfo.value)
    assert isinstance(excinfo.value, DependencyValidationError)


def test_transitive_dependents_and_prerequisites():
    edges = _edges(("a", "b"), ("b", "c"), ("a", "d"), ("x", "c"))

    assert get_dependent_tasks(edges, "a") == ["b", "d", "c"]
    assert get_prerequisite_tasks(edges, "c") == ["b", "x", "a"]
    assert get_dependent_tasks(edges, "c") == []


def test_transitive_walk_terminates_on_cycles():
    edges = _edges(("a", "b"), ("b", "a"))

    assert get_dependent_tasks(edges, "a") == ["b", "a"]


def test_direct_neighbours():
    edges = _edges(("a", "c"), ("b", "c"), ("c", "d"))

    assert get_direct_predecessors(edges, "c") == ["a", "b"]
    assert get_direct_successors(edges, "c") == ["d"]
    assert get_direct_successors(edges, "d") == []
