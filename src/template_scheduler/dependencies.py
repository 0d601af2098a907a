from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence


class DependencyValidationError(Exception):
    """Raised when a new dependency edge is not acceptable for a template."""


class CyclicDependencyError(DependencyValidationError):
    """Raised when a new dependency edge would close a precedence cycle."""

    def __init__(self, message: str, cycle: Cycle) -> None:
        super().__init__(message)
        self.cycle = cycle


class Edge(Protocol):
    predecessor_task_id: str
    successor_task_id: str


@dataclass(frozen=True)
class Cycle:
    """Represents a detected cycle path for error reporting."""

    path: list[str]

    def __str__(self) -> str:
        return " -> ".join(self.path)


@dataclass(frozen=True)
class _PlannedEdge:
    predecessor_task_id: str
    successor_task_id: str


def detect_circular_dependency(dependencies: Iterable[Edge]) -> Cycle | None:
    """
    Return a cycle among the dependency edges, or None when they form a DAG.

    Uses Kahn's algorithm over every task id named by an edge; when nodes
    remain unprocessed, a concrete path is traced from the first of them.
    """

    successors: dict[str, list[str]] = {}
    indegree: dict[str, int] = {}

    for dep in dependencies:
        for node in (dep.predecessor_task_id, dep.successor_task_id):
            successors.setdefault(node, [])
            indegree.setdefault(node, 0)
        successors[dep.predecessor_task_id].append(dep.successor_task_id)
        indegree[dep.successor_task_id] += 1

    queue = deque(node for node, degree in indegree.items() if degree == 0)
    processed = 0
    while queue:
        current = queue.popleft()
        processed += 1
        for child in successors[current]:
            indegree[child] -= 1
            if indegree[child] == 0:
                queue.append(child)

    if processed == len(successors):
        return None

    remaining = [node for node, degree in indegree.items() if degree > 0]
    return _trace_cycle(successors, remaining[0]) or Cycle(remaining)


def _trace_cycle(successors: dict[str, list[str]], start: str) -> Cycle | None:
    state: dict[str, str] = {}
    stack: list[str] = []
    positions: dict[str, int] = {}

    def dfs(node: str) -> Cycle | None:
        state[node] = "visiting"
        positions[node] = len(stack)
        stack.append(node)

        for child in successors.get(node, []):
            child_state = state.get(child)
            if child_state == "visiting":
                return Cycle(stack[positions[child] :] + [child])
            if child_state is None:
                found = dfs(child)
                if found:
                    return found

        stack.pop()
        positions.pop(node, None)
        state[node] = "done"
        return None

    return dfs(start)


def validate_dependency(existing: Sequence[Edge], predecessor_task_id: str, successor_task_id: str) -> None:
    """
    Check that adding predecessor -> successor keeps the dependency graph acyclic.

    Raises DependencyValidationError for a self-dependency and
    CyclicDependencyError when the new edge would close a cycle.
    """

    if predecessor_task_id == successor_task_id:
        raise DependencyValidationError(f"Task '{predecessor_task_id}' cannot depend on itself")

    planned = [*existing, _PlannedEdge(predecessor_task_id, successor_task_id)]
    cycle = detect_circular_dependency(planned)
    if cycle:
        raise CyclicDependencyError(
            f"Dependency '{predecessor_task_id}' -> '{successor_task_id}' would create a cycle: {cycle}",
            cycle,
        )


def get_dependent_tasks(dependencies: Sequence[Edge], task_id: str) -> list[str]:
    """All tasks that depend on `task_id`, directly or indirectly, in breadth-first order."""
    return _reachable(dependencies, task_id, forward=True)


def get_prerequisite_tasks(dependencies: Sequence[Edge], task_id: str) -> list[str]:
    """All tasks `task_id` depends on, directly or indirectly, in breadth-first order."""
    return _reachable(dependencies, task_id, forward=False)


def get_direct_predecessors(dependencies: Iterable[Edge], task_id: str) -> list[str]:
    return [dep.predecessor_task_id for dep in dependencies if dep.successor_task_id == task_id]


def get_direct_successors(dependencies: Iterable[Edge], task_id: str) -> list[str]:
    return [dep.successor_task_id for dep in dependencies if dep.predecessor_task_id == task_id]


def _reachable(dependencies: Sequence[Edge], task_id: str, forward: bool) -> list[str]:
    found: list[str] = []
    seen: set[str] = set()
    queue = deque([task_id])

    while queue:
        current = queue.popleft()
        for dep in dependencies:
            source, target = (
                (dep.predecessor_task_id, dep.successor_task_id)
                if forward
                else (dep.successor_task_id, dep.predecessor_task_id)
            )
            if source == current and target not in seen:
                seen.add(target)
                found.append(target)
                queue.append(target)
    return found
