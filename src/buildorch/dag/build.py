"""Build graph structures from task declarations."""

from __future__ import annotations

from collections.abc import Iterable


def build_adjacency(
    edges: Iterable[tuple[str, Iterable[str]]],
) -> tuple[dict[str, list[str]], dict[str, int]]:
    """Return dependents adjacency and in-degree by task id.

    ``edges`` yields ``(task_id, depends_on)`` pairs in declaration order.
    """
    dependents: dict[str, list[str]] = {}
    in_degree: dict[str, int] = {}

    for task_id, depends_on in edges:
        deps = list(depends_on)
        in_degree[task_id] = len(deps)
        dependents.setdefault(task_id, [])
        for dep in deps:
            dependents.setdefault(dep, []).append(task_id)

    return dependents, in_degree
