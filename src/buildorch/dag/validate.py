"""DAG validation helpers."""

from __future__ import annotations

import heapq

from buildorch.util.errors import CyclicDependencyError


def _find_cycle(
    remaining: set[str], dependents: dict[str, list[str]], index: dict[str, int]
) -> list[str]:
    # Every node left over by Kahn's algorithm has a leftover predecessor, so
    # walking predecessors must revisit a node.
    predecessors: dict[str, list[str]] = {task_id: [] for task_id in remaining}
    for src, targets in dependents.items():
        if src not in remaining:
            continue
        for dst in targets:
            if dst in remaining:
                predecessors[dst].append(src)

    current = min(remaining, key=index.__getitem__)
    path: list[str] = []
    position: dict[str, int] = {}
    while current not in position:
        position[current] = len(path)
        path.append(current)
        current = min(predecessors[current], key=index.__getitem__)
    cycle = path[position[current] :]
    cycle.reverse()
    return cycle


def assert_acyclic(
    task_ids: list[str], dependents: dict[str, list[str]], in_degree: dict[str, int]
) -> list[str]:
    """Validate graph has no cycle using Kahn's algorithm.

    Returns the topological order; ready tasks are taken in ``task_ids`` order.
    """
    index = {task_id: i for i, task_id in enumerate(task_ids)}
    degrees = dict(in_degree)
    heap = [index[task_id] for task_id in task_ids if degrees.get(task_id, 0) == 0]
    heapq.heapify(heap)
    order: list[str] = []

    while heap:
        current = task_ids[heapq.heappop(heap)]
        order.append(current)
        for nxt in dependents.get(current, []):
            degrees[nxt] -= 1
            if degrees[nxt] == 0:
                heapq.heappush(heap, index[nxt])

    if len(order) != len(task_ids):
        remaining = set(task_ids) - set(order)
        raise CyclicDependencyError(_find_cycle(remaining, dependents, index))
    return order
