"""Task graph and execution plan."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Union

from buildorch.dag.build import build_adjacency
from buildorch.dag.validate import assert_acyclic
from buildorch.util.errors import DuplicateTaskError, UnknownTaskError

Action = Callable[[], Union[Awaitable[Any], Any]]


def _noop() -> None:
    return None


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    depends_on: tuple[str, ...]
    action: Action
    outputs: tuple[str, ...] = ()


class ExecutionPlan:
    """Validated, topologically ordered view of a task graph."""

    def __init__(self, tasks: dict[str, Task], order: list[str]) -> None:
        self._tasks = tasks
        self._order = order

    def __iter__(self) -> Iterator[str]:
        yield from self._order

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def task(self, task_id: str) -> Task:
        try:
            return self._tasks[task_id]
        except KeyError:
            raise UnknownTaskError(task_id) from None

    def dependents(self) -> dict[str, list[str]]:
        """Direct dependents of each task, restricted to this plan."""
        dependents, _ = build_adjacency(
            (task_id, self._tasks[task_id].depends_on) for task_id in self._order
        )
        return dependents

    def closure(self, target: str) -> ExecutionPlan:
        """Restrict the plan to ``target`` and its transitive dependencies."""
        if target not in self._tasks:
            raise UnknownTaskError(target)
        keep = {target}
        stack = [target]
        while stack:
            for dep in self._tasks[stack.pop()].depends_on:
                if dep not in keep:
                    keep.add(dep)
                    stack.append(dep)
        order = [task_id for task_id in self._order if task_id in keep]
        return ExecutionPlan({task_id: self._tasks[task_id] for task_id in order}, order)


class TaskGraph:
    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def task_ids(self) -> list[str]:
        return list(self._tasks)

    def add_task(
        self,
        task_id: str,
        dependencies: Iterable[str] = (),
        action: Action | None = None,
        *,
        outputs: Iterable[str] = (),
    ) -> Task:
        if task_id in self._tasks:
            raise DuplicateTaskError(task_id)
        task = Task(
            id=task_id,
            depends_on=tuple(dict.fromkeys(dependencies)),
            action=action if action is not None else _noop,
            outputs=tuple(outputs),
        )
        self._tasks[task_id] = task
        return task

    def build(self, target: str | None = None) -> ExecutionPlan:
        """Validate the whole graph and return its execution plan.

        Raises ``UnknownTaskError`` for dangling dependencies and
        ``CyclicDependencyError`` before anything runs.
        """
        for task in self._tasks.values():
            for dep in task.depends_on:
                if dep not in self._tasks:
                    raise UnknownTaskError(dep, referenced_by=task.id)
        task_ids = list(self._tasks)
        dependents, in_degree = build_adjacency(
            (task.id, task.depends_on) for task in self._tasks.values()
        )
        order = assert_acyclic(task_ids, dependents, in_degree)
        plan = ExecutionPlan(dict(self._tasks), order)
        if target is not None:
            return plan.closure(target)
        return plan
