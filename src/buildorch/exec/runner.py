from __future__ import annotations

import asyncio
import heapq
import inspect
from datetime import datetime

from buildorch.dag.graph import ExecutionPlan, Task
from buildorch.exec.cancel import CancelSignal
from buildorch.exec.locks import PathLockTable
from buildorch.state.model import (
    SKIP_CANCELLED,
    SKIP_DEPENDENCY_FAILED,
    RunState,
    TaskState,
)
from buildorch.util.errors import ExecutionError
from buildorch.util.log import get_logger
from buildorch.util.time import duration_sec, now, now_iso

logger = get_logger(__name__)


async def run_action(task: Task) -> None:
    """Run a task action once; sync actions go to a worker thread."""
    if inspect.iscoroutinefunction(task.action):
        await task.action()
        return
    result = await asyncio.to_thread(task.action)
    if inspect.isawaitable(result):
        await result


async def _execute(task: Task, locks: PathLockTable | None) -> None:
    if locks is None or not task.outputs:
        await run_action(task)
        return
    async with locks.hold(task.outputs):
        await run_action(task)


def _as_execution_error(task_id: str, exc: BaseException) -> ExecutionError:
    if isinstance(exc, ExecutionError) and exc.task_id == task_id:
        return exc
    return ExecutionError(task_id, exc)


def _skip(task_state: TaskState, reason: str) -> None:
    task_state.status = "SKIPPED"
    task_state.skip_reason = reason
    task_state.ended_at = now_iso()


def _finalize_run_status(state: RunState) -> None:
    tasks = list(state.tasks.values())
    if any(task.skip_reason == SKIP_CANCELLED for task in tasks):
        state.status = "CANCELLED"
    elif any(task.status in {"FAILED", "SKIPPED"} for task in tasks):
        state.status = "FAILED"
    else:
        state.status = "SUCCEEDED"
    state.updated_at = now_iso()


def _initial_state(plan: ExecutionPlan, *, max_parallel: int) -> RunState:
    ts = now_iso()
    tasks = {
        task_id: TaskState(status="PENDING", depends_on=list(plan.task(task_id).depends_on))
        for task_id in plan
    }
    return RunState(
        created_at=ts,
        updated_at=ts,
        status="RUNNING",
        max_parallel=max_parallel,
        tasks=tasks,
    )


async def run_plan(
    plan: ExecutionPlan,
    *,
    max_parallel: int = 1,
    cancel: CancelSignal | None = None,
    locks: PathLockTable | None = None,
) -> RunState:
    """Execute every task of ``plan`` in dependency order.

    Failures stay local: dependents of a failed task are skipped, unrelated
    tasks keep running. Call ``RunState.raise_for_status`` for an aggregate
    error.
    """
    if max_parallel < 1:
        raise ValueError("max_parallel must be >= 1")

    order = list(plan)
    position = {task_id: i for i, task_id in enumerate(order)}
    dependents = plan.dependents()
    state = _initial_state(plan, max_parallel=max_parallel)

    dep_remaining = {task_id: len(plan.task(task_id).depends_on) for task_id in order}
    ready = [position[task_id] for task_id, count in dep_remaining.items() if count == 0]
    heapq.heapify(ready)
    pending = set(order)
    running: dict[str, asyncio.Task[None]] = {}
    started: dict[str, datetime] = {}

    def _settle(task_id: str) -> None:
        pending.discard(task_id)
        for child in dependents.get(task_id, []):
            dep_remaining[child] -= 1
            if dep_remaining[child] == 0:
                heapq.heappush(ready, position[child])

    logger.info("executing %d task(s) with max_parallel=%d", len(order), max_parallel)
    while pending or running:
        if cancel is not None and cancel.requested:
            for task_id in order:
                if task_id in pending and task_id not in running:
                    _skip(state.tasks[task_id], SKIP_CANCELLED)
                    pending.discard(task_id)
                    logger.info("task %s skipped: cancelled", task_id)
            ready.clear()

        while ready and len(running) < max_parallel:
            task_id = order[heapq.heappop(ready)]
            if task_id not in pending:
                continue
            task = plan.task(task_id)
            task_state = state.tasks[task_id]
            if any(state.tasks[dep].status != "SUCCEEDED" for dep in task.depends_on):
                _skip(task_state, SKIP_DEPENDENCY_FAILED)
                logger.info("task %s skipped: dependency did not succeed", task_id)
                _settle(task_id)
                continue
            task_state.status = "RUNNING"
            started[task_id] = now()
            task_state.started_at = started[task_id].isoformat(timespec="seconds")
            logger.info("task %s started", task_id)
            running[task_id] = asyncio.create_task(_execute(task, locks), name=task_id)

        if not running:
            if pending:
                for task_id in order:
                    if task_id in pending:
                        _skip(state.tasks[task_id], "unresolvable_dependencies")
                pending.clear()
            break

        done, _ = await asyncio.wait(running.values(), return_when=asyncio.FIRST_COMPLETED)
        for task_id in [task_id for task_id, fut in running.items() if fut in done]:
            fut = running.pop(task_id)
            task_state = state.tasks[task_id]
            ended = now()
            task_state.ended_at = ended.isoformat(timespec="seconds")
            task_state.duration_sec = duration_sec(started[task_id], ended)
            if fut.cancelled():
                task_state.status = "FAILED"
                task_state.error = ExecutionError(task_id, "cancelled")
                logger.warning("task %s failed: action was cancelled", task_id)
                _settle(task_id)
                continue
            exc = fut.exception()
            if exc is None:
                task_state.status = "SUCCEEDED"
                logger.info("task %s succeeded in %.3fs", task_id, task_state.duration_sec)
            else:
                task_state.status = "FAILED"
                task_state.error = _as_execution_error(task_id, exc)
                logger.warning("task %s failed: %s", task_id, exc)
                logger.debug("task %s traceback", task_id, exc_info=exc)
            _settle(task_id)
        state.updated_at = now_iso()

    _finalize_run_status(state)
    logger.info("run finished: %s", state.status)
    return state
