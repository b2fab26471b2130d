from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from buildorch.util.errors import ExecutionError, RunFailedError

RunStatus = Literal["RUNNING", "SUCCEEDED", "FAILED", "CANCELLED"]
TaskStatus = Literal["PENDING", "RUNNING", "SUCCEEDED", "FAILED", "SKIPPED"]

SKIP_DEPENDENCY_FAILED = "dependency_failed"
SKIP_CANCELLED = "cancelled"


@dataclass(slots=True)
class TaskState:
    status: TaskStatus
    depends_on: list[str]
    started_at: str | None = None
    ended_at: str | None = None
    duration_sec: float | None = None
    skip_reason: str | None = None
    error: ExecutionError | None = None

    @property
    def cause(self) -> str | None:
        if self.error is not None:
            return str(self.error.cause)
        return self.skip_reason

    @property
    def error_type(self) -> str | None:
        if self.error is None:
            return None
        if isinstance(self.error.cause, BaseException):
            return type(self.error.cause).__name__
        return type(self.error).__name__

    def to_dict(self) -> dict[str, object]:
        return {
            "status": self.status,
            "depends_on": self.depends_on,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "duration_sec": self.duration_sec,
            "skip_reason": self.skip_reason,
            "error": None if self.error is None else str(self.error.cause),
            "error_type": self.error_type,
        }


@dataclass(slots=True)
class RunState:
    created_at: str
    updated_at: str
    status: RunStatus
    max_parallel: int
    tasks: dict[str, TaskState] = field(default_factory=dict)

    def problems(self) -> dict[str, str]:
        """Failed and skipped task ids mapped to their cause."""
        return {
            task_id: f"{task.status} ({task.cause or 'unknown'})"
            for task_id, task in self.tasks.items()
            if task.status in {"FAILED", "SKIPPED"}
        }

    def raise_for_status(self) -> None:
        problems = self.problems()
        if problems:
            raise RunFailedError(problems)

    def to_dict(self) -> dict[str, object]:
        return {
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "status": self.status,
            "max_parallel": self.max_parallel,
            "tasks": {task_id: task.to_dict() for task_id, task in self.tasks.items()},
        }
