from __future__ import annotations

from buildorch.packaging.packager import Artifact
from buildorch.state.model import RunState


def build_summary(
    state: RunState, *, target: str | None = None, artifacts: list[Artifact] | None = None
) -> dict[str, object]:
    tasks_rows: list[dict[str, object]] = []
    problem_rows: list[dict[str, object]] = []

    for task_id, task in state.tasks.items():
        tasks_rows.append(
            {
                "id": task_id,
                "status": task.status,
                "duration_sec": task.duration_sec,
                "depends_on": task.depends_on,
            }
        )
        if task.status in {"FAILED", "SKIPPED"}:
            diagnostics = getattr(task.error, "diagnostics", []) if task.error else []
            problem_rows.append(
                {
                    "id": task_id,
                    "status": task.status,
                    "skip_reason": task.skip_reason,
                    "cause": None if task.error is None else str(task.error.cause),
                    "diagnostics": list(diagnostics),
                }
            )

    artifact_rows = [
        {
            "classifier": artifact.classifier,
            "path": str(artifact.path),
            "files": len(artifact.files),
        }
        for artifact in artifacts or []
    ]

    return {
        "run": {
            "target": target,
            "created_at": state.created_at,
            "updated_at": state.updated_at,
            "status": state.status,
            "max_parallel": state.max_parallel,
        },
        "tasks": tasks_rows,
        "problems": problem_rows,
        "artifacts": artifact_rows,
    }
