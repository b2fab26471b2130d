"""Application-level error types."""

from __future__ import annotations


class BuildOrchError(Exception):
    """Base error for the build orchestrator."""


class ConfigError(BuildOrchError):
    """Raised when build file loading/validation fails."""


class MissingFieldError(ConfigError):
    """Raised when a required project field is absent."""

    def __init__(self, field: str) -> None:
        super().__init__(f"missing required field: {field}")
        self.field = field


class GraphError(BuildOrchError):
    """Raised when the task graph is malformed."""


class DuplicateTaskError(GraphError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"duplicate task id: {task_id}")
        self.task_id = task_id


class UnknownTaskError(GraphError):
    def __init__(self, task_id: str, referenced_by: str | None = None) -> None:
        if referenced_by is None:
            message = f"unknown task: {task_id}"
        else:
            message = f"task '{referenced_by}' depends on unknown task: {task_id}"
        super().__init__(message)
        self.task_id = task_id
        self.referenced_by = referenced_by


class CyclicDependencyError(GraphError):
    def __init__(self, cycle: list[str]) -> None:
        super().__init__("cyclic dependency: " + " -> ".join([*cycle, cycle[0]]))
        self.cycle = cycle


class ExecutionError(BuildOrchError):
    """A task action failed; attributed to one task id."""

    def __init__(self, task_id: str, cause: BaseException | str) -> None:
        super().__init__(f"task '{task_id}' failed: {cause}")
        self.task_id = task_id
        self.cause = cause


class ToolchainError(ExecutionError):
    """External toolchain exited unsuccessfully."""

    def __init__(self, task_id: str, message: str, diagnostics: list[str] | None = None) -> None:
        super().__init__(task_id, message)
        self.diagnostics = diagnostics or []


class RunFailedError(BuildOrchError):
    """Aggregate failure listing every failed or skipped task of a run."""

    def __init__(self, problems: dict[str, str]) -> None:
        lines = [f"{task_id}: {reason}" for task_id, reason in problems.items()]
        super().__init__("run failed:\n" + "\n".join(lines))
        self.problems = problems


class PackagingError(BuildOrchError):
    """Raised when an artifact cannot be packaged."""


class EmptyFileSetError(PackagingError):
    def __init__(self, classifier: str, roots: list[str]) -> None:
        super().__init__(f"no files found for classifier '{classifier}' under {roots}")
        self.classifier = classifier
        self.roots = roots


class PublicationError(BuildOrchError):
    """Raised when publications cannot be generated or uploaded."""


class MissingCoordinateError(PublicationError):
    def __init__(self, field: str) -> None:
        super().__init__(f"publication coordinate field is empty: {field}")
        self.field = field


class DuplicateCoordinateError(PublicationError):
    def __init__(self, coordinate: str) -> None:
        super().__init__(f"duplicate publication coordinate: {coordinate}")
        self.coordinate = coordinate


class UploadError(PublicationError):
    """Raised by an upload collaborator when a publication is rejected."""
