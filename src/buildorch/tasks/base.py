"""Capability interface shared by every build task variant."""

from __future__ import annotations

import threading
from collections.abc import Awaitable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from buildorch.config.schema import ProjectSpec, PublicationSpec
from buildorch.packaging.packager import Artifact
from buildorch.publish.upload import Uploader
from buildorch.util.errors import PackagingError


@dataclass(slots=True)
class BuildContext:
    """Everything a task may read; the project metadata is never mutated."""

    project: ProjectSpec
    workdir: Path
    output_dir: Path
    checksums: tuple[str, ...] = ()
    publications: tuple[PublicationSpec, ...] = ()
    uploader: Uploader | None = None
    _artifacts: dict[str, Artifact] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def logs_dir(self) -> Path:
        return self.output_dir / "logs"

    @property
    def libs_dir(self) -> Path:
        return self.output_dir / "libs"

    @property
    def generated_dir(self) -> Path:
        return self.output_dir / "generated"

    @property
    def publications_dir(self) -> Path:
        return self.output_dir / "publications"

    def resolve(self, path: str) -> Path:
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self.workdir / candidate

    def register_artifact(self, artifact: Artifact) -> None:
        with self._lock:
            if artifact.classifier in self._artifacts:
                raise PackagingError(f"classifier already packaged: {artifact.classifier}")
            self._artifacts[artifact.classifier] = artifact

    def artifacts(self) -> list[Artifact]:
        with self._lock:
            return list(self._artifacts.values())


class BuildTask(Protocol):
    id: str
    depends_on: list[str]

    def prepare(self, ctx: BuildContext) -> None:
        """Validate against the context before anything runs; no side effects."""

    def outputs(self, ctx: BuildContext) -> list[str]:
        """Paths this task writes, used for path locking."""

    def execute(self, ctx: BuildContext) -> Awaitable[Any] | Any:
        """Perform the work; raising marks the task failed."""

    def describe(self) -> str:
        """One-line human readable summary."""
