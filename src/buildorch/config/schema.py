from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

TaskKind = Literal["compile", "package", "build_info", "publish"]
TASK_KINDS: set[str] = {"compile", "package", "build_info", "publish"}


@dataclass(frozen=True, slots=True)
class BuildInfoSpec:
    output_module: str
    filename: str = "build_info.py"


@dataclass(frozen=True, slots=True)
class ProjectSpec:
    name: str
    group: str
    version: str
    description: str | None = None
    build_info: BuildInfoSpec | None = None

    @property
    def coordinate(self) -> str:
        return f"{self.group}:{self.name}:{self.version}"


@dataclass(slots=True)
class TaskSpec:
    id: str
    kind: TaskKind
    depends_on: list[str] = field(default_factory=list)
    cmd: list[str] = field(default_factory=list)
    cwd: str | None = None
    env: dict[str, str] | None = None
    timeout_sec: float | None = None
    classifier: str | None = None
    roots: list[str] = field(default_factory=list)
    extension: str = "zip"
    outputs: list[str] = field(default_factory=list)


@dataclass(slots=True)
class PublicationSpec:
    name: str
    classifiers: list[str]
    artifact_id: str | None = None


@dataclass(slots=True)
class BuildSpec:
    project: ProjectSpec
    tasks: list[TaskSpec]
    output_dir: str = "build"
    checksums: list[str] = field(default_factory=lambda: ["sha256"])
    publications: list[PublicationSpec] = field(default_factory=list)
