from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from buildorch.config.schema import ProjectSpec, PublicationSpec
from buildorch.packaging.packager import Artifact
from buildorch.util.errors import (
    DuplicateCoordinateError,
    MissingCoordinateError,
    PublicationError,
)
from buildorch.util.log import get_logger
from buildorch.util.path_guard import is_safe_segment

logger = get_logger(__name__)

DEFAULT_PUBLICATION = "main"


@dataclass(frozen=True, slots=True)
class PublicationDescriptor:
    name: str
    group: str
    artifact_id: str
    version: str
    artifacts: tuple[Artifact, ...]

    @property
    def coordinate(self) -> str:
        return f"{self.group}:{self.artifact_id}:{self.version}"

    @property
    def classifiers(self) -> list[str]:
        return [artifact.classifier for artifact in self.artifacts]

    def files(self) -> list[Path]:
        """Archives followed by their checksum sidecars."""
        paths: list[Path] = []
        for artifact in self.artifacts:
            paths.append(artifact.path)
            paths.extend(artifact.checksums[algo] for algo in sorted(artifact.checksums))
        return paths

    def remote_name(self, path: Path) -> str:
        """Repository file name for ``path``.

        Archives and their sidecars are renamed to
        ``<artifact_id>-<version>-<classifier>.<ext>``; other files keep their name.
        """
        for artifact in self.artifacts:
            base = f"{self.artifact_id}-{self.version}-{artifact.classifier}.{artifact.extension}"
            if path == artifact.path:
                return base
            for algo, sidecar in artifact.checksums.items():
                if path == sidecar:
                    return f"{base}.{algo}"
        return path.name


def _require(value: str, field: str) -> str:
    if not value or not value.strip():
        raise MissingCoordinateError(field)
    if not is_safe_segment(value):
        raise PublicationError(f"{field} is not a safe file name component: {value!r}")
    return value


def generate(
    project: ProjectSpec,
    artifacts: Sequence[Artifact],
    publications: Sequence[PublicationSpec] | None = None,
) -> list[PublicationDescriptor]:
    """Group packaged artifacts into publishable units.

    With no explicit groupings a single ``main`` publication carries every
    artifact under the project coordinate.
    """
    group = _require(project.group, "group")
    _require(project.name, "name")
    version = _require(project.version, "version")

    by_classifier: dict[str, Artifact] = {}
    for artifact in artifacts:
        if artifact.classifier in by_classifier:
            raise PublicationError(f"classifier packaged twice: {artifact.classifier}")
        by_classifier[artifact.classifier] = artifact

    if not publications:
        publications = [PublicationSpec(name=DEFAULT_PUBLICATION, classifiers=list(by_classifier))]

    descriptors: list[PublicationDescriptor] = []
    seen: set[str] = set()
    for publication in publications:
        artifact_id = _require(publication.artifact_id or project.name, "artifact_id")
        missing = [c for c in publication.classifiers if c not in by_classifier]
        if missing:
            raise PublicationError(
                f"publication '{publication.name}' references unpackaged classifiers: {missing}"
            )
        descriptor = PublicationDescriptor(
            name=publication.name,
            group=group,
            artifact_id=artifact_id,
            version=version,
            artifacts=tuple(by_classifier[c] for c in publication.classifiers),
        )
        if descriptor.coordinate in seen:
            raise DuplicateCoordinateError(descriptor.coordinate)
        seen.add(descriptor.coordinate)
        descriptors.append(descriptor)
        logger.info(
            "publication %s -> %s %s",
            descriptor.name,
            descriptor.coordinate,
            descriptor.classifiers,
        )
    return descriptors
