from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from buildorch.config.schema import ProjectSpec, PublicationSpec
from buildorch.packaging.checksum import verify_checksum, write_checksums
from buildorch.packaging.packager import Artifact
from buildorch.publish.generator import generate
from buildorch.publish.pom import pom_filename, render_pom
from buildorch.publish.upload import Uploader, UploadReceipt
from buildorch.util.errors import PublicationError


def _verify_artifacts(artifacts: Sequence[Artifact]) -> None:
    for artifact in artifacts:
        for algorithm, sidecar in sorted(artifact.checksums.items()):
            try:
                matches = verify_checksum(artifact.path, sidecar, algorithm)
            except OSError as exc:
                raise PublicationError(f"cannot verify {artifact.path}: {exc}") from exc
            if not matches:
                raise PublicationError(f"{artifact.path} changed since packaging ({algorithm})")


def publish_artifacts(
    project: ProjectSpec,
    artifacts: Sequence[Artifact],
    uploader: Uploader,
    *,
    staging_dir: Path,
    publications: Sequence[PublicationSpec] | None = None,
    checksums: Sequence[str] = (),
) -> list[UploadReceipt]:
    """Generate descriptors, stage their POMs and hand everything to ``uploader``.

    Descriptors are generated for every publication before the first upload,
    so a coordinate error never leaves a partial publish behind. Archives whose
    checksum sidecars no longer match are refused.
    """
    descriptors = generate(project, artifacts, publications)
    _verify_artifacts(artifacts)
    staged: list[tuple[Path, dict[str, Path]]] = []
    try:
        staging_dir.mkdir(parents=True, exist_ok=True)
        for descriptor in descriptors:
            pom_path = staging_dir / pom_filename(descriptor)
            pom_path.write_text(render_pom(descriptor, project), encoding="utf-8")
            staged.append((pom_path, write_checksums(pom_path, checksums)))
    except OSError as exc:
        raise PublicationError(f"failed to stage publication metadata: {exc}") from exc

    receipts: list[UploadReceipt] = []
    for descriptor, (pom_path, pom_sums) in zip(descriptors, staged):
        files = [pom_path, *(pom_sums[algo] for algo in sorted(pom_sums)), *descriptor.files()]
        receipts.append(uploader.upload(descriptor, files))
    return receipts
