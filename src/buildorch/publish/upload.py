from __future__ import annotations

import filecmp
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from buildorch.publish.generator import PublicationDescriptor
from buildorch.util.errors import UploadError
from buildorch.util.log import get_logger
from buildorch.util.path_guard import has_symlink_ancestor, is_safe_segment, is_symlink_path

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class UploadReceipt:
    coordinate: str
    location: str
    files: tuple[str, ...]


class Uploader(Protocol):
    def upload(
        self, descriptor: PublicationDescriptor, files: Sequence[Path]
    ) -> UploadReceipt: ...


class LocalRepositoryUploader:
    """Maven-layout directory repository.

    Release versions are immutable: re-uploading a file with different content
    is rejected. ``-SNAPSHOT`` versions may be overwritten.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def location_for(self, descriptor: PublicationDescriptor) -> Path:
        segments = [*descriptor.group.split("."), descriptor.artifact_id, descriptor.version]
        if not all(is_safe_segment(segment) for segment in segments):
            raise UploadError(f"unsafe repository coordinate: {descriptor.coordinate}")
        return self.root.joinpath(*segments)

    def upload(self, descriptor: PublicationDescriptor, files: Sequence[Path]) -> UploadReceipt:
        destination = self.location_for(descriptor)
        if has_symlink_ancestor(destination / "x") or is_symlink_path(destination):
            raise UploadError(f"repository path must not include symlink: {destination}")
        snapshot = descriptor.version.endswith("-SNAPSHOT")
        uploaded: list[str] = []
        try:
            destination.mkdir(parents=True, exist_ok=True)
            for source in files:
                target = destination / descriptor.remote_name(source)
                if target.exists() and not snapshot:
                    if filecmp.cmp(source, target, shallow=False):
                        uploaded.append(target.name)
                        continue
                    raise UploadError(
                        f"{descriptor.coordinate} already published with different {target.name}"
                    )
                shutil.copyfile(source, target)
                uploaded.append(target.name)
        except OSError as exc:
            raise UploadError(f"failed to upload {descriptor.coordinate}: {exc}") from exc
        logger.info("uploaded %s to %s", descriptor.coordinate, destination)
        return UploadReceipt(
            coordinate=descriptor.coordinate,
            location=str(destination),
            files=tuple(uploaded),
        )
