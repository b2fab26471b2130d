from __future__ import annotations

import os
import shutil
import stat
import zipfile
from collections.abc import Iterable, Sequence
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path
from secrets import token_hex

from buildorch.config.schema import ProjectSpec
from buildorch.packaging.checksum import BUFFER_SIZE, write_checksums
from buildorch.util.errors import EmptyFileSetError, PackagingError
from buildorch.util.log import get_logger
from buildorch.util.path_guard import is_safe_segment, iter_regular_files

logger = get_logger(__name__)

# Earliest timestamp representable in a zip entry.
_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_FILE_MODE = (stat.S_IFREG | 0o644) << 16
_MANIFEST = "META-INF/MANIFEST.MF"
_MANIFEST_BODY = b"Manifest-Version: 1.0\r\nCreated-By: buildorch\r\n\r\n"


@dataclass(frozen=True, slots=True)
class Artifact:
    classifier: str
    roots: tuple[Path, ...]
    files: tuple[str, ...]
    path: Path
    extension: str = "zip"
    checksums: dict[str, Path] = field(default_factory=dict)


def archive_name(project: ProjectSpec, classifier: str, extension: str = "zip") -> str:
    for field, value in (
        ("name", project.name),
        ("version", project.version),
        ("classifier", classifier),
        ("extension", extension),
    ):
        if not is_safe_segment(value):
            raise PackagingError(f"{field} is not a safe file name component: {value!r}")
    return f"{project.name}-{project.version}-{classifier}.{extension}"


def collect_files(roots: Iterable[Path]) -> dict[str, Path]:
    """Map archive-relative posix paths to source files, sorted by path.

    A root that is a file contributes its own name. When roots overlap the
    first root to provide a path wins.
    """
    collected: dict[str, Path] = {}
    for root in roots:
        for file in iter_regular_files(root):
            rel = file.name if file == root else file.relative_to(root).as_posix()
            if rel in collected:
                logger.warning("ignoring %s: %s already provided by %s", file, rel, collected[rel])
                continue
            collected[rel] = file
    return dict(sorted(collected.items()))


def _zip_info(name: str) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name, date_time=_FIXED_DATE_TIME)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.create_system = 3
    info.external_attr = _FILE_MODE
    return info


def write_archive(destination: Path, files: dict[str, Path], *, jar: bool = False) -> None:
    """Write a reproducible archive: sorted members, fixed times and modes."""
    tmp = destination.with_name(f".{destination.name}.{token_hex(4)}.tmp")
    try:
        with zipfile.ZipFile(tmp, "w") as zf:
            if jar and _MANIFEST not in files:
                zf.writestr(_zip_info(_MANIFEST), _MANIFEST_BODY)
            for rel, source in files.items():
                with source.open("rb") as src, zf.open(_zip_info(rel), "w", force_zip64=True) as dst:
                    shutil.copyfileobj(src, dst, BUFFER_SIZE)
        os.replace(tmp, destination)
    except BaseException:
        with suppress(OSError):
            tmp.unlink()
        raise


def package_artifact(
    project: ProjectSpec,
    classifier: str,
    roots: Sequence[Path],
    output_dir: Path,
    *,
    extension: str = "zip",
    checksums: Iterable[str] = (),
) -> Artifact:
    """Bundle every file under ``roots`` into ``<name>-<version>-<classifier>.<ext>``.

    Raises ``EmptyFileSetError`` without touching ``output_dir`` when the roots
    hold no files.
    """
    files = collect_files(roots)
    if not files:
        raise EmptyFileSetError(classifier, [str(root) for root in roots])

    destination = output_dir / archive_name(project, classifier, extension)
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        write_archive(destination, files, jar=extension == "jar")
        sidecars = write_checksums(destination, checksums)
    except OSError as exc:
        raise PackagingError(f"failed to write archive {destination}: {exc}") from exc
    logger.info("packaged %d file(s) into %s", len(files), destination)
    return Artifact(
        classifier=classifier,
        roots=tuple(roots),
        files=tuple(files),
        path=destination,
        extension=extension,
        checksums=sidecars,
    )
