"""Digest helpers for packaged archives."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from pathlib import Path

from buildorch.util.errors import ConfigError

SUPPORTED_ALGORITHMS = ("md5", "sha1", "sha256", "sha512")
BUFFER_SIZE = 4 << 10


def _new_digest(algorithm: str) -> hashlib._Hash:
    name = algorithm.lower()
    if name not in SUPPORTED_ALGORITHMS:
        raise ConfigError(
            f"unsupported checksum algorithm: {algorithm} (expected one of {SUPPORTED_ALGORITHMS})"
        )
    return hashlib.new(name)


def file_digest(path: Path, algorithm: str = "sha256") -> str:
    """Return the lowercase hex digest of ``path``."""
    digest = _new_digest(algorithm)
    with path.open("rb") as f:
        while chunk := f.read(BUFFER_SIZE):
            digest.update(chunk)
    return digest.hexdigest()


def write_checksums(path: Path, algorithms: Iterable[str]) -> dict[str, Path]:
    """Write ``<path>.<algo>`` sidecars and return them by algorithm."""
    written: dict[str, Path] = {}
    for algorithm in dict.fromkeys(algo.lower() for algo in algorithms):
        sidecar = path.with_name(f"{path.name}.{algorithm}")
        sidecar.write_text(file_digest(path, algorithm) + "\n", encoding="ascii")
        written[algorithm] = sidecar
    return written


def verify_checksum(path: Path, sidecar: Path, algorithm: str) -> bool:
    expected = sidecar.read_text(encoding="ascii").split()
    return bool(expected) and expected[0].lower() == file_digest(path, algorithm)
