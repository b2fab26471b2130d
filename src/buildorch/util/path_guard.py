from __future__ import annotations

import os
import re
import stat
from collections.abc import Iterator
from pathlib import Path

_SAFE_SEGMENT = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")


def is_symlink_path(path: Path, *, fail_closed: bool = True) -> bool:
    try:
        return path.is_symlink()
    except FileNotFoundError:
        return False
    except (OSError, RuntimeError):
        return fail_closed


def has_symlink_ancestor(path: Path) -> bool:
    current = path.parent
    while True:
        try:
            meta = current.lstat()
        except FileNotFoundError:
            pass
        except (OSError, RuntimeError):
            return True
        else:
            if stat.S_ISLNK(meta.st_mode):
                return True
        if current == current.parent:
            return False
        current = current.parent


def iter_regular_files(root: Path) -> Iterator[Path]:
    """Yield regular files below ``root`` without following symlinks.

    A root that is itself a regular file yields just that file.
    """
    try:
        meta = root.lstat()
    except (OSError, RuntimeError):
        return
    if stat.S_ISREG(meta.st_mode):
        yield root
        return
    if not stat.S_ISDIR(meta.st_mode):
        return
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        dirnames.sort()
        base = Path(dirpath)
        for filename in sorted(filenames):
            candidate = base / filename
            try:
                if stat.S_ISREG(candidate.lstat().st_mode):
                    yield candidate
            except (OSError, RuntimeError):
                continue


def is_safe_segment(value: object) -> bool:
    """True when ``value`` can be used as a single path component as-is."""
    return (
        isinstance(value, str)
        and _SAFE_SEGMENT.fullmatch(value) is not None
        and ".." not in value
    )
