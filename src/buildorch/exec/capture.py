from __future__ import annotations

import asyncio
import os
import stat
from contextlib import suppress
from pathlib import Path

from buildorch.util.path_guard import has_symlink_ancestor, is_symlink_path


def _open_log(file_path: Path) -> int | None:
    if has_symlink_ancestor(file_path):
        return None
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
    except (OSError, RuntimeError):
        return None
    if is_symlink_path(file_path.parent) or is_symlink_path(file_path):
        return None
    flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
    if hasattr(os, "O_NOFOLLOW"):
        flags |= os.O_NOFOLLOW
    try:
        fd = os.open(str(file_path), flags, 0o644)
    except (OSError, RuntimeError):
        return None
    if not stat.S_ISREG(os.fstat(fd).st_mode):
        with suppress(OSError):
            os.close(fd)
        return None
    return fd


async def stream_to_file(stream: asyncio.StreamReader | None, file_path: Path) -> None:
    """Copy ``stream`` into ``file_path``; the stream is always drained."""
    if stream is None:
        return
    fd = _open_log(file_path)
    if fd is None:
        while await stream.read(4096):
            pass
        return
    with os.fdopen(fd, "wb") as f:
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            with suppress(OSError):
                f.write(chunk)
                f.flush()
