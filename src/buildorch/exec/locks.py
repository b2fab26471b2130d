from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import AsyncExitStack, asynccontextmanager
from pathlib import Path


class PathLockTable:
    """One lock per output path; held while a task mutates that path."""

    def __init__(self, base: Path | None = None) -> None:
        self._base = base
        self._locks: dict[str, asyncio.Lock] = {}

    def _key(self, path: str) -> str:
        candidate = Path(path)
        if self._base is not None and not candidate.is_absolute():
            candidate = self._base / candidate
        return str(candidate.resolve(strict=False))

    def lock_for(self, path: str) -> asyncio.Lock:
        key = self._key(path)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, paths: Iterable[str]) -> AsyncIterator[None]:
        # Sorted acquisition keeps two tasks with overlapping outputs from
        # deadlocking each other.
        keys = sorted({self._key(path) for path in paths})
        async with AsyncExitStack() as stack:
            for key in keys:
                await stack.enter_async_context(self.lock_for(key))
            yield
