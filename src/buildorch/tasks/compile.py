from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from pathlib import Path

from buildorch.exec.capture import stream_to_file
from buildorch.exec.timeout import wait_with_timeout
from buildorch.tasks.base import BuildContext
from buildorch.util.errors import ConfigError, ToolchainError
from buildorch.util.log import get_logger
from buildorch.util.tail import tail_lines

logger = get_logger(__name__)

_DIAGNOSTIC_LINES = 20


@dataclass(slots=True)
class CompileTask:
    """Runs an external toolchain command; output goes to per-task log files."""

    id: str
    cmd: list[str]
    depends_on: list[str] = field(default_factory=list)
    cwd: str | None = None
    env: dict[str, str] | None = None
    timeout_sec: float | None = None
    declared_outputs: list[str] = field(default_factory=list)

    def _cwd(self, ctx: BuildContext) -> Path:
        return ctx.workdir if self.cwd is None else ctx.resolve(self.cwd)

    def prepare(self, ctx: BuildContext) -> None:
        if not self._cwd(ctx).is_dir():
            raise ConfigError(f"task '{self.id}' cwd is not a directory: {self._cwd(ctx)}")

    def outputs(self, ctx: BuildContext) -> list[str]:
        return [str(ctx.resolve(path)) for path in self.declared_outputs]

    def log_paths(self, ctx: BuildContext) -> tuple[Path, Path]:
        return ctx.logs_dir / f"{self.id}.out.log", ctx.logs_dir / f"{self.id}.err.log"

    async def execute(self, ctx: BuildContext) -> int:
        out_path, err_path = self.log_paths(ctx)
        merged_env = os.environ.copy()
        if self.env:
            merged_env.update(self.env)
        logger.debug("task %s running %s", self.id, self.cmd)
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.cmd,
                cwd=str(self._cwd(ctx)),
                env=merged_env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as exc:
            raise ToolchainError(self.id, f"failed to start process: {exc}") from exc

        streams = asyncio.gather(
            stream_to_file(proc.stdout, out_path),
            stream_to_file(proc.stderr, err_path),
        )
        timed_out, exit_code = await wait_with_timeout(proc, self.timeout_sec)
        await streams

        if timed_out:
            raise ToolchainError(
                self.id,
                f"timed out after {self.timeout_sec}s",
                tail_lines(err_path, _DIAGNOSTIC_LINES),
            )
        if exit_code != 0:
            diagnostics = tail_lines(err_path, _DIAGNOSTIC_LINES)
            detail = f": {diagnostics[-1]}" if diagnostics else ""
            raise ToolchainError(self.id, f"exited with code {exit_code}{detail}", diagnostics)
        return exit_code

    def describe(self) -> str:
        return f"compile: {' '.join(self.cmd)}"
