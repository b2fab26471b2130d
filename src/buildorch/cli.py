from __future__ import annotations

import asyncio
import json
import stat
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from buildorch.config.loader import load_build_file
from buildorch.config.schema import BuildSpec
from buildorch.dag.graph import ExecutionPlan
from buildorch.exec.cancel import CancelSignal, cancel_on_signals
from buildorch.exec.locks import PathLockTable
from buildorch.exec.runner import run_plan
from buildorch.publish.upload import LocalRepositoryUploader, Uploader
from buildorch.report.render_md import render_markdown
from buildorch.report.summarize import build_summary
from buildorch.state.model import RunState
from buildorch.tasks.base import BuildContext, BuildTask
from buildorch.tasks.registry import create_tasks, describe_tasks, plan_tasks, publish_task_id
from buildorch.util.errors import (
    ConfigError,
    CyclicDependencyError,
    GraphError,
    PackagingError,
)
from buildorch.util.log import configure_logging
from buildorch.util.path_guard import has_symlink_ancestor, is_symlink_path

app = typer.Typer(help="Build task orchestrator")
console = Console()

EXIT_OK = 0
EXIT_TASK_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_CYCLE = 3
EXIT_CANCELLED = 4

_STATUS_STYLE = {
    "SUCCEEDED": "green",
    "FAILED": "red",
    "SKIPPED": "yellow",
    "PENDING": "dim",
    "RUNNING": "cyan",
}

BuildFileOption = Annotated[Path, typer.Option("--file", "-f", help="Build file")]
WorkdirOption = Annotated[
    Path | None, typer.Option("--workdir", help="Defaults to the build file directory")
]
MaxParallelOption = Annotated[int, typer.Option("--max-parallel", min=1)]
JsonOption = Annotated[bool, typer.Option("--json")]
ReportOption = Annotated[Path | None, typer.Option("--report", help="Write a markdown report")]


def exit_code_for_state(state: RunState) -> int:
    if state.status == "SUCCEEDED":
        return EXIT_OK
    if state.status == "CANCELLED":
        return EXIT_CANCELLED
    return EXIT_TASK_FAILED


def _load_build_or_exit(build_file: Path) -> BuildSpec:
    try:
        return load_build_file(build_file)
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(EXIT_CONFIG_ERROR) from exc


def _resolve_workdir_or_exit(workdir: Path | None, build_file: Path) -> Path:
    candidate = build_file.parent if workdir is None else workdir
    try:
        resolved = candidate.resolve()
        meta = resolved.lstat()
    except (OSError, RuntimeError) as exc:
        console.print(f"[red]Invalid workdir:[/red] {candidate}")
        raise typer.Exit(EXIT_CONFIG_ERROR) from exc
    if not stat.S_ISDIR(meta.st_mode):
        console.print(f"[red]Invalid workdir:[/red] {candidate}")
        raise typer.Exit(EXIT_CONFIG_ERROR)
    return resolved


def _context(build: BuildSpec, workdir: Path, uploader: Uploader | None = None) -> BuildContext:
    return BuildContext(
        project=build.project,
        workdir=workdir,
        output_dir=workdir / build.output_dir,
        checksums=tuple(build.checksums),
        publications=tuple(build.publications),
        uploader=uploader,
    )


def _plan_or_exit(tasks: list[BuildTask], ctx: BuildContext, target: str) -> ExecutionPlan:
    try:
        return plan_tasks(tasks, ctx, target=target)
    except CyclicDependencyError as exc:
        console.print(f"[red]Cycle detected:[/red] {exc}")
        raise typer.Exit(EXIT_CYCLE) from exc
    except (GraphError, ConfigError, PackagingError) as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(EXIT_CONFIG_ERROR) from exc


def _execute(plan: ExecutionPlan, ctx: BuildContext, max_parallel: int) -> RunState:
    with cancel_on_signals(CancelSignal()) as cancel:
        return asyncio.run(
            run_plan(
                plan,
                max_parallel=max_parallel,
                cancel=cancel,
                locks=PathLockTable(ctx.workdir),
            )
        )


def _write_report(path: Path, content: str) -> None:
    if has_symlink_ancestor(path) or is_symlink_path(path):
        raise OSError(f"report path must not be symlink: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content + "\n", encoding="utf-8")


def _print_state(state: RunState, title: str) -> None:
    table = Table(title=title)
    table.add_column("task_id")
    table.add_column("status")
    table.add_column("duration_sec", justify="right")
    table.add_column("cause")
    for task_id, task in state.tasks.items():
        style = _STATUS_STYLE.get(task.status, "")
        table.add_row(
            task_id,
            f"[{style}]{task.status}[/{style}]" if style else task.status,
            "-" if task.duration_sec is None else str(task.duration_sec),
            task.cause or "",
        )
    console.print(table)
    console.print(f"state: [bold]{state.status}[/bold]")


def _finish(
    state: RunState,
    ctx: BuildContext,
    *,
    target: str,
    as_json: bool,
    report: Path | None,
) -> None:
    if report is not None:
        summary = build_summary(state, target=target, artifacts=ctx.artifacts())
        try:
            _write_report(report, render_markdown(summary))
        except OSError as exc:
            console.print(f"[yellow]Warning:[/yellow] failed to write report: {exc}")
    if as_json:
        typer.echo(json.dumps(state.to_dict(), ensure_ascii=False, indent=2))
    else:
        _print_state(state, f"Build: {target}")
    raise typer.Exit(exit_code_for_state(state))


@app.callback()
def main(
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="Overrides BUILDORCH_LOG_LEVEL")
    ] = None,
) -> None:
    configure_logging(log_level)


@app.command()
def build(
    task_id: Annotated[str, typer.Argument(help="Task to run with its dependencies")],
    build_file: BuildFileOption = Path("build.yaml"),
    workdir: WorkdirOption = None,
    max_parallel: MaxParallelOption = 1,
    dry_run: Annotated[bool, typer.Option("--dry-run")] = False,
    as_json: JsonOption = False,
    report: ReportOption = None,
) -> None:
    """Run TASK_ID and its dependency closure."""
    spec = _load_build_or_exit(build_file)
    resolved_workdir = _resolve_workdir_or_exit(workdir, build_file)
    repo_root = resolved_workdir / spec.output_dir / "repository"
    ctx = _context(spec, resolved_workdir, LocalRepositoryUploader(repo_root))
    try:
        tasks = create_tasks(spec)
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(EXIT_CONFIG_ERROR) from exc
    plan = _plan_or_exit(tasks, ctx, task_id)

    if dry_run:
        table = Table(title="Dry Run - Execution Order")
        table.add_column("#")
        table.add_column("task_id")
        for idx, planned in enumerate(plan, start=1):
            table.add_row(str(idx), planned)
        console.print(table)
        raise typer.Exit(EXIT_OK)

    state = _execute(plan, ctx, max_parallel)
    _finish(state, ctx, target=task_id, as_json=as_json, report=report)


@app.command()
def publish(
    build_file: BuildFileOption = Path("build.yaml"),
    workdir: WorkdirOption = None,
    repository: Annotated[
        Path | None,
        typer.Option("--repository", help="Repository directory (default <output_dir>/repository)"),
    ] = None,
    max_parallel: MaxParallelOption = 1,
    as_json: JsonOption = False,
    report: ReportOption = None,
) -> None:
    """Package every classifier, generate publications and upload them."""
    spec = _load_build_or_exit(build_file)
    resolved_workdir = _resolve_workdir_or_exit(workdir, build_file)
    repo_root = repository or resolved_workdir / spec.output_dir / "repository"
    ctx = _context(spec, resolved_workdir, LocalRepositoryUploader(repo_root))
    try:
        tasks = create_tasks(spec, with_publish=True)
        target = publish_task_id(tasks)
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(EXIT_CONFIG_ERROR) from exc
    plan = _plan_or_exit(tasks, ctx, target)
    state = _execute(plan, ctx, max_parallel)
    if state.status == "SUCCEEDED" and not as_json:
        console.print(f"published to: {repo_root}")
    _finish(state, ctx, target=target, as_json=as_json, report=report)


@app.command(name="tasks")
def list_tasks(build_file: BuildFileOption = Path("build.yaml")) -> None:
    """List declared tasks."""
    spec = _load_build_or_exit(build_file)
    try:
        tasks = create_tasks(spec)
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(EXIT_CONFIG_ERROR) from exc
    table = Table(title=f"Tasks: {spec.project.coordinate}")
    table.add_column("task_id")
    table.add_column("depends_on")
    table.add_column("description")
    deps = {task.id: task.depends_on for task in tasks}
    for task_id, description in describe_tasks(tasks).items():
        table.add_row(task_id, ", ".join(deps[task_id]) or "-", description)
    console.print(table)


if __name__ == "__main__":
    app()
