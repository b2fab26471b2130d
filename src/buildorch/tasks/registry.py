"""Turn a validated build file into build tasks and an execution plan."""

from __future__ import annotations

from functools import partial

from buildorch.config.schema import BuildSpec, TaskSpec
from buildorch.dag.graph import ExecutionPlan, TaskGraph
from buildorch.tasks.base import BuildContext, BuildTask
from buildorch.tasks.build_info import BuildInfoTask
from buildorch.tasks.compile import CompileTask
from buildorch.tasks.package import PackageTask
from buildorch.tasks.publish import PublishTask
from buildorch.util.errors import ConfigError

PUBLISH_TASK_ID = "publish"


def create_task(spec: TaskSpec) -> BuildTask:
    if spec.kind == "compile":
        return CompileTask(
            id=spec.id,
            cmd=spec.cmd,
            depends_on=list(spec.depends_on),
            cwd=spec.cwd,
            env=spec.env,
            timeout_sec=spec.timeout_sec,
            declared_outputs=list(spec.outputs),
        )
    if spec.kind == "package":
        assert spec.classifier is not None
        return PackageTask(
            id=spec.id,
            classifier=spec.classifier,
            roots=list(spec.roots),
            depends_on=list(spec.depends_on),
            extension=spec.extension,
        )
    if spec.kind == "build_info":
        return BuildInfoTask(id=spec.id, depends_on=list(spec.depends_on))
    if spec.kind == "publish":
        return PublishTask(id=spec.id, depends_on=list(spec.depends_on))
    raise ConfigError(f"task '{spec.id}' has unknown kind: {spec.kind}")


def create_tasks(build: BuildSpec, *, with_publish: bool = False) -> list[BuildTask]:
    """Instantiate tasks; publish tasks depend on every package task.

    With ``with_publish`` a ``publish`` task is added when the build file does
    not declare one.
    """
    tasks = [create_task(spec) for spec in build.tasks]
    package_ids = [task.id for task in tasks if isinstance(task, PackageTask)]
    publish_tasks = [task for task in tasks if isinstance(task, PublishTask)]
    if len(publish_tasks) > 1:
        raise ConfigError("at most one publish task may be declared")
    if with_publish and not publish_tasks:
        synthetic = PublishTask(id=PUBLISH_TASK_ID)
        tasks.append(synthetic)
        publish_tasks.append(synthetic)
    for task in publish_tasks:
        task.depends_on = list(dict.fromkeys([*task.depends_on, *package_ids]))
    return tasks


def publish_task_id(tasks: list[BuildTask]) -> str:
    for task in tasks:
        if isinstance(task, PublishTask):
            return task.id
    raise ConfigError("build declares no publish task")


def plan_tasks(
    tasks: list[BuildTask], ctx: BuildContext, *, target: str | None = None
) -> ExecutionPlan:
    """Register ``tasks`` in a graph, validate it, then prepare planned tasks.

    Graph and configuration errors surface here, before any task runs.
    """
    graph = TaskGraph()
    for task in tasks:
        graph.add_task(
            task.id,
            task.depends_on,
            partial(task.execute, ctx),
            outputs=task.outputs(ctx),
        )
    plan = graph.build(target)
    by_id = {task.id: task for task in tasks}
    for task_id in plan:
        by_id[task_id].prepare(ctx)
    return plan


def describe_tasks(tasks: list[BuildTask]) -> dict[str, str]:
    return {task.id: task.describe() for task in tasks}
