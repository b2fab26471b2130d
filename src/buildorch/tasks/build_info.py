from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from buildorch.config.schema import BuildInfoSpec, ProjectSpec
from buildorch.tasks.base import BuildContext
from buildorch.util.errors import ConfigError
from buildorch.util.log import get_logger

logger = get_logger(__name__)

_HEADER = "Generated by buildorch. Do not edit."


def build_info_path(generated_dir: Path, spec: BuildInfoSpec) -> Path:
    return generated_dir.joinpath(*spec.output_module.split("."), spec.filename)


def render_build_info(project: ProjectSpec, filename: str) -> str:
    """Render project metadata in the format implied by ``filename``'s suffix."""
    values = {"name": project.name, "group": project.group, "version": project.version}
    suffix = Path(filename).suffix
    if suffix == ".py":
        lines = [f"# {_HEADER}"]
        lines.extend(f"{key.upper()} = {value!r}" for key, value in values.items())
        return "\n".join(lines) + "\n"
    if suffix == ".json":
        return json.dumps(values, indent=2, sort_keys=True) + "\n"
    if suffix == ".properties":
        lines = [f"# {_HEADER}"]
        lines.extend(f"{key}={value}" for key, value in values.items())
        return "\n".join(lines) + "\n"
    raise ConfigError(f"unsupported build info file type: {filename}")


@dataclass(slots=True)
class BuildInfoTask:
    """Writes the resolved project metadata into a generated module."""

    id: str
    depends_on: list[str] = field(default_factory=list)

    def prepare(self, ctx: BuildContext) -> None:
        if ctx.project.build_info is not None:
            render_build_info(ctx.project, ctx.project.build_info.filename)

    def outputs(self, ctx: BuildContext) -> list[str]:
        if ctx.project.build_info is None:
            return []
        return [str(build_info_path(ctx.generated_dir, ctx.project.build_info))]

    def execute(self, ctx: BuildContext) -> Path | None:
        spec = ctx.project.build_info
        if spec is None:
            logger.info("task %s: no build info requested", self.id)
            return None
        target = build_info_path(ctx.generated_dir, spec)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(render_build_info(ctx.project, spec.filename), encoding="utf-8")
        logger.info("task %s wrote %s", self.id, target)
        return target

    def describe(self) -> str:
        return "generate build info"
