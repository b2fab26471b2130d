from __future__ import annotations

from dataclasses import dataclass, field

from buildorch.publish.flow import publish_artifacts
from buildorch.publish.upload import UploadReceipt
from buildorch.tasks.base import BuildContext
from buildorch.util.errors import ConfigError, PublicationError


@dataclass(slots=True)
class PublishTask:
    """Generates publications from packaged artifacts and uploads them."""

    id: str
    depends_on: list[str] = field(default_factory=list)

    def prepare(self, ctx: BuildContext) -> None:
        if ctx.uploader is None:
            raise ConfigError(f"task '{self.id}' requires an upload repository")

    def outputs(self, ctx: BuildContext) -> list[str]:
        return [str(ctx.publications_dir)]

    def execute(self, ctx: BuildContext) -> list[UploadReceipt]:
        artifacts = ctx.artifacts()
        if not artifacts:
            raise PublicationError("nothing to publish: no artifacts were packaged")
        assert ctx.uploader is not None
        return publish_artifacts(
            ctx.project,
            artifacts,
            ctx.uploader,
            staging_dir=ctx.publications_dir,
            publications=list(ctx.publications) or None,
            checksums=ctx.checksums,
        )

    def describe(self) -> str:
        return "publish packaged artifacts"
