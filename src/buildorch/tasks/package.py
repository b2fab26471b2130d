from __future__ import annotations

from dataclasses import dataclass, field

from buildorch.packaging.packager import Artifact, archive_name, package_artifact
from buildorch.tasks.base import BuildContext


@dataclass(slots=True)
class PackageTask:
    """Bundles file-set roots into a classified archive."""

    id: str
    classifier: str
    roots: list[str]
    depends_on: list[str] = field(default_factory=list)
    extension: str = "zip"

    def prepare(self, ctx: BuildContext) -> None:
        # roots may be produced by upstream tasks, so they are checked at execute time
        return None

    def outputs(self, ctx: BuildContext) -> list[str]:
        name = archive_name(ctx.project, self.classifier, self.extension)
        return [str(ctx.libs_dir / name)]

    def execute(self, ctx: BuildContext) -> Artifact:
        artifact = package_artifact(
            ctx.project,
            self.classifier,
            [ctx.resolve(root) for root in self.roots],
            ctx.libs_dir,
            extension=self.extension,
            checksums=ctx.checksums,
        )
        ctx.register_artifact(artifact)
        return artifact

    def describe(self) -> str:
        return f"package {self.classifier} ({self.extension}) from {', '.join(self.roots)}"
