from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from buildorch.config.schema import ProjectSpec, PublicationSpec
from buildorch.packaging.packager import Artifact
from buildorch.publish.generator import generate
from buildorch.publish.pom import pom_filename, render_pom
from buildorch.util.errors import (
    DuplicateCoordinateError,
    MissingCoordinateError,
    PublicationError,
)


def _artifact(classifier: str) -> Artifact:
    return Artifact(
        classifier=classifier,
        roots=(Path("src"),),
        files=("a.txt",),
        path=Path(f"build/libs/lib-1.0.0-{classifier}.zip"),
        checksums={"sha256": Path(f"build/libs/lib-1.0.0-{classifier}.zip.sha256")},
    )


def test_single_publication_references_every_artifact(project: ProjectSpec) -> None:
    descriptors = generate(project, [_artifact("sources"), _artifact("javadoc")])

    assert len(descriptors) == 1
    descriptor = descriptors[0]
    assert descriptor.coordinate == "org.example:lib:1.0.0"
    assert descriptor.classifiers == ["sources", "javadoc"]
    assert descriptor.files() == [
        Path("build/libs/lib-1.0.0-sources.zip"),
        Path("build/libs/lib-1.0.0-sources.zip.sha256"),
        Path("build/libs/lib-1.0.0-javadoc.zip"),
        Path("build/libs/lib-1.0.0-javadoc.zip.sha256"),
    ]


@pytest.mark.parametrize("field", ["group", "name", "version"])
def test_empty_coordinate_field_is_rejected(field: str) -> None:
    values = {"name": "lib", "group": "org.example", "version": "1.0.0"}
    values[field] = "  "
    with pytest.raises(MissingCoordinateError) as excinfo:
        generate(ProjectSpec(**values), [_artifact("sources")])
    assert excinfo.value.field == field


def test_explicit_publications_group_artifacts(project: ProjectSpec) -> None:
    publications = [
        PublicationSpec(name="main", classifiers=["sources"]),
        PublicationSpec(name="docs", classifiers=["javadoc"], artifact_id="lib-docs"),
    ]

    descriptors = generate(project, [_artifact("sources"), _artifact("javadoc")], publications)

    assert [d.coordinate for d in descriptors] == [
        "org.example:lib:1.0.0",
        "org.example:lib-docs:1.0.0",
    ]
    assert descriptors[1].classifiers == ["javadoc"]


def test_duplicate_coordinates_are_rejected(project: ProjectSpec) -> None:
    publications = [
        PublicationSpec(name="one", classifiers=["sources"]),
        PublicationSpec(name="two", classifiers=["javadoc"]),
    ]
    with pytest.raises(DuplicateCoordinateError) as excinfo:
        generate(project, [_artifact("sources"), _artifact("javadoc")], publications)
    assert excinfo.value.coordinate == "org.example:lib:1.0.0"


def test_unpackaged_classifier_is_rejected(project: ProjectSpec) -> None:
    with pytest.raises(PublicationError, match="javadoc"):
        generate(
            project,
            [_artifact("sources")],
            [PublicationSpec(name="main", classifiers=["sources", "javadoc"])],
        )


def test_same_classifier_twice_is_rejected(project: ProjectSpec) -> None:
    with pytest.raises(PublicationError):
        generate(project, [_artifact("sources"), _artifact("sources")])


def test_render_pom_contains_coordinate() -> None:
    project = ProjectSpec(name="lib", group="org.example", version="1.0.0", description="A lib")
    descriptor = generate(project, [_artifact("sources")])[0]

    xml = render_pom(descriptor, project)
    root = ET.fromstring(xml)
    ns = {"m": "http://maven.apache.org/POM/4.0.0"}

    assert pom_filename(descriptor) == "lib-1.0.0.pom"
    assert root.findtext("m:groupId", namespaces=ns) == "org.example"
    assert root.findtext("m:artifactId", namespaces=ns) == "lib"
    assert root.findtext("m:version", namespaces=ns) == "1.0.0"
    assert root.findtext("m:description", namespaces=ns) == "A lib"


def test_unsafe_artifact_id_is_rejected(project: ProjectSpec) -> None:
    publications = [PublicationSpec(name="main", classifiers=["sources"], artifact_id="../lib")]
    with pytest.raises(PublicationError, match="artifact_id"):
        generate(project, [_artifact("sources")], publications)


def test_remote_name_follows_artifact_id(project: ProjectSpec) -> None:
    publications = [PublicationSpec(name="docs", classifiers=["sources"], artifact_id="lib-src")]
    descriptor = generate(project, [_artifact("sources")], publications)[0]

    assert [descriptor.remote_name(path) for path in descriptor.files()] == [
        "lib-src-1.0.0-sources.zip",
        "lib-src-1.0.0-sources.zip.sha256",
    ]
    assert descriptor.remote_name(Path("staging/lib-src-1.0.0.pom")) == "lib-src-1.0.0.pom"
