from __future__ import annotations

import xml.etree.ElementTree as ET

from buildorch.config.schema import ProjectSpec
from buildorch.publish.generator import PublicationDescriptor

_POM_NS = "http://maven.apache.org/POM/4.0.0"
_XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
_SCHEMA_LOCATION = f"{_POM_NS} https://maven.apache.org/xsd/maven-4.0.0.xsd"


def pom_filename(descriptor: PublicationDescriptor) -> str:
    return f"{descriptor.artifact_id}-{descriptor.version}.pom"


def render_pom(descriptor: PublicationDescriptor, project: ProjectSpec) -> str:
    """Render a minimal Maven POM for ``descriptor``."""
    root = ET.Element(
        "project",
        {
            "xmlns": _POM_NS,
            "xmlns:xsi": _XSI_NS,
            "xsi:schemaLocation": _SCHEMA_LOCATION,
        },
    )
    for tag, text in (
        ("modelVersion", "4.0.0"),
        ("groupId", descriptor.group),
        ("artifactId", descriptor.artifact_id),
        ("version", descriptor.version),
        ("packaging", "pom"),
        ("name", project.name),
    ):
        ET.SubElement(root, tag).text = text
    if project.description:
        ET.SubElement(root, "description").text = project.description
    ET.indent(root)
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode") + "\n"
