from __future__ import annotations

from pathlib import Path

import pytest

from buildorch.config.loader import load_build_file, normalize_cmd, parse_build
from buildorch.util.errors import ConfigError, MissingFieldError


def _write(path: Path, content: str) -> Path:
    path.write_text(content.strip() + "\n", encoding="utf-8")
    return path


def test_load_build_file_parses_all_sections(tmp_path: Path) -> None:
    build_file = _write(
        tmp_path / "build.yaml",
        """
project:
  name: lib
  group: org.example
  version: "1.0.0"
  description: demo library
  build_info:
    output_module: lib.meta
    filename: build_info.py
output_dir: out
checksums: [SHA256, md5]
tasks:
  - id: compile
    kind: compile
    cmd: "python3 -c \\"print('hi')\\""
    cwd: "."
    env: {"KEY": "VALUE"}
    timeout_sec: 5
    outputs: ["out/classes"]
  - id: sourcesJar
    kind: package
    classifier: sources
    roots: [src]
    extension: jar
  - id: buildInfo
    kind: build_info
    depends_on: [compile]
publications:
  - name: maven
    classifiers: [sources]
    artifact_id: lib-core
""",
    )

    build = load_build_file(build_file)
    assert build.project.coordinate == "org.example:lib:1.0.0"
    assert build.project.description == "demo library"
    assert build.output_dir == "out"
    assert build.checksums == ["sha256", "md5"]
    compile_task, package_task, info_task = build.tasks
    assert compile_task.cmd == ["python3", "-c", "print('hi')"]
    assert compile_task.env == {"KEY": "VALUE"}
    assert compile_task.timeout_sec == 5.0
    assert compile_task.outputs == ["out/classes"]
    assert package_task.classifier == "sources"
    assert package_task.roots == ["src"]
    assert package_task.extension == "jar"
    assert info_task.kind == "build_info"
    assert info_task.depends_on == ["compile"]
    assert build.publications[0].artifact_id == "lib-core"


def test_parse_build_defaults() -> None:
    build = parse_build({"project": {"name": "lib", "group": "g", "version": "1"}, "tasks": []})
    assert build.output_dir == "build"
    assert build.checksums == ["sha256"]
    assert build.publications == []


def test_parse_build_propagates_missing_project_field() -> None:
    with pytest.raises(MissingFieldError):
        parse_build({"project": {"name": "lib", "group": "g"}, "tasks": []})


def test_parse_build_leaves_duplicate_ids_to_graph() -> None:
    build = parse_build(
        {
            "project": {"name": "lib", "group": "g", "version": "1"},
            "tasks": [{"id": "a", "kind": "build_info"}, {"id": "a", "kind": "build_info"}],
        }
    )
    assert [task.id for task in build.tasks] == ["a", "a"]


@pytest.mark.parametrize(
    "task",
    [
        {"id": "bad id", "kind": "build_info"},
        {"id": "t", "kind": "link"},
        {"id": "t", "kind": "compile"},
        {"id": "t", "kind": "compile", "cmd": []},
        {"id": "t", "kind": "compile", "cmd": "echo", "timeout_sec": 0},
        {"id": "t", "kind": "compile", "cmd": "echo", "env": {"A=B": "x"}},
        {"id": "t", "kind": "package", "roots": ["src"]},
        {"id": "t", "kind": "package", "classifier": "sources", "roots": []},
        {"id": "t", "kind": "package", "classifier": "sources", "roots": ["s"], "extension": "tar"},
        {"id": "t", "kind": "package", "classifier": "sources", "roots": ["s"], "cmd": "x"},
        {"id": "t", "kind": "build_info", "depends_on": ["a", "a"]},
        {"id": "x" * 129, "kind": "build_info"},
    ],
)
def test_parse_build_rejects_invalid_tasks(task: dict[str, object]) -> None:
    with pytest.raises(ConfigError):
        parse_build({"project": {"name": "lib", "group": "g", "version": "1"}, "tasks": [task]})


@pytest.mark.parametrize(
    "raw",
    [
        [],
        {"tasks": []},
        {"project": {"name": "lib", "group": "g", "version": "1"}},
        {"project": {"name": "lib", "group": "g", "version": "1"}, "tasks": [], "plugins": []},
        {"project": {"name": "lib", "group": "g", "version": "1"}, "tasks": [], "checksums": ["crc"]},
        {"project": {"name": "lib", "group": "g", "version": "1"}, "tasks": [], "output_dir": " "},
        {
            "project": {"name": "lib", "group": "g", "version": "1"},
            "tasks": [],
            "publications": [{"name": "m", "classifiers": ["s"], "repo": "x"}],
        },
        {
            "project": {"name": "lib", "group": "g", "version": "1"},
            "tasks": [],
            "publications": [{"name": "m", "classifiers": ["s"], "artifact_id": "../../outside"}],
        },
    ],
)
def test_parse_build_rejects_invalid_root(raw: object) -> None:
    with pytest.raises(ConfigError):
        parse_build(raw)


def test_load_build_file_reports_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_build_file(tmp_path / "nope.yaml")


def test_load_build_file_reports_yaml_errors(tmp_path: Path) -> None:
    build_file = _write(tmp_path / "build.yaml", "project: [unclosed")
    with pytest.raises(ConfigError, match="yaml"):
        load_build_file(build_file)


def test_load_build_file_rejects_symlink(tmp_path: Path) -> None:
    real = _write(tmp_path / "real.yaml", "project: {}")
    link = tmp_path / "build.yaml"
    link.symlink_to(real)
    with pytest.raises(ConfigError, match="symlink"):
        load_build_file(link)


def test_normalize_cmd_splits_strings_and_rejects_blank() -> None:
    assert normalize_cmd("javac -d out Main.java") == ["javac", "-d", "out", "Main.java"]
    with pytest.raises(ConfigError):
        normalize_cmd("   ")
    with pytest.raises(ConfigError):
        normalize_cmd("unterminated 'quote")
