from __future__ import annotations

import json
import os
import signal
import subprocess
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

PROJECT = """
project:
  name: lib
  group: org.example
  version: "1.0.0"
"""


def _env() -> dict[str, str]:
    env = os.environ.copy()
    src = str(ROOT / "src")
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [src, env.get("PYTHONPATH")]))
    return env


def _python(code: str) -> str:
    return json.dumps([sys.executable, "-c", code])


def _write_build(path: Path, body: str) -> Path:
    path.write_text(PROJECT.strip() + "\n" + body.strip() + "\n", encoding="utf-8")
    return path


def _cli(*args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, "-m", "buildorch.cli", *args],
        capture_output=True,
        text=True,
        check=False,
        env=_env(),
    )


def test_cli_build_dry_run_lists_closure_in_order(tmp_path: Path) -> None:
    build_file = _write_build(
        tmp_path / "build.yaml",
        f"""
tasks:
  - id: compile
    kind: compile
    cmd: {_python("print('c')")}
  - id: info
    kind: build_info
  - id: classesJar
    kind: package
    classifier: classes
    roots: [out]
    depends_on: [compile]
""",
    )

    proc = _cli("build", "classesJar", "--file", str(build_file), "--dry-run")

    assert proc.returncode == 0, proc.stdout + proc.stderr
    assert "Dry Run" in proc.stdout
    assert proc.stdout.index("compile") < proc.stdout.index("classesJar")
    assert "info" not in proc.stdout


def test_cli_build_failed_task_skips_dependents(tmp_path: Path) -> None:
    build_file = _write_build(
        tmp_path / "build.yaml",
        f"""
tasks:
  - id: A
    kind: compile
    cmd: {_python("import sys; print('broken', file=sys.stderr); sys.exit(1)")}
  - id: B
    kind: compile
    cmd: {_python("print('b')")}
    depends_on: [A]
  - id: C
    kind: compile
    cmd: {_python("print('c')")}
    depends_on: [A]
  - id: all
    kind: build_info
    depends_on: [B, C]
""",
    )
    report = tmp_path / "report.md"

    proc = _cli("build", "all", "--file", str(build_file), "--json", "--report", str(report))

    assert proc.returncode == 1, proc.stdout + proc.stderr
    state = json.loads(proc.stdout)
    assert state["status"] == "FAILED"
    assert state["tasks"]["A"]["status"] == "FAILED"
    assert state["tasks"]["A"]["error_type"] == "ToolchainError"
    assert state["tasks"]["B"]["skip_reason"] == "dependency_failed"
    assert state["tasks"]["C"]["status"] == "SKIPPED"
    content = report.read_text(encoding="utf-8")
    assert "### A (FAILED)" in content
    assert "broken" in content
    assert (tmp_path / "build" / "logs" / "A.err.log").read_text(encoding="utf-8") == "broken\n"


def test_cli_build_success_writes_build_info(tmp_path: Path) -> None:
    build_file = tmp_path / "build.yaml"
    build_file.write_text(
        """
project:
  name: lib
  group: org.example
  version: 2
  build_info:
    output_module: lib.meta
tasks:
  - id: info
    kind: build_info
""".strip()
        + "\n",
        encoding="utf-8",
    )

    proc = _cli("build", "info", "--file", str(build_file))

    assert proc.returncode == 0, proc.stdout + proc.stderr
    generated = tmp_path / "build" / "generated" / "lib" / "meta" / "build_info.py"
    assert "VERSION = '2'" in generated.read_text(encoding="utf-8")


def test_cli_missing_project_field_is_config_error(tmp_path: Path) -> None:
    build_file = tmp_path / "build.yaml"
    build_file.write_text(
        "project:\n  name: lib\n  version: '1.0'\ntasks: []\n", encoding="utf-8"
    )

    proc = _cli("build", "anything", "--file", str(build_file))

    assert proc.returncode == 2
    assert "group" in proc.stdout


def test_cli_path_like_project_name_is_config_error(tmp_path: Path) -> None:
    build_file = tmp_path / "build.yaml"
    build_file.write_text(
        "project:\n  name: ../../escaped\n  group: g\n  version: '1'\ntasks: []\n",
        encoding="utf-8",
    )

    proc = _cli("tasks", "--file", str(build_file))

    assert proc.returncode == 2
    assert "project.name" in proc.stdout


def test_cli_unknown_target_and_duplicate_ids_are_config_errors(tmp_path: Path) -> None:
    build_file = _write_build(
        tmp_path / "build.yaml",
        """
tasks:
  - id: info
    kind: build_info
""",
    )
    assert _cli("build", "missing", "--file", str(build_file)).returncode == 2

    duplicated = _write_build(
        tmp_path / "dup.yaml",
        """
tasks:
  - id: info
    kind: build_info
  - id: info
    kind: build_info
""",
    )
    proc = _cli("build", "info", "--file", str(duplicated))
    assert proc.returncode == 2
    assert "duplicate task id" in proc.stdout


def test_cli_cycle_exits_three_and_runs_nothing(tmp_path: Path) -> None:
    marker = tmp_path / "ran.txt"
    build_file = _write_build(
        tmp_path / "build.yaml",
        f"""
tasks:
  - id: touch
    kind: compile
    cmd: {_python("open('ran.txt', 'w').close()")}
  - id: a
    kind: build_info
    depends_on: [b, touch]
  - id: b
    kind: build_info
    depends_on: [a]
""",
    )

    proc = _cli("build", "touch", "--file", str(build_file))

    assert proc.returncode == 3, proc.stdout + proc.stderr
    assert "Cycle detected" in proc.stdout
    assert not marker.exists()


def test_cli_publish_to_local_repository(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "mod.py").write_text("x = 1\n", encoding="utf-8")
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "index.html").write_text("<html></html>\n", encoding="utf-8")
    build_file = _write_build(
        tmp_path / "build.yaml",
        """
checksums: [sha256, md5]
tasks:
  - id: sourcesJar
    kind: package
    classifier: sources
    roots: [src]
  - id: javadocJar
    kind: package
    classifier: javadoc
    roots: [docs]
""",
    )
    repo = tmp_path / "repo"

    proc = _cli("publish", "--file", str(build_file), "--repository", str(repo))

    assert proc.returncode == 0, proc.stdout + proc.stderr
    published = repo / "org" / "example" / "lib" / "1.0.0"
    names = sorted(path.name for path in published.iterdir())
    assert "lib-1.0.0.pom" in names
    assert "lib-1.0.0-sources.zip" in names
    assert "lib-1.0.0-javadoc.zip.md5" in names
    assert "lib-1.0.0-javadoc.zip.sha256" in names


def test_cli_publish_with_empty_file_set_fails_only_publish(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "mod.py").write_text("x = 1\n", encoding="utf-8")
    (tmp_path / "docs").mkdir()
    build_file = _write_build(
        tmp_path / "build.yaml",
        """
tasks:
  - id: sourcesJar
    kind: package
    classifier: sources
    roots: [src]
  - id: javadocJar
    kind: package
    classifier: javadoc
    roots: [docs]
""",
    )

    proc = _cli("publish", "--file", str(build_file), "--json")

    assert proc.returncode == 1
    state = json.loads(proc.stdout)
    assert state["tasks"]["sourcesJar"]["status"] == "SUCCEEDED"
    assert state["tasks"]["javadocJar"]["error_type"] == "EmptyFileSetError"
    assert state["tasks"]["publish"]["status"] == "SKIPPED"
    assert not (tmp_path / "build" / "libs" / "lib-1.0.0-javadoc.zip").exists()
    assert not (tmp_path / "build" / "repository").exists()


def test_cli_tasks_lists_descriptions(tmp_path: Path) -> None:
    build_file = _write_build(
        tmp_path / "build.yaml",
        """
tasks:
  - id: sourcesJar
    kind: package
    classifier: sources
    roots: [src]
""",
    )

    proc = _cli("tasks", "--file", str(build_file))

    assert proc.returncode == 0
    assert "org.example:lib:1.0.0" in proc.stdout
    assert "package sources" in proc.stdout


def test_cli_sigint_skips_pending_tasks(tmp_path: Path) -> None:
    build_file = _write_build(
        tmp_path / "build.yaml",
        f"""
tasks:
  - id: long
    kind: compile
    cmd: {_python("import time; print('started', flush=True); time.sleep(2)")}
  - id: next
    kind: compile
    cmd: {_python("print('next')")}
    depends_on: [long]
""",
    )
    out_log = tmp_path / "build" / "logs" / "long.out.log"

    proc = subprocess.Popen(
        [sys.executable, "-m", "buildorch.cli", "build", "next", "--file", str(build_file)],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        env=_env(),
    )
    deadline = time.time() + 10
    while time.time() < deadline:
        if out_log.exists() and "started" in out_log.read_text(encoding="utf-8"):
            break
        time.sleep(0.05)
    proc.send_signal(signal.SIGINT)
    stdout, stderr = proc.communicate(timeout=20)

    assert proc.returncode == 4, f"stdout={stdout}\nstderr={stderr}"
    assert "CANCELLED" in stdout
    assert not (tmp_path / "build" / "logs" / "next.out.log").exists()
