from __future__ import annotations

import errno
import math
import os
import re
import shlex
import stat
from contextlib import suppress
from pathlib import Path
from typing import Any, cast

import yaml

from buildorch.config.resolver import resolve_project
from buildorch.config.schema import TASK_KINDS, BuildSpec, PublicationSpec, TaskKind, TaskSpec
from buildorch.packaging.checksum import SUPPORTED_ALGORITHMS
from buildorch.util.errors import ConfigError
from buildorch.util.path_guard import has_symlink_ancestor, is_safe_segment

_SAFE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_TASK_ID_MAX_LEN = 128
_ARCHIVE_EXTENSIONS = {"zip", "jar"}
_ALLOWED_ROOT_KEYS = {"project", "output_dir", "checksums", "tasks", "publications"}
_COMMON_TASK_KEYS = {"id", "kind", "depends_on"}
_ALLOWED_TASK_KEYS: dict[str, set[str]] = {
    "compile": _COMMON_TASK_KEYS | {"cmd", "cwd", "env", "timeout_sec", "outputs"},
    "package": _COMMON_TASK_KEYS | {"classifier", "roots", "extension"},
    "build_info": _COMMON_TASK_KEYS,
    "publish": _COMMON_TASK_KEYS,
}
_ALLOWED_PUBLICATION_KEYS = {"name", "classifiers", "artifact_id"}


def _is_finite_real_number(value: object) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    return math.isfinite(value)


def _is_non_blank_str(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip()) and "\x00" not in value


def _is_str_without_nul(value: object) -> bool:
    return isinstance(value, str) and "\x00" not in value


def _is_valid_env_key(value: object) -> bool:
    return _is_non_blank_str(value) and "=" not in cast(str, value)


def _is_safe_id(value: object) -> bool:
    return isinstance(value, str) and _SAFE_ID_PATTERN.fullmatch(value) is not None


def normalize_cmd(cmd: str | list[str]) -> list[str]:
    if isinstance(cmd, str):
        try:
            parts = shlex.split(cmd)
        except ValueError as exc:
            raise ConfigError(f"invalid cmd string: {exc}") from exc
        if not parts:
            raise ConfigError("cmd string must not be empty")
        if any("\x00" in part for part in parts):
            raise ConfigError("cmd must not contain null bytes")
        return parts
    if isinstance(cmd, list) and cmd and all(_is_non_blank_str(p) for p in cmd):
        return cmd
    raise ConfigError("cmd must be str or non-empty list[str]")


def _ensure_list_str(name: str, value: Any, *, non_empty_items: bool = False) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{name} must be list[str]")
    if non_empty_items and any(not _is_non_blank_str(v) for v in value):
        raise ConfigError(f"{name} must not contain empty strings")
    return value


def _parse_task(raw: Any) -> TaskSpec:
    if not isinstance(raw, dict):
        raise ConfigError("task must be mapping")
    if any(not isinstance(key, str) for key in raw):
        raise ConfigError("task fields must use string keys")
    if "id" not in raw or not _is_non_blank_str(raw["id"]):
        raise ConfigError("task.id is required and must be non-empty string")
    task_id = raw["id"]
    if len(task_id) > _TASK_ID_MAX_LEN:
        raise ConfigError(f"task.id must be <= {_TASK_ID_MAX_LEN} characters")
    if not _is_safe_id(task_id):
        raise ConfigError("task.id must match ^[A-Za-z0-9][A-Za-z0-9._-]*$")
    kind = raw.get("kind")
    if kind not in TASK_KINDS:
        raise ConfigError(f"task '{task_id}' kind must be one of {sorted(TASK_KINDS)}")
    unknown = set(raw.keys()) - _ALLOWED_TASK_KEYS[kind]
    if unknown:
        raise ConfigError(f"task '{task_id}' has unknown fields: {sorted(unknown)}")

    depends_on = _ensure_list_str("depends_on", raw.get("depends_on"), non_empty_items=True)
    if len(set(depends_on)) != len(depends_on):
        raise ConfigError(f"task '{task_id}' has duplicate dependencies")
    task = TaskSpec(id=task_id, kind=cast(TaskKind, kind), depends_on=depends_on)

    if kind == "compile":
        if "cmd" not in raw:
            raise ConfigError(f"task '{task_id}' missing cmd")
        task.cmd = normalize_cmd(raw["cmd"])
        timeout_sec = raw.get("timeout_sec")
        if timeout_sec is not None:
            if not _is_finite_real_number(timeout_sec) or timeout_sec <= 0:
                raise ConfigError(f"task '{task_id}' timeout_sec must be > 0")
            task.timeout_sec = float(timeout_sec)
        cwd = raw.get("cwd")
        if cwd is not None and not _is_non_blank_str(cwd):
            raise ConfigError(f"task '{task_id}' cwd must be non-empty string")
        task.cwd = cwd
        env = raw.get("env")
        if env is not None and (
            not isinstance(env, dict)
            or not all(_is_valid_env_key(k) and _is_str_without_nul(v) for k, v in env.items())
        ):
            raise ConfigError(f"task '{task_id}' env must be dict[str, str]")
        task.env = env
        task.outputs = _ensure_list_str("outputs", raw.get("outputs"), non_empty_items=True)
    elif kind == "package":
        classifier = raw.get("classifier")
        if not _is_safe_id(classifier):
            raise ConfigError(f"task '{task_id}' classifier is required and must be a safe id")
        task.classifier = classifier
        task.roots = _ensure_list_str("roots", raw.get("roots"), non_empty_items=True)
        if not task.roots:
            raise ConfigError(f"task '{task_id}' roots must list at least one path")
        extension = raw.get("extension", "zip")
        if extension not in _ARCHIVE_EXTENSIONS:
            raise ConfigError(
                f"task '{task_id}' extension must be one of {sorted(_ARCHIVE_EXTENSIONS)}"
            )
        task.extension = extension
    return task


def _parse_publication(raw: Any) -> PublicationSpec:
    if not isinstance(raw, dict):
        raise ConfigError("publication must be mapping")
    unknown = set(raw.keys()) - _ALLOWED_PUBLICATION_KEYS
    if unknown:
        raise ConfigError(f"publication has unknown fields: {sorted(unknown)}")
    name = raw.get("name")
    if not _is_safe_id(name):
        raise ConfigError("publication.name is required and must be a safe id")
    classifiers = _ensure_list_str(
        f"publication '{name}' classifiers", raw.get("classifiers"), non_empty_items=True
    )
    artifact_id = raw.get("artifact_id")
    if artifact_id is not None and not is_safe_segment(artifact_id):
        raise ConfigError(f"publication '{name}' artifact_id must be a safe file name component")
    return PublicationSpec(name=name, classifiers=classifiers, artifact_id=artifact_id)


def _parse_checksums(raw: Any) -> list[str]:
    if raw is None:
        return ["sha256"]
    algorithms = _ensure_list_str("checksums", raw, non_empty_items=True)
    normalized = [algo.lower() for algo in algorithms]
    unsupported = [algo for algo in normalized if algo not in SUPPORTED_ALGORITHMS]
    if unsupported:
        raise ConfigError(f"unsupported checksum algorithms: {unsupported}")
    return normalized


def parse_build(raw: Any) -> BuildSpec:
    """Validate a decoded build file document."""
    if not isinstance(raw, dict):
        raise ConfigError("build file root must be a mapping")
    if any(not isinstance(key, str) for key in raw):
        raise ConfigError("build file root keys must be strings")
    unknown_root = set(raw.keys()) - _ALLOWED_ROOT_KEYS
    if unknown_root:
        raise ConfigError(f"build file contains unknown fields: {sorted(unknown_root)}")

    if "project" not in raw:
        raise ConfigError("build file must define project")
    project = resolve_project(raw["project"])

    raw_tasks = raw.get("tasks")
    if not isinstance(raw_tasks, list):
        raise ConfigError("tasks must be a list")

    output_dir = raw.get("output_dir", "build")
    if not _is_non_blank_str(output_dir):
        raise ConfigError("output_dir must be non-empty string")

    raw_publications = raw.get("publications", [])
    if not isinstance(raw_publications, list):
        raise ConfigError("publications must be a list")

    return BuildSpec(
        project=project,
        tasks=[_parse_task(task) for task in raw_tasks],
        output_dir=output_dir,
        checksums=_parse_checksums(raw.get("checksums")),
        publications=[_parse_publication(pub) for pub in raw_publications],
    )


def load_build_file(path: Path) -> BuildSpec:
    if has_symlink_ancestor(path):
        raise ConfigError(f"build file path must not include symlink: {path}")
    try:
        meta = path.lstat()
    except FileNotFoundError as exc:
        raise ConfigError(f"build file not found: {path}") from exc
    except (OSError, RuntimeError) as exc:
        raise ConfigError(f"failed to read build file: {path}") from exc
    if stat.S_ISLNK(meta.st_mode):
        raise ConfigError(f"build file must not be symlink: {path}")
    if not stat.S_ISREG(meta.st_mode):
        raise ConfigError(f"failed to read build file: {path}")

    open_flags = os.O_RDONLY
    if hasattr(os, "O_NOFOLLOW"):
        open_flags |= os.O_NOFOLLOW
    fd: int | None = None
    try:
        fd = os.open(str(path), open_flags)
        with os.fdopen(fd, "r", encoding="utf-8") as f:
            fd = None
            content = f.read()
    except UnicodeError as exc:
        raise ConfigError(f"failed to decode build file as utf-8: {path}") from exc
    except OSError as exc:
        if exc.errno == errno.ELOOP:
            raise ConfigError(f"build file must not be symlink: {path}") from exc
        raise ConfigError(f"failed to read build file: {path}") from exc
    finally:
        if fd is not None:
            with suppress(OSError):
                os.close(fd)

    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse yaml: {exc}") from exc
    return parse_build(raw)
