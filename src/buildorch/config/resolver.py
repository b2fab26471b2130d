"""Resolve project metadata from raw configuration."""

from __future__ import annotations

from collections.abc import Mapping

from buildorch.config.schema import BuildInfoSpec, ProjectSpec
from buildorch.util.errors import ConfigError, MissingFieldError
from buildorch.util.path_guard import is_safe_segment

_REQUIRED_FIELDS = ("name", "group", "version")
_ALLOWED_PROJECT_KEYS = {"name", "group", "version", "description", "build_info"}
_ALLOWED_BUILD_INFO_KEYS = {"output_module", "filename"}


def _optional_str(raw: Mapping[str, object], key: str, where: str) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{where}.{key} must be a string")
    return value


def _resolve_build_info(raw: object) -> BuildInfoSpec | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ConfigError("project.build_info must be a mapping")
    unknown = set(raw.keys()) - _ALLOWED_BUILD_INFO_KEYS
    if unknown:
        raise ConfigError(f"project.build_info has unknown fields: {sorted(unknown)}")
    if raw.get("output_module") is None:
        raise MissingFieldError("build_info.output_module")
    output_module = _optional_str(raw, "output_module", "project.build_info")
    assert output_module is not None
    if not output_module.strip() or any(not part for part in output_module.split(".")):
        raise ConfigError("project.build_info.output_module must be a dotted module name")
    filename = _optional_str(raw, "filename", "project.build_info")
    if filename is None:
        return BuildInfoSpec(output_module=output_module)
    if not filename.strip() or "/" in filename or "\\" in filename:
        raise ConfigError("project.build_info.filename must be a plain file name")
    return BuildInfoSpec(output_module=output_module, filename=filename)


def resolve_project(raw: Mapping[str, object]) -> ProjectSpec:
    """Build a ``ProjectSpec`` from raw configuration.

    Only the mapping passed in is consulted. Required fields must be present.
    Blank values are left to the publication generator to reject; any other
    value must be usable as a single path component.
    """
    if not isinstance(raw, Mapping):
        raise ConfigError("project must be a mapping")
    if any(not isinstance(key, str) for key in raw):
        raise ConfigError("project fields must use string keys")
    unknown = set(raw.keys()) - _ALLOWED_PROJECT_KEYS
    if unknown:
        raise ConfigError(f"project has unknown fields: {sorted(unknown)}")

    values: dict[str, str] = {}
    for key in _REQUIRED_FIELDS:
        if raw.get(key) is None:
            raise MissingFieldError(key)
        value = raw[key]
        # YAML reads 1.10 as the float 1.1, so only integers are converted
        if isinstance(value, float):
            raise ConfigError(f"project.{key} must be a quoted string")
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str):
            raise ConfigError(f"project.{key} must be a string")
        if value.strip() and not is_safe_segment(value):
            raise ConfigError(
                f"project.{key} must match ^[A-Za-z0-9][A-Za-z0-9._+-]*$ without '..'"
            )
        values[key] = value

    return ProjectSpec(
        name=values["name"],
        group=values["group"],
        version=values["version"],
        description=_optional_str(raw, "description", "project"),
        build_info=_resolve_build_info(raw.get("build_info")),
    )
