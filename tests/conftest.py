from __future__ import annotations

from pathlib import Path

import pytest

from buildorch.config.schema import ProjectSpec

ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def project() -> ProjectSpec:
    return ProjectSpec(name="lib", group="org.example", version="1.0.0")


@pytest.fixture
def fake_compiler() -> Path:
    return ROOT / "tools" / "fake_compiler.py"
