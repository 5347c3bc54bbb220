"""Pytest configuration and fixtures for modbuild tests."""

from pathlib import Path

import pytest

from modbuild.build.build_context import BuildScope
from modbuild.toolchains.base import CompilerFamily, ModuleToolchain


class FakeToolchain(ModuleToolchain):
    """Toolchain adapter with fixed system include dirs and no compiler probing."""

    family = CompilerFamily.GCC

    def __init__(self, include_dirs: list[Path] | None = None, extension: str = ".gcm"):
        super().__init__("g++")
        self.include_dirs = include_dirs if include_dirs is not None else []
        self.extension = extension

    def bmi_extension(self) -> str:
        return self.extension

    def _probe_include_dirs(self, scope: BuildScope) -> list[Path]:
        return list(self.include_dirs)


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Empty project with a src/ directory."""
    project = tmp_path / "project"
    (project / "src").mkdir(parents=True)
    return project


@pytest.fixture
def make_scope(project_dir: Path):
    """Factory for build scopes rooted at project_dir."""

    def _make_scope(**overrides) -> BuildScope:
        params = {
            "name": "app",
            "project_dir": project_dir,
            "build_dir": project_dir / "build",
            "compiler": "g++",
        }
        params.update(overrides)
        return BuildScope(**params)

    return _make_scope


@pytest.fixture
def fake_toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def make_toolchain():
    """Factory for FakeToolchain instances."""
    return FakeToolchain
