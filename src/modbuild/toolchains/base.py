"""Toolchain adapter interface for module-aware builds.

Each supported compiler family implements ModuleToolchain. The adapter knows
the family's BMI extension, where its system headers live, and how to scan
module sources for dependency information.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from modbuild.build.fallback_scanner import FallbackScanner

if TYPE_CHECKING:
    from modbuild.build.build_context import BuildScope, SourceBatch

logger = logging.getLogger(__name__)


class UnsupportedCompilerError(Exception):
    """Raised when the active compiler has no module support adapter."""

    pass


class CompilerFamily(Enum):
    """Compiler families with C++ module support."""

    CLANG = "clang"
    GCC = "gcc"
    MSVC = "msvc"

    def __str__(self) -> str:
        return self.value


_VERSION_SUFFIX = r"(-\d+(\.\d+)*)?"
_FAMILY_PATTERNS: tuple[tuple[CompilerFamily, re.Pattern[str]], ...] = (
    (CompilerFamily.CLANG, re.compile(rf"^(.*-)?clang(\+\+)?{_VERSION_SUFFIX}$")),
    (CompilerFamily.GCC, re.compile(rf"^(.*-)?(gcc|g\+\+){_VERSION_SUFFIX}$")),
    (CompilerFamily.MSVC, re.compile(r"^cl$")),
)


def detect_compiler_family(compiler: str) -> CompilerFamily:
    """Map a compiler executable to its family.

    Args:
        compiler: Compiler name or path (e.g. "/usr/bin/g++-13", "clang++", "cl.exe")

    Returns:
        The compiler family

    Raises:
        UnsupportedCompilerError: If the compiler is not a supported family
    """
    name = Path(compiler).name.lower()
    if name.endswith(".exe"):
        name = name[: -len(".exe")]
    for family, pattern in _FAMILY_PATTERNS:
        if pattern.match(name):
            return family
    raise UnsupportedCompilerError(f"compiler({compiler}): does not support c++ module!")


class ModuleToolchain(ABC):
    """Capabilities a compiler family provides to the module rules."""

    family: CompilerFamily

    def __init__(self, compiler: str):
        """Initialize the adapter.

        Args:
            compiler: C++ compiler executable
        """
        self.compiler = compiler
        self._include_dirs_cache: Optional[list[Path]] = None

    @abstractmethod
    def bmi_extension(self) -> str:
        """File extension of binary module interfaces (e.g. ".gcm")."""

    @abstractmethod
    def _probe_include_dirs(self, scope: "BuildScope") -> list[Path]:
        """Query the compiler for its system include directories."""

    def toolchain_include_dirs(self, scope: "BuildScope") -> list[Path]:
        """System include directories of the toolchain, probed once per adapter."""
        if self._include_dirs_cache is None:
            self._include_dirs_cache = self._probe_include_dirs(scope)
            logger.debug(f"{self.family} include dirs: {self._include_dirs_cache}")
        return list(self._include_dirs_cache)

    def needs_scan(self, scope: "BuildScope", source_file: Path, depend_file: Path) -> bool:
        """A source is rescanned when its depend file is missing or older."""
        if not depend_file.exists():
            return True
        try:
            return scope.absolute_source(source_file).stat().st_mtime > depend_file.stat().st_mtime
        except OSError as e:
            logger.warning(f"Failed to check file times for {source_file}: {e} - rescanning")
            return True

    def scan_source(self, scope: "BuildScope", source_file: Path, json_file: Path) -> None:
        """Write the dependency document of one source to json_file."""
        FallbackScanner(scope, self).generate_dependencies(json_file, source_file)

    def generate_dependencies(self, scope: "BuildScope", batch: "SourceBatch") -> bool:
        """Scan the batch's out-of-date sources and refresh their depend files.

        Args:
            scope: Build scope of the batch
            batch: Module sources to scan

        Returns:
            True if any dependency info changed

        Raises:
            ModuleScanError: If a source cannot be scanned
        """
        changed = False
        for source_file, depend_file in zip(batch.source_files, batch.depend_files):
            if not self.needs_scan(scope, source_file, depend_file):
                logger.debug(f"Dependency info up to date: {source_file}")
                continue

            json_file = depend_file.with_suffix(".json")
            self.scan_source(scope, source_file, json_file)

            depend_file.parent.mkdir(parents=True, exist_ok=True)
            with open(depend_file, "w", encoding="utf-8") as f:
                json.dump({"moduleinfo": json_file.read_text(encoding="utf-8")}, f)
            logger.debug(f"Generated dependency info: {source_file}")
            changed = True
        return changed
