"""MSVC module support.

cl.exe scans module dependencies natively with /scanDependencies and writes a
P1689 document. When cl cannot be started the fallback scanner is used.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

from modbuild.build.fallback_scanner import FallbackScanner, ModuleScanError
from modbuild.subprocess_utils import safe_run

from .base import CompilerFamily, ModuleToolchain

if TYPE_CHECKING:
    from modbuild.build.build_context import BuildScope

logger = logging.getLogger(__name__)


class MSVCModuleToolchain(ModuleToolchain):
    """Module support for cl.exe."""

    family = CompilerFamily.MSVC

    def bmi_extension(self) -> str:
        return ".ifc"

    def _probe_include_dirs(self, scope: "BuildScope") -> list[Path]:
        # cl takes its system include dirs from the INCLUDE environment variable
        include = os.environ.get("INCLUDE", "")
        return [Path(entry) for entry in include.split(os.pathsep) if entry]

    def scan_command(self, scope: "BuildScope", source_file: Path, json_file: Path) -> list[str]:
        """Command line that makes cl write the dependency document of a source."""
        cmd = [self.compiler, "/nologo", "/TP", "/std:c++latest", "/scanDependencies", str(json_file)]
        for include_dir in [*scope.dependency_include_dirs(), *scope.package_include_dirs, *scope.include_dirs]:
            cmd.append(f"/I{include_dir}")
        cmd.extend(["/c", str(scope.absolute_source(source_file)), f"/Fo{scope.object_file(source_file)}"])
        return cmd

    def scan_source(self, scope: "BuildScope", source_file: Path, json_file: Path) -> None:
        json_file.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.scan_command(scope, source_file, json_file)
        try:
            result = safe_run(cmd, capture_output=True, text=True, timeout=300)
        except OSError as e:
            logger.warning(f"Cannot run {self.compiler} ({e}), using fallback scanner for {source_file}")
            FallbackScanner(scope, self).generate_dependencies(json_file, source_file)
            return
        except subprocess.TimeoutExpired as e:
            raise ModuleScanError(f"Scanning {source_file} timed out") from e

        if result.returncode != 0:
            raise ModuleScanError(
                f"Scanning {source_file} failed with exit code {result.returncode}:\n{result.stdout}{result.stderr}"
            )
