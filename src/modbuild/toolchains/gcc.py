"""GCC / Clang module support.

Both drivers print their system include search list with `-v`:

    #include "..." search starts here:
    #include <...> search starts here:
     /usr/include/c++/13
     /usr/include/x86_64-linux-gnu/c++/13
     /usr/include
    End of search list.

Neither ships a scanner this package drives, so sources are scanned with the
fallback scanner.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

from modbuild.subprocess_utils import safe_run

from .base import CompilerFamily, ModuleToolchain

if TYPE_CHECKING:
    from modbuild.build.build_context import BuildScope

logger = logging.getLogger(__name__)

_SEARCH_START = "#include <...> search starts here:"
_SEARCH_END = "End of search list."


def parse_include_search_list(output: str) -> list[Path]:
    """Extract system include directories from `-v` preprocessor output."""
    include_dirs: list[Path] = []
    in_list = False
    for line in output.splitlines():
        if line.startswith(_SEARCH_START):
            in_list = True
            continue
        if line.startswith(_SEARCH_END):
            break
        if in_list:
            entry = line.strip()
            # Darwin frameworks are not header directories
            if entry.endswith("(framework directory)"):
                continue
            if entry:
                include_dirs.append(Path(entry))
    return include_dirs


class GCCModuleToolchain(ModuleToolchain):
    """Module support for g++."""

    family = CompilerFamily.GCC

    def bmi_extension(self) -> str:
        return ".gcm"

    def _probe_include_dirs(self, scope: "BuildScope") -> list[Path]:
        cmd = [self.compiler, "-E", "-x", "c++", "-v", os.devnull]
        try:
            result = safe_run(cmd, capture_output=True, text=True, timeout=60)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Failed to query include dirs from {self.compiler}: {e}")
            return []
        if result.returncode != 0:
            logger.warning(f"{self.compiler} exited with {result.returncode} while listing include dirs")
        return parse_include_search_list(result.stderr)


class ClangModuleToolchain(GCCModuleToolchain):
    """Module support for clang++."""

    family = CompilerFamily.CLANG

    def bmi_extension(self) -> str:
        return ".pcm"
