"""Fallback module scanner.

Produces dependency documents for compilers that cannot scan module
dependencies themselves. The scan is textual and heuristic:

    1. Strip // and /* */ comments (string literals are NOT honored, so a
       literal containing "//" or "/*" is stripped as if it were a comment)
    2. Find the first `export module <name>;` declaration
    3. Collect every `import <x>;` statement:
         import foo;          by-name, resolved later from the module graph
         import :part;        by-name, prefixed with the declaring module name
         import "util.h";     include-quote, relative to the importing file
         import <vector>;     include-angle, searched on the include path

The output uses the same interchange schema as native scanners so nothing
downstream needs to know which scanner ran.
"""

import json
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .module_info import DependencyRule, LookupMethod, ModuleInfo, ProvidedModule, RequiredModule

if TYPE_CHECKING:
    from modbuild.toolchains.base import ModuleToolchain

    from .build_context import BuildScope

logger = logging.getLogger(__name__)

# The fallback scanner emits the pre-standard document version
FALLBACK_FORMAT_VERSION = 0

_LINE_COMMENT_RE = re.compile(r"//[^\n]*")
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_MODULE_DECL_RE = re.compile(r"\bexport\s+module\s+(.+?)\s*;")
_IMPORT_RE = re.compile(r"\bimport\s+(.+?)\s*;")


class ModuleScanError(Exception):
    """Raised when a source file cannot be scanned for module dependencies."""

    pass


class HeaderNotFoundError(ModuleScanError):
    """Raised when an imported header cannot be located."""

    pass


def strip_comments(source_code: str) -> str:
    """Remove line and block comments textually.

    String and character literals are not tokenized, so comment markers or
    import/module keywords inside them are treated as code.
    """
    source_code = _LINE_COMMENT_RE.sub("", source_code)
    return _BLOCK_COMMENT_RE.sub("", source_code)


def find_file(name: str, search_paths: list[Path]) -> Optional[Path]:
    """Return the first search path entry containing name, or None."""
    for directory in search_paths:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


class FallbackScanner:
    """Scans module sources textually for one build scope.

    Example usage:
        scanner = FallbackScanner(scope, toolchain)
        module_info = scanner.generate_dependencies(json_file, Path("src/hello.mpp"))
    """

    def __init__(self, scope: "BuildScope", toolchain: "ModuleToolchain"):
        """Initialize the scanner.

        Args:
            scope: Build scope the sources belong to
            toolchain: Active toolchain adapter (BMI extension, system include dirs)
        """
        self.scope = scope
        self.toolchain = toolchain

    def header_search_paths(self) -> list[Path]:
        """Search path for angle-bracket imports.

        Order: toolchain system include dirs, dependency scopes, packages,
        then the scope's own include dirs.
        """
        search_paths = list(self.toolchain.toolchain_include_dirs(self.scope))
        search_paths.extend(self.scope.dependency_include_dirs())
        search_paths.extend(self.scope.package_include_dirs)
        search_paths.extend(self.scope.include_dirs)
        return search_paths

    def find_quote_header_file(self, source_file: Path, header: str) -> Path:
        """Resolve a quoted import relative to the importing file.

        Raises:
            HeaderNotFoundError: If the header does not exist
        """
        path = self.scope.absolute_source(source_file).parent / header
        if not path.is_file():
            raise HeaderNotFoundError(f'"{header}" imported from {source_file} not found at {path}')
        return path

    def find_angle_header_file(self, header: str) -> Path:
        """Resolve an angle-bracket import on the header search path.

        Raises:
            HeaderNotFoundError: If no search path contains the header
        """
        path = find_file(header, self.header_search_paths())
        if path is None:
            raise HeaderNotFoundError(f"<{header}> not found!")
        return path

    def scan_source(self, source_file: Path, source_code: str) -> DependencyRule:
        """Scan source text into a dependency rule.

        Args:
            source_file: Path of the scanned source (for resolution and the rule identity)
            source_code: Contents of the source file

        Returns:
            The unit's dependency rule, outputs not included

        Raises:
            ModuleScanError: On a partition import outside of a module unit
            HeaderNotFoundError: If an imported header cannot be located
        """
        module_name: Optional[str] = None
        requires: list[RequiredModule] = []

        for line in strip_comments(source_code).split("\n"):
            if module_name is None:
                match = _MODULE_DECL_RE.search(line)
                if match:
                    module_name = match.group(1).strip()
            match = _IMPORT_RE.search(line)
            if not match:
                continue
            requires.append(self._parse_import(source_file, match.group(1).strip(), module_name))

        provides: list[ProvidedModule] = []
        if module_name is not None:
            provides.append(
                ProvidedModule(
                    logical_name=module_name,
                    source_path=str(self.scope.absolute_source(source_file)),
                )
            )

        logger.debug(
            f"Scanned {source_file}: module={module_name}, "
            f"imports={[r.logical_name for r in requires]}"
        )
        return DependencyRule(
            primary_output=str(self.scope.object_file(source_file)),
            provides=provides,
            requires=requires,
        )

    def _parse_import(self, source_file: Path, name: str, module_name: Optional[str]) -> RequiredModule:
        if name.startswith(":"):
            if module_name is None:
                raise ModuleScanError(f"partition import '{name}' outside of a module unit in {source_file}")
            # Partitions belong to the primary module, not to the declaring partition
            primary_module = module_name.split(":", 1)[0]
            return RequiredModule(logical_name=primary_module + name)
        if name.startswith('"'):
            header = name[1:-1]
            return RequiredModule(
                logical_name=header,
                source_path=str(self.find_quote_header_file(source_file, header)),
                lookup_method=LookupMethod.INCLUDE_QUOTE,
                unique_on_source_path=True,
            )
        if name.startswith("<"):
            header = name[1:-1]
            return RequiredModule(
                logical_name=header,
                source_path=str(self.find_angle_header_file(header)),
                lookup_method=LookupMethod.INCLUDE_ANGLE,
                unique_on_source_path=True,
            )
        return RequiredModule(logical_name=name)

    def generate_dependencies(self, json_file: Path, source_file: Path) -> ModuleInfo:
        """Scan a source file and write its dependency document.

        Args:
            json_file: Where to write the dependency document
            source_file: Source file to scan

        Returns:
            The written document

        Raises:
            ModuleScanError: If the source cannot be read or scanned
        """
        absolute_source = self.scope.absolute_source(source_file)
        try:
            source_code = absolute_source.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ModuleScanError(f"Failed to read {absolute_source}: {e}") from e

        rule = self.scan_source(source_file, source_code)
        outputs = [str(json_file)]
        if rule.provides:
            outputs.append(rule.provides[0].logical_name + self.toolchain.bmi_extension())
        rule = DependencyRule(
            primary_output=rule.primary_output,
            outputs=outputs,
            provides=rule.provides,
            requires=rule.requires,
        )

        module_info = ModuleInfo(
            version=FALLBACK_FORMAT_VERSION,
            revision=0,
            rules=[rule],
            source_file=absolute_source,
        )
        json_file.parent.mkdir(parents=True, exist_ok=True)
        with open(json_file, "w", encoding="utf-8") as f:
            json.dump(module_info.to_dict(), f, indent=2)
        return module_info
