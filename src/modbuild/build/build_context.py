"""Build Scope - per-target configuration for module-aware builds.

This module defines:
- BuildScope: Everything the module rules need to know about one target
- SourceBatch: The target's module sources with derived object/depend files

Design:
    BuildScope is created once per target (by the CLI or a caller's build
    step) and flows through the scanner, the graph builder, and the toolchain
    adapters. It only derives paths; it never compiles anything.

    Build directory layout for a scope named "app":
        <build_dir>/.objs/app/<relative source>.o      object files
        <build_dir>/.deps/app/<relative source>.d      depend files
        <build_dir>/.deps/app/<relative source>.json   raw scanner output
        <build_dir>/.gens/app/rules/modules/cache/     module BMI files
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .module_info import normalize_output_path


@dataclass(frozen=True)
class BuildScope:
    """Build-scope metadata for one target.

    Attributes:
        name: Target name, also the cache identity of the scope
        project_dir: Project root; relative sources are resolved against it
        build_dir: Root build directory
        compiler: C++ compiler executable (e.g. "g++", "clang++-17", "cl.exe")
        include_dirs: Target's own include directories
        package_include_dirs: Include directories contributed by packages
        deps: Dependency scopes, in link order
        module_sources: Sources that are compiled as module units
    """

    name: str
    project_dir: Path
    build_dir: Path
    compiler: str
    include_dirs: tuple[Path, ...] = ()
    package_include_dirs: tuple[Path, ...] = ()
    deps: tuple["BuildScope", ...] = ()
    module_sources: tuple[Path, ...] = ()

    def absolute_source(self, source_file: Path) -> Path:
        """Resolve a source path against the project directory."""
        if source_file.is_absolute():
            return source_file
        return (self.project_dir / source_file).absolute()

    def _relative_source(self, source_file: Path) -> Path:
        absolute = self.absolute_source(source_file)
        try:
            return absolute.relative_to(self.project_dir.absolute())
        except ValueError:
            # Sources outside the project land directly under the scope dir
            return Path(absolute.name)

    def object_file(self, source_file: Path) -> Path:
        """Object file produced for a source."""
        relative = self._relative_source(source_file)
        return self.build_dir / ".objs" / self.name / relative.parent / f"{relative.name}.o"

    def depend_file(self, source_file: Path) -> Path:
        """Depend file holding the scanned dependency info of a source."""
        relative = self._relative_source(source_file)
        return self.build_dir / ".deps" / self.name / relative.parent / f"{relative.name}.d"

    @property
    def autogen_dir(self) -> Path:
        """Directory for generated files of this scope."""
        return self.build_dir / ".gens" / self.name

    def modules_cachedir(self) -> Path:
        """Directory holding the BMI files of this scope, created on demand."""
        cachedir = self.autogen_dir / "rules" / "modules" / "cache"
        cachedir.mkdir(parents=True, exist_ok=True)
        return cachedir

    def dependency_include_dirs(self) -> list[Path]:
        """Include directories exported by dependency scopes, in dep order."""
        include_dirs: list[Path] = []
        for dep in self.deps:
            include_dirs.extend(dep.include_dirs)
        return include_dirs

    def contains_modules(self) -> bool:
        """Whether this scope or any of its dependencies has module sources."""
        if self.module_sources:
            return True
        return any(dep.module_sources for dep in self.deps)

    def source_batch(self) -> "SourceBatch":
        """Build the module source batch with object and depend files filled in."""
        return SourceBatch.for_scope(self)


@dataclass
class SourceBatch:
    """Module sources of one scope with their derived files.

    Attributes:
        source_files: Module source files
        object_files: Normalized object file identities, parallel to source_files
        depend_files: Depend files, parallel to source_files
        source_kind: Tool kind used to compile the batch
    """

    source_files: list[Path]
    object_files: list[str] = field(default_factory=list)
    depend_files: list[Path] = field(default_factory=list)
    source_kind: str = "cxx"

    @classmethod
    def for_scope(cls, scope: BuildScope, source_files: Optional[list[Path]] = None) -> "SourceBatch":
        """Create a batch for a scope, deriving object and depend files."""
        sources = list(source_files) if source_files is not None else list(scope.module_sources)
        return cls(
            source_files=sources,
            object_files=[normalize_output_path(scope.object_file(s)) for s in sources],
            depend_files=[scope.depend_file(s) for s in sources],
        )

    def __len__(self) -> int:
        return len(self.source_files)
