"""Module dependency information (P1689 interchange format).

This module defines the in-memory form of the dependency documents emitted by
a module scanner, either a compiler's native scanner or the fallback scanner.

Document layout (https://www.open-std.org/jtc1/sc22/wg21/docs/papers/2022/p1689r5.html):

    {
      "version": 1,
      "revision": 0,
      "rules": [
        {
          "primary-output": "hello.mpp.o",
          "outputs": ["hello.mpp.json", "hello.gcm"],
          "provides": [{"logical-name": "hello", "source-path": "/src/hello.mpp"}],
          "requires": [
            {
              "logical-name": "iostream",
              "source-path": "/usr/include/c++/13/iostream",
              "lookup-method": "include-angle",
              "unique-on-source-path": true
            }
          ]
        }
      ]
    }
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

# Highest interchange version understood by the parser
MAX_SUPPORTED_VERSION = 1


class ModuleInfoError(ValueError):
    """Raised when a dependency document violates the interchange schema."""

    pass


class LookupMethod(Enum):
    """How an import was spelled in source."""

    BY_NAME = "by-name"
    INCLUDE_ANGLE = "include-angle"
    INCLUDE_QUOTE = "include-quote"

    def __str__(self) -> str:
        return self.value


def normalize_output_path(path: str | Path) -> str:
    """Normalize a build-output path into its canonical graph key form."""
    return os.path.normpath(str(path))


@dataclass(frozen=True)
class ProvidedModule:
    """A module (or partition) provided by one compiled unit."""

    logical_name: str
    source_path: Optional[str] = None
    compiled_module_path: Optional[str] = None
    unique_on_source_path: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"logical-name": self.logical_name}
        if self.source_path is not None:
            data["source-path"] = self.source_path
        if self.compiled_module_path is not None:
            data["compiled-module-path"] = self.compiled_module_path
        if self.unique_on_source_path:
            data["unique-on-source-path"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProvidedModule":
        logical_name = data.get("logical-name")
        if not logical_name:
            raise ModuleInfoError("provided module is missing 'logical-name'")
        return cls(
            logical_name=logical_name,
            source_path=data.get("source-path"),
            compiled_module_path=data.get("compiled-module-path"),
            unique_on_source_path=bool(data.get("unique-on-source-path", False)),
        )


@dataclass(frozen=True)
class RequiredModule:
    """A module or header unit required by one compiled unit."""

    logical_name: str
    source_path: Optional[str] = None
    lookup_method: Optional[LookupMethod] = None
    unique_on_source_path: bool = False

    @property
    def method(self) -> LookupMethod:
        """Lookup method, defaulting to by-name when the scanner omitted it."""
        return self.lookup_method if self.lookup_method is not None else LookupMethod.BY_NAME

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"logical-name": self.logical_name}
        if self.source_path is not None:
            data["source-path"] = self.source_path
        if self.lookup_method is not None:
            data["lookup-method"] = self.lookup_method.value
        if self.unique_on_source_path:
            data["unique-on-source-path"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RequiredModule":
        logical_name = data.get("logical-name")
        if not logical_name:
            raise ModuleInfoError("required module is missing 'logical-name'")
        method = data.get("lookup-method")
        try:
            lookup_method = LookupMethod(method) if method is not None else None
        except ValueError as e:
            raise ModuleInfoError(f"unknown lookup-method '{method}' for '{logical_name}'") from e
        return cls(
            logical_name=logical_name,
            source_path=data.get("source-path"),
            lookup_method=lookup_method,
            unique_on_source_path=bool(data.get("unique-on-source-path", False)),
        )


@dataclass(frozen=True)
class DependencyRule:
    """Dependency information for one compiled unit.

    Attributes:
        primary_output: Build output the rule is reported against (object file)
        outputs: Auxiliary artifacts produced alongside the primary output
        provides: Modules this unit provides
        requires: Modules and header units this unit imports
    """

    primary_output: str
    outputs: list[str] = field(default_factory=list)
    provides: list[ProvidedModule] = field(default_factory=list)
    requires: list[RequiredModule] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"primary-output": self.primary_output}
        if self.outputs:
            data["outputs"] = list(self.outputs)
        if self.provides:
            data["provides"] = [p.to_dict() for p in self.provides]
        data["requires"] = [r.to_dict() for r in self.requires]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DependencyRule":
        primary_output = data.get("primary-output")
        if not primary_output:
            raise ModuleInfoError("rule is missing 'primary-output'")
        return cls(
            primary_output=primary_output,
            outputs=list(data.get("outputs") or []),
            provides=[ProvidedModule.from_dict(p) for p in data.get("provides") or []],
            requires=[RequiredModule.from_dict(r) for r in data.get("requires") or []],
        )


@dataclass(frozen=True)
class ModuleInfo:
    """One parsed dependency document.

    Attributes:
        version: Interchange format version
        revision: Interchange format revision
        rules: One rule per scanned unit
        source_file: Source file the document was produced for, if known
    """

    version: int
    revision: int
    rules: list[DependencyRule]
    source_file: Optional[Path] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "revision": self.revision,
            "rules": [rule.to_dict() for rule in self.rules],
        }


def parse_module_info(data: dict[str, Any], source_file: Optional[Path] = None) -> ModuleInfo:
    """Parse a decoded dependency document.

    Versions above MAX_SUPPORTED_VERSION are rejected; older versions are
    read as a subset of the current one.

    Args:
        data: Decoded JSON document
        source_file: Source file the document belongs to (used in errors)

    Returns:
        Parsed ModuleInfo

    Raises:
        ModuleInfoError: If the document is malformed or too new
    """
    where = f" (from {source_file})" if source_file is not None else ""
    if not isinstance(data, dict):
        raise ModuleInfoError(f"dependency document must be a JSON object{where}")

    version = data.get("version")
    if not isinstance(version, int):
        raise ModuleInfoError(f"dependency document has no integer 'version'{where}")
    if version > MAX_SUPPORTED_VERSION:
        raise ModuleInfoError(
            f"unsupported dependency format version {version} "
            f"(maximum supported: {MAX_SUPPORTED_VERSION}){where}"
        )

    revision = data.get("revision", 0)
    if not isinstance(revision, int):
        raise ModuleInfoError(f"dependency document 'revision' must be an integer, got {revision!r}{where}")

    try:
        rules = [DependencyRule.from_dict(rule) for rule in data.get("rules") or []]
    except ModuleInfoError as e:
        raise ModuleInfoError(f"{e}{where}") from e

    return ModuleInfo(
        version=version,
        revision=revision,
        rules=rules,
        source_file=source_file,
    )
