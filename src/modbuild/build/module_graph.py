"""Module dependency graph.

Cross-references the provides/requires entries of every scanned unit into a
graph keyed by each unit's primary output (object file):

    {
      "build/.objs/app/src/hello.mpp.o": ModuleUnit(
        provides={"hello": ModuleProvision(bmi=".../modules/cache/hello.gcm", source_file="src/hello.mpp")},
        requires={"iostream": ModuleRequirement(method=INCLUDE_ANGLE, path="/usr/include/c++/13/iostream")},
      ),
      "build/.objs/app/src/main.cpp.o": ModuleUnit(
        requires={"hello": ModuleRequirement(method=BY_NAME, path=".../modules/cache/hello.gcm")},
      ),
    }
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator, Optional

from .module_info import (
    LookupMethod,
    ModuleInfo,
    ModuleInfoError,
    normalize_output_path,
    parse_module_info,
)

if TYPE_CHECKING:
    from .build_context import BuildScope, SourceBatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleProvision:
    """Artifact of a provided module.

    Attributes:
        bmi: Binary module interface path the provision compiles to
        source_file: Source file that declares the module, if known
    """

    bmi: Path
    source_file: Optional[Path] = None


@dataclass(frozen=True)
class ModuleRequirement:
    """A resolved requirement edge.

    Attributes:
        method: Lookup method the import was spelled with
        path: Resolved header or BMI path, None when externally satisfied
        unique: Scanner hint that the source path identifies the unit
    """

    method: LookupMethod
    path: Optional[Path] = None
    unique: bool = False


@dataclass
class ModuleUnit:
    """Provides/requires of one compiled unit."""

    provides: dict[str, ModuleProvision] = field(default_factory=dict)
    requires: dict[str, ModuleRequirement] = field(default_factory=dict)

    @property
    def is_provider(self) -> bool:
        return bool(self.provides)


@dataclass
class ModuleGraph:
    """Graph of compiled units keyed by normalized primary output."""

    units: dict[str, ModuleUnit] = field(default_factory=dict)

    def __contains__(self, unit: str) -> bool:
        return unit in self.units

    def __getitem__(self, unit: str) -> ModuleUnit:
        return self.units[unit]

    def __iter__(self) -> Iterator[str]:
        return iter(self.units)

    def __len__(self) -> int:
        return len(self.units)

    def get(self, unit: str) -> Optional[ModuleUnit]:
        return self.units.get(unit)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain JSON-compatible data."""
        data: dict[str, Any] = {}
        for unit, module in self.units.items():
            data[unit] = {
                "provides": {
                    name: {
                        "bmi": str(p.bmi),
                        "sourcefile": str(p.source_file) if p.source_file is not None else None,
                    }
                    for name, p in module.provides.items()
                },
                "requires": {
                    name: {
                        "method": r.method.value,
                        "path": str(r.path) if r.path is not None else None,
                        "unique": r.unique,
                    }
                    for name, r in module.requires.items()
                },
            }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModuleGraph":
        """Deserialize from data produced by to_dict()."""
        units: dict[str, ModuleUnit] = {}
        for unit, module in data.items():
            provides = {
                name: ModuleProvision(
                    bmi=Path(p["bmi"]),
                    source_file=Path(p["sourcefile"]) if p.get("sourcefile") else None,
                )
                for name, p in module.get("provides", {}).items()
            }
            requires = {
                name: ModuleRequirement(
                    method=LookupMethod(r["method"]),
                    path=Path(r["path"]) if r.get("path") else None,
                    unique=bool(r.get("unique", False)),
                )
                for name, r in module.get("requires", {}).items()
            }
            units[unit] = ModuleUnit(provides=provides, requires=requires)
        return cls(units=units)


def bmi_filename(logical_name: str, bmi_extension: str) -> str:
    """File name of an inferred BMI; partition separators are not path-safe."""
    return f"{logical_name}{bmi_extension}".replace(":", "-")


def load_module_infos(scope: "BuildScope", batch: "SourceBatch") -> list[ModuleInfo]:
    """Load the scanned dependency documents of a batch.

    Each depend file is a JSON object whose "moduleinfo" entry holds the raw
    interchange document. Sources without a depend file are skipped.

    Raises:
        ModuleInfoError: If a depend file cannot be decoded
    """
    module_infos: list[ModuleInfo] = []
    for source_file, depend_file in zip(batch.source_files, batch.depend_files):
        if not depend_file.is_file():
            logger.debug(f"No dependency info for {source_file}")
            continue
        try:
            with open(depend_file, "r", encoding="utf-8") as f:
                depend_data = json.load(f)
            raw = depend_data["moduleinfo"]
            document = json.loads(raw) if isinstance(raw, str) else raw
        except (json.JSONDecodeError, UnicodeDecodeError, KeyError, TypeError) as e:
            raise ModuleInfoError(f"invalid dependency info in {depend_file}: {e}") from e
        module_infos.append(parse_module_info(document, source_file=scope.absolute_source(source_file)))
    logger.debug(f"Loaded {len(module_infos)}/{len(batch)} module infos for {scope.name}")
    return module_infos


def build_module_graph(module_infos: list[ModuleInfo], cachedir: Path, bmi_extension: str) -> ModuleGraph:
    """Cross-reference dependency documents into a module graph.

    Pass 1 records the provisions of every rule. Pass 2 resolves every
    requirement: a scanner-reported source path wins, otherwise the BMI of the
    first unit providing the same logical name is used. Requirements nobody
    provides keep path=None and are assumed to be satisfied externally.

    Args:
        module_infos: Parsed documents, in scan order
        cachedir: Directory for inferred BMI paths
        bmi_extension: BMI file extension of the active toolchain (e.g. ".gcm")

    Returns:
        The module graph
    """
    graph = ModuleGraph()
    bmi_by_name: dict[str, Path] = {}

    for module_info in module_infos:
        for rule in module_info.rules:
            unit = ModuleUnit()
            for provide in rule.provides:
                if provide.compiled_module_path:
                    bmi = Path(provide.compiled_module_path)
                    if not bmi.is_absolute():
                        bmi = bmi.absolute()
                else:
                    bmi = cachedir / bmi_filename(provide.logical_name, bmi_extension)
                unit.provides[provide.logical_name] = ModuleProvision(bmi=bmi, source_file=module_info.source_file)
                bmi_by_name.setdefault(provide.logical_name, bmi)
            graph.units[normalize_output_path(rule.primary_output)] = unit

    for module_info in module_infos:
        for rule in module_info.rules:
            unit = graph.units[normalize_output_path(rule.primary_output)]
            for require in rule.requires:
                if require.source_path:
                    path: Optional[Path] = Path(require.source_path)
                else:
                    path = bmi_by_name.get(require.logical_name)
                    if path is None:
                        logger.debug(f"{require.logical_name} is not provided in this build, assuming external")
                unit.requires[require.logical_name] = ModuleRequirement(
                    method=require.method,
                    path=path,
                    unique=require.unique_on_source_path,
                )

    logger.info(f"Module graph: {len(graph)} units, {len(bmi_by_name)} provided modules")
    return graph
