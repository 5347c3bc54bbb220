"""Header unit classification.

Header units are imported headers (`import <vector>;`, `import "util.h";`).
They are split into standard library and user header units because the
standard library ones have to be built first: user header units may import
them.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .module_graph import ModuleGraph
from .module_info import LookupMethod
from .stl_headers import is_stl_header


class HeaderUnitType(Enum):
    """Spelling of a header unit import."""

    ANGLE = "angle"
    QUOTE = "quote"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_method(cls, method: LookupMethod) -> "HeaderUnitType":
        return cls.ANGLE if method == LookupMethod.INCLUDE_ANGLE else cls.QUOTE


@dataclass(frozen=True)
class HeaderUnit:
    """A header compiled once and imported like a module."""

    name: str
    path: Optional[Path]
    type: HeaderUnitType


def get_headerunits(
    graph: ModuleGraph, object_files: list[str]
) -> tuple[Optional[list[HeaderUnit]], Optional[list[HeaderUnit]]]:
    """Collect the header units required by a batch.

    Only include-angle and include-quote requirements count; by-name module
    imports are not header units. Entries are de-duplicated by name, the
    first occurrence in batch order wins.

    Args:
        graph: Module graph of the scope
        object_files: Units of the batch, in batch order

    Returns:
        (user_headerunits, stl_headerunits), each None when empty
    """
    user_headerunits: list[HeaderUnit] = []
    stl_headerunits: list[HeaderUnit] = []
    seen_user: set[str] = set()
    seen_stl: set[str] = set()

    for object_file in object_files:
        unit = graph.get(object_file)
        if unit is None:
            continue
        for name, requirement in unit.requires.items():
            if requirement.method == LookupMethod.BY_NAME:
                continue
            headerunit = HeaderUnit(
                name=name,
                path=requirement.path,
                type=HeaderUnitType.from_method(requirement.method),
            )
            if is_stl_header(name):
                if name not in seen_stl:
                    seen_stl.add(name)
                    stl_headerunits.append(headerunit)
            elif name not in seen_user:
                seen_user.add(name)
                user_headerunits.append(headerunit)

    return (user_headerunits or None, stl_headerunits or None)
