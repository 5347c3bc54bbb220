"""Module support for one build scope.

Ties the pieces together for a target:

    1. Select the toolchain adapter for the scope's compiler (memoized)
    2. Scan the module sources (adapter decides native or fallback scanning)
    3. Load and cross-reference the dependency info into a module graph,
       reusing the persisted graph when nothing changed
    4. Classify header units and sort the units into compile order

The resulting ModuleBuildPlan is what a build-execution step consumes.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from modbuild.toolchains import ModuleToolchain, create_toolchain

from .build_context import BuildScope, SourceBatch
from .headerunits import HeaderUnit, get_headerunits
from .module_cache import ModuleCaches
from .module_graph import ModuleGraph, build_module_graph, load_module_infos
from .module_sorter import sort_modules_by_dependencies

logger = logging.getLogger(__name__)

_SUPPORT_NAMESPACE = "modules_support"
_GRAPH_NAMESPACE = "modules"


def modules_support(scope: BuildScope, caches: ModuleCaches) -> ModuleToolchain:
    """Get the toolchain adapter of a scope, memoized for the process lifetime.

    Raises:
        UnsupportedCompilerError: If the scope's compiler has no module support
    """
    toolchain = caches.memcache.get2(_SUPPORT_NAMESPACE, scope.name)
    if toolchain is None:
        toolchain = create_toolchain(scope.compiler)
        logger.debug(f"Using {toolchain.family} module support for {scope.name}")
        caches.memcache.set2(_SUPPORT_NAMESPACE, scope.name, toolchain)
    return toolchain


def bmi_extension(scope: BuildScope, caches: ModuleCaches) -> str:
    """BMI file extension of the scope's toolchain."""
    return modules_support(scope, caches).bmi_extension()


def _cached_graph(scope: BuildScope, batch: SourceBatch, caches: ModuleCaches) -> Optional[ModuleGraph]:
    """Graph cached for exactly this batch's units, or None."""
    entry = caches.memcache.get2(_GRAPH_NAMESPACE, scope.name)
    if entry is not None and entry["units"] == batch.object_files:
        return entry["graph"]

    cached = caches.localcache.get(scope.name)
    if not isinstance(cached, dict) or cached.get("units") != batch.object_files:
        return None
    logger.debug(f"Reusing cached module graph for {scope.name}")
    graph = ModuleGraph.from_dict(cached["graph"])
    caches.memcache.set2(_GRAPH_NAMESPACE, scope.name, {"units": list(batch.object_files), "graph": graph})
    return graph


def generate_dependencies(scope: BuildScope, batch: SourceBatch, caches: ModuleCaches) -> ModuleGraph:
    """Scan a batch and return its module graph.

    The cached graph is reused when the scan reports no change and the graph
    was built for the same units as the batch; otherwise the dependency info
    is re-parsed and both cache tiers are overwritten.

    Raises:
        ModuleScanError: If a source cannot be scanned
        ModuleInfoError: If dependency info violates the interchange schema
    """
    toolchain = modules_support(scope, caches)
    changed = toolchain.generate_dependencies(scope, batch)

    if not changed:
        graph = _cached_graph(scope, batch, caches)
        if graph is not None:
            return graph

    module_infos = load_module_infos(scope, batch)
    graph = build_module_graph(module_infos, scope.modules_cachedir(), toolchain.bmi_extension())
    units = list(batch.object_files)
    caches.memcache.set2(_GRAPH_NAMESPACE, scope.name, {"units": units, "graph": graph})
    caches.localcache.set(scope.name, {"units": units, "graph": graph.to_dict()})
    caches.localcache.save()
    return graph


@dataclass
class ModuleBuildPlan:
    """Everything a build step needs to compile the modules of a scope.

    Attributes:
        scope_name: Name of the planned scope
        compile_order: Units (object files) in a legal compile order
        bmi_files: BMI paths each unit produces, keyed by unit then module name
        user_headerunits: User header units, None if there are none
        stl_headerunits: Standard library header units (built first), None if there are none
    """

    scope_name: str
    compile_order: list[str] = field(default_factory=list)
    bmi_files: dict[str, dict[str, Path]] = field(default_factory=dict)
    user_headerunits: Optional[list[HeaderUnit]] = None
    stl_headerunits: Optional[list[HeaderUnit]] = None

    @property
    def is_empty(self) -> bool:
        return not self.compile_order


def plan_module_build(scope: BuildScope, caches: ModuleCaches) -> ModuleBuildPlan:
    """Scan, cross-reference and order the module sources of a scope.

    Raises:
        UnsupportedCompilerError: If the scope's compiler has no module support
        ModuleScanError: If a source cannot be scanned
        ModuleInfoError: If dependency info violates the interchange schema
        CyclicModuleDependencyError: If the modules depend on each other in a cycle
    """
    if not scope.contains_modules():
        logger.debug(f"{scope.name} has no module sources")
        return ModuleBuildPlan(scope_name=scope.name)

    # Select the toolchain before scanning so unsupported compilers fail early
    modules_support(scope, caches)

    batch = scope.source_batch()
    graph = generate_dependencies(scope, batch, caches)
    user_headerunits, stl_headerunits = get_headerunits(graph, batch.object_files)
    compile_order = sort_modules_by_dependencies(batch.object_files, graph)

    bmi_files: dict[str, dict[str, Path]] = {}
    for unit in compile_order:
        module = graph.get(unit)
        if module is not None and module.provides:
            bmi_files[unit] = {name: p.bmi for name, p in module.provides.items()}

    logger.info(
        f"Planned {len(compile_order)} module units for {scope.name} "
        f"({len(stl_headerunits or [])} stl / {len(user_headerunits or [])} user header units)"
    )
    return ModuleBuildPlan(
        scope_name=scope.name,
        compile_order=compile_order,
        bmi_files=bmi_files,
        user_headerunits=user_headerunits,
        stl_headerunits=stl_headerunits,
    )
