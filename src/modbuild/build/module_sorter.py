"""Topological ordering of module units.

Orders the units of a batch so that every unit providing a module comes
before every unit importing it. Uses a depth-first visit with temporary and
permanent marks; meeting a temporarily marked unit again means the modules
depend on each other and the batch cannot be compiled in any order.
"""

import logging
from dataclasses import dataclass
from typing import Iterator

from .module_graph import ModuleGraph

logger = logging.getLogger(__name__)


class CyclicModuleDependencyError(ValueError):
    """Raised when module units depend on each other in a cycle."""

    pass


@dataclass
class _SortNode:
    unit: str
    marked: bool = False
    temp_marked: bool = False


def _dependents(node: _SortNode, nodes: list[_SortNode], graph: ModuleGraph) -> Iterator[_SortNode]:
    provides = graph[node.unit].provides
    for other in nodes:
        if other is not node and any(name in graph[other.unit].requires for name in provides):
            yield other


def _visit(start: _SortNode, nodes: list[_SortNode], graph: ModuleGraph, output: list[str]) -> None:
    # Iterative; import chains can be deeper than the recursion limit
    start.temp_marked = True
    stack = [(start, _dependents(start, nodes, graph))]
    while stack:
        node, pending = stack[-1]
        for other in pending:
            if other.marked:
                continue
            if other.temp_marked:
                raise CyclicModuleDependencyError(f"Cyclic module dependency detected at {other.unit}")
            other.temp_marked = True
            stack.append((other, _dependents(other, nodes, graph)))
            break
        else:
            stack.pop()
            node.temp_marked = False
            node.marked = True
            output.insert(0, node.unit)


def sort_modules_by_dependencies(object_files: list[str], graph: ModuleGraph) -> list[str]:
    """Derive a compile order for a batch.

    Only units providing at least one module take part in the sort. Units that
    provide nothing (pure importers, or units without dependency info) follow
    the sorted providers in their original batch order.

    Args:
        object_files: Units of the batch, in batch order
        graph: Module graph of the scope

    Returns:
        Units in compile order

    Raises:
        CyclicModuleDependencyError: If the providers form a dependency cycle
    """
    nodes: list[_SortNode] = []
    consumers: list[str] = []
    for object_file in object_files:
        unit = graph.get(object_file)
        if unit is not None and unit.is_provider:
            nodes.append(_SortNode(unit=object_file))
        else:
            consumers.append(object_file)

    output: list[str] = []
    while True:
        node = next((n for n in nodes if not n.marked and not n.temp_marked), None)
        if node is None:
            break
        _visit(node, nodes, graph, output)

    logger.debug(f"Sorted {len(output)} module providers, {len(consumers)} importers follow")
    return output + consumers
