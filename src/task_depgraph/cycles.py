"""Cycle detection over a dependency map.

Classic depth-first back-edge identification.  A *back-edge* is an edge
whose target is on the current traversal path; every cycle in the graph
contains at least one, and removing all back-edges found by a complete
traversal leaves the graph acyclic.

The traversal keeps an explicit stack of (node, dependency iterator)
frames instead of recursing, so long dependency chains cannot exhaust the
interpreter's recursion limit.  The visiting order is the same as the
recursive formulation: dependencies are explored in stored order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from .dep_graph import DependencyMap
from .models import NodeId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Edge:
    """A directed dependency edge: ``from_node`` depends on ``to_node``."""

    from_node: NodeId
    to_node: NodeId

    def __str__(self) -> str:
        return f"{self.from_node} -> {self.to_node}"


def _walk_back_edges(
    start: NodeId,
    dependency_map: DependencyMap,
    visited: set[NodeId],
    recursion_stack: set[NodeId],
) -> Iterator[tuple[Edge, list[NodeId]]]:
    """Yield each back-edge reachable from *start* with the cycle it closes.

    The cycle path runs from the back-edge target along the traversal path
    to the back-edge source, then repeats the target.
    """
    if start in visited:
        return

    visited.add(start)
    recursion_stack.add(start)
    path: list[NodeId] = [start]
    frames = [iter(dependency_map.dependencies_of(start))]

    while frames:
        node = path[-1]
        for dep in frames[-1]:
            if dep in recursion_stack:
                # Checked before descending, so self-loops land here too.
                cycle = path[path.index(dep):] + [dep]
                yield Edge(node, dep), cycle
            elif dep not in visited:
                visited.add(dep)
                recursion_stack.add(dep)
                path.append(dep)
                frames.append(iter(dependency_map.dependencies_of(dep)))
                break
        else:
            frames.pop()
            recursion_stack.discard(path.pop())


def find_cycles(
    start: NodeId,
    dependency_map: DependencyMap,
    visited: set[NodeId] | None = None,
    recursion_stack: set[NodeId] | None = None,
) -> list[Edge]:
    """Find the back-edges reachable from *start*.

    Args:
        start: Node to start the traversal from.
        dependency_map: The graph to traverse.
        visited: Nodes already explored; shared across calls in one run so
            common dependencies are not re-explored.  Updated in place.
        recursion_stack: Nodes on the current path.  Empty between calls.

    Returns:
        Edges that close a cycle, in discovery order.  Empty when *start*
        was already visited or no cycle is reachable from it.
    """
    if visited is None:
        visited = set()
    if recursion_stack is None:
        recursion_stack = set()
    return [
        edge
        for edge, _ in _walk_back_edges(start, dependency_map, visited, recursion_stack)
    ]


def find_all_cycles(dependency_map: DependencyMap) -> list[Edge]:
    """Find every back-edge in the graph.

    Runs :func:`find_cycles` from each node not yet visited, in map order,
    because a single traversal cannot see cycles reachable only from other
    roots.

    Returns:
        Deduplicated list of back-edges in discovery order.
    """
    visited: set[NodeId] = set()
    recursion_stack: set[NodeId] = set()
    edges: dict[Edge, None] = {}
    for node in dependency_map.graph:
        if node in visited:
            continue
        for edge in find_cycles(node, dependency_map, visited, recursion_stack):
            edges.setdefault(edge, None)

    if edges:
        logger.debug("Found %d back-edge(s): %s", len(edges), ", ".join(map(str, edges)))
    return list(edges)


def find_cycle_paths(dependency_map: DependencyMap) -> list[list[NodeId]]:
    """Return the node path of each cycle closed by a back-edge.

    Each path starts and ends with the back-edge target, e.g.
    ``[1, 2, 3, 1]`` for the back-edge ``3 -> 1``.
    """
    visited: set[NodeId] = set()
    recursion_stack: set[NodeId] = set()
    seen: set[Edge] = set()
    paths: list[list[NodeId]] = []
    for node in dependency_map.graph:
        for edge, cycle in _walk_back_edges(node, dependency_map, visited, recursion_stack):
            if edge not in seen:
                seen.add(edge)
                paths.append(cycle)
    return paths


def has_cycle(dependency_map: DependencyMap) -> bool:
    """Whether the graph contains at least one cycle."""
    visited: set[NodeId] = set()
    recursion_stack: set[NodeId] = set()
    for node in dependency_map.graph:
        for _ in _walk_back_edges(node, dependency_map, visited, recursion_stack):
            return True
    return False
