"""Dependency graph builder for task snapshots.

Converts a list of tasks into an adjacency view keyed by node id, and
flags dependency references that do not match any task or subtask.
The map is built fresh for every operation and never persisted.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .models import NodeId, Task, iter_nodes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DanglingReference:
    """A dependency entry whose target does not exist in the snapshot."""

    node: NodeId
    dependency: NodeId

    def to_dict(self) -> dict[str, str]:
        return {"node": str(self.node), "dangling_dependency": str(self.dependency)}


@dataclass
class DependencyMap:
    """Adjacency list of dependencies.

    Each key is a node; its value is the list of nodes it depends on, in
    stored order (edges point *from* dependent *to* dependency).  Dangling
    targets stay in the lists and are also listed in ``dangling``.
    """

    graph: dict[NodeId, list[NodeId]] = field(default_factory=dict)
    dangling: list[DanglingReference] = field(default_factory=list)

    def __contains__(self, node: object) -> bool:
        return node in self.graph

    def __len__(self) -> int:
        return len(self.graph)

    @property
    def nodes(self) -> list[NodeId]:
        return list(self.graph)

    @property
    def edge_count(self) -> int:
        return sum(len(deps) for deps in self.graph.values())

    def dependencies_of(self, node: NodeId) -> list[NodeId]:
        """Return the dependencies of *node*; empty for unknown nodes."""
        return self.graph.get(node, [])


def build_dependency_map(tasks: Iterable[Task]) -> DependencyMap:
    """Build a dependency map covering every task and subtask.

    Args:
        tasks: The task snapshot.

    Returns:
        DependencyMap with one entry per node, in snapshot order.
    """
    dep_map = DependencyMap()
    for node, record in iter_nodes(tasks):
        dep_map.graph[node] = list(record.dependencies)

    for node, deps in dep_map.graph.items():
        for dep in deps:
            if dep not in dep_map.graph:
                dep_map.dangling.append(DanglingReference(node, dep))

    logger.debug(
        "Built dependency map: %d nodes, %d edges, %d dangling",
        len(dep_map),
        dep_map.edge_count,
        len(dep_map.dangling),
    )
    return dep_map
