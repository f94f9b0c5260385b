"""Cycle resolver for task snapshots.

Removes the back-edges reported by the cycle detector from the owning
task or subtask, then re-checks the snapshot.  Detection and mutation are
separate passes: the detector finishes walking an unmodified graph before
any dependency list is touched.

The resolver always removes the back-edge itself, never an earlier edge of
the same cycle.  The usual failure is a valid chain plus one dependency
that loops back, and the back-edge is that dependency.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .cycles import Edge, find_all_cycles
from .dep_graph import DanglingReference, build_dependency_map
from .exceptions import ResolverInconsistencyError, UnknownNodeError
from .models import NodeId, Subtask, Task, iter_nodes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemovedEdge:
    """A dependency reference removed by the resolver."""

    from_node: NodeId
    to_node: NodeId

    def to_dict(self) -> dict[str, str]:
        return {"from_node": str(self.from_node), "to_node": str(self.to_node)}


@dataclass
class ResolutionReport:
    """Outcome of a resolution pass.

    Attributes:
        removed_edges: Edges deleted from the snapshot, in removal order.
        warnings: Dangling references found while building the graph.
    """

    removed_edges: list[RemovedEdge] = field(default_factory=list)
    warnings: list[DanglingReference] = field(default_factory=list)

    @property
    def removed_count(self) -> int:
        return len(self.removed_edges)

    @property
    def changed(self) -> bool:
        return bool(self.removed_edges)

    def to_dict(self) -> dict[str, Any]:
        return {
            "removed_edges": [edge.to_dict() for edge in self.removed_edges],
            "warnings": [warning.to_dict() for warning in self.warnings],
        }


def resolve_cycles(tasks: list[Task], edges: Iterable[Edge]) -> ResolutionReport:
    """Delete each back-edge from its owning node and verify acyclicity.

    Every occurrence of ``edge.to_node`` is removed from the dependency list
    of ``edge.from_node``.  The snapshot is mutated in place; persisting it
    is the caller's job.

    Args:
        tasks: The task snapshot to mutate.
        edges: Back-edges from :func:`find_all_cycles`.

    Returns:
        ResolutionReport listing the removed edges.

    Raises:
        UnknownNodeError: If an edge names a node missing from the snapshot.
        ResolverInconsistencyError: If a cycle remains after removal.  All
            dependency lists touched by this call are restored first.
    """
    records: dict[NodeId, Task | Subtask] = dict(iter_nodes(tasks))
    originals: dict[NodeId, list[NodeId]] = {}
    report = ResolutionReport()

    for edge in edges:
        record = records.get(edge.from_node)
        if record is None:
            _restore(records, originals)
            raise UnknownNodeError(edge.from_node)
        if edge.to_node not in record.dependencies:
            continue
        originals.setdefault(edge.from_node, list(record.dependencies))
        record.dependencies = [dep for dep in record.dependencies if dep != edge.to_node]
        report.removed_edges.append(RemovedEdge(edge.from_node, edge.to_node))
        logger.info("Removed circular dependency %s -> %s", edge.from_node, edge.to_node)

    remaining = find_all_cycles(build_dependency_map(tasks))
    if remaining:
        _restore(records, originals)
        msg = (
            "Cycles remain after resolution: "
            + ", ".join(str(edge) for edge in remaining)
        )
        raise ResolverInconsistencyError(msg)

    return report


def _restore(
    records: dict[NodeId, Task | Subtask],
    originals: dict[NodeId, list[NodeId]],
) -> None:
    for node, deps in originals.items():
        records[node].dependencies = deps


def detect_and_resolve(tasks: list[Task]) -> ResolutionReport:
    """Detect every cycle in the snapshot and break it.

    Builds the dependency map, collects all back-edges from every root,
    removes them in one pass and attaches dangling-reference warnings.
    """
    dep_map = build_dependency_map(tasks)
    edges = find_all_cycles(dep_map)
    for warning in dep_map.dangling:
        logger.warning(
            "Dependency %s of %s does not exist", warning.dependency, warning.node
        )

    report = resolve_cycles(tasks, edges) if edges else ResolutionReport()
    report.warnings = list(dep_map.dangling)
    return report
