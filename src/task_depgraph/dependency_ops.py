"""Dependency operations on a task snapshot.

Validation, repair, single-edge edits and readiness checks built on the
graph builder, cycle detector and resolver.  All functions operate on an
in-memory snapshot; loading and persisting it is the caller's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .cycles import Edge, find_all_cycles, find_cycle_paths
from .dep_graph import DanglingReference, DependencyMap, build_dependency_map
from .exceptions import DependencyCycleError, UnknownNodeError
from .models import NodeId, Subtask, Task, TaskStatus, iter_nodes
from .resolver import ResolutionReport, detect_and_resolve

logger = logging.getLogger(__name__)

# Statuses eligible to be picked up once their dependencies are satisfied.
_WORKABLE_STATUSES = (TaskStatus.PENDING, TaskStatus.IN_PROGRESS)


@dataclass
class ValidationReport:
    """Read-only findings for a snapshot."""

    cycles: list[Edge] = field(default_factory=list)
    cycle_paths: list[list[NodeId]] = field(default_factory=list)
    dangling: list[DanglingReference] = field(default_factory=list)
    duplicates: list[Edge] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not (self.cycles or self.dangling or self.duplicates)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.is_valid,
            "cycles": [[str(node) for node in path] for path in self.cycle_paths],
            "dangling": [ref.to_dict() for ref in self.dangling],
            "duplicates": [
                {"node": str(edge.from_node), "dependency": str(edge.to_node)}
                for edge in self.duplicates
            ],
        }


@dataclass
class FixReport:
    """Changes made by fix_dependencies()."""

    duplicates_removed: list[Edge] = field(default_factory=list)
    dangling_removed: list[DanglingReference] = field(default_factory=list)
    resolution: ResolutionReport = field(default_factory=ResolutionReport)

    @property
    def changed(self) -> bool:
        return bool(
            self.duplicates_removed or self.dangling_removed or self.resolution.changed
        )

    def to_dict(self) -> dict[str, Any]:
        data = self.resolution.to_dict()
        data["duplicates_removed"] = [
            {"node": str(edge.from_node), "dependency": str(edge.to_node)}
            for edge in self.duplicates_removed
        ]
        data["dangling_removed"] = [ref.to_dict() for ref in self.dangling_removed]
        return data


def find_node(tasks: list[Task], node: NodeId) -> Task | Subtask:
    """Return the task or subtask for *node*.

    Raises:
        UnknownNodeError: If no such node exists.
    """
    for candidate, record in iter_nodes(tasks):
        if candidate == node:
            return record
    raise UnknownNodeError(node)


def _find_duplicates(tasks: list[Task]) -> list[Edge]:
    duplicates: list[Edge] = []
    for node, record in iter_nodes(tasks):
        seen: set[NodeId] = set()
        for dep in record.dependencies:
            if dep in seen:
                duplicates.append(Edge(node, dep))
            seen.add(dep)
    return duplicates


def validate_dependencies(tasks: list[Task]) -> ValidationReport:
    """Report cycles, dangling references and duplicate references.

    The snapshot is not modified.
    """
    dep_map = build_dependency_map(tasks)
    return ValidationReport(
        cycles=find_all_cycles(dep_map),
        cycle_paths=find_cycle_paths(dep_map),
        dangling=list(dep_map.dangling),
        duplicates=_find_duplicates(tasks),
    )


def fix_dependencies(tasks: list[Task], *, prune_dangling: bool = False) -> FixReport:
    """Repair the snapshot in place.

    Removes duplicate references, optionally removes dangling references,
    then breaks every cycle.

    Args:
        tasks: The task snapshot to mutate.
        prune_dangling: Also drop references to missing nodes.

    Returns:
        FixReport describing every change.

    Raises:
        ResolverInconsistencyError: Propagated from the resolver; the
            snapshot must not be persisted.
    """
    report = FixReport(duplicates_removed=_find_duplicates(tasks))
    for _, record in iter_nodes(tasks):
        record.dependencies = list(dict.fromkeys(record.dependencies))

    if prune_dangling:
        dep_map = build_dependency_map(tasks)
        report.dangling_removed = list(dep_map.dangling)
        missing = {(ref.node, ref.dependency) for ref in dep_map.dangling}
        for node, record in iter_nodes(tasks):
            record.dependencies = [
                dep for dep in record.dependencies if (node, dep) not in missing
            ]
        for ref in report.dangling_removed:
            logger.info("Removed missing dependency %s from %s", ref.dependency, ref.node)

    report.resolution = detect_and_resolve(tasks)
    return report


def _find_path(dep_map: DependencyMap, source: NodeId, target: NodeId) -> list[NodeId] | None:
    """Return a dependency path from *source* to *target*, if one exists."""
    parents: dict[NodeId, NodeId | None] = {source: None}
    stack = [source]
    while stack:
        node = stack.pop()
        if node == target:
            path = [node]
            while parents[path[-1]] is not None:
                path.append(parents[path[-1]])  # type: ignore[arg-type]
            return list(reversed(path))
        for dep in dep_map.dependencies_of(node):
            if dep not in parents:
                parents[dep] = node
                stack.append(dep)
    return None


def add_dependency(tasks: list[Task], node: NodeId, dependency: NodeId) -> bool:
    """Make *node* depend on *dependency*.

    Returns:
        True if the edge was added, False if it already existed.

    Raises:
        UnknownNodeError: If either node does not exist.
        DependencyCycleError: If the new edge would close a cycle,
            including a node depending on itself.
    """
    record = find_node(tasks, node)
    find_node(tasks, dependency)

    if dependency in record.dependencies:
        logger.info("Dependency %s -> %s already exists", node, dependency)
        return False
    if dependency == node:
        raise DependencyCycleError([node, node])

    path = _find_path(build_dependency_map(tasks), dependency, node)
    if path is not None:
        raise DependencyCycleError([node, *path])

    record.dependencies.append(dependency)
    logger.info("Added dependency %s -> %s", node, dependency)
    return True


def remove_dependency(tasks: list[Task], node: NodeId, dependency: NodeId) -> bool:
    """Remove every reference to *dependency* from *node*.

    Returns:
        True if anything was removed.

    Raises:
        UnknownNodeError: If *node* does not exist.
    """
    record = find_node(tasks, node)
    if dependency not in record.dependencies:
        return False
    record.dependencies = [dep for dep in record.dependencies if dep != dependency]
    logger.info("Removed dependency %s -> %s", node, dependency)
    return True


def is_ready(tasks: list[Task], node: NodeId) -> bool:
    """Check whether every dependency of *node* is in a terminal status.

    A dependency that does not exist can never be satisfied.

    Raises:
        UnknownNodeError: If *node* does not exist.
    """
    records = dict(iter_nodes(tasks))
    record = records.get(node)
    if record is None:
        raise UnknownNodeError(node)
    for dep in record.dependencies:
        dep_record = records.get(dep)
        if dep_record is None or not dep_record.status.is_terminal:
            return False
    return True


def ready_nodes(tasks: list[Task]) -> list[NodeId]:
    """List pending or in-progress nodes whose dependencies are satisfied.

    Returned in snapshot order: each task, then its subtasks.
    """
    records = dict(iter_nodes(tasks))
    ready: list[NodeId] = []
    for node, record in records.items():
        if record.status not in _WORKABLE_STATUSES:
            continue
        if all(
            dep in records and records[dep].status.is_terminal
            for dep in record.dependencies
        ):
            ready.append(node)
    return ready
