"""Exceptions for the task dependency graph engine.

All errors raised by this package derive from TaskGraphError so callers
can catch the whole family at the workflow boundary.  Several classes also
inherit a builtin (ValueError, LookupError, FileNotFoundError) so existing
handlers for those builtins keep working.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import NodeId


class TaskGraphError(Exception):
    """Base exception for all task-graph errors."""

    pass


class InvalidNodeRefError(TaskGraphError, ValueError):
    """Raised when a dependency reference cannot be parsed into a node id.

    Valid forms are a positive integer, a digit string such as ``"3"``, or
    a dotted subtask reference such as ``"4.2"``.
    """

    pass


class UnknownNodeError(TaskGraphError, LookupError):
    """Raised when an operation names a task or subtask that does not exist."""

    def __init__(self, node: NodeId) -> None:
        self.node = node
        super().__init__(f"Node not found: {node}")


class DependencyCycleError(TaskGraphError):
    """Raised when adding a dependency would close a cycle.

    Attributes:
        cycle: The node path forming the cycle, first node repeated last.
    """

    def __init__(self, cycle: list[NodeId]) -> None:
        self.cycle = cycle
        path = " -> ".join(str(node) for node in cycle)
        super().__init__(f"Dependency would create a cycle: {path}")


class ResolverInconsistencyError(TaskGraphError):
    """Raised when cycles survive a resolution pass.

    The snapshot is restored before this is raised and must not be
    persisted.  It signals a defect in the detector/resolver pair, not bad
    input.
    """

    pass


class ProjectNotFoundError(TaskGraphError, FileNotFoundError):
    """Raised when no project root with a task store can be resolved."""

    pass


class TaskStoreError(TaskGraphError):
    """Raised when the task snapshot file cannot be read or is invalid."""

    pass
