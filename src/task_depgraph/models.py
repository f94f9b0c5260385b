"""Domain models for the task dependency graph.

Tasks and subtasks are plain mutable dataclasses loaded from a snapshot.
Graph nodes are addressed with a tagged identifier type:

    TaskNode(3)        renders as "3"
    SubtaskNode(4, 2)  renders as "4.2"

Because the two node kinds are distinct types, a task id can never collide
with a subtask's numeric id, and no string parsing is needed once a
snapshot has been loaded.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from .exceptions import InvalidNodeRefError


class TaskStatus(Enum):
    """Lifecycle states for tasks and subtasks."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    DEFERRED = "deferred"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Whether this status unblocks dependents."""
        return self in TERMINAL_STATUSES


# Statuses that indicate a node is finished and can unblock dependents.
TERMINAL_STATUSES = frozenset({TaskStatus.DONE, TaskStatus.CANCELLED})


@dataclass(frozen=True)
class TaskNode:
    """Graph node for a top-level task."""

    task_id: int

    def __str__(self) -> str:
        return str(self.task_id)

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.task_id, 0)


@dataclass(frozen=True)
class SubtaskNode:
    """Graph node for a subtask, scoped by its parent task id."""

    parent_id: int
    subtask_id: int

    def __str__(self) -> str:
        return f"{self.parent_id}.{self.subtask_id}"

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.parent_id, self.subtask_id)


NodeId = Union[TaskNode, SubtaskNode]


@dataclass
class Subtask:
    """A unit of work scoped under a parent task."""

    id: int
    parent_id: int
    title: str = ""
    status: TaskStatus = TaskStatus.PENDING
    dependencies: list[NodeId] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def node(self) -> SubtaskNode:
        return SubtaskNode(self.parent_id, self.id)


@dataclass
class Task:
    """A top-level unit of work with optional subtasks.

    Attributes:
        id: Positive integer, unique within a project.
        title: Human-readable title.
        status: Current lifecycle state.
        dependencies: Nodes this task depends on, in stored order.
        subtasks: Ordered subtasks of this task.
        extra: Unrecognized snapshot fields, kept for round-tripping.
    """

    id: int
    title: str = ""
    status: TaskStatus = TaskStatus.PENDING
    dependencies: list[NodeId] = field(default_factory=list)
    subtasks: list[Subtask] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def node(self) -> TaskNode:
        return TaskNode(self.id)


def _positive_int(value: str, raw: object) -> int:
    if not (value.isascii() and value.isdigit()):
        msg = f"Invalid dependency reference: {raw!r}"
        raise InvalidNodeRefError(msg)
    number = int(value)
    if number < 1:
        msg = f"Dependency ids must be positive: {raw!r}"
        raise InvalidNodeRefError(msg)
    return number


def parse_node_ref(raw: object, *, parent_id: int | None = None) -> NodeId:
    """Parse an external dependency reference into a node id.

    ``"p.s"`` always names subtask ``s`` of task ``p``.  A string without a
    dot names a top-level task.  A bare integer names a top-level task,
    except inside a subtask's dependency list (``parent_id`` given), where
    it names a sibling subtask.

    Args:
        raw: The reference as stored in the snapshot (int or str).
        parent_id: Parent task id when parsing a subtask's dependencies.

    Returns:
        The parsed TaskNode or SubtaskNode.

    Raises:
        InvalidNodeRefError: If the reference is malformed.
    """
    if isinstance(raw, bool):
        msg = f"Invalid dependency reference: {raw!r}"
        raise InvalidNodeRefError(msg)
    if isinstance(raw, int):
        if raw < 1:
            msg = f"Dependency ids must be positive: {raw!r}"
            raise InvalidNodeRefError(msg)
        if parent_id is not None:
            return SubtaskNode(parent_id, raw)
        return TaskNode(raw)
    if not isinstance(raw, str):
        msg = f"Invalid dependency reference: {raw!r}"
        raise InvalidNodeRefError(msg)

    text = raw.strip()
    if "." in text:
        parent_text, _, sub_text = text.partition(".")
        return SubtaskNode(
            _positive_int(parent_text, raw), _positive_int(sub_text, raw)
        )
    return TaskNode(_positive_int(text, raw))


def format_node_ref(node: NodeId, *, parent_id: int | None = None) -> int | str:
    """Render a node id in the snapshot's reference format.

    Inverse of :func:`parse_node_ref` for the same ``parent_id``: tasks are
    written as ints at task level and as digit strings inside subtasks;
    sibling subtasks are written as bare ints.
    """
    if isinstance(node, TaskNode):
        return node.task_id if parent_id is None else str(node.task_id)
    if parent_id is not None and node.parent_id == parent_id:
        return node.subtask_id
    return str(node)


def iter_nodes(tasks: Iterable[Task]) -> Iterator[tuple[NodeId, Task | Subtask]]:
    """Yield ``(node_id, record)`` for every task and subtask in snapshot order."""
    for task in tasks:
        yield task.node, task
        for subtask in task.subtasks:
            yield subtask.node, subtask
