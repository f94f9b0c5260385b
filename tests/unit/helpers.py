"""Snapshot builders shared by the unit tests."""

from __future__ import annotations

from task_depgraph.models import NodeId, Subtask, Task, TaskStatus, parse_node_ref


def node(ref: int | str) -> NodeId:
    """Parse ``3`` or ``"4.2"`` into a node id."""
    return parse_node_ref(str(ref))


def make_subtask(
    parent_id: int,
    subtask_id: int,
    depends_on: list[int | str] | None = None,
    status: TaskStatus = TaskStatus.PENDING,
) -> Subtask:
    """Create a subtask; dependencies use external refs like ``"4.2"``."""
    return Subtask(
        id=subtask_id,
        parent_id=parent_id,
        title=f"Subtask {parent_id}.{subtask_id}",
        status=status,
        dependencies=[node(ref) for ref in depends_on or []],
    )


def make_task(
    task_id: int,
    depends_on: list[int | str] | None = None,
    status: TaskStatus = TaskStatus.PENDING,
    subtasks: list[Subtask] | None = None,
) -> Task:
    """Create a task; dependencies use external refs like ``2`` or ``"3.1"``."""
    return Task(
        id=task_id,
        title=f"Task {task_id}",
        status=status,
        dependencies=[node(ref) for ref in depends_on or []],
        subtasks=subtasks or [],
    )
