"""JSON-backed task snapshot store.

Reads and writes .taskgraph/tasks.json.  The file layout is validated with
Pydantic models and converted to the domain dataclasses in models.py;
dependency references are parsed into node ids on load and rendered back
on save.

File layout:
    {"tasks": [{"id": 1, "title": "...", "status": "pending",
                "dependencies": [2, "3.1"],
                "subtasks": [{"id": 1, "status": "pending",
                              "dependencies": [2, "3", "4.1"]}]}]}
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Union

from pydantic import BaseModel, Field, StrictInt, StrictStr, ValidationError, model_validator

from .exceptions import InvalidNodeRefError, TaskStoreError
from .models import Subtask, Task, TaskStatus, format_node_ref, parse_node_ref

logger = logging.getLogger(__name__)

DependencyRef = Union[StrictInt, StrictStr]


class SubtaskRecord(BaseModel):
    """On-disk form of a subtask.  Unknown keys are kept for round-tripping."""

    model_config = {"extra": "allow"}

    id: int = Field(ge=1)
    title: str = ""
    status: TaskStatus = TaskStatus.PENDING
    dependencies: list[DependencyRef] = Field(default_factory=list)


class TaskRecord(BaseModel):
    """On-disk form of a task.  Unknown keys are kept for round-tripping."""

    model_config = {"extra": "allow"}

    id: int = Field(ge=1)
    title: str = ""
    status: TaskStatus = TaskStatus.PENDING
    dependencies: list[DependencyRef] = Field(default_factory=list)
    subtasks: list[SubtaskRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_subtask_ids(self) -> TaskRecord:
        """Subtask ids must be unique within their parent."""
        ids = [subtask.id for subtask in self.subtasks]
        if len(ids) != len(set(ids)):
            raise ValueError(f"duplicate subtask ids in task {self.id}")
        return self


class TaskFile(BaseModel):
    """Top-level document of tasks.json.  Keys besides tasks are kept."""

    model_config = {"extra": "allow"}

    tasks: list[TaskRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_task_ids(self) -> TaskFile:
        """Task ids must be unique within the project."""
        ids = [task.id for task in self.tasks]
        if len(ids) != len(set(ids)):
            raise ValueError("duplicate task ids")
        return self


def _to_domain(record: TaskRecord) -> Task:
    task = Task(
        id=record.id,
        title=record.title,
        status=record.status,
        dependencies=[parse_node_ref(ref) for ref in record.dependencies],
        extra=dict(record.model_extra or {}),
    )
    for sub in record.subtasks:
        task.subtasks.append(
            Subtask(
                id=sub.id,
                parent_id=record.id,
                title=sub.title,
                status=sub.status,
                dependencies=[
                    parse_node_ref(ref, parent_id=record.id) for ref in sub.dependencies
                ],
                extra=dict(sub.model_extra or {}),
            )
        )
    return task


def _subtask_document(sub: Subtask, parent_id: int) -> dict[str, Any]:
    doc: dict[str, Any] = dict(sub.extra)
    doc.update(
        {
            "id": sub.id,
            "title": sub.title,
            "status": sub.status.value,
            "dependencies": [
                format_node_ref(dep, parent_id=parent_id) for dep in sub.dependencies
            ],
        }
    )
    return doc


def _to_document(tasks: list[Task], extra: dict[str, Any] | None = None) -> dict[str, Any]:
    documents: list[dict[str, Any]] = []
    for task in tasks:
        doc: dict[str, Any] = dict(task.extra)
        doc.update(
            {
                "id": task.id,
                "title": task.title,
                "status": task.status.value,
                "dependencies": [format_node_ref(dep) for dep in task.dependencies],
                "subtasks": [_subtask_document(sub, task.id) for sub in task.subtasks],
            }
        )
        documents.append(doc)
    document: dict[str, Any] = dict(extra or {})
    document["tasks"] = documents
    return document


def parse_tasks(data: Any) -> list[Task]:
    """Validate a decoded tasks.json document and convert it to tasks.

    Raises:
        TaskStoreError: If the document is structurally invalid or holds a
            malformed dependency reference.
    """
    try:
        document = TaskFile.model_validate(data)
        return [_to_domain(record) for record in document.tasks]
    except ValidationError as exc:
        msg = f"Invalid task snapshot: {exc}"
        raise TaskStoreError(msg) from exc
    except InvalidNodeRefError as exc:
        msg = f"Invalid task snapshot: {exc}"
        raise TaskStoreError(msg) from exc


class JsonTaskStore:
    """Loads and persists a task snapshot file.

    Attributes:
        path: Location of tasks.json.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def _read_json(self) -> Any:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            msg = f"Task store not found: {self.path}"
            raise TaskStoreError(msg) from exc

        try:
            return json.loads(content)
        except json.JSONDecodeError as exc:
            msg = f"Invalid JSON in {self.path}: {exc}"
            raise TaskStoreError(msg) from exc

    def load(self) -> list[Task]:
        """Read the snapshot from disk.

        Raises:
            TaskStoreError: If the file is missing, not JSON, or invalid.
        """
        tasks = parse_tasks(self._read_json())
        logger.debug("Loaded %d tasks from %s", len(tasks), self.path)
        return tasks

    def _document_extra(self) -> dict[str, Any]:
        """Top-level keys of the current file other than ``tasks``."""
        if not self.path.exists():
            return {}
        data = self._read_json()
        if not isinstance(data, dict):
            return {}
        return {key: value for key, value in data.items() if key != "tasks"}

    def save(self, tasks: list[Task]) -> None:
        """Write the snapshot atomically (temp file, then replace).

        Top-level keys already in the file besides ``tasks`` are kept.

        Raises:
            TaskStoreError: If the existing file is not valid JSON.
        """
        extra = self._document_extra()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(_to_document(tasks, extra), indent=2) + "\n"
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(content, encoding="utf-8")
        os.replace(tmp_path, self.path)
        logger.debug("Saved %d tasks to %s", len(tasks), self.path)
