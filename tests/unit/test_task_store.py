"""Tests for the JSON task store."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from task_depgraph.exceptions import TaskStoreError
from task_depgraph.models import SubtaskNode, TaskNode, TaskStatus
from task_depgraph.task_store import JsonTaskStore, parse_tasks


def _write(path: Path, data: Any) -> JsonTaskStore:
    path.write_text(json.dumps(data), encoding="utf-8")
    return JsonTaskStore(path)


class TestLoad:
    """Tests for JsonTaskStore.load()."""

    def test_load_parses_references_by_context(self, tmp_path: Path) -> None:
        store = _write(
            tmp_path / "tasks.json",
            {
                "tasks": [
                    {"id": 1, "title": "Base", "status": "done"},
                    {
                        "id": 4,
                        "title": "Feature",
                        "status": "in-progress",
                        "dependencies": [1, "2.1"],
                        "subtasks": [
                            {"id": 1, "dependencies": [2]},
                            {"id": 2, "dependencies": ["1", "2.1"]},
                        ],
                    },
                ]
            },
        )

        tasks = store.load()

        assert [task.id for task in tasks] == [1, 4]
        assert tasks[0].status is TaskStatus.DONE
        feature = tasks[1]
        assert feature.status is TaskStatus.IN_PROGRESS
        assert feature.dependencies == [TaskNode(1), SubtaskNode(2, 1)]
        assert feature.subtasks[0].parent_id == 4
        assert feature.subtasks[0].dependencies == [SubtaskNode(4, 2)]
        assert feature.subtasks[1].dependencies == [TaskNode(1), SubtaskNode(2, 1)]

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(TaskStoreError, match="not found"):
            JsonTaskStore(tmp_path / "absent.json").load()

    def test_invalid_json_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(TaskStoreError, match="Invalid JSON"):
            JsonTaskStore(path).load()

    @pytest.mark.parametrize(
        "document",
        [
            {"tasks": [{"id": 1}, {"id": 1}]},
            {"tasks": [{"id": 1, "subtasks": [{"id": 1}, {"id": 1}]}]},
            {"tasks": [{"id": 0}]},
            {"tasks": [{"id": 1, "status": "blocked"}]},
            {"tasks": [{"id": 1, "dependencies": [True]}]},
            {"tasks": [{"id": 1, "dependencies": [1.5]}]},
            {"tasks": [{"id": 1, "dependencies": ["x.1"]}]},
            {"tasks": [{"id": 1, "dependencies": ["\u00b2"]}]},
            {"tasks": [{"id": 1, "subtasks": [{"id": 1, "dependencies": ["1.\u0663"]}]}]},
            {"tasks": "nope"},
        ],
    )
    def test_invalid_documents_rejected(self, document: Any) -> None:
        with pytest.raises(TaskStoreError, match="Invalid task snapshot"):
            parse_tasks(document)

    def test_non_ascii_digit_reference_raises_store_error(self, tmp_path: Path) -> None:
        store = _write(tmp_path / "tasks.json", {"tasks": [{"id": 1, "dependencies": ["\u00b2"]}]})

        with pytest.raises(TaskStoreError, match="Invalid task snapshot"):
            store.load()

    def test_missing_tasks_key_is_empty_snapshot(self) -> None:
        assert parse_tasks({}) == []


class TestSave:
    """Tests for JsonTaskStore.save()."""

    def test_save_writes_canonical_references(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        store = _write(
            path,
            {
                "tasks": [
                    {"id": 2, "dependencies": ["1"]},
                    {"id": 1, "subtasks": [{"id": 1}, {"id": 2, "dependencies": [1, "2", "3.1"]}]},
                ]
            },
        )

        store.save(store.load())

        saved = json.loads(path.read_text(encoding="utf-8"))
        assert saved["tasks"][0]["dependencies"] == [1]
        assert saved["tasks"][1]["subtasks"][1]["dependencies"] == [1, "2", "3.1"]
        assert saved["tasks"][1]["subtasks"][1]["status"] == "pending"

    def test_unknown_task_fields_survive_save(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        store = _write(path, {"tasks": [{"id": 1, "priority": "high", "details": {"a": 1}}]})

        store.save(store.load())

        saved = json.loads(path.read_text(encoding="utf-8"))
        assert saved["tasks"][0]["priority"] == "high"
        assert saved["tasks"][0]["details"] == {"a": 1}

    def test_unknown_subtask_fields_survive_save(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        store = _write(
            path,
            {
                "tasks": [
                    {
                        "id": 1,
                        "subtasks": [{"id": 1, "details": "Wire it up", "testStrategy": "unit"}],
                    }
                ]
            },
        )

        store.save(store.load())

        subtask = json.loads(path.read_text(encoding="utf-8"))["tasks"][0]["subtasks"][0]
        assert subtask["details"] == "Wire it up"
        assert subtask["testStrategy"] == "unit"

    def test_document_level_keys_survive_save(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        metadata = {"version": 2, "created": "2026-01-01"}
        store = _write(path, {"metadata": metadata, "tasks": [{"id": 1, "dependencies": [1]}]})

        tasks = store.load()
        tasks[0].dependencies = []
        store.save(tasks)

        saved = json.loads(path.read_text(encoding="utf-8"))
        assert saved["metadata"] == metadata
        assert saved["tasks"][0]["dependencies"] == []

    def test_save_over_corrupt_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(TaskStoreError, match="Invalid JSON"):
            JsonTaskStore(path).save([])

        assert path.read_text(encoding="utf-8") == "{not json"

    def test_save_removes_temp_file(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        store = _write(path, {"tasks": []})

        store.save([])

        assert path.is_file()
        assert not (tmp_path / "tasks.tmp").exists()

    def test_save_creates_parent_directory(self, tmp_path: Path) -> None:
        path = tmp_path / ".taskgraph" / "tasks.json"

        JsonTaskStore(path).save([])

        assert json.loads(path.read_text(encoding="utf-8")) == {"tasks": []}
