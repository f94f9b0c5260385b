"""Tests for DependencyService wiring: root resolution, I/O and caching."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from task_depgraph.cache import ResultCache
from task_depgraph.cycles import Edge
from task_depgraph.exceptions import (
    DependencyCycleError,
    ProjectNotFoundError,
    ResolverInconsistencyError,
)
from task_depgraph.models import SubtaskNode, TaskNode
from task_depgraph.project_config import create_default_config
from task_depgraph.project_root import ProjectRootResolver
from task_depgraph.service import DependencyService

_CYCLIC_TASKS: dict[str, Any] = {
    "tasks": [
        {"id": 1, "dependencies": [2]},
        {"id": 2, "dependencies": [3]},
        {"id": 3, "dependencies": [1]},
        {
            "id": 4,
            "subtasks": [
                {"id": 1, "dependencies": [2]},
                {"id": 2, "dependencies": [1]},
            ],
        },
    ]
}


def _make_project(root: Path, tasks: dict[str, Any], config: str | None = None) -> Path:
    create_default_config(root, name="svc-test")
    if config is not None:
        (root / ".taskgraph" / "config.toml").write_text(config, encoding="utf-8")
    (root / ".taskgraph" / "tasks.json").write_text(json.dumps(tasks), encoding="utf-8")
    return root.resolve()


def _read_tasks(root: Path) -> list[dict[str, Any]]:
    data = json.loads((root / ".taskgraph" / "tasks.json").read_text(encoding="utf-8"))
    return data["tasks"]


@pytest.fixture
def project(tmp_path: Path) -> Path:
    return _make_project(tmp_path / "proj", _CYCLIC_TASKS)


class TestValidate:
    """Read-only queries are cached per project."""

    async def test_validate_reports_cycles(self, project: Path) -> None:
        service = DependencyService()

        report = await service.validate(project)

        assert not report.is_valid
        assert report.cycles == [
            Edge(TaskNode(3), TaskNode(1)),
            Edge(SubtaskNode(4, 2), SubtaskNode(4, 1)),
        ]

    async def test_validate_is_cached(self, project: Path) -> None:
        cache = ResultCache()
        service = DependencyService(cache=cache)

        first = await service.validate(project)
        second = await service.validate(project)

        assert first is second
        assert cache.stats().hits == 1
        assert cache.stats().misses == 1

    async def test_services_share_injected_empty_cache(self, project: Path) -> None:
        cache = ResultCache(ttl_seconds=5)
        first = DependencyService(cache=cache)
        second = DependencyService(cache=cache)

        assert first.cache is cache
        assert second.cache is cache

        report = await first.validate(project)

        assert await second.validate(project) is report
        assert cache.stats().hits == 1

    async def test_concurrent_validate_loads_once(
        self, project: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        service = DependencyService()
        loads = 0
        original = service._load

        def counting_load(root: Path) -> Any:
            nonlocal loads
            loads += 1
            return original(root)

        monkeypatch.setattr(service, "_load", counting_load)

        reports = await asyncio.gather(*(service.validate(project) for _ in range(5)))

        assert loads == 1
        assert all(report is reports[0] for report in reports)

    async def test_validate_discovers_root_from_cwd(self, project: Path) -> None:
        nested = project / "src"
        nested.mkdir()
        resolver = ProjectRootResolver()
        service = DependencyService(resolver=resolver)

        await service.validate(cwd=nested)

        assert resolver.cached_root == project

    async def test_missing_project_raises(self, tmp_path: Path) -> None:
        service = DependencyService()

        with pytest.raises(ProjectNotFoundError):
            await service.validate(tmp_path)


class TestFix:
    """Mutations persist and invalidate the cache."""

    async def test_fix_persists_and_invalidates(self, project: Path) -> None:
        service = DependencyService()
        before = await service.validate(project)

        report = await service.fix(project)
        after = await service.validate(project)

        assert report.resolution.removed_count == 2
        assert not before.is_valid
        assert after.is_valid
        saved = _read_tasks(project)
        assert saved[2]["dependencies"] == []
        assert saved[3]["subtasks"][1]["dependencies"] == []
        assert saved[3]["subtasks"][0]["dependencies"] == [2]

    async def test_fix_keeps_user_fields(self, tmp_path: Path) -> None:
        root = _make_project(
            tmp_path / "p",
            {
                "metadata": {"source": "prd.md"},
                "tasks": [
                    {"id": 1, "dependencies": [2]},
                    {
                        "id": 2,
                        "dependencies": [1],
                        "subtasks": [{"id": 1, "details": "Write the parser"}],
                    },
                ],
            },
        )

        await DependencyService().fix(root)

        data = json.loads((root / ".taskgraph" / "tasks.json").read_text(encoding="utf-8"))
        assert data["metadata"] == {"source": "prd.md"}
        assert data["tasks"][1]["dependencies"] == []
        assert data["tasks"][1]["subtasks"][0]["details"] == "Write the parser"

    async def test_dry_run_writes_nothing(self, project: Path) -> None:
        service = DependencyService()
        original = (project / ".taskgraph" / "tasks.json").read_text(encoding="utf-8")

        report = await service.fix(project, dry_run=True)

        assert report.changed
        assert (project / ".taskgraph" / "tasks.json").read_text(encoding="utf-8") == original

    async def test_prune_dangling_from_config(self, tmp_path: Path) -> None:
        root = _make_project(
            tmp_path / "p",
            {"tasks": [{"id": 1, "dependencies": [9]}]},
            config='[project]\nname = "p"\n[graph]\nprune_dangling = true\n',
        )

        report = await DependencyService().fix(root)

        assert len(report.dangling_removed) == 1
        assert _read_tasks(root)[0]["dependencies"] == []

    async def test_prune_dangling_override(self, tmp_path: Path) -> None:
        root = _make_project(tmp_path / "p", {"tasks": [{"id": 1, "dependencies": [9]}]})

        report = await DependencyService().fix(root, prune_dangling=False)

        assert report.dangling_removed == []
        assert _read_tasks(root)[0]["dependencies"] == [9]

    async def test_inconsistency_writes_nothing(
        self, project: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(
            "task_depgraph.resolver.find_all_cycles",
            lambda dep_map: [Edge(TaskNode(1), TaskNode(2))],
        )
        original = (project / ".taskgraph" / "tasks.json").read_text(encoding="utf-8")

        with pytest.raises(ResolverInconsistencyError):
            await DependencyService().fix(project)

        assert (project / ".taskgraph" / "tasks.json").read_text(encoding="utf-8") == original


class TestEdits:
    """add/remove persist through the store."""

    async def test_add_and_remove(self, tmp_path: Path) -> None:
        root = _make_project(tmp_path / "p", {"tasks": [{"id": 1}, {"id": 2}]})
        service = DependencyService()
        await service.ready(root)

        assert await service.add(TaskNode(2), TaskNode(1), root) is True
        assert _read_tasks(root)[1]["dependencies"] == [1]
        assert await service.ready(root) == [TaskNode(1)]

        assert await service.remove(TaskNode(2), TaskNode(1), root) is True
        assert _read_tasks(root)[1]["dependencies"] == []

    async def test_add_rejects_cycle_without_writing(self, tmp_path: Path) -> None:
        root = _make_project(tmp_path / "p", {"tasks": [{"id": 1, "dependencies": [2]}, {"id": 2}]})
        tasks_file = root / ".taskgraph" / "tasks.json"
        before = tasks_file.read_bytes()

        with pytest.raises(DependencyCycleError):
            await DependencyService().add(TaskNode(2), TaskNode(1), root)

        assert tasks_file.read_bytes() == before


def test_for_project_uses_cache_config(tmp_path: Path) -> None:
    root = _make_project(
        tmp_path / "p",
        {"tasks": []},
        config='[project]\nname = "p"\n[cache]\nttl_seconds = 5\nmax_entries = 0\n',
    )

    service = DependencyService.for_project(root)

    assert service.cache.ttl_seconds == 5
    assert service.cache.max_entries is None
    assert service.resolver.cached_root == root
