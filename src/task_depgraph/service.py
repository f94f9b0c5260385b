"""Dependency service: root resolution, snapshot I/O and caching.

Wires the pieces together for callers such as the CLI:

    root resolution -> load snapshot -> build graph -> detect/resolve
    -> persist if mutated

Read-only queries go through the ResultCache; every mutation invalidates
the project's cached entries.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from .cache import ResultCache
from .dependency_ops import (
    FixReport,
    ValidationReport,
    add_dependency,
    fix_dependencies,
    ready_nodes,
    remove_dependency,
    validate_dependencies,
)
from .models import NodeId, Task
from .project_config import ProjectConfig, load_project_config_or_default, tasks_path_for
from .project_root import ProjectRootResolver
from .task_store import JsonTaskStore

logger = logging.getLogger(__name__)


def cache_from_config(config: ProjectConfig) -> ResultCache:
    """Build a ResultCache sized by the project's [cache] settings."""
    return ResultCache(
        ttl_seconds=config.cache.ttl_seconds or None,
        max_entries=config.cache.max_entries or None,
    )


class DependencyService:
    """Entry point for dependency operations on a project.

    Attributes:
        resolver: Root resolver; its memo is shared by all calls.
        cache: Result cache for read-only queries.
    """

    def __init__(
        self,
        resolver: ProjectRootResolver | None = None,
        cache: ResultCache | None = None,
        store_factory: Callable[[Path], JsonTaskStore] = JsonTaskStore,
    ) -> None:
        self.resolver = resolver if resolver is not None else ProjectRootResolver()
        self.cache = cache if cache is not None else ResultCache()
        self._store_factory = store_factory

    @classmethod
    def for_project(cls, project_root: str | Path) -> DependencyService:
        """Build a service bound to *project_root* using its config.toml."""
        resolver = ProjectRootResolver()
        root = resolver.resolve(explicit_root=project_root)
        resolver.remember(root)
        config = load_project_config_or_default(root)
        return cls(resolver=resolver, cache=cache_from_config(config))

    def resolve_root(self, root: str | Path | None = None, cwd: Path | None = None) -> Path:
        return self.resolver.resolve(explicit_root=root, cwd=cwd)

    def _store(self, root: Path) -> JsonTaskStore:
        return self._store_factory(tasks_path_for(root))

    def _load(self, root: Path) -> list[Task]:
        return self._store(root).load()

    def _commit(self, root: Path, tasks: list[Task]) -> None:
        self._store(root).save(tasks)
        self.cache.invalidate_prefix(f"{root}::")

    async def validate(
        self, root: str | Path | None = None, cwd: Path | None = None
    ) -> ValidationReport:
        """Validate the project's dependencies (cached)."""
        project_root = self.resolve_root(root, cwd)
        return await self.cache.get_or_execute(
            f"{project_root}::validate",
            lambda: validate_dependencies(self._load(project_root)),
        )

    async def ready(
        self, root: str | Path | None = None, cwd: Path | None = None
    ) -> list[NodeId]:
        """List nodes ready to be worked on (cached)."""
        project_root = self.resolve_root(root, cwd)
        return await self.cache.get_or_execute(
            f"{project_root}::ready",
            lambda: ready_nodes(self._load(project_root)),
        )

    async def fix(
        self,
        root: str | Path | None = None,
        cwd: Path | None = None,
        *,
        dry_run: bool = False,
        prune_dangling: bool | None = None,
    ) -> FixReport:
        """Repair the project's dependencies and persist the result.

        Args:
            root: Explicit project root.
            cwd: Start directory for root discovery.
            dry_run: Compute the report without writing the snapshot.
            prune_dangling: Override graph.prune_dangling from config.toml.

        Raises:
            ResolverInconsistencyError: Nothing is written in this case.
        """
        project_root = self.resolve_root(root, cwd)
        if prune_dangling is None:
            config = load_project_config_or_default(project_root)
            prune_dangling = config.graph.prune_dangling

        tasks = self._load(project_root)
        report = fix_dependencies(tasks, prune_dangling=prune_dangling)
        if report.changed and not dry_run:
            self._commit(project_root, tasks)
            logger.info(
                "Fixed dependencies in %s: %d cycle edge(s) removed",
                project_root,
                report.resolution.removed_count,
            )
        return report

    async def add(
        self,
        node: NodeId,
        dependency: NodeId,
        root: str | Path | None = None,
        cwd: Path | None = None,
    ) -> bool:
        """Add a dependency edge, rejecting edges that would create a cycle."""
        project_root = self.resolve_root(root, cwd)
        tasks = self._load(project_root)
        added = add_dependency(tasks, node, dependency)
        if added:
            self._commit(project_root, tasks)
        return added

    async def remove(
        self,
        node: NodeId,
        dependency: NodeId,
        root: str | Path | None = None,
        cwd: Path | None = None,
    ) -> bool:
        """Remove a dependency edge."""
        project_root = self.resolve_root(root, cwd)
        tasks = self._load(project_root)
        removed = remove_dependency(tasks, node, dependency)
        if removed:
            self._commit(project_root, tasks)
        return removed
