"""Project root resolution.

Decides which project, and therefore which task snapshot, an operation
works on.  Precedence is strictly:

1. an explicitly supplied root,
2. the root memoized by an earlier successful resolution,
3. an upward search from the working directory for a project marker.

The memo lives on a ProjectRootResolver instance rather than in module
state, so separate resolvers can serve separate projects in one process.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from .exceptions import ProjectNotFoundError
from .project_config import PROJECT_DIR, tasks_path_for

logger = logging.getLogger(__name__)

DEFAULT_MARKERS: tuple[str, ...] = (PROJECT_DIR, ".git")


def find_project_root(
    start: Path | None = None,
    markers: Sequence[str] = DEFAULT_MARKERS,
) -> Path | None:
    """Walk up from start to find the nearest directory holding a marker.

    Args:
        start: Starting directory. Defaults to cwd.
        markers: File or directory names that identify a project root.

    Returns:
        The first directory containing any marker, or None if the
        filesystem root is reached without a match.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        if any((current / marker).exists() for marker in markers):
            return current
        parent = current.parent
        if parent == current:
            return None
        current = parent


def has_task_store(root: Path) -> bool:
    """Whether *root* contains the task snapshot file."""
    return tasks_path_for(root).is_file()


class ProjectRootResolver:
    """Resolves and memoizes the project root for one logical session.

    Usage:
        resolver = ProjectRootResolver()
        root = resolver.resolve(explicit_root=args.project)
        root = resolver.resolve()   # reuses the memo

    Attributes:
        markers: Names searched for during upward discovery.
    """

    def __init__(self, markers: Sequence[str] = DEFAULT_MARKERS) -> None:
        self.markers = tuple(markers)
        self._cached_root: Path | None = None

    @property
    def cached_root(self) -> Path | None:
        return self._cached_root

    def remember(self, root: Path) -> None:
        """Seed the memo with a root known to be valid."""
        self._cached_root = root.resolve()

    def reset(self) -> None:
        """Forget the memoized root."""
        self._cached_root = None

    def resolve(
        self,
        explicit_root: str | Path | None = None,
        cwd: Path | None = None,
    ) -> Path:
        """Resolve the absolute project root.

        Args:
            explicit_root: Root supplied by the caller.  Wins
                unconditionally; there is no fallback if it is invalid.
            cwd: Directory to start the upward search from.  Defaults to
                the process working directory.

        Returns:
            Absolute path of a directory containing the task snapshot.

        Raises:
            ProjectNotFoundError: If the chosen source has no task snapshot,
                or no source yields a root at all.
        """
        if explicit_root is not None:
            root = Path(explicit_root).expanduser().resolve()
            if not has_task_store(root):
                msg = f"No task store found at explicit project root: {tasks_path_for(root)}"
                raise ProjectNotFoundError(msg)
            logger.debug("Using explicit project root %s", root)
            return root

        if self._cached_root is not None:
            if has_task_store(self._cached_root):
                logger.debug("Using memoized project root %s", self._cached_root)
                return self._cached_root
            logger.info("Memoized project root %s lost its task store", self._cached_root)
            self._cached_root = None

        start = (cwd or Path.cwd()).resolve()
        found = find_project_root(start, self.markers)
        if found is None:
            msg = (
                f"No project found from {start} "
                f"(looked for {', '.join(self.markers)}). "
                "Run 'task-depgraph init' first or pass --project."
            )
            raise ProjectNotFoundError(msg)
        if not has_task_store(found):
            msg = f"Project root {found} has no task store at {tasks_path_for(found)}"
            raise ProjectNotFoundError(msg)

        logger.debug("Discovered project root %s", found)
        self._cached_root = found
        return found
