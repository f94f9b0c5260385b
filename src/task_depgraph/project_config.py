"""Project configuration for task-depgraph.

Manages the per-project .taskgraph/ directory holding config.toml and the
tasks.json snapshot.  Provides loading, validation and bootstrapping of the
configuration.
"""

from __future__ import annotations

import json
import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

PROJECT_DIR = ".taskgraph"
CONFIG_FILE = "config.toml"
TASKS_FILE = "tasks.json"


@dataclass(frozen=True)
class GraphConfig:
    """Dependency-graph behaviour."""

    prune_dangling: bool = False


@dataclass(frozen=True)
class CacheConfig:
    """Result cache sizing.  Zero disables the corresponding limit."""

    ttl_seconds: float = 0
    max_entries: int = 256


@dataclass(frozen=True)
class ProjectConfig:
    """Per-project configuration.

    Loaded from .taskgraph/config.toml via load_project_config().
    """

    name: str
    graph: GraphConfig = field(default_factory=GraphConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)


def tasks_path_for(project_root: Path) -> Path:
    """Path of the task snapshot file under *project_root*."""
    return project_root.resolve() / PROJECT_DIR / TASKS_FILE


def load_project_config(project_path: Path) -> ProjectConfig:
    """Load config from .taskgraph/config.toml.

    Args:
        project_path: Path to the project root directory.

    Returns:
        Parsed ProjectConfig.

    Raises:
        FileNotFoundError: If .taskgraph/config.toml is missing.
        ValueError: On invalid, empty, or corrupt TOML.
    """
    config_file = project_path / PROJECT_DIR / CONFIG_FILE
    if not config_file.exists():
        msg = f"Project config not found: {config_file}"
        raise FileNotFoundError(msg)

    content = config_file.read_text(encoding="utf-8")
    if not content.strip():
        msg = f"Config file is empty: {config_file}"
        raise ValueError(msg)

    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {config_file}: {exc}"
        raise ValueError(msg) from exc

    return _parse_config(data)


def load_project_config_or_default(project_path: Path) -> ProjectConfig:
    """Like load_project_config(), but fall back to defaults when absent."""
    try:
        return load_project_config(project_path)
    except FileNotFoundError:
        logger.debug("No config in %s, using defaults", project_path)
        return ProjectConfig(name=project_path.resolve().name or "project")


def _parse_config(data: dict[str, object]) -> ProjectConfig:
    """Parse raw TOML data into a ProjectConfig.

    Unknown fields are silently ignored for forward compatibility.
    """
    project = data.get("project", {})
    if not isinstance(project, dict):
        msg = "[project] section must be a table"
        raise ValueError(msg)

    graph_data = data.get("graph", {})
    if not isinstance(graph_data, dict):
        msg = "[graph] section must be a table"
        raise ValueError(msg)

    cache_data = data.get("cache", {})
    if not isinstance(cache_data, dict):
        msg = "[cache] section must be a table"
        raise ValueError(msg)

    name = project.get("name")
    if not isinstance(name, str) or not name:
        msg = "project.name is required and must be a non-empty string"
        raise ValueError(msg)

    prune_dangling = graph_data.get("prune_dangling", False)
    if not isinstance(prune_dangling, bool):
        msg = "graph.prune_dangling must be a boolean"
        raise ValueError(msg)

    ttl_seconds = cache_data.get("ttl_seconds", 0)
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, (int, float)):
        msg = "cache.ttl_seconds must be a number"
        raise ValueError(msg)

    max_entries = cache_data.get("max_entries", 256)
    if isinstance(max_entries, bool) or not isinstance(max_entries, int):
        msg = "cache.max_entries must be an integer"
        raise ValueError(msg)

    config = ProjectConfig(
        name=name,
        graph=GraphConfig(prune_dangling=prune_dangling),
        cache=CacheConfig(ttl_seconds=float(ttl_seconds), max_entries=max_entries),
    )
    _validate_config(config)
    return config


def create_default_config(
    project_path: Path,
    *,
    name: str | None = None,
    force: bool = False,
) -> ProjectConfig:
    """Create .taskgraph/ with config.toml and an empty tasks.json.

    An existing tasks.json is never overwritten, even with force=True.

    Args:
        project_path: Path to the project root directory.
        name: Project name. Defaults to directory basename.
        force: Overwrite an existing config.toml.

    Returns:
        The created ProjectConfig.

    Raises:
        FileExistsError: If .taskgraph/config.toml exists and force=False.
    """
    project_dir = project_path / PROJECT_DIR
    config_file = project_dir / CONFIG_FILE
    if config_file.exists() and not force:
        msg = f"Project already initialized: {project_dir}"
        raise FileExistsError(msg)

    resolved_name = name or project_path.resolve().name

    config = ProjectConfig(name=resolved_name)
    _validate_config(config)

    project_dir.mkdir(parents=True, exist_ok=True)
    config_file.write_text(_generate_toml(config), encoding="utf-8")

    tasks_file = project_dir / TASKS_FILE
    if not tasks_file.exists():
        tasks_file.write_text(json.dumps({"tasks": []}, indent=2) + "\n", encoding="utf-8")

    logger.info("Initialized project '%s' at %s", resolved_name, project_dir)
    return config


def _generate_toml(config: ProjectConfig) -> str:
    """Generate TOML string from a ProjectConfig.

    Handles Python→TOML type mapping: booleans as true/false,
    numbers unquoted, strings quoted.
    """
    lines = [
        "[project]",
        f'name = "{_escape_toml_string(config.name)}"',
        "",
        "[graph]",
        f"prune_dangling = {'true' if config.graph.prune_dangling else 'false'}",
        "",
        "[cache]",
        f"ttl_seconds = {config.cache.ttl_seconds:g}",
        f"max_entries = {config.cache.max_entries}",
        "",
    ]
    return "\n".join(lines)


def _escape_toml_string(value: str) -> str:
    """Escape special characters for TOML string values."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _validate_config(config: ProjectConfig) -> None:
    """Validate config values.

    Raises:
        ValueError: On invalid configuration.
    """
    if not config.name or not config.name.strip():
        msg = "project.name must not be empty"
        raise ValueError(msg)

    if config.cache.ttl_seconds < 0:
        msg = f"cache.ttl_seconds must not be negative, got {config.cache.ttl_seconds}"
        raise ValueError(msg)
    if config.cache.max_entries < 0:
        msg = f"cache.max_entries must not be negative, got {config.cache.max_entries}"
        raise ValueError(msg)
