"""Task dependency graph engine.

This package builds dependency graphs from task snapshots, detects and
breaks dependency cycles, and provides a single-flight result cache and
project-root resolution for the tools built on top of it.
"""

from __future__ import annotations

from .cache import CacheStats, ResultCache
from .cycles import Edge, find_all_cycles, find_cycle_paths, find_cycles, has_cycle
from .dep_graph import DanglingReference, DependencyMap, build_dependency_map
from .dependency_ops import (
    FixReport,
    ValidationReport,
    add_dependency,
    fix_dependencies,
    is_ready,
    ready_nodes,
    remove_dependency,
    validate_dependencies,
)
from .exceptions import (
    DependencyCycleError,
    InvalidNodeRefError,
    ProjectNotFoundError,
    ResolverInconsistencyError,
    TaskGraphError,
    TaskStoreError,
    UnknownNodeError,
)
from .models import (
    NodeId,
    Subtask,
    SubtaskNode,
    Task,
    TaskNode,
    TaskStatus,
    format_node_ref,
    parse_node_ref,
)
from .project_root import ProjectRootResolver, find_project_root
from .resolver import RemovedEdge, ResolutionReport, detect_and_resolve, resolve_cycles
from .service import DependencyService
from .task_store import JsonTaskStore

__all__ = [
    # Models
    "NodeId",
    "Subtask",
    "SubtaskNode",
    "Task",
    "TaskNode",
    "TaskStatus",
    "format_node_ref",
    "parse_node_ref",
    # Graph
    "DanglingReference",
    "DependencyMap",
    "build_dependency_map",
    "Edge",
    "find_all_cycles",
    "find_cycle_paths",
    "find_cycles",
    "has_cycle",
    "RemovedEdge",
    "ResolutionReport",
    "detect_and_resolve",
    "resolve_cycles",
    # Operations
    "FixReport",
    "ValidationReport",
    "add_dependency",
    "fix_dependencies",
    "is_ready",
    "ready_nodes",
    "remove_dependency",
    "validate_dependencies",
    # Infrastructure
    "CacheStats",
    "ResultCache",
    "ProjectRootResolver",
    "find_project_root",
    "JsonTaskStore",
    "DependencyService",
    # Errors
    "TaskGraphError",
    "InvalidNodeRefError",
    "UnknownNodeError",
    "DependencyCycleError",
    "ResolverInconsistencyError",
    "ProjectNotFoundError",
    "TaskStoreError",
]
