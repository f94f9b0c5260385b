"""Dependency CLI commands for task-depgraph.

Provides the ``deps`` group: validate, fix, add, remove and ready.
Every command accepts ``--project`` as an explicit root; without it the
root is discovered from the working directory.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any

import click

from .exceptions import TaskGraphError
from .models import NodeId, parse_node_ref
from .service import DependencyService

_project_option = click.option(
    "--project",
    "-p",
    "project",
    type=click.Path(file_okay=False),
    default=None,
    help="Project root (discovered from the working directory if omitted)",
)
_json_option = click.option("--json", "as_json", is_flag=True, help="Print a JSON report")


class NodeRefType(click.ParamType):
    """Click parameter for node references such as ``3`` or ``4.2``."""

    name = "node"

    def convert(
        self, value: Any, param: click.Parameter | None, ctx: click.Context | None
    ) -> NodeId:
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            try:
                return parse_node_ref(str(value))
            except TaskGraphError as exc:
                self.fail(str(exc), param, ctx)
        self.fail(f"{value!r} is not a node reference", param, ctx)


NODE = NodeRefType()


def _make_service(project: str | None) -> DependencyService:
    if project is not None:
        return DependencyService.for_project(project)
    return DependencyService()


def _fail(exc: Exception) -> None:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(1)


@click.group()
def deps() -> None:
    """Validate and repair task dependencies."""


@deps.command("validate")
@_project_option
@_json_option
def validate_command(project: str | None, as_json: bool) -> None:
    """Report cycles, missing and duplicate dependencies."""
    try:
        service = _make_service(project)
        report = asyncio.run(service.validate(project))
    except (TaskGraphError, ValueError) as exc:
        _fail(exc)
        return

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    elif report.is_valid:
        click.echo("All dependencies are valid")
    else:
        for path in report.cycle_paths:
            click.echo(f"Cycle: {' -> '.join(str(node) for node in path)}")
        for ref in report.dangling:
            click.echo(f"Missing: {ref.node} depends on {ref.dependency}")
        for edge in report.duplicates:
            click.echo(f"Duplicate: {edge.from_node} lists {edge.to_node} more than once")

    if not report.is_valid:
        sys.exit(1)


@deps.command("fix")
@_project_option
@click.option("--dry-run", is_flag=True, help="Report changes without writing them")
@click.option(
    "--prune-dangling/--keep-dangling",
    default=None,
    help="Remove references to missing tasks (default: from config.toml)",
)
@_json_option
def fix_command(
    project: str | None,
    dry_run: bool,
    prune_dangling: bool | None,
    as_json: bool,
) -> None:
    """Remove duplicate dependencies and break every cycle."""
    try:
        service = _make_service(project)
        report = asyncio.run(
            service.fix(project, dry_run=dry_run, prune_dangling=prune_dangling)
        )
    except (TaskGraphError, ValueError) as exc:
        _fail(exc)
        return

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    if not report.changed:
        click.echo("No changes needed")
    for edge in report.resolution.removed_edges:
        click.echo(f"Removed circular dependency: {edge.from_node} -> {edge.to_node}")
    for edge in report.duplicates_removed:
        click.echo(f"Removed duplicate dependency: {edge.from_node} -> {edge.to_node}")
    for ref in report.dangling_removed:
        click.echo(f"Removed missing dependency: {ref.node} -> {ref.dependency}")
    for ref in report.resolution.warnings:
        click.echo(f"Warning: {ref.node} depends on missing {ref.dependency}")
    if dry_run and report.changed:
        click.echo("Dry run: no changes written")


@deps.command("add")
@click.argument("node", type=NODE)
@click.argument("dependency", type=NODE)
@_project_option
def add_command(node: NodeId, dependency: NodeId, project: str | None) -> None:
    """Make NODE depend on DEPENDENCY."""
    try:
        service = _make_service(project)
        added = asyncio.run(service.add(node, dependency, project))
    except (TaskGraphError, ValueError) as exc:
        _fail(exc)
        return

    if added:
        click.echo(f"Added dependency: {node} -> {dependency}")
    else:
        click.echo(f"Dependency already exists: {node} -> {dependency}")


@deps.command("remove")
@click.argument("node", type=NODE)
@click.argument("dependency", type=NODE)
@_project_option
def remove_command(node: NodeId, dependency: NodeId, project: str | None) -> None:
    """Remove DEPENDENCY from NODE."""
    try:
        service = _make_service(project)
        removed = asyncio.run(service.remove(node, dependency, project))
    except (TaskGraphError, ValueError) as exc:
        _fail(exc)
        return

    if removed:
        click.echo(f"Removed dependency: {node} -> {dependency}")
    else:
        click.echo(f"{node} does not depend on {dependency}")


@deps.command("ready")
@_project_option
def ready_command(project: str | None) -> None:
    """List tasks and subtasks whose dependencies are all complete."""
    try:
        service = _make_service(project)
        nodes = asyncio.run(service.ready(project))
    except (TaskGraphError, ValueError) as exc:
        _fail(exc)
        return

    if not nodes:
        click.echo("Nothing is ready")
    for node in nodes:
        click.echo(str(node))
