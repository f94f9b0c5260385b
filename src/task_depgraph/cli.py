"""CLI for task-depgraph.

Provides the command-line entry point: project initialization and the
``deps`` command group for dependency validation and repair.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from .cli_deps import deps
from .project_config import create_default_config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool) -> None:
    """Task dependency graph - validate and repair task dependencies."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


cli.add_command(deps)


@cli.command("init")
@click.option(
    "--project",
    "-p",
    "project_path",
    required=True,
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Path to the project directory",
)
@click.option(
    "--name",
    "-n",
    default=None,
    help="Project name (defaults to directory name)",
)
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite existing .taskgraph/config.toml",
)
def init_command(project_path: str, name: str | None, force: bool) -> None:
    """Initialize a project for dependency tracking.

    Creates a .taskgraph/ directory with config.toml and an empty
    tasks.json.
    """
    path = Path(project_path)
    try:
        config = create_default_config(path, name=name, force=force)
    except (FileExistsError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Initialized project '{config.name}' in {path / '.taskgraph'}")


def main() -> None:
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
