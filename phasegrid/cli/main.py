"""
PhaseGrid CLI

Click-based command-line interface for PhaseGrid.
Provides commands for projects, artifacts, worktrees, tasks, phase
advancement and execute-phase orchestration.
"""

import functools
import json
import sys
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Callable

import click
from rich.console import Console
from rich.table import Table

from phasegrid import __version__
from phasegrid.errors import ConfigError, EntityNotFoundError, PhaseGridError, ValidationError
from phasegrid.logging import (
    EXIT_NOT_FOUND,
    EXIT_RUNTIME_ERROR,
    EXIT_USAGE_ERROR,
    get_logger,
    init_cli_logging,
)

logger = get_logger(__name__)
console = Console()


def get_service_context():
    """Create a ServiceContext for CLI operations."""
    from phasegrid.config import load_config
    from phasegrid.services.base import ServiceContext

    config = load_config()
    return ServiceContext(config=config)


def get_db():
    """Open the configured database, creating its schema if needed."""
    from phasegrid.config import load_config
    from phasegrid.db.database import get_database

    config = load_config()
    return get_database(config.db_path)


def wants_json(ctx: click.Context) -> bool:
    root = ctx.find_root()
    return bool(root.obj and root.obj.get("JSON"))


def to_jsonable(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value


def echo_json(value: Any) -> None:
    click.echo(json.dumps(to_jsonable(value), indent=2, default=str))


def exit_code_for(exc: PhaseGridError) -> int:
    if isinstance(exc, EntityNotFoundError):
        return EXIT_NOT_FOUND
    if isinstance(exc, (ValidationError, ConfigError)):
        return EXIT_USAGE_ERROR
    return EXIT_RUNTIME_ERROR


def report_error(ctx: click.Context, exc: PhaseGridError) -> None:
    """Print a PhaseGrid error and exit with its code."""
    if wants_json(ctx):
        click.echo(json.dumps({"success": False, "error": exc.category, "message": str(exc)}))
    else:
        click.echo(f"✗ Error: {exc}", err=True)
    sys.exit(exit_code_for(exc))


def handle_errors(func: Callable) -> Callable:
    """Turn PhaseGrid errors raised by a command into an error payload and exit code."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.ClickException:
            raise
        except PhaseGridError as e:
            logger.debug("command_failed", extra={"error": str(e), "category": e.category})
            report_error(click.get_current_context(), e)
        except Exception as e:
            logger.exception("Command failed")
            click.echo(f"✗ Error: {e}", err=True)
            sys.exit(EXIT_RUNTIME_ERROR)

    return wrapper


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.version_option(__version__, prog_name="phasegrid")
@click.pass_context
def cli(ctx, verbose, json_output):
    """PhaseGrid - phase-gated project orchestration."""
    ctx.ensure_object(dict)
    ctx.obj["VERBOSE"] = verbose
    ctx.obj["JSON"] = json_output

    from phasegrid.config import load_config

    try:
        config = load_config()
    except ConfigError as e:
        report_error(ctx, e)
    init_cli_logging(level="DEBUG" if verbose else config.log_level, json_output=config.log_json)


from phasegrid.cli.projects import project  # noqa: E402
from phasegrid.cli.artifacts import artifact  # noqa: E402
from phasegrid.cli.worktrees import worktree  # noqa: E402
from phasegrid.cli.tasks import task  # noqa: E402
from phasegrid.cli.orchestrate import orch  # noqa: E402

cli.add_command(project)
cli.add_command(artifact)
cli.add_command(worktree)
cli.add_command(task)
cli.add_command(orch)


# =============================================================================
# Phase and Event Commands
# =============================================================================

@cli.command("advance")
@click.argument("project_id")
@click.pass_context
@handle_errors
def advance(ctx, project_id):
    """Advance a project to its next phase if the current gate holds."""
    from phasegrid.services.state import PhaseGateService

    gates = PhaseGateService(get_service_context(), get_db())
    result = gates.advance(project_id)

    if wants_json(ctx):
        echo_json(result)
    elif result.success:
        click.echo(f"✓ Advanced {result.from_phase.value} → {result.to_phase.value}")
    else:
        click.echo(f"✗ Cannot advance from {result.from_phase.value}: {result.reason}", err=True)

    if not result.success:
        sys.exit(EXIT_RUNTIME_ERROR)


@cli.command("log")
@click.argument("project_id")
@click.option("--limit", default=20, show_default=True, type=click.IntRange(min=1), help="Number of events")
@click.pass_context
@handle_errors
def log_events(ctx, project_id, limit):
    """Show a project's event log, newest first."""
    from phasegrid.services.projects import ProjectService

    projects = ProjectService(get_service_context(), get_db())
    events = projects.list_events(project_id, limit)

    if wants_json(ctx):
        echo_json(events)
        return

    table = Table(title="Events")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Details")
    table.add_column("When", style="dim")
    for event in events:
        table.add_row(str(event.id), event.event_type, json.dumps(event.details or {}), event.created_at)
    console.print(table)


@cli.command()
def version():
    """Show version information."""
    click.echo(f"PhaseGrid v{__version__}")


# =============================================================================
# Entry Point
# =============================================================================

def main():
    """CLI entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
