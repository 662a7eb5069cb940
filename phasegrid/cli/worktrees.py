import click
from rich.console import Console
from rich.table import Table

from phasegrid.cli.main import echo_json, get_db, get_service_context, handle_errors, wants_json
from phasegrid.models.domain import WorktreeStatus
from phasegrid.services.worktrees import WorktreeService

console = Console()


def _service() -> WorktreeService:
    return WorktreeService(get_service_context(), get_db())


@click.group()
def worktree():
    """Git worktree commands."""
    pass


@worktree.command("create")
@click.argument("project_id")
@click.option("--branch", required=True, help="New branch name")
@click.pass_context
@handle_errors
def create_worktree(ctx, project_id, branch):
    """Create a worktree on a new branch."""
    wt = _service().create(project_id, branch)
    if wants_json(ctx):
        echo_json(wt)
        return
    console.print(f"[green]Created worktree for {wt.branch}[/green]")
    click.echo(f"  ID: {wt.id}")
    click.echo(f"  Path: {wt.path}")


@worktree.command("list")
@click.argument("project_id")
@click.pass_context
@handle_errors
def list_worktrees(ctx, project_id):
    """List a project's worktrees."""
    worktrees = _service().list(project_id)

    if wants_json(ctx):
        echo_json(worktrees)
        return

    table = Table(title="Worktrees")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Branch", style="magenta")
    table.add_column("Status", style="green")
    table.add_column("Path")

    for wt in worktrees:
        table.add_row(wt.id, wt.branch, wt.status, wt.path)

    console.print(table)


@worktree.command("set-status")
@click.argument("worktree_id")
@click.option("--status", required=True, type=click.Choice(sorted(WorktreeStatus.ALL)), help="New status")
@click.pass_context
@handle_errors
def set_worktree_status(ctx, worktree_id, status):
    """Mark a worktree active, merged or discarded."""
    wt = _service().set_status(worktree_id, status)
    if wants_json(ctx):
        echo_json(wt)
        return
    click.echo(f"✓ Worktree {wt.branch} is now {wt.status}")


@worktree.command("cleanup")
@click.argument("project_id")
@click.pass_context
@handle_errors
def cleanup_worktrees(ctx, project_id):
    """Remove merged and discarded worktrees from disk."""
    removed = _service().cleanup(project_id)
    if wants_json(ctx):
        echo_json({"removed": removed})
        return
    click.echo(f"✓ Removed {len(removed)} worktree(s)")
