import click
from rich.console import Console
from rich.table import Table

from phasegrid.cli.main import echo_json, get_db, get_service_context, handle_errors, wants_json
from phasegrid.services.orchestrator import OrchestratorService

console = Console()


def _service() -> OrchestratorService:
    return OrchestratorService(get_service_context(), get_db())


def _parse_numbers(ctx, param, value):
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise click.BadParameter("expected comma-separated task numbers, e.g. 1,2,3")


@click.group()
def orch():
    """Execute-phase orchestration commands."""
    pass


@orch.command("status")
@click.argument("project_id")
@click.pass_context
@handle_errors
def orch_status(ctx, project_id):
    """Show the recommended next action."""
    result = _service().status(project_id)
    if wants_json(ctx):
        echo_json(result)
        return
    click.echo(result.message)
    for row in result.buttons:
        click.echo("  " + "  ".join(f"[{b.text}] {b.callback_data}" for b in row))


@orch.command("progress")
@click.argument("project_id")
@click.pass_context
@handle_errors
def orch_progress(ctx, project_id):
    """Print the progress report."""
    message = _service().progress_message(project_id)
    if wants_json(ctx):
        echo_json({"message": message})
        return
    click.echo(message)


@orch.command("complete")
@click.argument("project_id")
@click.argument("task_number", type=int)
@click.option("--result", default="pass", show_default=True, type=click.Choice(["pass", "fail"]), help="pass or fail")
@click.option("--feedback", default=None, help="Completion feedback")
@click.pass_context
@handle_errors
def orch_complete(ctx, project_id, task_number, result, feedback):
    """Report a finished task."""
    t = _service().complete_task(project_id, task_number, result, feedback)
    if wants_json(ctx):
        echo_json(t)
        return
    click.echo(f"✓ Task #{t.task_number} {t.status}")


@orch.command("start-batch")
@click.argument("project_id")
@click.option("--tasks", "task_numbers", required=True, callback=_parse_numbers, help="Comma-separated task numbers")
@click.pass_context
@handle_errors
def orch_start_batch(ctx, project_id, task_numbers):
    """Mark pending tasks in progress."""
    started = _service().start_batch(project_id, task_numbers)
    if wants_json(ctx):
        echo_json({"started": started})
        return
    if started:
        click.echo("✓ Started tasks " + ", ".join(str(n) for n in started))
    else:
        click.echo("No pending tasks matched")


@orch.command("next")
@click.argument("project_id")
@click.option("--size", default=None, type=click.IntRange(min=1), help="Batch size (default: PHASEGRID_BATCH_SIZE)")
@click.pass_context
@handle_errors
def orch_next(ctx, project_id, size):
    """Show the next batch, if one can start."""
    batch = _service().get_next_batch(project_id, size)
    if wants_json(ctx):
        if batch is None:
            echo_json({"batch": None})
        else:
            echo_json({
                "batch_number": batch.batch_number,
                "parallel": batch.parallel,
                "tasks": batch.tasks,
            })
        return

    if batch is None:
        click.echo("No batch ready (tasks in progress or none pending)")
        return

    table = Table(title=f"Batch {batch.batch_number}" + (" (parallel)" if batch.parallel else ""))
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Title", style="magenta")
    for t in batch.tasks:
        table.add_row(str(t.task_number), t.title)
    console.print(table)
