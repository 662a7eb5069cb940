import click
from rich.console import Console
from rich.table import Table

from phasegrid.cli.main import echo_json, get_db, get_service_context, handle_errors, wants_json
from phasegrid.models.domain import ReviewType
from phasegrid.services.tasks import TaskService

console = Console()


def _service() -> TaskService:
    return TaskService(get_service_context(), get_db())


def _print_tasks(title, tasks):
    table = Table(title=title)
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Title", style="magenta")
    table.add_column("Status", style="green")
    table.add_column("Spec")
    table.add_column("Quality")

    for t in tasks:
        table.add_row(str(t.task_number), t.title, t.status, t.spec_review or "", t.quality_review or "")

    console.print(table)


@click.group()
def task():
    """Task commands."""
    pass


@task.command("list")
@click.argument("project_id")
@click.pass_context
@handle_errors
def list_tasks(ctx, project_id):
    """List a project's tasks in task order."""
    tasks = _service().list(project_id)
    if wants_json(ctx):
        echo_json(tasks)
        return
    _print_tasks("Tasks", tasks)


@task.command("start")
@click.argument("project_id")
@click.argument("task_number", type=int)
@click.option("--agent-session", help="Session key of the agent working on the task")
@click.pass_context
@handle_errors
def start_task(ctx, project_id, task_number, agent_session):
    """Mark a task in progress."""
    t = _service().start(project_id, task_number, agent_session)
    if wants_json(ctx):
        echo_json(t)
        return
    click.echo(f"✓ Started task #{t.task_number} {t.title}")


@task.command("update")
@click.argument("project_id")
@click.argument("task_number", type=int)
@click.option("--status", required=True, help="pending, in-progress, done, failed, or approved once both reviews passed")
@click.pass_context
@handle_errors
def update_task(ctx, project_id, task_number, status):
    """Set a task's status."""
    t = _service().update_status(project_id, task_number, status)
    if wants_json(ctx):
        echo_json(t)
        return
    click.echo(f"✓ Task #{t.task_number} is now {t.status}")


@task.command("review")
@click.argument("project_id")
@click.argument("task_number", type=int)
@click.option("--type", "review_type", required=True, type=click.Choice(sorted(ReviewType.ALL)), help="spec or quality")
@click.option("--result", required=True, type=click.Choice(["pass", "fail"]), help="pass or fail")
@click.option("--feedback", default=None, help="Review feedback")
@click.pass_context
@handle_errors
def review_task(ctx, project_id, task_number, review_type, result, feedback):
    """Record a spec or quality review; the task is approved once both pass."""
    t = _service().review(project_id, task_number, review_type, result, feedback)
    if wants_json(ctx):
        echo_json(t)
        return
    click.echo(f"✓ Recorded {review_type} review for task #{t.task_number} ({t.status})")


@task.command("parse")
@click.argument("project_id")
@click.option("--file", "file_path", required=True, type=click.Path(dir_okay=False), help="Plan markdown file")
@click.option("--artifact", "artifact_id", default=None, help="Link tasks to artifact")
@click.option("--worktree", "worktree_id", default=None, help="Link tasks to worktree")
@click.pass_context
@handle_errors
def parse_tasks(ctx, project_id, file_path, artifact_id, worktree_id):
    """Create tasks from a plan file."""
    tasks = _service().parse_from_file(
        project_id,
        file_path,
        artifact_id=artifact_id,
        worktree_id=worktree_id,
    )
    if wants_json(ctx):
        echo_json({
            "tasks_created": len(tasks),
            "tasks": [{"number": t.task_number, "title": t.title} for t in tasks],
        })
        return
    click.echo(f"✓ Created {len(tasks)} task(s)")
    for t in tasks:
        click.echo(f"  #{t.task_number} {t.title}")


@task.command("batch")
@click.argument("project_id")
@click.option("--from", "first", required=True, type=int, help="First task number")
@click.option("--to", "last", required=True, type=int, help="Last task number")
@click.pass_context
@handle_errors
def batch_tasks(ctx, project_id, first, last):
    """Show tasks in a number range."""
    tasks = _service().batch_range(project_id, first, last)
    if wants_json(ctx):
        echo_json(tasks)
        return
    _print_tasks(f"Tasks {first}-{last}", tasks)
