import click
from rich.console import Console
from rich.table import Table

from phasegrid.cli.main import echo_json, get_db, get_service_context, handle_errors, wants_json
from phasegrid.models.domain import ArtifactType
from phasegrid.services.artifacts import ArtifactService

console = Console()

TYPE_CHOICE = click.Choice(sorted(ArtifactType.ALL))


def _service() -> ArtifactService:
    return ArtifactService(get_service_context(), get_db())


@click.group()
def artifact():
    """Design and plan artifact commands."""
    pass


@artifact.command("create")
@click.argument("project_id")
@click.option("--type", "artifact_type", required=True, type=TYPE_CHOICE, help="design or plan")
@click.option("--content", default=None, help="Markdown content")
@click.option("--file", "file_path", default=None, type=click.Path(dir_okay=False), help="Read content from file")
@click.pass_context
@handle_errors
def create_artifact(ctx, project_id, artifact_type, content, file_path):
    """Attach a draft artifact to a project."""
    a = _service().create(project_id, artifact_type, content, file_path=file_path)
    if wants_json(ctx):
        echo_json(a)
        return
    console.print(f"[green]Created {a.type} artifact[/green]")
    click.echo(f"  ID: {a.id}")


@artifact.command("approve")
@click.argument("artifact_id")
@click.pass_context
@handle_errors
def approve_artifact(ctx, artifact_id):
    """Approve a draft artifact."""
    a = _service().approve(artifact_id)
    if wants_json(ctx):
        echo_json(a)
        return
    click.echo(f"✓ Approved {a.type} artifact {a.id}")


@artifact.command("reject")
@click.argument("artifact_id")
@click.option("--feedback", required=True, help="Rejection reason")
@click.pass_context
@handle_errors
def reject_artifact(ctx, artifact_id, feedback):
    """Reject a draft artifact with feedback."""
    a = _service().reject(artifact_id, feedback)
    if wants_json(ctx):
        echo_json(a)
        return
    click.echo(f"✓ Rejected {a.type} artifact {a.id}")


@artifact.command("list")
@click.argument("project_id")
@click.option("--type", "artifact_type", default=None, type=TYPE_CHOICE, help="Filter by type")
@click.pass_context
@handle_errors
def list_artifacts(ctx, project_id, artifact_type):
    """List a project's artifacts."""
    artifacts = _service().list(project_id, artifact_type)

    if wants_json(ctx):
        echo_json(artifacts)
        return

    table = Table(title="Artifacts")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Type", style="magenta")
    table.add_column("Status", style="green")
    table.add_column("Feedback")

    for a in artifacts:
        table.add_row(a.id, a.type, a.status, a.feedback or "")

    console.print(table)
