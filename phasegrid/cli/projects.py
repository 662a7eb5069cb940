import click
from rich.console import Console
from rich.table import Table

from phasegrid.cli.main import echo_json, get_db, get_service_context, handle_errors, wants_json
from phasegrid.models.domain import Phase
from phasegrid.services.projects import ProjectService

console = Console()

PHASE_CHOICE = click.Choice([p.value for p in Phase])


def _service() -> ProjectService:
    return ProjectService(get_service_context(), get_db())


@click.group()
def project():
    """Project management commands."""
    pass


@project.command("create")
@click.option("--name", required=True, help="Project name")
@click.option("--repo", "repo_path", required=True, help="Path to the git repository")
@click.pass_context
@handle_errors
def create_project(ctx, name, repo_path):
    """Create a new project (starts in brainstorm)."""
    p = _service().create(name, repo_path)
    if wants_json(ctx):
        echo_json(p)
        return
    console.print(f"[green]Created project {p.name}[/green]")
    click.echo(f"  ID: {p.id}")
    click.echo(f"  Repo: {p.repo_path}")


@project.command("list")
@click.pass_context
@handle_errors
def list_projects(ctx):
    """List all projects, newest first."""
    projects = _service().list()

    if wants_json(ctx):
        echo_json(projects)
        return

    table = Table(title="Projects")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="magenta")
    table.add_column("Phase", style="green")
    table.add_column("Repo")

    for p in projects:
        table.add_row(p.id, p.name, p.phase.value, p.repo_path)

    console.print(table)


@project.command("show")
@click.argument("project_id")
@click.pass_context
@handle_errors
def show_project(ctx, project_id):
    """Show project details."""
    service = _service()
    p = service.get(project_id)
    models = {phase.value: service.get_model_for_phase(project_id, phase) for phase in Phase}

    if wants_json(ctx):
        echo_json({
            "id": p.id,
            "name": p.name,
            "phase": p.phase.value,
            "repo_path": p.repo_path,
            "model_config": p.model_config,
            "models": models,
        })
        return

    console.print(f"[bold]Project: {p.name}[/bold] (ID: {p.id})")
    click.echo(f"Phase: {p.phase.value}")
    click.echo(f"Repo: {p.repo_path}")
    click.echo("Models: " + ", ".join(f"{phase}={model}" for phase, model in models.items()))


@project.command("set-model")
@click.argument("project_id")
@click.option("--phase", required=True, type=PHASE_CHOICE, help="Phase to configure")
@click.option("--model", required=True, help="Model alias")
@click.pass_context
@handle_errors
def set_model(ctx, project_id, phase, model):
    """Override the model used for one phase."""
    p = _service().set_model(project_id, phase, model)
    if wants_json(ctx):
        echo_json({"id": p.id, "model_config": p.model_config})
        return
    click.echo(f"✓ {p.name}: {phase} → {model}")


@project.command("model")
@click.argument("project_id")
@click.option("--phase", required=True, type=PHASE_CHOICE, help="Phase to query")
@click.pass_context
@handle_errors
def show_model(ctx, project_id, phase):
    """Show the model used for a phase."""
    model = _service().get_model_for_phase(project_id, phase)
    if wants_json(ctx):
        echo_json({"id": project_id, "phase": phase, "model": model})
        return
    click.echo(model)
