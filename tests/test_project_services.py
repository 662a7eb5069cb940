import pytest

from phasegrid.errors import EntityNotFoundError, ValidationError
from phasegrid.models import ArtifactStatus, Phase
from phasegrid.services.artifacts import ArtifactService
from phasegrid.services.projects import ProjectService


@pytest.fixture
def projects(context, db):
    return ProjectService(context, db)


@pytest.fixture
def artifacts(context, db):
    return ArtifactService(context, db)


def test_create_project_logs_initial_phase(projects, db, tmp_path):
    project = projects.create("shop", tmp_path / "shop")
    assert project.phase is Phase.BRAINSTORM
    assert project.repo_path == str((tmp_path / "shop").resolve())
    events = projects.list_events(project.id)
    assert len(events) == 1
    assert events[0].event_type == "phase_change"
    assert events[0].details == {"to": "brainstorm"}


def test_create_project_validation(projects):
    with pytest.raises(ValidationError):
        projects.create("  ", "/tmp/x")
    with pytest.raises(ValidationError):
        projects.create("x", "")


def test_get_missing_project(projects):
    with pytest.raises(EntityNotFoundError) as excinfo:
        projects.get("missing")
    assert excinfo.value.category == "not_found"
    assert str(excinfo.value) == "Project missing not found"


def test_model_overrides(projects, project):
    assert projects.get_model_for_phase(project.id, "execute") == "sonnet"

    projects.set_model(project.id, "execute", "opus")
    projects.set_model(project.id, Phase.PLAN, "haiku")

    assert projects.get(project.id).model_config == {"execute": "opus", "plan": "haiku"}
    assert projects.get_model_for_phase(project.id, "execute") == "opus"

    projects.set_model_config(project.id, {"design": "sonnet"})
    assert projects.get_model_for_phase(project.id, "execute") == "sonnet"

    with pytest.raises(ValidationError):
        projects.set_model_config(project.id, {"deploy": "opus"})
    with pytest.raises(ValidationError):
        projects.get_model_for_phase(project.id, "deploy")


def test_list_events_limit(projects, project, db, artifacts):
    for n in range(3):
        artifacts.approve(artifacts.create(project.id, "design", f"d{n}").id)
    assert len(projects.list_events(project.id)) == 3
    assert len(projects.list_events(project.id, limit=2)) == 2
    with pytest.raises(ValidationError):
        projects.list_events(project.id, limit=0)


def test_artifact_from_file(artifacts, project, tmp_path):
    doc = tmp_path / "design.md"
    doc.write_text("# Design\n", encoding="utf-8")
    artifact = artifacts.create(project.id, "design", file_path=doc)
    assert artifact.content == "# Design\n"
    assert artifact.file_path == str(doc)
    assert artifact.status == ArtifactStatus.DRAFT


def test_artifact_create_validation(artifacts, project, tmp_path):
    with pytest.raises(ValidationError):
        artifacts.create(project.id, "spec", "x")
    with pytest.raises(ValidationError):
        artifacts.create(project.id, "design")
    with pytest.raises(ValidationError):
        artifacts.create(project.id, "design", file_path=tmp_path / "missing.md")
    with pytest.raises(EntityNotFoundError):
        artifacts.create("missing", "design", "x")


def test_approve_and_reject_append_events(artifacts, db, project):
    approved = artifacts.approve(artifacts.create(project.id, "design", "a").id)
    rejected = artifacts.reject(artifacts.create(project.id, "plan", "b").id, "Split task 3")

    assert approved.status == ArtifactStatus.APPROVED
    assert rejected.status == ArtifactStatus.REJECTED
    assert rejected.feedback == "Split task 3"

    details = [e.details for e in db.list_events(project.id)]
    assert details == [
        {"artifact_id": rejected.id, "status": "rejected", "feedback": "Split task 3"},
        {"artifact_id": approved.id, "status": "approved"},
    ]


def test_decisions_are_final(artifacts, project):
    artifact = artifacts.create(project.id, "design", "a")
    artifacts.reject(artifact.id, "redo")
    with pytest.raises(ValidationError):
        artifacts.approve(artifact.id)
    with pytest.raises(ValidationError):
        artifacts.reject(artifacts.create(project.id, "design", "b").id, "   ")
    with pytest.raises(EntityNotFoundError):
        artifacts.approve("missing")


def test_list_artifacts(artifacts, project):
    design = artifacts.create(project.id, "design", "a")
    plan = artifacts.create(project.id, "plan", "b")
    assert [a.id for a in artifacts.list(project.id)] == [design.id, plan.id]
    assert [a.id for a in artifacts.list(project.id, "design")] == [design.id]
