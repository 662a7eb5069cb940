import pytest

from phasegrid.errors import EntityNotFoundError
from phasegrid.models import ParsedTask, Phase, TaskStatus
from phasegrid.services.state import (
    REASON_ALREADY_DONE,
    REASON_DESIGNS_NOT_APPROVED,
    REASON_NEED_ACTIVE_WORKTREE,
    REASON_NEED_APPROVED_DESIGN,
    REASON_NEED_APPROVED_PLAN,
    REASON_NO_TASKS,
    REASON_TASKS_NOT_APPROVED,
    PhaseGateService,
    next_phase,
)


@pytest.fixture
def gates(context, db):
    return PhaseGateService(context, db)


def _set_phase(db, project, phase):
    db.update_project_phase(project.id, phase)


def _assert_blocked(gates, db, project, reason):
    before_phase = db.get_project(project.id).phase
    before_events = db.list_events(project.id)

    result = gates.advance(project.id)

    assert result.success is False
    assert result.reason == reason
    assert result.to_phase is None
    assert db.get_project(project.id).phase is before_phase
    assert db.list_events(project.id) == before_events


def test_reason_strings():
    assert REASON_NEED_APPROVED_DESIGN == "Need at least one approved design artifact"
    assert REASON_DESIGNS_NOT_APPROVED == "All design artifacts must be approved"
    assert REASON_NEED_APPROVED_PLAN == "Need an approved plan artifact"
    assert REASON_NEED_ACTIVE_WORKTREE == "Need an active worktree"
    assert REASON_NO_TASKS == "No tasks found"
    assert REASON_TASKS_NOT_APPROVED == "All tasks must be approved (spec + quality reviews passed)"
    assert REASON_ALREADY_DONE == "Project is already done"


def test_next_phase_order():
    assert next_phase(Phase.BRAINSTORM) is Phase.DESIGN
    assert next_phase(Phase.REVIEW) is Phase.DONE
    assert next_phase(Phase.DONE) is None


def test_new_project_cannot_leave_brainstorm(gates, db, project):
    result = gates.advance(project.id)
    assert result.to_dict() == {
        "success": False,
        "from": "brainstorm",
        "reason": "Need at least one approved design artifact",
    }
    assert db.get_project(project.id).phase is Phase.BRAINSTORM
    assert db.list_events(project.id) == []


def test_brainstorm_blocked_by_draft_design(gates, db, project):
    db.create_artifact(project.id, "design", "draft")
    _assert_blocked(gates, db, project, REASON_NEED_APPROVED_DESIGN)


def test_brainstorm_to_design(gates, db, project):
    design = db.create_artifact(project.id, "design", "d")
    db.update_artifact_status(design.id, "approved")

    result = gates.advance(project.id)

    assert result.success is True
    assert result.from_phase is Phase.BRAINSTORM
    assert result.to_phase is Phase.DESIGN
    assert db.get_project(project.id).phase is Phase.DESIGN
    event = db.list_events(project.id)[0]
    assert event.event_type == "phase_change"
    assert event.details == {"from": "brainstorm", "to": "design"}


def test_design_gate_requires_all_designs_approved(gates, db, project):
    _set_phase(db, project, Phase.DESIGN)
    _assert_blocked(gates, db, project, REASON_DESIGNS_NOT_APPROVED)

    approved = db.create_artifact(project.id, "design", "d1")
    db.update_artifact_status(approved.id, "approved")
    rejected = db.create_artifact(project.id, "design", "d2")
    db.update_artifact_status(rejected.id, "rejected", "nope")
    _assert_blocked(gates, db, project, REASON_DESIGNS_NOT_APPROVED)


def test_plan_gate(gates, db, project):
    _set_phase(db, project, Phase.PLAN)
    _assert_blocked(gates, db, project, REASON_NEED_APPROVED_PLAN)

    plan = db.create_artifact(project.id, "plan", "p")
    db.update_artifact_status(plan.id, "approved")
    _assert_blocked(gates, db, project, REASON_NEED_ACTIVE_WORKTREE)

    worktree = db.create_worktree(project.id, "feature", "/tmp/feature")
    db.update_worktree_status(worktree.id, "merged")
    _assert_blocked(gates, db, project, REASON_NEED_ACTIVE_WORKTREE)

    db.create_worktree(project.id, "feature-2", "/tmp/feature-2")
    assert gates.advance(project.id).to_phase is Phase.EXECUTE


def test_execute_gate(gates, db, project):
    _set_phase(db, project, Phase.EXECUTE)
    _assert_blocked(gates, db, project, REASON_NO_TASKS)

    tasks = db.create_task_batch(project.id, [ParsedTask(1, "A", ""), ParsedTask(2, "B", "")])
    db.approve_task(tasks[0].id)
    db.update_task_status(tasks[1].id, TaskStatus.DONE)
    _assert_blocked(gates, db, project, REASON_TASKS_NOT_APPROVED)

    db.approve_task(tasks[1].id)
    assert gates.advance(project.id).to_phase is Phase.REVIEW


def test_review_always_advances_and_done_is_terminal(gates, db, project):
    _set_phase(db, project, Phase.REVIEW)
    result = gates.advance(project.id)
    assert result.success and result.to_phase is Phase.DONE

    _assert_blocked(gates, db, project, REASON_ALREADY_DONE)


def test_check_gate_is_read_only(gates, db, project):
    check = gates.check_gate(project.id)
    assert check.passed is False
    assert check.reason == REASON_NEED_APPROVED_DESIGN
    assert db.list_events(project.id) == []


def test_missing_project_raises(gates):
    with pytest.raises(EntityNotFoundError):
        gates.advance("does-not-exist")
    with pytest.raises(EntityNotFoundError):
        gates.check_gate("does-not-exist")


def test_full_lifecycle_walk(gates, db, project):
    design = db.create_artifact(project.id, "design", "d")
    db.update_artifact_status(design.id, "approved")
    plan = db.create_artifact(project.id, "plan", "p")
    db.update_artifact_status(plan.id, "approved")
    db.create_worktree(project.id, "main-work", "/tmp/main-work")
    task = db.create_task(project.id, 1, "Only", "")
    db.approve_task(task.id)

    phases = [gates.advance(project.id).to_phase for _ in range(5)]

    assert phases == [Phase.DESIGN, Phase.PLAN, Phase.EXECUTE, Phase.REVIEW, Phase.DONE]
    assert len(db.list_events(project.id)) == 5
    assert gates.advance(project.id).reason == REASON_ALREADY_DONE
