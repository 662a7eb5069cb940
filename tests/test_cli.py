import json

import pytest
from click.testing import CliRunner

from phasegrid.cli.main import cli


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner, *args):
    return runner.invoke(cli, ["--json", *args], obj={})


def invoke_json(runner, *args):
    result = invoke(runner, *args)
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


@pytest.fixture
def project_id(runner, tmp_path):
    data = invoke_json(runner, "project", "create", "--name", "demo", "--repo", str(tmp_path / "repo"))
    return data["id"]


def test_project_create_and_list(runner, project_id):
    projects = invoke_json(runner, "project", "list")
    assert [p["id"] for p in projects] == [project_id]
    assert projects[0]["phase"] == "brainstorm"

    shown = invoke_json(runner, "project", "show", project_id)
    assert shown["models"]["execute"] == "sonnet"


def test_verbose_project_create(runner, tmp_path):
    result = runner.invoke(
        cli, ["-v", "--json", "project", "create", "--name", "demo", "--repo", str(tmp_path / "repo")], obj={}
    )
    assert result.exit_code == 0, result.output
    assert [p["name"] for p in invoke_json(runner, "project", "list")] == ["demo"]


def test_set_and_query_model(runner, project_id):
    data = invoke_json(runner, "project", "set-model", project_id, "--phase", "execute", "--model", "opus")
    assert data["model_config"] == {"execute": "opus"}
    assert invoke_json(runner, "project", "model", project_id, "--phase", "execute")["model"] == "opus"
    assert invoke_json(runner, "project", "model", project_id, "--phase", "done")["model"] == "haiku"


def test_not_found_exit_code_and_payload(runner):
    result = invoke(runner, "project", "show", "missing")
    assert result.exit_code == 4
    payload = json.loads(result.output)
    assert payload == {"success": False, "error": "not_found", "message": "Project missing not found"}


def test_invalid_status_is_a_usage_error(runner, project_id):
    result = invoke(runner, "task", "update", project_id, "1", "--status", "paused")
    assert result.exit_code == 2
    assert json.loads(result.output)["error"] == "validation"


def test_inverted_range_is_a_usage_error(runner, project_id):
    result = invoke(runner, "task", "batch", project_id, "--from", "5", "--to", "1")
    assert result.exit_code == 2
    assert json.loads(result.output)["error"] == "validation"


def test_advance_failure_exits_one(runner, project_id):
    result = invoke(runner, "advance", project_id)
    assert result.exit_code == 1
    assert json.loads(result.output) == {
        "success": False,
        "from": "brainstorm",
        "reason": "Need at least one approved design artifact",
    }


def test_artifact_flow_and_advance(runner, project_id):
    artifact = invoke_json(runner, "artifact", "create", project_id, "--type", "design", "--content", "# D")
    assert artifact["status"] == "draft"

    approved = invoke_json(runner, "artifact", "approve", artifact["id"])
    assert approved["status"] == "approved"

    result = invoke_json(runner, "advance", project_id)
    assert result == {"success": True, "from": "brainstorm", "to": "design"}

    events = invoke_json(runner, "log", project_id, "--limit", "2")
    assert [e["event_type"] for e in events] == ["phase_change", "approval"]


def test_reject_requires_feedback(runner, project_id):
    artifact = invoke_json(runner, "artifact", "create", project_id, "--type", "plan", "--content", "p")
    missing = invoke(runner, "artifact", "reject", artifact["id"])
    assert missing.exit_code == 2
    rejected = invoke_json(runner, "artifact", "reject", artifact["id"], "--feedback", "split it")
    assert rejected["feedback"] == "split it"
    assert invoke_json(runner, "artifact", "list", project_id, "--type", "plan")[0]["status"] == "rejected"


def test_task_and_orchestration_flow(runner, project_id, tmp_path):
    plan = tmp_path / "plan.md"
    plan.write_text(
        "".join(f"### Task {n}: Step {n}\nDo step {n}.\n\n" for n in range(1, 6))
        + "```\n### Task 99: Fake\n```\n",
        encoding="utf-8",
    )

    parsed = invoke_json(runner, "task", "parse", project_id, "--file", str(plan))
    assert parsed["tasks_created"] == 5

    status = invoke_json(runner, "orch", "status", project_id)
    assert status["action"] == "spawn_batch"
    assert status["batch"]["tasks"] == [1, 2, 3]

    nxt = invoke_json(runner, "orch", "next", project_id)
    assert [t["task_number"] for t in nxt["tasks"]] == [1, 2, 3]
    assert nxt["batch_number"] == 1

    assert invoke_json(runner, "orch", "start-batch", project_id, "--tasks", "1,2,3,42") == {"started": [1, 2, 3]}
    assert invoke_json(runner, "orch", "next", project_id) == {"batch": None}
    assert invoke_json(runner, "orch", "status", project_id)["action"] == "waiting"

    for n in (1, 2):
        assert invoke_json(runner, "orch", "complete", project_id, str(n))["status"] == "approved"
    failed = invoke_json(runner, "orch", "complete", project_id, "3", "--result", "fail", "--feedback", "flaky")
    assert failed["spec_review"] == "FAIL: flaky"
    assert failed["quality_review"] is None

    second = invoke_json(runner, "orch", "next", project_id, "--size", "3")
    assert [t["task_number"] for t in second["tasks"]] == [4, 5]
    assert second["batch_number"] == 2

    reviewed = invoke_json(runner, "task", "review", project_id, "4", "--type", "spec", "--result", "pass")
    assert reviewed["spec_review"] == "PASS"
    reviewed = invoke_json(
        runner, "task", "review", project_id, "4", "--type", "quality", "--result", "pass", "--feedback", "ok"
    )
    assert reviewed["status"] == "approved"

    tasks = invoke_json(runner, "task", "batch", project_id, "--from", "3", "--to", "4")
    assert [(t["task_number"], t["status"]) for t in tasks] == [(3, "failed"), (4, "approved")]

    progress = invoke_json(runner, "orch", "progress", project_id)["message"]
    assert progress.splitlines()[1] == "🟢🟢🔴🟢⚪"


def test_start_batch_rejects_bad_numbers(runner, project_id):
    result = invoke(runner, "orch", "start-batch", project_id, "--tasks", "1,x")
    assert result.exit_code == 2


def test_task_start_missing_task(runner, project_id):
    result = invoke(runner, "task", "start", project_id, "7")
    assert result.exit_code == 4
    assert json.loads(result.output)["message"] == "Task 7 not found"


def test_task_start_with_agent_session_and_guarded_approve(runner, project_id, tmp_path):
    plan = tmp_path / "plan.md"
    plan.write_text("### Task 1: Only\nDo it.\n", encoding="utf-8")
    invoke_json(runner, "task", "parse", project_id, "--file", str(plan))

    started = invoke_json(runner, "task", "start", project_id, "1", "--agent-session", "sess-1")
    assert started["agent_session"] == "sess-1"

    result = invoke(runner, "task", "update", project_id, "1", "--status", "approved")
    assert result.exit_code == 2
    assert invoke_json(runner, "task", "list", project_id)[0]["status"] == "in-progress"


def test_human_output(runner, project_id):
    result = runner.invoke(cli, ["orch", "progress", project_id], obj={})
    assert result.exit_code == 0
    assert "**demo** (0/0)" in result.output

    result = runner.invoke(cli, ["project", "list"], obj={})
    assert result.exit_code == 0
    assert "Projects" in result.output

    result = runner.invoke(cli, ["advance", project_id], obj={})
    assert result.exit_code == 1
    assert "Need at least one approved design artifact" in result.output

    result = runner.invoke(cli, ["project", "show", "missing"], obj={})
    assert result.exit_code == 4
    assert "✗ Error: Project missing not found" in result.output


def test_worktree_commands(runner, project_id):
    assert invoke_json(runner, "worktree", "list", project_id) == []
    assert invoke_json(runner, "worktree", "cleanup", project_id) == {"removed": []}
    missing = invoke(runner, "worktree", "set-status", "nope", "--status", "merged")
    assert missing.exit_code == 4


def test_worktree_create_with_git(runner, tmp_path, git_repo):
    project = invoke_json(runner, "project", "create", "--name", "app", "--repo", str(git_repo))
    wt = invoke_json(runner, "worktree", "create", project["id"], "--branch", "feature/cli")
    assert wt["status"] == "active"
    assert wt["path"].endswith("feature-cli")

    merged = invoke_json(runner, "worktree", "set-status", wt["id"], "--status", "merged")
    assert merged["status"] == "merged"
    assert invoke_json(runner, "worktree", "cleanup", project["id"]) == {"removed": [wt["id"]]}


def test_worktree_create_git_failure(runner, tmp_path):
    plain = tmp_path / "not-a-repo"
    plain.mkdir()
    project = invoke_json(runner, "project", "create", "--name", "plain", "--repo", str(plain))
    result = invoke(runner, "worktree", "create", project["id"], "--branch", "x")
    assert result.exit_code == 1
    assert json.loads(result.output)["error"] == "git"
    assert invoke_json(runner, "worktree", "list", project["id"]) == []
