from phasegrid.services.callbacks import (
    CallbackAction,
    GridCallback,
    buttons_to_dicts,
    format_buttons,
    orchestrator_buttons,
    parse_callback,
)


def test_parse_valid_payloads():
    assert parse_callback("grid:approve:abc") == GridCallback(CallbackAction.APPROVE, "abc")
    batch = parse_callback("grid:batch:p1:1,2,3")
    assert batch.action is CallbackAction.BATCH
    assert batch.id == "p1"
    assert batch.extra == "1,2,3"
    assert batch.task_numbers == [1, 2, 3]


def test_extra_keeps_remaining_colons():
    assert parse_callback("grid:view:p1:a:b").extra == "a:b"


def test_parse_rejects_malformed_payloads():
    assert parse_callback("grid:approve") is None
    assert parse_callback("grip:approve:abc") is None
    assert parse_callback("grid:delete:abc") is None
    assert parse_callback("") is None


def test_approval_buttons():
    rows = buttons_to_dicts(format_buttons("approval", "a1", "p1"))
    assert rows == [[
        {"text": "✅ Approve", "callback_data": "grid:approve:a1"},
        {"text": "❌ Revise", "callback_data": "grid:reject:a1"},
        {"text": "💬 Dashboard", "callback_data": "grid:view:p1"},
    ]]


def test_checkpoint_buttons():
    rows = format_buttons("checkpoint", "p1")
    assert [b.callback_data for b in rows[0]] == ["grid:continue:p1", "grid:pause:p1", "grid:view:p1"]


def test_orchestrator_buttons():
    launch = orchestrator_buttons("p1", "launch", [4, 5])
    assert launch[0][0].text == "▶️ Launch Tasks 4, 5"
    assert launch[0][0].callback_data == "grid:batch:p1:4,5"
    assert parse_callback(launch[0][0].callback_data).task_numbers == [4, 5]

    advance = orchestrator_buttons("p1", "advance")
    assert [b.callback_data for b in advance[0]] == ["grid:advance:p1", "grid:view:p1"]

    assert orchestrator_buttons("p1", "progress") == [[orchestrator_buttons("p1", "progress")[0][0]]]
    assert orchestrator_buttons("p1", "unknown") == []
