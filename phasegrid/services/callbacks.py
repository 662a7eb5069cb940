"""
PhaseGrid Callback Payloads

Chat-style inline buttons carry a compact payload, ``grid:<action>:<id>``,
optionally followed by ``:<extra>`` (for example the task numbers of a batch).
This module builds those buttons and parses payloads coming back.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

CALLBACK_PREFIX = "grid"


class CallbackAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    VIEW = "view"
    CONTINUE = "continue"
    PAUSE = "pause"
    ADVANCE = "advance"
    BATCH = "batch"


@dataclass(frozen=True)
class GridCallback:
    action: CallbackAction
    id: str
    extra: Optional[str] = None

    @property
    def task_numbers(self) -> List[int]:
        """Task numbers carried by a ``batch`` payload."""
        if not self.extra:
            return []
        return [int(part) for part in self.extra.split(",") if part.strip().isdigit()]


@dataclass(frozen=True)
class InlineButton:
    text: str
    callback_data: str

    def to_dict(self) -> Dict[str, str]:
        return {"text": self.text, "callback_data": self.callback_data}


ButtonRows = List[List[InlineButton]]


def callback_data(action: CallbackAction, entity_id: str, extra: Optional[str] = None) -> str:
    parts = [CALLBACK_PREFIX, CallbackAction(action).value, entity_id]
    if extra:
        parts.append(extra)
    return ":".join(parts)


def parse_callback(text: str) -> Optional[GridCallback]:
    """
    Parse a ``grid:`` payload.

    Returns None for anything that is not a well-formed payload with a known
    action. Everything after the id is kept verbatim in ``extra``.
    """
    parts = text.split(":")
    if len(parts) < 3 or parts[0] != CALLBACK_PREFIX:
        return None
    try:
        action = CallbackAction(parts[1])
    except ValueError:
        return None
    extra = ":".join(parts[3:]) if len(parts) > 3 else None
    return GridCallback(action=action, id=parts[2], extra=extra)


def format_buttons(kind: str, *ids: str) -> ButtonRows:
    """
    Standard button rows.

    ``format_buttons("approval", artifact_id, project_id)`` offers approve,
    revise and dashboard; ``format_buttons("checkpoint", project_id)`` offers
    continue, pause and dashboard.
    """
    if kind == "approval":
        artifact_id, project_id = ids
        return [[
            InlineButton("✅ Approve", callback_data(CallbackAction.APPROVE, artifact_id)),
            InlineButton("❌ Revise", callback_data(CallbackAction.REJECT, artifact_id)),
            InlineButton("💬 Dashboard", callback_data(CallbackAction.VIEW, project_id)),
        ]]
    if kind == "checkpoint":
        (project_id,) = ids
        return [[
            InlineButton("▶️ Continue", callback_data(CallbackAction.CONTINUE, project_id)),
            InlineButton("⏸ Pause", callback_data(CallbackAction.PAUSE, project_id)),
            InlineButton("🔍 Dashboard", callback_data(CallbackAction.VIEW, project_id)),
        ]]
    raise ValueError(f"Unknown button set: {kind}")


def orchestrator_buttons(
    project_id: str,
    kind: str,
    task_numbers: Optional[Sequence[int]] = None,
) -> ButtonRows:
    """Button rows for orchestrator notifications: ``launch``, ``advance`` or ``progress``."""
    if kind == "launch":
        numbers = list(task_numbers or [])
        return [[
            InlineButton(
                f"▶️ Launch Tasks {', '.join(str(n) for n in numbers)}",
                callback_data(CallbackAction.BATCH, project_id, ",".join(str(n) for n in numbers)),
            ),
            InlineButton("⏸️ Skip", callback_data(CallbackAction.PAUSE, project_id)),
        ]]
    if kind == "advance":
        return [[
            InlineButton("✅ Advance to Review", callback_data(CallbackAction.ADVANCE, project_id)),
            InlineButton("🔍 Dashboard", callback_data(CallbackAction.VIEW, project_id)),
        ]]
    if kind == "progress":
        return [[InlineButton("📊 Progress", callback_data(CallbackAction.VIEW, project_id))]]
    return []


def batch_buttons(project_id: str, batch_number: int, task_numbers: Sequence[int]) -> ButtonRows:
    """Launch/pause row attached to a ``spawn_batch`` status."""
    return [[
        InlineButton(
            f"▶️ Launch Batch {batch_number}",
            callback_data(CallbackAction.BATCH, project_id, ",".join(str(n) for n in task_numbers)),
        ),
        InlineButton("⏸️ Pause", callback_data(CallbackAction.PAUSE, project_id)),
    ]]


def advance_buttons(project_id: str) -> ButtonRows:
    """Single confirmation row attached to an ``all_done`` status."""
    return [[InlineButton("✅ Advance to Review", callback_data(CallbackAction.ADVANCE, project_id))]]


def buttons_to_dicts(rows: ButtonRows) -> List[List[Dict[str, str]]]:
    return [[button.to_dict() for button in row] for row in rows]
