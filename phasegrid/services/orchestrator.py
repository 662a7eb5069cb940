"""
PhaseGrid Orchestrator Service

Batch scheduling for the execute phase. Tasks run in batches of consecutive
task numbers and only one batch may be in flight per project: no new batch
is offered while any task is in progress.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from phasegrid.db.database import Database
from phasegrid.errors import ValidationError
from phasegrid.models.domain import (
    Review,
    ReviewSource,
    ReviewType,
    ReviewVerdict,
    Task,
    TaskStatus,
    TaskUpdateDetails,
)
from phasegrid.services.base import Service, ServiceContext
from phasegrid.services.callbacks import (
    ButtonRows,
    advance_buttons,
    batch_buttons,
    buttons_to_dicts,
)
from phasegrid.services.tasks import TaskService

DEFAULT_FAILURE_FEEDBACK = "Subagent reported failure"

_BAR_GLYPHS = {"complete": "🟢", "in_progress": "🔵", "failed": "🔴", "other": "⚪"}
_LINE_ICONS = {"complete": "✅", "in_progress": "🔄", "failed": "❌", "other": "⏳"}


class OrchestrateAction(str, Enum):
    """What the caller should do next."""
    ALL_DONE = "all_done"
    WAITING = "waiting"
    SPAWN_BATCH = "spawn_batch"
    CHECKPOINT = "checkpoint"


@dataclass
class Progress:
    done: int
    total: int
    pending: int
    in_progress: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "done": self.done,
            "total": self.total,
            "pending": self.pending,
            "in_progress": self.in_progress,
        }


@dataclass
class BatchPlan:
    batch_number: int
    tasks: List[Task]
    parallel: bool

    @property
    def task_numbers(self) -> List[int]:
        return [t.task_number for t in self.tasks]


@dataclass
class OrchestrateResult:
    action: OrchestrateAction
    progress: Progress
    message: str
    batch: Optional[BatchPlan] = None
    buttons: ButtonRows = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "action": self.action.value,
            "progress": self.progress.to_dict(),
            "message": self.message,
            "buttons": buttons_to_dicts(self.buttons),
        }
        if self.batch is not None:
            data["batch"] = {
                "batch_number": self.batch.batch_number,
                "tasks": self.batch.task_numbers,
                "parallel": self.batch.parallel,
            }
        return data


def _bucket(task: Task) -> str:
    if task.is_complete:
        return "complete"
    if task.is_in_progress:
        return "in_progress"
    if task.status == TaskStatus.FAILED:
        return "failed"
    return "other"


def compute_progress(tasks: Sequence[Task]) -> Progress:
    return Progress(
        done=sum(1 for t in tasks if t.is_complete),
        total=len(tasks),
        pending=sum(1 for t in tasks if t.status == TaskStatus.PENDING),
        in_progress=sum(1 for t in tasks if t.is_in_progress),
    )


def plan_next_batch(tasks: Sequence[Task], batch_size: int) -> Optional[BatchPlan]:
    """
    Select the next batch from a project's tasks.

    None while anything is in progress or when nothing is pending.
    """
    if batch_size < 1:
        raise ValidationError(f"Batch size must be at least 1, got {batch_size}")
    if any(t.is_in_progress for t in tasks):
        return None
    pending = sorted((t for t in tasks if t.status == TaskStatus.PENDING), key=lambda t: t.task_number)
    if not pending:
        return None
    batch = pending[:batch_size]
    return BatchPlan(
        batch_number=math.ceil((len(tasks) - len(pending)) / batch_size) + 1,
        tasks=batch,
        parallel=len(batch) > 1,
    )


class OrchestratorService(Service):
    """
    Service for execute-phase orchestration.

    Callers poll ``status`` for the next action, start the offered batch with
    ``start_batch`` and report each finished task through ``complete_task``.

    Example:
        orchestrator = OrchestratorService(context, db)
        result = orchestrator.status(project_id)
        if result.action is OrchestrateAction.SPAWN_BATCH:
            orchestrator.start_batch(project_id, result.batch.task_numbers)
    """

    def __init__(
        self,
        context: ServiceContext,
        db: Database,
        *,
        task_service: Optional[TaskService] = None,
    ) -> None:
        super().__init__(context, db)
        self.task_service = task_service or TaskService(context, db)

    def _tasks(self, project_id: str) -> List[Task]:
        self.require_project(project_id)
        return self.db.list_tasks(project_id)

    def get_progress(self, project_id: str) -> Progress:
        return compute_progress(self._tasks(project_id))

    def get_next_batch(self, project_id: str, batch_size: Optional[int] = None) -> Optional[BatchPlan]:
        size = batch_size if batch_size is not None else self.config.batch_size
        return plan_next_batch(self._tasks(project_id), size)

    def start_batch(self, project_id: str, task_numbers: Sequence[int]) -> List[int]:
        """
        Mark the listed pending tasks in-progress.

        Unknown or non-pending numbers are skipped. Returns the numbers that
        were actually started.
        """
        self.require_project(project_id)
        started = self.db.start_pending_tasks(project_id, list(task_numbers))
        numbers = [t.task_number for t in started]
        skipped = [n for n in task_numbers if n not in numbers]
        self.logger.info(
            "batch_started",
            extra=self.log_extra(project_id=project_id, started=numbers, skipped=skipped or None),
        )
        return numbers

    def complete_task(
        self,
        project_id: str,
        task_number: int,
        result: str,
        feedback: Optional[str] = None,
    ) -> Task:
        """
        Record a finished task and auto-review it.

        ``pass`` writes passing spec and quality reviews and approves the
        task. ``fail`` writes a failing spec review, leaves the quality review
        alone and marks the task failed.

        Raises:
            EntityNotFoundError: If the project or task does not exist
            ValidationError: If ``result`` is not ``pass`` or ``fail``
        """
        outcome = (result or "").strip().lower()
        if outcome not in ("pass", "fail"):
            raise ValidationError(f"Invalid result: {result!r} (expected 'pass' or 'fail')")

        task = self.task_service.get(project_id, task_number)
        task = self.db.update_task_status(task.id, TaskStatus.DONE)
        note = (feedback or "").strip()

        if outcome == "pass":
            task = self.task_service.record_review(
                task,
                ReviewType.SPEC,
                Review(ReviewVerdict.PASS, f"Subagent completed successfully. {note}".strip(), ReviewSource.AUTO),
            )
            task = self.task_service.record_review(
                task,
                ReviewType.QUALITY,
                Review(ReviewVerdict.PASS, f"Auto-reviewed. {note}".strip(), ReviewSource.AUTO),
            )
            if task.status != TaskStatus.APPROVED:
                task = self.db.approve_task(task.id)
        else:
            task = self.task_service.record_review(
                task,
                ReviewType.SPEC,
                Review(ReviewVerdict.FAIL, note or DEFAULT_FAILURE_FEEDBACK, ReviewSource.AUTO),
            )
            task = self.db.update_task_status(task.id, TaskStatus.FAILED)

        self.db.append_event(
            project_id,
            TaskUpdateDetails(task=task_number, status=task.status, feedback=feedback or None),
        )
        self.logger.info(
            "task_completed",
            extra=self.log_extra(project_id=project_id, task_number=task_number, result=outcome, status=task.status),
        )
        return task

    def status(self, project_id: str) -> OrchestrateResult:
        """
        Decide what the caller should do next. Reads only.

        Priority: all_done, then waiting, then spawn_batch, then checkpoint.
        """
        tasks = self._tasks(project_id)
        progress = compute_progress(tasks)
        fraction = f"{progress.done}/{progress.total}"

        if progress.total > 0 and progress.done == progress.total:
            return OrchestrateResult(
                action=OrchestrateAction.ALL_DONE,
                progress=progress,
                message=f"✅ All {progress.total} tasks complete! Ready to advance to review phase.",
                buttons=advance_buttons(project_id),
            )

        if progress.in_progress > 0:
            return OrchestrateResult(
                action=OrchestrateAction.WAITING,
                progress=progress,
                message=f"⏳ {progress.in_progress} task(s) in progress ({fraction} done)",
            )

        batch = plan_next_batch(tasks, self.config.batch_size)
        if batch is not None:
            numbers = ", ".join(str(n) for n in batch.task_numbers)
            return OrchestrateResult(
                action=OrchestrateAction.SPAWN_BATCH,
                progress=progress,
                message=f"🚀 Batch {batch.batch_number}: Tasks {numbers} ready to spawn ({fraction} done)",
                batch=batch,
                buttons=batch_buttons(project_id, batch.batch_number, batch.task_numbers),
            )

        return OrchestrateResult(
            action=OrchestrateAction.CHECKPOINT,
            progress=progress,
            message=f"📊 Checkpoint: {fraction} tasks complete",
        )

    def progress_message(self, project_id: str) -> str:
        """
        Compact text report: a header, one glyph per task, then one line per task.
        """
        project = self.require_project(project_id)
        tasks = self.db.list_tasks(project_id)
        progress = compute_progress(tasks)

        lines = [
            f"**{project.name}** ({progress.done}/{progress.total})",
            "".join(_BAR_GLYPHS[_bucket(t)] for t in tasks),
        ]
        lines.extend(f"{_LINE_ICONS[_bucket(t)]} #{t.task_number} {t.title}" for t in tasks)
        return "\n".join(lines)
