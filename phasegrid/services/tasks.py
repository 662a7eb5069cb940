"""
PhaseGrid Task Service

Task lifecycle outside of batch orchestration: listing, manual start and
status changes, reviews, and loading tasks from a plan file.
"""

from pathlib import Path
from typing import List, Optional, Union

from phasegrid.errors import EntityNotFoundError, ValidationError
from phasegrid.models.domain import (
    Review,
    ReviewDetails,
    ReviewSource,
    ReviewType,
    ReviewVerdict,
    Task,
    TaskStatus,
    TaskUpdateDetails,
)
from phasegrid.services.base import Service
from phasegrid.services.planning import parse_plan


def normalize_status(status: str) -> str:
    """Validate a task status, folding ``in_progress`` into ``in-progress``."""
    value = (status or "").strip().lower()
    if value not in TaskStatus.ALL:
        raise ValidationError(
            f"Invalid task status: {status!r} (expected one of: pending, in-progress, done, approved, failed)"
        )
    if value in TaskStatus.IN_PROGRESS_VARIANTS:
        return TaskStatus.IN_PROGRESS
    return value


def verdict_from_result(result: str) -> ReviewVerdict:
    value = (result or "").strip().lower()
    if value == "pass":
        return ReviewVerdict.PASS
    if value == "fail":
        return ReviewVerdict.FAIL
    raise ValidationError(f"Invalid result: {result!r} (expected 'pass' or 'fail')")


class TaskService(Service):
    """
    Service for task state outside the orchestrator's batch loop.

    ``record_review`` is the one place a review is written and the one place
    a task is approved because its reviews passed; the manual review command
    and orchestrator auto-review both go through it.
    """

    def get(self, project_id: str, task_number: int) -> Task:
        task = self.db.get_task_by_number(project_id, task_number)
        if task is None:
            self.require_project(project_id)
            raise EntityNotFoundError("task", task_number, metadata={"project_id": project_id})
        return task

    def list(self, project_id: str) -> List[Task]:
        self.require_project(project_id)
        return self.db.list_tasks(project_id)

    def start(self, project_id: str, task_number: int, agent_session: Optional[str] = None) -> Task:
        """Mark one task in-progress, optionally recording the agent session running it."""
        task = self.get(project_id, task_number)
        task = self.db.start_task(task.id)
        if agent_session:
            task = self.db.set_task_agent(task.id, agent_session)
        self.db.append_event(project_id, TaskUpdateDetails(task=task_number, status=TaskStatus.IN_PROGRESS))
        self.logger.info(
            "task_started",
            extra=self.log_extra(project_id=project_id, task_number=task_number, agent_session=agent_session),
        )
        return task

    def update_status(self, project_id: str, task_number: int, status: str) -> Task:
        """
        Set a task's status directly.

        ``approved`` is only accepted once both reviews have passed; tasks
        are normally approved by ``review`` or the orchestrator.
        """
        status = normalize_status(status)
        task = self.get(project_id, task_number)
        if status == TaskStatus.APPROVED:
            if not task.reviews_passed:
                raise ValidationError(
                    f"Task {task_number} cannot be approved until its spec and quality reviews pass"
                )
            task = self.db.approve_task(task.id)
        else:
            task = self.db.update_task_status(task.id, status)
        self.db.append_event(project_id, TaskUpdateDetails(task=task_number, status=status))
        self.logger.info(
            "task_status_updated",
            extra=self.log_extra(project_id=project_id, task_number=task_number, status=status),
        )
        return task

    def record_review(self, task: Task, review_type: str, review: Review) -> Task:
        """
        Store one review on a task; approve the task once both reviews pass.

        Does not append an event: the caller records what happened.
        """
        if review_type not in ReviewType.ALL:
            raise ValidationError(f"Invalid review type: {review_type!r} (expected 'spec' or 'quality')")
        updated = self.db.set_task_review(task.id, review_type, review.render())
        if updated.reviews_passed and updated.status != TaskStatus.APPROVED:
            updated = self.db.approve_task(task.id)
            self.logger.info(
                "task_approved",
                extra=self.log_extra(
                    project_id=task.project_id,
                    task_number=task.task_number,
                    source=review.source.value if review.source else None,
                ),
            )
        self.logger.debug(
            "task_review_recorded",
            extra=self.log_extra(
                project_id=task.project_id,
                task_number=task.task_number,
                review_type=review_type,
                verdict=review.verdict.value,
                source=review.source.value if review.source else None,
            ),
        )
        return updated

    def review(
        self,
        project_id: str,
        task_number: int,
        review_type: str,
        result: str,
        feedback: Optional[str] = None,
    ) -> Task:
        """
        Record a manual spec or quality review (``result`` is ``pass`` or ``fail``).

        Stored as ``PASS``/``FAIL`` with ``: <feedback>`` when feedback is given.
        """
        verdict = verdict_from_result(result)
        task = self.get(project_id, task_number)
        review = Review(verdict=verdict, feedback=feedback, source=ReviewSource.MANUAL)
        task = self.record_review(task, review_type, review)
        self.db.append_event(
            project_id,
            ReviewDetails(
                task=task_number,
                type=review_type,
                result=verdict.value.lower(),
                source=ReviewSource.MANUAL.value,
            ),
        )
        return task

    def parse_from_file(
        self,
        project_id: str,
        path: Union[str, Path],
        *,
        artifact_id: Optional[str] = None,
        worktree_id: Optional[str] = None,
    ) -> List[Task]:
        """
        Parse a plan markdown file and insert its tasks in one transaction.

        Raises:
            EntityNotFoundError: If the project, artifact or worktree is missing
            ValidationError: If the file cannot be read
            StorageError: If insertion fails (nothing is inserted)
        """
        self.require_project(project_id)
        if artifact_id and self.db.get_artifact(artifact_id) is None:
            raise EntityNotFoundError("artifact", artifact_id)
        if worktree_id and self.db.get_worktree(worktree_id) is None:
            raise EntityNotFoundError("worktree", worktree_id)

        plan_path = Path(path).expanduser()
        try:
            markdown = plan_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ValidationError(f"Cannot read plan file {plan_path}: {exc}") from exc

        parsed = parse_plan(markdown)
        if not parsed:
            self.logger.warning(
                "plan_has_no_tasks",
                extra=self.log_extra(project_id=project_id, plan_path=str(plan_path)),
            )
            return []

        tasks = self.db.create_task_batch(
            project_id,
            parsed,
            artifact_id=artifact_id,
            worktree_id=worktree_id,
        )
        self.logger.info(
            "plan_tasks_created",
            extra=self.log_extra(project_id=project_id, count=len(tasks), plan_path=str(plan_path)),
        )
        return tasks

    def batch_range(self, project_id: str, first: int, last: int) -> List[Task]:
        """Tasks numbered ``first``..``last`` inclusive, in task order."""
        self.require_project(project_id)
        if first > last:
            raise ValidationError(f"Invalid task range: {first} > {last}")
        return self.db.get_task_range(project_id, first, last)
