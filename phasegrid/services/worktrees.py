"""
PhaseGrid Worktree Service

Ties git worktrees on disk to worktree records in the store. A record is
written only after git has created the worktree.
"""

from typing import List

from phasegrid.errors import EntityNotFoundError, GitCommandError, ValidationError
from phasegrid.models.domain import Project, Worktree, WorktreeStatus
from phasegrid.services.base import Service
from phasegrid.services.git import WorktreeManager


class WorktreeService(Service):
    """Service for project worktrees."""

    def manager_for(self, project: Project) -> WorktreeManager:
        return WorktreeManager(project.repo_path, self.config.worktrees_dir)

    def create(self, project_id: str, branch: str) -> Worktree:
        """
        Create a git worktree on a new branch and record it as active.

        Raises:
            EntityNotFoundError: If the project does not exist
            GitCommandError: If git fails; nothing is recorded
        """
        branch = (branch or "").strip()
        if not branch:
            raise ValidationError("Branch name must not be empty")
        project = self.require_project(project_id)
        path = self.manager_for(project).create(branch)
        worktree = self.db.create_worktree(project_id, branch, str(path))
        self.logger.info(
            "worktree_created",
            extra=self.log_extra(project_id=project_id, worktree_id=worktree.id, branch=branch, path=str(path)),
        )
        return worktree

    def list(self, project_id: str) -> List[Worktree]:
        self.require_project(project_id)
        return self.db.list_worktrees(project_id)

    def set_status(self, worktree_id: str, status: str) -> Worktree:
        if status not in WorktreeStatus.ALL:
            raise ValidationError(
                f"Invalid worktree status: {status!r} (expected one of: active, merged, discarded)"
            )
        worktree = self.db.get_worktree(worktree_id)
        if worktree is None:
            raise EntityNotFoundError("worktree", worktree_id)
        updated = self.db.update_worktree_status(worktree_id, status)
        self.logger.info(
            "worktree_status_updated",
            extra=self.log_extra(project_id=worktree.project_id, worktree_id=worktree_id, status=status),
        )
        return updated

    def cleanup(self, project_id: str) -> List[str]:
        """
        Remove merged and discarded worktrees from disk, best effort.

        Git failures are logged and skipped. Records are kept. Returns the ids
        of the worktrees that were removed.
        """
        project = self.require_project(project_id)
        manager = self.manager_for(project)
        removed: List[str] = []
        for worktree in self.db.list_worktrees(project_id):
            if worktree.status not in WorktreeStatus.REMOVABLE:
                continue
            try:
                manager.remove(worktree.path)
            except GitCommandError as exc:
                self.logger.warning(
                    "worktree_cleanup_failed",
                    extra=self.log_extra(project_id=project_id, worktree_id=worktree.id, error=str(exc)),
                )
                continue
            removed.append(worktree.id)
        self.logger.info(
            "worktree_cleanup_finished",
            extra=self.log_extra(project_id=project_id, removed=len(removed)),
        )
        return removed
