"""
PhaseGrid Artifact Service

Design and plan documents and their review decisions. An artifact is
decided once: draft -> approved or draft -> rejected. A revised document is
submitted as a new artifact.
"""

from pathlib import Path
from typing import List, Optional, Union

from phasegrid.errors import EntityNotFoundError, ValidationError
from phasegrid.models.domain import ApprovalDetails, Artifact, ArtifactStatus, ArtifactType
from phasegrid.services.base import Service


class ArtifactService(Service):
    """Service for artifact submission and approval."""

    def get(self, artifact_id: str) -> Artifact:
        artifact = self.db.get_artifact(artifact_id)
        if artifact is None:
            raise EntityNotFoundError("artifact", artifact_id)
        return artifact

    def create(
        self,
        project_id: str,
        artifact_type: str,
        content: Optional[str] = None,
        *,
        file_path: Optional[Union[str, Path]] = None,
    ) -> Artifact:
        """
        Attach a draft artifact to a project.

        Content comes from ``file_path`` when given, otherwise from ``content``.
        """
        if artifact_type not in ArtifactType.ALL:
            raise ValidationError(f"Invalid artifact type: {artifact_type!r} (expected 'design' or 'plan')")
        self.require_project(project_id)

        stored_path: Optional[str] = None
        if file_path is not None:
            path = Path(file_path).expanduser()
            try:
                content = path.read_text(encoding="utf-8")
            except OSError as exc:
                raise ValidationError(f"Cannot read artifact file {path}: {exc}") from exc
            stored_path = str(path)
        if content is None:
            raise ValidationError("Artifact needs content or a file path")

        artifact = self.db.create_artifact(project_id, artifact_type, content, stored_path)
        self.logger.info(
            "artifact_created",
            extra=self.log_extra(project_id=project_id, artifact_id=artifact.id, artifact_type=artifact_type),
        )
        return artifact

    def list(self, project_id: str, artifact_type: Optional[str] = None) -> List[Artifact]:
        if artifact_type is not None and artifact_type not in ArtifactType.ALL:
            raise ValidationError(f"Invalid artifact type: {artifact_type!r} (expected 'design' or 'plan')")
        self.require_project(project_id)
        return self.db.list_artifacts(project_id, artifact_type)

    def _decide(self, artifact_id: str, status: str, feedback: Optional[str]) -> Artifact:
        artifact = self.get(artifact_id)
        if artifact.status != ArtifactStatus.DRAFT:
            raise ValidationError(
                f"Artifact {artifact_id} is already {artifact.status}; submit a new artifact instead",
                metadata={"artifact_id": artifact_id, "status": artifact.status},
            )
        updated = self.db.update_artifact_status(artifact_id, status, feedback)
        self.db.append_event(
            artifact.project_id,
            ApprovalDetails(artifact_id=artifact_id, status=status, feedback=feedback),
        )
        self.logger.info(
            "artifact_decided",
            extra=self.log_extra(project_id=artifact.project_id, artifact_id=artifact_id, status=status),
        )
        return updated

    def approve(self, artifact_id: str) -> Artifact:
        return self._decide(artifact_id, ArtifactStatus.APPROVED, None)

    def reject(self, artifact_id: str, feedback: str) -> Artifact:
        """Reject a draft. Feedback is required and stored verbatim."""
        if not feedback or not feedback.strip():
            raise ValidationError("Rejecting an artifact requires feedback")
        return self._decide(artifact_id, ArtifactStatus.REJECTED, feedback)
