"""
PhaseGrid Project Service

Project registration, per-phase model selection and the project event log.
"""

from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from phasegrid.errors import ValidationError
from phasegrid.models.domain import Event, Phase, PhaseChangeDetails, Project
from phasegrid.services.base import Service


def _coerce_phase(phase: Union[Phase, str]) -> Phase:
    try:
        return Phase(phase)
    except ValueError:
        valid = ", ".join(p.value for p in Phase)
        raise ValidationError(f"Unknown phase: {phase!r} (expected one of: {valid})") from None


class ProjectService(Service):
    """
    Service for creating and inspecting projects.

    Example:
        projects = ProjectService(context, db)
        project = projects.create("billing", "~/src/billing")
        projects.set_model(project.id, "execute", "opus")
    """

    def create(self, name: str, repo_path: Union[str, Path]) -> Project:
        """Register a project. It starts in ``brainstorm`` and logs that as its first event."""
        name = (name or "").strip()
        if not name:
            raise ValidationError("Project name must not be empty")
        if not str(repo_path or "").strip():
            raise ValidationError("Repository path must not be empty")
        resolved = str(Path(repo_path).expanduser().resolve())

        project = self.db.create_project(name, resolved)
        self.db.append_event(project.id, PhaseChangeDetails(to=Phase.BRAINSTORM.value))
        self.logger.info(
            "project_created",
            extra=self.log_extra(project_id=project.id, project_name=name, repo_path=resolved),
        )
        return project

    def list(self) -> List[Project]:
        return self.db.list_projects()

    def get(self, project_id: str) -> Project:
        return self.require_project(project_id)

    def set_model_config(self, project_id: str, model_config: Mapping[str, str]) -> Project:
        """Replace the project's phase -> model overrides."""
        self.require_project(project_id)
        cleaned: Dict[str, str] = {}
        for phase, model in model_config.items():
            if not model or not str(model).strip():
                raise ValidationError(f"Model for phase {phase!r} must not be empty")
            cleaned[_coerce_phase(phase).value] = str(model).strip()
        project = self.db.set_model_config(project_id, cleaned)
        self.logger.info(
            "project_model_config_updated",
            extra=self.log_extra(project_id=project_id, phases=sorted(cleaned)),
        )
        return project

    def set_model(self, project_id: str, phase: Union[Phase, str], model: str) -> Project:
        """Override the model for a single phase, keeping other overrides."""
        project = self.require_project(project_id)
        merged = dict(project.model_config or {})
        merged[_coerce_phase(phase).value] = model
        return self.set_model_config(project_id, merged)

    def get_model_for_phase(self, project_id: str, phase: Union[Phase, str]) -> str:
        self.require_project(project_id)
        return self.db.get_model_for_phase(project_id, _coerce_phase(phase))

    def list_events(self, project_id: str, limit: Optional[int] = None) -> List[Event]:
        """The project's event log, newest first."""
        self.require_project(project_id)
        if limit is not None and limit < 1:
            raise ValidationError(f"Limit must be positive, got {limit}")
        return self.db.list_events(project_id, limit)
