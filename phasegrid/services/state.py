"""
PhaseGrid Phase Gates

The project lifecycle is a strict line:
brainstorm -> design -> plan -> execute -> review -> done.

A project leaves a phase only when that phase's gate holds. Gate evaluation
reads the store and remembers nothing between calls.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from phasegrid.db.database import Database
from phasegrid.models.domain import (
    PHASE_ORDER,
    Artifact,
    ArtifactStatus,
    ArtifactType,
    Phase,
    Project,
    TaskStatus,
    WorktreeStatus,
)
from phasegrid.services.base import Service, ServiceContext

REASON_ALREADY_DONE = "Project is already done"
REASON_NEED_APPROVED_DESIGN = "Need at least one approved design artifact"
REASON_DESIGNS_NOT_APPROVED = "All design artifacts must be approved"
REASON_NEED_APPROVED_PLAN = "Need an approved plan artifact"
REASON_NEED_ACTIVE_WORKTREE = "Need an active worktree"
REASON_NO_TASKS = "No tasks found"
REASON_TASKS_NOT_APPROVED = "All tasks must be approved (spec + quality reviews passed)"
REASON_PHASE_CHANGED = "Project phase changed while advancing"


@dataclass
class GateCheck:
    passed: bool
    reason: Optional[str] = None


@dataclass
class AdvanceResult:
    """Outcome of an advance attempt. A blocked gate is a result, not an error."""
    success: bool
    from_phase: Optional[Phase] = None
    to_phase: Optional[Phase] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.from_phase is not None:
            data["from"] = self.from_phase.value
        if self.to_phase is not None:
            data["to"] = self.to_phase.value
        if self.reason is not None:
            data["reason"] = self.reason
        return data


def next_phase(phase: Phase) -> Optional[Phase]:
    """The phase after ``phase``, or None for the terminal phase."""
    index = PHASE_ORDER.index(Phase(phase))
    if index + 1 >= len(PHASE_ORDER):
        return None
    return PHASE_ORDER[index + 1]


def _approved(artifacts: List[Artifact]) -> List[Artifact]:
    return [a for a in artifacts if a.status == ArtifactStatus.APPROVED]


class PhaseGateService(Service):
    """
    Evaluates phase gates and advances projects.

    Example:
        gates = PhaseGateService(context, db)
        result = gates.advance(project_id)
        if not result.success:
            print(result.reason)
    """

    def __init__(self, context: ServiceContext, db: Database) -> None:
        super().__init__(context, db)
        self._gates: Dict[Phase, Callable[[Project], GateCheck]] = {
            Phase.BRAINSTORM: self._brainstorm_gate,
            Phase.DESIGN: self._design_gate,
            Phase.PLAN: self._plan_gate,
            Phase.EXECUTE: self._execute_gate,
            Phase.REVIEW: self._review_gate,
        }

    def _brainstorm_gate(self, project: Project) -> GateCheck:
        designs = self.db.list_artifacts(project.id, ArtifactType.DESIGN)
        if not _approved(designs):
            return GateCheck(False, REASON_NEED_APPROVED_DESIGN)
        return GateCheck(True)

    def _design_gate(self, project: Project) -> GateCheck:
        designs = self.db.list_artifacts(project.id, ArtifactType.DESIGN)
        if not designs or len(_approved(designs)) != len(designs):
            return GateCheck(False, REASON_DESIGNS_NOT_APPROVED)
        return GateCheck(True)

    def _plan_gate(self, project: Project) -> GateCheck:
        plans = self.db.list_artifacts(project.id, ArtifactType.PLAN)
        if not _approved(plans):
            return GateCheck(False, REASON_NEED_APPROVED_PLAN)
        worktrees = self.db.list_worktrees(project.id)
        if not any(w.status == WorktreeStatus.ACTIVE for w in worktrees):
            return GateCheck(False, REASON_NEED_ACTIVE_WORKTREE)
        return GateCheck(True)

    def _execute_gate(self, project: Project) -> GateCheck:
        tasks = self.db.list_tasks(project.id)
        if not tasks:
            return GateCheck(False, REASON_NO_TASKS)
        if any(t.status != TaskStatus.APPROVED for t in tasks):
            return GateCheck(False, REASON_TASKS_NOT_APPROVED)
        return GateCheck(True)

    def _review_gate(self, project: Project) -> GateCheck:
        return GateCheck(True)

    def _evaluate(self, project: Project) -> GateCheck:
        gate = self._gates.get(project.phase)
        if gate is None:
            return GateCheck(False, REASON_ALREADY_DONE)
        return gate(project)

    def check_gate(self, project_id: str) -> GateCheck:
        """
        Evaluate the gate of the project's current phase without changing anything.

        Raises:
            EntityNotFoundError: If the project does not exist
        """
        return self._evaluate(self.require_project(project_id))

    def advance(self, project_id: str) -> AdvanceResult:
        """
        Move the project to its next phase if the current gate holds.

        A blocked gate leaves the project and the event log untouched. On
        success the new phase and a ``phase_change`` event are written together.

        Raises:
            EntityNotFoundError: If the project does not exist
        """
        project = self.require_project(project_id)
        check = self._evaluate(project)
        if not check.passed:
            self.logger.info(
                "phase_gate_blocked",
                extra=self.log_extra(project_id=project_id, phase=project.phase.value, reason=check.reason),
            )
            return AdvanceResult(success=False, from_phase=project.phase, reason=check.reason)

        target = next_phase(project.phase)
        if not self.db.advance_project_phase(project_id, project.phase, target):
            self.logger.warning(
                "phase_advance_conflict",
                extra=self.log_extra(project_id=project_id, phase=project.phase.value),
            )
            return AdvanceResult(success=False, from_phase=project.phase, reason=REASON_PHASE_CHANGED)

        self.logger.info(
            "phase_advanced",
            extra=self.log_extra(project_id=project_id, from_phase=project.phase.value, to_phase=target.value),
        )
        return AdvanceResult(success=True, from_phase=project.phase, to_phase=target)
