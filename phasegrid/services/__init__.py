"""
PhaseGrid Services

Service layer over the persistent store.
"""

from importlib import import_module
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from phasegrid.services.base import Service, ServiceContext
    from phasegrid.services.git import WorktreeManager, WorktreeInfo, run_process
    from phasegrid.services.planning import parse_plan
    from phasegrid.services.state import PhaseGateService, AdvanceResult, GateCheck
    from phasegrid.services.orchestrator import (
        OrchestratorService,
        OrchestrateResult,
        OrchestrateAction,
        BatchPlan,
        Progress,
    )
    from phasegrid.services.projects import ProjectService
    from phasegrid.services.artifacts import ArtifactService
    from phasegrid.services.worktrees import WorktreeService
    from phasegrid.services.tasks import TaskService
    from phasegrid.services.callbacks import GridCallback, InlineButton, parse_callback, format_buttons

__all__ = [
    # Base
    "Service",
    "ServiceContext",
    # Git
    "WorktreeManager",
    "WorktreeInfo",
    "run_process",
    # Planning
    "parse_plan",
    # Phase gates
    "PhaseGateService",
    "AdvanceResult",
    "GateCheck",
    # Orchestrator
    "OrchestratorService",
    "OrchestrateResult",
    "OrchestrateAction",
    "BatchPlan",
    "Progress",
    # Entities
    "ProjectService",
    "ArtifactService",
    "WorktreeService",
    "TaskService",
    # Callbacks
    "GridCallback",
    "InlineButton",
    "parse_callback",
    "format_buttons",
]

_EXPORTS = {
    "Service": "phasegrid.services.base",
    "ServiceContext": "phasegrid.services.base",
    "WorktreeManager": "phasegrid.services.git",
    "WorktreeInfo": "phasegrid.services.git",
    "run_process": "phasegrid.services.git",
    "parse_plan": "phasegrid.services.planning",
    "PhaseGateService": "phasegrid.services.state",
    "AdvanceResult": "phasegrid.services.state",
    "GateCheck": "phasegrid.services.state",
    "OrchestratorService": "phasegrid.services.orchestrator",
    "OrchestrateResult": "phasegrid.services.orchestrator",
    "OrchestrateAction": "phasegrid.services.orchestrator",
    "BatchPlan": "phasegrid.services.orchestrator",
    "Progress": "phasegrid.services.orchestrator",
    "ProjectService": "phasegrid.services.projects",
    "ArtifactService": "phasegrid.services.artifacts",
    "WorktreeService": "phasegrid.services.worktrees",
    "TaskService": "phasegrid.services.tasks",
    "GridCallback": "phasegrid.services.callbacks",
    "InlineButton": "phasegrid.services.callbacks",
    "parse_callback": "phasegrid.services.callbacks",
    "format_buttons": "phasegrid.services.callbacks",
}


def __getattr__(name: str):
    module_path = _EXPORTS.get(name)
    if not module_path:
        raise AttributeError(f"module {__name__} has no attribute {name}")
    module = import_module(module_path)
    return getattr(module, name)


def __dir__() -> list[str]:
    return sorted(__all__)
