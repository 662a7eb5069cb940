"""
PhaseGrid Models

Typed domain objects shared by the store and services.
"""

from phasegrid.models.domain import (
    # Status Constants
    Phase,
    PHASE_ORDER,
    DEFAULT_MODEL_CONFIG,
    ArtifactType,
    ArtifactStatus,
    WorktreeStatus,
    TaskStatus,
    ReviewType,
    EventType,
    # Reviews
    Review,
    ReviewVerdict,
    ReviewSource,
    # Event payloads
    PhaseChangeDetails,
    ApprovalDetails,
    TaskUpdateDetails,
    ReviewDetails,
    EventDetails,
    decode_event_details,
    # Core Models
    Project,
    Artifact,
    Worktree,
    Task,
    Event,
    ParsedTask,
    NewTask,
)

__all__ = [
    "Phase",
    "PHASE_ORDER",
    "DEFAULT_MODEL_CONFIG",
    "ArtifactType",
    "ArtifactStatus",
    "WorktreeStatus",
    "TaskStatus",
    "ReviewType",
    "EventType",
    "Review",
    "ReviewVerdict",
    "ReviewSource",
    "PhaseChangeDetails",
    "ApprovalDetails",
    "TaskUpdateDetails",
    "ReviewDetails",
    "EventDetails",
    "decode_event_details",
    "Project",
    "Artifact",
    "Worktree",
    "Task",
    "Event",
    "ParsedTask",
    "NewTask",
]
