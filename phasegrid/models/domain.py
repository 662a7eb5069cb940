"""
PhaseGrid Domain Models

Data classes representing the core entities in the PhaseGrid system.
These are used for data transfer between storage and services.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union


# Status Constants

class Phase(str, Enum):
    """Project lifecycle phases, in advance order."""
    BRAINSTORM = "brainstorm"
    DESIGN = "design"
    PLAN = "plan"
    EXECUTE = "execute"
    REVIEW = "review"
    DONE = "done"


PHASE_ORDER: List[Phase] = [
    Phase.BRAINSTORM,
    Phase.DESIGN,
    Phase.PLAN,
    Phase.EXECUTE,
    Phase.REVIEW,
    Phase.DONE,
]

# Fallback model per phase when a project has no override
DEFAULT_MODEL_CONFIG: Mapping[Phase, str] = MappingProxyType({
    Phase.BRAINSTORM: "opus",
    Phase.DESIGN: "opus",
    Phase.PLAN: "opus",
    Phase.EXECUTE: "sonnet",
    Phase.REVIEW: "opus",
    Phase.DONE: "haiku",
})


class ArtifactType:
    """Artifact document types."""
    DESIGN = "design"
    PLAN = "plan"

    ALL = frozenset({DESIGN, PLAN})


class ArtifactStatus:
    """Artifact review status values."""
    DRAFT = "draft"
    APPROVED = "approved"
    REJECTED = "rejected"


class WorktreeStatus:
    """Worktree lifecycle status values."""
    ACTIVE = "active"
    MERGED = "merged"
    DISCARDED = "discarded"

    ALL = frozenset({ACTIVE, MERGED, DISCARDED})
    REMOVABLE = frozenset({MERGED, DISCARDED})


class TaskStatus:
    """Task status values."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    APPROVED = "approved"
    FAILED = "failed"

    # Both spellings appear in stored data
    IN_PROGRESS_VARIANTS = frozenset({"in-progress", "in_progress"})
    COMPLETE = frozenset({DONE, APPROVED})
    ALL = frozenset({PENDING, DONE, APPROVED, FAILED}) | IN_PROGRESS_VARIANTS


class ReviewType:
    """Task review kinds; both must pass before a task is approved."""
    SPEC = "spec"
    QUALITY = "quality"

    ALL = frozenset({SPEC, QUALITY})


class EventType:
    """Event log entry types."""
    PHASE_CHANGE = "phase_change"
    APPROVAL = "approval"
    TASK_UPDATE = "task_update"
    REVIEW = "review"


# Reviews

class ReviewVerdict(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class ReviewSource(str, Enum):
    """Where a review came from: a person via the CLI, or orchestrator auto-review."""
    MANUAL = "manual"
    AUTO = "auto"


@dataclass(frozen=True)
class Review:
    """
    A PASS/FAIL verdict with optional feedback.

    Stored on the task as text: "PASS", "PASS: <feedback>", "FAIL: <feedback>".
    """
    verdict: ReviewVerdict
    feedback: Optional[str] = None
    source: Optional[ReviewSource] = None

    @property
    def passed(self) -> bool:
        return self.verdict is ReviewVerdict.PASS

    def render(self) -> str:
        feedback = (self.feedback or "").strip()
        if feedback:
            return f"{self.verdict.value}: {feedback}"
        return self.verdict.value

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional["Review"]:
        """Parse stored review text; returns None for empty or unrecognized text."""
        if not text:
            return None
        for verdict in ReviewVerdict:
            if text.startswith(verdict.value):
                feedback = text[len(verdict.value):].lstrip(":").strip()
                return cls(verdict=verdict, feedback=feedback or None)
        return None


# Event payloads

@dataclass
class PhaseChangeDetails:
    to: str
    from_: Optional[str] = None

    event_type = EventType.PHASE_CHANGE

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"to": self.to}
        if self.from_ is not None:
            data["from"] = self.from_
        return data


@dataclass
class ApprovalDetails:
    artifact_id: str
    status: str
    feedback: Optional[str] = None

    event_type = EventType.APPROVAL

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class TaskUpdateDetails:
    task: int
    status: str
    feedback: Optional[str] = None

    event_type = EventType.TASK_UPDATE

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class ReviewDetails:
    task: int
    type: str
    result: str
    source: str = ReviewSource.MANUAL.value

    event_type = EventType.REVIEW

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


EventDetails = Union[PhaseChangeDetails, ApprovalDetails, TaskUpdateDetails, ReviewDetails]


def decode_event_details(event_type: str, data: Optional[Dict[str, Any]]) -> Optional[EventDetails]:
    """Build the typed payload for an event type from its decoded details."""
    if not data:
        return None
    if event_type == EventType.PHASE_CHANGE:
        return PhaseChangeDetails(to=data["to"], from_=data.get("from"))
    if event_type == EventType.APPROVAL:
        return ApprovalDetails(
            artifact_id=data["artifact_id"],
            status=data["status"],
            feedback=data.get("feedback"),
        )
    if event_type == EventType.TASK_UPDATE:
        return TaskUpdateDetails(task=int(data["task"]), status=data["status"], feedback=data.get("feedback"))
    if event_type == EventType.REVIEW:
        return ReviewDetails(
            task=int(data["task"]),
            type=data["type"],
            result=data["result"],
            source=data.get("source", ReviewSource.MANUAL.value),
        )
    return None


# Core Domain Models

@dataclass
class Project:
    """A project moving through the brainstorm -> done lifecycle."""
    id: str
    name: str
    repo_path: str
    phase: Phase
    created_at: str
    updated_at: str
    model_config: Optional[Dict[str, str]] = None


@dataclass
class Artifact:
    """A reviewable design or plan document attached to a project."""
    id: str
    project_id: str
    type: str
    content: str
    status: str
    created_at: str
    updated_at: str
    file_path: Optional[str] = None
    feedback: Optional[str] = None


@dataclass
class Worktree:
    """A git worktree tracked for a project."""
    id: str
    project_id: str
    branch: str
    path: str
    status: str
    created_at: str


@dataclass
class Task:
    """A numbered unit of plan work."""
    id: str
    project_id: str
    task_number: int
    title: str
    description: str
    status: str
    artifact_id: Optional[str] = None
    worktree_id: Optional[str] = None
    agent_session: Optional[str] = None
    spec_review: Optional[str] = None
    quality_review: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    @property
    def is_in_progress(self) -> bool:
        return self.status in TaskStatus.IN_PROGRESS_VARIANTS

    @property
    def is_complete(self) -> bool:
        return self.status in TaskStatus.COMPLETE

    @property
    def reviews_passed(self) -> bool:
        spec = Review.parse(self.spec_review)
        quality = Review.parse(self.quality_review)
        return bool(spec and spec.passed and quality and quality.passed)


@dataclass
class Event:
    """An append-only audit log entry."""
    id: int
    project_id: str
    event_type: str
    created_at: str
    details: Optional[Dict[str, Any]] = None

    @property
    def payload(self) -> Optional[EventDetails]:
        return decode_event_details(self.event_type, self.details)


@dataclass
class ParsedTask:
    """A task descriptor extracted from a plan document."""
    task_number: int
    title: str
    description: str


@dataclass
class NewTask:
    """Input row for batch task insertion."""
    task_number: int
    title: str
    description: str
    artifact_id: Optional[str] = None
    worktree_id: Optional[str] = None
