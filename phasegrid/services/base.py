"""
PhaseGrid Service Base

Defines the base Service class and ServiceContext that all services inherit from.
This provides a consistent interface for dependency injection and context propagation.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from phasegrid.config import Config
from phasegrid.db.database import Database
from phasegrid.errors import EntityNotFoundError
from phasegrid.logging import get_logger, log_extra
from phasegrid.models.domain import Project


@dataclass
class ServiceContext:
    """
    Context object providing shared dependencies and runtime state to services.

    Attributes:
        config: Application configuration
        request_id: Optional request correlation ID for tracing
        metadata: Additional contextual metadata
    """
    config: Config
    request_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class Service:
    """
    Base class for all PhaseGrid services.

    Each service receives a ServiceContext and the persistent store.

    Example:
        class MyService(Service):
            def do_something(self, project_id: str) -> str:
                self.logger.info("did_something", extra=self.log_extra(project_id=project_id))
                return "done"
    """

    def __init__(self, context: ServiceContext, db: Database) -> None:
        self.context = context
        self.config = context.config
        self.db = db
        self.logger = get_logger(self.__class__.__name__)

    def log_extra(self, *, request_id: Optional[str] = None, **fields: Any) -> Dict[str, Any]:
        """``log_extra`` with the context's request_id filled in."""
        return log_extra(request_id=request_id or self.context.request_id, **fields)

    def require_project(self, project_id: str) -> Project:
        project = self.db.get_project(project_id)
        if project is None:
            raise EntityNotFoundError("project", project_id)
        return project
