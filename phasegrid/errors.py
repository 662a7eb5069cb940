"""
PhaseGrid Error Hierarchy

Base error and specific error types for all PhaseGrid components.
Errors carry metadata for structured logging.
"""

from typing import Any, Dict, Optional


class PhaseGridError(RuntimeError):
    """
    Base error for PhaseGrid components. Carries metadata for structured logging.

    Attributes:
        category: Error category for classification (e.g., "runtime", "validation")
        retryable: Whether the operation can be retried
        metadata: Additional context for logging and debugging
    """

    category: str = "runtime"
    retryable: bool = True

    def __init__(
        self,
        message: str,
        *,
        metadata: Optional[Dict[str, Any]] = None,
        retryable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.metadata = metadata or {}
        if retryable is not None:
            self.retryable = retryable


# Validation Errors
class ValidationError(PhaseGridError):
    """Raised when input validation fails."""

    category = "validation"
    retryable = False


# Configuration Errors
class ConfigError(PhaseGridError):
    """Raised when configuration is invalid or missing."""

    category = "config"
    retryable = False


# Git Errors
class GitCommandError(PhaseGridError):
    """Raised when git commands fail."""

    category = "git"
    retryable = False


# Storage Errors
class StorageError(PhaseGridError):
    """Raised when database operations fail."""

    category = "storage"


class EntityNotFoundError(StorageError):
    """Raised when a requested entity is not found in storage."""

    category = "not_found"
    retryable = False

    def __init__(
        self,
        entity: str,
        identifier: Any,
        *,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            f"{entity.capitalize()} {identifier} not found",
            metadata={"entity": entity, "id": identifier, **(metadata or {})},
        )
        self.entity = entity
        self.identifier = identifier
