"""Exceptions for soft delete operations."""

from typing import Any, Optional


class SoftDeleteError(Exception):
    """Base exception for soft delete operations."""

    def __init__(self, message: str, entity_id: Optional[str] = None):
        self.entity_id = entity_id
        super().__init__(message)


class SoftDeleteConfigurationError(SoftDeleteError):
    """Raised when a model declares the behavior inconsistently with its mapping."""


class NotDeletableError(SoftDeleteError):
    """Raised when a soft delete operation targets a model without the behavior."""

    def __init__(self, model: Any):
        name = getattr(model, "__name__", type(model).__name__)
        super().__init__(
            f"Model {name} does not declare a soft delete behavior "
            "or does not map its marker column"
        )


class NotDeletedException(SoftDeleteError):
    """Raised when attempting to purge an entity that is not soft deleted."""

    def __init__(self, entity_id: str):
        super().__init__(
            f"Entity {entity_id} is not deleted and cannot be purged",
            entity_id=entity_id,
        )


class SoftDeleteFailedError(SoftDeleteError):
    """Raised when the marker update of a soft delete could not be written."""

    def __init__(self, entity_id: str):
        super().__init__(
            f"Entity {entity_id} could not be marked as deleted",
            entity_id=entity_id,
        )
