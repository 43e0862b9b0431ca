"""
Soft Delete Module - recoverable deletions for SQLAlchemy models.

Provides the per-model behavior, the session hooks that drive it, mixins,
and a service facade.
"""

from .exceptions import (
    NotDeletableError,
    NotDeletedException,
    SoftDeleteConfigurationError,
    SoftDeleteError,
    SoftDeleteFailedError,
)
from .hooks import SoftDeleteHooks, register_soft_delete_listeners
from .mixins import BooleanSoftDeleteMixin, SoftDeletableMixin, TimestampSoftDeleteMixin
from .models import (
    AssociationKind,
    AssociationSpec,
    DeleteOutcome,
    MarkerType,
    ReadMode,
)
from .policy import SoftDeleteBehavior, behavior_for
from .services import SoftDeleteService

__all__ = [
    # Behavior
    "SoftDeleteBehavior",
    "behavior_for",
    # Hooks
    "SoftDeleteHooks",
    "register_soft_delete_listeners",
    # Mixins
    "SoftDeletableMixin",
    "BooleanSoftDeleteMixin",
    "TimestampSoftDeleteMixin",
    # Services
    "SoftDeleteService",
    # Models
    "MarkerType",
    "ReadMode",
    "DeleteOutcome",
    "AssociationKind",
    "AssociationSpec",
    # Exceptions
    "SoftDeleteError",
    "SoftDeleteConfigurationError",
    "NotDeletableError",
    "NotDeletedException",
    "SoftDeleteFailedError",
]
