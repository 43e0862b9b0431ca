"""
soft-deletable - Soft deletion behavior for SQLAlchemy models.

A delete marks a row as deleted through a marker column (a boolean flag or a
timestamp) instead of removing it. Reads transparently exclude marked rows
unless asked otherwise, and marked rows can be restored, cascading along
dependent associations.

Quick Start
-----------
>>> from sqlalchemy import Column, DateTime, Integer
>>> from soft_deletable import (
...     SoftDeletableMixin, SoftDeleteBehavior, register_soft_delete_listeners
... )
>>>
>>> class Post(Base, SoftDeletableMixin):
...     __tablename__ = "posts"
...     __soft_delete__ = SoftDeleteBehavior("deleted_at")
...     id = Column(Integer, primary_key=True)
...     deleted_at = Column(DateTime, nullable=True)
>>>
>>> register_soft_delete_listeners(Base)
>>> session.delete(post)
>>> session.commit()  # row kept, deleted_at set
>>> session.scalars(select(Post)).all()  # post is hidden
>>> session.scalars(select(Post).execution_options(is_deleted=None)).all()
>>> Post.restore(session, post.id)

Read Option
-----------
The ``is_deleted`` execution option (name configurable) selects what a query
returns: unset or ``False`` excludes deleted rows, ``True`` returns only
deleted rows and ``None`` disables filtering.
"""

__version__ = "1.0.0"

from .config import SoftDeleteConfig, configure, get_config, set_config
from .soft_delete import (
    AssociationKind,
    AssociationSpec,
    BooleanSoftDeleteMixin,
    DeleteOutcome,
    MarkerType,
    NotDeletableError,
    NotDeletedException,
    ReadMode,
    SoftDeletableMixin,
    SoftDeleteBehavior,
    SoftDeleteConfigurationError,
    SoftDeleteError,
    SoftDeleteFailedError,
    SoftDeleteHooks,
    SoftDeleteService,
    TimestampSoftDeleteMixin,
    behavior_for,
    register_soft_delete_listeners,
)

__all__ = [
    # Behavior
    "SoftDeleteBehavior",
    "SoftDeleteHooks",
    "register_soft_delete_listeners",
    "behavior_for",
    # Mixins
    "SoftDeletableMixin",
    "BooleanSoftDeleteMixin",
    "TimestampSoftDeleteMixin",
    # Service
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
    # Configuration
    "SoftDeleteConfig",
    "get_config",
    "set_config",
    "configure",
]
