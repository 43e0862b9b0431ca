"""
Service layer for soft delete operations.

Provides a session-bound facade over the model behaviors for deletion,
purging, restoration and deletion-aware reads.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

from sqlalchemy import func, inspect, select
from sqlalchemy.orm import Session

from ..config import get_config
from .exceptions import (
    NotDeletableError,
    NotDeletedException,
    SoftDeleteError,
    SoftDeleteFailedError,
)
from .models import DeleteOutcome, ReadMode
from .policy import (
    SoftDeleteBehavior,
    behavior_for,
    identity_of,
    primary_key_attributes,
)

logger = logging.getLogger(__name__)


class SoftDeleteService:
    """
    Service for managing soft deletes within one session.

    Handles deletion, purging and restoration of records, with cascading
    defaults taken from the global configuration.

    Example:
        >>> service = SoftDeleteService(session)
        >>> service.delete(post)
        <DeleteOutcome.SOFT_DELETED: 'soft_deleted'>
        >>> service.restore(Post, post.id)
        True
    """

    def __init__(self, session: Session):
        """
        Initialize the soft delete service.

        Args:
            session: SQLAlchemy database session
        """
        self.session = session

    def behavior_for(self, model: Any) -> SoftDeleteBehavior:
        """
        Get the behavior of a model class or instance.

        Raises:
            NotDeletableError: The model has no registered behavior
        """
        behavior = behavior_for(model)
        if behavior is None:
            raise NotDeletableError(model)
        return behavior

    def delete(self, entity: Any, cascade: Optional[bool] = None) -> DeleteOutcome:
        """
        Delete an entity, softly when its behavior allows it.

        A row that is already soft deleted, or whose behavior falls through,
        is removed physically.

        Args:
            entity: Persistent entity to delete
            cascade: Cascade to dependents; configured default when None

        Returns:
            Outcome of the delete

        Raises:
            NotDeletableError: The model has no registered behavior
            SoftDeleteError: The entity is not persistent
            SoftDeleteFailedError: The marker update failed
        """
        behavior = self.behavior_for(entity)
        entity_id = identity_of(entity)
        if not inspect(entity).persistent:
            raise SoftDeleteError(
                f"{type(entity).__name__} must be persistent to be deleted",
                entity_id=entity_id,
            )

        if cascade is None:
            cascade = get_config().cascade_delete

        outcome = behavior.before_delete(self.session, entity, cascade=cascade)
        if outcome is DeleteOutcome.FAILED:
            raise SoftDeleteFailedError(f"{type(entity).__name__}#{entity_id}")

        if outcome.proceed_with_hard_delete:
            self.session.delete(entity)
            self.session.flush()
            logger.info(f"Physically deleted {type(entity).__name__}#{entity_id}")

        return outcome

    def purge(self, entity: Any) -> None:
        """
        Physically delete an entity that is already soft deleted.

        Raises:
            NotDeletedException: The entity is not soft deleted
        """
        behavior = self.behavior_for(entity)
        entity_id = identity_of(entity)
        if not behavior.is_deleted(self.session, entity):
            raise NotDeletedException(f"{type(entity).__name__}#{entity_id}")

        self.session.delete(entity)
        self.session.flush()
        logger.info(f"Purged {type(entity).__name__}#{entity_id}")

    def restore(
        self, model: Any, entity_id: Any = None, cascade: Optional[bool] = None
    ) -> bool:
        """
        Restore a soft deleted record.

        Args:
            model: Model class, or an instance whose identity is restored
            entity_id: Primary key value; taken from ``model`` when it is an
                instance
            cascade: Cascade to dependents; configured default when None

        Returns:
            True if the record was restored
        """
        behavior = self.behavior_for(model)
        if entity_id is None and not isinstance(model, type):
            entity_id = model

        if cascade is None:
            cascade = get_config().cascade_restore

        return behavior.restore(self.session, entity_id, cascade=cascade)

    def is_deleted(self, entity: Any) -> bool:
        """Whether the stored row of an entity is marked deleted."""
        return self.behavior_for(entity).is_deleted(self.session, entity)

    def find(
        self,
        model: Any,
        *criteria: Any,
        read_mode: Any = ReadMode.EXCLUDE_DELETED,
        limit: Optional[int] = None,
    ) -> List[Any]:
        """
        Select records of a model under a read mode.

        Args:
            model: Model class
            *criteria: Additional WHERE criteria
            read_mode: ReadMode or raw read option value
            limit: Maximum number of records, in primary key order

        Returns:
            Matching records
        """
        self.behavior_for(model)
        option = ReadMode.from_option(read_mode).option_value
        statement = (
            select(model)
            .where(*criteria)
            .order_by(*primary_key_attributes(model))
            .execution_options(**{get_config().read_option_name: option})
        )
        if limit is not None:
            statement = statement.limit(limit)
        return list(self.session.scalars(statement).all())

    def count(self, model: Any, read_mode: Any = ReadMode.EXCLUDE_DELETED) -> int:
        """Count records of a model under a read mode."""
        behavior = self.behavior_for(model)
        statement = select(func.count()).select_from(model)

        if behavior.is_deletable and behavior.is_enabled(self.session):
            clause = behavior.read_clause(ReadMode.from_option(read_mode))
            if clause is not None:
                statement = statement.where(clause)

        statement = statement.execution_options(
            **{get_config().read_option_name: None}
        )
        return self.session.execute(statement).scalar_one()

    def enable(self, model: Any) -> None:
        """Resume soft delete handling of a model in this session."""
        self.behavior_for(model).enable_deletable(self.session)

    def disable(self, model: Any) -> None:
        """Suspend soft delete handling of a model in this session."""
        self.behavior_for(model).disable_deletable(self.session)

    @contextmanager
    def disabled(self, model: Any) -> Iterator[None]:
        """Suspend soft delete handling of a model within a block."""
        with self.behavior_for(model).deletable_disabled(self.session):
            yield
