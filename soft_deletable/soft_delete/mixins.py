"""
SQLAlchemy mixins for soft delete functionality.

``SoftDeletableMixin`` provides the model-level extension points and
convenience queries; the marker column and the ``__soft_delete__`` behavior
are declared by the model itself or taken from one of the ready-made mixins:

    class Order(Base, BooleanSoftDeleteMixin):
        __tablename__ = "orders"
        id = Column(Integer, primary_key=True)

    class Post(Base, TimestampSoftDeleteMixin):
        __tablename__ = "posts"
        id = Column(Integer, primary_key=True)
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Select, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from ..config import get_config
from .models import DeleteOutcome, MarkerType, ReadMode
from .policy import SoftDeleteBehavior


class SoftDeletableMixin:
    """
    Extension points and helpers for models with a soft delete behavior.

    Override ``before_restore`` to veto restores, ``after_restore`` and
    ``after_delete`` to react to them.
    """

    def before_restore(self) -> bool:
        """Return False to prevent this record from being restored."""
        return True

    def after_restore(self) -> None:
        """Called after the record has been restored."""

    def after_delete(self) -> None:
        """Called after the record has been soft or physically deleted."""

    @classmethod
    def _select(cls, read_mode: ReadMode) -> Select:
        return select(cls).execution_options(
            **{get_config().read_option_name: read_mode.option_value}
        )

    @classmethod
    def query_active(cls) -> Select:
        """Select statement for records that are not deleted."""
        return cls._select(ReadMode.EXCLUDE_DELETED)

    @classmethod
    def query_deleted(cls) -> Select:
        """Select statement for soft deleted records only."""
        return cls._select(ReadMode.ONLY_DELETED)

    @classmethod
    def query_all(cls) -> Select:
        """Select statement for all records regardless of deletion state."""
        return cls._select(ReadMode.ALL)

    def soft_delete(
        self, session: Session, cascade: Optional[bool] = None
    ) -> DeleteOutcome:
        """
        Delete this record through its behavior.

        Args:
            session: Session owning the record
            cascade: Cascade to dependents; configured default when None

        Returns:
            Outcome of the delete
        """
        from .services import SoftDeleteService

        return SoftDeleteService(session).delete(self, cascade=cascade)

    def is_soft_deleted(self, session: Session) -> bool:
        """Whether the stored row is marked deleted."""
        from .services import SoftDeleteService

        return SoftDeleteService(session).is_deleted(self)

    @classmethod
    def restore(
        cls, session: Session, entity_id: Any = None, cascade: Optional[bool] = None
    ) -> bool:
        """
        Restore a soft deleted record of this model.

        Args:
            session: Session to work in
            entity_id: Primary key value or an instance of this model
            cascade: Cascade to dependents; configured default when None

        Returns:
            True if the record was restored
        """
        from .services import SoftDeleteService

        return SoftDeleteService(session).restore(cls, entity_id, cascade=cascade)

    @classmethod
    def enable_deletable(cls, session: Session) -> None:
        from .services import SoftDeleteService

        SoftDeleteService(session).enable(cls)

    @classmethod
    def disable_deletable(cls, session: Session) -> None:
        from .services import SoftDeleteService

        SoftDeleteService(session).disable(cls)


class BooleanSoftDeleteMixin(SoftDeletableMixin):
    """Soft delete through a ``deleted`` boolean flag."""

    __soft_delete__ = SoftDeleteBehavior("deleted", MarkerType.BOOLEAN)

    deleted: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, index=True
    )


class TimestampSoftDeleteMixin(SoftDeletableMixin):
    """Soft delete through a nullable ``deleted`` timestamp."""

    __soft_delete__ = SoftDeleteBehavior("deleted", MarkerType.DATETIME)

    deleted: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True, default=None, index=True
    )
