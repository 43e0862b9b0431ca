"""
Soft delete behavior attached to mapped models.

A model opts in by holding a configured ``SoftDeleteBehavior`` in its
``__soft_delete__`` class attribute:

    class Post(Base, SoftDeletableMixin):
        __tablename__ = "posts"
        __soft_delete__ = SoftDeleteBehavior("deleted_at")

        id = Column(Integer, primary_key=True)
        deleted_at = Column(DateTime, nullable=True)

The behavior rewrites reads to hide marked rows, turns deletes into marker
updates and restores marked rows, cascading along dependent associations.
Runtime enabled state is kept per session in ``Session.info``.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from sqlalchemy import delete, event, inspect, not_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, with_loader_criteria
from sqlalchemy.orm.attributes import flag_modified

from ..config import get_config
from .exceptions import SoftDeleteConfigurationError
from .models import (
    AssociationKind,
    AssociationSpec,
    DeleteOutcome,
    MarkerType,
    ReadMode,
)

logger = logging.getLogger(__name__)

# Session.info key holding the set of model classes disabled in that session
DISABLED_MODELS_KEY = "soft_deletable.disabled_models"


def behavior_for(model: Any) -> Optional["SoftDeleteBehavior"]:
    """Return the behavior set up for a mapped class or instance, if any."""
    cls = model if isinstance(model, type) else type(model)
    behavior = getattr(cls, "__soft_delete__", None)
    if isinstance(behavior, SoftDeleteBehavior) and behavior.model is cls:
        return behavior
    return None


def identity_of(instance: Any) -> Any:
    """Primary key value of a persistent instance (tuple when composite)."""
    identity = inspect(instance).identity
    if identity is None:
        return None
    return identity[0] if len(identity) == 1 else identity


def primary_key_attributes(model: Any) -> List[Any]:
    """Mapped attributes of the primary key columns of a model."""
    mapper = inspect(model)
    return [
        getattr(model, mapper.get_property_by_column(column).key)
        for column in mapper.primary_key
    ]


def conditions_clause(model: Any, conditions: Dict[str, Any]) -> List[Any]:
    """Build WHERE criteria from a static ``{attribute: value}`` mapping."""
    clauses = []
    for key, value in conditions.items():
        attribute = getattr(model, key)
        clauses.append(attribute.is_(None) if value is None else attribute == value)
    return clauses


def keep_row(session: Session, instance: Any) -> None:
    """Cancel a pending ``Session.delete()`` so the row is updated instead."""
    if instance in session.deleted:
        session.expunge(instance)
        session.add(instance)


def _declared_marker(model: Any) -> Optional[Tuple[str, MarkerType]]:
    """Marker field and type of a model declaring the behavior, if mapped."""
    declared = getattr(model, "__soft_delete__", None)
    if not isinstance(declared, SoftDeleteBehavior):
        return None
    column = inspect(model).columns.get(declared.field)
    if column is None:
        return None
    return declared.field, MarkerType.from_column_type(column.type)


def _call_after_delete(mapper: Any, connection: Any, target: Any) -> None:
    hook = getattr(target, "after_delete", None)
    if callable(hook):
        hook()


class CascadeState:
    """
    Bookkeeping of one delete or restore operation and its cascades.

    Rows marked in one operation share a single deletion timestamp, so a
    later cascading restore finds every dependent deleted along with its
    parent. ``visited`` maps ``(model, primary key)`` to the result already
    obtained for that row.
    """

    def __init__(self) -> None:
        self.timestamp = datetime.now(get_config().tzinfo)
        self.visited: Dict[Tuple[Any, Any], Any] = {}


class SoftDeleteBehavior:
    """
    Soft delete policy of one mapped model.

    Args:
        field: Marker column attribute; defaults to the configured
            ``default_field``
        field_type: Declared marker semantics; inferred from the column type
            when omitted
    """

    def __init__(
        self, field: Optional[str] = None, field_type: Optional[MarkerType] = None
    ):
        self.field = field or get_config().default_field
        self.declared_type = MarkerType(field_type) if field_type else None
        self.field_type = self.declared_type
        self.model: Any = None
        self.column: Any = None
        self.associations: Dict[str, AssociationSpec] = {}

    def __repr__(self) -> str:
        model = getattr(self.model, "__name__", None)
        return f"SoftDeleteBehavior(field={self.field!r}, model={model!r})"

    def copy(self) -> "SoftDeleteBehavior":
        """Unbound behavior with the same declaration."""
        return SoftDeleteBehavior(self.field, self.declared_type)

    @property
    def is_deletable(self) -> bool:
        """The model declares this behavior and maps the marker column."""
        return self.column is not None

    @property
    def not_deleted_value(self) -> Optional[bool]:
        return self.field_type.not_deleted if self.field_type else False

    def deleted_value(self, at: Optional[datetime] = None) -> Any:
        """Value marking a row as deleted at ``at`` (default: now)."""
        if self.field_type is MarkerType.DATETIME:
            now = at or datetime.now(get_config().tzinfo)
            if not getattr(self.column.type, "timezone", False):
                now = now.replace(tzinfo=None)
            return now
        return True

    def setup(self, model: Any) -> None:
        """
        Bind the behavior to a mapped class.

        Resolves the marker column, describes the model's associations and
        adds a not-deleted condition to every has-one, has-many and
        belongs-to association whose target is deletable as well.

        Args:
            model: Mapped class declaring this behavior

        Raises:
            SoftDeleteConfigurationError: Declared marker type contradicts
                the mapped column type
        """
        self.model = model
        mapper = inspect(model)
        self.column = mapper.columns.get(self.field)

        if self.column is None:
            logger.warning(
                f"{model.__name__} declares soft delete but maps no "
                f"'{self.field}' column; deletes will be physical"
            )
            self.field_type = self.declared_type
        else:
            inferred = MarkerType.from_column_type(self.column.type)
            if self.declared_type is not None and self.declared_type is not inferred:
                raise SoftDeleteConfigurationError(
                    f"{model.__name__}.{self.field} is declared "
                    f"{self.declared_type.value} but mapped as {inferred.value}"
                )
            self.field_type = inferred

        self.associations = {}
        for relationship in mapper.relationships:
            association = AssociationSpec.from_relationship(relationship)
            marker = _declared_marker(association.target)
            if marker is not None and association.kind is not AssociationKind.HAS_AND_BELONGS_TO_MANY:
                target_field, target_type = marker
                association.conditions[target_field] = target_type.not_deleted
            self.associations[association.alias] = association

        if not event.contains(model, "after_delete", _call_after_delete):
            event.listen(model, "after_delete", _call_after_delete)

        logger.debug(
            f"Soft delete set up for {model.__name__} on '{self.field}' "
            f"({self.field_type.value if self.field_type else 'unmapped'})"
        )

    # Runtime switches

    def _disabled_models(self, session: Session) -> Set[Any]:
        return session.info.setdefault(DISABLED_MODELS_KEY, set())

    def is_enabled(self, session: Session) -> bool:
        return get_config().enabled and self.model not in self._disabled_models(
            session
        )

    def enable_deletable(self, session: Session) -> None:
        """Resume filtering and delete interception for this model."""
        self._disabled_models(session).discard(self.model)

    def disable_deletable(self, session: Session) -> None:
        """Suspend filtering and delete interception for this model."""
        self._disabled_models(session).add(self.model)

    @contextmanager
    def deletable_disabled(self, session: Session) -> Iterator[None]:
        """Suspend the behavior for the duration of a block."""
        was_enabled = self.model not in self._disabled_models(session)
        self.disable_deletable(session)
        try:
            yield
        finally:
            if was_enabled:
                self.enable_deletable(session)

    # Reads

    def not_deleted_clause(self) -> Any:
        attribute = getattr(self.model, self.field)
        if self.not_deleted_value is None:
            return attribute.is_(None)
        return attribute == self.not_deleted_value

    def read_clause(self, read_mode: ReadMode) -> Any:
        """Criteria selecting the rows visible under a read mode, or None."""
        if read_mode is ReadMode.ALL:
            return None
        if read_mode is ReadMode.ONLY_DELETED:
            return not_(self.not_deleted_clause())
        return self.not_deleted_clause()

    def before_find(
        self,
        session: Session,
        statement: Any,
        read_mode: Any = ReadMode.EXCLUDE_DELETED,
    ) -> Any:
        """
        Add the marker criteria of a read mode to a statement.

        Args:
            session: Session executing the statement
            statement: ORM statement about to be executed
            read_mode: ReadMode or raw option value (unset/False, True, None)

        Returns:
            The statement, with loader criteria when filtering applies
        """
        if not self.is_deletable or not self.is_enabled(session):
            return statement

        criteria = self.read_clause(ReadMode.from_option(read_mode))
        if criteria is None:
            return statement

        return statement.options(
            with_loader_criteria(
                self.model,
                criteria,
                include_aliases=True,
                propagate_to_loaders=False,
            )
        )

    def is_deleted(self, session: Session, instance: Any) -> bool:
        """Whether the stored row of an instance is marked deleted."""
        if not self.is_deletable:
            return False

        identity = inspect(instance).identity
        if identity is None:
            return False

        statement = (
            select(*primary_key_attributes(self.model))
            .where(
                *[
                    attribute == value
                    for attribute, value in zip(
                        primary_key_attributes(self.model), identity
                    )
                ],
                not_(self.not_deleted_clause()),
            )
            .execution_options(**{get_config().read_option_name: None})
        )

        with session.no_autoflush:
            return session.execute(statement).first() is not None

    # Writes

    def _describe(self, instance: Any) -> str:
        return f"{self.model.__name__}#{identity_of(instance)}"

    def _write_marker(self, session: Session, instance: Any, value: Any) -> None:
        """Update the marker column only, bypassing attribute validators."""
        # Load expired attributes so the refresh cannot overwrite the new value
        with session.no_autoflush:
            getattr(instance, self.field)
        inspect(instance).dict[self.field] = value
        flag_modified(instance, self.field)

    def before_delete(
        self,
        session: Session,
        instance: Any,
        cascade: bool = True,
        flush: bool = True,
        _state: Optional[CascadeState] = None,
    ) -> DeleteOutcome:
        """
        Handle a delete request for a persistent instance.

        Marks the row as deleted instead of removing it, unless the model is
        not deletable, the behavior is disabled, or the row is already marked
        (a second delete purges it). When flushing, the marker update and its
        cascade run in a savepoint; a failure rolls back only that savepoint.

        Args:
            session: Session owning the instance
            instance: Persistent instance being deleted
            cascade: Propagate to dependent associations and join rows
            flush: Flush the marker update; False when called during a flush

        Returns:
            DeleteOutcome; ``proceed_with_hard_delete`` tells the caller
            whether to remove the row physically
        """
        state = CascadeState() if _state is None else _state
        visited = state.visited
        key = (self.model, identity_of(instance))
        if key in visited:
            return visited[key]

        if not self.is_deletable or not self.is_enabled(session):
            visited[key] = DeleteOutcome.HARD_DELETE_FALLTHROUGH
            return visited[key]

        if self.is_deleted(session, instance):
            logger.debug(f"{self._describe(instance)} is already deleted")
            visited[key] = DeleteOutcome.ALREADY_DELETED
            return visited[key]

        visited[key] = DeleteOutcome.SOFT_DELETED
        keep_row(session, instance)

        outcome = DeleteOutcome.SOFT_DELETED
        if flush and _state is None:
            try:
                with session.begin_nested():
                    self._mark_deleted(session, instance, cascade, flush, state)
            except SQLAlchemyError as e:
                logger.error(f"Failed to soft delete {self._describe(instance)}: {e}")
                outcome = DeleteOutcome.FAILED
        else:
            self._mark_deleted(session, instance, cascade, flush, state)
        visited[key] = outcome

        hook = getattr(instance, "after_delete", None)
        if callable(hook):
            hook()

        if outcome is DeleteOutcome.SOFT_DELETED:
            logger.info(f"Soft deleted {self._describe(instance)}")
        return outcome

    def _mark_deleted(
        self,
        session: Session,
        instance: Any,
        cascade: bool,
        flush: bool,
        state: CascadeState,
    ) -> None:
        self._write_marker(session, instance, self.deleted_value(state.timestamp))
        if flush:
            session.flush()
        if cascade:
            self._delete_dependent(session, instance, flush, state)
            self._delete_links(session, instance)

    def _delete_dependent(
        self,
        session: Session,
        instance: Any,
        flush: bool,
        state: CascadeState,
    ) -> None:
        hard_deleted = False

        for association in self.associations.values():
            if not (association.is_owned and association.dependent):
                continue

            related = getattr(instance, association.alias)
            if related is None:
                continue
            if association.kind is AssociationKind.HAS_ONE:
                children = [related]
            elif isinstance(related, dict):
                children = list(related.values())
            else:
                children = list(related)

            for child in children:
                child_behavior = behavior_for(child)
                if child_behavior is not None:
                    outcome = child_behavior.before_delete(
                        session, child, cascade=True, flush=flush, _state=state
                    )
                    # Rows already soft deleted are left alone
                    if outcome is not DeleteOutcome.HARD_DELETE_FALLTHROUGH:
                        continue

                session.delete(child)
                hard_deleted = True
                logger.debug(f"Deleting dependent {type(child).__name__} of {association.alias}")

        if flush and hard_deleted:
            session.flush()

    def _delete_links(self, session: Session, instance: Any) -> None:
        if not get_config().unlink_on_delete:
            return

        for association in self.associations.values():
            if association.kind is not AssociationKind.HAS_AND_BELONGS_TO_MANY:
                continue
            if association.link_table is None or association.foreign_key is None:
                continue

            value = getattr(instance, association.parent_key)
            session.execute(
                delete(association.link_table).where(
                    association.link_table.c[association.foreign_key] == value
                )
            )
            session.expire(instance, [association.alias])
            logger.debug(f"Unlinked {association.alias} of {self._describe(instance)}")

    def restore(
        self,
        session: Session,
        entity_id: Any = None,
        cascade: bool = True,
        _state: Optional[CascadeState] = None,
    ) -> bool:
        """
        Restore a soft deleted row.

        Args:
            session: Session to work in
            entity_id: Primary key value, or an instance of the model whose
                identity is used
            cascade: Restore dependents deleted at or after this row

        Returns:
            True if the row was restored, False if it could not be resolved,
            was vetoed by ``before_restore()`` or could not be updated
        """
        if isinstance(entity_id, self.model):
            entity_id = identity_of(entity_id)
        if entity_id is None or isinstance(entity_id, bool) or not self.is_deletable:
            return False

        state = CascadeState() if _state is None else _state
        visited = state.visited
        key = (self.model, entity_id)
        if key in visited:
            return visited[key]

        was_enabled = self.is_enabled(session)
        try:
            with session.begin_nested():
                if was_enabled:
                    self.disable_deletable(session)
                with session.no_autoflush:
                    record = session.get(self.model, entity_id)
                if record is None or not self._before_restore(record):
                    return False

                threshold = getattr(record, self.field)
                self._write_marker(session, record, self.not_deleted_value)
                session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to restore {self.model.__name__}#{entity_id}: {e}")
            return False
        finally:
            if was_enabled:
                self.enable_deletable(session)

        hook = getattr(record, "after_restore", None)
        if callable(hook):
            hook()

        visited[key] = True
        logger.info(f"Restored {self._describe(record)}")

        if cascade:
            self._restore_dependent(session, record, threshold, state)
        return True

    def _before_restore(self, record: Any) -> bool:
        hook = getattr(record, "before_restore", None)
        if callable(hook):
            return bool(hook())
        return True

    def _restore_dependent(
        self,
        session: Session,
        record: Any,
        threshold: Any,
        state: CascadeState,
    ) -> None:
        """
        Restore dependents deleted at or after the parent's deletion time.

        Only timestamp markers order deletions, so boolean dependents and
        parents without a timestamp threshold are left alone.
        """
        if not isinstance(threshold, datetime):
            return

        for association in self.associations.values():
            if not (association.is_owned and association.dependent):
                continue

            target = behavior_for(association.target)
            if target is None or target.field_type is not MarkerType.DATETIME:
                continue
            if association.foreign_key is None or association.parent_key is None:
                logger.warning(
                    f"Skipping restore of {self.model.__name__}.{association.alias}: "
                    "no foreign key metadata"
                )
                continue

            conditions = {
                name: value
                for name, value in association.conditions.items()
                if name != target.field
            }
            statement = (
                select(*primary_key_attributes(association.target))
                .where(
                    getattr(association.target, association.foreign_key)
                    == getattr(record, association.parent_key),
                    getattr(association.target, target.field) >= threshold,
                    *conditions_clause(association.target, conditions),
                )
                .execution_options(**{get_config().read_option_name: None})
            )

            for row in session.execute(statement).all():
                child_id = row[0] if len(row) == 1 else tuple(row)
                target.restore(session, child_id, cascade=True, _state=state)

    def association_guards(self) -> Dict[Any, Any]:
        """
        Static criteria hiding deleted rows of associated deletable models.

        Returns:
            Mapping of target class to its not-deleted criteria
        """
        guards = {}
        for association in self.associations.values():
            if association.kind is AssociationKind.HAS_AND_BELONGS_TO_MANY:
                continue
            target = behavior_for(association.target)
            if target is None or target.field not in association.conditions:
                continue
            guards[association.target] = conditions_clause(
                association.target, {target.field: association.conditions[target.field]}
            )[0]
        return guards
