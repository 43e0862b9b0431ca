"""
Session event hooks routing ORM activity to soft delete behaviors.

Hooks run in a fixed order:

* ``do_orm_execute``: before every ORM select, including lazy, selectin and
  joined relationship loads, the queried deletable models get their read mode
  criteria and guarded association targets get their not-deleted criteria.
* ``before_flush``: at the start of a flush, instances pending deletion are
  soft deleted instead, unless their behavior falls through.
* mapper ``after_delete``: after a physical row delete, installed per model
  by ``SoftDeleteBehavior.setup``.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session, configure_mappers, with_loader_criteria

from ..config import get_config
from .models import ReadMode
from .policy import CascadeState, SoftDeleteBehavior, behavior_for, keep_row

logger = logging.getLogger(__name__)


class SoftDeleteHooks:
    """
    Listeners installed on a session class or sessionmaker.

    Args:
        behaviors: Behaviors already set up on their models
        target: ``Session`` class, ``Session`` subclass or ``sessionmaker``
    """

    def __init__(self, behaviors: Iterable[SoftDeleteBehavior], target: Any = Session):
        self.behaviors: Dict[Any, SoftDeleteBehavior] = {
            behavior.model: behavior for behavior in behaviors
        }
        self.tables: Dict[Any, SoftDeleteBehavior] = {
            inspect(model).local_table: behavior
            for model, behavior in self.behaviors.items()
        }
        self.target = target
        self.guards: Dict[Any, Any] = {}
        for behavior in self.behaviors.values():
            self.guards.update(behavior.association_guards())
        self.installed = False

    def install(self) -> "SoftDeleteHooks":
        if not self.installed:
            event.listen(self.target, "do_orm_execute", self.before_find)
            event.listen(self.target, "before_flush", self.before_flush)
            self.installed = True
        return self

    def remove(self) -> None:
        """Uninstall the session listeners."""
        if self.installed:
            event.remove(self.target, "do_orm_execute", self.before_find)
            event.remove(self.target, "before_flush", self.before_flush)
            self.installed = False

    def _queried_models(self, statement: Any) -> List[Any]:
        models = []
        try:
            descriptions = statement.column_descriptions
        except (AttributeError, NotImplementedError):
            descriptions = []

        for description in descriptions:
            entity = description.get("entity")
            if entity is None:
                continue
            model = getattr(inspect(entity, raiseerr=False), "class_", None)
            if model in self.behaviors and model not in models:
                models.append(model)

        # select(func.count()).select_from(Model) names no entity
        if not models and hasattr(statement, "get_final_froms"):
            for from_clause in statement.get_final_froms():
                behavior = self.tables.get(from_clause)
                if behavior is not None and behavior.model not in models:
                    models.append(behavior.model)

        return models

    def before_find(self, orm_execute_state: Any) -> None:
        """``do_orm_execute`` listener."""
        if not orm_execute_state.is_select or orm_execute_state.is_column_load:
            return

        config = get_config()
        if not config.enabled:
            return

        session = orm_execute_state.session
        statement = orm_execute_state.statement
        queried: List[Any] = []

        if not orm_execute_state.is_relationship_load:
            read_mode = ReadMode.from_option(
                orm_execute_state.execution_options.get(config.read_option_name, False)
            )
            for model in self._queried_models(statement):
                queried.append(model)
                statement = self.behaviors[model].before_find(
                    session, statement, read_mode
                )

        for target, criteria in self.guards.items():
            if target in queried:
                continue
            behavior = self.behaviors.get(target)
            if behavior is not None and not behavior.is_enabled(session):
                continue
            statement = statement.options(
                with_loader_criteria(
                    target,
                    criteria,
                    include_aliases=True,
                    propagate_to_loaders=False,
                )
            )

        orm_execute_state.statement = statement

    def before_flush(self, session: Session, flush_context: Any, instances: Any) -> None:
        """``before_flush`` listener soft deleting pending deletions."""
        config = get_config()
        if not config.enabled:
            return

        state = CascadeState()
        for instance in list(session.deleted):
            behavior = behavior_for(instance)
            if behavior is None:
                continue

            outcome = behavior.before_delete(
                session,
                instance,
                cascade=config.cascade_delete,
                flush=False,
                _state=state,
            )
            if not outcome.proceed_with_hard_delete:
                keep_row(session, instance)
            else:
                logger.debug(
                    f"Physical delete of {type(instance).__name__} proceeds ({outcome.value})"
                )


def register_soft_delete_listeners(
    base: Any, target: Optional[Any] = None
) -> SoftDeleteHooks:
    """
    Set up every model of a declarative base that declares soft delete.

    Args:
        base: Declarative base (or any class exposing ``registry``)
        target: Session class, subclass or sessionmaker to listen on;
            defaults to ``Session``

    Returns:
        Installed hooks; call ``remove()`` to uninstall them

    Example:
        >>> hooks = register_soft_delete_listeners(Base)
        >>> session.delete(post)
        >>> session.commit()  # post.deleted_at is set, the row stays
    """
    configure_mappers()

    behaviors = []
    for mapper in base.registry.mappers:
        model = mapper.class_
        declared = getattr(model, "__soft_delete__", None)
        if not isinstance(declared, SoftDeleteBehavior):
            continue

        behavior = declared
        # Behaviors inherited from a mixin or parent class are copied per class
        if "__soft_delete__" not in vars(model) or declared.model not in (None, model):
            behavior = declared.copy()
            model.__soft_delete__ = behavior

        behavior.setup(model)
        behaviors.append(behavior)

    hooks = SoftDeleteHooks(behaviors, Session if target is None else target)
    hooks.install()
    logger.info(f"Soft delete listeners registered for {len(behaviors)} models")
    return hooks
