"""
Data models for soft delete operations.

These models describe marker column semantics, the tri-state read option,
the outcome of a delete request and the association metadata a behavior
works from.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import DateTime
from sqlalchemy.orm import RelationshipDirection, RelationshipProperty

# Key of the ``relationship(info=...)`` entry read by the behavior
SOFT_DELETE_INFO_KEY = "soft_delete"


class MarkerType(str, Enum):
    """Value space of the marker column."""

    BOOLEAN = "boolean"  # False = active, True = deleted
    DATETIME = "datetime"  # NULL = active, timestamp = deleted at

    @property
    def not_deleted(self) -> Optional[bool]:
        """Sentinel stored in the marker column of an active row."""
        if self is MarkerType.DATETIME:
            return None
        return False

    @classmethod
    def from_column_type(cls, column_type: Any) -> "MarkerType":
        """Infer the marker semantics from a SQLAlchemy column type."""
        if isinstance(column_type, DateTime):
            return cls.DATETIME
        return cls.BOOLEAN


class ReadMode(str, Enum):
    """Tri-state read option consumed by the find hook."""

    EXCLUDE_DELETED = "exclude_deleted"
    ONLY_DELETED = "only_deleted"
    ALL = "all"

    @classmethod
    def from_option(cls, value: Any) -> "ReadMode":
        """
        Translate an execution option value into a read mode.

        Unset and ``False`` exclude deleted rows, ``True`` selects only
        deleted rows and ``None`` disables filtering.
        """
        if isinstance(value, ReadMode):
            return value
        if value is None:
            return cls.ALL
        if value:
            return cls.ONLY_DELETED
        return cls.EXCLUDE_DELETED

    @property
    def option_value(self) -> Optional[bool]:
        """Execution option value equivalent to this mode."""
        if self is ReadMode.ONLY_DELETED:
            return True
        if self is ReadMode.ALL:
            return None
        return False


class DeleteOutcome(str, Enum):
    """Result of a delete request routed through the behavior."""

    SOFT_DELETED = "soft_deleted"
    ALREADY_DELETED = "already_deleted"
    HARD_DELETE_FALLTHROUGH = "hard_delete_fallthrough"
    FAILED = "failed"

    @property
    def proceed_with_hard_delete(self) -> bool:
        """Whether the host should go on and remove the row physically."""
        return self in (
            DeleteOutcome.ALREADY_DELETED,
            DeleteOutcome.HARD_DELETE_FALLTHROUGH,
        )


class AssociationKind(str, Enum):
    """Kinds of associations a model can declare."""

    HAS_ONE = "has_one"
    HAS_MANY = "has_many"
    BELONGS_TO = "belongs_to"
    HAS_AND_BELONGS_TO_MANY = "has_and_belongs_to_many"


class AssociationSpec(BaseModel):
    """Static description of one association, built once at setup time."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    alias: str = Field(..., description="Relationship attribute name", min_length=1)
    kind: AssociationKind = Field(..., description="Association kind")
    target: Any = Field(..., description="Associated mapped class")
    foreign_key: Optional[str] = Field(
        None, description="Column referencing the parent (on target or link table)"
    )
    parent_key: Optional[str] = Field(
        None, description="Parent attribute referenced by the foreign key"
    )
    link_table: Any = Field(None, description="Join table of a many-to-many")
    dependent: bool = Field(
        False, description="Delete and restore along with the parent"
    )
    conditions: Dict[str, Any] = Field(
        default_factory=dict, description="Static conditions on target columns"
    )

    @property
    def is_owned(self) -> bool:
        """True for has-one and has-many associations."""
        return self.kind in (AssociationKind.HAS_ONE, AssociationKind.HAS_MANY)

    @classmethod
    def from_relationship(cls, relationship: RelationshipProperty) -> "AssociationSpec":
        """
        Describe a configured ``relationship()`` property.

        Args:
            relationship: Relationship property of a configured mapper

        Returns:
            Association description
        """
        options = dict(relationship.info.get(SOFT_DELETE_INFO_KEY) or {})

        if relationship.direction is RelationshipDirection.MANYTOMANY:
            kind = AssociationKind.HAS_AND_BELONGS_TO_MANY
        elif relationship.direction is RelationshipDirection.MANYTOONE:
            kind = AssociationKind.BELONGS_TO
        elif relationship.uselist:
            kind = AssociationKind.HAS_MANY
        else:
            kind = AssociationKind.HAS_ONE

        foreign_key = None
        parent_key = None
        pairs = list(relationship.synchronize_pairs)
        # Composite or custom joins carry no single back reference
        if len(pairs) == 1 and kind is not AssociationKind.BELONGS_TO:
            local_column, remote_column = pairs[0]
            parent_key = relationship.parent.get_property_by_column(local_column).key
            if kind is AssociationKind.HAS_AND_BELONGS_TO_MANY:
                foreign_key = remote_column.key
            else:
                foreign_key = relationship.mapper.get_property_by_column(
                    remote_column
                ).key

        return cls(
            alias=relationship.key,
            kind=kind,
            target=relationship.mapper.class_,
            foreign_key=foreign_key,
            parent_key=parent_key,
            link_table=relationship.secondary,
            dependent=bool(options.get("dependent", relationship.cascade.delete)),
            conditions=dict(options.get("conditions") or {}),
        )
