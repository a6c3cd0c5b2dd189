from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class RelationKind(str, Enum):
    """How two entity types are linked in storage.

    - OWNING_TO_ONE: the declaring row stores a key pointing at the related row (car -> color).
    - OWNED_TO_ONE: the related row stores a key pointing back at the declaring row.
    - TO_MANY_DIRECT: many related rows store a key pointing at the declaring row (make -> models).
    - TO_MANY_PIVOT: rows on both sides are linked through a join table (car <-> features).
    """

    OWNING_TO_ONE = 'owning_to_one'
    OWNED_TO_ONE = 'owned_to_one'
    TO_MANY_DIRECT = 'to_many_direct'
    TO_MANY_PIVOT = 'to_many_pivot'

    @property
    def single(self) -> bool:
        return self in (RelationKind.OWNING_TO_ONE, RelationKind.OWNED_TO_ONE)


@dataclass(frozen=True)
class PivotSpec:
    """Join table of a many-to-many relation.

    Attributes:
        table: A SQLAlchemy ``Table`` or the table name (looked up in the declaring
            type's ``MetaData``).
        foreign_key: Pivot column referencing the declaring type. Inferred when omitted.
        other_key: Pivot column referencing the related type. Inferred when omitted.
    """

    table: Any
    foreign_key: Optional[str] = None
    other_key: Optional[str] = None


@dataclass(frozen=True)
class RelationSpec:
    """Normalized relation metadata collected by the registry.

    Attributes:
        name: Relation name on the declaring type (e.g. "color").
        kind: One of :class:`RelationKind`.
        related: Registered name of the related entity type.
        foreign_key: Column holding the reference. For OWNING_TO_ONE it lives on the
            declaring table, for OWNED_TO_ONE/TO_MANY_DIRECT on the related table.
            ``None`` means "infer from table metadata".
        pivot: Join table description, TO_MANY_PIVOT only.
    """

    name: str
    kind: RelationKind
    related: str
    foreign_key: Optional[str] = None
    pivot: Optional[PivotSpec] = None

    @property
    def single(self) -> bool:
        return self.kind.single


def _target_name(target: Any) -> str:
    if isinstance(target, str):
        return target
    name = getattr(target, '__entity_name__', None)
    if name:
        return str(name)
    return getattr(target, '__name__', str(target)).lower()


class RelationDescriptor:
    """Class-body marker declaring a relation on a Model subclass.

    Users normally call :func:`belongs_to`, :func:`has_one`, :func:`has_many` or
    :func:`belongs_to_many`. The model metaclass removes the descriptor from the
    class namespace and stores the built :class:`RelationSpec` in ``__relations__``.
    """

    def __init__(self, *, kind: RelationKind, target: Any, foreign_key: Optional[str] = None,
                 pivot: Optional[PivotSpec] = None):
        if kind is RelationKind.TO_MANY_PIVOT and pivot is None:
            raise ValueError("belongs_to_many relations require a pivot table (through=...)")
        self.kind = kind
        self.target = target
        self.foreign_key = foreign_key
        self.pivot = pivot
        self.name: str | None = None

    def __set_name__(self, owner, name):  # pragma: no cover - simple
        self.name = name

    def build(self, name: Optional[str] = None) -> RelationSpec:
        return RelationSpec(
            name=name or self.name or '',
            kind=self.kind,
            related=_target_name(self.target),
            foreign_key=self.foreign_key,
            pivot=self.pivot,
        )


def relation(target: Any, *, kind: RelationKind | str, foreign_key: Optional[str] = None,
             through: Any = None, other_key: Optional[str] = None) -> RelationDescriptor:
    """Declare a relation of an explicit kind.

    Args:
        target: Related entity type, as its registered name or the class itself.
        kind: A :class:`RelationKind` or its string value.
        foreign_key: Column holding the reference (see :class:`RelationSpec`).
        through: Join table for TO_MANY_PIVOT relations.
        other_key: Join table column referencing the related type.
    """
    kind = RelationKind(kind)
    pivot = None
    if kind is RelationKind.TO_MANY_PIVOT:
        pivot = PivotSpec(table=through, foreign_key=foreign_key, other_key=other_key) if through is not None else None
        foreign_key = None
    return RelationDescriptor(kind=kind, target=target, foreign_key=foreign_key, pivot=pivot)


def belongs_to(target: Any, *, foreign_key: Optional[str] = None) -> RelationDescriptor:
    """The declaring row stores the related row's identity.

    Examples:
        class Car(Model):
            color = belongs_to('color')              # cars.color_id -> colors.id
    """
    return relation(target, kind=RelationKind.OWNING_TO_ONE, foreign_key=foreign_key)


def has_one(target: Any, *, foreign_key: Optional[str] = None) -> RelationDescriptor:
    """A single related row stores the declaring row's identity."""
    return relation(target, kind=RelationKind.OWNED_TO_ONE, foreign_key=foreign_key)


def has_many(target: Any, *, foreign_key: Optional[str] = None) -> RelationDescriptor:
    """Many related rows store the declaring row's identity.

    Examples:
        class Make(Model):
            models = has_many('model')               # models.make_id -> makes.id
    """
    return relation(target, kind=RelationKind.TO_MANY_DIRECT, foreign_key=foreign_key)


def belongs_to_many(target: Any, *, through: Any, foreign_key: Optional[str] = None,
                    other_key: Optional[str] = None) -> RelationDescriptor:
    """Rows on both sides are linked through the ``through`` join table.

    Examples:
        class Car(Model):
            features = belongs_to_many('feature', through='cars_features')
    """
    return relation(target, kind=RelationKind.TO_MANY_PIVOT, foreign_key=foreign_key,
                    through=through, other_key=other_key)
