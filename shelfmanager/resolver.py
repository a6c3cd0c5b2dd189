"""Relation resolver: save ordering and the concrete key columns of a relation."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from .core.fields import RelationKind, RelationSpec
from .errors import SchemaError
from .model import Model
from .registry import Registry

__all__ = ['SaveOrder', 'Pivot', 'RelationResolver']


class SaveOrder(str, Enum):
    PARENT_FIRST = 'parent_first'
    CHILD_FIRST = 'child_first'


@dataclass(frozen=True)
class Pivot:
    """A join table bound to concrete columns: ``left_key`` references the owner."""

    table: Any
    left_key: str
    right_key: str

    @property
    def name(self) -> str:
        return str(getattr(self.table, 'name', self.table))


def _fk_columns_to(table: Any, target_table: Any) -> List[str]:
    out: List[str] = []
    for col in table.columns:
        for fk in getattr(col, 'foreign_keys', []) or []:
            if fk.column.table.name == target_table.name:
                out.append(col.name)
                break
    return out


def _pick_column(table: Any, target_table: Any, conventional: str) -> Optional[str]:
    """Prefer the conventional name when it is an FK, then any FK column, then the bare convention."""
    fk_cols = _fk_columns_to(table, target_table)
    if conventional in fk_cols:
        return conventional
    if fk_cols:
        return fk_cols[0]
    if table.c.get(conventional) is not None:
        return conventional
    return None


class RelationResolver:
    """Decide persistence order per relation kind and resolve key columns.

    Ordering rules:
    - OWNING_TO_ONE: CHILD_FIRST, the parent row stores the child's identity.
    - OWNED_TO_ONE / TO_MANY_DIRECT: PARENT_FIRST, children store the parent's identity.
    - TO_MANY_PIVOT: PARENT_FIRST; each child is saved independently and a pivot
      row is written once both identities exist.
    """

    def __init__(self, registry: Registry):
        self._registry = registry
        self._fk_cache: Dict[Tuple[str, str], str] = {}
        self._pivot_cache: Dict[Tuple[str, str], Pivot] = {}

    def plan_order(self, spec: RelationSpec) -> SaveOrder:
        if spec.kind is RelationKind.OWNING_TO_ONE:
            return SaveOrder.CHILD_FIRST
        return SaveOrder.PARENT_FIRST

    def requires_pivot_row(self, spec: RelationSpec) -> bool:
        return spec.kind is RelationKind.TO_MANY_PIVOT

    def related_model(self, spec: RelationSpec) -> Type[Model]:
        return self._registry.lookup(spec.related)

    def foreign_key(self, owner: Type[Model], spec: RelationSpec) -> str:
        """Return the FK column of a non-pivot relation.

        For OWNING_TO_ONE the column lives on the owner's table, otherwise on the
        related table. Declared keys win; then table foreign-key metadata; then the
        ``<relation>_id`` / ``<owner>_id`` naming convention.
        """
        if spec.kind is RelationKind.TO_MANY_PIVOT:
            raise SchemaError(f"Relation {spec.name!r} is pivot-based; use pivot()")
        cache_key = (owner.__entity_name__ or '', spec.name)
        cached = self._fk_cache.get(cache_key)
        if cached is not None:
            return cached
        related = self.related_model(spec)
        if spec.kind is RelationKind.OWNING_TO_ONE:
            holder, target, conventional = owner.__entity_table__, related.__entity_table__, f"{spec.name}_id"
        else:
            holder, target, conventional = related.__entity_table__, owner.__entity_table__, f"{owner.__entity_name__}_id"
        column = spec.foreign_key or _pick_column(holder, target, conventional)
        if column is None or holder.c.get(column) is None:
            raise SchemaError(
                f"Cannot resolve foreign key for relation {owner.__entity_name__}.{spec.name} "
                f"on table {holder.name!r}"
            )
        self._fk_cache[cache_key] = column
        return column

    def pivot(self, owner: Type[Model], spec: RelationSpec) -> Pivot:
        """Bind a TO_MANY_PIVOT relation's join table and key columns."""
        if spec.kind is not RelationKind.TO_MANY_PIVOT or spec.pivot is None:
            raise SchemaError(f"Relation {spec.name!r} has no pivot table")
        cache_key = (owner.__entity_name__ or '', spec.name)
        cached = self._pivot_cache.get(cache_key)
        if cached is not None:
            return cached
        related = self.related_model(spec)
        owner_table = owner.__entity_table__
        table = spec.pivot.table
        if isinstance(table, str):
            table = owner_table.metadata.tables.get(table)
            if table is None:
                raise SchemaError(f"Pivot table {spec.pivot.table!r} is not in the owner's metadata")
        if not hasattr(table, 'c'):
            raise SchemaError(f"Pivot of {owner.__entity_name__}.{spec.name} is not a table: {table!r}")
        left = spec.pivot.foreign_key or _pick_column(table, owner_table, f"{owner.__entity_name__}_id")
        right = spec.pivot.other_key or _pick_column(table, related.__entity_table__, f"{related.__entity_name__}_id")
        # Self-referential pivots need explicit foreign_key/other_key.
        if not left or not right or left == right or table.c.get(left) is None or table.c.get(right) is None:
            raise SchemaError(f"Cannot resolve pivot keys for relation {owner.__entity_name__}.{spec.name}")
        pivot = Pivot(table=table, left_key=left, right_key=right)
        self._pivot_cache[cache_key] = pivot
        return pivot
