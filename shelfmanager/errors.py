"""Exception types raised by shelfmanager.

Every error surfaces synchronously to the caller of the top-level
``create``/``fetch``/``save`` call; the core never swallows or logs them.
"""
from __future__ import annotations

from typing import Any, Optional

__all__ = (
    "ShelfManagerError",
    "UnknownTypeError",
    "SchemaError",
    "RelationNotLoadedError",
    "ValidationError",
    "StorageError",
    "NotFoundError",
    "FilterError",
)


class ShelfManagerError(Exception):
    """Base class for all shelfmanager errors."""


class UnknownTypeError(ShelfManagerError, LookupError):
    """An entity type or relation name is not present in the registry."""

    def __init__(self, name: Any, relation: Optional[str] = None):
        self.name = name
        self.relation = relation
        if relation is None:
            msg = f"Unknown entity type: {name!r}"
        else:
            msg = f"Unknown relation {relation!r} on entity type {name!r}"
        super().__init__(msg)


class SchemaError(ShelfManagerError):
    """Registry metadata cannot be mapped onto the backing tables."""


class RelationNotLoadedError(ShelfManagerError):
    """``related(name)`` was called before the relation was attached."""

    def __init__(self, entity: str, relation: str):
        self.entity = entity
        self.relation = relation
        super().__init__(
            f"Relation {relation!r} on {entity!r} was not loaded; "
            f"pass it to create() or list it in the fetch relation paths"
        )


class ValidationError(ShelfManagerError):
    """A before-save hook rejected a node; nothing was written for it."""

    def __init__(self, message: str, *, entity: Optional[str] = None):
        self.entity = entity
        super().__init__(message)


class StorageError(ShelfManagerError):
    """The storage engine failed an insert/update/find operation."""

    def __init__(self, operation: str, entity: str, detail: str = ""):
        self.operation = operation
        self.entity = entity
        msg = f"Storage {operation} failed for {entity!r}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class NotFoundError(ShelfManagerError, LookupError):
    """No row matches a single-entity fetch, or a referenced identity is missing."""

    def __init__(self, entity: str, criteria: Any = None):
        self.entity = entity
        self.criteria = criteria
        super().__init__(f"No {entity!r} row matches {criteria!r}")


class FilterError(ShelfManagerError, ValueError):
    """A fetch filter names an unknown column or operator, or has a malformed value."""
