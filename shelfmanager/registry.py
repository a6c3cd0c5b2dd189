from __future__ import annotations
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type, Union

from .core.fields import RelationSpec
from .core.naming import singular_candidates
from .errors import SchemaError, UnknownTypeError
from .model import Model

# Project logger
_logger = logging.getLogger("shelfmanager")

__all__ = ['Registry', 'HooksDescriptor', 'hooks', 'before_save', 'after_save']

TypeRef = Union[str, Type[Model]]


# --- Public hook descriptor to attach lifecycle callbacks declaratively ----
class HooksDescriptor:
    """Descriptor that registers before/after save hooks on a Model subclass.

    Usage inside a Model class body:

        from app.validation import require_name, audit

        class Car(Model):
            hooks = hooks(before_save=require_name, after_save=audit)

    Hooks receive the Model being saved (and optionally a context dict, see
    :class:`GraphMaterializer`). They may be sync or async.
    """
    def __init__(self, before_save=None, after_save=None):
        self._before = before_save
        self._after = after_save

    def _iter_funcs(self, val):
        if val is None:
            return []
        if isinstance(val, (list, tuple)):
            return [f for f in val if callable(f)]
        return [val] if callable(val) else []

    def _append(self, owner, attr: str, funcs) -> None:
        existing = list(getattr(owner, attr, ()) or ())
        for f in funcs:
            if f not in existing:
                existing.append(f)
        setattr(owner, attr, tuple(existing))

    def __set_name__(self, owner, name):
        self._append(owner, '__before_save_cbs__', self._iter_funcs(self._before))
        self._append(owner, '__after_save_cbs__', self._iter_funcs(self._after))
        # Hide the attribute from instances
        setattr(owner, name, None)


def hooks(*, before_save: Any | None = None, after_save: Any | None = None) -> HooksDescriptor:
    """Create a hook descriptor for in-class registration.

    Usage:
        class Car(Model):
            hooks = hooks(before_save=check_quantity)
    """
    return HooksDescriptor(before_save=before_save, after_save=after_save)


def before_save(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Mark a Model method as a before-save hook.

    The hook runs after scalar attributes are assigned and before the node's own
    row is written. Raising aborts the node with :class:`ValidationError`.
    """
    setattr(fn, '__shelf_before_save__', True)
    return fn


def after_save(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Mark a Model method as an after-save hook (runs once the row exists)."""
    setattr(fn, '__shelf_after_save__', True)
    return fn


def _table_of(model: Any) -> Any:
    """Return the SQLAlchemy Table behind an ORM class, or the Table itself."""
    table = getattr(model, '__table__', model)
    if table is None or not hasattr(table, 'c'):
        raise SchemaError(f"Cannot determine table for {model!r}")
    return table


def _get_pk_name(table: Any) -> str:
    """Return the primary key column name of a table, defaulting to 'id'."""
    pk_cols = list(getattr(getattr(table, 'primary_key', None), 'columns', []) or [])
    # Prefer the first PK column (single-column PK expected)
    if pk_cols:
        return pk_cols[0].name
    return 'id'


class Registry:
    """Process-wide relation schema: entity name -> Model subclass.

    Registration happens at startup; afterwards the registry is only read, so it
    can be shared by concurrent create/fetch calls.
    """
    def __init__(self):
        self.types: Dict[str, Type[Model]] = {}

    def register(self, cls: Type[Model], *, name: Optional[str] = None, model: Any = None) -> Type[Model]:
        """Bind ``cls`` to a table and register it (replacing any previous binding)."""
        if not (isinstance(cls, type) and issubclass(cls, Model)):
            raise TypeError(f"Only Model subclasses can be registered, got {cls!r}")
        type_name = name or cls.__dict__.get('__entity_name__') or getattr(cls, '__entity_name__', None) \
            or cls.__name__.lower()
        if model is not None:
            table = _table_of(model)
        elif getattr(cls, '__entity_table__', None) is not None:
            table = cls.__entity_table__
        else:
            raise SchemaError(f"Entity type {type_name!r} is not bound to a table")
        cls.__entity_name__ = type_name
        cls.__entity_table__ = table
        cls.__pk_name__ = _get_pk_name(table)
        if type_name in self.types and self.types[type_name] is not cls:
            _logger.debug("registry: replacing entity type %s", type_name)
        self.types[type_name] = cls
        return cls

    def type(self, name: Optional[str] = None, *, model: Any = None):
        """Class decorator registering a Model subclass.

        Example:
            @registry.type(name='car', model=CarRow)
            class Car(Model):
                color = belongs_to('color')
        """
        def deco(cls: Type[Model]):
            return self.register(cls, name=name, model=model)
        return deco

    # --- lookups ------------------------------------------------------------
    def resolve(self, type_ref: TypeRef) -> Tuple[Type[Model], bool]:
        """Return ``(model class, plural)`` for a name, plural alias or class.

        ``plural`` is True when ``type_ref`` was a plural alias such as ``'cars'``.
        """
        if isinstance(type_ref, type):
            if issubclass(type_ref, Model) and getattr(type_ref, '__entity_name__', None) in self.types:
                return type_ref, False
            raise UnknownTypeError(getattr(type_ref, '__name__', type_ref))
        name = str(type_ref)
        if name in self.types:
            return self.types[name], False
        for candidate in singular_candidates(name):
            if candidate in self.types:
                return self.types[candidate], True
        raise UnknownTypeError(name)

    def lookup(self, type_ref: TypeRef) -> Type[Model]:
        return self.resolve(type_ref)[0]

    def get(self, type_ref: TypeRef) -> Type[Model]:
        """Return the Model class handle for extension by subclassing."""
        return self.lookup(type_ref)

    def __contains__(self, name: str) -> bool:
        return name in self.types

    def relations(self, type_ref: TypeRef) -> Dict[str, RelationSpec]:
        return dict(self.lookup(type_ref).__relations__)

    def relation(self, type_ref: TypeRef, name: str) -> RelationSpec:
        cls = self.lookup(type_ref)
        spec = cls.__relations__.get(name)
        if spec is None:
            raise UnknownTypeError(cls.__entity_name__, relation=name)
        return spec

    def is_relation(self, type_ref: TypeRef, field: str) -> bool:
        return field in self.lookup(type_ref).__relations__

    def partition(self, type_ref: TypeRef, data: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Split a literal into (scalars, relations); unknown names are scalars."""
        rels = self.lookup(type_ref).__relations__
        scalars: Dict[str, Any] = {}
        relations: Dict[str, Any] = {}
        for k, v in data.items():
            if k in rels:
                relations[k] = v
            else:
                scalars[k] = v
        return scalars, relations
