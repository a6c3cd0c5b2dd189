"""shelfmanager public API and lightweight lazy exports.

This __init__ avoids importing SQLAlchemy-heavy submodules at import time so
that table modules can import relation helpers without cycles.

Exposes:
- get_active_registry, set_active_registry
- Lazy classes: Manager, Registry, Model, Collection, ManagerConfig
- Lazy functions: relation, belongs_to, has_one, has_many, belongs_to_many,
  hooks, before_save, after_save
- Errors: UnknownTypeError, RelationNotLoadedError, ValidationError,
  StorageError, NotFoundError, SchemaError, FilterError, ShelfManagerError
"""
from __future__ import annotations

from typing import Any

_ACTIVE_REGISTRY: Any = None


def set_active_registry(registry: Any) -> None:
    global _ACTIVE_REGISTRY
    _ACTIVE_REGISTRY = registry


def get_active_registry() -> Any:
    if _ACTIVE_REGISTRY is None:
        raise RuntimeError("Active registry not set. Pass a Registry to Manager or call set_active_registry().")
    return _ACTIVE_REGISTRY


_LAZY = {
    'Manager': 'manager',
    'Registry': 'registry',
    'hooks': 'registry',
    'before_save': 'registry',
    'after_save': 'registry',
    'Model': 'model',
    'Collection': 'model',
    'ManagerConfig': 'config',
    'RelationKind': 'core.fields',
    'relation': 'core.fields',
    'belongs_to': 'core.fields',
    'has_one': 'core.fields',
    'has_many': 'core.fields',
    'belongs_to_many': 'core.fields',
    'ShelfManagerError': 'errors',
    'UnknownTypeError': 'errors',
    'SchemaError': 'errors',
    'RelationNotLoadedError': 'errors',
    'ValidationError': 'errors',
    'StorageError': 'errors',
    'NotFoundError': 'errors',
    'FilterError': 'errors',
}


def __getattr__(name: str):  # PEP 562 lazy exports
    import importlib as _importlib
    if name in {'registry', 'model', 'manager', 'materializer', 'loader', 'resolver', 'storage', 'errors',
                'config', 'database', 'core'}:
        return _importlib.import_module(__name__ + '.' + name)
    mod = _LAZY.get(name)
    if mod is None:
        raise AttributeError(name)
    return getattr(_importlib.import_module(__name__ + '.' + mod), name)


__all__ = [
    'Manager', 'Registry', 'Model', 'Collection', 'ManagerConfig', 'RelationKind',
    'relation', 'belongs_to', 'has_one', 'has_many', 'belongs_to_many',
    'hooks', 'before_save', 'after_save',
    'ShelfManagerError', 'UnknownTypeError', 'SchemaError', 'RelationNotLoadedError',
    'ValidationError', 'StorageError', 'NotFoundError', 'FilterError',
    'get_active_registry', 'set_active_registry',
]
