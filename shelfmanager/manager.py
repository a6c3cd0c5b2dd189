from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Mapping, Optional, Type, Union

from sqlalchemy.ext.asyncio import AsyncSession

from .config import ManagerConfig
from .loader import EagerFetchLoader
from .materializer import GraphMaterializer
from .model import Collection, Model
from .registry import Registry, TypeRef
from .resolver import RelationResolver
from .storage import SQLAlchemyStorage, Storage

_logger = logging.getLogger("shelfmanager")

__all__ = ['Manager']


class Manager:
    """Create and fetch nested entity graphs.

    Example:
        manager = Manager(session, registry)
        car = await manager.create('car', {'color': {'name': 'White'}, 'quantity': 1})
        car.related('color').id
        make = await manager.fetch('make', {'name': 'BMW'}, ['models.type', 'models.specs'])

    Args:
        session: ``AsyncSession`` used by the default storage.
        registry: Entity types; defaults to the active registry
            (see :func:`shelfmanager.set_active_registry`).
        config: Unit-of-work behaviour, see :class:`ManagerConfig`.
        storage: Replace the SQLAlchemy storage (session is then optional).
    """

    def __init__(self, session: Optional[AsyncSession] = None, registry: Optional[Registry] = None, *,
                 config: Optional[ManagerConfig] = None, storage: Optional[Storage] = None):
        if registry is None:
            from . import get_active_registry
            registry = get_active_registry()
        self.registry = registry
        self.config = config or ManagerConfig()
        if storage is None:
            if session is None:
                raise ValueError("Manager needs a session or a storage")
            storage = SQLAlchemyStorage(session, autocommit=not self.config.atomic)
        self.storage = storage
        self.resolver = RelationResolver(registry)
        self._materializer = GraphMaterializer(registry, storage, self.resolver)
        self._loader = EagerFetchLoader(registry, storage, self.resolver)

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[None]:
        if not self.config.atomic:
            yield
            return
        try:
            yield
        except Exception:
            await self.storage.rollback()
            raise
        await self.storage.commit()

    async def create(self, type_ref: TypeRef, data: Any = None) -> Union[Model, Collection]:
        """Persist ``data`` (a mapping, or a list of mappings) as ``type_ref`` with its nested graph."""
        async with self._unit_of_work():
            return await self._materializer.create(type_ref, data)

    async def save(self, model: Model) -> Model:
        """Write a Model's scalar attributes; relations are not touched."""
        async with self._unit_of_work():
            return await self._materializer.save(model)

    async def fetch(self, type_ref: TypeRef, criteria: Optional[Mapping[str, Any]] = None,
                    relation_paths: Optional[Iterable[str]] = None, *,
                    many: Optional[bool] = None) -> Union[Model, Collection]:
        return await self._loader.fetch(type_ref, criteria, relation_paths, many=many)

    async def load(self, target: Union[Model, Collection], relation_paths: Iterable[str]) -> Union[Model, Collection]:
        """Eager-load relation paths onto Models already in memory."""
        return await self._loader.load(target, relation_paths)

    def get(self, type_ref: TypeRef) -> Type[Model]:
        """Return the registered Model class, e.g. to subclass it with hooks."""
        return self.registry.get(type_ref)

    @staticmethod
    def is_model(obj: Any) -> bool:
        return isinstance(obj, Model)

    @staticmethod
    def is_collection(obj: Any) -> bool:
        return isinstance(obj, Collection)
