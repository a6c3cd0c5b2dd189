from __future__ import annotations
import inspect
import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from .core.fields import RelationKind, RelationSpec
from .errors import NotFoundError, ValidationError
from .model import Collection, Model
from .registry import Registry, TypeRef
from .resolver import RelationResolver, SaveOrder
from .storage import Storage

_logger = logging.getLogger("shelfmanager")

__all__ = ['GraphMaterializer', 'call_hook']


async def call_hook(cb, model: Model, context: Dict[str, Any]):
    """Invoke a lifecycle hook as ``cb(model)`` or ``cb(model, context)``; await if needed."""
    try:
        params = list(inspect.signature(cb).parameters.values())
    except (TypeError, ValueError):
        params = []
    positional = [p for p in params if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)]
    has_varargs = any(p.kind is p.VAR_POSITIONAL for p in params)
    if len(positional) >= 2 or has_varargs:
        res = cb(model, context)
    else:
        res = cb(model)
    if inspect.isawaitable(res):
        res = await res
    return res


class GraphMaterializer:
    """Persist a nested literal as a graph of rows and return the linked Models.

    Each node walks ``PENDING -> MATCHED_EXISTING | INSERTING -> PERSISTED -> ATTACHED``:

    1. Fields are split into scalars and relations through the registry.
    2. CHILD_FIRST relations (the node stores the child's key) are materialized and
       their identities copied into the node's scalars.
    3. A node carrying a non-empty identity is merged into the existing row,
       otherwise it is inserted. Before-save hooks run right before the write.
    4. PARENT_FIRST relations are materialized with the node's identity as their
       foreign key; pivot relations get a join row per child.
    5. Related Models/Collections are attached and after-save hooks run.

    Hooks receive the Model and, if they accept a second argument, a context dict
    with ``parent`` (Model or None), ``relation`` (name or None) and ``created``.
    """

    def __init__(self, registry: Registry, storage: Storage, resolver: Optional[RelationResolver] = None):
        self._registry = registry
        self._storage = storage
        self._resolver = resolver or RelationResolver(registry)

    async def create(self, type_ref: TypeRef, data: Any = None) -> Union[Model, Collection]:
        entity, plural = self._registry.resolve(type_ref)
        if isinstance(data, (list, tuple)) or plural:
            if data is None:
                items: List[Any] = []
            elif isinstance(data, Mapping):
                items = [data]
            else:
                items = list(data)
            out = Collection(entity)
            for item in items:
                out.append(await self._materialize(entity, item))
            _logger.info("create %s: %d root nodes", entity.__entity_name__, len(out))
            return out
        model = await self._materialize(entity, data if data is not None else {})
        _logger.info("create %s: id=%s", entity.__entity_name__, model.id)
        return model

    async def save(self, model: Model) -> Model:
        """Write a Model's current scalar attributes (insert when it has no identity).

        A Model whose identity matches no stored row raises :class:`NotFoundError`.
        """
        entity = type(model)
        if not model.is_new() and await self._storage.find_by_id(entity, model.id) is None:
            raise NotFoundError(entity.__entity_name__, {entity.__pk_name__: model.id})
        context = {'parent': None, 'relation': None, 'created': model.is_new()}
        await self._run_before_save(entity, model, context)
        if model.is_new():
            model.unset(entity.__pk_name__)
            model.id = await self._storage.insert(entity, model.attributes)
        else:
            await self._storage.update(entity, model.id, model.attributes)
        await self._run_after_save(entity, model, context)
        return model

    # --- node walk ------------------------------------------------------------
    async def _materialize(self, entity: Type[Model], data: Any, *, fixed: Optional[Dict[str, Any]] = None,
                           parent: Optional[Model] = None, relation: Optional[str] = None) -> Model:
        if not isinstance(data, Mapping):
            raise TypeError(f"Expected a mapping for {entity.__entity_name__!r}, got {type(data).__name__}")
        scalars, relations = self._registry.partition(entity, data)
        if fixed:
            scalars.update(fixed)
        specs = entity.__relations__

        # Children whose identity this node stores go first.
        owned_first: Dict[str, Optional[Model]] = {}
        for name, value in relations.items():
            spec = specs[name]
            if self._resolver.plan_order(spec) is not SaveOrder.CHILD_FIRST:
                continue
            fk = self._resolver.foreign_key(entity, spec)
            if value is None:
                scalars[fk] = None
                owned_first[name] = None
                continue
            child = await self._materialize(self._resolver.related_model(spec), self._single(spec, value),
                                             relation=name)
            scalars[fk] = child.id
            owned_first[name] = child

        model, created = await self._persist(entity, scalars, parent=parent, relation=relation)
        for name, child in owned_first.items():
            model.attach(name, child)

        for name, value in relations.items():
            spec = specs[name]
            if self._resolver.plan_order(spec) is not SaveOrder.PARENT_FIRST:
                continue
            model.attach(name, await self._materialize_dependents(entity, model, spec, value))

        await self._run_after_save(entity, model, {'parent': parent, 'relation': relation, 'created': created})
        return model

    async def _materialize_dependents(self, entity: Type[Model], model: Model, spec: RelationSpec, value: Any):
        related = self._resolver.related_model(spec)
        if spec.kind is RelationKind.OWNED_TO_ONE:
            if value is None:
                return None
            fk = self._resolver.foreign_key(entity, spec)
            return await self._materialize(related, self._single(spec, value), fixed={fk: model.id},
                                           parent=model, relation=spec.name)
        out = Collection(related)
        if value is None:
            return out
        elements = [value] if isinstance(value, Mapping) else list(value)
        if self._resolver.requires_pivot_row(spec):
            pivot = self._resolver.pivot(entity, spec)
            for element in elements:
                # Both sides exist independently; link them once both identities are known.
                child = await self._materialize(related, element, parent=model, relation=spec.name)
                await self._storage.insert_pivot(pivot, model.id, child.id)
                out.append(child)
            return out
        fk = self._resolver.foreign_key(entity, spec)
        for element in elements:
            out.append(await self._materialize(related, element, fixed={fk: model.id},
                                               parent=model, relation=spec.name))
        return out

    def _single(self, spec: RelationSpec, value: Any) -> Mapping:
        if not isinstance(value, Mapping):
            raise TypeError(f"Relation {spec.name!r} is to-one and expects a mapping, got {type(value).__name__}")
        return value

    async def _persist(self, entity: Type[Model], scalars: Dict[str, Any], *, parent: Optional[Model],
                       relation: Optional[str]) -> Tuple[Model, bool]:
        pk_name = entity.__pk_name__
        identity = scalars.get(pk_name)
        existing: Optional[Dict[str, Any]] = None
        if identity not in (None, ''):
            existing = await self._storage.find_by_id(entity, identity)
            if existing is None:
                raise NotFoundError(entity.__entity_name__, {pk_name: identity})
            model = entity(existing)
            model.set(scalars)
        else:
            scalars.pop(pk_name, None)
            model = entity(scalars)
        created = existing is None
        context = {'parent': parent, 'relation': relation, 'created': created}
        await self._run_before_save(entity, model, context)

        if created:
            model.id = await self._storage.insert(entity, model.attributes)
        else:
            # Identity is preserved; only changed attributes are written.
            changes = {k: v for k, v in model.attributes.items()
                       if k != pk_name and (k not in existing or existing[k] != v)}
            model.id = existing.get(pk_name, identity)
            if changes:
                await self._storage.update(entity, identity, changes)
        return model, created

    async def _run_before_save(self, entity: Type[Model], model: Model, context: Dict[str, Any]) -> None:
        for cb in entity.__before_save_cbs__:
            try:
                await call_hook(cb, model, context)
            except ValidationError:
                raise
            except Exception as exc:
                raise ValidationError(str(exc) or type(exc).__name__, entity=entity.__entity_name__) from exc

    async def _run_after_save(self, entity: Type[Model], model: Model, context: Dict[str, Any]) -> None:
        for cb in entity.__after_save_cbs__:
            await call_hook(cb, model, context)
