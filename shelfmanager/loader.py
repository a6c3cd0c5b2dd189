from __future__ import annotations
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, Union

from .core.fields import RelationKind, RelationSpec
from .core.naming import PathTree, build_path_tree
from .errors import NotFoundError
from .model import Collection, Model
from .registry import Registry, TypeRef
from .resolver import RelationResolver
from .storage import Storage

_logger = logging.getLogger("shelfmanager")

__all__ = ['EagerFetchLoader']


def _unique(values: Iterable[Any]) -> List[Any]:
    seen = set()
    out: List[Any] = []
    for v in values:
        if v is None or v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


class EagerFetchLoader:
    """Fetch root rows and eager-load dotted relation paths onto them.

    Relation paths are merged into a tree first, so ``models.type`` and
    ``models.specs`` share one load of ``models``. Each relation at each level is
    loaded with one batched query for all parents at that level.
    """

    def __init__(self, registry: Registry, storage: Storage, resolver: Optional[RelationResolver] = None):
        self._registry = registry
        self._storage = storage
        self._resolver = resolver or RelationResolver(registry)

    async def fetch(self, type_ref: TypeRef, criteria: Optional[Mapping[str, Any]] = None,
                    relation_paths: Optional[Iterable[str]] = None, *,
                    many: Optional[bool] = None) -> Union[Model, Collection]:
        """Load rows of ``type_ref`` matching ``criteria`` with ``relation_paths`` attached.

        Plural type names (``'cars'``) or ``many=True`` return a Collection, which is
        empty when nothing matches. Otherwise the first match (by identity) is
        returned and zero matches raise :class:`NotFoundError`.
        """
        entity, plural = self._registry.resolve(type_ref)
        many = plural if many is None else many
        tree = build_path_tree(relation_paths)
        self._validate(entity, tree)
        rows = await self._storage.find_many(entity, criteria or {})
        if not many:
            if not rows:
                raise NotFoundError(entity.__entity_name__, dict(criteria or {}))
            rows = rows[:1]
        models = Collection(entity, (entity(r) for r in rows))
        await self._load_tree(entity, list(models), tree)
        _logger.info("fetch %s: %d rows, paths=%s", entity.__entity_name__, len(models), list(tree))
        return models if many else models.at(0)

    async def load(self, target: Union[Model, Collection], relation_paths: Iterable[str]) -> Union[Model, Collection]:
        """Eager-load relation paths onto Models that are already in memory."""
        if isinstance(target, Collection):
            entity, models = target.model_cls, list(target)
        else:
            entity, models = type(target), [target]
        tree = build_path_tree(relation_paths)
        self._validate(entity, tree)
        await self._load_tree(entity, models, tree)
        return target

    def _validate(self, entity: Type[Model], tree: PathTree) -> None:
        for name, subtree in tree.items():
            spec = self._registry.relation(entity, name)
            if subtree:
                self._validate(self._resolver.related_model(spec), subtree)

    async def _load_tree(self, entity: Type[Model], models: List[Model], tree: PathTree) -> None:
        for name, subtree in tree.items():
            spec = self._registry.relation(entity, name)
            related = self._resolver.related_model(spec)
            children = await self._load_relation(entity, related, spec, models)
            _logger.debug("eager-load %s.%s: %d rows", entity.__entity_name__, name, len(children))
            if subtree and children:
                await self._load_tree(related, children, subtree)

    async def _load_relation(self, entity: Type[Model], related: Type[Model], spec: RelationSpec,
                             parents: List[Model]) -> List[Model]:
        """Attach ``spec`` on every parent; return the distinct child Models loaded."""
        pk = related.__pk_name__
        if spec.kind is RelationKind.OWNING_TO_ONE:
            fk = self._resolver.foreign_key(entity, spec)
            ids = _unique(p.get(fk) for p in parents)
            rows = await self._storage.find_many(related, {pk: {'in': ids}}) if ids else []
            by_id = {r[pk]: related(r) for r in rows}
            for p in parents:
                p.attach(spec.name, by_id.get(p.get(fk)))
            return list(by_id.values())

        parent_ids = _unique(p.id for p in parents)
        if spec.kind is RelationKind.TO_MANY_PIVOT:
            pivot = self._resolver.pivot(entity, spec)
            pairs = await self._storage.find_pivot(pivot, parent_ids)
            child_ids = _unique(right for _, right in pairs)
            rows = await self._storage.find_many(related, {pk: {'in': child_ids}}) if child_ids else []
            by_id = {r[pk]: related(r) for r in rows}
            grouped: Dict[Any, Collection] = {pid: Collection(related) for pid in parent_ids}
            for left, right in pairs:
                child = by_id.get(right)
                coll = grouped.get(left)
                # One member per pivot row, duplicates included
                if child is None or coll is None:
                    continue
                coll.append(child)
            for p in parents:
                p.attach(spec.name, grouped.get(p.id, Collection(related)))
            return list(by_id.values())

        fk = self._resolver.foreign_key(entity, spec)
        rows = await self._storage.find_many(related, {fk: {'in': parent_ids}}) if parent_ids else []
        children = [related(r) for r in rows]
        if spec.kind is RelationKind.OWNED_TO_ONE:
            first: Dict[Any, Model] = {}
            for child in children:
                first.setdefault(child.get(fk), child)
            for p in parents:
                p.attach(spec.name, first.get(p.id))
            return list(first.values())
        grouped = {pid: Collection(related) for pid in parent_ids}
        for child in children:
            coll = grouped.get(child.get(fk))
            if coll is not None:
                coll.append(child)
        for p in parents:
            p.attach(spec.name, grouped.get(p.id, Collection(related)))
        return children
