"""Runtime entity wrappers: :class:`Model` (one record) and :class:`Collection`.

Both are plain in-memory values. They never talk to storage; relations are only
navigable after the materializer or the eager loader attached them.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Type, Union

from .core.fields import RelationDescriptor, RelationSpec
from .errors import RelationNotLoadedError

__all__ = ['Model', 'Collection', 'ModelMeta']

_MISSING = object()


def _merge_tuples(bases, attr: str, own: List[Any]) -> tuple:
    out: List[Any] = []
    for base in bases:
        for cb in getattr(base, attr, ()) or ():
            if cb not in out:
                out.append(cb)
    for cb in own:
        if cb not in out:
            out.append(cb)
    return tuple(out)


class ModelMeta(type):
    """Collect relation descriptors and lifecycle hooks declared in a class body.

    Relations and hooks declared on a base type are inherited, so a caller can
    subclass a registered type to attach extra hooks.
    """

    def __new__(mcls, name, bases, namespace):
        relations: Dict[str, RelationSpec] = {}
        for base in reversed(bases):
            relations.update(getattr(base, '__relations__', {}) or {})
        for k, v in list(namespace.items()):
            if isinstance(v, RelationDescriptor):
                relations[k] = v.build(k)
                del namespace[k]
        namespace['__relations__'] = relations
        # Pick methods tagged via @before_save / @after_save
        before = [v for v in namespace.values() if getattr(v, '__shelf_before_save__', False)]
        after = [v for v in namespace.values() if getattr(v, '__shelf_after_save__', False)]
        namespace['__before_save_cbs__'] = _merge_tuples(bases, '__before_save_cbs__', before)
        namespace['__after_save_cbs__'] = _merge_tuples(bases, '__after_save_cbs__', after)
        return super().__new__(mcls, name, bases, namespace)


class Model(metaclass=ModelMeta):
    """One record of an entity type.

    Subclasses are bound to a table and registered by :meth:`Registry.type`::

        @registry.type(name='car', model=CarRow)
        class Car(Model):
            color = belongs_to('color')
            features = belongs_to_many('feature', through='cars_features')

    The attribute bag is schemaless: ``set`` accepts any name. Only names that
    are columns of the bound table reach storage.
    """

    __entity_name__: Optional[str] = None
    __entity_table__: Any = None
    __pk_name__: str = 'id'
    __relations__: Dict[str, RelationSpec] = {}
    __before_save_cbs__: tuple = ()
    __after_save_cbs__: tuple = ()

    def __init__(self, attributes: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        self._attributes: Dict[str, Any] = {}
        self._relations: Dict[str, Union['Model', 'Collection', None]] = {}
        if attributes:
            self._attributes.update(attributes)
        if kwargs:
            self._attributes.update(kwargs)

    # --- identity -----------------------------------------------------------
    @property
    def id(self) -> Any:
        return self._attributes.get(self.__pk_name__)

    @id.setter
    def id(self, value: Any) -> None:
        self._attributes[self.__pk_name__] = value

    def is_new(self) -> bool:
        return self.id in (None, '')

    @property
    def entity_name(self) -> str:
        return self.__entity_name__ or type(self).__name__.lower()

    # --- attributes ---------------------------------------------------------
    def get(self, attr: str, default: Any = None) -> Any:
        return self._attributes.get(attr, default)

    def set(self, attr: Union[str, Mapping[str, Any]], value: Any = _MISSING) -> 'Model':
        """Set one attribute, or several when given a mapping. Returns self."""
        if isinstance(attr, Mapping):
            if value is not _MISSING:
                raise TypeError("set(mapping) takes no value argument")
            self._attributes.update(attr)
            return self
        if value is _MISSING:
            raise TypeError(f"set({attr!r}) requires a value")
        self._attributes[attr] = value
        return self

    def has(self, attr: str) -> bool:
        return self._attributes.get(attr) is not None

    def unset(self, attr: str) -> 'Model':
        self._attributes.pop(attr, None)
        return self

    @property
    def attributes(self) -> Dict[str, Any]:
        """Copy of the attribute bag."""
        return dict(self._attributes)

    # --- relations ----------------------------------------------------------
    def related(self, name: str) -> Union['Model', 'Collection', None]:
        """Return relation data attached by create/fetch; never loads lazily."""
        try:
            return self._relations[name]
        except KeyError:
            raise RelationNotLoadedError(self.entity_name, name) from None

    def attach(self, name: str, value: Union['Model', 'Collection', None]) -> 'Model':
        self._relations[name] = value
        return self

    def is_loaded(self, name: str) -> bool:
        return name in self._relations

    @property
    def relations(self) -> Dict[str, Union['Model', 'Collection', None]]:
        return dict(self._relations)

    def to_dict(self) -> Dict[str, Any]:
        """Attributes plus attached relations, serialized recursively."""
        out = dict(self._attributes)
        for name, value in self._relations.items():
            if value is None:
                out[name] = None
            elif isinstance(value, Collection):
                out[name] = value.to_list()
            else:
                out[name] = value.to_dict()
        return out

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.entity_name} id={self.id!r}>"


class Collection:
    """An ordered group of Models sharing one entity type."""

    def __init__(self, model_cls: Type[Model], models: Optional[Iterable[Model]] = None):
        self.model_cls = model_cls
        self._models: List[Model] = []
        for m in models or ():
            self.append(m)

    @property
    def entity_name(self) -> str:
        return self.model_cls.__entity_name__ or self.model_cls.__name__.lower()

    def append(self, model: Model) -> 'Collection':
        if not isinstance(model, Model) or model.entity_name != self.entity_name:
            raise TypeError(f"Collection of {self.entity_name!r} cannot hold {model!r}")
        self._models.append(model)
        return self

    def __len__(self) -> int:
        return len(self._models)

    @property
    def length(self) -> int:
        return len(self._models)

    def __iter__(self) -> Iterator[Model]:
        return iter(self._models)

    def __getitem__(self, index):
        return self._models[index]

    def at(self, index: int) -> Model:
        return self._models[index]

    def pluck(self, attr: str) -> List[Any]:
        return [m.get(attr) for m in self._models]

    def ids(self) -> List[Any]:
        return [m.id for m in self._models]

    def sort_by(self, attr: str) -> 'Collection':
        """Stable ascending sort on ``attr`` in place; ``None`` values go last."""
        self._models.sort(key=lambda m: (m.get(attr) is None, m.get(attr) if m.get(attr) is not None else 0))
        return self

    def to_list(self) -> List[Dict[str, Any]]:
        return [m.to_dict() for m in self._models]

    def __repr__(self) -> str:
        return f"<Collection {self.entity_name} len={len(self._models)}>"
