import itertools

import pytest

from shelfmanager import Manager, ManagerConfig, get_active_registry
from tests.schema import registry


class MemoryStorage:
    """Dict-backed storage; rows keyed by entity name, pivot pairs by table name."""

    def __init__(self):
        self.rows = {}
        self.pivots = {}
        self.commits = 0
        self.rollbacks = 0
        self._ids = itertools.count(1)

    async def insert(self, entity, attributes):
        identity = next(self._ids)
        self.rows.setdefault(entity.__entity_name__, {})[identity] = dict(attributes, id=identity)
        return identity

    async def update(self, entity, identity, attributes):
        self.rows[entity.__entity_name__][identity].update(attributes)

    async def find_by_id(self, entity, identity):
        row = self.rows.get(entity.__entity_name__, {}).get(identity)
        return dict(row) if row is not None else None

    async def find_many(self, entity, criteria=None):
        out = []
        for row in self.rows.get(entity.__entity_name__, {}).values():
            ok = True
            for col, cond in (criteria or {}).items():
                if isinstance(cond, dict):
                    ok = ok and row.get(col) in cond['in']
                else:
                    ok = ok and row.get(col) == cond
            if ok:
                out.append(dict(row))
        return out

    async def insert_pivot(self, pivot, left_id, right_id):
        self.pivots.setdefault(pivot.name, []).append((left_id, right_id))

    async def find_pivot(self, pivot, left_ids):
        ids = set(left_ids)
        return sorted(p for p in self.pivots.get(pivot.name, []) if p[0] in ids)

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


def test_manager_defaults_to_active_registry(db_session):
    manager = Manager(db_session)
    assert manager.registry is get_active_registry()
    assert manager.registry is registry
    assert manager.get('car') is registry.get('car')


def test_manager_needs_session_or_storage():
    with pytest.raises(ValueError):
        Manager(registry=registry)


@pytest.mark.asyncio
async def test_default_registry_manager_creates_graph(db_session):
    manager = Manager(db_session)
    car = await manager.create('car', {'quantity': 1, 'color': {'name': 'White'}})
    assert car.related('color').get('name') == 'White'


@pytest.mark.asyncio
async def test_manager_with_custom_storage():
    storage = MemoryStorage()
    manager = Manager(registry=registry, storage=storage)
    assert manager.storage is storage

    car = await manager.create('car', {
        'quantity': 2,
        'color': {'name': 'Red'},
        'features': [{'name': 'GPS'}, {'name': 'ABS'}],
    })
    assert storage.commits == 1
    assert storage.rows['car'][car.id]['color_id'] == car.related('color').id
    assert storage.pivots['cars_features'] == [(car.id, f) for f in car.related('features').ids()]

    fetched = await manager.fetch('car', {'id': car.id}, ['color', 'features'])
    assert fetched.related('color').get('name') == 'Red'
    assert fetched.related('features').pluck('name') == ['GPS', 'ABS']


@pytest.mark.asyncio
async def test_custom_storage_rolls_back_failed_create():
    storage = MemoryStorage()
    manager = Manager(registry=registry, storage=storage, config=ManagerConfig(atomic=True))
    with pytest.raises(TypeError):
        await manager.create('car', {'color': ['not', 'a', 'mapping']})
    assert storage.rollbacks == 1
    assert storage.commits == 0
