import pytest
from sqlalchemy import Column, ForeignKey, Integer, MetaData, Table

from shelfmanager import (
    Model, Registry, RelationKind, SchemaError, UnknownTypeError,
    belongs_to, belongs_to_many, has_many, relation,
)
from shelfmanager.core.naming import build_path_tree, singular_candidates, split_path
from shelfmanager.resolver import RelationResolver, SaveOrder
from tests.models import CarRow, ColorRow, cars_features
from tests.schema import build_registry, registry


def test_lookup_and_plural_resolution():
    car = registry.lookup('car')
    assert car.__entity_name__ == 'car'
    assert car.__entity_table__ is CarRow.__table__
    assert car.__pk_name__ == 'id'
    assert registry.resolve('car') == (car, False)
    assert registry.resolve('cars') == (car, True)
    assert registry.resolve(car) == (car, False)
    assert 'car' in registry
    assert 'cars' not in registry


def test_unknown_type_and_relation():
    with pytest.raises(UnknownTypeError) as exc:
        registry.lookup('truck')
    assert exc.value.name == 'truck'
    with pytest.raises(UnknownTypeError) as exc:
        registry.relation('car', 'wheels')
    assert exc.value.relation == 'wheels'
    # Lookup errors are also LookupErrors
    with pytest.raises(LookupError):
        registry.lookup('trucks')


def test_unregistered_class_is_unknown():
    class Loose(Model):
        pass

    with pytest.raises(UnknownTypeError):
        registry.resolve(Loose)


def test_relation_specs_collected_from_class_body():
    specs = registry.relations('car')
    assert set(specs) == {'color', 'model', 'features'}
    assert specs['color'].kind is RelationKind.OWNING_TO_ONE
    assert specs['color'].related == 'color'
    assert specs['features'].kind is RelationKind.TO_MANY_PIVOT
    assert specs['features'].pivot.table == 'cars_features'
    assert registry.relation('make', 'logo').kind is RelationKind.OWNED_TO_ONE
    assert registry.relation('make', 'models').kind is RelationKind.TO_MANY_DIRECT
    # Descriptors are removed from the class namespace
    assert 'color' not in vars(registry.get('car'))


def test_is_relation_and_partition():
    assert registry.is_relation('car', 'color')
    assert not registry.is_relation('car', 'quantity')
    scalars, relations = registry.partition('car', {'quantity': 1, 'color': {'name': 'Red'}, 'nickname': 'x'})
    assert scalars == {'quantity': 1, 'nickname': 'x'}
    assert relations == {'color': {'name': 'Red'}}


def test_relations_are_inherited_by_subclasses():
    Car = registry.get('car')

    class SportsCar(Car):
        driver = belongs_to('color')

    assert set(SportsCar.__relations__) == {'color', 'model', 'features', 'driver'}
    assert set(Car.__relations__) == {'color', 'model', 'features'}


def test_register_requires_table_and_model_subclass():
    reg = Registry()

    class Unbound(Model):
        pass

    with pytest.raises(SchemaError):
        reg.register(Unbound, name='unbound')
    with pytest.raises(TypeError):
        reg.register(object, name='thing', model=CarRow)


def test_register_replaces_previous_binding():
    reg = build_registry()
    first = reg.get('color')

    class Paint(first):
        pass

    reg.register(Paint, name='color')
    assert reg.get('color') is Paint
    assert Paint.__entity_table__ is ColorRow.__table__


def test_relation_target_can_be_a_class():
    reg = Registry()

    @reg.type(name='color', model=ColorRow)
    class Color(Model):
        pass

    @reg.type(name='car', model=CarRow)
    class Car(Model):
        paint = relation(Color, kind='owning_to_one', foreign_key='color_id')

    spec = reg.relation('car', 'paint')
    assert spec.related == 'color'
    assert spec.foreign_key == 'color_id'


def test_pivot_relation_requires_table():
    with pytest.raises(ValueError):
        relation('feature', kind=RelationKind.TO_MANY_PIVOT)


def test_save_order_per_kind():
    resolver = RelationResolver(registry)
    assert resolver.plan_order(registry.relation('car', 'color')) is SaveOrder.CHILD_FIRST
    assert resolver.plan_order(registry.relation('make', 'logo')) is SaveOrder.PARENT_FIRST
    assert resolver.plan_order(registry.relation('make', 'models')) is SaveOrder.PARENT_FIRST
    assert resolver.plan_order(registry.relation('car', 'features')) is SaveOrder.PARENT_FIRST
    assert resolver.requires_pivot_row(registry.relation('car', 'features'))
    assert not resolver.requires_pivot_row(registry.relation('make', 'models'))


def test_foreign_key_inference():
    resolver = RelationResolver(registry)
    car = registry.get('car')
    make = registry.get('make')
    model = registry.get('model')
    assert resolver.foreign_key(car, registry.relation('car', 'color')) == 'color_id'
    assert resolver.foreign_key(make, registry.relation('make', 'models')) == 'make_id'
    assert resolver.foreign_key(make, registry.relation('make', 'logo')) == 'make_id'
    # Discovered from table metadata, not the naming convention
    assert resolver.foreign_key(model, registry.relation('model', 'specs')) == 'owner_model_id'
    assert resolver.related_model(registry.relation('model', 'specs')) is registry.get('spec')
    with pytest.raises(SchemaError):
        resolver.foreign_key(car, registry.relation('car', 'features'))


def test_pivot_keys_from_both_sides():
    resolver = RelationResolver(registry)
    pivot = resolver.pivot(registry.get('car'), registry.relation('car', 'features'))
    assert pivot.table is cars_features
    assert (pivot.left_key, pivot.right_key) == ('car_id', 'feature_id')
    assert pivot.name == 'cars_features'
    other = resolver.pivot(registry.get('feature'), registry.relation('feature', 'cars'))
    assert (other.left_key, other.right_key) == ('feature_id', 'car_id')


def test_unresolvable_keys_raise_schema_error():
    metadata = MetaData()
    people = Table('people', metadata, Column('id', Integer, primary_key=True))
    pets = Table('pets', metadata, Column('id', Integer, primary_key=True))
    friends_table = Table(
        'friends', metadata,
        Column('id', Integer, primary_key=True),
        Column('a', Integer, ForeignKey('people.id')),
        Column('b', Integer, ForeignKey('people.id')),
    )
    reg = Registry()

    @reg.type(name='pet', model=pets)
    class Pet(Model):
        pass

    @reg.type(name='person', model=people)
    class Person(Model):
        pets = has_many('pet')
        friends = belongs_to_many('person', through='friends')
        buddies = belongs_to_many('person', through=friends_table, foreign_key='a', other_key='b')
        ghosts = belongs_to_many('person', through='missing_table')

    resolver = RelationResolver(reg)
    with pytest.raises(SchemaError):
        resolver.foreign_key(Person, reg.relation('person', 'pets'))
    # Self-referential pivots need explicit keys
    with pytest.raises(SchemaError):
        resolver.pivot(Person, reg.relation('person', 'friends'))
    pivot = resolver.pivot(Person, reg.relation('person', 'buddies'))
    assert (pivot.left_key, pivot.right_key) == ('a', 'b')
    with pytest.raises(SchemaError):
        resolver.pivot(Person, reg.relation('person', 'ghosts'))


def test_pivot_through_must_be_a_table():
    reg = build_registry()

    @reg.type(name='car', model=CarRow)
    class OddCar(Model):
        # Class-body name lookup picks the descriptor above, not a table
        features = belongs_to_many('feature', through='cars_features')
        extras = belongs_to_many('feature', through=features)

    resolver = RelationResolver(reg)
    assert resolver.pivot(OddCar, reg.relation('car', 'features')).table is cars_features
    with pytest.raises(SchemaError):
        resolver.pivot(OddCar, reg.relation('car', 'extras'))


def test_naming_helpers():
    assert singular_candidates('categories') == ['category']
    assert singular_candidates('boxes') == ['box']
    assert singular_candidates('cars') == ['car']
    assert singular_candidates('car') == []
    assert singular_candidates('') == []
    assert split_path('models.type') == ['models', 'type']
    with pytest.raises(ValueError):
        split_path('models..type')
    assert build_path_tree(['models.type', 'models.specs', 'logo']) == {
        'models': {'type': {}, 'specs': {}},
        'logo': {},
    }
    assert build_path_tree(None) == {}
    assert build_path_tree('logo') == {'logo': {}}
