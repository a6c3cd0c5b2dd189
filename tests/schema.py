"""Entity types used across the tests: cars, colors, makes and their models."""
from shelfmanager import Model, Registry, belongs_to, belongs_to_many, has_many, has_one
from tests.models import CarRow, ColorRow, FeatureRow, LogoRow, MakeRow, ModelRow, SpecRow, TypeRow


def build_registry() -> Registry:
    """Return a fresh registry; tests that re-register types use their own copy."""
    registry = Registry()

    @registry.type(name='color', model=ColorRow)
    class Color(Model):
        cars = has_many('car')

    @registry.type(name='feature', model=FeatureRow)
    class Feature(Model):
        cars = belongs_to_many('car', through='cars_features')

    @registry.type(name='type', model=TypeRow)
    class Type(Model):
        pass

    @registry.type(name='spec', model=SpecRow)
    class Spec(Model):
        model = belongs_to('model', foreign_key='owner_model_id')

    @registry.type(name='model', model=ModelRow)
    class CarModel(Model):
        make = belongs_to('make')
        type = belongs_to('type')
        specs = has_many('spec')

    @registry.type(name='logo', model=LogoRow)
    class Logo(Model):
        make = belongs_to('make')

    @registry.type(name='make', model=MakeRow)
    class Make(Model):
        models = has_many('model')
        logo = has_one('logo')

    @registry.type(name='car', model=CarRow)
    class Car(Model):
        color = belongs_to('color')
        model = belongs_to('model')
        features = belongs_to_many('feature', through='cars_features')

    return registry


registry = build_registry()
