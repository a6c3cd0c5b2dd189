"""
Basic example of using shelfmanager with SQLAlchemy.

This example demonstrates:
- Declaring tables and entity types with their relations
- Creating a nested graph in one call (inserts, updates and pivot rows)
- Fetching it back with dotted relation paths
- Attaching a before-save hook by subclassing a registered type
"""

import asyncio
import logging

from sqlalchemy import Column, ForeignKey, Integer, String, Table
from sqlalchemy.orm import DeclarativeBase

from shelfmanager import (
    Manager, ManagerConfig, Model, Registry, ValidationError,
    before_save, belongs_to, belongs_to_many, has_many,
)
from shelfmanager.database import create_all, create_async_db_engine, create_session_factory


# SQLAlchemy tables
class Base(DeclarativeBase):
    pass


class ColorRow(Base):
    __tablename__ = 'colors'

    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False)
    hex_value = Column(String(7))


class CarRow(Base):
    __tablename__ = 'cars'

    id = Column(Integer, primary_key=True)
    quantity = Column(Integer)
    color_id = Column(Integer, ForeignKey('colors.id'))


class FeatureRow(Base):
    __tablename__ = 'features'

    id = Column(Integer, primary_key=True)
    name = Column(String(100))


cars_features = Table(
    'cars_features',
    Base.metadata,
    Column('id', Integer, primary_key=True),
    Column('car_id', Integer, ForeignKey('cars.id'), nullable=False),
    Column('feature_id', Integer, ForeignKey('features.id'), nullable=False),
)


# Entity types
registry = Registry()


@registry.type(name='color', model=ColorRow)
class Color(Model):
    cars = has_many('car')


@registry.type(name='feature', model=FeatureRow)
class Feature(Model):
    cars = belongs_to_many('car', through='cars_features')


@registry.type(name='car', model=CarRow)
class Car(Model):
    color = belongs_to('color')
    features = belongs_to_many('feature', through=cars_features)


async def main():
    logging.basicConfig(level=logging.INFO)
    config = ManagerConfig.from_env()
    engine = create_async_db_engine(config)
    await create_all(engine, Base.metadata)
    session_factory = create_session_factory(engine)

    async with session_factory() as session:
        manager = Manager(session, registry, config=config)

        car = await manager.create('car', {
            'quantity': 1,
            'color': {'name': 'White', 'hex_value': '#fff'},
            'features': [{'name': 'ABS'}, {'name': 'GPS'}],
        })
        print(f"Created {car!r} with color {car.related('color').get('name')}")

        # Same color id: updates the existing row instead of inserting
        await manager.create('car', {'quantity': 2, 'color': {'id': car.get('color_id'), 'name': 'Grey'}})

        color = await manager.fetch('color', {'id': car.get('color_id')}, ['cars.features'])
        for c in color.related('cars'):
            print(f"  {color.get('name')} car #{c.id}: features={c.related('features').pluck('name')}")

        class CheckedCar(manager.get('car')):
            @before_save
            def positive_quantity(self):
                if (self.get('quantity') or 0) <= 0:
                    raise ValueError("quantity must be positive")

        try:
            await manager.create(CheckedCar, {'quantity': 0})
        except ValidationError as exc:
            print(f"Rejected: {exc}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
