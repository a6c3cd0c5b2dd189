"""
Storage collaborator backed by a SQLAlchemy ``AsyncSession``.

The graph materializer and eager loader only talk to the :class:`Storage`
protocol below; :class:`SQLAlchemyStorage` implements it with Core
insert/update/select statements against the tables bound to each Model type.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple, Type

from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .core.filters import expr_from_filter
from .errors import StorageError
from .model import Model
from .resolver import Pivot

logger = logging.getLogger(__name__)


class Storage(Protocol):
    """Operations the core consumes from the storage engine."""

    async def insert(self, entity: Type[Model], attributes: Mapping[str, Any]) -> Any: ...

    async def update(self, entity: Type[Model], identity: Any, attributes: Mapping[str, Any]) -> None: ...

    async def find_by_id(self, entity: Type[Model], identity: Any) -> Optional[Dict[str, Any]]: ...

    async def find_many(self, entity: Type[Model], criteria: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]: ...

    async def insert_pivot(self, pivot: Pivot, left_id: Any, right_id: Any) -> None: ...

    async def find_pivot(self, pivot: Pivot, left_ids: Iterable[Any]) -> List[Tuple[Any, Any]]: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class SQLAlchemyStorage:
    """Storage on top of an ``AsyncSession``.

    Args:
        session: The session all statements run in. Its transaction is owned by
            the caller or by the manager's unit of work.
        autocommit: Commit after every write. Used when top-level calls are not
            atomic, so rows written before a failure stay persisted.
    """

    def __init__(self, session: AsyncSession, *, autocommit: bool = False):
        self._session = session
        self.autocommit = autocommit

    @property
    def session(self) -> AsyncSession:
        return self._session

    def _columns_only(self, table, attributes: Mapping[str, Any]) -> Dict[str, Any]:
        values = {k: v for k, v in attributes.items() if table.c.get(k) is not None}
        dropped = [k for k in attributes if k not in values]
        if dropped:
            logger.debug("storage: %s has no columns %s; not persisted", table.name, dropped)
        return values

    async def _execute(self, operation: str, entity_name: str, stmt):
        try:
            return await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StorageError(operation, entity_name, str(getattr(exc, 'orig', None) or exc)) from exc

    async def _after_write(self, entity_name: str) -> None:
        if not self.autocommit:
            return
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            raise StorageError('commit', entity_name, str(exc)) from exc

    async def insert(self, entity: Type[Model], attributes: Mapping[str, Any]) -> Any:
        table = entity.__entity_table__
        values = self._columns_only(table, attributes)
        stmt = insert(table)
        if values:
            stmt = stmt.values(**values)
        result = await self._execute('insert', entity.__entity_name__, stmt)
        identity = result.inserted_primary_key[0]
        logger.debug("storage: insert %s -> %s", table.name, identity)
        await self._after_write(entity.__entity_name__)
        return identity

    async def update(self, entity: Type[Model], identity: Any, attributes: Mapping[str, Any]) -> None:
        table = entity.__entity_table__
        values = self._columns_only(table, attributes)
        values.pop(entity.__pk_name__, None)
        if not values:
            return
        pk_col = table.c[entity.__pk_name__]
        stmt = update(table).where(pk_col == identity).values(**values)
        await self._execute('update', entity.__entity_name__, stmt)
        logger.debug("storage: update %s %s %s", table.name, identity, sorted(values))
        await self._after_write(entity.__entity_name__)

    async def find_by_id(self, entity: Type[Model], identity: Any) -> Optional[Dict[str, Any]]:
        table = entity.__entity_table__
        stmt = select(table).where(table.c[entity.__pk_name__] == identity)
        result = await self._execute('find_by_id', entity.__entity_name__, stmt)
        row = result.mappings().first()
        return dict(row) if row is not None else None

    async def find_many(self, entity: Type[Model], criteria: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        table = entity.__entity_table__
        where = expr_from_filter(table, criteria)
        stmt = select(table)
        if where is not None:
            stmt = stmt.where(where)
        stmt = stmt.order_by(table.c[entity.__pk_name__])
        result = await self._execute('find_many', entity.__entity_name__, stmt)
        return [dict(r) for r in result.mappings().all()]

    async def insert_pivot(self, pivot: Pivot, left_id: Any, right_id: Any) -> None:
        stmt = insert(pivot.table).values({pivot.left_key: left_id, pivot.right_key: right_id})
        await self._execute('insert_pivot', pivot.name, stmt)
        logger.debug("storage: pivot %s %s -> %s", pivot.name, left_id, right_id)
        await self._after_write(pivot.name)

    async def find_pivot(self, pivot: Pivot, left_ids: Iterable[Any]) -> List[Tuple[Any, Any]]:
        ids = list(left_ids)
        if not ids:
            return []
        left = pivot.table.c[pivot.left_key]
        right = pivot.table.c[pivot.right_key]
        stmt = select(left, right).where(left.in_(ids)).order_by(left, right)
        result = await self._execute('find_pivot', pivot.name, stmt)
        return [(r[0], r[1]) for r in result.all()]

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            raise StorageError('commit', '*', str(exc)) from exc

    async def rollback(self) -> None:
        await self._session.rollback()
