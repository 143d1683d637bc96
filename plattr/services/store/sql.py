"""
SQL Record Store Implementation

Runs the record-store primitives directly against PostgreSQL through the
SQLAlchemy async engine. Used when STORE_BACKEND=sql.

Unlike the hosted service, this backend enforces the storage-level
guarantees declared in plattr.models: one cart line per (user, dish) and
unique order numbers. A violated constraint surfaces as StoreError.
"""

import logging
from typing import Optional

from sqlalchemy import Table, delete, insert, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from plattr.core.exceptions import StoreError
from plattr.database import Base, get_engine, make_session_maker
from plattr.services.store.base import (
    BaseRecordStore,
    Filters,
    Record,
    SortKey,
)

logger = logging.getLogger(__name__)


class SqlRecordStore(BaseRecordStore):
    """
    SQLAlchemy-backed record store.

    Args:
        session_maker: Optional session factory; defaults to one bound to
            the configured DATABASE_URL engine
    """

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        # Register the mapped tables on Base.metadata
        import plattr.models  # noqa: F401

        self._session_maker = session_maker or make_session_maker(get_engine())
        logger.info("SqlRecordStore initialized")

    @property
    def provider_name(self) -> str:
        return "sql"

    def _table(self, name: str) -> Table:
        table = Base.metadata.tables.get(name)
        if table is None:
            raise StoreError(f"Unknown table: {name}")
        return table

    def _where(self, table: Table, filters: Optional[Filters]) -> list:
        try:
            return [table.c[key] == value for key, value in (filters or {}).items()]
        except KeyError as e:
            raise StoreError(f"Unknown column on {table.name}: {e}") from e

    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Record]:
        t = self._table(table)
        stmt = select(t).where(*self._where(t, filters))

        if order:
            sort = SortKey.parse(order)
            if sort.field not in t.c:
                raise StoreError(f"Unknown sort column on {table}: {sort.field}")
            column = t.c[sort.field]
            stmt = stmt.order_by(column.desc() if sort.descending else column.asc())

        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            logger.error(f"SQL: select on {table} failed - {e}")
            raise StoreError(f"Select on {table} failed") from e

    async def insert(self, table: str, values: Record) -> Record:
        t = self._table(table)
        stmt = insert(t).values(**values).returning(*t.c)

        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                row = dict(result.mappings().one())
                await session.commit()
                return row
        except SQLAlchemyError as e:
            logger.error(f"SQL: insert into {table} failed - {e}")
            raise StoreError(f"Insert into {table} failed") from e

    async def update(
        self,
        table: str,
        filters: Filters,
        values: Record,
    ) -> list[Record]:
        t = self._table(table)
        self._require_filters(table, filters)
        stmt = update(t).where(*self._where(t, filters)).values(**values).returning(*t.c)

        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                rows = [dict(row) for row in result.mappings().all()]
                await session.commit()
                return rows
        except SQLAlchemyError as e:
            logger.error(f"SQL: update on {table} failed - {e}")
            raise StoreError(f"Update on {table} failed") from e

    async def delete(self, table: str, filters: Filters) -> None:
        t = self._table(table)
        self._require_filters(table, filters)
        stmt = delete(t).where(*self._where(t, filters))

        try:
            async with self._session_maker() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"SQL: delete on {table} failed - {e}")
            raise StoreError(f"Delete on {table} failed") from e

    async def health_check(self) -> bool:
        try:
            async with self._session_maker() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"SQL: Health check failed - {e}")
            return False
