"""
SQLAlchemy Core binding of the Database capability.

Each Table becomes an entity with find_first/find_many/count/create/update/
delete accepting the capability's dict queries (see core.query_types).

Every operation is a coroutine over an AsyncEngine.

Usage:
    from sqlalchemy import MetaData
    from sqlalchemy.ext.asyncio import create_async_engine
    from entitygraph.adapters import SQLAlchemyDatabase

    engine = create_async_engine("sqlite+aiosqlite:///blog.db")
    metadata = MetaData()
    ...  # Table("users", metadata, ...), Table("posts", metadata, ...)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    database = SQLAlchemyDatabase(engine, metadata)
    resolver = Resolver(registry, database)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Union

from sqlalchemy import Date, DateTime, Integer, MetaData, String, Table, delete, false, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from ..core.query_types import EntityQuery, NormalizedFilter

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class SQLAlchemyEntity:
    """Capability entity over one table. Every call runs in its own transaction."""

    def __init__(self, engine: AsyncEngine, table: Table):
        self.engine = engine
        self.table = table

    # =========================================================================
    # Reads
    # =========================================================================

    async def find_first(self, query: Optional[Mapping[str, Any]] = None) -> Optional[Row]:
        parsed = EntityQuery.from_query(query).model_copy(update={"limit": 1})
        async with self.engine.connect() as conn:
            rows = await self._fetch(conn, parsed)
        return rows[0] if rows else None

    async def find_many(self, query: Optional[Mapping[str, Any]] = None) -> list[Row]:
        async with self.engine.connect() as conn:
            return await self._fetch(conn, EntityQuery.from_query(query))

    async def count(self, query: Optional[Mapping[str, Any]] = None) -> int:
        parsed = EntityQuery.from_query(query)
        stmt = self._apply_filters(select(func.count()).select_from(self.table), parsed.filters)
        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            return result.scalar() or 0

    # =========================================================================
    # Writes
    # =========================================================================

    async def create(self, args: Mapping[str, Any]) -> Optional[Row]:
        """Insert args["data"] and return the stored row."""
        data = self._coerce_data(args.get("data") or {})

        async with self.engine.begin() as conn:
            result = await conn.execute(insert(self.table).values(**data))
            primary_key = tuple(result.inserted_primary_key or ())
            if not primary_key or None in primary_key:
                return dict(data)
            return await self._fetch_by_primary_key(conn, primary_key)

    async def update(self, args: Mapping[str, Any]) -> Optional[Row]:
        """
        Apply args["data"] to rows matching args["where"].

        Returns:
            The first matching row after the update, or None if nothing matched
        """
        filters = EntityQuery.from_query({"where": args.get("where")}).filters
        if not filters:
            raise ValueError(f"Filters required for update on '{self.table.name}'")
        data = self._coerce_data(args.get("data") or {})

        async with self.engine.begin() as conn:
            first = await self._fetch(conn, EntityQuery(filters=filters, limit=1))
            if not first:
                return None

            stmt = self._apply_filters(update(self.table), filters).values(**data)
            result = await conn.execute(stmt)
            logger.debug(f"Updated {result.rowcount} {self.table.name} rows")

            return await self._fetch_by_primary_key(conn, self._primary_key_of(first[0], data))

    async def delete(self, args: Mapping[str, Any]) -> Optional[Row]:
        """
        Delete rows matching args["where"].

        Returns:
            The first deleted row, or None if nothing matched
        """
        filters = EntityQuery.from_query({"where": args.get("where")}).filters
        if not filters:
            raise ValueError(f"Filters required for delete on '{self.table.name}'")

        async with self.engine.begin() as conn:
            first = await self._fetch(conn, EntityQuery(filters=filters, limit=1))
            if not first:
                return None

            result = await conn.execute(self._apply_filters(delete(self.table), filters))
            logger.debug(f"Deleted {result.rowcount} {self.table.name} rows")
            return first[0]

    # =========================================================================
    # Statement building
    # =========================================================================

    async def _fetch(self, conn: AsyncConnection, query: EntityQuery) -> list[Row]:
        stmt = self._apply_filters(select(self.table), query.filters)

        for order in query.order:
            column = self.table.c.get(order.field)
            if column is not None:
                stmt = stmt.order_by(column.desc() if order.dir == "desc" else column.asc())

        if query.offset:
            stmt = stmt.offset(query.offset)
        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        result = await conn.execute(stmt)
        return [dict(row) for row in result.mappings()]

    async def _fetch_by_primary_key(self, conn: AsyncConnection, values: tuple) -> Optional[Row]:
        columns = list(self.table.primary_key.columns)
        filters = [NormalizedFilter(field=c.name, op="equals", value=v) for c, v in zip(columns, values)]
        rows = await self._fetch(conn, EntityQuery(filters=filters, limit=1))
        return rows[0] if rows else None

    def _primary_key_of(self, row: Row, data: Mapping[str, Any]) -> tuple:
        # an update may rewrite the key itself
        return tuple(data.get(c.name, row.get(c.name)) for c in self.table.primary_key.columns)

    def _apply_filters(self, stmt, filters: Iterable[NormalizedFilter]):
        """Apply filters to a select/update/delete statement."""
        for f in filters:
            column = self.table.c.get(f.field)
            if column is None:
                # a column the table lacks never matches
                stmt = stmt.where(false())
                continue

            if f.op == "equals":
                stmt = stmt.where(column.is_(None) if f.value is None else column == f.value)
            elif f.op == "not":
                stmt = stmt.where(column.isnot(None) if f.value is None else column != f.value)
            elif f.op == "in":
                stmt = stmt.where(column.in_(list(f.value)))
            elif f.op == "notIn":
                stmt = stmt.where(column.not_in(list(f.value)))
            elif f.op == "gte":
                stmt = stmt.where(column >= f.value)
            elif f.op == "lte":
                stmt = stmt.where(column <= f.value)
            elif f.op == "gt":
                stmt = stmt.where(column > f.value)
            elif f.op == "lt":
                stmt = stmt.where(column < f.value)
            elif f.op == "contains":
                stmt = stmt.where(column.contains(f.value, autoescape=True))
            elif f.op == "startsWith":
                stmt = stmt.where(column.startswith(f.value, autoescape=True))
            elif f.op == "endsWith":
                stmt = stmt.where(column.endswith(f.value, autoescape=True))

        return stmt

    def _coerce_data(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """
        Coerce data values to match column types.

        Handles:
        - int/float -> str for String columns
        - str -> date for Date columns (YYYY-MM-DD prefix)
        - str -> datetime for DateTime columns (ISO 8601, trailing Z allowed)
        - digit str -> int for Integer columns

        Values that cannot be parsed are passed through for the database to reject.
        """
        coerced = {}

        for key, value in data.items():
            column = self.table.c.get(key)
            if value is None or column is None:
                coerced[key] = value
                continue

            col_type = column.type

            if isinstance(col_type, String) and isinstance(value, (int, float)) and not isinstance(value, bool):
                coerced[key] = str(value)
            elif isinstance(col_type, DateTime) and isinstance(value, str):
                try:
                    coerced[key] = datetime.fromisoformat(value.replace("Z", "+00:00"))
                except ValueError:
                    coerced[key] = value
            elif isinstance(col_type, Date) and isinstance(value, str):
                try:
                    coerced[key] = datetime.strptime(value[:10], "%Y-%m-%d").date()
                except ValueError:
                    coerced[key] = value
            elif isinstance(col_type, Date) and isinstance(value, datetime):
                coerced[key] = value.date()
            elif isinstance(col_type, Integer) and isinstance(value, str) and value.lstrip("-").isdigit():
                coerced[key] = int(value)
            else:
                coerced[key] = value

        return coerced


class SQLAlchemyDatabase:
    """
    Database capability over SQLAlchemy Core tables.

    Args:
        engine: an AsyncEngine
        tables: a MetaData, a mapping of entity name -> Table, or an iterable of Tables
    """

    def __init__(self, engine: AsyncEngine, tables: Union[MetaData, Mapping[str, Table], Iterable[Table]]):
        self.engine = engine

        if isinstance(tables, MetaData):
            tables = tables.tables
        if not isinstance(tables, Mapping):
            tables = {table.name: table for table in tables}

        self._entities = {name: SQLAlchemyEntity(engine, table) for name, table in tables.items()}

    def get(self, entity_name: str) -> Optional[SQLAlchemyEntity]:
        return self._entities.get(entity_name)

    def __getitem__(self, entity_name: str) -> SQLAlchemyEntity:
        return self._entities[entity_name]

    def __contains__(self, entity_name: str) -> bool:
        return entity_name in self._entities

    @property
    def entity_names(self) -> list[str]:
        return list(self._entities)
