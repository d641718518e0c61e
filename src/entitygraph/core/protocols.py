"""
Database capability interfaces.

The resolution runtime treats storage as an opaque capability: a mapping of
entity name to an object with find_first/find_many/count and, optionally,
create/update/delete. Each call may return a value or an awaitable.

Write operations take one dict argument:
- create({"data": {...}}) -> created row
- update({"where": {...}, "data": {...}}) -> updated row or None
- delete({"where": {...}}) -> deleted row or None
"""

from __future__ import annotations

import inspect
from typing import Any, Optional, Protocol, runtime_checkable

from .errors import OperationNotSupportedError, TargetNotFoundError


@runtime_checkable
class DatabaseEntity(Protocol):
    """Operations on the rows of one entity."""

    def find_first(self, query: dict[str, Any]) -> Any:
        ...

    def find_many(self, query: dict[str, Any]) -> Any:
        ...

    def count(self, query: Optional[dict[str, Any]] = None) -> Any:
        ...


class Database(Protocol):
    """Lookup of DatabaseEntity by entity name. A plain dict satisfies it."""

    def get(self, entity_name: str) -> Optional[DatabaseEntity]:
        ...


async def maybe_await(value: Any) -> Any:
    """Await value if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


def get_entity_db(database: Database, entity_name: str) -> DatabaseEntity:
    """
    Get the capability entry for an entity.

    Raises:
        TargetNotFoundError: if the database has no such entity
    """
    entity_db = database.get(entity_name)
    if entity_db is None:
        raise TargetNotFoundError(entity_name)
    return entity_db


def get_write_operation(entity_db: DatabaseEntity, entity_name: str, operation: str):
    """
    Get an optional write operation (create/update/delete) of an entity.

    Raises:
        OperationNotSupportedError: if the entity does not implement it
    """
    method = getattr(entity_db, operation, None)
    if method is None:
        raise OperationNotSupportedError(entity_name, operation)
    return method
