"""
Computed field resolver - evaluates derived fields in dependency order.

Handles:
- Topological sorting of computed fields by depends_on (cycles are an error)
- Per-request memoization through the context's ComputeCache
- Seed mode (ComputedDef.mock) vs resolve mode (ComputedDef.resolve)
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, MutableMapping, Optional, TypeVar

from ..core.defs import ComputedDef, EntityDef
from ..core.errors import CircularDependencyError
from ..core.protocols import Database, maybe_await
from .context import ComputeCache, ResolverContext

EntityT = TypeVar("EntityT", bound=MutableMapping[str, Any])


def topological_sort(
    fields: Iterable[tuple[str, ComputedDef]],
    all_computed: Mapping[str, ComputedDef],
) -> list[tuple[str, ComputedDef]]:
    """
    Sort computed fields so each comes after its computed dependencies.

    Only dependencies that are computed fields and part of `fields` take part
    in ordering; dependencies on plain fields need no prior computation.

    Args:
        fields: (name, definition) pairs to sort
        all_computed: every computed field of the entity

    Returns:
        The same pairs, dependencies first

    Raises:
        CircularDependencyError: naming a field on the cycle

    Example:
        fields = [("avgViews", ...), ("postCount", ...), ("totalViews", ...)]
        # avgViews depends on totalViews and postCount, totalViews on postCount
        topological_sort(fields, all_computed)
        # -> [("postCount", ...), ("totalViews", ...), ("avgViews", ...)]
    """
    fields = list(fields)
    by_name = dict(fields)
    result: list[tuple[str, ComputedDef]] = []
    visited: set[str] = set()
    visiting: set[str] = set()

    def visit(name: str):
        if name in visited:
            return
        if name in visiting:
            raise CircularDependencyError(name)

        visiting.add(name)

        definition = all_computed.get(name)
        if definition is not None:
            for dep in definition.depends_on:
                if dep in all_computed and dep in by_name:
                    visit(dep)

        visiting.discard(name)
        visited.add(name)

        if name in by_name:
            result.append((name, by_name[name]))

    for name, _ in fields:
        visit(name)

    return result


def clear_compute_cache(cache: ComputeCache | ResolverContext) -> None:
    """Clear a compute cache (or the cache of a context) between requests."""
    if isinstance(cache, ResolverContext):
        cache = cache.cache
    cache.clear()


async def resolve_computed_field(
    entity: Mapping[str, Any],
    field_name: str,
    definition: ComputedDef,
    database: Database,
    context: ResolverContext,
    *,
    entity_name: str = "",
    primary_key: str = "id",
) -> Any:
    """
    Resolve one computed field of an entity.

    Uses definition.mock() in seed mode when present, definition.resolve()
    otherwise. Awaitable results are awaited and the resolved value (not the
    awaitable) is memoized per (entity name, entity id, field name).
    Rows without an id are not memoized.

    Example:
        post_count = await resolve_computed_field(
            user, "postCount", User.computed["postCount"], db, ResolverContext(), entity_name="user",
        )
    """
    entity_id = entity.get(primary_key)
    cache = context.cache

    if entity_id is not None and cache.has(entity_name, entity_id, field_name):
        return cache.get(entity_name, entity_id, field_name)

    if context.mode == "seed" and definition.mock is not None:
        value = definition.mock()
    else:
        value = definition.resolve(entity, database, context)

    value = await maybe_await(value)

    if entity_id is not None:
        cache.set(entity_name, entity_id, field_name, value)
    return value


async def resolve_computed_fields(
    entity: EntityT,
    schema: EntityDef,
    database: Database,
    context: ResolverContext,
    only: Optional[Iterable[str]] = None,
) -> EntityT:
    """
    Resolve computed fields of an entity in dependency order.

    Each value is written onto the entity before the next field resolves, so a
    resolver may read sibling computed fields it depends on.

    Args:
        entity: row to fill (mutated and returned)
        schema: the entity's declaration
        database: database capability passed to resolvers
        context: resolver context (mode, cache, values)
        only: restrict to these computed field names

    Example:
        user = await resolve_computed_fields(row, User, db, ResolverContext())
        user["postCount"]
    """
    if not schema.computed:
        return entity

    wanted = set(only) if only is not None else None
    fields = [
        (name, definition)
        for name, definition in schema.computed.items()
        if wanted is None or name in wanted
    ]

    for field_name, definition in topological_sort(fields, schema.computed):
        entity[field_name] = await resolve_computed_field(
            entity, field_name, definition, database, context,
            entity_name=schema.name, primary_key=schema.primary_key,
        )

    return entity


def resolve_computed_fields_sync(entity: EntityT, schema: EntityDef) -> EntityT:
    """
    Fill computed fields from their mock() functions, synchronously.

    Used while generating seed rows, where no database is available. Fields
    without a mock are left unset.
    """
    if not schema.computed:
        return entity

    for field_name, definition in topological_sort(schema.computed.items(), schema.computed):
        if definition.mock is not None:
            entity[field_name] = definition.mock()

    return entity
