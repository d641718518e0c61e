"""
Relation resolver - loads related rows for hasOne/hasMany/belongsTo relations.

Handles:
- Single-instance resolution with depth-limited recursion into include paths
- Batched loading for many sources with one "in" query per relation
- Many-to-many hasMany through a join entity

Traversal fails soft: a missing foreign key yields None/[], and reaching the
depth bound truncates the tree silently. A target entity missing from the
database capability is a hard error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, MutableMapping, Optional, Sequence

from ..core.defs import DEFAULT_MAX_DEPTH, EntityDef, OrderDirection, RelationDef
from ..core.errors import GraphConfigError, UnknownRelationTypeError
from ..core.protocols import Database, get_entity_db, maybe_await
from ..core.query_types import EntityQuery, NormalizedFilter, normalize_order
from ..core.registry import SchemaRegistry
from ..core.utils import default_foreign_key, nested_includes, should_include

logger = logging.getLogger(__name__)

Row = MutableMapping[str, Any]


@dataclass
class ResolveRelationOptions:
    """
    Options for resolving relations.

    include paths are relative to the entity being resolved; nested paths use
    dots ("posts.comments"). limit/order_by override hasMany defaults.
    """
    include: list[str] = field(default_factory=list)
    depth: Optional[int] = None
    limit: Optional[int] = None
    order_by: Optional[dict[str, OrderDirection]] = None

    @property
    def max_depth(self) -> int:
        return DEFAULT_MAX_DEPTH if self.depth is None else self.depth

    def nested(self, relation_name: str) -> ResolveRelationOptions:
        """Options for the target of a relation: include paths with the prefix stripped."""
        return replace(self, include=nested_includes(relation_name, self.include))


# =============================================================================
# Helpers
# =============================================================================


def _is_missing(value: Any) -> bool:
    return value is None or value == ""


def _distinct(values: Iterable[Any]) -> list[Any]:
    """Unique non-missing values, in first-seen order."""
    result = []
    seen = set()
    for value in values:
        if _is_missing(value) or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


def _empty(relation: RelationDef) -> Any:
    return [] if relation.kind == "hasMany" else None


def _primary_key(registry: SchemaRegistry, entity_name: Optional[str]) -> str:
    schema = registry.get(entity_name) if entity_name else None
    return schema.primary_key if schema is not None else "id"


def _source_foreign_key(relation: RelationDef, source: Optional[str]) -> str:
    """Foreign key on the target of a hasOne/hasMany relation."""
    if relation.foreign_key:
        return relation.foreign_key
    if source is None:
        raise GraphConfigError(
            f"Cannot infer the foreign key of a {relation.kind} relation to '{relation.target}' "
            f"without the source entity name; declare foreign_key"
        )
    return default_foreign_key(source)


async def _find_first(database: Database, entity_name: str, query: EntityQuery) -> Optional[Row]:
    entity_db = get_entity_db(database, entity_name)
    return await maybe_await(entity_db.find_first(query.to_query()))


async def _find_many(database: Database, entity_name: str, query: EntityQuery) -> list[Row]:
    entity_db = get_entity_db(database, entity_name)
    return list(await maybe_await(entity_db.find_many(query.to_query())))


# =============================================================================
# Single-instance resolution
# =============================================================================


async def resolve_relation(
    entity: Row,
    relation_name: str,
    relation: RelationDef,
    database: Database,
    registry: SchemaRegistry,
    options: Optional[ResolveRelationOptions] = None,
    current_depth: int = 0,
    *,
    source: Optional[str] = None,
) -> Any:
    """
    Resolve a single relation of an entity.

    Args:
        entity: the source row
        relation_name: name of the relation (used for logging)
        relation: the relation definition
        database: database capability
        registry: schema registry (target lookups and nested relations)
        options: include paths relative to the target, depth, hasMany overrides
        current_depth: current recursion depth
        source: source entity name, needed when a hasOne/hasMany relation
            relies on the default foreign key

    Returns:
        Related row, list of rows, or None/[]

    Raises:
        TargetNotFoundError: target entity absent from the database
        UnknownRelationTypeError: unknown relation kind

    Example:
        posts = await resolve_relation(
            user, "posts", has_many("post", "authorId"), db, registry,
            ResolveRelationOptions(limit=10),
        )
    """
    options = options or ResolveRelationOptions()

    if current_depth >= options.max_depth:
        logger.debug(f"Depth {current_depth} reached, not resolving '{relation_name}'")
        return _empty(relation)

    if relation.kind == "hasOne":
        return await _resolve_has_one(entity, relation, database, registry, options, current_depth, source)
    elif relation.kind == "hasMany":
        return await _resolve_has_many(entity, relation, database, registry, options, current_depth, source)
    elif relation.kind == "belongsTo":
        return await _resolve_belongs_to(entity, relation, database, registry, options, current_depth)

    raise UnknownRelationTypeError(relation.kind)


async def _resolve_has_one(
    entity: Row,
    relation: RelationDef,
    database: Database,
    registry: SchemaRegistry,
    options: ResolveRelationOptions,
    current_depth: int,
    source: Optional[str],
) -> Optional[Row]:
    """hasOne: one-to-one, FK on the related entity."""
    get_entity_db(database, relation.target)

    foreign_key = _source_foreign_key(relation, source)
    entity_id = entity.get(_primary_key(registry, source))
    if _is_missing(entity_id):
        return None

    related = await _find_first(database, relation.target, EntityQuery().where(foreign_key, "equals", entity_id))
    if related is None:
        return None

    await _resolve_nested(related, relation.target, database, registry, options, current_depth + 1)
    return related


async def _resolve_has_many(
    entity: Row,
    relation: RelationDef,
    database: Database,
    registry: SchemaRegistry,
    options: ResolveRelationOptions,
    current_depth: int,
    source: Optional[str],
) -> list[Row]:
    """hasMany: one-to-many, FK on the related entities (or on a join entity)."""
    get_entity_db(database, relation.target)

    foreign_key = _source_foreign_key(relation, source)
    entity_id = entity.get(_primary_key(registry, source))
    if _is_missing(entity_id):
        return []

    if relation.through:
        links = await _find_many(
            database, relation.through, EntityQuery().where(foreign_key, "equals", entity_id),
        )
        target_ids = _distinct(link.get(relation.other_key) for link in links)
        if not target_ids:
            return []
        match = NormalizedFilter(field=_primary_key(registry, relation.target), op="in", value=target_ids)
    else:
        match = NormalizedFilter(field=foreign_key, op="equals", value=entity_id)

    limit = options.limit if options.limit is not None else relation.limit
    order_by = options.order_by if options.order_by is not None else relation.order_by

    query = EntityQuery(filters=[match], order=normalize_order(order_by), limit=limit)
    results = await _find_many(database, relation.target, query)

    for item in results:
        await _resolve_nested(item, relation.target, database, registry, options, current_depth + 1)

    return results


async def _resolve_belongs_to(
    entity: Row,
    relation: RelationDef,
    database: Database,
    registry: SchemaRegistry,
    options: ResolveRelationOptions,
    current_depth: int,
) -> Optional[Row]:
    """belongsTo: many-to-one, FK on this entity."""
    foreign_key = relation.foreign_key or default_foreign_key(relation.target)
    foreign_key_value = entity.get(foreign_key)

    if _is_missing(foreign_key_value):
        return None

    target_pk = _primary_key(registry, relation.target)
    related = await _find_first(database, relation.target, EntityQuery().where(target_pk, "equals", foreign_key_value))
    if related is None:
        return None

    await _resolve_nested(related, relation.target, database, registry, options, current_depth + 1)
    return related


async def _resolve_nested(
    entity: Row,
    entity_name: str,
    database: Database,
    registry: SchemaRegistry,
    options: ResolveRelationOptions,
    current_depth: int,
) -> None:
    schema = registry.get(entity_name)
    if schema is not None:
        await _load_relations(entity, schema, database, registry, options, current_depth)


async def _load_relations(
    entity: Row,
    schema: EntityDef,
    database: Database,
    registry: SchemaRegistry,
    options: ResolveRelationOptions,
    current_depth: int,
) -> None:
    for relation_name, relation in schema.relations.items():
        if not should_include(relation_name, options.include, relation.eager):
            continue

        entity[relation_name] = await resolve_relation(
            entity,
            relation_name,
            relation,
            database,
            registry,
            options.nested(relation_name),
            current_depth,
            source=schema.name,
        )


async def resolve_relations(
    entity: Row,
    schema: EntityDef,
    database: Database,
    registry: SchemaRegistry,
    options: Optional[ResolveRelationOptions] = None,
) -> Row:
    """
    Resolve the eager and included relations of an entity.

    Mutates and returns the same row.

    Example:
        user = await resolve_relations(row, User, db, registry, ResolveRelationOptions(
            include=["profile", "posts", "posts.comments"],
        ))
    """
    await _load_relations(entity, schema, database, registry, options or ResolveRelationOptions(), 0)
    return entity


# =============================================================================
# Batched resolution
# =============================================================================


async def eager_load_relations(
    entities: Sequence[Row],
    schema: EntityDef,
    database: Database,
    registry: SchemaRegistry,
    options: Optional[ResolveRelationOptions] = None,
    current_depth: int = 0,
) -> Sequence[Row]:
    """
    Load relations for many rows with one query per relation.

    belongsTo and hasOne collect the distinct join values across all rows and
    issue a single find_many with an "in" filter. hasMany falls back to
    per-row resolution, since "top K per group" has no "in" equivalent.
    Rows sharing a join value share the same related row object.

    Example:
        posts = await eager_load_relations(rows, Post, db, registry, ResolveRelationOptions(
            include=["author"],
        ))
    """
    options = options or ResolveRelationOptions()
    if not entities or not schema.relations:
        return entities

    for relation_name, relation in schema.relations.items():
        if not should_include(relation_name, options.include, relation.eager):
            continue

        if current_depth >= options.max_depth:
            for entity in entities:
                entity[relation_name] = _empty(relation)
            continue

        nested = options.nested(relation_name)

        if relation.kind == "belongsTo":
            await _batch_load_belongs_to(entities, relation_name, relation, database, registry, nested, current_depth)
        elif relation.kind == "hasOne":
            await _batch_load_has_one(entities, schema, relation_name, relation, database, registry, nested, current_depth)
        else:
            for entity in entities:
                entity[relation_name] = await resolve_relation(
                    entity, relation_name, relation, database, registry, nested, current_depth, source=schema.name,
                )

    return entities


async def _batch_load_belongs_to(
    entities: Sequence[Row],
    relation_name: str,
    relation: RelationDef,
    database: Database,
    registry: SchemaRegistry,
    options: ResolveRelationOptions,
    current_depth: int,
) -> None:
    foreign_key = relation.foreign_key or default_foreign_key(relation.target)
    foreign_key_values = _distinct(entity.get(foreign_key) for entity in entities)

    if not foreign_key_values:
        for entity in entities:
            entity[relation_name] = None
        return

    target_pk = _primary_key(registry, relation.target)
    related = await _find_many(database, relation.target, EntityQuery().where(target_pk, "in", foreign_key_values))
    logger.debug(
        f"Batch loaded {len(related)} '{relation.target}' rows for {len(entities)} sources via '{relation_name}'"
    )

    lookup: dict[Any, Row] = {}
    for row in related:
        lookup.setdefault(row.get(target_pk), row)

    for entity in entities:
        value = entity.get(foreign_key)
        entity[relation_name] = None if _is_missing(value) else lookup.get(value)

    await _batch_nested(related, relation.target, database, registry, options, current_depth + 1)


async def _batch_load_has_one(
    entities: Sequence[Row],
    schema: EntityDef,
    relation_name: str,
    relation: RelationDef,
    database: Database,
    registry: SchemaRegistry,
    options: ResolveRelationOptions,
    current_depth: int,
) -> None:
    foreign_key = _source_foreign_key(relation, schema.name)
    entity_ids = _distinct(entity.get(schema.primary_key) for entity in entities)

    if not entity_ids:
        for entity in entities:
            entity[relation_name] = None
        return

    related = await _find_many(database, relation.target, EntityQuery().where(foreign_key, "in", entity_ids))
    logger.debug(
        f"Batch loaded {len(related)} '{relation.target}' rows for {len(entities)} sources via '{relation_name}'"
    )

    # first match wins when several rows point at the same source
    lookup: dict[Any, Row] = {}
    for row in related:
        lookup.setdefault(row.get(foreign_key), row)

    for entity in entities:
        entity_id = entity.get(schema.primary_key)
        entity[relation_name] = None if _is_missing(entity_id) else lookup.get(entity_id)

    await _batch_nested(related, relation.target, database, registry, options, current_depth + 1)


async def _batch_nested(
    rows: list[Row],
    entity_name: str,
    database: Database,
    registry: SchemaRegistry,
    options: ResolveRelationOptions,
    current_depth: int,
) -> None:
    schema = registry.get(entity_name)
    if schema is not None and rows:
        await eager_load_relations(rows, schema, database, registry, options, current_depth)
