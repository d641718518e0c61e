"""
Bulk seed driver.

Walks seed data entity by entity, resolves ref()/lookup() markers against the
records created so far and inserts through the Database capability.

The insertion order is either supplied by the caller (e.g. seed.entity_order
in entitygraph.yaml) and validated, or derived from the markers themselves by
seed_order. SchemaRegistry.get_entity_order is not used here: it tolerates
relation cycles and so cannot guarantee every reference is satisfied.

Usage:
    from entitygraph.seed import ref, run_seed

    data = {
        "users": [{"id": "u1", "name": "Ada"}],
        "posts": [{"title": "Hello", "authorId": ref("users", 0)}],
    }
    ledger = await run_seed(data, database)
    ledger["posts"][0]["authorId"]  # "u1"
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from ..core.errors import CircularDependencyError, SeedOrderError
from ..core.protocols import Database, get_entity_db, get_write_operation, maybe_await
from .ref import is_seed_reference
from .resolver import CreatedRecordLedger, resolve_item

logger = logging.getLogger(__name__)

SeedData = Mapping[str, Sequence[Mapping[str, Any]]]


def referenced_entities(records: Sequence[Mapping[str, Any]]) -> list[str]:
    """Entity names referenced by markers in the top-level fields of records, in first-seen order."""
    seen: dict[str, None] = {}
    for record in records:
        for value in record.values():
            if is_seed_reference(value):
                seen.setdefault(value.entity, None)
    return list(seen)


def seed_order(data: SeedData) -> list[str]:
    """
    Derive an insertion order in which every referenced entity is seeded first.

    Self references are allowed; they resolve to earlier records of the same
    entity. References to entities absent from data are left for
    validate_seed_order to report.

    Raises:
        CircularDependencyError: if entities reference each other in a cycle
    """
    graph = {
        entity: [dep for dep in referenced_entities(records) if dep != entity and dep in data]
        for entity, records in data.items()
    }

    visited: set[str] = set()
    visiting: set[str] = set()
    result: list[str] = []

    def visit(entity: str) -> None:
        if entity in visited:
            return
        if entity in visiting:
            raise CircularDependencyError(entity, what="seed entities")

        visiting.add(entity)
        for dep in graph[entity]:
            visit(dep)
        visiting.remove(entity)
        visited.add(entity)
        result.append(entity)

    for entity in graph:
        visit(entity)

    return result


def validate_seed_order(order: Sequence[str], data: SeedData) -> None:
    """
    Check that an order seeds every entity in data, each after the entities it references.

    Raises:
        SeedOrderError: on the first violation found
    """
    missing = [entity for entity in data if entity not in order]
    if missing:
        raise SeedOrderError(f"Seed order is missing entities with seed data: {', '.join(missing)}")

    seeded: set[str] = set()
    for entity in order:
        for dep in referenced_entities(data.get(entity) or []):
            if dep == entity:
                continue
            if dep not in seeded:
                if dep in order:
                    raise SeedOrderError(
                        f"Entity '{entity}' references '{dep}', which is seeded after it"
                    )
                raise SeedOrderError(
                    f"Entity '{entity}' references '{dep}', which is not in the seed order"
                )
        seeded.add(entity)


async def run_seed(
    data: SeedData,
    database: Database,
    order: Optional[Sequence[str]] = None,
) -> CreatedRecordLedger:
    """
    Insert seed data in dependency order.

    Args:
        data: entity name -> list of records, possibly holding markers
        database: capability whose entities implement create({"data": ...})
        order: explicit insertion order; derived with seed_order when omitted

    Returns:
        The ledger of created records for this run

    Raises:
        CircularDependencyError: if no order is given and the markers form a cycle
        SeedOrderError: if an entity is referenced before it is seeded
        SeedReferenceError: if a marker cannot be resolved
    """
    order = seed_order(data) if order is None else list(order)
    validate_seed_order(order, data)

    ledger = CreatedRecordLedger()

    for entity in order:
        records = data.get(entity) or []
        if not records:
            continue

        entity_db = get_entity_db(database, entity)
        create = get_write_operation(entity_db, entity, "create")

        for item in records:
            resolved = resolve_item(item, ledger, entity)
            created = await maybe_await(create({"data": resolved}))
            ledger.append(entity, created if created is not None else resolved)

        logger.info(f"Seeded {len(records)} {entity} records")

    return ledger
