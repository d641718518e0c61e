"""
Resolver - CRUD over the database capability with relations, computed fields and RLS.

Orchestrates, per call:
1. Registry lookup of the entity declaration
2. The root query, with RLS scope filters pushed down when possible
3. Relation loading (batched for lists)
4. Computed fields, in dependency order, with a fresh compute cache

RLS applies to the root rows only: rows reached through relations are not
re-checked against their own entity's policy.

Usage:
    resolver = Resolver(registry, db, ResolverContext(values={"userId": "u1"}))

    user = await resolver.find_one("user", "u1", EntityQueryOptions(include=["posts"]))
    posts = await resolver.find_many("post", ListQueryOptions(
        where={"status": "published"},
        limit=20,
        order_by={"createdAt": "desc"},
        include=["author"],
    ))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..config import EntityGraphConfig
from ..core.defs import EntityDef, OrderDirection, RLSPolicyDef
from ..core.errors import RLSDeniedError
from ..core.protocols import Database, get_entity_db, get_write_operation, maybe_await
from ..core.query_types import build_where_clause
from ..core.registry import SchemaRegistry
from ..security.guard import build_guard, merge_guard
from ..security.rls import apply_rls, evaluate_rls
from .computed import resolve_computed_fields
from .context import ResolverContext
from .relation import ResolveRelationOptions, eager_load_relations, resolve_relations
from .view import ViewResolver

logger = logging.getLogger(__name__)

Row = dict[str, Any]


@dataclass
class EntityQueryOptions:
    """
    Options for single-entity calls.

    include: relation paths to load ("posts", "posts.comments")
    depth: recursion bound (config resolver.max_depth when None)
    computed: restrict to these computed fields (all when None)
    """
    include: list[str] = field(default_factory=list)
    depth: Optional[int] = None
    computed: Optional[list[str]] = None


@dataclass
class ListQueryOptions(EntityQueryOptions):
    """Options for list calls: root filters and pagination on top of EntityQueryOptions."""
    where: Optional[dict[str, Any]] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    order_by: Optional[dict[str, OrderDirection]] = None


class Resolver:
    """
    Main resolver engine for CRUD operations.

    Each call forks the bound context, so compute caches never leak between calls.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        database: Database,
        context: Optional[ResolverContext] = None,
        config: Optional[EntityGraphConfig] = None,
    ):
        self.registry = registry
        self.database = database
        self.config = config or EntityGraphConfig()
        self.context = context or ResolverContext(mode=self.config.resolver.mode)
        self.view_resolver = ViewResolver(registry, database, self.config)

    def with_context(self, **changes: Any) -> Resolver:
        """
        Create a new resolver bound to an updated context.

        Example:
            admin = resolver.with_context(values={"userId": "u1", "role": "admin"})
        """
        return Resolver(self.registry, self.database, self.context.fork(**changes), self.config)

    # =========================================================================
    # Reads
    # =========================================================================

    async def find_one(
        self,
        entity_name: str,
        id: Any,
        options: Optional[EntityQueryOptions] = None,
    ) -> Optional[Row]:
        """
        Find a single entity by primary key.

        Returns:
            The row with relations and computed fields, or None when it does
            not exist or the context may not see it
        """
        options = options or EntityQueryOptions()
        context = self.context.fork()
        schema = self.registry.get_or_raise(entity_name)
        entity_db = get_entity_db(self.database, entity_name)

        row = await maybe_await(entity_db.find_first(self._by_id(schema, id)))
        if row is None:
            return None

        if not self._allowed(schema, row, "select", context):
            return None

        return await self._finish(row, schema, options, context)

    async def find_many(
        self,
        entity_name: str,
        options: Optional[ListQueryOptions] = None,
    ) -> list[Row]:
        """
        Find entities with filtering and pagination.

        RLS scope mappings become equals filters on the query when the policy
        has no custom select predicate. Otherwise the rows are filtered after
        fetching and pagination is applied to the visible rows.
        """
        options = options or ListQueryOptions()
        context = self.context.fork()
        schema = self.registry.get_or_raise(entity_name)
        entity_db = get_entity_db(self.database, entity_name)

        where, policy, post_filter = self._guarded_where(schema, options.where, "select", context)
        if where is None:
            return []

        query: dict[str, Any] = {"where": where}
        if options.order_by:
            query["orderBy"] = options.order_by
        if not post_filter:
            if options.limit is not None:
                query["take"] = options.limit
            if options.offset:
                query["skip"] = options.offset

        rows = list(await maybe_await(entity_db.find_many(query)))

        if post_filter:
            rows = apply_rls(
                rows, policy, context.values, "select", entity=entity_name, debug=self.config.rls.debug,
            )
            start = options.offset or 0
            end = start + options.limit if options.limit is not None else None
            rows = rows[start:end]

        await eager_load_relations(rows, schema, self.database, self.registry, self._relation_options(options))

        for row in rows:
            await resolve_computed_fields(row, schema, self.database, context, only=options.computed)

        return rows

    async def count(self, entity_name: str, where: Optional[Mapping[str, Any]] = None) -> int:
        """Count the entities matching `where` that the context may see."""
        context = self.context.fork()
        schema = self.registry.get(entity_name)
        entity_db = get_entity_db(self.database, entity_name)

        clause, policy, post_filter = self._guarded_where(schema, where, "select", context)
        if clause is None:
            return 0

        if post_filter:
            rows = await maybe_await(entity_db.find_many({"where": clause}))
            return len(apply_rls(rows, policy, context.values, "select", entity=entity_name))

        return await maybe_await(entity_db.count({"where": clause}))

    async def view(self, view_name: str, params: Mapping[str, Any]) -> dict[str, Any]:
        """Resolve a registered view with request parameters."""
        view = self.registry.get_view_or_raise(view_name)
        return await self.view_resolver.resolve(view, params, self.context)

    # =========================================================================
    # Writes
    # =========================================================================

    async def create(
        self,
        entity_name: str,
        data: Mapping[str, Any],
        options: Optional[EntityQueryOptions] = None,
    ) -> Row:
        """
        Create an entity.

        Raises:
            RLSDeniedError: if the insert policy rejects the data
            OperationNotSupportedError: if the entity has no create operation
        """
        options = options or EntityQueryOptions()
        context = self.context.fork()
        schema = self.registry.get_or_raise(entity_name)
        entity_db = get_entity_db(self.database, entity_name)
        create = get_write_operation(entity_db, entity_name, "create")

        if not self._allowed(schema, data, "insert", context):
            raise RLSDeniedError("insert", entity_name)

        created = await maybe_await(create({"data": dict(data)}))
        row = created if created is not None else dict(data)

        return await self._finish(row, schema, options, context)

    async def update(
        self,
        entity_name: str,
        id: Any,
        data: Mapping[str, Any],
        options: Optional[EntityQueryOptions] = None,
    ) -> Optional[Row]:
        """
        Update an entity by primary key.

        Under a policy, both the stored row and the row as it would be after
        the update must pass the update check, so a row cannot be moved out of
        the caller's scope.

        Returns:
            The updated row, or None if it does not exist

        Raises:
            RLSDeniedError: if the update policy rejects either row
        """
        options = options or EntityQueryOptions()
        context = self.context.fork()
        schema = self.registry.get_or_raise(entity_name)
        entity_db = get_entity_db(self.database, entity_name)
        update = get_write_operation(entity_db, entity_name, "update")
        by_id = self._by_id(schema, id)

        if self._policy(schema) is not None:
            existing = await maybe_await(entity_db.find_first(by_id))
            if existing is None:
                return None
            if not self._allowed(schema, existing, "update", context):
                raise RLSDeniedError("update", entity_name)
            if not self._allowed(schema, {**existing, **data}, "update", context):
                raise RLSDeniedError("update", entity_name)

        row = await maybe_await(update({"where": by_id["where"], "data": dict(data)}))
        if row is None:
            return None

        return await self._finish(row, schema, options, context)

    async def delete(self, entity_name: str, id: Any) -> bool:
        """
        Delete an entity by primary key.

        Returns:
            True if a row was deleted, False if none matched

        Raises:
            RLSDeniedError: if the delete policy rejects the stored row
        """
        context = self.context.fork()
        schema = self.registry.get(entity_name)
        entity_db = get_entity_db(self.database, entity_name)
        delete = get_write_operation(entity_db, entity_name, "delete")
        by_id = self._by_id(schema, id)

        if self._policy(schema) is not None:
            existing = await maybe_await(entity_db.find_first(by_id))
            if existing is None:
                return False
            if not self._allowed(schema, existing, "delete", context):
                raise RLSDeniedError("delete", entity_name)

        deleted = await maybe_await(delete({"where": by_id["where"]}))
        return deleted is not None

    # =========================================================================
    # Helpers
    # =========================================================================

    def _by_id(self, schema: Optional[EntityDef], id: Any) -> dict[str, Any]:
        primary_key = schema.primary_key if schema is not None else "id"
        return {"where": {primary_key: {"equals": id}}}

    def _policy(self, schema: Optional[EntityDef]) -> Optional[RLSPolicyDef]:
        if schema is None or not self.config.rls.enabled:
            return None
        return schema.rls

    def _allowed(
        self,
        schema: EntityDef,
        row: Mapping[str, Any],
        operation: str,
        context: ResolverContext,
    ) -> bool:
        policy = self._policy(schema)
        if policy is None:
            return True

        allowed = evaluate_rls(policy, row, operation, context.values)
        if self.config.rls.debug:
            logger.debug(f"RLS {operation} on {schema.name}: {'allowed' if allowed else 'denied'}")
        return allowed

    def _guarded_where(
        self,
        schema: Optional[EntityDef],
        where: Optional[Mapping[str, Any]],
        operation: str,
        context: ResolverContext,
    ) -> tuple[Optional[dict[str, dict[str, Any]]], Optional[RLSPolicyDef], bool]:
        """
        Build the where clause for a guarded read.

        Returns:
            (where clause or None when no row can pass, policy, whether rows
            must be post-filtered)
        """
        clause = build_where_clause(where)
        policy = self._policy(schema)
        if policy is None:
            return clause, None, False

        if not self.config.rls.pushdown:
            return clause, policy, True

        guard = build_guard(policy, operation, context.values)
        if guard.deny_all:
            if self.config.rls.debug:
                logger.debug(f"RLS {operation} on {schema.name}: denied for all rows")
            return None, policy, False

        merged, post_filter = merge_guard(clause, guard)
        return merged, policy, post_filter

    def _relation_options(self, options: EntityQueryOptions) -> ResolveRelationOptions:
        depth = options.depth if options.depth is not None else self.config.resolver.max_depth
        return ResolveRelationOptions(include=list(options.include), depth=depth)

    async def _finish(
        self,
        row: Row,
        schema: EntityDef,
        options: EntityQueryOptions,
        context: ResolverContext,
    ) -> Row:
        await resolve_relations(row, schema, self.database, self.registry, self._relation_options(options))
        await resolve_computed_fields(row, schema, self.database, context, only=options.computed)
        return row
