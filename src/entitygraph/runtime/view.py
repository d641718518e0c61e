"""
View resolver - builds computed projections over entity data.

A view's fields are resolved in declaration order into one dict:
- EmbedDef: rows of another entity where foreign_key == params[param]
  (find_first when limit is 1, find_many otherwise), filtered by that
  entity's select policy the same way Resolver.find_many filters
- ComputedDef: resolve(result so far, database, context), or mock() in seed mode
- nested dict: its ComputedDef entries resolve against the parent result,
  other entries are kept as declared
- anything else: echoes the request parameter of the same name, if given

Usage:
    view_resolver = ViewResolver(registry, db)
    profile = await view_resolver.resolve(UserProfileView, {"id": "u1"})
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ..config import EntityGraphConfig
from ..core.defs import ComputedDef, EmbedDef, RLSPolicyDef, ViewDef
from ..core.protocols import Database, get_entity_db, maybe_await
from ..core.query_types import normalize_order
from ..core.registry import SchemaRegistry
from ..security.guard import build_guard, merge_guard
from ..security.rls import apply_rls
from .context import ResolverContext

logger = logging.getLogger(__name__)


class ViewResolver:
    """Resolves ViewDef declarations against a database capability."""

    def __init__(
        self,
        registry: SchemaRegistry,
        database: Database,
        config: Optional[EntityGraphConfig] = None,
    ):
        self.registry = registry
        self.database = database
        self.config = config or EntityGraphConfig()

    async def resolve(
        self,
        view: ViewDef,
        params: Mapping[str, Any],
        context: Optional[ResolverContext] = None,
    ) -> dict[str, Any]:
        """
        Resolve a view with request parameters.

        Each call runs with a fresh compute cache. The context's params are
        replaced by `params`.
        """
        context = (context or ResolverContext()).fork(params=dict(params))
        result: dict[str, Any] = {}

        for field_name, definition in view.fields.items():
            if isinstance(definition, EmbedDef):
                result[field_name] = await self._resolve_embed(definition, params, context)
            elif isinstance(definition, ComputedDef):
                result[field_name] = await self._resolve_computed(definition, result, context)
            elif isinstance(definition, Mapping):
                result[field_name] = await self._resolve_nested(definition, result, context)
            elif field_name in params:
                result[field_name] = params[field_name]

        return result

    async def resolve_mock(self, view: ViewDef, params: Mapping[str, Any]) -> dict[str, Any]:
        """Resolve a view in seed mode (computed fields use their mock)."""
        return await self.resolve(view, params, ResolverContext(mode="seed"))

    async def _resolve_embed(
        self,
        definition: EmbedDef,
        params: Mapping[str, Any],
        context: ResolverContext,
    ) -> Any:
        entity_db = get_entity_db(self.database, definition.entity)
        single = definition.limit == 1
        empty = None if single else []

        value = params.get(definition.param)
        if value is None or value == "":
            logger.debug(f"View embed of '{definition.entity}' skipped: no '{definition.param}' parameter")
            return empty

        where = {definition.foreign_key: {"equals": value}}
        policy = self._policy(definition.entity)
        post_filter = False

        if policy is not None:
            if self.config.rls.pushdown:
                guard = build_guard(policy, "select", context.values)
                if guard.deny_all:
                    return empty
                where, post_filter = merge_guard(where, guard)
            else:
                post_filter = True

        query: dict[str, Any] = {"where": where}
        if definition.order_by:
            query["orderBy"] = {o.field: o.dir for o in normalize_order(definition.order_by)}

        if post_filter:
            # hidden rows must not use up the limit
            rows = await maybe_await(entity_db.find_many(query))
            rows = apply_rls(
                rows, policy, context.values, "select", entity=definition.entity, debug=self.config.rls.debug,
            )
            if definition.limit is not None:
                rows = rows[:definition.limit]
            if single:
                return rows[0] if rows else None
            return rows

        if definition.limit is not None:
            query["take"] = definition.limit
        if single:
            return await maybe_await(entity_db.find_first(query))
        return list(await maybe_await(entity_db.find_many(query)))

    def _policy(self, entity_name: str) -> Optional[RLSPolicyDef]:
        if not self.config.rls.enabled:
            return None
        schema = self.registry.get(entity_name)
        return schema.rls if schema is not None else None

    async def _resolve_computed(
        self,
        definition: ComputedDef,
        current: Mapping[str, Any],
        context: ResolverContext,
    ) -> Any:
        if context.mode == "seed" and definition.mock is not None:
            return await maybe_await(definition.mock())
        return await maybe_await(definition.resolve(current, self.database, context))

    async def _resolve_nested(
        self,
        definition: Mapping[str, Any],
        parent: Mapping[str, Any],
        context: ResolverContext,
    ) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for field_name, value in definition.items():
            if isinstance(value, ComputedDef):
                result[field_name] = await self._resolve_computed(value, parent, context)
            else:
                result[field_name] = value
        return result
