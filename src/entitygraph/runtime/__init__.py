"""
Runtime module - relation, computed-field and view resolution.
"""

from __future__ import annotations

from .computed import (
    clear_compute_cache,
    resolve_computed_field,
    resolve_computed_fields,
    resolve_computed_fields_sync,
    topological_sort,
)
from .context import ComputeCache, ResolverContext
from .relation import ResolveRelationOptions, eager_load_relations, resolve_relation, resolve_relations
from .resolver import EntityQueryOptions, ListQueryOptions, Resolver
from .view import ViewResolver

__all__ = [
    "ComputeCache",
    "ResolverContext",
    "topological_sort",
    "clear_compute_cache",
    "resolve_computed_field",
    "resolve_computed_fields",
    "resolve_computed_fields_sync",
    "ResolveRelationOptions",
    "resolve_relation",
    "resolve_relations",
    "eager_load_relations",
    "ViewResolver",
    "EntityQueryOptions",
    "ListQueryOptions",
    "Resolver",
]
