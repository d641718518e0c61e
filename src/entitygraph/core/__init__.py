"""
Core module - declarations, errors, query types and the schema registry.
"""

from __future__ import annotations

from .defs import (
    DEFAULT_MAX_DEPTH,
    RELATION_KINDS,
    RLS_OPERATIONS,
    ComputedDef,
    EmbedDef,
    EntityDef,
    FieldDef,
    RelationDef,
    RLSBypass,
    RLSPolicyDef,
    RLSScope,
    ViewDef,
    belongs_to,
    computed,
    define_entity,
    define_view,
    embed,
    has_many,
    has_one,
    owner_policy,
    tenant_policy,
)
from .errors import (
    CircularDependencyError,
    EntityGraphError,
    EntityNotRegisteredError,
    GraphConfigError,
    OperationNotSupportedError,
    ResolutionError,
    RLSDeniedError,
    SeedOrderError,
    SeedReferenceError,
    TargetNotFoundError,
    UnknownRelationTypeError,
)
from .protocols import Database, DatabaseEntity, get_entity_db, get_write_operation, maybe_await
from .query_types import (
    SUPPORTED_OPS,
    EntityQuery,
    NormalizedFilter,
    NormalizedOrder,
    build_condition,
    build_where_clause,
    normalize_order,
)
from .registry import SchemaRegistry
from .utils import default_foreign_key, nested_includes, should_include, to_camel_case

__all__ = [
    # Declarations
    "FieldDef",
    "RelationDef",
    "ComputedDef",
    "RLSScope",
    "RLSBypass",
    "RLSPolicyDef",
    "EntityDef",
    "EmbedDef",
    "ViewDef",
    "has_one",
    "has_many",
    "belongs_to",
    "computed",
    "owner_policy",
    "tenant_policy",
    "define_entity",
    "define_view",
    "embed",
    "RELATION_KINDS",
    "RLS_OPERATIONS",
    "DEFAULT_MAX_DEPTH",
    # Errors
    "EntityGraphError",
    "GraphConfigError",
    "UnknownRelationTypeError",
    "CircularDependencyError",
    "EntityNotRegisteredError",
    "ResolutionError",
    "TargetNotFoundError",
    "OperationNotSupportedError",
    "SeedReferenceError",
    "SeedOrderError",
    "RLSDeniedError",
    # Database capability
    "Database",
    "DatabaseEntity",
    "maybe_await",
    "get_entity_db",
    "get_write_operation",
    # Query types
    "NormalizedFilter",
    "NormalizedOrder",
    "EntityQuery",
    "SUPPORTED_OPS",
    "build_condition",
    "build_where_clause",
    "normalize_order",
    # Registry
    "SchemaRegistry",
    # Utils
    "to_camel_case",
    "default_foreign_key",
    "should_include",
    "nested_includes",
]
