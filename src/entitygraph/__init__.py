"""
entitygraph - declare entities once, resolve them consistently.

Entity declarations (fields, relations, computed fields, row-level security)
drive:
- Relation resolution with depth bounds and batched loading
- Computed fields in dependency order
- Row-level security on reads and writes
- Ordered bulk seeding with deferred ref()/lookup() references

Usage:
    from entitygraph import (
        FieldDef, Resolver, ResolverContext, SchemaRegistry,
        belongs_to, define_entity, has_many, owner_policy,
    )

    registry = SchemaRegistry()
    registry.register(define_entity("user", {
        "name": FieldDef(type="string"),
        "posts": has_many("post", "authorId"),
    }))
    registry.register(define_entity("post", {
        "title": FieldDef(type="string"),
        "authorId": FieldDef(type="ref"),
        "author": belongs_to("user", "authorId"),
    }, rls=owner_policy("authorId")))

    resolver = Resolver(registry, db, ResolverContext(values={"userId": "u1"}))
    posts = await resolver.find_many("post", ListQueryOptions(include=["author"]))
"""

from __future__ import annotations

from .config import EntityGraphConfig, RLSConfig, ResolverConfig, SeedConfig, load_config
from .core import (
    ComputedDef,
    EmbedDef,
    EntityDef,
    EntityGraphError,
    EntityQuery,
    FieldDef,
    GraphConfigError,
    RelationDef,
    ResolutionError,
    RLSBypass,
    RLSDeniedError,
    RLSPolicyDef,
    RLSScope,
    SchemaRegistry,
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
from .runtime import (
    EntityQueryOptions,
    ListQueryOptions,
    Resolver,
    ResolverContext,
    ResolveRelationOptions,
    ViewResolver,
    clear_compute_cache,
    eager_load_relations,
    resolve_computed_field,
    resolve_computed_fields,
    resolve_relation,
    resolve_relations,
    topological_sort,
)
from .security import apply_rls, evaluate_rls
from .seed import (
    CreatedRecordLedger,
    is_seed_reference,
    load_seed_file,
    lookup,
    ref,
    resolve_item,
    resolve_lookup,
    resolve_ref,
    run_seed,
    seed_order,
)

__version__ = "0.1.0"

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
    "SchemaRegistry",
    "EntityQuery",
    # Errors
    "EntityGraphError",
    "GraphConfigError",
    "ResolutionError",
    "RLSDeniedError",
    # Runtime
    "ResolverContext",
    "ResolveRelationOptions",
    "resolve_relation",
    "resolve_relations",
    "eager_load_relations",
    "topological_sort",
    "resolve_computed_field",
    "resolve_computed_fields",
    "clear_compute_cache",
    "ViewResolver",
    "Resolver",
    "EntityQueryOptions",
    "ListQueryOptions",
    # Security
    "evaluate_rls",
    "apply_rls",
    # Seed
    "ref",
    "lookup",
    "is_seed_reference",
    "CreatedRecordLedger",
    "resolve_ref",
    "resolve_lookup",
    "resolve_item",
    "seed_order",
    "run_seed",
    "load_seed_file",
    # Config
    "EntityGraphConfig",
    "ResolverConfig",
    "RLSConfig",
    "SeedConfig",
    "load_config",
]
