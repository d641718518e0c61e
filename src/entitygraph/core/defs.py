"""
Core dataclass definitions for entitygraph.

These define the declaration structure for entities: plain fields, relations,
computed fields, row-level security policies and views.

Relations reference their target by name only. Targets are looked up through
the SchemaRegistry at use time, so declarations can be registered in any order
and may be mutually recursive.

Usage:
    from entitygraph.core.defs import FieldDef, belongs_to, computed, define_entity, has_many

    User = define_entity("user", {
        "name": FieldDef(type="string"),
        "posts": has_many("post", foreign_key="authorId"),
        "postCount": computed(
            lambda user, db, ctx: db["post"].count({"where": {"authorId": {"equals": user["id"]}}}),
        ),
    })
"""

from __future__ import annotations


from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Mapping, Optional, Sequence, Union

from .errors import GraphConfigError, UnknownRelationTypeError


RelationKind = Literal["hasOne", "hasMany", "belongsTo"]
RLSOperation = Literal["select", "insert", "update", "delete"]
OrderDirection = Literal["asc", "desc"]

RELATION_KINDS = ("hasOne", "hasMany", "belongsTo")
RLS_OPERATIONS = ("select", "insert", "update", "delete")

# Relation recursion bound when the caller gives none
DEFAULT_MAX_DEPTH = 3


# =============================================================================
# Fields
# =============================================================================


@dataclass
class FieldDef:
    """Definition of a plain (stored) entity field."""
    type: str  # string, uuid, email, int, float, boolean, date, enum, array, object, ...
    nullable: bool = False
    unique: bool = False
    readonly: bool = False
    default: Any = None
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None
    hint: Optional[str] = None  # semantic hint for the value generator, e.g. "person.fullName"
    values: list[Any] = field(default_factory=list)  # for enum fields
    items: Optional[FieldDef] = None  # for array fields
    shape: dict[str, FieldDef] = field(default_factory=dict)  # for object fields


# =============================================================================
# Relations
# =============================================================================


@dataclass
class RelationDef:
    """
    Definition of a relation between entities.

    For belongsTo the foreign key lives on this entity; for hasOne/hasMany it
    lives on the target. `through`/`other_key` turn a hasMany into a
    many-to-many relation via a join entity.
    """
    kind: RelationKind
    target: str  # target entity name
    foreign_key: Optional[str] = None
    eager: bool = False
    order_by: Optional[dict[str, OrderDirection]] = None  # hasMany only
    limit: Optional[int] = None  # hasMany only
    through: Optional[str] = None  # join entity name
    other_key: Optional[str] = None  # join entity field pointing at the target

    def __post_init__(self):
        if self.kind not in RELATION_KINDS:
            raise UnknownRelationTypeError(self.kind)
        if self.kind != "hasMany" and (self.order_by or self.limit is not None):
            raise GraphConfigError(f"order_by/limit are only valid on hasMany relations (got {self.kind})")
        if (self.through is None) != (self.other_key is None):
            raise GraphConfigError("Many-to-many relations need both 'through' and 'other_key'")


def has_one(target: str, foreign_key: Optional[str] = None, eager: bool = False) -> RelationDef:
    """One-to-one relation; the foreign key lives on the target entity."""
    return RelationDef(kind="hasOne", target=target, foreign_key=foreign_key, eager=eager)


def has_many(
    target: str,
    foreign_key: Optional[str] = None,
    *,
    order_by: Optional[dict[str, OrderDirection]] = None,
    limit: Optional[int] = None,
    through: Optional[str] = None,
    other_key: Optional[str] = None,
    eager: bool = False,
) -> RelationDef:
    """
    One-to-many relation; the foreign key lives on the target entities.

    Example (many-to-many through a join entity):
        followers = has_many("user", through="follow", foreign_key="followingId", other_key="followerId")
    """
    return RelationDef(
        kind="hasMany",
        target=target,
        foreign_key=foreign_key,
        eager=eager,
        order_by=order_by,
        limit=limit,
        through=through,
        other_key=other_key,
    )


def belongs_to(target: str, foreign_key: Optional[str] = None, eager: bool = False) -> RelationDef:
    """Inverse relation; the foreign key lives on this entity."""
    return RelationDef(kind="belongsTo", target=target, foreign_key=foreign_key, eager=eager)


# =============================================================================
# Computed fields
# =============================================================================


@dataclass
class ComputedDef:
    """
    Definition of a computed (derived) field.

    `resolve(entity, database, context)` may return a value or an awaitable.
    `mock()` is used instead of `resolve` in seed mode. `depends_on` only
    drives ordering; it is not a referential integrity constraint.
    """
    resolve: Callable[..., Any]
    mock: Optional[Callable[[], Any]] = None
    depends_on: list[str] = field(default_factory=list)


def computed(
    resolve: Callable[..., Any],
    *,
    mock: Optional[Callable[[], Any]] = None,
    depends_on: Sequence[str] = (),
) -> ComputedDef:
    return ComputedDef(resolve=resolve, mock=mock, depends_on=list(depends_on))


# =============================================================================
# Row-level security
# =============================================================================

RLSPredicate = Callable[[Mapping[str, Any], Optional[Mapping[str, Any]]], bool]


@dataclass
class RLSScope:
    """`row[field]` must equal `context[context_key]`."""
    field: str
    context_key: str


@dataclass
class RLSBypass:
    """Skip all checks when `context[context_key]` is one of `values`."""
    context_key: str
    values: list[Any] = field(default_factory=list)


@dataclass
class RLSPolicyDef:
    """
    Row-level security policy for an entity.

    A custom predicate for an operation fully overrides scope and bypass for
    that operation.
    """
    scope: list[RLSScope] = field(default_factory=list)
    bypass: list[RLSBypass] = field(default_factory=list)
    select: Optional[RLSPredicate] = None
    insert: Optional[RLSPredicate] = None
    update: Optional[RLSPredicate] = None
    delete: Optional[RLSPredicate] = None

    def predicate_for(self, operation: RLSOperation) -> Optional[RLSPredicate]:
        """Get the custom predicate declared for an operation, if any."""
        return getattr(self, operation)


def owner_policy(owner_field: str, context_key: str = "userId", bypass_roles: Sequence[str] = ()) -> RLSPolicyDef:
    """Rows are visible/mutable only to the context whose `context_key` owns them."""
    bypass = [RLSBypass(context_key="role", values=list(bypass_roles))] if bypass_roles else []
    return RLSPolicyDef(scope=[RLSScope(field=owner_field, context_key=context_key)], bypass=bypass)


def tenant_policy(tenant_field: str = "tenantId", context_key: str = "tenantId", bypass_roles: Sequence[str] = ()) -> RLSPolicyDef:
    """Rows are restricted to the tenant named in the context."""
    return owner_policy(tenant_field, context_key=context_key, bypass_roles=bypass_roles)


# =============================================================================
# Entities
# =============================================================================


@dataclass
class EntityDef:
    """Complete declaration of an entity."""
    name: str
    fields: dict[str, FieldDef] = field(default_factory=dict)
    relations: dict[str, RelationDef] = field(default_factory=dict)
    computed: dict[str, ComputedDef] = field(default_factory=dict)
    rls: Optional[RLSPolicyDef] = None
    timestamps: bool = True
    primary_key: str = "id"
    tags: list[str] = field(default_factory=list)
    module: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)


Declaration = Union[FieldDef, RelationDef, ComputedDef]


def define_entity(
    name: str,
    declarations: Mapping[str, Declaration],
    *,
    rls: Optional[RLSPolicyDef] = None,
    timestamps: bool = True,
    primary_key: str = "id",
    tags: Sequence[str] = (),
    module: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> EntityDef:
    """
    Build an EntityDef from a mixed mapping of declarations.

    Each entry is classified once, here, into a field, a relation or a
    computed field. An id field is added when absent, and createdAt/updatedAt
    when timestamps are enabled.

    Raises:
        GraphConfigError: if an entry is not a FieldDef, RelationDef or ComputedDef
    """
    fields: dict[str, FieldDef] = {}
    relations: dict[str, RelationDef] = {}
    computed_fields: dict[str, ComputedDef] = {}

    for key, value in declarations.items():
        if isinstance(value, ComputedDef):
            computed_fields[key] = value
        elif isinstance(value, RelationDef):
            relations[key] = value
        elif isinstance(value, FieldDef):
            fields[key] = value
        else:
            raise GraphConfigError(
                f"{name}.{key}: expected FieldDef, RelationDef or ComputedDef, got {type(value).__name__}"
            )

    if primary_key not in fields:
        fields = {primary_key: FieldDef(type="uuid", hint="string.uuid", readonly=True), **fields}

    if timestamps:
        fields.setdefault("createdAt", FieldDef(type="date", hint="date.past", readonly=True))
        fields.setdefault("updatedAt", FieldDef(type="date", hint="date.recent", readonly=True))

    return EntityDef(
        name=name,
        fields=fields,
        relations=relations,
        computed=computed_fields,
        rls=rls,
        timestamps=timestamps,
        primary_key=primary_key,
        tags=list(tags),
        module=module,
        metadata=dict(metadata or {}),
    )


# =============================================================================
# Views
# =============================================================================


@dataclass
class EmbedDef:
    """Embed rows of another entity into a view, matched on `foreign_key == params[param]`."""
    entity: str
    foreign_key: str
    param: str = "id"
    limit: Optional[int] = None
    order_by: Optional[dict[str, OrderDirection]] = None


def embed(
    entity: str,
    foreign_key: str,
    *,
    param: str = "id",
    limit: Optional[int] = None,
    order_by: Optional[dict[str, OrderDirection]] = None,
) -> EmbedDef:
    return EmbedDef(entity=entity, foreign_key=foreign_key, param=param, limit=limit, order_by=order_by)


@dataclass
class ViewDef:
    """
    A computed projection over entity data.

    Field values are EmbedDef, ComputedDef, a nested dict of those, or
    anything else (echoed from the request parameter of the same name).
    """
    name: str
    fields: dict[str, Any]
    endpoint: str
    params: list[str] = field(default_factory=list)


def define_view(name: str, fields: dict[str, Any], endpoint: str, params: Sequence[str] = ()) -> ViewDef:
    return ViewDef(name=name, fields=dict(fields), endpoint=endpoint, params=list(params))
