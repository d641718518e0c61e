"""
Seed reference markers.

ref() and lookup() stand in for field values of records created earlier in
the same seed run. They are plain value objects; seed.resolver replaces them
with real values just before insertion.

Usage:
    from entitygraph.seed import lookup, ref

    data = {
        "users": [{"email": "admin@example.com", "role": "admin"}],
        "posts": [{"title": "Welcome", "authorId": ref("users", 0)}],
        "rolePermissions": [{"permissionId": lookup("permissions", {"key": "projects:read:all"})}],
    }
"""

from __future__ import annotations


from dataclasses import dataclass, field
from typing import Any, Literal


@dataclass(frozen=True)
class SeedReference:
    """Base class of all seed reference markers."""
    entity: str
    field: str = "id"


@dataclass(frozen=True)
class SeedRef(SeedReference):
    """Reference to the index-th record created for an entity."""
    index: int = 0
    kind: Literal["ref"] = "ref"


@dataclass(frozen=True)
class SeedLookup(SeedReference):
    """Reference to the first created record whose fields match `where`."""
    where: dict[str, Any] = field(default_factory=dict)
    kind: Literal["lookup"] = "lookup"

    # dict fields are unhashable; markers are compared, never hashed
    __hash__ = None


def ref(entity: str, index: int, field: str = "id") -> SeedRef:
    """
    Reference the index-th (zero-based) record created for `entity`.

    Example:
        ref("users", 0)  # first user's id
        ref("users", 1, "email")  # second user's email
    """
    if index < 0:
        raise ValueError(f"ref() index must be >= 0, got {index}")
    return SeedRef(entity=entity, field=field, index=index)


def lookup(entity: str, where: dict[str, Any], field: str = "id") -> SeedLookup:
    """
    Reference the first created `entity` record matching all `where` conditions.

    Example:
        lookup("permissions", {"key": "projects:read:all"})
    """
    return SeedLookup(entity=entity, field=field, where=dict(where))


def is_seed_reference(value: Any) -> bool:
    """True if value is a ref() or lookup() marker."""
    return isinstance(value, SeedReference)
