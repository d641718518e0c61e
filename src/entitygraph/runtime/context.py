"""
Resolver context for one logical request.

Contains the "who is asking" bag consumed by RLS and computed fields, the
resolution mode, and the per-request compute cache.
"""

from __future__ import annotations


from dataclasses import dataclass, field, replace
from typing import Any, Hashable, Literal, Optional

ResolveMode = Literal["seed", "resolve"]


class ComputeCache:
    """
    Memoized computed-field values keyed by (entity name, entity id, field name).

    One instance per logical request. Not shared across concurrent requests.
    """

    def __init__(self):
        self._values: dict[tuple[str, Hashable, str], Any] = {}

    def get(self, entity_name: str, entity_id: Hashable, field_name: str, default: Any = None) -> Any:
        return self._values.get((entity_name, entity_id, field_name), default)

    def set(self, entity_name: str, entity_id: Hashable, field_name: str, value: Any) -> None:
        self._values[(entity_name, entity_id, field_name)] = value

    def has(self, entity_name: str, entity_id: Hashable, field_name: str) -> bool:
        return (entity_name, entity_id, field_name) in self._values

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)


@dataclass
class ResolverContext:
    """
    Context passed through relation, computed-field and RLS resolution.

    Contains:
    - mode: "seed" uses ComputedDef.mock, "resolve" uses ComputedDef.resolve
    - values: open key-value bag (user, API key, service, tenant) or None
    - params/headers: request data available to computed resolvers
    - cache: compute cache scoped to this context
    """
    mode: ResolveMode = "resolve"
    values: Optional[dict[str, Any]] = None
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    cache: ComputeCache = field(default_factory=ComputeCache)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value from the context bag."""
        if self.values is None:
            return default
        return self.values.get(key, default)

    def fork(self, **changes: Any) -> ResolverContext:
        """Copy this context for a new request, with a fresh compute cache."""
        changes.setdefault("cache", ComputeCache())
        return replace(self, **changes)
