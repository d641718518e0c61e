"""
Guard translation - renders an RLS policy as query filters.

Scope mappings become mandatory equality filters that the caller cannot
override; they are merged into the caller's where clause before the query
runs. Custom predicates cannot be translated and are flagged for in-process
post-filtering with apply_rls. The decision for every row is the same as
evaluate_rls would make.
"""

from __future__ import annotations


from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..core.defs import RLSPolicyDef
from ..core.query_types import NormalizedFilter
from .rls import OPERATION_ALIASES, Context, bypass_applies


@dataclass
class RLSGuard:
    """
    Query-level form of a policy for one operation and context.

    Contains:
    - filters: equality filters every returned row must satisfy
    - deny_all: no row can pass (a scope's context key is missing)
    - post_filter: rows must still be checked with apply_rls
    """
    filters: list[NormalizedFilter] = field(default_factory=list)
    deny_all: bool = False
    post_filter: bool = False


def build_guard(policy: Optional[RLSPolicyDef], operation: str, context: Context) -> RLSGuard:
    """
    Build the guard for a policy, operation and context.

    Example:
        guard = build_guard(tenant_policy(), "select", {"tenantId": "t1"})
        guard.filters  # [NormalizedFilter(field="tenantId", op="equals", value="t1")]
    """
    if policy is None:
        return RLSGuard()

    rls_operation = OPERATION_ALIASES.get(operation)
    if rls_operation is None:
        return RLSGuard(deny_all=True)

    if policy.predicate_for(rls_operation) is not None:
        return RLSGuard(post_filter=True)

    if bypass_applies(policy.bypass, context):
        return RLSGuard()

    filters: list[NormalizedFilter] = []
    for scope in policy.scope:
        expected = context.get(scope.context_key) if context else None
        if expected is None:
            return RLSGuard(deny_all=True)
        filters.append(NormalizedFilter(field=scope.field, op="equals", value=expected))

    return RLSGuard(filters=filters)


def merge_guard(where: Mapping[str, dict[str, Any]], guard: RLSGuard) -> tuple[dict[str, dict[str, Any]], bool]:
    """
    Merge guard filters into a where clause.

    A field the caller already constrains with a different condition keeps the
    caller's condition; the rows are then post-filtered instead.

    Returns:
        (merged where clause, whether rows still need post-filtering)
    """
    merged = {key: dict(condition) for key, condition in where.items()}
    post_filter = guard.post_filter

    for f in guard.filters:
        condition = merged.get(f.field)
        if condition is None:
            merged[f.field] = {f.op: f.value}
        elif condition != {f.op: f.value}:
            post_filter = True

    return merged, post_filter
