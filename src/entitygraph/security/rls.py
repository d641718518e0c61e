"""
Row-level security evaluation.

Decides whether a context may read or write a row, from an RLSPolicyDef:

1. A custom predicate for the operation decides alone.
2. Otherwise a matching bypass condition allows unconditionally.
3. Otherwise every scope mapping must hold: row[field] == context[context_key].
   A mapping whose context key is absent (or a None context) never holds.
   No scope mappings means unrestricted.

Evaluation is pure and synchronous and never raises: an operation name with
no RLS meaning is denied. The same rules can post-filter fetched rows and be
translated into query filters (see security.guard).
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, TypeVar

from ..core.defs import RLS_OPERATIONS, RLSBypass, RLSOperation, RLSPolicyDef, RLSScope

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT", bound=Mapping[str, Any])

Context = Optional[Mapping[str, Any]]

# Resolver/adapter operation names -> RLS operation
OPERATION_ALIASES: dict[str, RLSOperation] = {
    "select": "select",
    "read": "select",
    "get": "select",
    "list": "select",
    "findOne": "select",
    "findMany": "select",
    "find_one": "select",
    "find_many": "select",
    "count": "select",
    "insert": "insert",
    "create": "insert",
    "update": "update",
    "patch": "update",
    "delete": "delete",
}


def rls_operation_for(operation: str) -> RLSOperation:
    """
    Map an operation name to its RLS operation.

    Raises:
        ValueError: for names with no RLS meaning
    """
    try:
        return OPERATION_ALIASES[operation]
    except KeyError:
        raise ValueError(f"Unknown RLS operation '{operation}'. Expected one of {list(RLS_OPERATIONS)}") from None


def bypass_applies(bypass: Iterable[RLSBypass], context: Context) -> bool:
    """True if the context's value for any bypass key is in that condition's allowed values."""
    if not context:
        return False

    for condition in bypass:
        value = context.get(condition.context_key)
        if value is not None and value in condition.values:
            return True
    return False


def scope_holds(scope: RLSScope, row: Mapping[str, Any], context: Context) -> bool:
    """True if row[scope.field] equals the context value under scope.context_key."""
    if not context:
        return False
    expected = context.get(scope.context_key)
    if expected is None:
        return False
    return row.get(scope.field) == expected


def evaluate_rls(
    policy: Optional[RLSPolicyDef],
    row: Mapping[str, Any],
    operation: str,
    context: Context,
) -> bool:
    """
    Decide whether `context` may perform `operation` on `row`.

    Args:
        policy: the entity's policy (None means unrestricted)
        row: the row being read, or the data being written
        operation: select/insert/update/delete (or an alias such as "create")
        context: open key-value bag, or None for an anonymous caller

    Returns:
        True to allow, False to deny

    Example:
        policy = RLSPolicyDef(
            scope=[RLSScope(field="tenantId", context_key="tenantId")],
            bypass=[RLSBypass(context_key="role", values=["admin"])],
        )
        evaluate_rls(policy, {"tenantId": "t1"}, "select", {"tenantId": "t1"})  # True
        evaluate_rls(policy, {"tenantId": "t1"}, "select", None)  # False
    """
    if policy is None:
        return True

    rls_operation = OPERATION_ALIASES.get(operation)
    if rls_operation is None:
        logger.warning(f"RLS denied unknown operation '{operation}'")
        return False

    predicate = policy.predicate_for(rls_operation)
    if predicate is not None:
        return bool(predicate(row, context))

    if bypass_applies(policy.bypass, context):
        return True

    return all(scope_holds(scope, row, context) for scope in policy.scope)


def apply_rls(
    rows: Iterable[RowT],
    policy: Optional[RLSPolicyDef],
    context: Context,
    operation: str = "select",
    *,
    entity: Optional[str] = None,
    debug: bool = False,
) -> list[RowT]:
    """
    Filter rows down to those the context may access.

    Example:
        visible = apply_rls(posts, Post.rls, {"userId": "u1"})
    """
    rows = list(rows)
    if policy is None:
        return rows

    allowed = [row for row in rows if evaluate_rls(policy, row, operation, context)]
    if debug:
        logger.debug(f"RLS {operation} on {entity or 'rows'}: {len(rows)} -> {len(allowed)}")
    return allowed


def create_bypass_check(bypass: Iterable[RLSBypass]):
    """
    Build a reusable bypass check from bypass conditions.

    Example:
        check = create_bypass_check([RLSBypass(context_key="role", values=["admin"])])
        check({"role": "admin"})  # True
        check({"role": "user"})  # False
    """
    conditions = list(bypass)

    def check(context: Context) -> bool:
        return bypass_applies(conditions, context)

    return check
