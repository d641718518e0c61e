import pytest

from entitygraph import RLSBypass, RLSPolicyDef, RLSScope, owner_policy, tenant_policy
from entitygraph.core.query_types import NormalizedFilter
from entitygraph.security.guard import build_guard, merge_guard
from entitygraph.security.rls import apply_rls, create_bypass_check, evaluate_rls, rls_operation_for


@pytest.fixture
def tenant_admin_policy():
    return RLSPolicyDef(
        scope=[RLSScope(field="tenantId", context_key="tenantId")],
        bypass=[RLSBypass(context_key="role", values=["admin"])],
    )


@pytest.mark.parametrize("context,allowed", [
    ({"tenantId": "t1"}, True),
    ({"tenantId": "t2"}, False),
    ({"role": "admin", "tenantId": "t2"}, True),
    (None, False),
    ({}, False),
    ({"role": "user"}, False),
])
def test_scope_and_bypass(tenant_admin_policy, context, allowed):
    assert evaluate_rls(tenant_admin_policy, {"tenantId": "t1"}, "select", context) is allowed


def test_no_policy_allows_everything():
    assert evaluate_rls(None, {"tenantId": "t1"}, "delete", None)


def test_empty_scope_is_unrestricted():
    assert evaluate_rls(RLSPolicyDef(), {"x": 1}, "update", None)


def test_all_scope_mappings_must_hold():
    policy = RLSPolicyDef(scope=[
        RLSScope(field="tenantId", context_key="tenantId"),
        RLSScope(field="ownerId", context_key="userId"),
    ])
    row = {"tenantId": "t1", "ownerId": "u1"}

    assert evaluate_rls(policy, row, "select", {"tenantId": "t1", "userId": "u1"})
    assert not evaluate_rls(policy, row, "select", {"tenantId": "t1", "userId": "u2"})
    assert not evaluate_rls(policy, row, "select", {"tenantId": "t1"})


def test_missing_context_key_never_matches_missing_row_field():
    policy = owner_policy("ownerId")

    assert not evaluate_rls(policy, {"ownerId": None}, "select", {"role": "user"})


def test_custom_predicate_overrides_scope_and_bypass(tenant_admin_policy):
    tenant_admin_policy.select = lambda row, context: row.get("public") is True

    assert evaluate_rls(tenant_admin_policy, {"tenantId": "t9", "public": True}, "select", None)
    assert not evaluate_rls(tenant_admin_policy, {"tenantId": "t1"}, "select", {"role": "admin", "tenantId": "t1"})
    # other operations still use scope and bypass
    assert evaluate_rls(tenant_admin_policy, {"tenantId": "t1"}, "update", {"tenantId": "t1"})


def test_operation_aliases():
    assert rls_operation_for("create") == "insert"
    assert rls_operation_for("findMany") == "select"
    with pytest.raises(ValueError, match="Unknown RLS operation"):
        rls_operation_for("truncate")


def test_unknown_operation_is_denied_not_raised(tenant_admin_policy):
    allow_all = RLSPolicyDef(select=lambda row, context: True)

    assert evaluate_rls(allow_all, {"id": 1}, "truncate", {"role": "admin"}) is False
    assert evaluate_rls(tenant_admin_policy, {"tenantId": "t1"}, "truncate", {"role": "admin"}) is False
    assert build_guard(tenant_admin_policy, "truncate", {"role": "admin"}).deny_all


def test_apply_rls_filters_rows(tenant_admin_policy):
    rows = [{"id": 1, "tenantId": "t1"}, {"id": 2, "tenantId": "t2"}, {"id": 3, "tenantId": "t1"}]

    assert [r["id"] for r in apply_rls(rows, tenant_admin_policy, {"tenantId": "t1"})] == [1, 3]
    assert apply_rls(rows, tenant_admin_policy, {"role": "admin"}) == rows
    assert apply_rls(rows, tenant_admin_policy, None) == []
    assert apply_rls(rows, None, None) == rows


def test_create_bypass_check():
    check = create_bypass_check([RLSBypass(context_key="role", values=["admin", "service"])])

    assert check({"role": "service"})
    assert not check({"role": "user"})
    assert not check(None)


# =============================================================================
# Guard translation
# =============================================================================


def test_guard_renders_scope_as_equals_filters():
    guard = build_guard(tenant_policy(), "select", {"tenantId": "t1"})

    assert guard.filters == [NormalizedFilter(field="tenantId", op="equals", value="t1")]
    assert not guard.deny_all
    assert not guard.post_filter


def test_guard_denies_all_when_context_key_missing(tenant_admin_policy):
    assert build_guard(tenant_admin_policy, "select", {"role": "user"}).deny_all
    assert build_guard(tenant_admin_policy, "select", None).deny_all


def test_guard_is_empty_when_bypass_applies(tenant_admin_policy):
    guard = build_guard(tenant_admin_policy, "select", {"role": "admin"})

    assert guard.filters == []
    assert not guard.deny_all


def test_guard_flags_custom_predicates_for_post_filtering():
    policy = RLSPolicyDef(select=lambda row, context: True)

    assert build_guard(policy, "select", None).post_filter
    assert build_guard(None, "select", None).filters == []


def test_merge_guard_adds_filters():
    guard = build_guard(tenant_policy(), "select", {"tenantId": "t1"})

    where, post_filter = merge_guard({"status": {"equals": "live"}}, guard)

    assert where == {"status": {"equals": "live"}, "tenantId": {"equals": "t1"}}
    assert not post_filter


def test_merge_guard_keeps_conflicting_caller_condition_and_post_filters():
    guard = build_guard(tenant_policy(), "select", {"tenantId": "t1"})

    where, post_filter = merge_guard({"tenantId": {"in": ["t1", "t2"]}}, guard)

    assert where == {"tenantId": {"in": ["t1", "t2"]}}
    assert post_filter


@pytest.mark.parametrize("context", [
    {"tenantId": "t1"},
    {"tenantId": "t2"},
    {"role": "admin", "tenantId": "t2"},
    {"role": "user"},
    None,
])
def test_guard_agrees_with_evaluator(tenant_admin_policy, context):
    rows = [{"tenantId": "t1"}, {"tenantId": "t2"}, {"tenantId": None}]
    guard = build_guard(tenant_admin_policy, "select", context)

    if guard.deny_all:
        via_guard = []
    else:
        via_guard = [row for row in rows if all(row.get(f.field) == f.value for f in guard.filters)]

    assert via_guard == apply_rls(rows, tenant_admin_policy, context)
