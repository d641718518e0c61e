import pytest

from entitygraph import (
    EntityGraphConfig,
    RLSConfig,
    RLSPolicyDef,
    Resolver,
    ResolverContext,
    ViewResolver,
    computed,
    define_view,
    embed,
    owner_policy,
)
from entitygraph.core.errors import EntityNotRegisteredError, TargetNotFoundError


@pytest.fixture
def profile_view():
    return define_view("user-profile", {
        "id": "id",
        "posts": embed("post", "authorId", order_by={"views": "desc"}),
        "latestPost": embed("post", "authorId", limit=1, order_by={"views": "asc"}),
        "postCount": computed(
            lambda view, database, context: len(view["posts"]),
            mock=lambda: 0,
        ),
        "stats": {
            "totalViews": computed(lambda view, database, context: sum(p["views"] for p in view["posts"])),
            "label": "static",
        },
    }, endpoint="/api/users/:id/profile", params=["id"])


async def test_view_resolves_embeds_computed_and_nested(registry, db, profile_view):
    result = await ViewResolver(registry, db).resolve(profile_view, {"id": "u1"})

    assert result["id"] == "u1"
    assert [post["id"] for post in result["posts"]] == ["p1", "p2"]
    assert result["latestPost"]["id"] == "p2"
    assert result["postCount"] == 2
    assert result["stats"] == {"totalViews": 13, "label": "static"}
    assert db["post"].calls_to("find_first") == [{
        "where": {"authorId": {"equals": "u1"}},
        "take": 1,
        "orderBy": {"views": "asc"},
    }]


async def test_view_without_parameter_embeds_nothing(registry, db, profile_view):
    result = await ViewResolver(registry, db).resolve(profile_view, {})

    assert "id" not in result
    assert result["posts"] == []
    assert result["latestPost"] is None
    assert db["post"].calls == []


async def test_view_mock_mode(registry, db, profile_view):
    result = await ViewResolver(registry, db).resolve_mock(profile_view, {"id": "u1"})

    assert result["postCount"] == 0


async def test_view_context_params(registry, db):
    view = define_view("echo", {
        "requested": computed(lambda view, database, context: context.params["id"]),
    }, endpoint="/api/echo/:id")

    result = await ViewResolver(registry, db).resolve(view, {"id": "x1"}, ResolverContext(values={"userId": "u1"}))

    assert result == {"requested": "x1"}


async def test_view_embeds_respect_select_policy(registry, db, profile_view):
    registry.get("post").rls = owner_policy("authorId")

    result = await ViewResolver(registry, db).resolve(
        profile_view, {"id": "u1"}, ResolverContext(values={"userId": "u2"}),
    )

    assert result["posts"] == []
    assert result["latestPost"] is None


async def test_view_embed_target_must_exist(registry, make_db, profile_view):
    with pytest.raises(TargetNotFoundError):
        await ViewResolver(registry, make_db(user=[])).resolve(profile_view, {"id": "u1"})


async def test_resolver_view_by_name(registry, db, profile_view):
    registry.register_view(profile_view)
    resolver = Resolver(registry, db)

    result = await resolver.view("user-profile", {"id": "u2"})

    assert [post["id"] for post in result["posts"]] == ["p3"]
    with pytest.raises(EntityNotRegisteredError):
        await resolver.view("missing", {})


async def test_view_embeds_ignore_policy_when_rls_disabled(registry, db, profile_view):
    registry.get("post").rls = RLSPolicyDef(select=lambda row, context: False)
    registry.register_view(profile_view)
    resolver = Resolver(registry, db, config=EntityGraphConfig(rls=RLSConfig(enabled=False)))

    posts = await resolver.find_many("post")
    result = await resolver.view("user-profile", {"id": "u1"})

    assert len(posts) == 3
    assert [post["id"] for post in result["posts"]] == ["p1", "p2"]
    assert result["latestPost"]["id"] == "p2"


async def test_limited_embed_is_filtered_before_the_limit(registry, make_db):
    registry.get("post").rls = RLSPolicyDef(select=lambda row, context: row["status"] == "published")
    db = make_db(post=[
        {"id": "p1", "authorId": "u1", "views": 1, "status": "draft"},
        {"id": "p2", "authorId": "u1", "views": 2, "status": "draft"},
        {"id": "p3", "authorId": "u1", "views": 3, "status": "published"},
        {"id": "p4", "authorId": "u1", "views": 4, "status": "published"},
    ])
    view = define_view("top", {
        "firstTwo": embed("post", "authorId", limit=2, order_by={"views": "asc"}),
        "first": embed("post", "authorId", limit=1, order_by={"views": "asc"}),
    }, endpoint="/api/users/:id/top")

    result = await ViewResolver(registry, db).resolve(view, {"id": "u1"})

    assert [post["id"] for post in result["firstTwo"]] == ["p3", "p4"]
    assert result["first"]["id"] == "p3"
    assert all("take" not in query for query in db["post"].calls_to("find_many"))


async def test_embed_scope_is_pushed_into_query(registry, db, profile_view):
    registry.get("post").rls = owner_policy("authorId")

    result = await ViewResolver(registry, db).resolve(
        profile_view, {"id": "u1"}, ResolverContext(values={"userId": "u1"}),
    )

    assert [post["id"] for post in result["posts"]] == ["p1", "p2"]
    assert db["post"].calls_to("find_first") == [{
        "where": {"authorId": {"equals": "u1"}},
        "orderBy": {"views": "asc"},
        "take": 1,
    }]


async def test_embed_denied_for_anonymous_without_query(registry, db, profile_view):
    registry.get("post").rls = owner_policy("authorId")

    result = await ViewResolver(registry, db).resolve(profile_view, {"id": "u1"})

    assert result["posts"] == []
    assert result["latestPost"] is None
    assert db["post"].calls == []
