from datetime import date, datetime

import pytest
from sqlalchemy import Column, Date, DateTime, Integer, MetaData, String, Table
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from entitygraph import ListQueryOptions, Resolver, ResolverContext, owner_policy
from entitygraph.adapters import SQLAlchemyDatabase
from entitygraph.core.errors import RLSDeniedError
from entitygraph.seed import ref, run_seed


@pytest.fixture
def metadata():
    metadata = MetaData()
    Table(
        "user", metadata,
        Column("id", String, primary_key=True),
        Column("name", String),
        Column("email", String),
        Column("role", String),
    )
    Table(
        "post", metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("title", String),
        Column("status", String),
        Column("views", Integer),
        Column("authorId", String),
        Column("publishedOn", Date, nullable=True),
        Column("createdAt", DateTime, nullable=True),
    )
    return metadata


@pytest.fixture
async def engine(metadata):
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def database(engine, metadata):
    database = SQLAlchemyDatabase(engine, metadata)

    users = database.get("user")
    await users.create({"data": {"id": "u1", "name": "Ada", "email": "ada@example.com", "role": "admin"}})
    await users.create({"data": {"id": "u2", "name": "Linus", "email": "linus@example.com", "role": "user"}})

    posts = database.get("post")
    await posts.create({"data": {"title": "Engines", "status": "published", "views": 10, "authorId": "u1"}})
    await posts.create({"data": {"title": "Notes", "status": "draft", "views": 3, "authorId": "u1"}})
    await posts.create({"data": {"title": "Kernels", "status": "published", "views": 7, "authorId": "u2"}})
    return database


async def test_tables_are_exposed_by_name(database):
    assert sorted(database.entity_names) == ["post", "user"]
    assert database.get("comment") is None
    assert "user" in database


async def test_find_first_and_find_many(database):
    posts = database.get("post")

    assert (await posts.find_first({"where": {"title": {"equals": "Notes"}}}))["views"] == 3
    assert await posts.find_first({"where": {"title": {"equals": "Missing"}}}) is None

    rows = await posts.find_many({"where": {"status": {"equals": "published"}}, "orderBy": {"views": "desc"}})
    assert [row["title"] for row in rows] == ["Engines", "Kernels"]

    page = await posts.find_many({"orderBy": {"views": "asc"}, "take": 1, "skip": 1})
    assert [row["title"] for row in page] == ["Kernels"]


@pytest.mark.parametrize("where,expected", [
    ({"views": {"gte": 7}}, ["Engines", "Kernels"]),
    ({"views": {"lt": 7}}, ["Notes"]),
    ({"authorId": {"in": ["u2"]}}, ["Kernels"]),
    ({"authorId": {"notIn": ["u2"]}}, ["Engines", "Notes"]),
    ({"status": {"not": "draft"}}, ["Engines", "Kernels"]),
    ({"title": {"contains": "ern"}}, ["Kernels"]),
    ({"title": {"startsWith": "En"}}, ["Engines"]),
    ({"title": {"endsWith": "es"}}, ["Engines", "Notes"]),
    ({"publishedOn": {"equals": None}}, ["Engines", "Notes", "Kernels"]),
    ({"nonexistent": {"equals": 1}}, []),
])
async def test_filter_operators(database, where, expected):
    rows = await database.get("post").find_many({"where": where, "orderBy": {"id": "asc"}})

    assert [row["title"] for row in rows] == expected


async def test_count(database):
    posts = database.get("post")

    assert await posts.count() == 3
    assert await posts.count({"where": {"authorId": {"equals": "u1"}}}) == 2


async def test_create_returns_stored_row_with_generated_key(database):
    created = await database.get("post").create({"data": {"title": "New", "views": "42", "authorId": "u2"}})

    assert created["id"] == 4
    assert created["views"] == 42


async def test_create_coerces_dates(database):
    created = await database.get("post").create({"data": {
        "title": "Dated",
        "publishedOn": "2024-03-01T10:00:00Z",
        "createdAt": "2024-03-01T10:00:00Z",
    }})

    assert created["publishedOn"] == date(2024, 3, 1)
    assert isinstance(created["createdAt"], datetime)


async def test_update_and_delete(database):
    posts = database.get("post")

    updated = await posts.update({"where": {"title": {"equals": "Notes"}}, "data": {"status": "published"}})
    assert updated["status"] == "published"
    assert await posts.update({"where": {"title": {"equals": "Missing"}}, "data": {"status": "x"}}) is None

    deleted = await posts.delete({"where": {"title": {"equals": "Notes"}}})
    assert deleted["title"] == "Notes"
    assert await posts.count() == 2
    assert await posts.delete({"where": {"title": {"equals": "Notes"}}}) is None


async def test_update_and_delete_require_filters(database):
    with pytest.raises(ValueError, match="Filters required"):
        await database.get("post").update({"where": {}, "data": {"status": "x"}})
    with pytest.raises(ValueError, match="Filters required"):
        await database.get("post").delete({})


async def test_resolver_over_sqlalchemy(database, registry):
    resolver = Resolver(registry, database, ResolverContext(values={"userId": "u1"}))

    user = await resolver.find_one("user", "u1")
    posts = await resolver.find_many("post", ListQueryOptions(
        where={"status": "published"},
        order_by={"views": "desc"},
        include=["author"],
    ))

    assert user["name"] == "Ada"
    assert [post["title"] for post in posts] == ["Engines", "Kernels"]
    assert [post["author"]["name"] for post in posts] == ["Ada", "Linus"]


async def test_rls_pushdown_over_sqlalchemy(database, registry):
    registry.get("post").rls = owner_policy("authorId")
    resolver = Resolver(registry, database, ResolverContext(values={"userId": "u2"}))

    posts = await resolver.find_many("post")

    assert [post["title"] for post in posts] == ["Kernels"]
    assert await resolver.count("post") == 1
    with pytest.raises(RLSDeniedError):
        await resolver.create("post", {"title": "Spoof", "authorId": "u1"})


async def test_seed_into_sqlalchemy(engine, metadata):
    database = SQLAlchemyDatabase(engine, {"user": metadata.tables["user"], "post": metadata.tables["post"]})

    ledger = await run_seed({
        "user": [{"id": "u1", "name": "Ada"}],
        "post": [{"title": "Hello", "authorId": ref("user", 0)}, {"title": "Again", "authorId": ref("user", 0)}],
    }, database)

    assert [post["id"] for post in ledger["post"]] == [1, 2]
    assert await database.get("post").count({"where": {"authorId": {"equals": "u1"}}}) == 2
