"""
Blog example - declarations, seeding and resolution over SQLite.

Usage:
    python example/blog/main.py
"""

import asyncio
import logging
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from entitygraph import (
    EntityQueryOptions,
    FieldDef,
    ListQueryOptions,
    Resolver,
    ResolverContext,
    SchemaRegistry,
    belongs_to,
    computed,
    define_entity,
    define_view,
    embed,
    has_many,
    load_config,
    load_seed_file,
    owner_policy,
    run_seed,
)
from entitygraph.adapters import SQLAlchemyDatabase

HERE = Path(__file__).parent

logger = logging.getLogger("blog")


def build_registry() -> SchemaRegistry:
    registry = SchemaRegistry()

    registry.register(define_entity("user", {
        "name": FieldDef(type="string", hint="person.fullName"),
        "email": FieldDef(type="email", unique=True),
        "role": FieldDef(type="enum", values=["admin", "user"]),
        "posts": has_many("post", "authorId", order_by={"views": "desc"}),
        "postCount": computed(lambda user, db, ctx: len(user.get("posts") or [])),
    }, timestamps=False))

    registry.register(define_entity("post", {
        "title": FieldDef(type="string"),
        "status": FieldDef(type="enum", values=["draft", "published"]),
        "views": FieldDef(type="int", min=0),
        "authorId": FieldDef(type="ref"),
        "author": belongs_to("user", "authorId"),
        "comments": has_many("comment", "postId"),
    }, rls=owner_policy("authorId", bypass_roles=["admin"]), timestamps=False))

    registry.register(define_entity("comment", {
        "body": FieldDef(type="string"),
        "postId": FieldDef(type="ref"),
        "authorId": FieldDef(type="ref"),
        "post": belongs_to("post", "postId"),
        "author": belongs_to("user", "authorId"),
    }, timestamps=False))

    registry.register_view(define_view("user-profile", {
        "id": "id",
        "posts": embed("post", "authorId", order_by={"views": "desc"}),
        "totalViews": computed(lambda view, db, ctx: sum(p["views"] for p in view["posts"]), mock=lambda: 0),
    }, endpoint="/api/users/:id/profile", params=["id"]))

    return registry


async def build_database() -> SQLAlchemyDatabase:
    metadata = MetaData()
    Table(
        "user", metadata,
        Column("id", String, primary_key=True),
        Column("name", String),
        Column("email", String, unique=True),
        Column("role", String),
    )
    Table(
        "post", metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("title", String),
        Column("status", String),
        Column("views", Integer),
        Column("authorId", String),
    )
    Table(
        "comment", metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("body", String),
        Column("postId", Integer),
        Column("authorId", String),
    )

    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    return SQLAlchemyDatabase(engine, metadata)


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    config = load_config(HERE / "entitygraph.yaml")
    registry = build_registry()
    database = await build_database()

    seed_data = load_seed_file(HERE / config.seed.data_file)
    await run_seed(seed_data, database, order=config.seed.entity_order or None)

    linus = Resolver(registry, database, ResolverContext(values={"userId": "u2", "role": "user"}), config)
    visible = await linus.find_many("post", ListQueryOptions(include=["author", "comments"]))
    for post in visible:
        logger.info(f"Linus sees '{post['title']}' by {post['author']['name']} ({len(post['comments'])} comments)")

    ada = linus.with_context(values={"userId": "u1", "role": "admin"})
    user = await ada.find_one("user", "u1", EntityQueryOptions(include=["posts"]))
    logger.info(f"{user['name']} wrote {user['postCount']} posts")

    profile = await ada.view("user-profile", {"id": "u1"})
    logger.info(f"Profile of u1: {len(profile['posts'])} posts, {profile['totalViews']} views")


if __name__ == "__main__":
    asyncio.run(main())
