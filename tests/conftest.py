from __future__ import annotations

import asyncio
import copy
from typing import Any, Optional

import pytest

from entitygraph import (
    FieldDef,
    SchemaRegistry,
    belongs_to,
    define_entity,
    has_many,
    has_one,
)


# =============================================================================
# In-memory Database capability
# =============================================================================


def _matches_condition(value: Any, condition: dict[str, Any]) -> bool:
    for op, expected in condition.items():
        if op == "equals" and value != expected:
            return False
        if op == "not" and value == expected:
            return False
        if op == "in" and value not in expected:
            return False
        if op == "notIn" and value in expected:
            return False
        if op in ("lt", "lte", "gt", "gte"):
            if value is None:
                return False
            if op == "lt" and not value < expected:
                return False
            if op == "lte" and not value <= expected:
                return False
            if op == "gt" and not value > expected:
                return False
            if op == "gte" and not value >= expected:
                return False
        if op == "contains" and (value is None or expected not in value):
            return False
        if op == "startsWith" and (value is None or not value.startswith(expected)):
            return False
        if op == "endsWith" and (value is None or not value.endswith(expected)):
            return False
    return True


def _matches(row: dict[str, Any], where: Optional[dict[str, Any]]) -> bool:
    return all(_matches_condition(row.get(field), condition) for field, condition in (where or {}).items())


class FakeTable:
    """One entity of the fake capability. Records every call; returns copies."""

    def __init__(self, name: str, rows: Optional[list[dict[str, Any]]] = None):
        self.name = name
        self.rows = [dict(row) for row in rows or []]
        self.calls: list[tuple[str, Any]] = []
        self._next_id = len(self.rows) + 1

    def _select(self, query: Optional[dict[str, Any]]) -> list[dict[str, Any]]:
        query = query or {}
        rows = [row for row in self.rows if _matches(row, query.get("where"))]

        for field, direction in reversed(list((query.get("orderBy") or {}).items())):
            rows.sort(key=lambda row: (row.get(field) is None, row.get(field)), reverse=direction == "desc")

        skip = query.get("skip") or 0
        take = query.get("take")
        rows = rows[skip:]
        if take is not None:
            rows = rows[:take]
        return [copy.deepcopy(row) for row in rows]

    def find_first(self, query=None):
        self.calls.append(("find_first", query))
        rows = self._select(query)
        return rows[0] if rows else None

    def find_many(self, query=None):
        self.calls.append(("find_many", query))
        return self._select(query)

    def count(self, query=None):
        self.calls.append(("count", query))
        return len(self._select({"where": (query or {}).get("where")}))

    def create(self, args):
        self.calls.append(("create", args))
        row = dict(args["data"])
        if "id" not in row:
            row["id"] = f"{self.name}-{self._next_id}"
            self._next_id += 1
        self.rows.append(row)
        return copy.deepcopy(row)

    def update(self, args):
        self.calls.append(("update", args))
        matched = [row for row in self.rows if _matches(row, args.get("where"))]
        for row in matched:
            row.update(args.get("data") or {})
        return copy.deepcopy(matched[0]) if matched else None

    def delete(self, args):
        self.calls.append(("delete", args))
        matched = [row for row in self.rows if _matches(row, args.get("where"))]
        self.rows = [row for row in self.rows if row not in matched]
        return copy.deepcopy(matched[0]) if matched else None

    def calls_to(self, method: str) -> list[Any]:
        return [query for name, query in self.calls if name == method]


class AsyncFakeTable(FakeTable):
    """Same as FakeTable, but every operation returns an awaitable."""

    def __getattribute__(self, name):
        attr = super().__getattribute__(name)
        if name in ("find_first", "find_many", "count", "create", "update", "delete"):
            async def wrapper(*args, **kwargs):
                await asyncio.sleep(0)
                return attr(*args, **kwargs)
            return wrapper
        return attr


class ReadOnlyTable:
    """Capability entity without write operations."""

    def __init__(self, rows=None):
        self.rows = [dict(row) for row in rows or []]

    def find_first(self, query=None):
        rows = [row for row in self.rows if _matches(row, (query or {}).get("where"))]
        return dict(rows[0]) if rows else None

    def find_many(self, query=None):
        return [dict(row) for row in self.rows if _matches(row, (query or {}).get("where"))]

    def count(self, query=None):
        return len(self.find_many(query))


class FakeDatabase(dict):
    """Entity name -> FakeTable."""

    def total_calls(self) -> int:
        return sum(len(table.calls) for table in self.values() if isinstance(table, FakeTable))

    def reset_calls(self) -> None:
        for table in self.values():
            if isinstance(table, FakeTable):
                table.calls.clear()


@pytest.fixture
def make_db():
    """Build a FakeDatabase: make_db(user=[...], post=[...], table_class=FakeTable)."""

    def factory(table_class=FakeTable, **tables):
        return FakeDatabase({name: table_class(name, rows) for name, rows in tables.items()})

    return factory


@pytest.fixture
def async_table_class():
    return AsyncFakeTable


@pytest.fixture
def read_only_table_class():
    return ReadOnlyTable


# =============================================================================
# Blog schema
# =============================================================================


@pytest.fixture
def registry():
    registry = SchemaRegistry()

    registry.register(define_entity("user", {
        "name": FieldDef(type="string", hint="person.fullName"),
        "email": FieldDef(type="email", unique=True),
        "role": FieldDef(type="enum", values=["admin", "user"]),
        "profile": has_one("profile"),
        "posts": has_many("post", "authorId"),
    }))

    registry.register(define_entity("profile", {
        "bio": FieldDef(type="string", nullable=True),
        "userId": FieldDef(type="ref"),
        "user": belongs_to("user"),
    }))

    registry.register(define_entity("post", {
        "title": FieldDef(type="string"),
        "status": FieldDef(type="enum", values=["draft", "published"]),
        "views": FieldDef(type="int", min=0),
        "authorId": FieldDef(type="ref"),
        "author": belongs_to("user", "authorId"),
        "comments": has_many("comment", "postId"),
        "tags": has_many("tag", through="postTag", foreign_key="postId", other_key="tagId"),
    }))

    registry.register(define_entity("comment", {
        "body": FieldDef(type="string"),
        "postId": FieldDef(type="ref"),
        "authorId": FieldDef(type="ref"),
        "post": belongs_to("post"),
        "author": belongs_to("user", "authorId"),
    }))

    registry.register(define_entity("tag", {
        "name": FieldDef(type="string"),
    }))

    registry.register(define_entity("postTag", {
        "postId": FieldDef(type="ref"),
        "tagId": FieldDef(type="ref"),
    }, timestamps=False))

    return registry


@pytest.fixture
def blog_rows():
    return {
        "user": [
            {"id": "u1", "name": "Ada", "email": "ada@example.com", "role": "admin"},
            {"id": "u2", "name": "Linus", "email": "linus@example.com", "role": "user"},
        ],
        "profile": [
            {"id": "pr1", "bio": "Mathematician", "userId": "u1"},
        ],
        "post": [
            {"id": "p1", "title": "Engines", "status": "published", "views": 10, "authorId": "u1"},
            {"id": "p2", "title": "Notes", "status": "draft", "views": 3, "authorId": "u1"},
            {"id": "p3", "title": "Kernels", "status": "published", "views": 7, "authorId": "u2"},
        ],
        "comment": [
            {"id": "c1", "body": "Great", "postId": "p1", "authorId": "u2"},
            {"id": "c2", "body": "Thanks", "postId": "p1", "authorId": "u1"},
            {"id": "c3", "body": "Nice", "postId": "p3", "authorId": "u1"},
        ],
        "tag": [
            {"id": "t1", "name": "history"},
            {"id": "t2", "name": "computing"},
        ],
        "postTag": [
            {"id": "pt1", "postId": "p1", "tagId": "t1"},
            {"id": "pt2", "postId": "p1", "tagId": "t2"},
            {"id": "pt3", "postId": "p3", "tagId": "t2"},
        ],
    }


@pytest.fixture
def db(make_db, blog_rows):
    return make_db(**blog_rows)
