"""
Pydantic models for database capability queries.

The Database capability accepts plain dicts of the shape:

    {
        "where": {"authorId": {"equals": "u1"}, "status": {"in": ["draft", "live"]}},
        "take": 10,
        "skip": 0,
        "orderBy": {"createdAt": "desc"},
    }

EntityQuery is the normalized internal form; to_query() renders the dict
shape and from_query() parses it back.
"""

from __future__ import annotations

from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, Field


FilterOp = Literal[
    "equals", "not", "in", "notIn", "lt", "lte", "gt", "gte", "contains", "startsWith", "endsWith",
]

SUPPORTED_OPS = frozenset(FilterOp.__args__)


class NormalizedFilter(BaseModel):
    """
    Normalized filter representation.

    Input: {"name": {"contains": "test"}}
    Normalized: NormalizedFilter(field="name", op="contains", value="test")
    """
    field: str
    op: FilterOp
    value: Any


class NormalizedOrder(BaseModel):
    """
    Normalized order representation.

    Input: {"createdAt": "desc"}
    Normalized: NormalizedOrder(field="createdAt", dir="desc")
    """
    field: str
    dir: Literal["asc", "desc"] = "asc"


class EntityQuery(BaseModel):
    """Query against one entity of the database capability."""
    filters: list[NormalizedFilter] = Field(default_factory=list)
    order: list[NormalizedOrder] = Field(default_factory=list)
    limit: Optional[int] = Field(default=None, ge=0)
    offset: int = Field(default=0, ge=0)

    def where(self, field: str, op: FilterOp, value: Any) -> EntityQuery:
        """Return a copy with one more filter appended."""
        return self.model_copy(
            update={"filters": [*self.filters, NormalizedFilter(field=field, op=op, value=value)]}
        )

    def to_query(self) -> dict[str, Any]:
        """Render the capability's dict query shape."""
        where: dict[str, dict[str, Any]] = {}
        for f in self.filters:
            where.setdefault(f.field, {})[f.op] = f.value

        query: dict[str, Any] = {"where": where}
        if self.limit is not None:
            query["take"] = self.limit
        if self.offset:
            query["skip"] = self.offset
        if self.order:
            query["orderBy"] = {o.field: o.dir for o in self.order}
        return query

    @classmethod
    def from_query(cls, query: Optional[Mapping[str, Any]]) -> EntityQuery:
        """Parse the capability's dict query shape."""
        if not query:
            return cls()

        filters: list[NormalizedFilter] = []
        for field_name, condition in (query.get("where") or {}).items():
            for op, value in build_condition(condition).items():
                filters.append(NormalizedFilter(field=field_name, op=op, value=value))

        return cls(
            filters=filters,
            order=normalize_order(query.get("orderBy")),
            limit=query.get("take"),
            offset=query.get("skip") or 0,
        )


def build_condition(value: Any) -> dict[str, Any]:
    """
    Turn a simple where value into an operator dict.

    Operator dicts pass through, lists become "in", anything else "equals".
    """
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return {"in": list(value)}
    return {"equals": value}


def build_where_clause(where: Optional[Mapping[str, Any]]) -> dict[str, dict[str, Any]]:
    """
    Build a where clause from a simple object.

    Example:
        {"role": "admin", "id": ["a", "b"], "age": {"gte": 18}}
        ->
        {"role": {"equals": "admin"}, "id": {"in": ["a", "b"]}, "age": {"gte": 18}}
    """
    return {key: build_condition(value) for key, value in (where or {}).items()}


def normalize_order(order_by: Any) -> list[NormalizedOrder]:
    """
    Normalize ordering input.

    Accepts {"field": "asc"|"desc"}, a list of such dicts, or a list of
    "field"/"-field" strings.
    """
    if not order_by:
        return []
    if isinstance(order_by, Mapping):
        return [NormalizedOrder(field=k, dir=v) for k, v in order_by.items()]

    result: list[NormalizedOrder] = []
    for item in order_by:
        if isinstance(item, str):
            if item.startswith("-"):
                result.append(NormalizedOrder(field=item[1:], dir="desc"))
            else:
                result.append(NormalizedOrder(field=item, dir="asc"))
        else:
            result.extend(normalize_order(item))
    return result
