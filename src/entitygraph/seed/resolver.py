"""
Seed reference resolution against the records created so far in a seed run.

Resolution fails loudly: a marker that points past the records created so
far, or matches nothing, raises SeedReferenceError with the entity, the
number of records available and the index or criteria requested.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Iterator, Sequence

from ..core.errors import SeedReferenceError
from .ref import SeedLookup, SeedRef, SeedReference, is_seed_reference

Record = Mapping[str, Any]
CreatedRecords = Mapping[str, Sequence[Record]]


class CreatedRecordLedger(Mapping):
    """
    Records created so far in one seed run, per entity, in insertion order.

    Created empty at the start of a run, appended to after each insert and
    discarded at the end. Single writer; never shared across runs.
    """

    def __init__(self):
        self._records: dict[str, list[Record]] = {}

    def append(self, entity: str, record: Record) -> None:
        self._records.setdefault(entity, []).append(record)

    def count(self, entity: str) -> int:
        return len(self._records.get(entity, ()))

    def __getitem__(self, entity: str) -> Sequence[Record]:
        return self._records[entity]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        counts = ", ".join(f"{entity}={len(records)}" for entity, records in self._records.items())
        return f"CreatedRecordLedger({counts})"


def _extract(record: Record, marker: SeedReference, described: str) -> Any:
    if marker.field not in record:
        raise SeedReferenceError(
            f"Seed {described} error: '{marker.entity}' record has no field '{marker.field}'",
            entity=marker.entity,
        )
    return record[marker.field]


def resolve_ref(marker: SeedRef, created_records: CreatedRecords) -> Any:
    """
    Resolve ref(entity, index, field).

    Raises:
        SeedReferenceError: if fewer than index + 1 records exist
    """
    records = created_records.get(marker.entity)
    available = len(records) if records is not None else 0

    if available <= marker.index:
        valid = f"valid indexes 0..{available - 1}" if available else "no valid indexes"
        raise SeedReferenceError(
            f"Seed ref error: entity '{marker.entity}' has {available} records ({valid}), "
            f"but ref() requested index {marker.index}",
            entity=marker.entity,
        )

    return _extract(records[marker.index], marker, "ref")


def resolve_lookup(marker: SeedLookup, created_records: CreatedRecords) -> Any:
    """
    Resolve lookup(entity, where, field); the first matching record wins.

    Raises:
        SeedReferenceError: if the entity has no records yet, or none match
    """
    records = created_records.get(marker.entity)
    if records is None:
        raise SeedReferenceError(
            f"Seed lookup error: entity '{marker.entity}' has no records yet. "
            f"Ensure it is seeded before entities that reference it.",
            entity=marker.entity,
        )

    for record in records:
        if all(key in record and record[key] == value for key, value in marker.where.items()):
            return _extract(record, marker, "lookup")

    raise SeedReferenceError(
        f"Seed lookup error: no '{marker.entity}' record matches {json.dumps(marker.where, default=str)}",
        entity=marker.entity,
    )


def resolve_reference(marker: SeedReference, created_records: CreatedRecords) -> Any:
    if isinstance(marker, SeedRef):
        return resolve_ref(marker, created_records)
    if isinstance(marker, SeedLookup):
        return resolve_lookup(marker, created_records)
    raise SeedReferenceError(f"Unknown seed reference type: {type(marker).__name__}", entity=marker.entity)


def resolve_item(item: Record, created_records: CreatedRecords, entity_name: str) -> dict[str, Any]:
    """
    Copy a not-yet-inserted record, replacing top-level markers with values.

    Non-marker values, None included, pass through unchanged.

    Example:
        resolve_item({"title": "Hi", "authorId": ref("users", 0)}, ledger, "posts")
        # {"title": "Hi", "authorId": "u1"}
    """
    resolved: dict[str, Any] = {}
    for key, value in item.items():
        if is_seed_reference(value):
            try:
                resolved[key] = resolve_reference(value, created_records)
            except SeedReferenceError as e:
                raise SeedReferenceError(f"{e} (while seeding {entity_name}.{key})", entity=e.entity) from e
        else:
            resolved[key] = value
    return resolved
