"""
Seed module - deferred references and ordered bulk insertion.
"""

from __future__ import annotations

from .loader import SeedLoader, load_seed_data, load_seed_file
from .ref import SeedLookup, SeedRef, SeedReference, is_seed_reference, lookup, ref
from .resolver import CreatedRecordLedger, resolve_item, resolve_lookup, resolve_ref, resolve_reference
from .runner import referenced_entities, run_seed, seed_order, validate_seed_order

__all__ = [
    "SeedReference",
    "SeedRef",
    "SeedLookup",
    "ref",
    "lookup",
    "is_seed_reference",
    "CreatedRecordLedger",
    "resolve_ref",
    "resolve_lookup",
    "resolve_reference",
    "resolve_item",
    "referenced_entities",
    "seed_order",
    "validate_seed_order",
    "run_seed",
    "SeedLoader",
    "load_seed_data",
    "load_seed_file",
]
