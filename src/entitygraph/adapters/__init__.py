"""
Adapters module - bindings of the Database capability to storage backends.
"""

from __future__ import annotations

from .sqlalchemy import SQLAlchemyDatabase, SQLAlchemyEntity

__all__ = [
    "SQLAlchemyDatabase",
    "SQLAlchemyEntity",
]
