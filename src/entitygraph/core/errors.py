"""
Custom exceptions for the entitygraph system.

Configuration errors (GraphConfigError) are raised eagerly at declaration or
build time and are meant to be fatal. Resolution errors (ResolutionError) are
raised per call and are meant to be caught by the caller. RLS denials are not
errors: the evaluator returns a boolean, only the Resolver's write paths turn
a denial into RLSDeniedError.
"""

from __future__ import annotations

from typing import Optional


class EntityGraphError(Exception):
    """Base exception for all entitygraph errors."""
    pass


# =============================================================================
# Configuration errors
# =============================================================================


class GraphConfigError(EntityGraphError):
    """Raised when entity declarations are invalid."""
    pass


class UnknownRelationTypeError(GraphConfigError):
    """Raised when a relation declares a kind other than hasOne/hasMany/belongsTo."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"Unknown relation type: {kind}")


class CircularDependencyError(GraphConfigError):
    """Raised when a dependency graph that must be acyclic contains a cycle."""

    def __init__(self, node: str, what: str = "computed fields"):
        self.node = node
        super().__init__(f"Circular dependency detected in {what}: {node}")


class EntityNotRegisteredError(GraphConfigError):
    """Raised when an entity or view is looked up but was never registered."""

    def __init__(self, name: str, kind: str = "Entity"):
        self.name = name
        super().__init__(f"{kind} schema '{name}' not found. Did you forget to register it?")


# =============================================================================
# Resolution errors
# =============================================================================


class ResolutionError(EntityGraphError):
    """Raised when a single resolution call fails."""
    pass


class TargetNotFoundError(ResolutionError):
    """Raised when an entity is absent from the database capability."""

    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(f"Target entity '{entity}' not found in database")


class OperationNotSupportedError(ResolutionError):
    """Raised when the database capability lacks a write operation."""

    def __init__(self, entity: str, operation: str):
        self.entity = entity
        self.operation = operation
        super().__init__(f"Entity '{entity}' does not support {operation} operation")


class SeedReferenceError(ResolutionError):
    """Raised when a ref()/lookup() marker cannot be resolved from the ledger."""

    def __init__(self, message: str, entity: Optional[str] = None):
        self.entity = entity
        super().__init__(message)


class SeedOrderError(ResolutionError):
    """Raised when a seed order would insert an entity before the ones it references."""
    pass


# =============================================================================
# Access control
# =============================================================================


class RLSDeniedError(EntityGraphError):
    """Raised by write paths when a row-level security check denies the operation."""

    code = "RLS_DENIED"

    def __init__(self, operation: str, entity: str):
        self.operation = operation
        self.entity = entity
        super().__init__(f"Access denied: {operation} on {entity}")
