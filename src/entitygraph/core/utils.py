"""
Utility functions for entitygraph.

Includes:
- Case conversion (snake_case -> camelCase)
- Default foreign key naming
- Include path handling ("posts.comments")
"""

from __future__ import annotations

import re
from typing import Sequence


# =============================================================================
# Case conversion utilities
# =============================================================================

_SNAKE_TO_CAMEL_PATTERN = re.compile(r'_([a-z0-9])')


def to_camel_case(name: str) -> str:
    """
    Convert snake_case to camelCase.

    Examples:
        blog_post -> blogPost
        BlogPost -> blogPost
        user -> user
    """
    camel = _SNAKE_TO_CAMEL_PATTERN.sub(lambda m: m.group(1).upper(), name)
    return camel[:1].lower() + camel[1:]


# =============================================================================
# Foreign keys
# =============================================================================


def default_foreign_key(entity_name: str) -> str:
    """
    Foreign key name used when a relation does not declare one.

    Examples:
        user -> userId
        blog_post -> blogPostId
    """
    return f"{to_camel_case(entity_name)}Id"


# =============================================================================
# Include paths
# =============================================================================


def should_include(relation_name: str, include: Sequence[str], eager: bool = False) -> bool:
    """True if a relation is eager or named by an include path (directly or as a prefix)."""
    if eager or relation_name in include:
        return True
    prefix = f"{relation_name}."
    return any(path.startswith(prefix) for path in include)


def nested_includes(relation_name: str, include: Sequence[str]) -> list[str]:
    """
    Strip a relation prefix from include paths.

    Example:
        nested_includes("posts", ["posts.comments", "posts.author", "profile"])
        -> ["comments", "author"]
    """
    prefix = f"{relation_name}."
    return [path[len(prefix):] for path in include if path.startswith(prefix)]
