"""
Schema registry - holds entity and view declarations.

Answers lookup, relation-graph and ordering queries. Declarations are stored
as registered (not copied); re-registering a name overwrites it with a warning.

Usage:
    from entitygraph.core.registry import SchemaRegistry

    registry = SchemaRegistry()
    registry.register(User)
    registry.register(Post)

    user = registry.get("user")
    order = registry.get_entity_order()  # advisory only
"""

from __future__ import annotations

import logging
from typing import Optional

from .defs import EntityDef, RelationDef, ViewDef
from .errors import EntityNotRegisteredError

logger = logging.getLogger(__name__)


class SchemaRegistry:
    """
    Registry of entity and view declarations.

    Example:
        registry = SchemaRegistry()
        registry.register(User)
        registry.register_view(UserProfileView)
        registry.get_entities_referencing_entity("user")  # ["post", "comment"]
    """

    def __init__(self):
        self._entities: dict[str, EntityDef] = {}
        self._views: dict[str, ViewDef] = {}

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, entity: EntityDef) -> None:
        """Register an entity declaration (last write wins)."""
        if entity.name in self._entities:
            logger.warning(f"Schema '{entity.name}' is already registered. Overwriting.")
        self._entities[entity.name] = entity

    def register_view(self, view: ViewDef) -> None:
        """Register a view declaration (last write wins)."""
        if view.name in self._views:
            logger.warning(f"View '{view.name}' is already registered. Overwriting.")
        self._views[view.name] = view

    def clear(self) -> None:
        """Remove all entities and views."""
        self._entities.clear()
        self._views.clear()

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get(self, entity_name: str) -> Optional[EntityDef]:
        return self._entities.get(entity_name)

    def get_or_raise(self, entity_name: str) -> EntityDef:
        """
        Get an entity declaration by name.

        Raises:
            EntityNotRegisteredError: if the entity was never registered
        """
        entity = self._entities.get(entity_name)
        if entity is None:
            raise EntityNotRegisteredError(entity_name)
        return entity

    def get_view(self, view_name: str) -> Optional[ViewDef]:
        return self._views.get(view_name)

    def get_view_or_raise(self, view_name: str) -> ViewDef:
        view = self._views.get(view_name)
        if view is None:
            raise EntityNotRegisteredError(view_name, kind="View")
        return view

    def has(self, entity_name: str) -> bool:
        return entity_name in self._entities

    def has_view(self, view_name: str) -> bool:
        return view_name in self._views

    def all(self) -> list[EntityDef]:
        return list(self._entities.values())

    def all_views(self) -> list[ViewDef]:
        return list(self._views.values())

    @property
    def entity_count(self) -> int:
        return len(self._entities)

    @property
    def view_count(self) -> int:
        return len(self._views)

    # -------------------------------------------------------------------------
    # Relation graph
    # -------------------------------------------------------------------------

    def get_relations_for(self, entity_name: str) -> list[tuple[str, RelationDef]]:
        """Get (relation name, relation) pairs of an entity, or [] if unknown."""
        entity = self._entities.get(entity_name)
        if entity is None:
            return []
        return list(entity.relations.items())

    def get_entities_referencing_entity(self, target_entity_name: str) -> list[str]:
        """Get names of all entities with at least one relation targeting the given entity."""
        result: list[str] = []
        for name, entity in self._entities.items():
            if any(relation.target == target_entity_name for relation in entity.relations.values()):
                result.append(name)
        return result

    def get_entity_order(self) -> list[str]:
        """
        Get entity names with relation targets before their referrers.

        Depth-first postorder with a single visited set: cycles terminate
        silently, so under cyclic relations some dependency will be violated.
        Advisory only; seeding uses seed_order()/validate_seed_order().
        """
        visited: set[str] = set()
        result: list[str] = []

        def visit(entity_name: str):
            if entity_name in visited:
                return
            visited.add(entity_name)

            for relation in self._entities[entity_name].relations.values():
                if relation.target in self._entities:
                    visit(relation.target)

            result.append(entity_name)

        for entity_name in self._entities:
            visit(entity_name)

        return result
