"""
YAML seed files.

Seed data is a mapping of entity name to a list of records. Two tags create
markers:

    users:
      - {id: u1, email: admin@example.com}
    posts:
      - title: Welcome
        authorId: !ref [users, 0]
        authorEmail: !ref [users, 0, email]
    rolePermissions:
      - permissionId: !lookup {entity: permissions, where: {key: "projects:read:all"}}
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .ref import SeedLookup, SeedRef, lookup, ref


class SeedLoader(yaml.SafeLoader):
    """SafeLoader that understands !ref and !lookup."""
    pass


def _construct_ref(loader: SeedLoader, node: yaml.Node) -> SeedRef:
    if not isinstance(node, yaml.SequenceNode):
        raise yaml.constructor.ConstructorError(
            None, None, "!ref expects a sequence [entity, index, field?]", node.start_mark
        )

    args = loader.construct_sequence(node, deep=True)
    if len(args) not in (2, 3) or not isinstance(args[1], int):
        raise yaml.constructor.ConstructorError(
            None, None, f"!ref expects [entity, index, field?], got {args!r}", node.start_mark
        )

    try:
        return ref(*args)
    except ValueError as e:
        raise yaml.constructor.ConstructorError(None, None, str(e), node.start_mark) from e


def _construct_lookup(loader: SeedLoader, node: yaml.Node) -> SeedLookup:
    if not isinstance(node, yaml.MappingNode):
        raise yaml.constructor.ConstructorError(
            None, None, "!lookup expects a mapping {entity, where, field?}", node.start_mark
        )

    args = loader.construct_mapping(node, deep=True)
    unknown = set(args) - {"entity", "where", "field"}
    if "entity" not in args or not isinstance(args.get("where"), dict) or unknown:
        raise yaml.constructor.ConstructorError(
            None, None, f"!lookup expects {{entity, where, field?}}, got {args!r}", node.start_mark
        )

    return lookup(args["entity"], args["where"], args.get("field", "id"))


SeedLoader.add_constructor("!ref", _construct_ref)
SeedLoader.add_constructor("!lookup", _construct_lookup)


def load_seed_data(content: str) -> dict[str, list[dict[str, Any]]]:
    """Parse seed data from a YAML string."""
    data = yaml.load(content, Loader=SeedLoader)
    if data is None:
        return {}
    if not isinstance(data, dict) or not all(isinstance(v, list) for v in data.values()):
        raise ValueError("Seed data must be a mapping of entity name to a list of records")
    return data


def load_seed_file(path: Path | str) -> dict[str, list[dict[str, Any]]]:
    """
    Load seed data from a YAML file.

    Raises:
        FileNotFoundError: if the file does not exist
        yaml.YAMLError: on invalid YAML or malformed tags
    """
    path = Path(path)
    return load_seed_data(path.read_text())
