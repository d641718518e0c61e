"""
Configuration loading for entitygraph projects.

entitygraph.yaml:

    resolver:
      max_depth: 3
      mode: resolve
    rls:
      enabled: true
      pushdown: true
      debug: false
    seed:
      entity_order: [users, posts, comments]
      data_file: seed.yaml
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
import yaml

from .core.defs import DEFAULT_MAX_DEPTH
from .core.errors import GraphConfigError

RESOLVER_MODES = ("resolve", "seed")


@dataclass
class ResolverConfig:
    """Relation and computed-field resolution settings."""
    max_depth: int = DEFAULT_MAX_DEPTH
    mode: str = "resolve"


@dataclass
class RLSConfig:
    """Row-level security settings."""
    enabled: bool = True
    pushdown: bool = True
    debug: bool = False


@dataclass
class SeedConfig:
    """Bulk seed settings."""
    entity_order: list[str] = field(default_factory=list)
    data_file: Optional[str] = None


@dataclass
class EntityGraphConfig:
    """Main entitygraph configuration."""
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    rls: RLSConfig = field(default_factory=RLSConfig)
    seed: SeedConfig = field(default_factory=SeedConfig)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "EntityGraphConfig":
        """Create config from dictionary."""
        data = data or {}

        resolver_data = data.get("resolver") or {}
        resolver = ResolverConfig(
            max_depth=resolver_data.get("max_depth", DEFAULT_MAX_DEPTH),
            mode=resolver_data.get("mode", "resolve"),
        )
        if resolver.mode not in RESOLVER_MODES:
            raise GraphConfigError(f"resolver.mode must be one of {list(RESOLVER_MODES)}, got '{resolver.mode}'")
        if not isinstance(resolver.max_depth, int) or resolver.max_depth < 0:
            raise GraphConfigError(f"resolver.max_depth must be a non-negative integer, got {resolver.max_depth!r}")

        rls_data = data.get("rls") or {}
        rls = RLSConfig(
            enabled=rls_data.get("enabled", True),
            pushdown=rls_data.get("pushdown", True),
            debug=rls_data.get("debug", False),
        )

        seed_data = data.get("seed") or {}
        seed = SeedConfig(
            entity_order=list(seed_data.get("entity_order") or []),
            data_file=seed_data.get("data_file"),
        )

        return cls(resolver=resolver, rls=rls, seed=seed)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for YAML serialization."""
        return {
            "resolver": {
                "max_depth": self.resolver.max_depth,
                "mode": self.resolver.mode,
            },
            "rls": {
                "enabled": self.rls.enabled,
                "pushdown": self.rls.pushdown,
                "debug": self.rls.debug,
            },
            "seed": {
                "entity_order": self.seed.entity_order,
                "data_file": self.seed.data_file,
            },
        }

    def save(self, path: Path | str = "entitygraph.yaml") -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        content = yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)
        path.write_text(content)


def load_config(path: Path | str = "entitygraph.yaml") -> EntityGraphConfig | None:
    """Load configuration from YAML file."""
    path = Path(path)
    if not path.exists():
        return None

    data = yaml.safe_load(path.read_text())
    return EntityGraphConfig.from_dict(data)
