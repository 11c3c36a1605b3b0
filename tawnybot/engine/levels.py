"""
tawnybot.engine.levels — Typed Level Table & Resolver
======================================================

Pure functions only.  No Discord I/O, no DB I/O.

A guild's level table maps a level number (>= 1) to the role that marks it
and the message count needed to reach it.  Level 0 is implicit and means
"no level role".  Targets need not grow with the level number; resolution
only compares targets against the count.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

__all__ = [
    "GuildLevelConfig",
    "LevelDef",
    "dump_levels",
    "level_role_ids",
    "load_levels",
    "resolve",
    "role_for",
]


@dataclass(frozen=True, slots=True)
class LevelDef:
    """One row of a level table."""

    role_id: str
    target: int
    role_name: str


@dataclass(frozen=True, slots=True)
class GuildLevelConfig:
    """Immutable per-guild level table.

    Mutations return a new instance so a cached config can be swapped in
    one assignment.
    """

    guild_id: str
    display_name: str
    levels: Mapping[int, LevelDef] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "levels", MappingProxyType(dict(self.levels)))

    def with_level(self, level: int, level_def: LevelDef) -> GuildLevelConfig:
        levels = dict(self.levels)
        levels[level] = level_def
        return GuildLevelConfig(self.guild_id, self.display_name, levels)

    def without_level(self, level: int) -> GuildLevelConfig:
        levels = {k: v for k, v in self.levels.items() if k != level}
        return GuildLevelConfig(self.guild_id, self.display_name, levels)

    def level_for_role(self, role_id: str) -> int | None:
        """Return the level backed by *role_id*, if any."""
        for level, level_def in self.levels.items():
            if level_def.role_id == role_id:
                return level
        return None


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------
def resolve(config: GuildLevelConfig, message_count: int) -> int:
    """Highest level whose target is <= *message_count*, or 0.

    Ties on target go to the higher level number, so
    ``{1: target 0, 2: target 0}`` resolves any count to 2.
    """
    best = 0
    for level, level_def in config.levels.items():
        if level_def.target <= message_count and level > best:
            best = level
    return best


def role_for(config: GuildLevelConfig, level: int) -> LevelDef | None:
    if level <= 0:
        return None
    return config.levels.get(level)


def level_role_ids(config: GuildLevelConfig) -> set[str]:
    """Every role id that backs some level in this guild."""
    return {level_def.role_id for level_def in config.levels.values()}


# ---------------------------------------------------------------------------
# Storage edge — JSON ⇄ typed records
# ---------------------------------------------------------------------------
def dump_levels(levels: Mapping[int, LevelDef]) -> str:
    """Serialize a level table for the ``guilds.levels`` column."""
    return json.dumps(
        {
            str(level): {
                "role_id": d.role_id,
                "target": d.target,
                "role_name": d.role_name,
            }
            for level, d in sorted(levels.items())
        },
        sort_keys=True,
    )


def load_levels(raw: str | None) -> dict[int, LevelDef]:
    """Parse the ``guilds.levels`` column.

    Raises
    ------
    ValueError
        If the JSON is malformed or an entry is missing a field.
    """
    if not raw:
        return {}
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"levels must be a JSON object, got {type(data).__name__}")

    levels: dict[int, LevelDef] = {}
    for key, entry in data.items():
        try:
            levels[int(key)] = LevelDef(
                role_id=str(entry["role_id"]),
                target=int(entry["target"]),
                role_name=str(entry["role_name"]),
            )
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Malformed level entry {key!r}: {entry!r}") from exc
    return levels
