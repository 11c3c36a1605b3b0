"""
tawnybot.services.guild_service — Guild Config Store
=====================================================

Persists per-guild level tables in the ``guilds`` table and fronts them with
a :class:`~tawnybot.engine.cache.GuildConfigCache`.

Read path: cache → ``guilds`` row → guild directory (lazy creation).
Write path: re-read the row inside the write transaction, apply the change,
persist the *whole* serialized ``levels`` map, then swap the cache entry.

The first messages from a new guild often arrive together, so the row is
created with ``INSERT … ON CONFLICT DO NOTHING`` and every caller reads back
whichever insert won.

The module-level functions are synchronous and meant to run through
:func:`~tawnybot.database.engine.run_db`.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

from tawnybot.database.engine import conflict_insert, get_session, run_db
from tawnybot.database.models import GuildRow
from tawnybot.engine.levels import GuildLevelConfig, LevelDef, dump_levels, load_levels
from tawnybot.errors import GuildNotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from tawnybot.engine.cache import GuildConfigCache
    from tawnybot.platform import GuildDirectory

logger = logging.getLogger(__name__)

# Returns the changed config, or None to leave the row untouched
LevelChange = Callable[[GuildLevelConfig], GuildLevelConfig | None]


# ---------------------------------------------------------------------------
# Row helpers (sync — run via run_db)
# ---------------------------------------------------------------------------
def _decode(row: GuildRow) -> GuildLevelConfig:
    return GuildLevelConfig(
        guild_id=row.id,
        display_name=row.name,
        levels=load_levels(row.levels),
    )


def load_guild_row(engine: Engine, guild_id: str) -> GuildLevelConfig | None:
    """Read and decode one ``guilds`` row, or None if absent."""
    with get_session(engine) as session:
        row = session.get(GuildRow, guild_id)
        return _decode(row) if row is not None else None


def create_guild_row(engine: Engine, config: GuildLevelConfig) -> GuildLevelConfig:
    """Insert *config* unless the guild already has a row; return the stored row.

    Safe to race: losing inserts are dropped by the database and read back
    the winner's row.
    """
    insert = conflict_insert(engine)
    stmt = insert(GuildRow).values(
        id=config.guild_id,
        name=config.display_name,
        levels=dump_levels(config.levels),
    ).on_conflict_do_nothing(index_elements=[GuildRow.id])

    with get_session(engine) as session:
        result = session.execute(stmt)
        if result.rowcount == 1:
            logger.info(
                "Created level config for guild %s (%s)",
                config.display_name, config.guild_id,
            )
        return _decode(session.get(GuildRow, config.guild_id))


def update_guild_levels(
    engine: Engine, guild_id: str, change: LevelChange
) -> tuple[GuildLevelConfig, bool] | None:
    """Apply *change* to the stored level table in one transaction.

    The row is read inside the write transaction (``SELECT … FOR UPDATE`` on
    PostgreSQL), so edits from other processes are never overwritten with a
    stale map.  Exceptions raised by *change* roll the transaction back.

    Returns ``(config, changed)``, or None if the guild has no row.
    """
    with get_session(engine) as session:
        row = session.get(GuildRow, guild_id, with_for_update=True)
        if row is None:
            return None
        current = _decode(row)
        updated = change(current)
        if updated is None:
            return current, False
        row.name = updated.display_name
        row.levels = dump_levels(updated.levels)
        return updated, True


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------
class GuildConfigStore:
    """Per-guild level tables, cached in memory and persisted as JSON.

    Parameters
    ----------
    engine:
        SQLAlchemy engine for the ``guilds`` table.
    cache:
        Shared :class:`GuildConfigCache`; injected so the bot and tests
        decide its lifetime.
    directory:
        Guild directory used to name a guild the first time it is seen.
    """

    def __init__(
        self,
        engine: Engine,
        cache: GuildConfigCache,
        directory: GuildDirectory,
    ) -> None:
        self._engine = engine
        self._cache = cache
        self._directory = directory
        # Serializes level edits within this process (SQLite has no row locks)
        self._write_lock = threading.Lock()

    async def get_or_create(self, guild_id: str) -> GuildLevelConfig:
        """Return the guild's config, creating an empty one on first use.

        Raises
        ------
        LookupError
            If the guild directory has no such guild.
        """
        config = self._cache.get(guild_id)
        if config is not None:
            return config

        config = await run_db(load_guild_row, self._engine, guild_id)
        if config is None:
            guild = await self._directory.get_guild(guild_id)
            config = await run_db(
                create_guild_row,
                self._engine,
                GuildLevelConfig(guild_id=guild_id, display_name=guild.name),
            )

        self._cache.put(config)
        return config

    async def set_level(
        self,
        guild_id: str,
        level: int,
        role_id: str,
        target: int,
        role_name: str,
    ) -> GuildLevelConfig:
        """Upsert one level.  Target ordering is not validated.

        Raises
        ------
        ValidationError
            If ``level < 1``, ``target < 0`` or *role_id* already backs a
            different level in this guild.
        """
        if level < 1:
            raise ValidationError("Level must be 1 or higher.")
        if target < 0:
            raise ValidationError("Target must be 0 or higher.")

        def change(config: GuildLevelConfig) -> GuildLevelConfig:
            existing = config.level_for_role(role_id)
            if existing is not None and existing != level:
                raise ValidationError(
                    f"Role {role_name} already backs level {existing}. "
                    f"Remove level {existing} first."
                )
            return config.with_level(level, LevelDef(role_id, target, role_name))

        updated, _ = await self._write(guild_id, change)
        logger.info(
            "Guild %s: level %d → role %s (%s), target %d",
            guild_id, level, role_name, role_id, target,
        )
        return updated

    async def remove_level(self, guild_id: str, level: int) -> bool:
        """Delete one level.  Returns False (and writes nothing) if absent."""

        def change(config: GuildLevelConfig) -> GuildLevelConfig | None:
            if level not in config.levels:
                return None
            return config.without_level(level)

        _, removed = await self._write(guild_id, change)
        if removed:
            logger.info("Guild %s: level %d removed", guild_id, level)
        return removed

    async def list_levels(self, guild_id: str) -> list[tuple[int, LevelDef]]:
        config = await self.get_or_create(guild_id)
        return sorted(config.levels.items())

    async def _write(
        self, guild_id: str, change: LevelChange
    ) -> tuple[GuildLevelConfig, bool]:
        await self.get_or_create(guild_id)
        result = await run_db(self._update_locked, guild_id, change)
        if result is None:
            raise GuildNotFoundError(guild_id)
        config, changed = result
        if changed:
            self._cache.put(config)
        return config, changed

    def _update_locked(
        self, guild_id: str, change: LevelChange
    ) -> tuple[GuildLevelConfig, bool] | None:
        with self._write_lock:
            return update_guild_levels(self._engine, guild_id, change)
