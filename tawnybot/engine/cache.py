"""
tawnybot.engine.cache — In-Memory Guild Config Cache
=====================================================

Holds one :class:`~tawnybot.engine.levels.GuildLevelConfig` per guild.
Entries are immutable and replaced whole on every write, so a reader holding
a config never sees a half-applied change.  The cache is filled lazily by
:class:`~tawnybot.services.guild_service.GuildConfigStore` and owned by the
bot instance; there is no module-level cache.
"""

from __future__ import annotations

import logging
import threading

from tawnybot.engine.levels import GuildLevelConfig

logger = logging.getLogger(__name__)


class GuildConfigCache:
    """Thread-safe ``guild_id → GuildLevelConfig`` map.

    Usage:
        cache = GuildConfigCache()
        cache.put(config)
        config = cache.get("1234")     # None on miss
        cache.invalidate("1234")
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._configs: dict[str, GuildLevelConfig] = {}

    def get(self, guild_id: str) -> GuildLevelConfig | None:
        with self._lock:
            return self._configs.get(guild_id)

    def put(self, config: GuildLevelConfig) -> None:
        """Swap in *config* for its guild."""
        with self._lock:
            self._configs[config.guild_id] = config
        logger.debug(
            "Guild config cached: %s (%d levels)", config.guild_id, len(config.levels)
        )

    def invalidate(self, guild_id: str) -> None:
        with self._lock:
            self._configs.pop(guild_id, None)

    def clear(self) -> None:
        with self._lock:
            self._configs = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._configs)
