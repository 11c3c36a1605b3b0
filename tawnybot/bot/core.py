"""
tawnybot.bot.core — Bot Instance & Cog Loader
==============================================

Defines :class:`TawnyBot`, a ``commands.Bot`` subclass that:

1. Stores the shared config, DB engine and guild config cache so every Cog
   can reach them via ``self.bot.*``.
2. Wires the leveling services on top of a :class:`DiscordPlatform`.
3. Loads every Cog listed in :data:`EXTENSIONS`.

Operator commands are plain text parsed by
:mod:`tawnybot.services.commands`, so discord.ext's own prefix dispatch is
switched off in :meth:`TawnyBot.on_message`.
"""

from __future__ import annotations

import logging

import discord
from discord.ext import commands
from sqlalchemy import Engine

from tawnybot.config import TawnyConfig
from tawnybot.engine.cache import GuildConfigCache
from tawnybot.platform import DiscordPlatform
from tawnybot.services.commands import CommandHandler
from tawnybot.services.guild_service import GuildConfigStore
from tawnybot.services.leveling_service import LevelingService
from tawnybot.services.role_service import RoleSynchronizer

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "tawnybot.bot.cogs.leveling",
]


class TawnyBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`TawnyConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine`.
    cache:
        The guild config cache shared by all services.
    """

    def __init__(self, cfg: TawnyConfig, engine: Engine, cache: GuildConfigCache) -> None:
        # MESSAGE_CONTENT (privileged) — operator commands are plain text
        # GUILD_MEMBERS (privileged) — member role snapshots on messages
        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        intents.presences = False

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description="TawnyBot — message-count level roles",
        )

        self.cfg = cfg
        self.engine = engine
        self.cache = cache

        self.platform = DiscordPlatform(self, role_color=cfg.level_role_color)
        self.guild_configs = GuildConfigStore(engine, cache, self.platform)
        self.leveling = LevelingService(
            cfg,
            engine,
            self.guild_configs,
            RoleSynchronizer(engine, self.platform),
            self.platform,
        )
        self.commands_handler = CommandHandler(
            cfg, self.guild_configs, self.platform, self.platform
        )

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load all Cog extensions before connecting.

        A broken extension is logged and skipped.
        """
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)
        logger.info("Serving %d guilds", len(self.guilds))

    async def on_message(self, message: discord.Message) -> None:
        """Handled by the Leveling cog; skip discord.ext prefix commands."""
        return

    async def close(self) -> None:
        logger.info("Bot shutting down…")
        self.cache.clear()
        await super().close()
