"""
tawnybot.bot.cogs.leveling — Message Capture & Command Dispatch
================================================================

Listens for on_message events and routes each guild message either to the
operator command handler or into the leveling pipeline.  Leaving a guild drops
its cached level table.

Pipeline:
1. on_message fires → gate checks (bot, DM)
2. ``!tawnybot …`` → permission check → CommandHandler → reply
3. Anything else → MessageSent → LevelingService.handle_message
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from tawnybot.engine.events import MessageSent

if TYPE_CHECKING:
    from tawnybot.bot.core import TawnyBot

logger = logging.getLogger(__name__)

PERMISSION_DENIED_TEXT = "You need the Manage Roles permission to change level settings."


def build_message_event(message: discord.Message) -> MessageSent:
    """Normalize a Discord message into a :class:`MessageSent`."""
    roles = getattr(message.author, "roles", [])
    return MessageSent(
        user_id=str(message.author.id),
        guild_id=str(message.guild.id) if message.guild else "",
        display_name=message.author.display_name,
        channel_id=str(message.channel.id),
        author_is_bot=message.author.bot,
        current_role_ids=frozenset(str(r.id) for r in roles),
    )


def can_manage_levels(author: discord.abc.User) -> bool:
    perms = getattr(author, "guild_permissions", None)
    return bool(perms and (perms.manage_roles or perms.administrator))


class Leveling(commands.Cog, name="Leveling"):
    """Counts messages, syncs level roles and answers operator commands."""

    def __init__(self, bot: TawnyBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        """Entry point for every gateway message.  Never raises."""
        try:
            await self._handle_message(message)
        except Exception:
            logger.exception(
                "Error processing message %s from user %s",
                message.id,
                message.author.id,
            )

    async def _handle_message(self, message: discord.Message) -> None:
        """Inner message handler (separated for error isolation)."""

        # Gate 1: Ignore bots
        if message.author.bot:
            return

        # Gate 2: Ignore DMs
        if message.guild is None:
            return

        handler = self.bot.commands_handler
        if handler.is_command(message.content):
            await self._handle_command(message)
            return

        outcome = await self.bot.leveling.handle_message(build_message_event(message))
        if outcome is not None and outcome.leveled_up:
            logger.info(
                "%s reached level %d in %s (%d messages)",
                message.author.display_name,
                outcome.target_level,
                message.guild.name,
                outcome.message_count,
            )

    async def _handle_command(self, message: discord.Message) -> None:
        assert message.guild is not None
        if not can_manage_levels(message.author):
            reply = PERMISSION_DENIED_TEXT
        else:
            reply = await self.bot.commands_handler.handle(
                str(message.guild.id), message.content
            )
        if reply is None:
            return

        try:
            await message.channel.send(reply)
        except discord.HTTPException:
            logger.exception("Failed to send command reply in channel %s", message.channel.id)

    @commands.Cog.listener()
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        """Drop the cached level table.  The ``guilds`` row is kept for a rejoin."""
        self.bot.cache.invalidate(str(guild.id))
        logger.info("Removed from guild %s (%s)", guild.name, guild.id)


async def setup(bot: TawnyBot) -> None:
    await bot.add_cog(Leveling(bot))
