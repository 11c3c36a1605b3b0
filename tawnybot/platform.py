"""
tawnybot.platform — External Collaborators
===========================================

The leveling engine talks to Discord only through three narrow protocols:

* :class:`GuildDirectory`   — look up a guild's name and roles
* :class:`RoleManager`      — grant / revoke / create roles
* :class:`NotificationSink` — post plain text to a channel

:class:`DiscordPlatform` implements all three on top of a discord.py client
and translates discord.py exceptions into the TawnyBot taxonomy:
``discord.NotFound`` → ``LookupError`` subclasses, any other
``discord.HTTPException`` → :class:`~tawnybot.errors.TransientPlatformError`.
Tests substitute an in-memory fake.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

import discord
from discord.abc import Messageable

from tawnybot.errors import (
    ChannelNotFoundError,
    GuildNotFoundError,
    RoleNotFoundError,
    TransientPlatformError,
)

if TYPE_CHECKING:
    from discord import Client

logger = logging.getLogger(__name__)

AUDIT_REASON = "TawnyBot: level role sync"


# ---------------------------------------------------------------------------
# Directory records
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RoleInfo:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class GuildInfo:
    id: str
    name: str
    roles: tuple[RoleInfo, ...] = field(default_factory=tuple)

    def find_role(self, name: str) -> RoleInfo | None:
        """Case-insensitive exact name match."""
        wanted = name.strip().casefold()
        for role in self.roles:
            if role.name.casefold() == wanted:
                return role
        return None


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------
class GuildDirectory(Protocol):
    async def get_guild(self, guild_id: str) -> GuildInfo: ...


class RoleManager(Protocol):
    async def grant_role(self, guild_id: str, user_id: str, role_id: str) -> None: ...

    async def revoke_role(self, guild_id: str, user_id: str, role_id: str) -> None: ...

    async def create_role(self, guild_id: str, name: str) -> RoleInfo: ...


class NotificationSink(Protocol):
    async def send_text(self, channel_id: str, text: str) -> None: ...


# ---------------------------------------------------------------------------
# discord.py adapter
# ---------------------------------------------------------------------------
@contextmanager
def _translate_errors(not_found: LookupError) -> Iterator[None]:
    try:
        yield
    except discord.NotFound as exc:
        raise not_found from exc
    except discord.HTTPException as exc:
        raise TransientPlatformError(
            f"Discord API error {exc.status}: {exc.text or exc}"
        ) from exc


class DiscordPlatform:
    """Guild directory, role manager and notification sink for discord.py.

    Role grants and revokes go straight through the HTTP client using the
    ids we already have, so no member fetch is needed.
    """

    def __init__(self, client: Client, *, role_color: int = 0xFF0000) -> None:
        self._client = client
        self._role_color = role_color

    async def get_guild(self, guild_id: str) -> GuildInfo:
        guild = self._client.get_guild(int(guild_id))
        if guild is None:
            with _translate_errors(GuildNotFoundError(guild_id)):
                guild = await self._client.fetch_guild(int(guild_id))
        return GuildInfo(
            id=str(guild.id),
            name=guild.name,
            roles=tuple(RoleInfo(id=str(r.id), name=r.name) for r in guild.roles),
        )

    async def grant_role(self, guild_id: str, user_id: str, role_id: str) -> None:
        with _translate_errors(RoleNotFoundError(role_id)):
            await self._client.http.add_role(
                int(guild_id), int(user_id), int(role_id), reason=AUDIT_REASON
            )

    async def revoke_role(self, guild_id: str, user_id: str, role_id: str) -> None:
        with _translate_errors(RoleNotFoundError(role_id)):
            await self._client.http.remove_role(
                int(guild_id), int(user_id), int(role_id), reason=AUDIT_REASON
            )

    async def create_role(self, guild_id: str, name: str) -> RoleInfo:
        with _translate_errors(GuildNotFoundError(guild_id)):
            payload = await self._client.http.create_role(
                int(guild_id),
                reason="TawnyBot: create level role",
                name=name,
                color=self._role_color,
                hoist=False,
                mentionable=False,
            )
        logger.info("Created role %r (%s) in guild %s", name, payload["id"], guild_id)
        return RoleInfo(id=str(payload["id"]), name=payload["name"])

    async def send_text(self, channel_id: str, text: str) -> None:
        channel = self._client.get_channel(int(channel_id))
        if channel is None:
            with _translate_errors(ChannelNotFoundError(channel_id)):
                channel = await self._client.fetch_channel(int(channel_id))
        if not isinstance(channel, Messageable):
            raise ChannelNotFoundError(channel_id)
        with _translate_errors(ChannelNotFoundError(channel_id)):
            await channel.send(text)
