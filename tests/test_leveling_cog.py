"""
tests/test_leveling_cog.py — Message Routing Tests
===================================================

Gateway messages are SimpleNamespace stand-ins; the bot is a mock carrying
the two services the cog routes to.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from tawnybot.bot.cogs.leveling import (
    PERMISSION_DENIED_TEXT,
    Leveling,
    build_message_event,
    can_manage_levels,
)
from tawnybot.engine.events import MessageSent


def run_async(coro):
    """Run an async coroutine to completion."""
    return asyncio.run(coro)


def _author(*, bot=False, manage_roles=False, administrator=False, roles=()):
    return SimpleNamespace(
        id=42,
        bot=bot,
        display_name="Alice",
        roles=[SimpleNamespace(id=r) for r in roles],
        guild_permissions=SimpleNamespace(
            manage_roles=manage_roles, administrator=administrator
        ),
    )


def _message(content="hello", *, author=None, guild=True):
    return SimpleNamespace(
        id=1,
        content=content,
        author=author or _author(),
        guild=SimpleNamespace(id=111, name="Tawny Owls") if guild else None,
        channel=SimpleNamespace(id=555, send=AsyncMock()),
    )


@pytest.fixture
def bot():
    bot = MagicMock()
    bot.commands_handler.is_command = lambda text: text.startswith("!tawnybot")
    bot.commands_handler.handle = AsyncMock(return_value="No levels found")
    bot.leveling.handle_message = AsyncMock(return_value=None)
    return bot


class TestBuildMessageEvent:
    def test_ids_become_strings(self):
        event = build_message_event(_message(author=_author(roles=(7, 8))))
        assert event == MessageSent(
            user_id="42",
            guild_id="111",
            display_name="Alice",
            channel_id="555",
            author_is_bot=False,
            current_role_ids=frozenset({"7", "8"}),
        )

    def test_author_without_roles(self):
        author = SimpleNamespace(id=42, bot=True, display_name="Hook")
        event = build_message_event(_message(author=author))
        assert event.current_role_ids == frozenset()
        assert event.author_is_bot


class TestCanManageLevels:
    @pytest.mark.parametrize(
        "kwargs, allowed",
        [({}, False), ({"manage_roles": True}, True), ({"administrator": True}, True)],
    )
    def test_permission(self, kwargs, allowed):
        assert can_manage_levels(_author(**kwargs)) is allowed

    def test_user_without_guild_permissions(self):
        assert not can_manage_levels(SimpleNamespace(id=1))


class TestRouting:
    def test_plain_message_goes_to_pipeline(self, bot):
        run_async(Leveling(bot).on_message(_message()))
        bot.leveling.handle_message.assert_awaited_once()
        bot.commands_handler.handle.assert_not_awaited()

    def test_command_from_operator(self, bot):
        msg = _message("!tawnybot list levels", author=_author(manage_roles=True))
        run_async(Leveling(bot).on_message(msg))

        bot.commands_handler.handle.assert_awaited_once_with("111", "!tawnybot list levels")
        msg.channel.send.assert_awaited_once_with("No levels found")
        bot.leveling.handle_message.assert_not_awaited()

    def test_command_without_permission(self, bot):
        msg = _message("!tawnybot remove level 1")
        run_async(Leveling(bot).on_message(msg))

        bot.commands_handler.handle.assert_not_awaited()
        msg.channel.send.assert_awaited_once_with(PERMISSION_DENIED_TEXT)
        bot.leveling.handle_message.assert_not_awaited()

    @pytest.mark.parametrize("msg", [
        _message(author=_author(bot=True)),
        _message(guild=False),
    ])
    def test_bots_and_dms_ignored(self, bot, msg):
        run_async(Leveling(bot).on_message(msg))
        bot.leveling.handle_message.assert_not_awaited()

    def test_pipeline_errors_are_contained(self, bot):
        bot.leveling.handle_message.side_effect = RuntimeError("db down")
        run_async(Leveling(bot).on_message(_message()))

    def test_reply_failure_is_contained(self, bot):
        msg = _message("!tawnybot list levels", author=_author(manage_roles=True))
        msg.channel.send.side_effect = discord.HTTPException(
            MagicMock(status=403, reason="Forbidden"), "Missing Permissions"
        )
        run_async(Leveling(bot).on_message(msg))


class TestGuildRemove:
    def test_drops_cached_config(self, bot):
        run_async(Leveling(bot).on_guild_remove(SimpleNamespace(id=111, name="Tawny Owls")))
        bot.cache.invalidate.assert_called_once_with("111")
