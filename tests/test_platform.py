"""
tests/test_platform.py — discord.py Adapter Tests
==================================================

The discord.py client is mocked; only the error translation and the
id/str conversions at the edge are checked.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from tawnybot.errors import (
    ChannelNotFoundError,
    GuildNotFoundError,
    RoleNotFoundError,
    TransientPlatformError,
)
from tawnybot.platform import AUDIT_REASON, DiscordPlatform, GuildInfo, RoleInfo


def run_async(coro):
    """Run an async coroutine to completion."""
    return asyncio.run(coro)


def _not_found() -> discord.NotFound:
    return discord.NotFound(MagicMock(status=404, reason="Not Found"), "Unknown")


def _rate_limited() -> discord.HTTPException:
    return discord.HTTPException(MagicMock(status=429, reason="Too Many Requests"), "slow down")


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.get_guild.return_value = None
    client.get_channel.return_value = None
    client.fetch_guild = AsyncMock()
    client.fetch_channel = AsyncMock()
    client.http.add_role = AsyncMock()
    client.http.remove_role = AsyncMock()
    client.http.create_role = AsyncMock()
    return client


class TestGetGuild:
    def test_cached_guild(self, client):
        client.get_guild.return_value = SimpleNamespace(
            id=111, name="Tawny Owls",
            roles=[SimpleNamespace(id=1, name="@everyone"), SimpleNamespace(id=2, name="Gold")],
        )
        guild = run_async(DiscordPlatform(client).get_guild("111"))

        client.get_guild.assert_called_once_with(111)
        client.fetch_guild.assert_not_called()
        assert guild == GuildInfo(
            id="111", name="Tawny Owls",
            roles=(RoleInfo("1", "@everyone"), RoleInfo("2", "Gold")),
        )

    def test_falls_back_to_fetch(self, client):
        client.fetch_guild.return_value = SimpleNamespace(id=111, name="Tawny Owls", roles=[])
        guild = run_async(DiscordPlatform(client).get_guild("111"))
        assert guild.name == "Tawny Owls"
        client.fetch_guild.assert_awaited_once_with(111)

    def test_unknown_guild(self, client):
        client.fetch_guild.side_effect = _not_found()
        with pytest.raises(GuildNotFoundError):
            run_async(DiscordPlatform(client).get_guild("111"))


class TestRoles:
    def test_grant_uses_http_with_ints(self, client):
        run_async(DiscordPlatform(client).grant_role("111", "42", "7"))
        client.http.add_role.assert_awaited_once_with(111, 42, 7, reason=AUDIT_REASON)

    def test_revoke_uses_http_with_ints(self, client):
        run_async(DiscordPlatform(client).revoke_role("111", "42", "7"))
        client.http.remove_role.assert_awaited_once_with(111, 42, 7, reason=AUDIT_REASON)

    def test_deleted_role_is_lookup_error(self, client):
        client.http.add_role.side_effect = _not_found()
        with pytest.raises(RoleNotFoundError) as info:
            run_async(DiscordPlatform(client).grant_role("111", "42", "7"))
        assert isinstance(info.value, LookupError)
        assert isinstance(info.value.__cause__, discord.NotFound)

    def test_other_http_errors_are_transient(self, client):
        client.http.remove_role.side_effect = _rate_limited()
        with pytest.raises(TransientPlatformError, match="429"):
            run_async(DiscordPlatform(client).revoke_role("111", "42", "7"))

    def test_create_role(self, client):
        client.http.create_role.return_value = {"id": "900", "name": "Platinum"}
        role = run_async(DiscordPlatform(client, role_color=0x123456).create_role("111", "Platinum"))

        assert role == RoleInfo("900", "Platinum")
        kwargs = client.http.create_role.await_args.kwargs
        assert kwargs["name"] == "Platinum"
        assert kwargs["color"] == 0x123456


class TestSendText:
    def test_sends_to_cached_channel(self, client):
        channel = MagicMock(spec=discord.TextChannel)
        channel.send = AsyncMock()
        client.get_channel.return_value = channel

        run_async(DiscordPlatform(client).send_text("555", "hello"))
        channel.send.assert_awaited_once_with("hello")

    def test_unknown_channel(self, client):
        client.fetch_channel.side_effect = _not_found()
        with pytest.raises(ChannelNotFoundError):
            run_async(DiscordPlatform(client).send_text("555", "hello"))

    def test_non_text_channel(self, client):
        client.get_channel.return_value = MagicMock(spec=discord.CategoryChannel)
        with pytest.raises(ChannelNotFoundError):
            run_async(DiscordPlatform(client).send_text("555", "hello"))


class TestFindRole:
    def test_case_insensitive(self):
        guild = GuildInfo("1", "g", (RoleInfo("2", "Night Owl"),))
        assert guild.find_role("  night OWL ") == RoleInfo("2", "Night Owl")
        assert guild.find_role("Owl") is None
