"""
tests/conftest.py — Shared Test Fixtures
=========================================

SQLite engines for the stores and an in-memory stand-in for Discord that
implements the guild directory, role manager and notification sink
protocols.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import replace

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from tawnybot.config import TawnyConfig
from tawnybot.database.engine import create_db_engine, init_db
from tawnybot.database.models import Base
from tawnybot.engine.cache import GuildConfigCache
from tawnybot.errors import ChannelNotFoundError, GuildNotFoundError
from tawnybot.platform import GuildInfo, RoleInfo

GUILD_ID = "111222333"


class FakePlatform:
    """In-memory Discord: guild directory + role manager + notification sink.

    ``failures[(op, role_id)]`` makes the next call for that role raise.
    ``member_roles`` tracks what each member holds after grants/revokes.
    """

    def __init__(self, guilds: list[GuildInfo] | None = None) -> None:
        self.guilds: dict[str, GuildInfo] = {g.id: g for g in guilds or []}
        self.calls: list[tuple[str, str, str, str]] = []
        self.failures: dict[tuple[str, str], Exception] = {}
        self.member_roles: dict[tuple[str, str], set[str]] = defaultdict(set)
        self.sent: list[tuple[str, str]] = []
        self.channels: set[str] | None = None  # None → every channel exists
        self._next_role = 9000

    async def get_guild(self, guild_id: str) -> GuildInfo:
        if guild_id not in self.guilds:
            raise GuildNotFoundError(guild_id)
        return self.guilds[guild_id]

    async def grant_role(self, guild_id: str, user_id: str, role_id: str) -> None:
        self.calls.append(("grant", guild_id, user_id, role_id))
        self._maybe_fail("grant", role_id)
        self.member_roles[(guild_id, user_id)].add(role_id)

    async def revoke_role(self, guild_id: str, user_id: str, role_id: str) -> None:
        self.calls.append(("revoke", guild_id, user_id, role_id))
        self._maybe_fail("revoke", role_id)
        self.member_roles[(guild_id, user_id)].discard(role_id)

    async def create_role(self, guild_id: str, name: str) -> RoleInfo:
        guild = await self.get_guild(guild_id)
        self._next_role += 1
        role = RoleInfo(id=str(self._next_role), name=name)
        self.guilds[guild_id] = replace(guild, roles=(*guild.roles, role))
        return role

    async def send_text(self, channel_id: str, text: str) -> None:
        if self.channels is not None and channel_id not in self.channels:
            raise ChannelNotFoundError(channel_id)
        self.sent.append((channel_id, text))

    def roles_of(self, user_id: str, guild_id: str = GUILD_ID) -> frozenset[str]:
        return frozenset(self.member_roles[(guild_id, user_id)])

    def _maybe_fail(self, op: str, role_id: str) -> None:
        exc = self.failures.get((op, role_id))
        if exc is not None:
            raise exc


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all TawnyBot tables.

    Uses StaticPool so worker threads from ``run_db`` share the same
    in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """File-backed SQLite engine with a real connection pool, for tests that
    write from several threads at once."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'tawnybot.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def cache() -> GuildConfigCache:
    return GuildConfigCache()


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform([
        GuildInfo(
            id=GUILD_ID,
            name="Tawny Owls",
            roles=(
                RoleInfo(id="R1", name="Fledgling"),
                RoleInfo(id="R2", name="Hooter"),
                RoleInfo(id="R3", name="Gold"),
            ),
        ),
    ])


@pytest.fixture
def cfg() -> TawnyConfig:
    return TawnyConfig()
