"""
tawnybot.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- users   — one row per (Discord member, guild) with the message counter
- guilds  — per-guild level table, stored as JSON text

The ``levels`` column is raw JSON on purpose: it is decoded into typed
:class:`~tawnybot.engine.levels.LevelDef` records by
:mod:`tawnybot.services.guild_service` and nowhere else.
"""

from __future__ import annotations

from sqlalchemy import Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all TawnyBot ORM models."""


# ---------------------------------------------------------------------------
# Users — one row per member per guild
# ---------------------------------------------------------------------------
class UserRecord(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Level last reconciled to Discord roles; may lag message_count
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    guild_id: Mapped[str] = mapped_column(String(32), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "guild_id", name="uq_users_user_guild"),
    )

    @property
    def stored_level(self) -> int:
        return self.level

    def __repr__(self) -> str:
        return (
            f"<UserRecord user={self.user_id} guild={self.guild_id} "
            f"count={self.message_count} lvl={self.level}>"
        )


# ---------------------------------------------------------------------------
# Guilds — level table per guild
# ---------------------------------------------------------------------------
class GuildRow(Base):
    __tablename__ = "guilds"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)  # Discord snowflake
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    levels: Mapped[str] = mapped_column(Text, nullable=False, default="{}")

    def __repr__(self) -> str:
        return f"<GuildRow id={self.id} name={self.name!r}>"
