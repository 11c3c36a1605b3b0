"""
tawnybot.engine.events — MessageSent event envelope
====================================================

Every Discord message is normalized into a :class:`MessageSent` before the
leveling pipeline sees it.  Ids are opaque strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field

__all__ = ["MessageSent"]


@dataclass(frozen=True, slots=True)
class MessageSent:
    """A member sent a message in a guild.

    ``current_role_ids`` is the member's role snapshot taken from the
    gateway payload; reconciliation diffs against it instead of
    re-fetching the member.
    """

    user_id: str
    guild_id: str
    display_name: str
    channel_id: str | None = None
    author_is_bot: bool = False
    current_role_ids: frozenset[str] = field(default_factory=frozenset)
