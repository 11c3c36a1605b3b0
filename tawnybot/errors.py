"""
tawnybot.errors — Exception Taxonomy
=====================================

``LookupError`` subclasses mean "the platform has no such thing right now".
``ValidationError`` is an operator typo.  ``TransientPlatformError`` is a
Discord API failure that is dropped, not retried; the next level-crossing
message reconciles again.
"""

from __future__ import annotations


class TawnyError(Exception):
    """Base class for all TawnyBot errors."""


class ValidationError(TawnyError, ValueError):
    """Malformed operator input.  The message is safe to show the operator."""


class TransientPlatformError(TawnyError):
    """External API call failed (rate limit, network, 5xx)."""


class GuildNotFoundError(TawnyError, LookupError):
    """The guild directory has no guild with this id."""

    def __init__(self, guild_id: str) -> None:
        super().__init__(f"Guild {guild_id} not found")
        self.guild_id = guild_id


class RoleNotFoundError(TawnyError, LookupError):
    """A role referenced by id or name does not exist in the guild."""

    def __init__(self, role: str) -> None:
        super().__init__(f"Role {role} not found")
        self.role = role


class ChannelNotFoundError(TawnyError, LookupError):
    """A notification channel does not exist or is not visible."""

    def __init__(self, channel_id: str) -> None:
        super().__init__(f"Channel {channel_id} not found")
        self.channel_id = channel_id
