"""
tawnybot.services.leveling_service — Message → Level Pipeline
==============================================================

Pipeline for one :class:`~tawnybot.engine.events.MessageSent`:

1. Gate: ignore bot authors.
2. Count the message atomically; get back the new count and stored level.
3. Load (or lazily create) the guild's level table.
4. Resolve the target level.  Equal to the stored level → done.
5. Reconcile roles and commit the level.
6. On a committed level *increase*, announce it.

The count is recorded before the guild table is needed.  If the table cannot
be loaded (unknown guild, Discord unavailable) the message still counts and
only leveling is skipped; the next message tries again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tawnybot.database.engine import run_db
from tawnybot.engine.levels import resolve, role_for
from tawnybot.errors import TransientPlatformError
from tawnybot.services.user_service import record_message

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from tawnybot.config import TawnyConfig
    from tawnybot.engine.events import MessageSent
    from tawnybot.platform import NotificationSink
    from tawnybot.services.guild_service import GuildConfigStore
    from tawnybot.services.role_service import ReconcileResult, RoleSynchronizer

logger = logging.getLogger(__name__)

LEVEL_UP_TEMPLATE = "<@{user_id}> leveled up to level {level}!"


@dataclass
class LevelingOutcome:
    """Result of processing one message."""

    message_count: int
    previous_level: int
    # None when the guild's level table could not be loaded
    target_level: int | None = None
    reconcile: ReconcileResult | None = None
    announced: bool = False

    @property
    def leveled_up(self) -> bool:
        return (
            self.reconcile is not None
            and self.reconcile.committed
            and self.target_level is not None
            and self.target_level > self.previous_level
        )


def format_level_up(user_id: str, level: int, role_name: str | None = None) -> str:
    text = LEVEL_UP_TEMPLATE.format(user_id=user_id, level=level)
    if role_name:
        text += f" You are now **{role_name}**."
    return text


class LevelingService:
    """Wires the Guild Config Store, User Counter Store and Role Synchronizer."""

    def __init__(
        self,
        cfg: TawnyConfig,
        engine: Engine,
        guilds: GuildConfigStore,
        synchronizer: RoleSynchronizer,
        notifier: NotificationSink,
    ) -> None:
        self._cfg = cfg
        self._engine = engine
        self._guilds = guilds
        self._synchronizer = synchronizer
        self._notifier = notifier

    async def handle_message(self, event: MessageSent) -> LevelingOutcome | None:
        """Run the pipeline.  Returns None when the event was skipped."""
        if event.author_is_bot:
            return None

        user = await run_db(
            record_message, self._engine, event.user_id, event.guild_id, event.display_name
        )
        outcome = LevelingOutcome(
            message_count=user.message_count,
            previous_level=user.level,
        )

        try:
            config = await self._guilds.get_or_create(event.guild_id)
        except (LookupError, TransientPlatformError) as exc:
            logger.warning(
                "Counted message from %s but skipped leveling: %s", event.user_id, exc
            )
            return outcome

        outcome.target_level = resolve(config, user.message_count)
        if outcome.target_level == user.level:
            return outcome

        outcome.reconcile = await self._synchronizer.reconcile(
            event, config, outcome.target_level
        )

        if outcome.leveled_up and self._cfg.announce_level_ups:
            level_def = role_for(config, outcome.target_level)
            outcome.announced = await self._announce(
                event,
                format_level_up(
                    event.user_id,
                    outcome.target_level,
                    level_def.role_name if level_def else None,
                ),
            )
        return outcome

    async def _announce(self, event: MessageSent, text: str) -> bool:
        channel_id = self._cfg.announce_channels.get(event.guild_id) or event.channel_id
        if channel_id is None:
            return False
        try:
            await self._notifier.send_text(channel_id, text)
        except Exception:
            logger.exception(
                "Failed to announce level-up for %s in channel %s",
                event.user_id, channel_id,
            )
            return False
        return True
