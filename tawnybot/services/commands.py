"""
tawnybot.services.commands — Operator Commands
===============================================

Plain-text commands addressed to the bot with its prefix (``!tawnybot`` by
default)::

    !tawnybot set level <level> <target> <role name...>
    !tawnybot remove level <level>
    !tawnybot list levels

:func:`parse_command` is pure and turns text into a command object.
:class:`CommandHandler` runs it against the Guild Config Store and returns
the reply text.  Malformed input never mutates state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tawnybot.errors import RoleNotFoundError, TransientPlatformError, ValidationError

if TYPE_CHECKING:
    from tawnybot.config import TawnyConfig
    from tawnybot.platform import GuildDirectory, RoleManager
    from tawnybot.services.guild_service import GuildConfigStore

logger = logging.getLogger(__name__)

NO_LEVELS_TEXT = "No levels found"
LEVEL_LINE_TEMPLATE = "{level} (target: {target}): {role_name}"

SET_USAGE = "Usage: {prefix} set level <level> <target> <role name>"
REMOVE_USAGE = "Usage: {prefix} remove level <level>"
LIST_USAGE = "Usage: {prefix} list levels"


# ---------------------------------------------------------------------------
# Command objects
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SetLevel:
    level: int
    target: int
    role_name: str


@dataclass(frozen=True, slots=True)
class RemoveLevel:
    level: int


@dataclass(frozen=True, slots=True)
class ListLevels:
    pass


@dataclass(frozen=True, slots=True)
class ShowUsage:
    pass


Command = SetLevel | RemoveLevel | ListLevels | ShowUsage


def usage_text(prefix: str) -> str:
    return "\n".join(
        line.format(prefix=prefix) for line in (SET_USAGE, REMOVE_USAGE, LIST_USAGE)
    )


def _parse_int(value: str, what: str, usage: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{what} must be a whole number, got {value!r}.\n{usage}") from None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------
def parse_command(text: str, prefix: str) -> Command | None:
    """Parse *text* into a command.

    Returns None if *text* is not addressed to the bot.

    Raises
    ------
    ValidationError
        If a known command has missing or non-numeric arguments.
    """
    tokens = text.split()
    if not tokens or tokens[0].lower() != prefix.lower():
        return None

    args = [t.lower() for t in tokens[1:3]]

    if args == ["set", "level"]:
        usage = SET_USAGE.format(prefix=prefix)
        # Keep the role name's inner spacing intact
        parts = text.split(None, 5)
        if len(parts) < 6:
            raise ValidationError(usage)
        level = _parse_int(parts[3], "Level", usage)
        target = _parse_int(parts[4], "Target", usage)
        role_name = parts[5].strip()
        return SetLevel(level=level, target=target, role_name=role_name)

    if args == ["remove", "level"]:
        usage = REMOVE_USAGE.format(prefix=prefix)
        if len(tokens) != 4:
            raise ValidationError(usage)
        return RemoveLevel(level=_parse_int(tokens[3], "Level", usage))

    if args == ["list", "levels"]:
        if len(tokens) != 3:
            raise ValidationError(LIST_USAGE.format(prefix=prefix))
        return ListLevels()

    return ShowUsage()


def render_levels(levels) -> str:
    """Render ``[(level, LevelDef), ...]`` one line per level."""
    if not levels:
        return NO_LEVELS_TEXT
    return "\n".join(
        LEVEL_LINE_TEMPLATE.format(
            level=level, target=level_def.target, role_name=level_def.role_name
        )
        for level, level_def in levels
    )


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------
class CommandHandler:
    """Runs parsed commands against the Guild Config Store."""

    def __init__(
        self,
        cfg: TawnyConfig,
        guilds: GuildConfigStore,
        directory: GuildDirectory,
        roles: RoleManager,
    ) -> None:
        self._cfg = cfg
        self._guilds = guilds
        self._directory = directory
        self._roles = roles

    def is_command(self, text: str) -> bool:
        tokens = text.split(None, 1)
        return bool(tokens) and tokens[0].lower() == self._cfg.bot_prefix.lower()

    async def handle(self, guild_id: str, text: str) -> str | None:
        """Execute *text* for *guild_id* and return the reply, or None if
        the text is not a command."""
        try:
            command = parse_command(text, self._cfg.bot_prefix)
            if command is None:
                return None
            return await self._execute(guild_id, command)
        except (ValidationError, LookupError) as exc:
            return str(exc)
        except TransientPlatformError as exc:
            logger.warning("Command in guild %s failed: %s", guild_id, exc)
            return "Discord did not respond in time. Please try again."

    async def _execute(self, guild_id: str, command: Command) -> str:
        if isinstance(command, SetLevel):
            return await self._set_level(guild_id, command)
        if isinstance(command, RemoveLevel):
            if await self._guilds.remove_level(guild_id, command.level):
                return f"Level {command.level} removed."
            return f"Level {command.level} is not configured."
        if isinstance(command, ListLevels):
            return render_levels(await self._guilds.list_levels(guild_id))
        return usage_text(self._cfg.bot_prefix)

    async def _set_level(self, guild_id: str, command: SetLevel) -> str:
        if command.level < 1:
            raise ValidationError("Level must be 1 or higher.")
        if command.target < 0:
            raise ValidationError("Target must be 0 or higher.")

        guild = await self._directory.get_guild(guild_id)
        role = guild.find_role(command.role_name)
        if role is None:
            if not self._cfg.create_missing_roles:
                raise RoleNotFoundError(command.role_name)
            role = await self._roles.create_role(guild_id, command.role_name)

        await self._guilds.set_level(
            guild_id, command.level, role.id, command.target, role.name
        )
        return f"Level {command.level} set to {role.name} (target: {command.target})."
