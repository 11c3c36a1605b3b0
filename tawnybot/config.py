"""
tawnybot.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for bot behaviour settings.  Secrets (the Discord
token, the database URL) stay in ``.env`` and are read by the entry point.
Per-guild level tables are *not* configured here; operators manage them with
``!tawnybot set level`` and they live in the ``guilds`` table.

Usage::

    from tawnybot.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.bot_prefix)        # "!tawnybot"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_PREFIX = "!tawnybot"
DEFAULT_ROLE_COLOR = 0xFF0000


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TawnyConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Command prefix for operator commands (plain chat text)
    bot_prefix: str = DEFAULT_PREFIX

    # Level-up announcements
    announce_level_ups: bool = True
    # guild_id → channel_id; guilds not listed get the announcement in the
    # channel where the message was sent
    announce_channels: Mapping[str, str] = field(default_factory=dict)

    # Create a missing role on ``set level`` instead of refusing
    create_missing_roles: bool = False
    level_role_color: int = DEFAULT_ROLE_COLOR


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> TawnyConfig:
    """Read *path* and return a :class:`TawnyConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If ``bot_prefix`` is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return TawnyConfig(
        bot_prefix=str(raw["bot_prefix"]),
        announce_level_ups=bool(raw.get("announce_level_ups", True)),
        announce_channels={
            str(guild_id): str(channel_id)
            for guild_id, channel_id in (raw.get("announce_channels") or {}).items()
            if channel_id
        },
        create_missing_roles=bool(raw.get("create_missing_roles", False)),
        level_role_color=int(raw.get("level_role_color", DEFAULT_ROLE_COLOR)),
    )
