"""
TawnyBot — Message-Count Leveling for Discord
==============================================
Counts the messages each member sends per guild, maps the count to a level
through a per-guild threshold table, and keeps one "level role" per member
in sync with that level.

Package layout::

    tawnybot/
    ├── config.py          # YAML → typed Python config
    ├── errors.py          # Exception taxonomy
    ├── platform.py        # Collaborator protocols + discord.py adapter
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # users / guilds tables
    ├── engine/
    │   ├── events.py      # MessageSent event envelope
    │   ├── levels.py      # Typed level table + resolver
    │   ├── sync.py        # Pure role-diff planner
    │   └── cache.py       # In-memory guild config cache
    ├── services/
    │   ├── guild_service.py     # Guild Config Store
    │   ├── user_service.py      # User Counter Store
    │   ├── role_service.py      # Role Synchronizer
    │   ├── leveling_service.py  # message → count → level → roles
    │   └── commands.py          # !tawnybot operator commands
    └── bot/
        ├── core.py        # Bot subclass, cog loader
        └── cogs/
            └── leveling.py  # on_message capture + command dispatch
"""

__version__ = "0.1.0"
