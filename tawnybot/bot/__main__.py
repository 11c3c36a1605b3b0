"""
tawnybot.bot.__main__ — Entry point for ``python -m tawnybot.bot``
==================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Create the (empty) guild config cache; it fills lazily.
5. Create the TawnyBot and hand it config + engine + cache.
6. Start the bot (blocking — runs the asyncio event loop).

Run with::

    python -m tawnybot.bot
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from tawnybot.bot.core import TawnyBot
from tawnybot.config import load_config
from tawnybot.database.engine import create_db_engine, init_db
from tawnybot.engine.cache import GuildConfigCache

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("tawnybot")


def main() -> None:
    """Bootstrap and run TawnyBot."""

    # 1. Environment variables (secrets).
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    # 2. Soft configuration.
    cfg = load_config(os.getenv("TAWNYBOT_CONFIG", "config.yaml"))
    logger.info("Config loaded — prefix: %s", cfg.bot_prefix)

    # 3. Database.
    engine = create_db_engine()
    init_db(engine)

    # 4. Guild config cache.
    cache = GuildConfigCache()

    # 5. Bot.
    bot = TawnyBot(cfg=cfg, engine=engine, cache=cache)

    # 6. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting TawnyBot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
