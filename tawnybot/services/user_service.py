"""
tawnybot.services.user_service — User Counter Store
====================================================

Per (member, guild) message counter and last reconciled level.

:func:`record_message` is a single ``INSERT … ON CONFLICT DO UPDATE …
RETURNING`` statement, so concurrent messages from the same member are
serialized by the database and never lose an increment.  There is no
application-level lock.

All functions are synchronous; call them through
:func:`~tawnybot.database.engine.run_db` from async code.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select, update

from tawnybot.database.engine import conflict_insert, get_session
from tawnybot.database.models import UserRecord

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def record_message(
    engine: Engine, user_id: str, guild_id: str, display_name: str
) -> UserRecord:
    """Count one message and return the row as it is after the update.

    A new row starts at ``message_count=1, level=0``.  An existing row gets
    ``message_count + 1`` and the latest display name.

    Raises
    ------
    RuntimeError
        If the engine's dialect has no upsert support here.
    """
    insert = conflict_insert(engine)

    stmt = insert(UserRecord).values(
        user_id=user_id,
        guild_id=guild_id,
        name=display_name,
        message_count=1,
        level=0,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[UserRecord.user_id, UserRecord.guild_id],
        set_={
            "message_count": UserRecord.message_count + 1,
            "name": stmt.excluded.name,
        },
    ).returning(UserRecord)

    with get_session(engine) as session:
        user = session.scalars(
            stmt, execution_options={"populate_existing": True}
        ).one()
        session.expunge(user)

    logger.debug(
        "Message counted: %s in guild %s → %d", user_id, guild_id, user.message_count
    )
    return user


def commit_level(engine: Engine, user_id: str, guild_id: str, level: int) -> None:
    """Set the stored level unconditionally (last writer wins)."""
    with get_session(engine) as session:
        session.execute(
            update(UserRecord)
            .where(UserRecord.user_id == user_id, UserRecord.guild_id == guild_id)
            .values(level=level)
        )


def get_user(engine: Engine, user_id: str, guild_id: str) -> UserRecord | None:
    with get_session(engine) as session:
        user = session.scalar(
            select(UserRecord).where(
                UserRecord.user_id == user_id, UserRecord.guild_id == guild_id
            )
        )
        if user is not None:
            session.expunge(user)
        return user
