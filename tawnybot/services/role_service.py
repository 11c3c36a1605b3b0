"""
tawnybot.services.role_service — Role Synchronizer
===================================================

Applies a :class:`~tawnybot.engine.sync.RolePlan` through the role manager
and then records the target level in the ``users`` table.

Reconciliation protocol, per attempt:

1. Plan from the target level and the event's role snapshot.
2. Revoke every stale level role, concurrently.  One failed revoke does not
   stop the others or the grant.
3. Grant the expected role if the member does not hold it yet.
4. Commit ``stored_level = target_level``, even if a revoke or grant failed
   transiently.

A missing expected role (``LookupError`` on the grant) aborts before the
commit, so the next message that resolves to a different stored level tries
again.  A missing role on revoke is already in the desired state.

Overlapping attempts for the same member are not prevented; each attempt
recomputes from the current count, so any flapping settles on the next
message.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tawnybot.database.engine import run_db
from tawnybot.engine.sync import RolePlan, plan_role_changes
from tawnybot.errors import TransientPlatformError
from tawnybot.services.user_service import commit_level

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from tawnybot.engine.events import MessageSent
    from tawnybot.engine.levels import GuildLevelConfig
    from tawnybot.platform import RoleManager

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """What one reconciliation attempt did."""

    target_level: int
    granted: list[str] = field(default_factory=list)
    revoked: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    committed: bool = False


class RoleSynchronizer:
    """Converge a member's level roles to their target level."""

    def __init__(self, engine: Engine, roles: RoleManager) -> None:
        self._engine = engine
        self._roles = roles

    async def reconcile(
        self,
        event: MessageSent,
        config: GuildLevelConfig,
        target_level: int,
    ) -> ReconcileResult:
        plan = plan_role_changes(config, target_level, event.current_role_ids)
        result = ReconcileResult(target_level=target_level)

        if plan.is_noop:
            logger.debug(
                "No role changes for %s in guild %s (level %d)",
                event.user_id, event.guild_id, target_level,
            )
        else:
            await self._revoke_all(event, plan, result)
            if plan.grant is not None:
                try:
                    await self._roles.grant_role(event.guild_id, event.user_id, plan.grant)
                    result.granted.append(plan.grant)
                except LookupError:
                    logger.warning(
                        "Level %d role %s is missing in guild %s; "
                        "not committing level for %s",
                        target_level, plan.grant, event.guild_id, event.user_id,
                    )
                    result.failed.append(plan.grant)
                    return result
                except TransientPlatformError as exc:
                    logger.warning(
                        "Grant of role %s to %s failed: %s",
                        plan.grant, event.user_id, exc,
                    )
                    result.failed.append(plan.grant)
                except Exception:
                    logger.exception(
                        "Unexpected error granting role %s to %s",
                        plan.grant, event.user_id,
                    )
                    result.failed.append(plan.grant)

        await run_db(commit_level, self._engine, event.user_id, event.guild_id, target_level)
        result.committed = True
        logger.info(
            "Reconciled %s in guild %s to level %d (+%s -%s, %d failed)",
            event.display_name, event.guild_id, target_level,
            result.granted or "[]", result.revoked or "[]", len(result.failed),
        )
        return result

    async def _revoke_all(
        self, event: MessageSent, plan: RolePlan, result: ReconcileResult
    ) -> None:
        outcomes = await asyncio.gather(
            *(
                self._roles.revoke_role(event.guild_id, event.user_id, role_id)
                for role_id in plan.revokes
            ),
            return_exceptions=True,
        )
        for role_id, outcome in zip(plan.revokes, outcomes):
            if outcome is None or isinstance(outcome, LookupError):
                result.revoked.append(role_id)
            elif isinstance(outcome, TransientPlatformError):
                logger.warning(
                    "Revoke of role %s from %s failed: %s",
                    role_id, event.user_id, outcome,
                )
                result.failed.append(role_id)
            else:
                logger.error(
                    "Unexpected error revoking role %s from %s",
                    role_id, event.user_id, exc_info=outcome,
                )
                result.failed.append(role_id)
