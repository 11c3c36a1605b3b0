"""
tawnybot.engine.sync — Role Diff Planner
=========================================

Pure half of the role synchronizer.  Given a guild's level table, the
member's target level and the role ids they currently hold, work out which
level roles to revoke and which (at most one) to grant.

The plan is computed from the target level, never from the previous level,
so running it again after the roles converged yields an empty plan.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from tawnybot.engine.levels import GuildLevelConfig, LevelDef, level_role_ids, role_for

__all__ = ["RolePlan", "plan_role_changes"]


@dataclass(frozen=True, slots=True)
class RolePlan:
    """Grant/revoke operations needed to converge one member's level roles."""

    target_level: int
    expected: LevelDef | None
    stale_candidates: frozenset[str]
    revokes: tuple[str, ...] = ()
    grant: str | None = None

    @property
    def is_noop(self) -> bool:
        return not self.revokes and self.grant is None


def plan_role_changes(
    config: GuildLevelConfig,
    target_level: int,
    current_role_ids: Iterable[str],
) -> RolePlan:
    """Build the :class:`RolePlan` for *target_level*.

    1. ``expected`` is the level role for *target_level* (may be None).
    2. ``stale_candidates`` are held roles that back any configured level.
    3. Every stale candidate other than ``expected`` is revoked.
    4. ``expected`` is granted unless it is already held.
    """
    held = set(current_role_ids)
    expected = role_for(config, target_level)
    stale_candidates = frozenset(held & level_role_ids(config))

    if not stale_candidates and expected is None:
        return RolePlan(target_level, None, stale_candidates)

    keep = expected.role_id if expected is not None else None
    revokes = tuple(sorted(r for r in stale_candidates if r != keep))
    grant = keep if keep is not None and keep not in held else None
    return RolePlan(target_level, expected, stale_candidates, revokes, grant)
