"""
tests/test_sync.py — Role Diff Planner Unit Tests
==================================================
"""

from __future__ import annotations

from tawnybot.engine.levels import GuildLevelConfig, LevelDef
from tawnybot.engine.sync import plan_role_changes

CONFIG = GuildLevelConfig(
    guild_id="1",
    display_name="Guild",
    levels={
        1: LevelDef("R1", 1, "One"),
        2: LevelDef("R2", 5, "Two"),
        3: LevelDef("R3", 20, "Three"),
    },
)


class TestPlanRoleChanges:
    def test_fresh_member_gets_grant_only(self):
        plan = plan_role_changes(CONFIG, 1, set())
        assert plan.grant == "R1"
        assert plan.revokes == ()
        assert plan.expected == LevelDef("R1", 1, "One")

    def test_level_up_swaps_roles(self):
        plan = plan_role_changes(CONFIG, 2, {"R1", "everyone"})
        assert plan.revokes == ("R1",)
        assert plan.grant == "R2"
        assert plan.stale_candidates == frozenset({"R1"})

    def test_unrelated_roles_are_left_alone(self):
        plan = plan_role_changes(CONFIG, 2, {"moderator", "R2"})
        assert plan.is_noop

    def test_converged_member_is_noop(self):
        first = plan_role_changes(CONFIG, 3, {"R1", "R2"})
        after = ({"R1", "R2"} - set(first.revokes)) | {first.grant}
        second = plan_role_changes(CONFIG, 3, after)
        assert second.is_noop
        assert second.revokes == ()
        assert second.grant is None

    def test_level_zero_without_level_roles_is_noop(self):
        plan = plan_role_changes(CONFIG, 0, {"everyone"})
        assert plan.is_noop
        assert plan.expected is None
        assert plan.stale_candidates == frozenset()

    def test_level_zero_revokes_leftover_level_roles(self):
        plan = plan_role_changes(CONFIG, 0, {"R3", "R1"})
        assert plan.revokes == ("R1", "R3")
        assert plan.grant is None

    def test_multiple_stale_roles_revoked_but_expected_kept(self):
        plan = plan_role_changes(CONFIG, 2, {"R1", "R2", "R3"})
        assert plan.revokes == ("R1", "R3")
        assert plan.grant is None

    def test_unconfigured_target_level_revokes_everything(self):
        plan = plan_role_changes(CONFIG, 9, {"R2"})
        assert plan.expected is None
        assert plan.revokes == ("R2",)
