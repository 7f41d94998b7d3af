"""Tests for the permission evaluator."""

import pytest

from clubguard.configuration.permission_settings import PermissionSettings
from clubguard.datatypes.security_datatypes import (
    CallerContext,
    DenialKind,
    PermissionRequirement,
    PermissionTier,
)
from clubguard.security.permissions import (
    ADMIN_ONLY_MESSAGE,
    GLOBAL_CHANNEL_MESSAGE,
    GUILD_ONLY_MESSAGE,
    MEMBER_ONLY_MESSAGE,
    NOT_ALLOWED_CHANNEL_MESSAGE,
    RESTRICTED_CHANNEL_MESSAGE,
    PermissionEvaluator,
)

ADMIN_ROLE = "100"
MEMBER_ROLE = "200"
OTHER_ROLE = "300"


def make_context(roles=(), channel_id="c1", user_id="u1", guild_id="g1", in_guild=None):
    return CallerContext.build(
        user_id=user_id,
        user_name="alice",
        channel_id=channel_id,
        command_name="fee",
        guild_id=guild_id,
        role_ids=roles,
        in_guild=in_guild,
    )


@pytest.fixture
def evaluator():
    settings = PermissionSettings({
        "admin_role_ids": [int(ADMIN_ROLE)],
        "member_role_ids": [MEMBER_ROLE],
        "allowed_channel_ids": [],
    })
    return PermissionEvaluator(settings)


class TestGuildContext:
    def test_direct_message_is_rejected(self, evaluator):
        verdict = evaluator.evaluate(make_context(guild_id=None), PermissionRequirement())
        assert verdict.allowed is False
        assert verdict.denial is DenialKind.GUILD_ONLY
        assert verdict.reason == GUILD_ONLY_MESSAGE

    def test_guild_only_wins_over_every_other_check(self, evaluator):
        requirement = PermissionRequirement.build(tier="admin", restricted_channels=["c1"])
        verdict = evaluator.evaluate(make_context(in_guild=False), requirement)
        assert verdict.denial is DenialKind.GUILD_ONLY


class TestTiers:
    def test_admin_tier_allows_admin_role(self, evaluator):
        requirement = PermissionRequirement(tier=PermissionTier.ADMIN)
        assert evaluator.evaluate(make_context([ADMIN_ROLE]), requirement).allowed is True

    def test_admin_tier_rejects_member(self, evaluator):
        requirement = PermissionRequirement(tier=PermissionTier.ADMIN)
        verdict = evaluator.evaluate(make_context([MEMBER_ROLE]), requirement)
        assert verdict.allowed is False
        assert verdict.denial is DenialKind.ROLE_RESTRICTION
        assert verdict.reason == ADMIN_ONLY_MESSAGE

    def test_member_tier_accepts_member_and_admin(self, evaluator):
        requirement = PermissionRequirement(tier=PermissionTier.MEMBER)
        assert evaluator.evaluate(make_context([MEMBER_ROLE]), requirement).allowed is True
        assert evaluator.evaluate(make_context([ADMIN_ROLE]), requirement).allowed is True

    def test_member_tier_rejects_outsider(self, evaluator):
        requirement = PermissionRequirement(tier=PermissionTier.MEMBER)
        verdict = evaluator.evaluate(make_context([OTHER_ROLE]), requirement)
        assert verdict.denial is DenialKind.ROLE_RESTRICTION
        assert verdict.reason == MEMBER_ONLY_MESSAGE

    def test_all_tier_accepts_anyone_in_guild(self, evaluator):
        assert evaluator.evaluate(make_context(), PermissionRequirement()).allowed is True


class TestChannels:
    def test_restricted_channel_beats_admin_role(self, evaluator):
        requirement = PermissionRequirement.build(restricted_channels=["c1"])
        verdict = evaluator.evaluate(make_context([ADMIN_ROLE]), requirement)
        assert verdict.denial is DenialKind.CHANNEL_RESTRICTION
        assert verdict.reason == RESTRICTED_CHANNEL_MESSAGE

    def test_restricted_channel_beats_allowed_list(self, evaluator):
        requirement = PermissionRequirement.build(allowed_channels=["c1"], restricted_channels=["c1"])
        verdict = evaluator.evaluate(make_context(), requirement)
        assert verdict.reason == RESTRICTED_CHANNEL_MESSAGE

    def test_channel_outside_allowed_list_is_rejected(self, evaluator):
        requirement = PermissionRequirement.build(allowed_channels=["c2"])
        verdict = evaluator.evaluate(make_context(channel_id="c1"), requirement)
        assert verdict.denial is DenialKind.CHANNEL_RESTRICTION
        assert verdict.reason == NOT_ALLOWED_CHANNEL_MESSAGE

    def test_global_channel_list_applies_without_command_list(self):
        evaluator = PermissionEvaluator(PermissionSettings({"allowed_channel_ids": ["c9"]}))
        verdict = evaluator.evaluate(make_context(channel_id="c1"), PermissionRequirement())
        assert verdict.reason == GLOBAL_CHANNEL_MESSAGE
        assert evaluator.evaluate(make_context(channel_id="c9"), PermissionRequirement()).allowed is True

    def test_command_allowed_list_overrides_global_list(self):
        evaluator = PermissionEvaluator(PermissionSettings({"allowed_channel_ids": ["c9"]}))
        requirement = PermissionRequirement.build(allowed_channels=["c1"])
        assert evaluator.evaluate(make_context(channel_id="c1"), requirement).allowed is True

    def test_empty_global_list_allows_every_channel(self, evaluator):
        assert evaluator.evaluate(make_context(channel_id="anything"), PermissionRequirement()).allowed is True


class TestRoleAndUserLists:
    def test_allowed_roles_requires_one_match(self, evaluator):
        requirement = PermissionRequirement.build(allowed_roles=[OTHER_ROLE])
        assert evaluator.evaluate(make_context([OTHER_ROLE]), requirement).allowed is True

        verdict = evaluator.evaluate(make_context([MEMBER_ROLE]), requirement)
        assert verdict.denial is DenialKind.ROLE_RESTRICTION

    def test_allowed_roles_are_checked_after_tier(self, evaluator):
        requirement = PermissionRequirement.build(tier="admin", allowed_roles=[OTHER_ROLE])
        verdict = evaluator.evaluate(make_context([OTHER_ROLE]), requirement)
        assert verdict.reason == ADMIN_ONLY_MESSAGE

    def test_allowed_users(self, evaluator):
        requirement = PermissionRequirement.build(allowed_users=[42])
        assert evaluator.evaluate(make_context(user_id=42), requirement).allowed is True

        verdict = evaluator.evaluate(make_context(user_id="7"), requirement)
        assert verdict.denial is DenialKind.USER_RESTRICTION

    def test_empty_lists_restrict_nothing(self, evaluator):
        requirement = PermissionRequirement.build(allowed_roles=[], allowed_users=[], allowed_channels=[])
        assert evaluator.evaluate(make_context(), requirement).allowed is True
