"""
Permission evaluation for slash commands.

The evaluator is a pure function of the caller context, the command's
declared requirement and the guild-wide permission settings. It never
logs or persists anything; the security engine records the outcome.

Checks run in a fixed order and the first failure wins:

1. guild context (direct messages are rejected outright)
2. channel: per-command restricted list, per-command allowed list, global list
3. tier: ``admin`` / ``member`` / ``all``
4. per-command role allow-list
5. per-command user allow-list

Restricted channels are checked before any allow-list so a broad role or
user grant can never re-open a channel the command owner closed.
"""

from __future__ import annotations

from clubguard.configuration.permission_settings import PermissionSettings
from clubguard.datatypes.security_datatypes import (
    CallerContext,
    DenialKind,
    PermissionRequirement,
    PermissionTier,
    Verdict,
)

GUILD_ONLY_MESSAGE = "This command can only be used inside a server."
RESTRICTED_CHANNEL_MESSAGE = "This command is restricted in this channel."
NOT_ALLOWED_CHANNEL_MESSAGE = "This command cannot be used in this channel."
GLOBAL_CHANNEL_MESSAGE = "Commands cannot be used in this channel."
ADMIN_ONLY_MESSAGE = "This command is restricted to admins."
MEMBER_ONLY_MESSAGE = "This command is restricted to club members."
MISSING_ROLE_MESSAGE = "You do not have a role required for this command."
USER_NOT_ALLOWED_MESSAGE = "You are not permitted to use this command."


class PermissionEvaluator:
    """Evaluates a :class:`PermissionRequirement` against a caller."""

    def __init__(self, settings: PermissionSettings) -> None:
        self.settings = settings

    def evaluate(self, context: CallerContext, requirement: PermissionRequirement) -> Verdict:
        if not context.in_guild:
            return Verdict.deny(DenialKind.GUILD_ONLY, GUILD_ONLY_MESSAGE)

        for check in (self._check_channel, self._check_tier, self._check_roles, self._check_user):
            verdict = check(context, requirement)
            if not verdict.allowed:
                return verdict
        return Verdict.allow()

    def _check_channel(self, context: CallerContext, requirement: PermissionRequirement) -> Verdict:
        channel_id = context.channel_id

        if channel_id in requirement.restricted_channels:
            return Verdict.deny(DenialKind.CHANNEL_RESTRICTION, RESTRICTED_CHANNEL_MESSAGE)

        if requirement.allowed_channels:
            # An explicit per-command list replaces the global channel policy
            if channel_id not in requirement.allowed_channels:
                return Verdict.deny(DenialKind.CHANNEL_RESTRICTION, NOT_ALLOWED_CHANNEL_MESSAGE)
            return Verdict.allow()

        if not self.settings.is_allowed_channel(channel_id):
            return Verdict.deny(DenialKind.CHANNEL_RESTRICTION, GLOBAL_CHANNEL_MESSAGE)

        return Verdict.allow()

    def _check_tier(self, context: CallerContext, requirement: PermissionRequirement) -> Verdict:
        roles = context.role_ids

        if requirement.tier is PermissionTier.ADMIN and not self.settings.is_admin(roles):
            return Verdict.deny(DenialKind.ROLE_RESTRICTION, ADMIN_ONLY_MESSAGE)

        if requirement.tier is PermissionTier.MEMBER and not (
            self.settings.is_admin(roles) or self.settings.is_member(roles)
        ):
            return Verdict.deny(DenialKind.ROLE_RESTRICTION, MEMBER_ONLY_MESSAGE)

        return Verdict.allow()

    @staticmethod
    def _check_roles(context: CallerContext, requirement: PermissionRequirement) -> Verdict:
        if requirement.allowed_roles and requirement.allowed_roles.isdisjoint(context.role_ids):
            return Verdict.deny(DenialKind.ROLE_RESTRICTION, MISSING_ROLE_MESSAGE)
        return Verdict.allow()

    @staticmethod
    def _check_user(context: CallerContext, requirement: PermissionRequirement) -> Verdict:
        if requirement.allowed_users and context.user_id not in requirement.allowed_users:
            return Verdict.deny(DenialKind.USER_RESTRICTION, USER_NOT_ALLOWED_MESSAGE)
        return Verdict.allow()
