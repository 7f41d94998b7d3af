"""Tests for the slash command guard."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from clubguard.datatypes.security_datatypes import DenialKind, PermissionRequirement, Verdict
from clubguard.security import dispatch
from clubguard.security.engine import GENERIC_ERROR_MESSAGE


class FakeMember:
    def __init__(self, user_id=42, roles=(100,)):
        self.id = user_id
        self.name = "alice"
        self.roles = [SimpleNamespace(id=role) for role in roles]


def make_ctx(author=None, guild_id=1):
    ctx = MagicMock()
    ctx.author = author or FakeMember()
    ctx.guild_id = guild_id
    ctx.channel_id = 7
    ctx.command = SimpleNamespace(qualified_name="security events")
    ctx.respond = AsyncMock()
    return ctx


@pytest.fixture(autouse=True)
def fake_member_class(monkeypatch):
    monkeypatch.setattr(discord, "Member", FakeMember)


@pytest.mark.asyncio
async def test_allowed_invocation_proceeds_silently():
    engine = SimpleNamespace(authorize=AsyncMock(return_value=Verdict.allow()))
    ctx = make_ctx()

    assert await dispatch.guard(engine, ctx, PermissionRequirement()) is True

    context = engine.authorize.await_args.args[0]
    assert context.user_id == "42"
    assert context.command_name == "security"
    assert context.guild_id == "1"
    assert context.channel_id == "7"
    assert context.role_ids == frozenset({"100"})
    assert context.in_guild is True
    assert engine.authorize.await_args.kwargs == {"enable_rate_limit": True}
    ctx.respond.assert_not_awaited()


@pytest.mark.asyncio
async def test_denied_invocation_replies_ephemerally():
    verdict = Verdict.deny(DenialKind.ROLE_RESTRICTION, "This command is restricted to admins.")
    engine = SimpleNamespace(authorize=AsyncMock(return_value=verdict))
    ctx = make_ctx()

    assert await dispatch.guard(engine, ctx, PermissionRequirement()) is False
    ctx.respond.assert_awaited_once_with("This command is restricted to admins.", ephemeral=True)


@pytest.mark.asyncio
async def test_non_member_author_is_treated_as_outside_guild():
    engine = SimpleNamespace(authorize=AsyncMock(return_value=Verdict.allow()))
    ctx = make_ctx(author=SimpleNamespace(id=5, name="bob"), guild_id=None)

    await dispatch.guard(engine, ctx, PermissionRequirement(), enable_rate_limit=False)

    context = engine.authorize.await_args.args[0]
    assert context.in_guild is False
    assert context.role_ids == frozenset()
    assert engine.authorize.await_args.kwargs == {"enable_rate_limit": False}


@pytest.mark.asyncio
async def test_unreadable_context_is_denied():
    engine = SimpleNamespace(authorize=AsyncMock())
    ctx = make_ctx()
    ctx.author = None

    assert await dispatch.guard(engine, ctx, PermissionRequirement()) is False
    engine.authorize.assert_not_awaited()
    ctx.respond.assert_awaited_once_with(GENERIC_ERROR_MESSAGE, ephemeral=True)


@pytest.mark.asyncio
async def test_failed_denial_reply_is_tolerated():
    verdict = Verdict.deny(DenialKind.RATE_LIMITED, "Rate limit reached.")
    engine = SimpleNamespace(authorize=AsyncMock(return_value=verdict))
    ctx = make_ctx()
    ctx.respond.side_effect = discord.HTTPException(MagicMock(status=404, reason="Not Found"), "Unknown interaction")

    assert await dispatch.guard(engine, ctx, PermissionRequirement()) is False


@pytest.mark.asyncio
async def test_denial_on_already_answered_interaction_is_tolerated():
    verdict = Verdict.deny(DenialKind.SUSPICIOUS_ACTIVITY, "Suspicious activity detected.")
    engine = SimpleNamespace(authorize=AsyncMock(return_value=verdict))
    ctx = make_ctx()
    ctx.respond.side_effect = discord.InteractionResponded(MagicMock())

    assert await dispatch.guard(engine, ctx, PermissionRequirement()) is False
    ctx.respond.assert_awaited_once()
