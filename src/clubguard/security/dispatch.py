"""
Glue between py-cord slash commands and the security engine.

Cogs call :func:`guard` at the top of each command handler::

    if not await guard(self.engine, ctx, FEE_REQUIREMENT):
        return
"""

from __future__ import annotations

import discord

from clubguard.datatypes.security_datatypes import (
    CallerContext,
    PermissionRequirement,
    Verdict,
)
from clubguard.security.engine import GENERIC_ERROR_MESSAGE, SecurityEngine
from clubguard.util.logger import get_logger

logger = get_logger("security_dispatch")


async def guard(
    engine: SecurityEngine,
    ctx: discord.ApplicationContext,
    requirement: PermissionRequirement,
    enable_rate_limit: bool = True,
) -> bool:
    """Authorize ``ctx`` and reply with the denial reason when refused.

    Returns True when the command may proceed.
    """
    try:
        context = CallerContext.from_application_context(ctx)
    except Exception:
        logger.exception("[SECURITY DISPATCH] Could not read caller context, denying")
        await _respond_denied(ctx, GENERIC_ERROR_MESSAGE)
        return False

    verdict: Verdict = await engine.authorize(context, requirement, enable_rate_limit=enable_rate_limit)
    if verdict.allowed:
        return True

    await _respond_denied(ctx, verdict.reason or "You are not allowed to run this command.")
    return False


async def _respond_denied(ctx: discord.ApplicationContext, message: str) -> None:
    try:
        await ctx.respond(message, ephemeral=True)
    except (discord.HTTPException, discord.ClientException) as exc:
        logger.debug("[SECURITY DISPATCH] Could not send denial to %s: %s", ctx.author, exc)
