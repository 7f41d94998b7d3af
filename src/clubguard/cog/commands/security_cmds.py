"""
Security cog: operator commands over the security engine and event store.

Exposes the /security command group:
- /security stats:   engine counters plus a breakdown of recent events
- /security events:  recent security events, optionally filtered
- /security cleanup: delete events older than N days (retention)

Every subcommand is admin-only and passes through the engine like any other
command, so it is rate limited and logged too. Responses are ephemeral.
"""

from typing import Optional

import discord
from discord.ext import commands

from clubguard.datatypes.security_datatypes import (
    EventType,
    PermissionRequirement,
    PermissionTier,
    Severity,
)
from clubguard.security.dispatch import guard
from clubguard.security.engine import SecurityEngine
from clubguard.ui.security_embed import (
    build_cleanup_embed,
    build_events_embed,
    build_stats_embed,
)
from clubguard.util.logger import get_logger

logger = get_logger("security_commands")

ADMIN_ONLY = PermissionRequirement(tier=PermissionTier.ADMIN)

SEVERITY_CHOICES = [severity.value for severity in Severity]
EVENT_TYPE_CHOICES = [event_type.value for event_type in EventType]

STATS_SAMPLE_SIZE = 100
STORE_UNAVAILABLE = "The security event store is not available."


class SecurityCog(commands.Cog):
    """Admin commands for inspecting and pruning security events."""

    security = discord.SlashCommandGroup("security", "Security administration (admins only)")

    def __init__(self, discord_bot_instance, engine: SecurityEngine):
        self.discord_bot_instance = discord_bot_instance
        self.engine = engine
        logger.info("[SECURITY CMDS] Security cog loaded")

    @security.command(name="stats", description="Show security statistics.")
    async def stats(self, ctx: discord.ApplicationContext):
        if not await guard(self.engine, ctx, ADMIN_ONLY):
            return
        await ctx.defer(ephemeral=True)

        try:
            stats = await self.engine.stats()
            severity_counts, type_counts = ({}, {})
            if self.engine.store is not None:
                severity_counts, type_counts = await self.engine.store.breakdown(STATS_SAMPLE_SIZE)
        except Exception as exc:
            logger.error("[SECURITY CMDS] Failed to build security stats: %s", exc)
            await ctx.send_followup("Failed to load security statistics.", ephemeral=True)
            return

        embed = build_stats_embed(stats, severity_counts, type_counts, self.engine.settings.recent_event_hours)
        await ctx.send_followup(embed=embed, ephemeral=True)

    @security.command(name="events", description="Show recent security events.")
    async def events(
        self,
        ctx: discord.ApplicationContext,
        severity: discord.Option(str, "Filter by severity", choices=SEVERITY_CHOICES, required=False, default=None),  # type: ignore[valid-type]
        type: discord.Option(str, "Filter by event type", choices=EVENT_TYPE_CHOICES, required=False, default=None),  # type: ignore[valid-type]
        limit: discord.Option(int, "Number of events (default 20)", min_value=1, max_value=50, required=False, default=20),  # type: ignore[valid-type]
    ):
        if not await guard(self.engine, ctx, ADMIN_ONLY):
            return
        await ctx.defer(ephemeral=True)

        if self.engine.store is None:
            await ctx.send_followup(STORE_UNAVAILABLE, ephemeral=True)
            return

        severity_filter: Optional[Severity] = Severity(severity) if severity else None
        type_filter: Optional[EventType] = EventType(type) if type else None

        try:
            events = await self.engine.store.recent(limit, severity_filter, type_filter)
        except Exception as exc:
            logger.error("[SECURITY CMDS] Failed to read security events: %s", exc)
            await ctx.send_followup("Failed to load security events.", ephemeral=True)
            return

        if not events:
            await ctx.send_followup("No security events match those filters.", ephemeral=True)
            return

        await ctx.send_followup(embed=build_events_embed(events, severity_filter, type_filter), ephemeral=True)

    @security.command(name="cleanup", description="Delete old security events.")
    async def cleanup(
        self,
        ctx: discord.ApplicationContext,
        days: discord.Option(int, "Delete events older than this many days", min_value=7, max_value=365, required=False, default=None),  # type: ignore[valid-type]
    ):
        if not await guard(self.engine, ctx, ADMIN_ONLY):
            return
        await ctx.defer(ephemeral=True)

        if self.engine.store is None:
            await ctx.send_followup(STORE_UNAVAILABLE, ephemeral=True)
            return

        days = days or self.engine.settings.retention_days
        try:
            deleted = await self.engine.store.delete_older_than(days)
        except Exception as exc:
            logger.error("[SECURITY CMDS] Security event cleanup failed: %s", exc)
            await ctx.send_followup("Failed to clean up security events.", ephemeral=True)
            return

        logger.info("[SECURITY CMDS] %s deleted %d events older than %d days", ctx.author.id, deleted, days)
        await ctx.send_followup(embed=build_cleanup_embed(days, deleted), ephemeral=True)


def setup(discord_bot_instance, engine: SecurityEngine):
    discord_bot_instance.add_cog(SecurityCog(discord_bot_instance, engine))
