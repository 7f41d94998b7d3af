"""
Embed builders for the /security operator commands.
"""

import datetime
from typing import Dict, List, Optional

import discord

from clubguard.datatypes.security_datatypes import (
    EventType,
    SecurityStats,
    Severity,
    StoredSecurityEvent,
)

SEVERITY_EMOJIS = {
    Severity.LOW: "🟢",
    Severity.MEDIUM: "🟡",
    Severity.HIGH: "🟠",
    Severity.CRITICAL: "🔴",
}

EVENT_TYPE_EMOJIS = {
    EventType.COMMAND_EXECUTION: "⚙️",
    EventType.PERMISSION_DENIED: "❌",
    EventType.RATE_LIMIT_EXCEEDED: "⏱️",
    EventType.SUSPICIOUS_ACTIVITY: "🚨",
}

EVENT_TYPE_NAMES = {
    EventType.COMMAND_EXECUTION: "Command execution",
    EventType.PERMISSION_DENIED: "Permission denied",
    EventType.RATE_LIMIT_EXCEEDED: "Rate limit exceeded",
    EventType.SUSPICIOUS_ACTIVITY: "Suspicious activity",
}

EVENTS_PER_FIELD = 5
MAX_EVENTS_SHOWN = 25


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def build_stats_embed(
    stats: SecurityStats,
    severity_counts: Dict[Severity, int],
    type_counts: Dict[EventType, int],
    recent_hours: int = 24,
) -> discord.Embed:
    """Engine counters plus severity and type breakdowns of recent events."""
    embed = discord.Embed(
        title="🔒 Security statistics",
        description="Current state of the access-control engine",
        color=discord.Color.orange(),
        timestamp=_now(),
    )
    embed.add_field(
        name="📊 Overview",
        value="\n".join([
            f"**Events (last {recent_hours}h)**: {stats.recent_security_event_count}",
            f"**Active rate limits**: {stats.active_rate_limits}",
            f"**Tracked rate limits**: {stats.total_rate_limits}",
            f"**Activity buckets**: {stats.suspicious_activity_count}",
        ]),
        inline=True,
    )
    embed.add_field(
        name="🚨 By severity",
        value="\n".join(
            f"{SEVERITY_EMOJIS.get(severity, '⚪')} **{severity.value}**: {count}"
            for severity, count in severity_counts.items()
        ) or "No data",
        inline=True,
    )
    embed.add_field(
        name="📋 By type",
        value="\n".join(
            f"{EVENT_TYPE_EMOJIS.get(event_type, '📝')} **{EVENT_TYPE_NAMES.get(event_type, event_type.value)}**: {count}"
            for event_type, count in type_counts.items()
        ) or "No data",
        inline=False,
    )
    return embed


def format_event_line(stored: StoredSecurityEvent) -> str:
    event = stored.event
    return (
        f"{SEVERITY_EMOJIS.get(event.severity, '⚪')}{EVENT_TYPE_EMOJIS.get(event.type, '📝')} "
        f"<@{event.user_id}> - {event.command_name or 'N/A'} <t:{int(event.timestamp.timestamp())}:R>"
    )


def build_events_embed(
    events: List[StoredSecurityEvent],
    severity: Optional[Severity] = None,
    event_type: Optional[EventType] = None,
) -> discord.Embed:
    """List recent events, five per field, at most 25 shown."""
    embed = discord.Embed(
        title="🛡️ Security events",
        description=f"Latest {len(events)} security event(s)",
        color=discord.Color.dark_orange(),
        timestamp=_now(),
    )

    filters = []
    if severity is not None:
        filters.append(f"severity={severity.value}")
    if event_type is not None:
        filters.append(f"type={event_type.value}")
    if filters:
        embed.set_footer(text="Filter: " + ", ".join(filters))

    shown = events[:MAX_EVENTS_SHOWN]
    for start in range(0, len(shown), EVENTS_PER_FIELD):
        group = shown[start:start + EVENTS_PER_FIELD]
        embed.add_field(
            name="Recent events" if start == 0 else "\u200b",
            value="\n".join(format_event_line(stored) for stored in group),
            inline=False,
        )

    if len(events) > MAX_EVENTS_SHOWN:
        embed.add_field(
            name="\u200b",
            value=f"{len(events) - MAX_EVENTS_SHOWN} more event(s) not shown",
            inline=False,
        )
    return embed


def build_cleanup_embed(days: int, deleted: int) -> discord.Embed:
    embed = discord.Embed(
        title="🧹 Security event cleanup complete",
        description=f"Deleted security events older than {days} days.",
        color=discord.Color.green(),
        timestamp=_now(),
    )
    embed.add_field(name="Events deleted", value=str(deleted), inline=True)
    return embed
