"""
Best-effort escalation of high-severity security events to guild admins.

An alert goes out as a direct message to at most ``max_recipients``
members of the event's guild who hold a configured admin role. Sends are
attempted one by one; a recipient with DMs closed (or any other send
failure) is logged at debug level and skipped. There is no retry and no
queue: an undelivered alert is only visible in the event store.
"""

from __future__ import annotations

import json
from typing import List, Optional

import discord

from clubguard.configuration.permission_settings import PermissionSettings
from clubguard.datatypes.security_datatypes import SecurityEvent
from clubguard.util.logger import get_logger

logger = get_logger("escalation_notifier")


def format_alert(event: SecurityEvent) -> str:
    """Render the direct-message text for one security event."""
    lines = [
        "🚨 **Security alert**",
        f"**Type**: {event.type.value}",
        f"**User**: <@{event.user_id}> ({event.user_name})",
        f"**Command**: {event.command_name or 'N/A'}",
        f"**Severity**: {event.severity.value}",
        f"**Time**: <t:{int(event.timestamp.timestamp())}:F>",
    ]
    if event.details:
        lines.append(f"**Details**: `{json.dumps(event.details, default=str)}`")
    return "\n".join(lines)


class EscalationNotifier:
    """Sends security alerts to guild admins by direct message."""

    def __init__(
        self,
        permissions: PermissionSettings,
        bot: Optional[discord.Bot] = None,
        max_recipients: int = 3,
    ) -> None:
        self.permissions = permissions
        self.bot = bot
        self.max_recipients = max_recipients

    def set_bot(self, bot: Optional[discord.Bot]) -> None:
        self.bot = bot

    def resolve_recipients(self, event: SecurityEvent) -> List[discord.Member]:
        """Return up to ``max_recipients`` admins of the event's guild."""
        if self.bot is None or event.guild_id is None:
            return []

        guild = self.bot.get_guild(int(event.guild_id))
        if guild is None:
            logger.debug("[ESCALATION] Guild %s not in cache, skipping alert", event.guild_id)
            return []

        admin_roles = self.permissions.admin_role_ids
        recipients: List[discord.Member] = []
        for member in guild.members:
            if len(recipients) >= self.max_recipients:
                break
            if getattr(member, "bot", False):
                continue
            if any(str(role.id) in admin_roles for role in member.roles):
                recipients.append(member)
        return recipients

    async def notify(self, event: SecurityEvent) -> int:
        """Send the alert to each recipient; returns how many sends succeeded."""
        recipients = self.resolve_recipients(event)
        if not recipients:
            logger.debug("[ESCALATION] No admins to notify for %s in guild %s", event.type.value, event.guild_id)
            return 0

        message = format_alert(event)
        delivered = 0
        for member in recipients:
            try:
                await member.send(message)
                delivered += 1
            except discord.Forbidden:
                logger.debug("[ESCALATION] Admin %s has direct messages disabled", member.id)
            except Exception as exc:
                logger.debug("[ESCALATION] Could not DM admin %s: %s", member.id, exc)

        logger.info(
            "[ESCALATION] Notified %d/%d admins of %s (%s)",
            delivered, len(recipients), event.type.value, event.severity.value,
        )
        return delivered
