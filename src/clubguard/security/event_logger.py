"""
Write path for security events: log line, durable append, escalation.

The append is awaited before ``log`` returns so the event is on disk by the
time the caller moves on. Neither a failed append nor a failed escalation
reaches the caller; the admit/deny decision has already been made.
"""

from __future__ import annotations

from typing import Optional

from clubguard.datatypes.security_datatypes import SecurityEvent
from clubguard.security.event_store import SecurityEventStore
from clubguard.security.notifier import EscalationNotifier
from clubguard.util.logger import get_logger

logger = get_logger("security_event_logger")


class SecurityEventLogger:
    """Persists security events and escalates the severe ones."""

    def __init__(
        self,
        store: Optional[SecurityEventStore] = None,
        notifier: Optional[EscalationNotifier] = None,
    ) -> None:
        self.store = store
        self.notifier = notifier

    async def log(self, event: SecurityEvent) -> None:
        logger.warning(
            "[SECURITY EVENT] %s user=%s (%s) guild=%s channel=%s command=%s severity=%s details=%s",
            event.type.value,
            event.user_id,
            event.user_name,
            event.guild_id,
            event.channel_id,
            event.command_name,
            event.severity.value,
            event.details,
        )

        if self.store is not None:
            try:
                await self.store.append(event)
            except Exception as exc:
                logger.error("[SECURITY EVENT] Failed to persist %s for user %s: %s", event.type.value, event.user_id, exc)

        if event.severity.escalates and self.notifier is not None:
            try:
                await self.notifier.notify(event)
            except Exception:
                logger.exception("[SECURITY EVENT] Escalation failed for %s", event.type.value)
