"""
Durable, append-only log of security events.

The store is written on every engine decision and read only by operator
reports; enforcement never consults it.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from clubguard.database.db_connection import ConnectionManager
from clubguard.datatypes.security_datatypes import (
    EventType,
    SecurityEvent,
    Severity,
    StoredSecurityEvent,
    utcnow,
)
from clubguard.repositories.security_event_repo import security_event_repo
from clubguard.util.logger import get_logger

logger = get_logger("security_event_store")


class SecurityEventStore:
    """Query and append interface over the ``security_events`` table."""

    def __init__(
        self,
        connection: ConnectionManager,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._connection = connection
        self._clock = clock

    async def append(self, event: SecurityEvent) -> None:
        """Persist one event. Errors propagate to the caller."""
        async with self._connection.transaction() as conn:
            await security_event_repo.insert(conn, event)

    async def recent(
        self,
        limit: int = 50,
        severity: Optional[Severity] = None,
        event_type: Optional[EventType] = None,
    ) -> List[StoredSecurityEvent]:
        async with self._connection.read() as conn:
            return await security_event_repo.fetch_recent(conn, limit, severity, event_type)

    async def count_since(self, hours: float) -> int:
        """Count events newer than ``hours`` ago."""
        cutoff = self._clock() - timedelta(hours=hours)
        async with self._connection.read() as conn:
            return await security_event_repo.count_since(conn, cutoff)

    async def delete_older_than(self, days: int) -> int:
        """Operator-invoked retention: drop events older than ``days``."""
        cutoff = self._clock() - timedelta(days=days)
        async with self._connection.transaction() as conn:
            deleted = await security_event_repo.delete_before(conn, cutoff)
        logger.info("[SECURITY EVENT STORE] Deleted %d events older than %d days", deleted, days)
        return deleted

    async def breakdown(self, limit: int = 100) -> tuple[Dict[Severity, int], Dict[EventType, int]]:
        """Severity and type counts over the ``limit`` most recent events."""
        events = await self.recent(limit)
        severities = Counter(stored.event.severity for stored in events)
        types = Counter(stored.event.type for stored in events)
        return dict(severities), dict(types)
