"""
Persistent storage for security events.

Timestamps are stored as ISO-8601 strings normalised to UTC with a fixed
microsecond precision, so string comparison matches chronological order.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiosqlite

from clubguard.datatypes.security_datatypes import (
    EventType,
    SecurityEvent,
    Severity,
    StoredSecurityEvent,
)
from clubguard.util.logger import get_logger

logger = get_logger("security_event_repo")

_COLUMNS = "id, type, user_id, user_name, guild_id, channel_id, command_name, details, severity, timestamp"


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _row_to_event(row: Any) -> StoredSecurityEvent:
    details: Dict[str, Any] = {}
    if row[7]:
        try:
            details = json.loads(row[7])
        except ValueError:
            logger.warning("[SECURITY EVENT REPO] Unreadable details on event %s", row[0])
            details = {"raw": row[7]}
    return StoredSecurityEvent(
        id=row[0],
        event=SecurityEvent(
            type=EventType(row[1]),
            user_id=str(row[2]),
            user_name=row[3],
            guild_id=row[4],
            channel_id=row[5],
            command_name=row[6],
            details=details,
            severity=Severity(row[8]),
            timestamp=datetime.fromisoformat(row[9]),
        ),
    )


class SecurityEventRepo:
    """Low-level SQL for the ``security_events`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def insert(conn: aiosqlite.Connection, event: SecurityEvent) -> None:
        await conn.execute(
            """
            INSERT INTO security_events (
                type, user_id, user_name, guild_id, channel_id,
                command_name, details, severity, timestamp
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.type.value,
                event.user_id,
                event.user_name,
                event.guild_id,
                event.channel_id,
                event.command_name,
                json.dumps(event.details, default=str) if event.details else None,
                event.severity.value,
                format_timestamp(event.timestamp),
            ),
        )

    @staticmethod
    async def delete_before(conn: aiosqlite.Connection, cutoff: datetime) -> int:
        """Delete rows strictly older than ``cutoff``; returns the row count."""
        cursor = await conn.execute(
            "DELETE FROM security_events WHERE timestamp < ?",
            (format_timestamp(cutoff),),
        )
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def fetch_recent(
        conn: aiosqlite.Connection,
        limit: int,
        severity: Optional[Severity] = None,
        event_type: Optional[EventType] = None,
    ) -> List[StoredSecurityEvent]:
        """Return up to ``limit`` events, newest first, optionally filtered."""
        sql = f"SELECT {_COLUMNS} FROM security_events WHERE 1=1"
        params: List[Any] = []
        if severity is not None:
            sql += " AND severity = ?"
            params.append(severity.value)
        if event_type is not None:
            sql += " AND type = ?"
            params.append(event_type.value)
        sql += " ORDER BY timestamp DESC, id DESC LIMIT ?"
        params.append(limit)

        async with conn.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_event(row) for row in rows]

    @staticmethod
    async def count_since(conn: aiosqlite.Connection, cutoff: datetime) -> int:
        async with conn.execute(
            "SELECT COUNT(*) FROM security_events WHERE timestamp >= ?",
            (format_timestamp(cutoff),),
        ) as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row else 0


# Module-level instance
security_event_repo = SecurityEventRepo()
