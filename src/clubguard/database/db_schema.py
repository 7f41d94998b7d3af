"""
Database schema initialization.

Creates the append-only ``security_events`` table, its indexes and the
schema version marker.
"""

import aiosqlite
from clubguard.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates tables and indexes for the security event store."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables and indexes if they do not exist yet.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        # Timestamps are ISO-8601 UTC strings, which sort chronologically
        await db.execute("""
            CREATE TABLE IF NOT EXISTS security_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                type TEXT NOT NULL,
                user_id TEXT NOT NULL,
                user_name TEXT NOT NULL,
                guild_id TEXT,
                channel_id TEXT,
                command_name TEXT,
                details TEXT,
                severity TEXT NOT NULL,
                timestamp TEXT NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_security_events_timestamp ON security_events(timestamp DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_security_events_severity ON security_events(severity, timestamp DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_security_events_type ON security_events(type, timestamp DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_security_events_user ON security_events(user_id, timestamp DESC)")

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
