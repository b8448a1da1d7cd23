"""
Database schema initialization.

Handles creation of tables, indexes, and schema version tracking.
"""

import aiosqlite
from modshield.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates the violation tables and records the schema version."""

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
        # One row per (user, category); counters are independent per category
        await db.execute("""
            CREATE TABLE IF NOT EXISTS violation_records (
                user_id TEXT NOT NULL,
                category TEXT NOT NULL,
                display_name TEXT NOT NULL DEFAULT '',
                count INTEGER NOT NULL DEFAULT 0 CHECK (count >= 0),
                last_detail TEXT,
                last_content TEXT,
                last_violation_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (user_id, category)
            )
        """)

        # Audit trail of ban clears and administrative unbans
        await db.execute("""
            CREATE TABLE IF NOT EXISTS violation_resets (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                category TEXT,
                display_name TEXT NOT NULL DEFAULT '',
                reason TEXT NOT NULL,
                reset_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
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
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_violation_resets_user ON violation_resets(user_id, reset_at)"
        )

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
