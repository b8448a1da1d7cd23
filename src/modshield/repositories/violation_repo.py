"""
Persistent storage for per-user, per-category violation counters.

Each (user_id, category) pair is its own row, so increments in different
categories never touch the same row. Timestamps are assigned by SQLite
(``CURRENT_TIMESTAMP``, UTC).
"""

from __future__ import annotations

import datetime
from typing import Iterable, List, Optional

import aiosqlite

from modshield.datatypes.discord_datatypes import UserID
from modshield.datatypes.moderation_datatypes import (
    LastViolation,
    ViolationCategory,
    ViolationMetadata,
    ViolationRecord,
)

_INCREMENT_SQL = """
    INSERT INTO violation_records (
        user_id, category, display_name, count, last_detail, last_content, last_violation_at
    )
    VALUES (
        :user_id, :category, :display_name, MAX(COALESCE(:explicit_count, 0), 1), :detail, :content, CURRENT_TIMESTAMP
    )
    ON CONFLICT(user_id, category) DO UPDATE SET
        display_name      = COALESCE(NULLIF(excluded.display_name, ''), violation_records.display_name),
        count             = MAX(COALESCE(:explicit_count, 0), violation_records.count + 1),
        last_detail       = excluded.last_detail,
        last_content      = excluded.last_content,
        last_violation_at = excluded.last_violation_at
    RETURNING count
"""

_SELECT_COLUMNS = (
    "SELECT user_id, category, display_name, count, last_detail, last_content, last_violation_at "
    "FROM violation_records"
)


def _parse_timestamp(raw: object) -> Optional[datetime.datetime]:
    if raw is None:
        return None
    if isinstance(raw, datetime.datetime):
        parsed = raw
    else:
        try:
            parsed = datetime.datetime.fromisoformat(str(raw))
        except ValueError:
            return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=datetime.timezone.utc)


def _row_to_record(row: aiosqlite.Row) -> ViolationRecord:
    category = ViolationCategory(row[1])
    last = None
    if row[4] is not None:
        last = LastViolation(
            category=category,
            detail=row[4],
            raw_content=row[5] or "",
            timestamp=_parse_timestamp(row[6]),
        )
    return ViolationRecord(
        user_id=UserID(row[0]),
        category=category,
        display_name=row[2] or "",
        count=int(row[3]),
        last_violation=last,
    )


class ViolationRepo:
    """Low-level SQL for the ``violation_records`` and ``violation_resets`` tables."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def increment(
        conn: aiosqlite.Connection,
        user_id: UserID,
        category: ViolationCategory,
        metadata: ViolationMetadata,
    ) -> int:
        """Upsert the row and return the stored count in one statement.

        Adds exactly one to the existing count. A ``metadata.explicit_count``
        ahead of that is stored instead; one behind it (an in-memory counter
        that restarted) never lowers the durable count.
        """
        cursor = await conn.execute(
            _INCREMENT_SQL,
            {
                "user_id": str(user_id),
                "category": category.value,
                "display_name": metadata.display_name,
                "explicit_count": metadata.explicit_count,
                "detail": metadata.detail,
                "content": metadata.raw_content,
            },
        )
        row = await cursor.fetchone()
        await cursor.close()
        if row is None:
            raise aiosqlite.OperationalError("violation upsert returned no row")
        return int(row[0])

    @staticmethod
    async def delete(
        conn: aiosqlite.Connection,
        user_id: UserID,
        category: ViolationCategory | None = None,
    ) -> None:
        """Delete one category row, or every row for the user when *category* is None."""
        if category is None:
            await conn.execute("DELETE FROM violation_records WHERE user_id = ?", (str(user_id),))
        else:
            await conn.execute(
                "DELETE FROM violation_records WHERE user_id = ? AND category = ?",
                (str(user_id), category.value),
            )

    @staticmethod
    async def write_zero_records(
        conn: aiosqlite.Connection,
        user_id: UserID,
        display_name: str,
        categories: Iterable[ViolationCategory],
    ) -> None:
        """Write a fresh count-0 row for each category, clearing old metadata."""
        await conn.executemany(
            """
            INSERT INTO violation_records (user_id, category, display_name, count)
            VALUES (?, ?, ?, 0)
            ON CONFLICT(user_id, category) DO UPDATE SET
                display_name      = excluded.display_name,
                count             = 0,
                last_detail       = NULL,
                last_content      = NULL,
                last_violation_at = NULL
            """,
            [(str(user_id), category.value, display_name) for category in categories],
        )

    @staticmethod
    async def log_reset(
        conn: aiosqlite.Connection,
        user_id: UserID,
        category: ViolationCategory | None,
        display_name: str,
        reason: str,
    ) -> None:
        await conn.execute(
            "INSERT INTO violation_resets (user_id, category, display_name, reason) VALUES (?, ?, ?, ?)",
            (str(user_id), category.value if category else None, display_name, reason),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get(
        conn: aiosqlite.Connection,
        user_id: UserID,
        category: ViolationCategory,
    ) -> Optional[ViolationRecord]:
        cursor = await conn.execute(
            f"{_SELECT_COLUMNS} WHERE user_id = ? AND category = ?",
            (str(user_id), category.value),
        )
        row = await cursor.fetchone()
        await cursor.close()
        return _row_to_record(row) if row else None

    @staticmethod
    async def get_all(conn: aiosqlite.Connection, user_id: UserID) -> List[ViolationRecord]:
        cursor = await conn.execute(f"{_SELECT_COLUMNS} WHERE user_id = ?", (str(user_id),))
        rows = await cursor.fetchall()
        await cursor.close()
        return [_row_to_record(row) for row in rows]
