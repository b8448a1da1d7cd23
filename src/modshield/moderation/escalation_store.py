"""
Durable escalation counters.

Wraps :class:`ViolationRepo` with the connection manager's serialised write
transactions and translates database failures into :class:`StoreError`.
Increments are a single upsert, so two violations racing on the same
(user, category) key can never lose an update, and different categories of
the same user never share a row.

Repeated calls for the same logical event increment each time; callers that
retry must de-duplicate themselves.
"""

from __future__ import annotations

from typing import Dict

import aiosqlite

from modshield.database.db_connection import ConnectionManager
from modshield.datatypes.discord_datatypes import UserID
from modshield.datatypes.moderation_datatypes import (
    ViolationCategory,
    ViolationMetadata,
    ViolationRecord,
)
from modshield.exceptions import StoreError
from modshield.repositories.violation_repo import ViolationRepo
from modshield.util.logger import get_logger

logger = get_logger("escalation_store")


class EscalationStore:
    """Per-(user, category) violation counters backed by SQLite."""

    def __init__(self, connection: ConnectionManager) -> None:
        self.connection = connection

    async def increment_and_get(
        self,
        user_id: UserID,
        category: ViolationCategory,
        metadata: ViolationMetadata,
    ) -> int:
        """Atomically bump the counter and return it.

        ``metadata.explicit_count`` is honoured only when it is ahead of the
        stored count plus one, so the count never moves backwards.

        Raises:
            StoreError: If the write fails.
        """
        try:
            async with self.connection.transaction() as conn:
                count = await ViolationRepo.increment(conn, user_id, category, metadata)
        except (aiosqlite.Error, RuntimeError) as exc:
            raise StoreError(f"Failed to record {category} violation for {user_id}: {exc}") from exc

        logger.debug("[ESCALATION STORE] %s %s count is now %d", user_id, category, count)
        return count

    async def reset(
        self,
        user_id: UserID,
        category: ViolationCategory | None = None,
        *,
        fresh_record: bool = False,
        display_name: str = "",
        reason: str = "ban",
    ) -> None:
        """Zero one category, or every category when *category* is None.

        With ``fresh_record=True`` count-0 rows are written back for the
        affected categories instead of leaving them absent. Every reset is
        appended to the ``violation_resets`` audit table.

        Raises:
            StoreError: If the write fails.
        """
        categories = list(ViolationCategory) if category is None else [category]
        try:
            async with self.connection.transaction() as conn:
                await ViolationRepo.delete(conn, user_id, category)
                if fresh_record:
                    await ViolationRepo.write_zero_records(conn, user_id, display_name, categories)
                await ViolationRepo.log_reset(conn, user_id, category, display_name, reason)
        except (aiosqlite.Error, RuntimeError) as exc:
            raise StoreError(f"Failed to reset violations for {user_id}: {exc}") from exc

        logger.info(
            "[ESCALATION STORE] Reset %s violations for %s (%s)",
            category or "all", user_id, reason,
        )

    async def get(self, user_id: UserID, category: ViolationCategory) -> ViolationRecord:
        """Return the record, or an empty count-0 record if the user has none."""
        try:
            async with self.connection.read() as conn:
                record = await ViolationRepo.get(conn, user_id, category)
        except (aiosqlite.Error, RuntimeError) as exc:
            raise StoreError(f"Failed to read violations for {user_id}: {exc}") from exc
        return record or ViolationRecord.empty(user_id, category)

    async def get_all(self, user_id: UserID) -> Dict[ViolationCategory, ViolationRecord]:
        """Return a record for every category, filling gaps with count-0 records."""
        try:
            async with self.connection.read() as conn:
                rows = await ViolationRepo.get_all(conn, user_id)
        except (aiosqlite.Error, RuntimeError) as exc:
            raise StoreError(f"Failed to read violations for {user_id}: {exc}") from exc
        records = {category: ViolationRecord.empty(user_id, category) for category in ViolationCategory}
        records.update({record.category: record for record in rows})
        return records
