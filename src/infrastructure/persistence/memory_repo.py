"""
infrastructure.persistence.memory_repo - SQLite memory repository.

Preferences are unique per (user_id, key) and upserted; insights are
appended and pruned to a retention bound inside the same transaction.
Values and metadata are stored as JSON text.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime

from domain.entities import InsightEntry, PreferenceEntry
from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)


class SQLiteMemoryRepository:
    """Async SQLite implementation of MemoryRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def upsert_preference(self, entry: PreferenceEntry) -> None:
        now = datetime.now().isoformat()
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT INTO memory_preferences
                   (user_id, key, value, category, confidence, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(user_id, key) DO UPDATE SET
                       value = excluded.value,
                       category = excluded.category,
                       confidence = excluded.confidence,
                       updated_at = excluded.updated_at""",
                (entry.user_id, entry.key, json.dumps(entry.value),
                 entry.category, entry.confidence, now, now),
            )

    async def get_preferences(self, user_id: str) -> list[PreferenceEntry]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM memory_preferences
                   WHERE user_id = ? ORDER BY updated_at DESC, id DESC""",
                (user_id,),
            )
        return [self._row_to_preference(r) for r in rows]

    async def append_insight(self, entry: InsightEntry, retain: int) -> int:
        """Insert an insight and drop the oldest ones beyond `retain`."""
        now = datetime.now().isoformat()
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                """INSERT INTO memory_insights
                   (user_id, agent_name, text, category, confidence, metadata, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (entry.user_id, entry.agent_name, entry.text, entry.category,
                 entry.confidence, json.dumps(entry.metadata), now),
            )
            insight_id = cursor.lastrowid
            pruned = await conn.execute(
                """DELETE FROM memory_insights
                   WHERE user_id = ? AND id NOT IN (
                       SELECT id FROM memory_insights WHERE user_id = ?
                       ORDER BY id DESC LIMIT ?
                   )""",
                (entry.user_id, entry.user_id, retain),
            )
            if pruned.rowcount:
                logger.debug(
                    "Pruned %d old insight(s) for user %s", pruned.rowcount, entry.user_id,
                )
        entry.id = insight_id
        entry.created_at = now
        return insight_id

    async def recent_insights(self, user_id: str, limit: int) -> list[InsightEntry]:
        """Most recent insights first."""
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM memory_insights
                   WHERE user_id = ? ORDER BY id DESC LIMIT ?""",
                (user_id, limit),
            )
        return [self._row_to_insight(r) for r in rows]

    @staticmethod
    def _row_to_preference(row) -> PreferenceEntry:
        return PreferenceEntry(
            id=row["id"],
            user_id=row["user_id"],
            key=row["key"],
            value=json.loads(row["value"]) if row["value"] else None,
            category=row["category"] or "general",
            confidence=row["confidence"] if row["confidence"] is not None else 1.0,
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
        )

    @staticmethod
    def _row_to_insight(row) -> InsightEntry:
        return InsightEntry(
            id=row["id"],
            user_id=row["user_id"],
            agent_name=row["agent_name"] or "",
            text=row["text"] or "",
            category=row["category"] or "general",
            confidence=row["confidence"] if row["confidence"] is not None else 0.5,
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            created_at=row["created_at"] or "",
        )
