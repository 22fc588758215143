"""
infrastructure.persistence.conversation_repo - SQLite conversation repository.

Append-only transcript of user and assistant turns per session. Rows are
read back ordered by timestamp, with the insertion id breaking ties so
entries written in the same instant keep their append order.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from domain.entities import ConversationEntry
from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)


class SQLiteConversationRepository:
    """Async SQLite implementation of ConversationRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def append(self, entries: list[ConversationEntry]) -> list[int]:
        """Insert all entries in one transaction and return their IDs."""
        ids: list[int] = []
        async with self._conn.acquire() as conn:
            for entry in entries:
                if not entry.timestamp:
                    entry.timestamp = datetime.now().isoformat()
                cursor = await conn.execute(
                    """INSERT INTO conversation_entries
                       (session_id, user_id, role, content, agent_name, timestamp)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (entry.session_id, entry.user_id, entry.role,
                     entry.content, entry.agent_name, entry.timestamp),
                )
                entry.id = cursor.lastrowid
                ids.append(cursor.lastrowid)
        logger.debug("Appended %d conversation entries", len(ids))
        return ids

    async def query(
        self,
        session_id: str,
        limit: int,
        offset: int = 0,
        user_id: Optional[str] = None,
    ) -> tuple[list[ConversationEntry], int]:
        """Return one page of a session transcript plus the total count."""
        where = "session_id = ?"
        params: list[object] = [session_id]
        if user_id is not None:
            where += " AND user_id = ?"
            params.append(user_id)

        async with self._conn.acquire() as conn:
            count_rows = await conn.execute_fetchall(
                f"SELECT COUNT(*) FROM conversation_entries WHERE {where}",
                tuple(params),
            )
            rows = await conn.execute_fetchall(
                f"""SELECT * FROM conversation_entries
                    WHERE {where}
                    ORDER BY timestamp ASC, id ASC
                    LIMIT ? OFFSET ?""",
                (*params, limit, offset),
            )
        total = count_rows[0][0] if count_rows else 0
        return [self._row_to_entity(r) for r in rows], total

    async def recent(
        self, user_id: str, session_id: str, limit: int,
    ) -> list[ConversationEntry]:
        """Return the last `limit` turns of a session, oldest first."""
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM conversation_entries
                   WHERE session_id = ? AND user_id = ?
                   ORDER BY timestamp DESC, id DESC
                   LIMIT ?""",
                (session_id, user_id, limit),
            )
        return [self._row_to_entity(r) for r in reversed(rows)]

    @staticmethod
    def _row_to_entity(row) -> ConversationEntry:
        return ConversationEntry(
            id=row["id"],
            session_id=row["session_id"],
            user_id=row["user_id"] or "",
            role=row["role"],
            content=row["content"] or "",
            agent_name=row["agent_name"] or "",
            timestamp=row["timestamp"],
        )
