"""
infrastructure.persistence.user_repo - SQLite user repository.

Implements UserRepository port.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from domain.entities import User
from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)


class SQLiteUserRepository:
    """Async SQLite implementation of UserRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def get_by_id(self, user_id: str) -> Optional[User]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                "SELECT * FROM users WHERE id = ?",
                (user_id,),
            )
            if not rows:
                return None
            return self._row_to_user(rows[0])

    async def save(self, user: User) -> None:
        """Insert or update a user, keeping the original created_at."""
        now = datetime.now().isoformat()
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT INTO users (id, name, email, risk_tolerance, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       name = excluded.name,
                       email = excluded.email,
                       risk_tolerance = excluded.risk_tolerance,
                       updated_at = excluded.updated_at""",
                (user.id, user.name, user.email, user.risk_tolerance,
                 user.created_at or now, now),
            )

    @staticmethod
    def _row_to_user(row) -> User:
        return User(
            id=row["id"],
            name=row["name"] or "",
            email=row["email"] or "",
            risk_tolerance=row["risk_tolerance"] or "moderate",
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
        )
