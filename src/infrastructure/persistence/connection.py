"""
infrastructure.persistence.connection - Async SQLite connection manager.

Wraps aiosqlite with a context manager: one short-lived connection per
operation, committed on success and rolled back on failure.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiosqlite

from domain.exceptions import RepositoryError

logger = logging.getLogger(__name__)


class AsyncSQLiteConnection:
    """Async SQLite connection provider with auto-commit/rollback.

    `busy_timeout` bounds how long a writer waits on a locked database,
    so no persistence call can block indefinitely.
    """

    def __init__(self, db_path: str, busy_timeout: float = 10.0):
        self._db_path = db_path
        self._busy_timeout = busy_timeout

    @property
    def db_path(self) -> str:
        return self._db_path

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield an async SQLite connection with FK support.

        Commits on success, rolls back on exception. SQLite failures
        surface as RepositoryError.
        """
        try:
            async with aiosqlite.connect(self._db_path, timeout=self._busy_timeout) as conn:
                await conn.execute("PRAGMA foreign_keys = ON")
                conn.row_factory = aiosqlite.Row
                try:
                    yield conn
                    await conn.commit()
                except Exception:
                    await conn.rollback()
                    logger.exception("Database operation failed, transaction rolled back.")
                    raise
        except sqlite3.Error as exc:
            raise RepositoryError(f"Database operation failed: {exc}") from exc
