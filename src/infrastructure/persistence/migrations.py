"""
infrastructure.persistence.migrations - Database schema creation.

Called once at startup by the factory (or the CLI for light commands).
"""

from __future__ import annotations

import logging

from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)

_TABLES = [
    """CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT,
        email TEXT,
        risk_tolerance TEXT,
        created_at TEXT,
        updated_at TEXT
    )""",
    """CREATE TABLE IF NOT EXISTS envelopes (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT,
        category TEXT,
        budgeted REAL DEFAULT 0,
        balance REAL DEFAULT 0,
        priority TEXT DEFAULT 'medium',
        created_at TEXT
    )""",
    """CREATE TABLE IF NOT EXISTS transactions (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        amount REAL NOT NULL,
        description TEXT,
        category TEXT,
        merchant TEXT,
        date TEXT,
        envelope_id TEXT,
        created_at TEXT,
        FOREIGN KEY (envelope_id) REFERENCES envelopes(id)
    )""",
    """CREATE TABLE IF NOT EXISTS goals (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT,
        target_amount REAL,
        current_amount REAL DEFAULT 0,
        deadline TEXT,
        category TEXT,
        created_at TEXT
    )""",
    """CREATE TABLE IF NOT EXISTS conversation_entries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        session_id TEXT NOT NULL,
        user_id TEXT,
        role TEXT NOT NULL,
        content TEXT,
        agent_name TEXT,
        timestamp TEXT NOT NULL
    )""",
    """CREATE INDEX IF NOT EXISTS idx_conversation_session
        ON conversation_entries (session_id, timestamp, id)""",
    """CREATE TABLE IF NOT EXISTS memory_preferences (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        key TEXT NOT NULL,
        value TEXT,
        category TEXT,
        confidence REAL,
        created_at TEXT,
        updated_at TEXT,
        UNIQUE (user_id, key)
    )""",
    """CREATE TABLE IF NOT EXISTS memory_insights (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        agent_name TEXT,
        text TEXT,
        category TEXT,
        confidence REAL,
        metadata TEXT,
        created_at TEXT
    )""",
    """CREATE INDEX IF NOT EXISTS idx_insights_user
        ON memory_insights (user_id, id)""",
]


async def run_migrations(connection: AsyncSQLiteConnection) -> None:
    """Create all tables if they don't exist.

    Safe to call multiple times (uses IF NOT EXISTS).
    """
    async with connection.acquire() as conn:
        for ddl in _TABLES:
            await conn.execute(ddl)
    logger.info("All tables created (or already exist).")
