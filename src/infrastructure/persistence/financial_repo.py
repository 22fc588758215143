"""
infrastructure.persistence.financial_repo - SQLite financial snapshot reader.

The runtime only reads budgeting data. The add_* helpers exist to seed
demo and test data; ledger consistency is owned elsewhere.
"""

from __future__ import annotations

import logging
from datetime import datetime

from domain.models import Envelope, FinancialSnapshot, Goal, Transaction
from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)


class SQLiteFinancialRepository:
    """Async SQLite implementation of FinancialRepository."""

    def __init__(self, connection: AsyncSQLiteConnection, transaction_limit: int = 500):
        self._conn = connection
        self._transaction_limit = transaction_limit

    async def get_snapshot(self, user_id: str) -> FinancialSnapshot:
        async with self._conn.acquire() as conn:
            envelope_rows = await conn.execute_fetchall(
                "SELECT * FROM envelopes WHERE user_id = ? ORDER BY name ASC",
                (user_id,),
            )
            transaction_rows = await conn.execute_fetchall(
                """SELECT * FROM transactions WHERE user_id = ?
                   ORDER BY date DESC, created_at DESC LIMIT ?""",
                (user_id, self._transaction_limit),
            )
            goal_rows = await conn.execute_fetchall(
                "SELECT * FROM goals WHERE user_id = ? ORDER BY deadline ASC",
                (user_id,),
            )
        return FinancialSnapshot(
            user_id=user_id,
            envelopes=tuple(self._row_to_envelope(r) for r in envelope_rows),
            transactions=tuple(self._row_to_transaction(r) for r in transaction_rows),
            goals=tuple(self._row_to_goal(r) for r in goal_rows),
        )

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    async def add_envelope(self, user_id: str, envelope: Envelope) -> None:
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT OR REPLACE INTO envelopes
                   (id, user_id, name, category, budgeted, balance, priority, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (envelope.id, user_id, envelope.name, envelope.category,
                 envelope.budgeted, envelope.balance, envelope.priority,
                 datetime.now().isoformat()),
            )

    async def add_transaction(self, user_id: str, transaction: Transaction) -> None:
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT OR REPLACE INTO transactions
                   (id, user_id, amount, description, category, merchant,
                    date, envelope_id, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (transaction.id, user_id, transaction.amount,
                 transaction.description, transaction.category,
                 transaction.merchant, transaction.date,
                 transaction.envelope_id, datetime.now().isoformat()),
            )

    async def add_goal(self, user_id: str, goal: Goal) -> None:
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT OR REPLACE INTO goals
                   (id, user_id, name, target_amount, current_amount,
                    deadline, category, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (goal.id, user_id, goal.name, goal.target_amount,
                 goal.current_amount, goal.deadline, goal.category,
                 datetime.now().isoformat()),
            )

    @staticmethod
    def _row_to_envelope(row) -> Envelope:
        return Envelope(
            id=row["id"],
            name=row["name"] or "",
            category=row["category"] or "",
            budgeted=row["budgeted"] or 0.0,
            balance=row["balance"] or 0.0,
            priority=row["priority"] or "medium",
        )

    @staticmethod
    def _row_to_transaction(row) -> Transaction:
        return Transaction(
            id=row["id"],
            amount=row["amount"],
            description=row["description"] or "",
            category=row["category"] or "",
            merchant=row["merchant"] or "",
            date=row["date"] or "",
            envelope_id=row["envelope_id"],
        )

    @staticmethod
    def _row_to_goal(row) -> Goal:
        return Goal(
            id=row["id"],
            name=row["name"] or "",
            target_amount=row["target_amount"] or 0.0,
            current_amount=row["current_amount"] or 0.0,
            deadline=row["deadline"] or "",
            category=row["category"] or "",
        )
