"""
agents.tools.ledger - Snapshot arithmetic shared by the financial tools.

Timeframe windows end at the most recent dated transaction in the
snapshot, so an analysis of historic data does not come back empty.
Undated transactions are always inside the window.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Literal, Optional

from domain.models import Envelope, FinancialSnapshot, Transaction

Timeframe = Literal["weekly", "monthly", "quarterly", "yearly"]

TIMEFRAME_DAYS: dict[str, int] = {
    "weekly": 7,
    "monthly": 30,
    "quarterly": 90,
    "yearly": 365,
}

UNCATEGORIZED = "uncategorized"


def money(value: float) -> float:
    return round(value + 0.0, 2)


def latest_date(transactions: Iterable[Transaction]) -> Optional[datetime]:
    dates = [t.parsed_date for t in transactions if t.parsed_date is not None]
    return max(dates) if dates else None


def in_timeframe(
    transactions: Iterable[Transaction], timeframe: str,
) -> list[Transaction]:
    transactions = list(transactions)
    anchor = latest_date(transactions)
    if anchor is None:
        return transactions
    start = anchor - timedelta(days=TIMEFRAME_DAYS.get(timeframe, 30))
    return [
        t for t in transactions
        if t.parsed_date is None or t.parsed_date > start
    ]


def category_of(transaction: Transaction, envelopes_by_id: dict[str, Envelope]) -> str:
    """Envelope category wins over the transaction's own label."""
    if transaction.envelope_id and transaction.envelope_id in envelopes_by_id:
        envelope = envelopes_by_id[transaction.envelope_id]
        return (envelope.category or envelope.name).lower()
    return (transaction.category or UNCATEGORIZED).lower()


def spending_by_category(
    snapshot: FinancialSnapshot, transactions: Iterable[Transaction],
) -> dict[str, float]:
    envelopes_by_id = {e.id: e for e in snapshot.envelopes}
    totals: dict[str, float] = defaultdict(float)
    for t in transactions:
        if t.is_expense:
            totals[category_of(t, envelopes_by_id)] += -t.amount
    return {k: money(v) for k, v in totals.items()}


def total_spent(transactions: Iterable[Transaction]) -> float:
    return money(sum(-t.amount for t in transactions if t.is_expense))


def envelope_key(envelope: Envelope) -> str:
    return (envelope.category or envelope.name).lower()


def budget_status(budgeted: float, spent: float) -> str:
    if spent > budgeted:
        return "over_budget"
    if budgeted and spent / budgeted >= 0.9:
        return "near_limit"
    return "under_budget"


def utilization(budgeted: float, spent: float) -> Optional[float]:
    if not budgeted:
        return None
    return round(spent / budgeted * 100, 1)
