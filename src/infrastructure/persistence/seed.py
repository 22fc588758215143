"""
infrastructure.persistence.seed - Demo data for local runs.

`python run_cli.py seed --user demo` fills one user with envelopes,
a month of transactions and two goals so every tool has data to read.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from domain.entities import User
from domain.models import Envelope, Goal, Transaction
from infrastructure.persistence.financial_repo import SQLiteFinancialRepository
from infrastructure.persistence.user_repo import SQLiteUserRepository

logger = logging.getLogger(__name__)

# (name, category, budgeted, balance, priority)
_ENVELOPES = [
    ("Rent", "housing", 1400.0, 0.0, "high"),
    ("Groceries", "groceries", 500.0, 212.40, "high"),
    ("Dining Out", "dining", 150.0, 18.75, "low"),
    ("Transport", "transportation", 180.0, 96.10, "medium"),
    ("Utilities", "utilities", 220.0, 41.30, "high"),
    ("Fun Money", "entertainment", 100.0, 62.00, "low"),
]

# (days ago, amount, description, category, merchant)
_TRANSACTIONS = [
    (1, -45.67, "Weekly groceries", "groceries", "Fresh Market"),
    (2, -12.50, "Lunch", "dining", "Noodle Bar"),
    (3, -38.20, "Fuel", "transportation", "Shell"),
    (5, -62.10, "Groceries", "groceries", "Fresh Market"),
    (6, -54.00, "Dinner with friends", "dining", "Trattoria"),
    (8, -1400.00, "Monthly rent", "housing", "City Apartments"),
    (9, 2450.00, "Paycheck", "income", "Employer Inc"),
    (10, -89.99, "Electricity bill", "utilities", "Power Co"),
    (12, -15.99, "Streaming subscription", "entertainment", "StreamFlix"),
    (14, -79.43, "Groceries", "groceries", "Fresh Market"),
    (16, -64.80, "Takeaway and drinks", "dining", "Burger Barn"),
    (19, -45.70, "Train pass", "transportation", "Metro"),
    (21, -22.00, "Cinema", "entertainment", "Cineplex"),
    (23, -100.40, "Groceries", "groceries", "Fresh Market"),
    (25, -88.71, "Water and internet", "utilities", "NetCo"),
    (27, -410.00, "New headphones", "shopping", "TechStore"),
]

# (name, target, current, days until deadline, category)
_GOALS = [
    ("Emergency fund", 5000.0, 1850.0, 240, "savings"),
    ("Summer trip", 1800.0, 420.0, 150, "travel"),
]


async def seed_demo_user(
    users: SQLiteUserRepository,
    financial: SQLiteFinancialRepository,
    user_id: str,
    name: str = "Demo User",
) -> dict[str, int]:
    """Create (or refresh) a demo user with budgeting data.

    Ids are derived from the user id, so seeding twice replaces rows
    instead of duplicating them.
    """
    today = date.today()
    await users.save(User(id=user_id, name=name, email=f"{user_id}@example.com"))

    for env_name, category, budgeted, balance, priority in _ENVELOPES:
        await financial.add_envelope(user_id, Envelope(
            id=f"{user_id}-env-{category}",
            name=env_name,
            category=category,
            budgeted=budgeted,
            balance=balance,
            priority=priority,
        ))

    for i, (days_ago, amount, description, category, merchant) in enumerate(_TRANSACTIONS):
        await financial.add_transaction(user_id, Transaction(
            id=f"{user_id}-tx-{i:03d}",
            amount=amount,
            description=description,
            category=category,
            merchant=merchant,
            date=(today - timedelta(days=days_ago)).isoformat(),
        ))

    for i, (goal_name, target, current, days_left, category) in enumerate(_GOALS):
        await financial.add_goal(user_id, Goal(
            id=f"{user_id}-goal-{i}",
            name=goal_name,
            target_amount=target,
            current_amount=current,
            deadline=(today + timedelta(days=days_left)).isoformat(),
            category=category,
        ))

    counts = {
        "envelopes": len(_ENVELOPES),
        "transactions": len(_TRANSACTIONS),
        "goals": len(_GOALS),
    }
    logger.info("Seeded demo data for user %s: %s", user_id, counts)
    return counts
