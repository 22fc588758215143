"""
agents.tools.transaction - Spending pattern, categorisation and anomaly tools.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from statistics import mean, pstdev
from typing import Any, Optional

from pydantic import BaseModel, Field

from application.context import SessionContext
from domain.models import ToolCategory
from agents.tools.base import BaseTool, ToolParams
from agents.tools.ledger import (
    TIMEFRAME_DAYS,
    Timeframe,
    category_of,
    in_timeframe,
    money,
    spending_by_category,
    total_spent,
)

# Keyword → category mapping for description-based categorisation.
# Checked in order; the first category with a matching keyword wins.
CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("groceries", ("grocery", "supermarket", "market", "whole foods", "trader joe", "aldi")),
    ("dining", ("restaurant", "cafe", "coffee", "pizza", "mcdonald", "subway", "bar ", "diner")),
    ("transportation", ("fuel", "uber", "lyft", "taxi", "parking", "metro", "transit", "shell")),
    ("utilities", ("electric", "water", "internet", "phone", "utility", "gas bill")),
    ("entertainment", ("movie", "theater", "netflix", "spotify", "game", "concert")),
    ("healthcare", ("pharmacy", "doctor", "medical", "health", "hospital", "dental")),
    ("shopping", ("amazon", "target", "walmart", "store", "shop", "retail")),
]


def suggest_category(text: str) -> tuple[Optional[str], float]:
    lowered = f" {text.lower()} "
    for category, keywords in CATEGORY_KEYWORDS:
        hits = sum(1 for k in keywords if k in lowered)
        if hits:
            return category, min(0.95, 0.7 + 0.1 * (hits - 1))
    return None, 0.0


class SpendingPatternsParams(ToolParams):
    user_id: Optional[str] = None
    timeframe: Timeframe = "monthly"


class SpendingPatternsTool(BaseTool):
    name = "spending_patterns"
    description = (
        "Summarise spending for a timeframe: totals by category, top merchants, "
        "daily average and whether spending is increasing or decreasing."
    )
    category = ToolCategory.TRANSACTION
    estimated_duration_ms = 600

    async def execute(self, ctx: SessionContext, params: SpendingPatternsParams) -> dict[str, Any]:
        window = in_timeframe(ctx.snapshot.transactions, params.timeframe)
        expenses = [t for t in window if t.is_expense]
        if not expenses:
            return {"timeframe": params.timeframe, "total_spent": 0.0,
                    "by_category": {}, "top_merchants": [], "trend": "insufficient_data"}

        spent = total_spent(expenses)
        merchants = Counter()
        for t in expenses:
            merchants[t.merchant or t.description or "unknown"] += -t.amount

        return {
            "timeframe": params.timeframe,
            "total_spent": spent,
            "transaction_count": len(expenses),
            "average_transaction": money(spent / len(expenses)),
            "daily_average": money(spent / TIMEFRAME_DAYS[params.timeframe]),
            "by_category": spending_by_category(ctx.snapshot, expenses),
            "top_merchants": [
                {"merchant": m, "spent": money(v)} for m, v in merchants.most_common(5)
            ],
            "trend": _half_over_half_trend(expenses),
        }

    def get_schema(self) -> type[BaseModel]:
        return SpendingPatternsParams


def _half_over_half_trend(expenses) -> str:
    """Compare spending in the older and newer half of the dated expenses."""
    dated = sorted((t for t in expenses if t.parsed_date), key=lambda t: t.parsed_date)
    if len(dated) < 4:
        return "insufficient_data"
    middle = len(dated) // 2
    older = sum(-t.amount for t in dated[:middle])
    newer = sum(-t.amount for t in dated[middle:])
    if older == 0:
        return "increasing"
    change = (newer - older) / older
    if change > 0.1:
        return "increasing"
    if change < -0.1:
        return "decreasing"
    return "stable"


class CategorizeParams(ToolParams):
    description: str = Field(..., min_length=1, description="Transaction description or merchant.")
    amount: Optional[float] = Field(default=None, description="Transaction amount, if known.")


class CategorizeTransactionTool(BaseTool):
    name = "categorize_transaction"
    description = (
        "Suggest a spending category and matching envelope for a transaction "
        "based on its description."
    )
    category = ToolCategory.TRANSACTION
    estimated_duration_ms = 50

    async def execute(self, ctx: SessionContext, params: CategorizeParams) -> dict[str, Any]:
        category, confidence = suggest_category(params.description)
        envelope = None
        if category:
            envelope = next(
                (e for e in ctx.snapshot.envelopes
                 if category in e.category.lower() or category in e.name.lower()),
                None,
            )
        return {
            "description": params.description,
            "suggested_category": category,
            "confidence": confidence,
            "suggested_envelope": envelope.name if envelope else None,
            "message": (
                f"Suggested categorisation: {envelope.name if envelope else category}"
                if category else
                "No clear category match found. Manual categorisation recommended."
            ),
        }

    def get_schema(self) -> type[BaseModel]:
        return CategorizeParams


class AnomalyParams(ToolParams):
    user_id: Optional[str] = None
    sensitivity: float = Field(default=2.0, gt=0, le=10, description="Standard deviations above the mean.")
    timeframe: Timeframe = "quarterly"


class DetectAnomaliesTool(BaseTool):
    """Flag expenses far above the usual amount for their category."""

    name = "detect_anomalies"
    description = (
        "Find unusually large transactions compared with the user's normal "
        "spending in the same category."
    )
    category = ToolCategory.TRANSACTION
    estimated_duration_ms = 400

    async def execute(self, ctx: SessionContext, params: AnomalyParams) -> dict[str, Any]:
        envelopes_by_id = {e.id: e for e in ctx.snapshot.envelopes}
        by_category: dict[str, list] = defaultdict(list)
        for t in in_timeframe(ctx.snapshot.transactions, params.timeframe):
            if t.is_expense:
                by_category[category_of(t, envelopes_by_id)].append(t)

        anomalies = []
        for category, items in by_category.items():
            if len(items) < 3:
                continue
            amounts = [-t.amount for t in items]
            avg, spread = mean(amounts), pstdev(amounts)
            limit = avg + params.sensitivity * spread
            for t in items:
                if spread and -t.amount > limit:
                    anomalies.append({
                        "transaction_id": t.id,
                        "description": t.description,
                        "category": category,
                        "amount": money(-t.amount),
                        "category_average": money(avg),
                        "date": t.date,
                    })

        anomalies.sort(key=lambda a: a["amount"], reverse=True)
        return {"anomalies": anomalies, "checked_categories": len(by_category)}

    def get_schema(self) -> type[BaseModel]:
        return AnomalyParams
