"""
agents.tools.budget - Budget analysis and variance tools.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from application.context import SessionContext
from domain.models import RiskLevel, ToolCategory
from agents.tools.base import BaseTool, ToolParams
from agents.tools.ledger import (
    Timeframe,
    budget_status,
    category_of,
    envelope_key,
    in_timeframe,
    money,
    spending_by_category,
    total_spent,
    utilization,
)


class BudgetAnalysisParams(ToolParams):
    user_id: Optional[str] = Field(default=None, description="User to analyse; defaults to the session user.")
    timeframe: Timeframe = Field(default="monthly", description="Analysis window.")
    category: Optional[str] = Field(default=None, description="Restrict the analysis to one category.")


class BudgetAnalysisTool(BaseTool):
    """Compare envelope budgets against actual spending."""

    name = "budget_analysis"
    description = (
        "Analyse the user's envelopes against actual spending for a timeframe "
        "(weekly, monthly, quarterly, yearly). Returns a summary, a variance per "
        "envelope category and spending in unbudgeted categories."
    )
    category = ToolCategory.BUDGET
    risk_level = RiskLevel.LOW
    estimated_duration_ms = 800
    store_as = "budget_analysis"

    async def execute(self, ctx: SessionContext, params: BudgetAnalysisParams) -> dict[str, Any]:
        snapshot = ctx.snapshot
        window = in_timeframe(snapshot.transactions, params.timeframe)
        spent = spending_by_category(snapshot, window)
        wanted = params.category.lower() if params.category else None

        variances = []
        budgeted_keys = set()
        for envelope in snapshot.envelopes:
            key = envelope_key(envelope)
            if wanted and key != wanted:
                continue
            budgeted_keys.add(key)
            actual = spent.get(key, 0.0)
            variances.append({
                "envelope_id": envelope.id,
                "envelope": envelope.name,
                "category": key,
                "budgeted": money(envelope.budgeted),
                "spent": actual,
                "variance": money(envelope.budgeted - actual),
                "utilization": utilization(envelope.budgeted, actual),
                "status": budget_status(envelope.budgeted, actual),
            })

        unbudgeted = [
            {"category": cat, "spent": amount}
            for cat, amount in sorted(spent.items())
            if cat not in budgeted_keys and (not wanted or cat == wanted)
        ]

        if wanted:
            envelopes_by_id = {e.id: e for e in snapshot.envelopes}
            considered = [t for t in window if category_of(t, envelopes_by_id) == wanted]
        else:
            considered = window
        total_budget = money(sum(v["budgeted"] for v in variances))
        spent_total = total_spent(considered)

        return {
            "timeframe": params.timeframe,
            "summary": {
                "total_budget": total_budget,
                "total_spent": spent_total,
                "total_variance": money(total_budget - spent_total),
                "utilization": utilization(total_budget, spent_total),
                "transaction_count": len([t for t in considered if t.is_expense]),
                "over_budget_count": sum(1 for v in variances if v["status"] == "over_budget"),
            },
            "variances": variances,
            "unbudgeted_spending": unbudgeted,
            "recommendations": _budget_recommendations(variances, unbudgeted),
        }

    def get_schema(self) -> type[BaseModel]:
        return BudgetAnalysisParams


def _budget_recommendations(variances: list[dict], unbudgeted: list[dict]) -> list[str]:
    tips = []
    for v in variances:
        if v["status"] == "over_budget":
            tips.append(
                f"'{v['envelope']}' is over budget by ${-v['variance']:.2f}; "
                "consider moving funds or cutting back."
            )
        elif v["status"] == "near_limit":
            tips.append(f"'{v['envelope']}' has used {v['utilization']}% of its budget.")
    if unbudgeted:
        cats = ", ".join(u["category"] for u in unbudgeted)
        tips.append(f"Spending in {cats} has no envelope; consider creating one.")
    if not tips:
        tips.append("All envelopes are within budget. Nice work!")
    return tips


class VarianceParams(ToolParams):
    budgeted: float = Field(..., ge=0, description="Planned amount.")
    actual: float = Field(..., ge=0, description="Amount actually spent.")
    label: str = Field(default="", description="Optional name for the line item.")


class VarianceCalculationTool(BaseTool):
    """Pure budget-vs-actual arithmetic; needs no user data."""

    name = "variance_calculation"
    description = "Calculate the variance between a budgeted and an actual amount."
    category = ToolCategory.BUDGET
    requires_auth = False
    estimated_duration_ms = 10

    async def execute(self, ctx: SessionContext, params: VarianceParams) -> dict[str, Any]:
        variance = money(params.budgeted - params.actual)
        pct = round(variance / params.budgeted * 100, 1) if params.budgeted else None
        return {
            "label": params.label,
            "budgeted": money(params.budgeted),
            "actual": money(params.actual),
            "variance": variance,
            "variance_pct": pct,
            "status": budget_status(params.budgeted, params.actual),
        }

    def get_schema(self) -> type[BaseModel]:
        return VarianceParams
