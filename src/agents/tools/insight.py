"""
agents.tools.insight - Trend, recommendation and goal-progress tools.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from application.context import SessionContext
from domain.models import ToolCategory
from agents.tools.base import BaseTool, ToolParams
from agents.tools.ledger import (
    budget_status,
    category_of,
    envelope_key,
    in_timeframe,
    money,
    spending_by_category,
    total_spent,
)


class TrendParams(ToolParams):
    user_id: Optional[str] = None
    months: int = Field(default=3, ge=1, le=12, description="Number of calendar months to compare.")


class AnalyzeTrendsTool(BaseTool):
    name = "analyze_trends"
    description = "Show month-by-month spending per category and the overall direction."
    category = ToolCategory.INSIGHT
    estimated_duration_ms = 700

    async def execute(self, ctx: SessionContext, params: TrendParams) -> dict[str, Any]:
        envelopes_by_id = {e.id: e for e in ctx.snapshot.envelopes}
        monthly: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
        for t in ctx.snapshot.expenses:
            when = t.parsed_date
            if when is None:
                continue
            monthly[when.strftime("%Y-%m")][category_of(t, envelopes_by_id)] += -t.amount

        months = sorted(monthly)[-params.months:]
        series = [
            {
                "month": m,
                "total": money(sum(monthly[m].values())),
                "by_category": {k: money(v) for k, v in sorted(monthly[m].items())},
            }
            for m in months
        ]
        direction = "insufficient_data"
        if len(series) >= 2:
            first, last = series[0]["total"], series[-1]["total"]
            if last > first * 1.1:
                direction = "increasing"
            elif last < first * 0.9:
                direction = "decreasing"
            else:
                direction = "stable"
        return {"months": series, "direction": direction}

    def get_schema(self) -> type[BaseModel]:
        return TrendParams


class RecommendationParams(ToolParams):
    user_id: Optional[str] = None
    focus_area: Optional[Literal["budgeting", "spending", "goals", "savings"]] = None
    limit: int = Field(default=5, ge=1, le=20)


class GenerateRecommendationsTool(BaseTool):
    """Data-driven tips from the current snapshot."""

    name = "generate_recommendations"
    description = (
        "Generate prioritised, data-driven recommendations from the user's envelopes, "
        "spending and goals. Optionally focus on budgeting, spending, goals or savings."
    )
    category = ToolCategory.INSIGHT
    estimated_duration_ms = 600

    async def execute(self, ctx: SessionContext, params: RecommendationParams) -> dict[str, Any]:
        snapshot = ctx.snapshot
        window = in_timeframe(snapshot.transactions, "monthly")
        spent = spending_by_category(snapshot, window)
        tips: list[dict[str, Any]] = []

        if params.focus_area in (None, "budgeting"):
            for e in snapshot.envelopes:
                actual = spent.get(envelope_key(e), 0.0)
                status = budget_status(e.budgeted, actual)
                if status == "over_budget":
                    tips.append(_tip("high", "budgeting",
                                     f"Rebalance '{e.name}'",
                                     f"Spent ${actual:.2f} of ${e.budgeted:.2f} this month."))
                elif status == "near_limit":
                    tips.append(_tip("medium", "budgeting",
                                     f"Watch '{e.name}'",
                                     f"Only ${e.budgeted - actual:.2f} left this month."))

        if params.focus_area in (None, "spending") and spent:
            category, amount = max(spent.items(), key=lambda kv: kv[1])
            tips.append(_tip("medium", "spending",
                             f"Biggest category: {category}",
                             f"${amount:.2f} this month. Look for one cut here first."))

        if params.focus_area in (None, "goals", "savings"):
            for g in snapshot.goals:
                if g.target_amount and g.current_amount < g.target_amount:
                    pct = g.current_amount / g.target_amount * 100
                    priority = "high" if pct < 25 else "medium"
                    tips.append(_tip(priority, "goals",
                                     f"Keep funding '{g.name}'",
                                     f"{pct:.0f}% of ${g.target_amount:,.2f} saved."))

        if not tips:
            tips.append(_tip("low", "general", "Stay the course",
                             "Nothing needs attention right now."))
        order = {"high": 0, "medium": 1, "low": 2}
        tips.sort(key=lambda t: order[t["priority"]])
        return {"recommendations": tips[: params.limit],
                "monthly_spent": total_spent(window)}

    def get_schema(self) -> type[BaseModel]:
        return RecommendationParams


def _tip(priority: str, category: str, title: str, detail: str) -> dict[str, Any]:
    return {"priority": priority, "category": category, "title": title, "detail": detail}


class GoalProgressParams(ToolParams):
    user_id: Optional[str] = None
    goal_name: Optional[str] = Field(default=None, description="Goal to report; omit for all goals.")


class TrackGoalProgressTool(BaseTool):
    name = "track_goal_progress"
    description = "Report progress toward savings goals and the monthly amount needed to finish on time."
    category = ToolCategory.INSIGHT
    estimated_duration_ms = 200

    async def execute(self, ctx: SessionContext, params: GoalProgressParams) -> dict[str, Any]:
        goals = ctx.snapshot.goals
        if params.goal_name:
            goals = tuple(g for g in goals if g.name.lower() == params.goal_name.lower())
        now = datetime.now()
        report = []
        for g in goals:
            remaining = max(0.0, g.target_amount - g.current_amount)
            months_left = None
            monthly_needed = None
            if g.deadline:
                try:
                    deadline = datetime.fromisoformat(g.deadline)
                except ValueError:
                    deadline = None
                if deadline is not None:
                    months_left = max(0, (deadline.year - now.year) * 12 + deadline.month - now.month)
                    monthly_needed = money(remaining / months_left) if months_left else money(remaining)
            report.append({
                "goal": g.name,
                "target": money(g.target_amount),
                "saved": money(g.current_amount),
                "remaining": money(remaining),
                "progress_pct": round(g.current_amount / g.target_amount * 100, 1) if g.target_amount else None,
                "months_left": months_left,
                "monthly_needed": monthly_needed,
                "achieved": remaining == 0,
            })
        return {"goals": report}

    def get_schema(self) -> type[BaseModel]:
        return GoalProgressParams
