"""Financial tools against the two-transaction budget fixture."""

import pytest

from agents.tools.budget import BudgetAnalysisTool, VarianceCalculationTool
from agents.tools.catalog import ToolCatalog
from agents.tools.envelope import EnvelopeBalanceTool, SuggestAllocationTool
from agents.tools.executor import ToolExecutor
from agents.tools.insight import AnalyzeTrendsTool, GenerateRecommendationsTool, TrackGoalProgressTool
from agents.tools.transaction import (
    CategorizeTransactionTool,
    DetectAnomaliesTool,
    SpendingPatternsTool,
    suggest_category,
)
from domain.models import Envelope, FinancialSnapshot, Goal, Transaction
from conftest import make_ctx


@pytest.fixture
def executor():
    catalog = ToolCatalog([
        BudgetAnalysisTool(), VarianceCalculationTool(),
        EnvelopeBalanceTool(), SuggestAllocationTool(),
        SpendingPatternsTool(), CategorizeTransactionTool(), DetectAnomaliesTool(),
        AnalyzeTrendsTool(), GenerateRecommendationsTool(), TrackGoalProgressTool(),
    ])
    catalog.freeze()
    return ToolExecutor(catalog)


async def test_budget_analysis_example(executor):
    result = await executor.execute(
        "budget_analysis", {"userId": "u1", "timeframe": "monthly"}, make_ctx(),
    )
    assert result.success, result.error
    summary = result.result["summary"]
    assert summary["total_spent"] == pytest.approx(58.17)
    groceries = [v for v in result.result["variances"] if v["category"] == "groceries"]
    assert len(groceries) == 1
    assert groceries[0]["variance"] == pytest.approx(500 - 45.67)
    assert groceries[0]["status"] == "under_budget"
    assert result.result["unbudgeted_spending"] == [{"category": "dining", "spent": 12.5}]


async def test_budget_analysis_category_filter(executor):
    result = await executor.execute(
        "budget_analysis", {"timeframe": "monthly", "category": "Groceries"}, make_ctx(),
    )
    summary = result.result["summary"]
    assert summary["total_spent"] == pytest.approx(45.67)
    assert summary["transaction_count"] == 1


async def test_timeframe_window_ends_at_latest_transaction(executor):
    snapshot = FinancialSnapshot(
        user_id="u1",
        envelopes=(Envelope(id="e", name="Dining", category="dining", budgeted=100.0),),
        transactions=(
            Transaction(id="new", amount=-20.0, category="dining", date="2024-06-30"),
            Transaction(id="old", amount=-80.0, category="dining", date="2024-01-02"),
        ),
    )
    weekly = await executor.execute("budget_analysis", {"timeframe": "weekly"}, make_ctx(snapshot=snapshot))
    yearly = await executor.execute("budget_analysis", {"timeframe": "yearly"}, make_ctx(snapshot=snapshot))
    assert weekly.result["summary"]["total_spent"] == pytest.approx(20.0)
    assert yearly.result["summary"]["total_spent"] == pytest.approx(100.0)
    assert yearly.result["variances"][0]["status"] == "near_limit"


async def test_over_budget_produces_recommendation(executor):
    snapshot = FinancialSnapshot(
        user_id="u1",
        envelopes=(Envelope(id="e", name="Fun", category="entertainment", budgeted=50.0),),
        transactions=(Transaction(id="t", amount=-75.0, category="entertainment", date="2024-05-01"),),
    )
    result = await executor.execute("budget_analysis", {}, make_ctx(snapshot=snapshot))
    assert result.result["summary"]["over_budget_count"] == 1
    assert any("over budget" in tip for tip in result.result["recommendations"])


async def test_variance_calculation(executor):
    result = await executor.execute("variance_calculation", {"budgeted": 200, "actual": 250}, make_ctx())
    assert result.result["variance"] == -50
    assert result.result["status"] == "over_budget"


async def test_envelope_balance_lookup(executor):
    result = await executor.execute("envelope_balance", {"envelope": "groceries"}, make_ctx())
    assert result.success
    missing = await executor.execute("envelope_balance", {"envelope": "yachts"}, make_ctx())
    assert not missing.success


@pytest.mark.parametrize("strategy", ["proportional", "priority", "equal"])
async def test_suggest_allocation_distributes_whole_amount(executor, strategy):
    snapshot = FinancialSnapshot(
        user_id="u1",
        envelopes=(
            Envelope(id="a", name="Rent", category="housing", budgeted=900.0, priority="high"),
            Envelope(id="b", name="Food", category="groceries", budgeted=300.0, priority="medium"),
            Envelope(id="c", name="Fun", category="entertainment", budgeted=100.0, priority="low"),
        ),
    )
    result = await executor.execute(
        "suggest_allocation", {"amount": 1000, "strategy": strategy}, make_ctx(snapshot=snapshot),
    )
    assert result.success, result.error
    total = sum(a["amount"] for a in result.result["allocations"])
    assert total == pytest.approx(1000, abs=0.01)


def test_suggest_category_keywords():
    assert suggest_category("SHELL fuel station")[0] == "transportation"
    assert suggest_category("zzz")[0] is None


async def test_categorize_transaction_prefers_matching_envelope(executor):
    result = await executor.execute(
        "categorize_transaction", {"description": "Supermarket groceries run"}, make_ctx(),
    )
    assert result.result["suggested_category"] == "groceries"
    assert result.result["suggested_envelope"] == "Groceries"


async def test_spending_patterns_totals(executor):
    result = await executor.execute("spending_patterns", {"timeframe": "monthly"}, make_ctx())
    assert result.result["total_spent"] == pytest.approx(58.17)
    assert result.result["by_category"] == {"groceries": 45.67, "dining": 12.5}


async def test_detect_anomalies_flags_outlier(executor):
    transactions = tuple(
        Transaction(id=f"t{i}", amount=-20.0, category="dining", date=f"2024-04-{i + 1:02d}")
        for i in range(10)
    ) + (Transaction(id="big", amount=-400.0, category="dining", date="2024-04-20"),)
    snapshot = FinancialSnapshot(user_id="u1", transactions=transactions)
    result = await executor.execute("detect_anomalies", {}, make_ctx(snapshot=snapshot))
    assert result.success, result.error
    assert [a["transaction_id"] for a in result.result["anomalies"]] == ["big"]


async def test_goal_progress(executor):
    snapshot = FinancialSnapshot(
        user_id="u1",
        goals=(Goal(id="g", name="Emergency fund", target_amount=1000.0, current_amount=250.0),),
    )
    result = await executor.execute("track_goal_progress", {}, make_ctx(snapshot=snapshot))
    assert result.success, result.error
    assert result.result["goals"][0]["progress_pct"] == 25.0


async def test_generate_recommendations_limit(executor):
    result = await executor.execute("generate_recommendations", {"limit": 1}, make_ctx())
    assert result.success, result.error
    assert len(result.result["recommendations"]) <= 1


async def test_recommendations_report_only_last_month_spending(executor):
    snapshot = FinancialSnapshot(
        user_id="u1",
        transactions=(
            Transaction(id="recent", amount=-10.0, category="dining", date="2024-03-05"),
            Transaction(id="old", amount=-1000.0, category="travel", date="2023-01-05"),
        ),
    )
    result = await executor.execute("generate_recommendations", {}, make_ctx(snapshot=snapshot))
    assert result.success, result.error
    assert result.result["monthly_spent"] == pytest.approx(10.0)
    assert result.result["recommendations"][0]["title"] == "Biggest category: dining"


async def test_trends_use_envelope_category(executor):
    snapshot = FinancialSnapshot(
        user_id="u1",
        envelopes=(Envelope(id="env-food", name="Food", category="groceries", budgeted=400.0),),
        transactions=(
            Transaction(id="t1", amount=-30.0, category="market", date="2024-02-10",
                        envelope_id="env-food"),
            Transaction(id="t2", amount=-20.0, category="groceries", date="2024-03-10"),
        ),
    )
    trends = await executor.execute("analyze_trends", {"months": 2}, make_ctx(snapshot=snapshot))
    patterns = await executor.execute(
        "spending_patterns", {"timeframe": "quarterly"}, make_ctx(snapshot=snapshot),
    )
    assert [m["by_category"] for m in trends.result["months"]] == [
        {"groceries": 30.0}, {"groceries": 20.0},
    ]
    assert patterns.result["by_category"] == {"groceries": 50.0}
