"""MemoryStoreService against a real SQLite database."""

import asyncio

import pytest

from agents.tools.executor import ToolExecutor
from application.services.memory_store import MemoryStoreService, categorize_preference, infer_focus
from domain.entities import InsightEntry
from domain.exceptions import ValidationError
from domain.models import ErrorCode
from conftest import builtin_catalogs, make_ctx


@pytest.fixture
def memory(factory):
    return factory.create_memory_store()


async def test_new_user_has_no_profile(memory):
    assert await memory.get_profile("stranger") is None
    recommendations = await memory.get_contextual_recommendations("stranger")
    assert [r.category for r in recommendations] == ["onboarding"]


async def test_preference_upsert_keeps_one_row(memory):
    await memory.store_preference("u1", "budgeting_style", "strict")
    await memory.store_preference("u1", "budgeting_style", "flexible")
    profile = await memory.get_profile("u1")
    assert profile.preferences == {"budgeting_style": "flexible"}
    assert profile.preference_categories == {"budgeting_style": "budgeting"}


async def test_concurrent_upserts_do_not_duplicate(memory):
    await asyncio.gather(*(
        memory.store_preference("u1", "risk_tolerance", level)
        for level in ("low", "medium", "high")
    ))
    profile = await memory.get_profile("u1")
    assert list(profile.preferences) == ["risk_tolerance"]


async def test_focus_is_most_frequent_recent_category(memory):
    for category in ("spending", "budgeting", "spending", "goals"):
        await memory.store_insight("u1", "budget_coach", f"noticed {category}", category=category)
    profile = await memory.get_profile("u1")
    assert profile.current_focus == "spending"
    assert profile.recent_insights[0].category == "goals"


async def test_insights_are_pruned(factory):
    memory = MemoryStoreService(factory._memory_repo, max_insights=3, profile_insights=3)
    for i in range(5):
        await memory.store_insight("u1", "insight_generator", f"insight {i}")
    profile = await memory.get_profile("u1", include_history=True)
    assert [i.text for i in profile.recent_insights] == ["insight 4", "insight 3", "insight 2"]


async def test_contextual_recommendations_follow_focus(memory):
    await memory.store_preference("u1", "budgeting_style", "flexible")
    await memory.store_preference("u1", "financial_goals", ["Emergency fund", "Vacation"])
    await memory.store_insight("u1", "budget_coach", "Overspent dining again", category="challenge")
    await memory.store_insight("u1", "budget_coach", "Envelopes reviewed", category="budgeting")
    await memory.store_insight("u1", "budget_coach", "Kept groceries under budget", category="budgeting")

    recommendations = await memory.get_contextual_recommendations("u1", limit=5)
    titles = [r.title for r in recommendations]
    assert titles[:2] == ["Consider a More Structured Approach", "Focus on Emergency fund"]
    assert all(r.priority == "high" for r in recommendations[:2])
    assert len(await memory.get_contextual_recommendations("u1", limit=1)) == 1


async def test_validation(memory):
    with pytest.raises(ValidationError):
        await memory.store_preference("u1", "  ", "x")
    with pytest.raises(ValidationError):
        await memory.store_preference("u1", "tone", "calm", confidence=1.5)
    with pytest.raises(ValidationError):
        await memory.store_insight("", "agent", "text")


def test_categorize_preference():
    assert categorize_preference("monthly_savings_target") == "goals"
    assert categorize_preference("notification_time") == "notifications"
    assert categorize_preference("favourite_colour") == "general"


def test_infer_focus_ties_go_to_newest():
    insights = [InsightEntry(user_id="u", agent_name="a", text="x", category=c)
                for c in ("goals", "spending", "spending", "goals")]
    assert infer_focus(insights) == "goals"
    assert infer_focus([]) is None


async def test_memory_tools_round_trip(memory):
    tools, _ = builtin_catalogs(memory)
    executor = ToolExecutor(tools)
    ctx = make_ctx()
    stored = await executor.execute(
        "store_user_preference", {"key": "communication_style", "value": "brief"}, ctx,
    )
    assert stored.success, stored.error
    profile = await executor.execute("get_user_memory_profile", {}, ctx)
    assert profile.result["profile"]["preferences"] == {"communication_style": "brief"}

    bad = await executor.execute("store_insight", {"text": "x", "confidence": 3}, ctx)
    assert bad.error_code == ErrorCode.VALIDATION_ERROR
