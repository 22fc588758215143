"""ChatHistoryService: ordered append, pagination and cache invalidation."""

import pytest

from domain.entities import ConversationEntry
from domain.exceptions import ValidationError
from conftest import SESSION, USER


@pytest.fixture
def history(factory):
    return factory._chat_history


@pytest.fixture
def cache(factory):
    return factory._context_cache


def _entry(role, content, session_id=SESSION):
    return ConversationEntry(session_id=session_id, user_id=USER, role=role, content=content,
                             agent_name="budget_coach")


async def test_appends_keep_order(history):
    for i in range(3):
        await history.append_conversation([_entry("user" if i % 2 == 0 else "assistant", f"m{i}")])
    page = await history.get_history(SESSION)
    assert [e.content for e in page.entries] == ["m0", "m1", "m2"]
    assert [e.role for e in page.entries] == ["user", "assistant", "user"]
    assert all(e.id is not None and e.timestamp for e in page.entries)


async def test_save_interaction_without_user_message(history):
    await history.save_interaction(USER, SESSION, "insight_generator", None, "Handled.")
    page = await history.get_history(SESSION)
    assert [(e.role, e.agent_name) for e in page.entries] == [("assistant", "insight_generator")]


async def test_pagination_and_clamping(history):
    await history.append_conversation([_entry("user", f"m{i}") for i in range(5)])
    page = await history.get_history(SESSION, limit=2, offset=1)
    assert [e.content for e in page.entries] == ["m1", "m2"]
    assert (page.total, page.has_more) == (5, True)

    last = await history.get_history(SESSION, limit=2, offset=4)
    assert not last.has_more

    clamped = await history.get_history(SESSION, limit=1000, offset=-3)
    assert (clamped.limit, clamped.offset) == (100, 0)
    assert (await history.get_history(SESSION, limit=0)).limit == 1
    assert clamped.to_dict()["pagination"]["total"] == 5


async def test_sessions_are_isolated(history):
    await history.append_conversation([_entry("user", "a", session_id="s-a")])
    await history.append_conversation([_entry("user", "b", session_id="s-b")])
    page = await history.get_history("s-a")
    assert [e.content for e in page.entries] == ["a"]
    assert (await history.get_history("s-a", user_id="someone-else")).total == 0


async def test_invalid_role_is_rejected(history):
    with pytest.raises(ValidationError):
        await history.append_conversation([_entry("system", "nope")])
    assert (await history.get_history(SESSION)).total == 0


async def test_append_invalidates_cached_context(seeded, history, cache):
    first = await cache.get_or_build(USER, SESSION, "budget_coach")
    assert first.history == ()
    await history.save_interaction(USER, SESSION, "budget_coach", "How is my budget?", "Fine.")
    assert (USER, SESSION, "budget_coach") not in cache
    rebuilt = await cache.get_or_build(USER, SESSION, "budget_coach")
    assert [e.content for e in rebuilt.history] == ["How is my budget?", "Fine."]
    assert len(rebuilt.snapshot.transactions) == 2
