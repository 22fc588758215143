"""HandoffCoordinator: validation, escalation depth and derived contexts."""

import pytest

from agents.catalog import AgentCatalog
from agents.handoff import HandoffCoordinator
from agents.lifecycle import LifecycleManager
from agents.runner import AgentRunner
from agents.tools.catalog import ToolCatalog
from domain.entities import ConversationEntry
from domain.models import AgentDefinition, AgentRole, ErrorCode, HandoffOutcome, HandoffPriority
from conftest import FakeAgentInvoker, make_ctx

CHAIN = "abcdefg"


def _chain_catalog():
    definitions = []
    for i, name in enumerate(CHAIN):
        targets = (CHAIN[i + 1],) if i + 1 < len(CHAIN) else ()
        definitions.append(AgentDefinition(
            name=name, role=AgentRole.COORDINATOR, instructions=f"Agent {name}.",
            handoff_targets=targets,
        ))
    catalog = AgentCatalog(ToolCatalog())
    catalog.load(definitions)
    return catalog


@pytest.fixture
def lifecycle():
    return LifecycleManager(execution_timeout_s=2.0)


@pytest.fixture
def invoker():
    return FakeAgentInvoker()


@pytest.fixture
def coordinator(lifecycle, invoker):
    catalog = _chain_catalog()
    runner = AgentRunner(catalog, invoker, lifecycle, timeout_s=2.0)
    return HandoffCoordinator(catalog, runner, max_escalation=5, carry_turns=2)


async def test_chain_escalates_one_level_per_handoff(coordinator):
    ctx = make_ctx(agent_name="a")
    levels = []
    for source, target in zip(CHAIN, CHAIN[1:6]):
        record = await coordinator.execute_handoff(source, target, "help", "next", ctx)
        assert record.outcome == HandoffOutcome.COMPLETED, record.error
        levels.append(record.escalation_level)
        ctx = record.context
    assert levels == [1, 2, 3, 4, 5]
    assert ctx.escalation_level == 5

    sixth = await coordinator.execute_handoff("f", "g", "help", "next", ctx)
    assert sixth.outcome == HandoffOutcome.FAILED
    assert sixth.error_code == ErrorCode.HANDOFF_DEPTH_EXCEEDED
    assert coordinator.metrics()["rejected_by_code"] == {"HANDOFF_DEPTH_EXCEEDED": 1}


@pytest.mark.parametrize("source,target", [
    ("a", "a"),
    ("a", "zed"),
    ("zed", "a"),
    ("a", "c"),
])
async def test_invalid_agents_touch_nothing(coordinator, lifecycle, invoker, source, target):
    ctx = make_ctx(agent_name=source)
    record = await coordinator.execute_handoff(source, target, "help", "why not", ctx)
    assert record.outcome == HandoffOutcome.FAILED
    assert record.error_code == ErrorCode.INVALID_AGENTS
    assert "invalid agents" in record.error
    assert invoker.calls == []
    assert lifecycle.metrics().calls == 0
    metrics = coordinator.metrics()
    assert (metrics["calls"], metrics["errors"], metrics["rejected"]) == (0, 0, 1)
    assert ctx.agent_name == source
    assert ctx.escalation_level == 0
    assert coordinator.history("u1") == []


async def test_derived_context_leaves_caller_untouched(coordinator, invoker):
    ctx = make_ctx(agent_name="a")
    ctx.history = [ConversationEntry(session_id="s1", role="user", content=f"turn {i}") for i in range(5)]
    ctx.scratch["budget_analysis"] = {"ok": True}
    record = await coordinator.execute_handoff(
        "a", "b", "take over", "specialist needed", ctx, priority=HandoffPriority.HIGH,
    )
    derived = record.context
    assert derived is not ctx
    assert derived.agent_name == "b"
    assert [e.content for e in derived.history] == ["turn 3", "turn 4"]
    assert derived.handoff.from_agent == "a"
    assert derived.handoff.priority == HandoffPriority.HIGH
    assert derived.scratch == {"budget_analysis": {"ok": True}}
    assert ctx.agent_name == "a"
    assert len(ctx.history) == 5
    assert invoker.calls_for("b")[0][1] == "take over"


async def test_failed_target_records_failure(coordinator, invoker):
    invoker.script("b", RuntimeError("model down"))
    record = await coordinator.execute_handoff("a", "b", "help", "why", make_ctx(agent_name="a"))
    assert record.outcome == HandoffOutcome.FAILED
    assert record.error_code == ErrorCode.AGENT_ERROR
    assert record.context is None
    metrics = coordinator.metrics()
    assert (metrics["calls"], metrics["errors"]) == (1, 1)


async def test_history_and_statistics(coordinator):
    ctx = make_ctx(agent_name="a")
    first = await coordinator.execute_handoff("a", "b", "m", "r", ctx)
    await coordinator.execute_handoff("b", "c", "m", "r", first.context)
    history = coordinator.history("u1")
    assert [(r.from_agent, r.to_agent) for r in history] == [("b", "c"), ("a", "b")]
    assert coordinator.history("u1", limit=1)[0].to_agent == "c"

    stats = coordinator.statistics("u1")
    assert stats["total_handoffs"] == 2
    assert stats["success_rate"] == 100.0
    assert stats["escalation_rate"] == 50.0
    assert {r["route"] for r in stats["common_routes"]} == {"a -> b", "b -> c"}
    assert coordinator.statistics("nobody")["total_handoffs"] == 0
    assert coordinator.metrics()["routes"]["a->b"]["calls"] == 1
