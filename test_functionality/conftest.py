"""
Shared fixtures: temporary SQLite database, seeded financial data and a
scripted agent invoker, so no test needs network or LLM access.
"""

import asyncio
import inspect
import os
import sys
from collections import defaultdict, deque

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from agents.catalog import AgentCatalog
from agents.definitions import DEFAULT_AGENTS
from agents.tools.budget import BudgetAnalysisTool, VarianceCalculationTool
from agents.tools.catalog import ToolCatalog
from agents.tools.envelope import EnvelopeBalanceTool, SuggestAllocationTool
from agents.tools.handoff import RequestHandoffTool
from agents.tools.insight import AnalyzeTrendsTool, GenerateRecommendationsTool, TrackGoalProgressTool
from agents.tools.memory import (
    GetContextualRecommendationsTool,
    GetUserMemoryProfileTool,
    StoreInsightTool,
    StoreUserPreferenceTool,
)
from agents.tools.transaction import CategorizeTransactionTool, DetectAnomaliesTool, SpendingPatternsTool
from application.context import SessionContext
from domain.models import Envelope, FinancialSnapshot, Transaction
from factory import ServiceFactory
from infrastructure.config import Settings

USER = "u1"
SESSION = "s1"


def budget_fixture_snapshot(user_id: str = USER) -> FinancialSnapshot:
    """One $500 groceries envelope, two expenses (-45.67 groceries, -12.50 dining)."""
    return FinancialSnapshot(
        user_id=user_id,
        envelopes=(
            Envelope(id="env-groceries", name="Groceries", category="groceries", budgeted=500.0,
                     balance=454.33),
        ),
        transactions=(
            Transaction(id="t1", amount=-45.67, description="Weekly shop",
                        category="groceries", merchant="Fresh Market", date="2024-03-05"),
            Transaction(id="t2", amount=-12.50, description="Lunch",
                        category="dining", merchant="Noodle Bar", date="2024-03-07"),
        ),
    )


def make_ctx(user_id=USER, session_id=SESSION, agent_name="financial_advisor", snapshot=None):
    return SessionContext(
        user_id=user_id,
        session_id=session_id,
        agent_name=agent_name,
        snapshot=snapshot or budget_fixture_snapshot(user_id),
    )


def builtin_catalogs(memory=None):
    """Tool and agent catalogs as the factory builds them (memory optional)."""
    tools = ToolCatalog([
        BudgetAnalysisTool(), VarianceCalculationTool(),
        EnvelopeBalanceTool(), SuggestAllocationTool(),
        SpendingPatternsTool(), CategorizeTransactionTool(), DetectAnomaliesTool(),
        AnalyzeTrendsTool(), GenerateRecommendationsTool(), TrackGoalProgressTool(),
        StoreUserPreferenceTool(memory), StoreInsightTool(memory),
        GetUserMemoryProfileTool(memory), GetContextualRecommendationsTool(memory),
        RequestHandoffTool(),
    ])
    tools.freeze()
    agents = AgentCatalog(tools)
    agents.load(DEFAULT_AGENTS)
    return tools, agents


class FakeAgentInvoker:
    """Scripted AgentInvokerPort.

    script(agent, *replies) queues replies for an agent. A reply is a
    string, an exception instance (raised), or a callable
    (agent, message, ctx) -> str, which may be async. Unscripted calls
    answer "[agent] message".
    """

    def __init__(self):
        self.calls = []
        self._scripts = defaultdict(deque)

    def script(self, agent_name, *replies):
        self._scripts[agent_name].extend(replies)
        return self

    def calls_for(self, agent_name):
        return [c for c in self.calls if c[0] == agent_name]

    async def invoke(self, agent, message, ctx, timeout):
        self.calls.append((agent.name, message, ctx))
        queue = self._scripts.get(agent.name)
        reply = queue.popleft() if queue else None
        if reply is None:
            return f"[{agent.name}] {message}"
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            result = reply(agent, message, ctx)
            if inspect.isawaitable(result):
                result = await result
            return result
        return reply


def hang(seconds=30):
    """Reply that never finishes within a test's timeouts."""
    async def _reply(agent, message, ctx):
        await asyncio.sleep(seconds)
        return "too late"
    return _reply


@pytest.fixture
def settings(tmp_path):
    return Settings(
        project_root=tmp_path,
        db_path=str(tmp_path / "coach.db"),
        agent_timeout_s=2.0,
        tool_timeout_s=1.0,
        persistence_timeout_s=5.0,
        lifecycle_sweep_interval_s=60.0,
        context_sweep_interval_s=60.0,
    )


@pytest.fixture
def invoker():
    return FakeAgentInvoker()


@pytest.fixture
async def factory(settings, invoker):
    factory = ServiceFactory(settings, agent_invoker=invoker)
    await factory.initialize()
    yield factory
    await factory.shutdown()


@pytest.fixture
async def seeded(factory):
    """Persist the budget fixture for USER."""
    repo = factory.create_financial_repository()
    snapshot = budget_fixture_snapshot()
    for envelope in snapshot.envelopes:
        await repo.add_envelope(USER, envelope)
    for transaction in snapshot.transactions:
        await repo.add_transaction(USER, transaction)
    return factory


@pytest.fixture
async def orchestrator(seeded):
    return seeded.create_orchestrator()
