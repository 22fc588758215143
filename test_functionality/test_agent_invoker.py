"""LangChainAgentInvoker tool loop with a scripted chat model."""

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from agents.definitions import BUDGET_COACH
from agents.tools.executor import ToolExecutor
from domain.entities import ConversationEntry
from infrastructure.llm.agent_invoker import LangChainAgentInvoker, _parse_raw_tool_call, _text
from conftest import builtin_catalogs, make_ctx


class ScriptedChatModel:
    """Stands in for a BaseChatModel: returns queued AIMessages in order."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.bound = []
        self.seen = []

    def bind_tools(self, tools):
        self.bound = [t.name for t in tools]
        return self

    async def ainvoke(self, messages):
        self.seen.append(list(messages))
        return self.replies.pop(0)


@pytest.fixture
def catalogs():
    return builtin_catalogs()


@pytest.fixture
def executor(catalogs):
    return ToolExecutor(catalogs[0])


def _invoker(llm, catalogs, executor, max_iterations=5):
    return LangChainAgentInvoker(llm, catalogs[0], executor, max_iterations=max_iterations)


async def test_tool_call_result_is_fed_back(catalogs, executor):
    llm = ScriptedChatModel(
        AIMessage(content="", tool_calls=[{
            "name": "budget_analysis", "args": {"timeframe": "monthly"}, "id": "call-1",
        }]),
        AIMessage(content="You spent $58.17 this month."),
    )
    agent = catalogs[1].get(BUDGET_COACH)
    ctx = make_ctx(agent_name=BUDGET_COACH)
    ctx.history = [ConversationEntry(session_id="s1", role="user", content="earlier question"),
                   ConversationEntry(session_id="s1", role="assistant", content="earlier answer")]

    reply = await _invoker(llm, catalogs, executor).invoke(agent, "How is my budget?", ctx, 5.0)

    assert reply == "You spent $58.17 this month."
    assert llm.bound == list(agent.tools)
    first_prompt = llm.seen[0]
    assert isinstance(first_prompt[0], SystemMessage)
    assert [type(m) for m in first_prompt[1:]] == [HumanMessage, AIMessage, HumanMessage]
    tool_message = llm.seen[1][-1]
    assert isinstance(tool_message, ToolMessage)
    assert tool_message.tool_call_id == "call-1"
    assert '"total_spent": 58.17' in tool_message.content
    assert executor.stats("budget_analysis").calls == 1
    assert "budget_analysis" in ctx.scratch


async def test_handoff_tool_sets_pending_request(catalogs, executor):
    llm = ScriptedChatModel(
        AIMessage(content="", tool_calls=[{
            "name": "request_handoff",
            "args": {"target_agent": "transaction_analyst", "reason": "transaction detail"},
            "id": "call-1",
        }]),
        AIMessage(content="Handing you to the transaction analyst."),
    )
    ctx = make_ctx(agent_name=BUDGET_COACH)
    await _invoker(llm, catalogs, executor).invoke(catalogs[1].get(BUDGET_COACH), "hi", ctx, 5.0)
    assert ctx.pending_handoff.to_agent == "transaction_analyst"


async def test_iteration_budget_forces_final_answer(catalogs, executor):
    loop_call = AIMessage(content="", tool_calls=[{
        "name": "variance_calculation", "args": {"budgeted": 1, "actual": 1}, "id": "c",
    }])
    llm = ScriptedChatModel(loop_call, loop_call, AIMessage(content="Final."))
    reply = await _invoker(llm, catalogs, executor, max_iterations=2).invoke(
        catalogs[1].get(BUDGET_COACH), "hi", make_ctx(agent_name=BUDGET_COACH), 5.0,
    )
    assert reply == "Final."
    assert "Stop calling tools" in llm.seen[-1][-1].content


async def test_raw_json_tool_call_fallback(catalogs, executor):
    llm = ScriptedChatModel(
        AIMessage(content='```json\n{"name": "envelope_balance", "parameters": {"envelope": "groceries"}}\n```'),
        AIMessage(content="Groceries has $454.33 left."),
    )
    reply = await _invoker(llm, catalogs, executor).invoke(
        catalogs[1].get(BUDGET_COACH), "groceries?", make_ctx(agent_name=BUDGET_COACH), 5.0,
    )
    assert reply == "Groceries has $454.33 left."
    assert executor.stats("envelope_balance").calls == 1


def test_parse_raw_tool_call():
    allowed = {"budget_analysis"}
    assert _parse_raw_tool_call('{"name": "budget_analysis", "arguments": "{\\"timeframe\\": \\"weekly\\"}"}',
                                allowed) == {"name": "budget_analysis", "args": {"timeframe": "weekly"}}
    assert _parse_raw_tool_call('{"name": "drop_tables"}', allowed) is None
    assert _parse_raw_tool_call("Plain answer.", allowed) is None


def test_text_joins_content_parts():
    message = AIMessage(content=[{"type": "text", "text": "Hello "}, "there"])
    assert _text(message) == "Hello there"
