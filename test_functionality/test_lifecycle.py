"""LifecycleManager and AgentRunner: sweeps, timeouts and drains cancel real work."""

import asyncio

import pytest

from agents.lifecycle import LifecycleManager
from agents.runner import AgentRunner
from domain.exceptions import AgentExecutionError, AgentNotFoundError, ExecutionTimeoutError, ValidationError
from conftest import FakeAgentInvoker, builtin_catalogs, hang, make_ctx


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def lifecycle(clock):
    return LifecycleManager(execution_timeout_s=10.0, clock=clock)


async def test_sweep_cancels_overdue_task_and_records_timeout(lifecycle, clock):
    task = asyncio.ensure_future(asyncio.sleep(30))
    execution_id = lifecycle.start("budget_coach", make_ctx(), task)
    clock.now = 5.0
    assert lifecycle.sweep() == []
    clock.now = 11.0
    assert lifecycle.sweep() == [execution_id]
    await asyncio.sleep(0)
    assert task.cancelled()

    stats = lifecycle.metrics("budget_coach")
    assert (stats.calls, stats.errors, stats.timeouts) == (1, 1, 1)
    assert lifecycle.end(execution_id, success=True) is None
    assert lifecycle.metrics("budget_coach").calls == 1


async def test_concurrent_executions_of_one_agent_are_independent(lifecycle):
    first = lifecycle.start("budget_coach", make_ctx(session_id="s1"))
    second = lifecycle.start("budget_coach", make_ctx(session_id="s2"))
    assert first != second
    assert len(lifecycle.active("budget_coach")) == 2
    lifecycle.end(first, success=True)
    assert [e.session_id for e in lifecycle.active()] == ["s2"]


async def test_drain_waits_then_cancels(lifecycle):
    quick = asyncio.ensure_future(asyncio.sleep(0.01))
    slow = asyncio.ensure_future(asyncio.sleep(30))
    quick_id = lifecycle.start("a", make_ctx(), quick)
    lifecycle.start("b", make_ctx(), slow)
    lifecycle.end(quick_id, success=True)  # the runner would end it when it finishes
    cancelled = await lifecycle.drain(timeout=0.05)
    assert cancelled == 1
    await asyncio.sleep(0)
    assert slow.cancelled()
    assert lifecycle.active() == []


async def test_sweeper_runs_in_background():
    lifecycle = LifecycleManager(execution_timeout_s=0.01, sweep_interval_s=0.01)
    task = asyncio.ensure_future(asyncio.sleep(30))
    lifecycle.start("a", make_ctx(), task)
    lifecycle.start_sweeper()
    await asyncio.sleep(0.1)
    await lifecycle.stop_sweeper()
    assert task.cancelled()
    assert lifecycle.active() == []


# ---------------------------------------------------------------------------
# AgentRunner
# ---------------------------------------------------------------------------

@pytest.fixture
def invoker():
    return FakeAgentInvoker()


@pytest.fixture
def runner(invoker):
    _, agents = builtin_catalogs()
    return AgentRunner(agents, invoker, LifecycleManager(execution_timeout_s=1.0), timeout_s=0.1)


async def test_runner_success_ends_execution(runner, invoker):
    invoker.script("budget_coach", "Your budget looks fine.")
    reply = await runner.run("budget_coach", "How is my budget?", make_ctx())
    assert reply == "Your budget looks fine."
    assert runner._lifecycle.active() == []
    assert runner._lifecycle.metrics("budget_coach").calls == 1


async def test_runner_timeout_cancels_invocation(runner, invoker):
    invoker.script("budget_coach", hang())
    with pytest.raises(ExecutionTimeoutError):
        await runner.run("budget_coach", "How is my budget?", make_ctx())
    stats = runner._lifecycle.metrics("budget_coach")
    assert (stats.calls, stats.timeouts) == (1, 1)
    assert runner._lifecycle.active() == []


async def test_runner_wraps_failures(runner, invoker):
    invoker.script("budget_coach", RuntimeError("provider exploded"), "   ")
    with pytest.raises(AgentExecutionError):
        await runner.run("budget_coach", "hi", make_ctx())
    with pytest.raises(AgentExecutionError, match="empty response"):
        await runner.run("budget_coach", "hi", make_ctx())
    assert runner._lifecycle.metrics("budget_coach").errors == 2


async def test_runner_validates_before_starting(runner):
    with pytest.raises(AgentNotFoundError):
        await runner.run("ghost", "hi", make_ctx())
    with pytest.raises(ValidationError):
        await runner.run("budget_coach", "   ", make_ctx())
    with pytest.raises(ValidationError):
        await runner.run("budget_coach", "hi", make_ctx(user_id=""))
    assert runner._lifecycle.metrics().calls == 0
