"""
agents.orchestrator - Operations exposed to the REST and CLI adapters.

route_and_run() is the conversational entry point:

    1. Validate input and choose an agent (explicit > keyword rule > default).
    2. Build the session context (cached snapshot + history, memory profile).
    3. Run the agent. If it fails, fall back to the default agent, then to
       a persisted apology; agent failures never leave this method.
    4. Follow handoffs requested by the agent during its turn. When the
       escalation bound is hit, the escalation agent answers instead.
    5. Remember what the user asked about (routing insight).

Every other method is a thin, validated pass-through to one component.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from application.context import SessionContext
from application.dto import HistoryPage, RunResponse
from application.services.chat_history import ChatHistoryService
from application.services.context_cache import ContextCache
from application.services.memory_store import MemoryStoreService
from domain.exceptions import (
    AgentExecutionError,
    AgentNotFoundError,
    DomainError,
    ExecutionTimeoutError,
    ValidationError,
)
from domain.models import (
    AgentDefinition,
    ErrorCode,
    HandoffPriority,
    HandoffRecord,
    MetricsSnapshot,
    RouteSuggestion,
    ToolExecutionResult,
)
from agents.catalog import AgentCatalog
from agents.handoff import HandoffCoordinator
from agents.lifecycle import LifecycleManager
from agents.router import Router
from agents.runner import AgentRunner
from agents.tools.base import BaseTool
from agents.tools.catalog import ToolCatalog
from agents.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)

APOLOGY = (
    "I'm sorry, I ran into a problem while looking into that. "
    "Please try again in a moment, or rephrase your question."
)


class Orchestrator:
    """Routes messages to agents and exposes the runtime's operations."""

    def __init__(
        self,
        agents: AgentCatalog,
        tools: ToolCatalog,
        router: Router,
        runner: AgentRunner,
        handoffs: HandoffCoordinator,
        tool_executor: ToolExecutor,
        lifecycle: LifecycleManager,
        context_cache: ContextCache,
        chat_history: ChatHistoryService,
        memory: Optional[MemoryStoreService] = None,
        default_agent: str = "financial_advisor",
        escalation_agent: Optional[str] = None,
        record_routing_insights: bool = True,
    ):
        self._agents = agents
        self._tools = tools
        self._router = router
        self._runner = runner
        self._handoffs = handoffs
        self._executor = tool_executor
        self._lifecycle = lifecycle
        self._cache = context_cache
        self._chat_history = chat_history
        self._memory = memory
        self._default_agent = default_agent
        self._escalation_agent = escalation_agent or default_agent
        self._record_routing_insights = record_routing_insights

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    async def route_and_run(
        self,
        message: str,
        session_id: str,
        user_id: str,
        agent_name: Optional[str] = None,
    ) -> RunResponse:
        _require(message, "message")
        _require(session_id, "session_id")
        _require(user_id, "user_id")

        try:
            decision = self._router.resolve(message, agent_name)
        except AgentNotFoundError as exc:
            raise ValidationError(f"Unknown agent requested: {exc.message}") from None
        agent = decision.agent
        ctx = await self.build_context(user_id, session_id, agent.name)
        logger.info(
            "Routed message to %s (%s%s)", agent.name, decision.routed_by,
            f", rule={decision.rule}" if decision.rule else "",
        )

        try:
            response = await self._runner.run(agent.name, message, ctx)
        except (AgentExecutionError, ExecutionTimeoutError) as exc:
            return await self._fall_back(agent, message, ctx, decision.routed_by, exc)

        current_agent, response, handoffs = await self._follow_handoffs(
            agent.name, message, ctx, response,
        )

        if decision.routed_by == "keywords":
            await self._remember_route(user_id, agent.name, decision.rule, message)

        return RunResponse(
            response=response,
            agent_name=current_agent,
            session_id=session_id,
            routed_by=decision.routed_by,
            handoffs=handoffs,
        )

    async def _fall_back(
        self,
        failed: AgentDefinition,
        message: str,
        ctx: SessionContext,
        routed_by: str,
        error: DomainError,
    ) -> RunResponse:
        logger.warning("Agent %s failed (%s); degrading", failed.name, error.code.value)
        if failed.name != self._default_agent:
            try:
                fallback_ctx = await self.build_context(
                    ctx.user_id, ctx.session_id, self._default_agent,
                )
                response = await self._runner.run(self._default_agent, message, fallback_ctx)
            except (AgentExecutionError, ExecutionTimeoutError) as exc:
                error = exc
            else:
                return RunResponse(
                    response=response,
                    agent_name=self._default_agent,
                    session_id=ctx.session_id,
                    routed_by="fallback",
                    degraded=True,
                    error_code=error.code.value,
                )

        try:
            await self._chat_history.save_interaction(
                ctx.user_id, ctx.session_id, failed.name, message, APOLOGY,
            )
        except DomainError:
            logger.exception("Failed to persist apology for session %s", ctx.session_id)
        return RunResponse(
            response=APOLOGY,
            agent_name=failed.name,
            session_id=ctx.session_id,
            routed_by=routed_by,
            degraded=True,
            error_code=error.code.value,
        )

    async def _follow_handoffs(
        self,
        agent_name: str,
        message: str,
        ctx: SessionContext,
        response: str,
    ) -> tuple[str, str, list[HandoffRecord]]:
        records: list[HandoffRecord] = []
        current, current_ctx = agent_name, ctx
        while True:
            pending = current_ctx.take_pending_handoff()
            if pending is None:
                break
            record = await self._handoffs.execute_handoff(
                current, pending.to_agent, message, pending.reason, current_ctx,
                pending.priority,
            )
            records.append(record)
            if record.succeeded:
                current, current_ctx, response = record.to_agent, record.context, record.response
                continue
            if record.error_code == ErrorCode.HANDOFF_DEPTH_EXCEEDED:
                escalated = await self._escalate(message, current_ctx)
                if escalated is not None:
                    current, response = self._escalation_agent, escalated
            break
        return current, response, records

    async def _escalate(self, message: str, ctx: SessionContext) -> Optional[str]:
        if ctx.agent_name == self._escalation_agent:
            return None
        logger.warning(
            "Handoff depth exceeded in session %s; escalating to %s",
            ctx.session_id, self._escalation_agent,
        )
        try:
            return await self._runner.run(
                self._escalation_agent, message, ctx, record_user_message=False,
            )
        except (AgentExecutionError, ExecutionTimeoutError):
            logger.exception("Escalation agent %s failed", self._escalation_agent)
            return None

    async def _remember_route(
        self, user_id: str, agent_name: str, rule_name: Optional[str], message: str,
    ) -> None:
        if self._memory is None or not self._record_routing_insights:
            return
        rule = next((r for r in self._router.rules if r.name == rule_name), None)
        if rule is None:
            return
        try:
            await self._memory.store_insight(
                user_id, agent_name,
                f"Asked about {rule.focus}: {message[:120]}",
                category=rule.focus,
                confidence=0.6,
                metadata={"source": "routing", "rule": rule.name},
            )
        except DomainError:
            logger.warning("Could not record routing insight for user %s", user_id)

    async def build_context(
        self, user_id: str, session_id: str, agent_name: str,
    ) -> SessionContext:
        cached = await self._cache.get_or_build(user_id, session_id, agent_name)
        profile = None
        if self._memory is not None:
            try:
                profile = await self._memory.get_profile(user_id)
            except DomainError:
                logger.warning("Memory profile unavailable for user %s", user_id)
        return SessionContext(
            user_id=user_id,
            session_id=session_id,
            agent_name=agent_name,
            snapshot=cached.snapshot,
            history=list(cached.history),
            user=cached.user,
            memory_profile=profile,
        )

    # ------------------------------------------------------------------
    # Direct operations
    # ------------------------------------------------------------------

    async def run_agent(
        self, agent_name: str, message: str, user_id: str, session_id: str,
    ) -> str:
        """Run one named agent. Raises AgentNotFoundError, AgentExecutionError
        or ExecutionTimeoutError."""
        self._agents.get(agent_name)
        _require(message, "message")
        ctx = await self.build_context(user_id, session_id, agent_name)
        return await self._runner.run(agent_name, message, ctx)

    async def execute_handoff(
        self,
        from_agent: str,
        to_agent: str,
        message: str,
        reason: str,
        user_id: str,
        session_id: str,
        priority: HandoffPriority | str = HandoffPriority.MEDIUM,
        escalation_level: int = 0,
    ) -> HandoffRecord:
        _require(message, "message")
        _require(user_id, "user_id")
        try:
            priority = HandoffPriority(priority)
        except ValueError:
            raise ValidationError(f"Unknown handoff priority '{priority}'") from None
        ctx = await self.build_context(user_id, session_id, from_agent)
        ctx.escalation_level = max(0, escalation_level)
        return await self._handoffs.execute_handoff(
            from_agent, to_agent, message, reason or "Requested transfer", ctx, priority,
        )

    async def execute_tool(
        self,
        tool_name: str,
        params: Any,
        user_id: str,
        session_id: str,
        agent_name: Optional[str] = None,
    ) -> ToolExecutionResult:
        ctx = await self.build_context(user_id, session_id, agent_name or self._default_agent)
        return await self._executor.execute(tool_name, params, ctx)

    def list_agents(self, role: Optional[str] = None) -> list[AgentDefinition]:
        try:
            return self._agents.list(role)
        except ValueError:
            raise ValidationError(f"Unknown agent role '{role}'") from None

    def list_tools(self, category: Optional[str] = None) -> list[BaseTool]:
        try:
            return self._tools.list(category)
        except ValueError:
            raise ValidationError(f"Unknown tool category '{category}'") from None

    async def get_history(
        self,
        session_id: str,
        limit: int = 20,
        offset: int = 0,
        user_id: Optional[str] = None,
    ) -> HistoryPage:
        _require(session_id, "session_id")
        return await self._chat_history.get_history(session_id, limit, offset, user_id)

    def get_metrics(
        self,
        agent_name: Optional[str] = None,
        tool_name: Optional[str] = None,
    ) -> MetricsSnapshot:
        agents = self._lifecycle.registry.all()
        tools = self._executor.metrics.all()
        if agent_name is not None:
            agents = {agent_name: self._lifecycle.metrics(agent_name)}
        if tool_name is not None:
            tools = {tool_name: self._executor.stats(tool_name)}
        return MetricsSnapshot(
            agents=agents,
            tools=tools,
            agent_totals=self._lifecycle.metrics(),
            tool_totals=self._executor.stats(),
            handoffs=self._handoffs.metrics(),
            active_executions=len(self._lifecycle.active()),
        )

    async def suggest_route(
        self,
        message: str,
        user_id: Optional[str] = None,
        current_agent: Optional[str] = None,
    ) -> RouteSuggestion:
        _require(message, "message")
        profile = None
        if user_id and self._memory is not None:
            try:
                profile = await self._memory.get_profile(user_id)
            except DomainError:
                logger.warning("Memory profile unavailable for user %s", user_id)
        return self._router.suggest_route(message, current_agent, profile)

    def handoff_history(self, user_id: str, limit: int = 10) -> list[HandoffRecord]:
        return self._handoffs.history(user_id, max(1, limit))

    def handoff_statistics(self, user_id: Optional[str] = None) -> dict[str, Any]:
        return self._handoffs.statistics(user_id)

    def health(self) -> dict[str, Any]:
        tools = self._executor.health()
        return {
            "status": "healthy" if tools["healthy"] else "degraded",
            "agents": len(self._agents),
            "tools": tools,
            "active_executions": self._lifecycle.active_summary(),
            "context_cache": self._cache.stats().to_dict(),
        }


def _require(value: Optional[str], field_name: str) -> None:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
