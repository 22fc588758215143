"""
factory - Composition root for the financial coaching runtime.

ALL dependency wiring happens here. No other module constructs its own
dependencies. Adapters (CLI, REST) call this factory to get a fully
configured Orchestrator.

Usage:
    from factory import ServiceFactory
    from infrastructure.config import Settings

    config = Settings.from_env()
    factory = ServiceFactory(config)
    await factory.initialize()  # one-time startup

    orchestrator = factory.create_orchestrator()
    result = await orchestrator.route_and_run("How is my budget?", "s1", "u1")

    await factory.shutdown()    # drain in-flight executions
"""

from __future__ import annotations

import logging
from typing import Optional

from infrastructure.config import Settings
from infrastructure.persistence.connection import AsyncSQLiteConnection
from infrastructure.persistence.migrations import run_migrations
from infrastructure.persistence.conversation_repo import SQLiteConversationRepository
from infrastructure.persistence.financial_repo import SQLiteFinancialRepository
from infrastructure.persistence.memory_repo import SQLiteMemoryRepository
from infrastructure.persistence.user_repo import SQLiteUserRepository
from domain.ports import AgentInvokerPort
from application.services.chat_history import ChatHistoryService
from application.services.context_cache import ContextCache
from application.services.memory_store import MemoryStoreService
from agents.catalog import AgentCatalog
from agents.definitions import DEFAULT_AGENTS
from agents.handoff import HandoffCoordinator
from agents.lifecycle import LifecycleManager
from agents.orchestrator import Orchestrator
from agents.router import Router
from agents.runner import AgentRunner
from agents.tools.budget import BudgetAnalysisTool, VarianceCalculationTool
from agents.tools.catalog import ToolCatalog
from agents.tools.envelope import EnvelopeBalanceTool, SuggestAllocationTool
from agents.tools.executor import ToolExecutor
from agents.tools.handoff import RequestHandoffTool
from agents.tools.insight import (
    AnalyzeTrendsTool,
    GenerateRecommendationsTool,
    TrackGoalProgressTool,
)
from agents.tools.memory import (
    GetContextualRecommendationsTool,
    GetUserMemoryProfileTool,
    StoreInsightTool,
    StoreUserPreferenceTool,
)
from agents.tools.transaction import (
    CategorizeTransactionTool,
    DetectAnomaliesTool,
    SpendingPatternsTool,
)

logger = logging.getLogger(__name__)


class ServiceFactory:
    """Composition root: wires all dependencies together.

    Call initialize() once at startup, then create_orchestrator(). Every
    runtime object (catalogs, caches, metrics) is created once here and
    shared by reference; call shutdown() to drain before exit.

    agent_invoker: optional AgentInvokerPort override (tests inject a
    scripted fake). When None, a LangChain invoker is built on demand.
    """

    def __init__(self, config: Settings, agent_invoker: Optional[AgentInvokerPort] = None):
        self._config = config
        self._connection = AsyncSQLiteConnection(
            config.db_path, busy_timeout=config.persistence_timeout_s,
        )
        self._agent_invoker = agent_invoker

        self._conversation_repo = SQLiteConversationRepository(self._connection)
        self._financial_repo = SQLiteFinancialRepository(self._connection)
        self._memory_repo = SQLiteMemoryRepository(self._connection)
        self._user_repo = SQLiteUserRepository(self._connection)

        self._tool_catalog: Optional[ToolCatalog] = None
        self._agent_catalog: Optional[AgentCatalog] = None
        self._tool_executor: Optional[ToolExecutor] = None
        self._lifecycle: Optional[LifecycleManager] = None
        self._context_cache: Optional[ContextCache] = None
        self._memory_store: Optional[MemoryStoreService] = None
        self._chat_history: Optional[ChatHistoryService] = None
        self._orchestrator: Optional[Orchestrator] = None
        self._initialized = False

    @property
    def config(self) -> Settings:
        return self._config

    async def initialize(self) -> None:
        """One-time startup: migrations, catalogs, background sweeps.

        Raises CatalogError if the static catalogs do not validate; no
        partial runtime is ever served.
        """
        if self._initialized:
            return
        logger.info("Initializing ServiceFactory...")
        config = self._config

        await run_migrations(self._connection)
        logger.info("Database migrations complete (%s)", self._connection.db_path)

        self._memory_store = MemoryStoreService(
            self._memory_repo,
            max_insights=config.memory_max_insights,
            profile_insights=config.memory_profile_insights,
            timeout=config.persistence_timeout_s,
        )
        self._context_cache = ContextCache(
            self._financial_repo,
            self._conversation_repo,
            max_entries=config.context_cache_max_entries,
            ttl_s=config.context_cache_ttl_s,
            history_limit=config.context_history_limit,
            sweep_interval_s=config.context_sweep_interval_s,
            timeout=config.persistence_timeout_s,
            user_repo=self._user_repo,
        )
        self._chat_history = ChatHistoryService(
            self._conversation_repo,
            context_cache=self._context_cache,
            timeout=config.persistence_timeout_s,
        )

        self._tool_catalog = self._build_tool_catalog()
        self._agent_catalog = AgentCatalog(self._tool_catalog)
        self._agent_catalog.load(DEFAULT_AGENTS)
        self._agent_catalog.require(config.default_agent, config.escalation_agent)

        self._tool_executor = ToolExecutor(
            self._tool_catalog,
            default_timeout_s=config.tool_timeout_s,
            history_size=config.tool_history_size,
        )
        self._lifecycle = LifecycleManager(
            execution_timeout_s=config.agent_timeout_s,
            sweep_interval_s=config.lifecycle_sweep_interval_s,
        )

        self._context_cache.start()
        self._lifecycle.start_sweeper()

        self._initialized = True
        logger.info(
            "ServiceFactory ready (%d agents, %d tools)",
            len(self._agent_catalog), len(self._tool_catalog.names()),
        )

    async def shutdown(self, drain_timeout: float = 10.0) -> None:
        """Drain in-flight executions, then stop background sweeps."""
        if not self._initialized:
            return
        cancelled = await self._lifecycle.drain(drain_timeout)
        await self._lifecycle.stop_sweeper()
        await self._context_cache.stop()
        self._initialized = False
        logger.info("ServiceFactory shut down (%d execution(s) cancelled)", cancelled)

    # ------------------------------------------------------------------
    # Runtime creation
    # ------------------------------------------------------------------

    def create_orchestrator(self) -> Orchestrator:
        """Return the Orchestrator (built once, shared by all requests)."""
        self._ensure_initialized()
        if self._orchestrator is not None:
            return self._orchestrator

        config = self._config
        invoker = self._agent_invoker or self._build_agent_invoker()
        runner = AgentRunner(
            self._agent_catalog,
            invoker,
            self._lifecycle,
            chat_history=self._chat_history,
            timeout_s=config.agent_timeout_s,
        )
        self._orchestrator = Orchestrator(
            agents=self._agent_catalog,
            tools=self._tool_catalog,
            router=Router(
                self._agent_catalog,
                default_agent=config.default_agent,
                escalation_agent=config.escalation_agent,
                confidence_threshold=config.routing_confidence_threshold,
            ),
            runner=runner,
            handoffs=HandoffCoordinator(
                self._agent_catalog,
                runner,
                max_escalation=config.handoff_max_escalation,
                carry_turns=config.handoff_carry_turns,
                history_per_user=config.handoff_history_per_user,
            ),
            tool_executor=self._tool_executor,
            lifecycle=self._lifecycle,
            context_cache=self._context_cache,
            chat_history=self._chat_history,
            memory=self._memory_store,
            default_agent=config.default_agent,
            escalation_agent=config.escalation_agent,
            record_routing_insights=config.record_routing_insights,
        )
        return self._orchestrator

    def create_financial_repository(self) -> SQLiteFinancialRepository:
        """Return the financial repository (snapshot reads, seeding)."""
        return self._financial_repo

    def create_user_repository(self) -> SQLiteUserRepository:
        """Return a user repository for direct user entity lookups."""
        return self._user_repo

    def create_memory_store(self) -> MemoryStoreService:
        self._ensure_initialized()
        return self._memory_store

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_tool_catalog(self) -> ToolCatalog:
        memory = self._memory_store
        catalog = ToolCatalog([
            BudgetAnalysisTool(),
            VarianceCalculationTool(),
            EnvelopeBalanceTool(),
            SuggestAllocationTool(),
            SpendingPatternsTool(),
            CategorizeTransactionTool(),
            DetectAnomaliesTool(),
            AnalyzeTrendsTool(),
            GenerateRecommendationsTool(),
            TrackGoalProgressTool(),
            StoreUserPreferenceTool(memory),
            StoreInsightTool(memory),
            GetUserMemoryProfileTool(memory),
            GetContextualRecommendationsTool(memory),
            RequestHandoffTool(),
        ])
        catalog.freeze()
        return catalog

    def _build_agent_invoker(self) -> AgentInvokerPort:
        """Build the LangChain invoker for the configured provider."""
        from infrastructure.llm.agent_invoker import LangChainAgentInvoker
        from infrastructure.llm.llm_builder import build_llm_from_settings

        return LangChainAgentInvoker(
            llm=build_llm_from_settings(self._config),
            tool_catalog=self._tool_catalog,
            tool_executor=self._tool_executor,
            max_iterations=self._config.agent_max_iterations,
        )

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(
                "ServiceFactory not initialized. Call await factory.initialize() first."
            )
