"""
agents.runner - Run one agent turn under lifecycle tracking.

The invoker call runs in its own task so it can be cancelled for real:
by the runner when the execution timeout elapses, by the lifecycle sweep
when it finds an overrun, or by drain() during shutdown. Failures leave
this boundary as AgentExecutionError / ExecutionTimeoutError only.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from application.context import SessionContext
from application.services.chat_history import ChatHistoryService
from domain.exceptions import (
    AgentExecutionError,
    DomainError,
    ExecutionTimeoutError,
    ValidationError,
)
from domain.ports import AgentInvokerPort
from agents.catalog import AgentCatalog
from agents.lifecycle import LifecycleManager

logger = logging.getLogger(__name__)


def _consume_result(task: asyncio.Future) -> None:
    # Abandoned tasks may still finish with an error after cancellation.
    if not task.cancelled():
        task.exception()


class AgentRunner:
    """Executes agents through the AgentInvokerPort."""

    def __init__(
        self,
        catalog: AgentCatalog,
        invoker: AgentInvokerPort,
        lifecycle: LifecycleManager,
        chat_history: Optional[ChatHistoryService] = None,
        timeout_s: float = 60.0,
    ):
        self._catalog = catalog
        self._invoker = invoker
        self._lifecycle = lifecycle
        self._chat_history = chat_history
        self._timeout = timeout_s

    async def run(
        self,
        agent_name: str,
        message: str,
        ctx: SessionContext,
        *,
        persist: bool = True,
        record_user_message: bool = True,
        timeout: Optional[float] = None,
    ) -> str:
        """Run `agent_name` on `message` and return its reply.

        Raises:
            AgentNotFoundError:     unknown agent.
            ValidationError:        empty message or missing user for an auth agent.
            ExecutionTimeoutError:  the turn exceeded its time budget.
            AgentExecutionError:    the invoker failed or returned nothing.
        """
        agent = self._catalog.get(agent_name)
        if not message or not message.strip():
            raise ValidationError("Message must not be empty")
        if agent.requires_auth and not ctx.user_id:
            raise ValidationError(f"Agent '{agent.name}' requires an authenticated user")

        ctx.agent_name = agent.name
        timeout = timeout or self._timeout
        logger.info(
            "Agent %s processing (user=%s, session=%s): %s",
            agent.name, ctx.user_id, ctx.session_id, message[:80],
        )

        execution_id = self._lifecycle.start(agent.name, ctx)
        task = asyncio.ensure_future(self._invoker.invoke(agent, message, ctx, timeout))
        task.add_done_callback(_consume_result)
        self._lifecycle.attach(execution_id, task)

        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        except asyncio.CancelledError:
            task.cancel()
            self._lifecycle.end(execution_id, success=False)
            raise

        if not done:
            task.cancel()
            self._lifecycle.end(execution_id, success=False, timed_out=True)
            logger.warning("Agent %s timed out after %.1fs", agent.name, timeout)
            raise ExecutionTimeoutError(f"Agent '{agent.name}' timed out after {timeout:g}s")

        if task.cancelled():
            # Cancelled by the lifecycle sweep or a shutdown drain.
            self._lifecycle.end(execution_id, success=False, timed_out=True)
            raise ExecutionTimeoutError(f"Agent '{agent.name}' execution was cancelled")

        exc = task.exception()
        if exc is not None:
            self._lifecycle.end(execution_id, success=False)
            logger.error("Agent %s failed: %s", agent.name, exc, exc_info=exc)
            if isinstance(exc, (AgentExecutionError, ExecutionTimeoutError)):
                raise exc
            if isinstance(exc, DomainError):
                raise AgentExecutionError(f"Agent '{agent.name}' failed: {exc.message}") from exc
            raise AgentExecutionError(f"Agent '{agent.name}' failed: {type(exc).__name__}") from exc

        response = task.result()
        if not isinstance(response, str) or not response.strip():
            self._lifecycle.end(execution_id, success=False)
            raise AgentExecutionError(f"Agent '{agent.name}' returned an empty response")

        self._lifecycle.end(execution_id, success=True)

        if persist:
            await self._persist(ctx, agent.name, message if record_user_message else None, response)
        return response

    async def _persist(
        self,
        ctx: SessionContext,
        agent_name: str,
        user_message: Optional[str],
        response: str,
    ) -> None:
        if self._chat_history is None:
            return
        try:
            await self._chat_history.save_interaction(
                ctx.user_id, ctx.session_id, agent_name, user_message, response,
            )
        except Exception:
            logger.exception(
                "Failed to persist interaction for session %s; continuing without save",
                ctx.session_id,
            )
