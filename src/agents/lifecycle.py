"""
agents.lifecycle - Tracking of in-flight agent executions.

Each run gets its own execution id, so concurrent sessions using the
same agent never share a bookkeeping slot. The periodic sweep force-ends
executions that overran the execution timeout: it cancels the attached
task (so the work really stops) and records the run as a failed,
timed-out call. A later end() for a swept execution is a no-op.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional
from uuid import uuid4

from application.context import SessionContext
from domain.models import CallStats
from agents.metrics import MetricsRegistry

logger = logging.getLogger(__name__)


@dataclass
class ActiveExecution:
    execution_id: str
    agent_name: str
    user_id: str
    session_id: str
    started_at: float
    started_at_iso: str = field(default_factory=lambda: datetime.now().isoformat())
    task: Optional[asyncio.Future] = None

    def to_dict(self, now: float) -> dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "agent_name": self.agent_name,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "started_at": self.started_at_iso,
            "running_ms": round((now - self.started_at) * 1000, 1),
        }


class LifecycleManager:
    """Starts, ends and sweeps agent executions; owns per-agent metrics."""

    def __init__(
        self,
        execution_timeout_s: float = 60.0,
        sweep_interval_s: float = 30.0,
        metrics: Optional[MetricsRegistry] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._timeout = execution_timeout_s
        self._sweep_interval = sweep_interval_s
        self._metrics = metrics or MetricsRegistry()
        self._clock = clock
        self._active: dict[str, ActiveExecution] = {}
        self._sweeper: Optional[asyncio.Task] = None

    @property
    def execution_timeout(self) -> float:
        return self._timeout

    def start(
        self,
        agent_name: str,
        ctx: SessionContext,
        task: Optional[asyncio.Future] = None,
    ) -> str:
        execution_id = uuid4().hex
        self._active[execution_id] = ActiveExecution(
            execution_id=execution_id,
            agent_name=agent_name,
            user_id=ctx.user_id,
            session_id=ctx.session_id,
            started_at=self._clock(),
            task=task,
        )
        logger.debug("Execution %s started for agent %s", execution_id, agent_name)
        return execution_id

    def attach(self, execution_id: str, task: asyncio.Future) -> None:
        """Bind the cancellable task doing the work for an execution."""
        execution = self._active.get(execution_id)
        if execution is not None:
            execution.task = task

    def end(
        self,
        execution_id: str,
        success: bool,
        timed_out: bool = False,
    ) -> Optional[float]:
        """Finalize an execution. Returns its duration, or None if already ended."""
        execution = self._active.pop(execution_id, None)
        if execution is None:
            return None
        duration_ms = max(0.0, (self._clock() - execution.started_at) * 1000)
        self._metrics.record(execution.agent_name, duration_ms, success, timed_out)
        logger.debug(
            "Execution %s (%s) ended success=%s in %.1fms",
            execution_id, execution.agent_name, success, duration_ms,
        )
        return duration_ms

    def sweep(self) -> list[str]:
        """Force-end every execution running longer than the timeout."""
        now = self._clock()
        overdue = [
            e for e in self._active.values()
            if now - e.started_at > self._timeout
        ]
        for execution in overdue:
            if execution.task is not None and not execution.task.done():
                execution.task.cancel()
            self.end(execution.execution_id, success=False, timed_out=True)
            logger.warning(
                "Force-ended execution %s of agent %s after %.1fs",
                execution.execution_id, execution.agent_name, now - execution.started_at,
            )
        return [e.execution_id for e in overdue]

    def active(self, agent_name: Optional[str] = None) -> list[ActiveExecution]:
        return [
            e for e in self._active.values()
            if agent_name is None or e.agent_name == agent_name
        ]

    def active_summary(self) -> list[dict[str, Any]]:
        now = self._clock()
        return [e.to_dict(now) for e in self._active.values()]

    def metrics(self, agent_name: Optional[str] = None) -> CallStats:
        if agent_name is None:
            return self._metrics.totals()
        return self._metrics.get(agent_name)

    @property
    def registry(self) -> MetricsRegistry:
        return self._metrics

    # ------------------------------------------------------------------
    # Background sweep & shutdown
    # ------------------------------------------------------------------

    def start_sweeper(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(
                self._sweep_loop(), name="lifecycle-sweep",
            )

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.sweep()

    async def drain(self, timeout: float = 10.0) -> int:
        """Wait for in-flight executions, then cancel what is left.

        Returns the number of executions that had to be cancelled.
        """
        tasks = [e.task for e in self._active.values() if e.task is not None]
        if tasks:
            await asyncio.wait(tasks, timeout=timeout)
        leftover = [e for e in list(self._active.values())
                    if e.task is None or not e.task.done()]
        for execution in leftover:
            if execution.task is not None:
                execution.task.cancel()
            self.end(execution.execution_id, success=False, timed_out=True)
        if leftover:
            logger.warning("Drain cancelled %d execution(s)", len(leftover))
        return len(leftover)
