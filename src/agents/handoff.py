"""
agents.handoff - Transfer a conversation between agents.

Each attempt walks Requested → Validated → Executed → Completed | Failed.

    - Invalid agents (unknown, identical, or not a permitted target) and
      an exceeded escalation depth fail before anything runs. They only
      bump the `rejected` counter and never touch the caller's context.
    - A valid transfer derives a new context for the receiving agent
      (last N turns plus a handoff annotation, escalation level + 1),
      runs that agent and records outcome and duration.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter, defaultdict, deque
from typing import Any, Optional

from application.context import SessionContext
from domain.exceptions import DomainError
from domain.models import (
    ErrorCode,
    HandoffAnnotation,
    HandoffOutcome,
    HandoffPriority,
    HandoffRecord,
)
from agents.catalog import AgentCatalog
from agents.metrics import MetricsRegistry
from agents.runner import AgentRunner

logger = logging.getLogger(__name__)


class HandoffCoordinator:
    """Validates and executes handoffs; keeps per-user handoff history."""

    def __init__(
        self,
        catalog: AgentCatalog,
        runner: AgentRunner,
        max_escalation: int = 5,
        carry_turns: int = 10,
        history_per_user: int = 50,
    ):
        self._catalog = catalog
        self._runner = runner
        self._max_escalation = max_escalation
        self._carry_turns = carry_turns
        self._history_per_user = history_per_user
        self._metrics = MetricsRegistry()
        self._lock = threading.Lock()
        self._rejected: Counter[str] = Counter()
        self._history: dict[str, deque[HandoffRecord]] = defaultdict(
            lambda: deque(maxlen=self._history_per_user)
        )

    @property
    def max_escalation(self) -> int:
        return self._max_escalation

    async def execute_handoff(
        self,
        from_agent: str,
        to_agent: str,
        message: str,
        reason: str,
        context: SessionContext,
        priority: HandoffPriority = HandoffPriority.MEDIUM,
    ) -> HandoffRecord:
        record = HandoffRecord(
            from_agent=from_agent,
            to_agent=to_agent,
            reason=reason,
            priority=priority,
            escalation_level=context.escalation_level,
            user_id=context.user_id,
            session_id=context.session_id,
        )

        problem = self._invalid_agents(from_agent, to_agent)
        if problem:
            return self._reject(record, ErrorCode.INVALID_AGENTS, f"invalid agents: {problem}")

        next_level = context.escalation_level + 1
        if next_level > self._max_escalation:
            return self._reject(
                record,
                ErrorCode.HANDOFF_DEPTH_EXCEEDED,
                f"handoff depth exceeded: level {next_level} > max {self._max_escalation}",
            )
        record.outcome = HandoffOutcome.VALIDATED

        annotation = HandoffAnnotation(
            from_agent=from_agent,
            reason=reason,
            priority=priority,
            escalation_level=next_level,
        )
        derived = context.derive_for_handoff(to_agent, annotation, self._carry_turns)
        record.escalation_level = next_level
        record.outcome = HandoffOutcome.EXECUTED
        logger.info(
            "Handoff %s -> %s (level %d, %s): %s",
            from_agent, to_agent, next_level, priority.value, reason,
        )

        started = time.perf_counter()
        try:
            record.response = await self._runner.run(
                to_agent, message, derived, record_user_message=False,
            )
        except DomainError as exc:
            record.outcome = HandoffOutcome.FAILED
            record.error = exc.message
            record.error_code = exc.code
            logger.warning("Handoff %s -> %s failed: %s", from_agent, to_agent, exc.message)
        else:
            record.outcome = HandoffOutcome.COMPLETED
            record.context = derived
        record.duration_ms = max(0.0, (time.perf_counter() - started) * 1000)

        self._metrics.record(
            f"{from_agent}->{to_agent}", record.duration_ms, record.succeeded,
            timed_out=record.error_code == ErrorCode.EXECUTION_TIMEOUT,
        )
        with self._lock:
            self._history[context.user_id].append(record)
        return record

    def _invalid_agents(self, from_agent: str, to_agent: str) -> Optional[str]:
        source = self._catalog.find(from_agent)
        if source is None:
            return f"unknown source agent '{from_agent}'"
        if self._catalog.find(to_agent) is None:
            return f"unknown target agent '{to_agent}'"
        if from_agent == to_agent:
            return "source and target are the same agent"
        if not source.can_hand_off_to(to_agent):
            return f"'{from_agent}' may not hand off to '{to_agent}'"
        return None

    def _reject(self, record: HandoffRecord, code: ErrorCode, error: str) -> HandoffRecord:
        record.outcome = HandoffOutcome.FAILED
        record.error = error
        record.error_code = code
        with self._lock:
            self._rejected[code.value] += 1
        logger.warning("Handoff %s -> %s rejected: %s", record.from_agent, record.to_agent, error)
        return record

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def history(self, user_id: str, limit: int = 10) -> list[HandoffRecord]:
        """Most recent executed handoffs for a user, newest first."""
        with self._lock:
            records = list(self._history.get(user_id, ()))
        return list(reversed(records))[:limit]

    def metrics(self) -> dict[str, Any]:
        totals = self._metrics.totals()
        with self._lock:
            rejected = dict(self._rejected)
        return {
            **totals.to_dict(),
            "rejected": sum(rejected.values()),
            "rejected_by_code": rejected,
            "routes": {k: v.to_dict() for k, v in self._metrics.all().items()},
        }

    def statistics(self, user_id: Optional[str] = None) -> dict[str, Any]:
        with self._lock:
            if user_id is None:
                records = [r for d in self._history.values() for r in d]
            else:
                records = list(self._history.get(user_id, ()))
        total = len(records)
        if total == 0:
            return {
                "total_handoffs": 0,
                "success_rate": 0.0,
                "average_duration_ms": 0.0,
                "common_routes": [],
                "escalation_rate": 0.0,
            }
        successful = sum(1 for r in records if r.succeeded)
        routes = Counter(f"{r.from_agent} -> {r.to_agent}" for r in records)
        return {
            "total_handoffs": total,
            "success_rate": round(successful / total * 100, 2),
            "average_duration_ms": round(sum(r.duration_ms for r in records) / total, 3),
            "common_routes": [{"route": k, "count": v} for k, v in routes.most_common(5)],
            "escalation_rate": round(
                sum(1 for r in records if r.escalation_level > 1) / total * 100, 2,
            ),
        }
