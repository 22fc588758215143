"""
domain.models - Value objects for the coaching runtime.

These are immutable data containers with no business logic and no
dependencies on infrastructure (no LangChain, no SQLite, no FastAPI).

Grouped by the component that produces them:
    - catalogs        → RiskLevel, AgentRole, ToolCategory, AgentDefinition
    - tool executor   → ToolExecutionResult
    - handoffs        → HandoffPriority, HandoffOutcome, HandoffRecord
    - metrics         → CallStats, MetricsSnapshot
    - financial data  → Envelope, Transaction, Goal, FinancialSnapshot
    - memory          → MemoryProfile, Recommendation
    - routing         → RouteSuggestion
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


def utc_now() -> str:
    return datetime.now().isoformat()


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Stable failure codes surfaced to API/CLI callers."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AGENT_NOT_FOUND = "AGENT_NOT_FOUND"
    AGENT_ERROR = "AGENT_ERROR"
    EXECUTION_ERROR = "EXECUTION_ERROR"
    EXECUTION_TIMEOUT = "EXECUTION_TIMEOUT"
    INVALID_AGENTS = "INVALID_AGENTS"
    HANDOFF_DEPTH_EXCEEDED = "HANDOFF_DEPTH_EXCEEDED"
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    CATALOG_ERROR = "CATALOG_ERROR"
    REPOSITORY_ERROR = "REPOSITORY_ERROR"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AgentRole(str, Enum):
    """Closed set of agent roles; used as the listAgents category filter."""
    COORDINATOR = "coordinator"
    BUDGETING = "budgeting"
    TRANSACTIONS = "transactions"
    INSIGHTS = "insights"


class ToolCategory(str, Enum):
    BUDGET = "budget"
    ENVELOPE = "envelope"
    TRANSACTION = "transaction"
    INSIGHT = "insight"
    MEMORY = "memory"
    HANDOFF = "handoff"


class HandoffPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class HandoffOutcome(str, Enum):
    """Terminal and intermediate states of a single handoff attempt."""
    REQUESTED = "requested"
    VALIDATED = "validated"
    EXECUTED = "executed"
    COMPLETED = "completed"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Catalog definitions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AgentDefinition:
    """Static description of one specialised conversation handler.

    Created once at startup from configuration and never mutated. The
    catalog validates that every tool and handoff target exists.
    """
    name: str
    role: AgentRole
    instructions: str
    tools: tuple[str, ...] = ()
    handoff_targets: tuple[str, ...] = ()
    risk_level: RiskLevel = RiskLevel.LOW
    priority: int = 5
    requires_auth: bool = True
    estimated_duration_ms: int = 3000
    display_name: str = ""
    specializations: tuple[str, ...] = ()

    def can_hand_off_to(self, agent_name: str) -> bool:
        return agent_name in self.handoff_targets

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name or self.name,
            "role": self.role.value,
            "tools": list(self.tools),
            "handoff_targets": list(self.handoff_targets),
            "risk_level": self.risk_level.value,
            "priority": self.priority,
            "requires_auth": self.requires_auth,
            "estimated_duration_ms": self.estimated_duration_ms,
            "specializations": list(self.specializations),
        }


# ---------------------------------------------------------------------------
# Tool execution
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolExecutionResult:
    """Outcome of one tool call. Either `result` or `error` is set."""
    tool_name: str
    success: bool
    duration_ms: float
    result: Any = None
    error: str = ""
    error_code: Optional[ErrorCode] = None
    timestamp: str = field(default_factory=utc_now)

    @classmethod
    def ok(cls, tool_name: str, result: Any, duration_ms: float) -> ToolExecutionResult:
        return cls(tool_name=tool_name, success=True, result=result,
                   duration_ms=max(0.0, duration_ms))

    @classmethod
    def failure(
        cls,
        tool_name: str,
        code: ErrorCode,
        error: str,
        duration_ms: float = 0.0,
    ) -> ToolExecutionResult:
        return cls(tool_name=tool_name, success=False, error=error,
                   error_code=code, duration_ms=max(0.0, duration_ms))

    @property
    def timed_out(self) -> bool:
        return self.error_code == ErrorCode.EXECUTION_TIMEOUT

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "tool_name": self.tool_name,
            "success": self.success,
            "duration_ms": round(self.duration_ms, 3),
            "timestamp": self.timestamp,
        }
        if self.success:
            data["result"] = self.result
        else:
            data["error"] = self.error
            data["error_code"] = self.error_code.value if self.error_code else None
        return data


# ---------------------------------------------------------------------------
# Handoffs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HandoffAnnotation:
    """Explicit marker carried into the receiving agent's context."""
    from_agent: str
    reason: str
    priority: HandoffPriority
    escalation_level: int

    def describe(self) -> str:
        return (
            f"This conversation was handed over from '{self.from_agent}' "
            f"(priority: {self.priority.value}, escalation level "
            f"{self.escalation_level}). Reason: {self.reason}"
        )


@dataclass
class HandoffRecord:
    """Audit record for one handoff attempt.

    `context` holds the derived SessionContext handed to the receiving
    agent when the transfer completed; it is not serialised.
    """
    from_agent: str
    to_agent: str
    reason: str
    priority: HandoffPriority
    escalation_level: int
    outcome: HandoffOutcome = HandoffOutcome.REQUESTED
    duration_ms: float = 0.0
    response: str = ""
    error: str = ""
    error_code: Optional[ErrorCode] = None
    user_id: str = ""
    session_id: str = ""
    timestamp: str = field(default_factory=utc_now)
    context: Any = field(default=None, repr=False, compare=False)

    @property
    def succeeded(self) -> bool:
        return self.outcome == HandoffOutcome.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "from_agent": self.from_agent,
            "to_agent": self.to_agent,
            "reason": self.reason,
            "priority": self.priority.value,
            "escalation_level": self.escalation_level,
            "outcome": self.outcome.value,
            "duration_ms": round(self.duration_ms, 3),
            "response": self.response,
            "error": self.error,
            "error_code": self.error_code.value if self.error_code else None,
            "timestamp": self.timestamp,
        }


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CallStats:
    """Point-in-time counters for one agent or tool."""
    calls: int = 0
    errors: int = 0
    timeouts: int = 0
    total_duration_ms: float = 0.0
    average_duration_ms: float = 0.0
    last_called_at: str = ""

    @property
    def success_rate(self) -> float:
        if self.calls == 0:
            return 100.0
        return (self.calls - self.errors) / self.calls * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "calls": self.calls,
            "errors": self.errors,
            "timeouts": self.timeouts,
            "total_duration_ms": round(self.total_duration_ms, 3),
            "average_duration_ms": round(self.average_duration_ms, 3),
            "success_rate": round(self.success_rate, 2),
            "last_called_at": self.last_called_at,
        }


@dataclass(frozen=True)
class MetricsSnapshot:
    agents: dict[str, CallStats] = field(default_factory=dict)
    tools: dict[str, CallStats] = field(default_factory=dict)
    agent_totals: CallStats = field(default_factory=CallStats)
    tool_totals: CallStats = field(default_factory=CallStats)
    handoffs: dict[str, Any] = field(default_factory=dict)
    active_executions: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "agents": {k: v.to_dict() for k, v in self.agents.items()},
            "tools": {k: v.to_dict() for k, v in self.tools.items()},
            "agent_totals": self.agent_totals.to_dict(),
            "tool_totals": self.tool_totals.to_dict(),
            "handoffs": self.handoffs,
            "active_executions": self.active_executions,
        }


# ---------------------------------------------------------------------------
# Financial snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Envelope:
    id: str
    name: str
    category: str
    budgeted: float
    balance: float = 0.0
    priority: str = "medium"


@dataclass(frozen=True)
class Transaction:
    """A ledger movement. Negative amounts are spending."""
    id: str
    amount: float
    description: str = ""
    category: str = ""
    merchant: str = ""
    date: str = ""
    envelope_id: Optional[str] = None

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    @property
    def parsed_date(self) -> Optional[datetime]:
        if not self.date:
            return None
        try:
            return datetime.fromisoformat(self.date)
        except ValueError:
            return None


@dataclass(frozen=True)
class Goal:
    id: str
    name: str
    target_amount: float
    current_amount: float = 0.0
    deadline: str = ""
    category: str = ""


@dataclass(frozen=True)
class FinancialSnapshot:
    user_id: str
    envelopes: tuple[Envelope, ...] = ()
    transactions: tuple[Transaction, ...] = ()
    goals: tuple[Goal, ...] = ()

    @property
    def expenses(self) -> list[Transaction]:
        return [t for t in self.transactions if t.is_expense]

    @property
    def total_budgeted(self) -> float:
        return round(sum(e.budgeted for e in self.envelopes), 2)

    @property
    def total_balance(self) -> float:
        return round(sum(e.balance for e in self.envelopes), 2)

    def summary(self) -> str:
        """One-paragraph digest used inside system prompts."""
        if not (self.envelopes or self.transactions or self.goals):
            return "No financial data on file yet."
        spent = round(sum(-t.amount for t in self.expenses), 2)
        parts = [
            f"{len(self.envelopes)} envelope(s) with ${self.total_budgeted:,.2f} budgeted",
            f"{len(self.transactions)} recent transaction(s) totalling ${spent:,.2f} spent",
        ]
        if self.goals:
            parts.append(f"{len(self.goals)} active goal(s)")
        return "; ".join(parts) + "."


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MemoryProfile:
    """Aggregated view of a user's preferences and recent insights."""
    user_id: str
    preferences: dict[str, Any] = field(default_factory=dict)
    preference_categories: dict[str, str] = field(default_factory=dict)
    recent_insights: list[Any] = field(default_factory=list)
    current_focus: Optional[str] = None
    last_updated: str = ""

    def preferences_in(self, category: str) -> dict[str, Any]:
        return {
            k: v for k, v in self.preferences.items()
            if self.preference_categories.get(k) == category
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "preferences": self.preferences,
            "preference_categories": self.preference_categories,
            "recent_insights": [
                i.to_dict() if hasattr(i, "to_dict") else i
                for i in self.recent_insights
            ],
            "current_focus": self.current_focus,
            "last_updated": self.last_updated,
        }


@dataclass(frozen=True)
class Recommendation:
    title: str
    description: str
    priority: str = "medium"
    category: str = "general"
    action_items: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "category": self.category,
            "action_items": list(self.action_items),
        }


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RouteSuggestion:
    target_agent: str
    confidence: float
    reasoning: str
    authoritative: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_agent": self.target_agent,
            "confidence": round(self.confidence, 3),
            "reasoning": self.reasoning,
            "authoritative": self.authoritative,
        }
