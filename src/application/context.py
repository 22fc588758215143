"""
application.context - Request-scoped session context.

Every component receives its context explicitly. Two concurrent sessions
get two different SessionContext instances, and a handoff builds a new
derived instance instead of mutating the caller's.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Optional
from uuid import uuid4

from domain.entities import ConversationEntry, User
from domain.models import (
    FinancialSnapshot,
    HandoffAnnotation,
    HandoffPriority,
    MemoryProfile,
)


@dataclass(frozen=True)
class PendingHandoff:
    """A transfer requested by an agent during its turn."""
    to_agent: str
    reason: str
    priority: HandoffPriority = HandoffPriority.MEDIUM


@dataclass
class SessionContext:
    """Per-request/session context passed through all layers.

    Attributes:
        user_id:           Caller-supplied user ID (identity is verified upstream).
        session_id:        Unique per conversation session.
        agent_name:        Agent currently owning the conversation.
        snapshot:          Financial snapshot built by the context cache.
        history:           Recent conversation turns, oldest first.
        user:              Stored user profile, None when the user was never saved.
        memory_profile:    Durable preferences/insights, None for a new user.
        escalation_level:  Number of chained handoffs in this interaction.
        handoff:           Annotation set when this context was derived by a handoff.
        pending_handoff:   Set by the request_handoff tool during a turn.
        request_id:        Unique per request, for tracing/logging.
        scratch:           Request-scoped scratchpad for inter-tool data sharing.
    """
    user_id: str
    session_id: str
    agent_name: str = ""
    snapshot: FinancialSnapshot = field(default_factory=lambda: FinancialSnapshot(user_id=""))
    history: list[ConversationEntry] = field(default_factory=list)
    user: Optional[User] = None
    memory_profile: Optional[MemoryProfile] = None
    escalation_level: int = 0
    handoff: Optional[HandoffAnnotation] = None
    pending_handoff: Optional[PendingHandoff] = None
    request_id: str = field(default_factory=lambda: uuid4().hex)
    scratch: dict[str, Any] = field(default_factory=dict)

    def new_request(self) -> None:
        """Reset per-request state for a new request within the same session."""
        self.request_id = uuid4().hex
        self.pending_handoff = None
        self.escalation_level = 0
        self.handoff = None

    def take_pending_handoff(self) -> Optional[PendingHandoff]:
        pending, self.pending_handoff = self.pending_handoff, None
        return pending

    def derive_for_handoff(
        self,
        to_agent: str,
        annotation: HandoffAnnotation,
        carry_turns: int,
    ) -> SessionContext:
        """Return a fresh context for the receiving agent of a handoff."""
        carried = list(self.history[-carry_turns:]) if carry_turns > 0 else []
        return replace(
            self,
            agent_name=to_agent,
            history=carried,
            escalation_level=annotation.escalation_level,
            handoff=annotation,
            pending_handoff=None,
            scratch=dict(self.scratch),
        )
