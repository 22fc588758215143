"""
application.dto - Data Transfer Objects for service input/output.

These are the structured results that services return to callers
(orchestrator, REST endpoints, CLI adapters).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from domain.entities import ConversationEntry
from domain.models import HandoffRecord


@dataclass(frozen=True)
class HistoryPage:
    """One page of a session transcript."""
    session_id: str
    entries: list[ConversationEntry]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.entries) < self.total

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "entries": [e.to_dict() for e in self.entries],
            "pagination": {
                "total": self.total,
                "limit": self.limit,
                "offset": self.offset,
                "has_more": self.has_more,
            },
        }


@dataclass(frozen=True)
class RunResponse:
    """Result of routeAndRun: the reply and which agent produced it."""
    response: str
    agent_name: str
    session_id: str
    routed_by: str = "keywords"
    degraded: bool = False
    handoffs: list[HandoffRecord] = field(default_factory=list)
    error_code: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "response": self.response,
            "agent_name": self.agent_name,
            "session_id": self.session_id,
            "routed_by": self.routed_by,
            "degraded": self.degraded,
            "handoffs": [h.to_dict() for h in self.handoffs],
            "error_code": self.error_code,
        }
