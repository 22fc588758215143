"""
domain.entities - Persistence-aware types (have IDs, timestamps).

Decoupled from any persistence strategy: no SQL concerns, no DB imports.
Timestamps are set by the repository implementations when left empty.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class User:
    """Core user entity."""
    id: str = ""
    name: str = ""
    email: str = ""
    risk_tolerance: str = "moderate"
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ConversationEntry:
    """One turn of a session transcript. Never mutated after write."""
    session_id: str
    role: str
    content: str
    user_id: str = ""
    agent_name: str = ""
    id: Optional[int] = None
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "user_id": self.user_id,
            "role": self.role,
            "content": self.content,
            "agent_name": self.agent_name,
            "timestamp": self.timestamp,
        }


@dataclass
class PreferenceEntry:
    """A user preference; the key is unique per user (last write wins)."""
    user_id: str
    key: str
    value: Any
    category: str = "general"
    confidence: float = 1.0
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class InsightEntry:
    """An append-only observation recorded by an agent."""
    user_id: str
    agent_name: str
    text: str
    category: str = "general"
    confidence: float = 0.5
    metadata: dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "agent_name": self.agent_name,
            "text": self.text,
            "category": self.category,
            "confidence": self.confidence,
            "metadata": self.metadata,
            "created_at": self.created_at,
        }
