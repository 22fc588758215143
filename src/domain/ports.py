"""
domain.ports - Abstract interfaces (Protocols) for all system boundaries.

These define WHAT the runtime needs without specifying HOW. Infrastructure
modules provide concrete implementations. Application services depend only
on these protocols, never on concrete classes.

With typing.Protocol (structural typing), any class that
implements the methods satisfies the port without explicit inheritance.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from domain.models import AgentDefinition, FinancialSnapshot
from domain.entities import (
    User,
    ConversationEntry,
    PreferenceEntry,
    InsightEntry,
)


# ---------------------------------------------------------------------------
# Agent execution boundary
# ---------------------------------------------------------------------------

@runtime_checkable
class AgentInvokerPort(Protocol):
    """Produce a text response for one agent turn.

    `ctx` is the request's SessionContext. Implementations must honour
    cancellation: the caller cancels the awaiting task on timeout.
    """

    async def invoke(
        self,
        agent: AgentDefinition,
        message: str,
        ctx: Any,
        timeout: float,
    ) -> str: ...


# ---------------------------------------------------------------------------
# Repository Ports
# ---------------------------------------------------------------------------

@runtime_checkable
class ConversationRepository(Protocol):

    async def append(self, entries: list[ConversationEntry]) -> list[int]: ...

    async def query(
        self,
        session_id: str,
        limit: int,
        offset: int = 0,
        user_id: Optional[str] = None,
    ) -> tuple[list[ConversationEntry], int]: ...

    async def recent(
        self, user_id: str, session_id: str, limit: int,
    ) -> list[ConversationEntry]: ...


@runtime_checkable
class FinancialRepository(Protocol):

    async def get_snapshot(self, user_id: str) -> FinancialSnapshot: ...


@runtime_checkable
class UserRepository(Protocol):

    async def get_by_id(self, user_id: str) -> Optional[User]: ...

    async def save(self, user: User) -> None: ...


@runtime_checkable
class MemoryRepository(Protocol):

    async def upsert_preference(self, entry: PreferenceEntry) -> None: ...

    async def get_preferences(self, user_id: str) -> list[PreferenceEntry]: ...

    async def append_insight(self, entry: InsightEntry, retain: int) -> int: ...

    async def recent_insights(
        self, user_id: str, limit: int,
    ) -> list[InsightEntry]: ...
