"""
application.services.chat_history - Conversation persistence service.

Appends user/assistant turns and serves paginated session history.
After every saved interaction the session is invalidated in the context
cache so stale history is never served to the next turn.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from domain.entities import ConversationEntry
from domain.exceptions import ValidationError
from domain.ports import ConversationRepository
from application.concurrency import bounded
from application.dto import HistoryPage

if TYPE_CHECKING:
    from application.services.context_cache import ContextCache

logger = logging.getLogger(__name__)

_MAX_PAGE = 100
_ROLES = ("user", "assistant")


class ChatHistoryService:
    """Persists and retrieves conversation entries."""

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        context_cache: Optional[ContextCache] = None,
        timeout: float = 10.0,
    ):
        self._repo = conversation_repo
        self._cache = context_cache
        self._timeout = timeout

    async def append_conversation(self, entries: list[ConversationEntry]) -> list[int]:
        """Append entries in order. Roles are restricted to user/assistant."""
        for entry in entries:
            if entry.role not in _ROLES:
                raise ValidationError(f"Invalid conversation role '{entry.role}'")
            if not entry.session_id:
                raise ValidationError("Conversation entries need a session_id")
        ids = await bounded(self._repo.append(entries), self._timeout, "appendConversation")
        sessions = {(e.user_id, e.session_id) for e in entries}
        if self._cache is not None:
            for user_id, session_id in sessions:
                self._cache.invalidate(user_id, session_id)
        return ids

    async def save_interaction(
        self,
        user_id: str,
        session_id: str,
        agent_name: str,
        user_message: Optional[str],
        response: str,
    ) -> None:
        """Persist one turn. `user_message=None` stores only the reply."""
        entries = []
        if user_message is not None:
            entries.append(ConversationEntry(
                session_id=session_id, user_id=user_id, role="user",
                content=user_message, agent_name=agent_name,
            ))
        entries.append(ConversationEntry(
            session_id=session_id, user_id=user_id, role="assistant",
            content=response, agent_name=agent_name,
        ))
        await self.append_conversation(entries)

    async def get_history(
        self,
        session_id: str,
        limit: int = 20,
        offset: int = 0,
        user_id: Optional[str] = None,
    ) -> HistoryPage:
        """Return entries of a session in append order, paginated.

        `limit` is clamped to [1, 100] and `offset` to >= 0.
        """
        limit = max(1, min(limit, _MAX_PAGE))
        offset = max(0, offset)
        entries, total = await bounded(
            self._repo.query(session_id, limit, offset, user_id=user_id),
            self._timeout,
            "getHistory",
        )
        return HistoryPage(
            session_id=session_id,
            entries=entries,
            total=total,
            limit=limit,
            offset=offset,
        )
