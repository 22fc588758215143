"""
application.services.context_cache - Per-(user, session, agent) context cache.

Builds the financial snapshot plus recent conversation turns an agent
needs, and keeps it in memory bounded by capacity and time-to-live.

    - Recency is tracked with an OrderedDict moved to the end on every
      hit, so eviction under capacity pressure is genuine LRU.
    - Concurrent misses on one key are collapsed into a single build
      (KeyedLock), so persistence is read at most once per key per TTL.
    - invalidate() during an in-flight build prevents that build's
      result from being cached.
    - A background sweep purges expired entries regardless of access.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from domain.entities import ConversationEntry, User
from domain.models import FinancialSnapshot
from domain.ports import ConversationRepository, FinancialRepository, UserRepository
from application.concurrency import KeyedLock, bounded

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str, str]


@dataclass(frozen=True)
class AgentContext:
    """What one agent needs to answer inside one session."""
    user_id: str
    session_id: str
    agent_name: str
    snapshot: FinancialSnapshot
    history: tuple[ConversationEntry, ...] = ()
    user: Optional[User] = None
    built_at: str = field(default_factory=lambda: datetime.now().isoformat())


@dataclass
class _Entry:
    context: AgentContext
    built_at: float
    last_access: float


@dataclass(frozen=True)
class CacheStats:
    size: int
    max_entries: int
    hits: int
    misses: int
    evictions: int
    expirations: int

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def to_dict(self) -> dict:
        return {
            "size": self.size,
            "max_entries": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "hit_rate": round(self.hit_rate, 3),
        }


class ContextCache:
    """LRU + TTL cache of AgentContext values keyed by (user, session, agent)."""

    def __init__(
        self,
        financial_repo: FinancialRepository,
        conversation_repo: ConversationRepository,
        *,
        max_entries: int = 1000,
        ttl_s: float = 3600.0,
        history_limit: int = 20,
        sweep_interval_s: float = 300.0,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        user_repo: Optional[UserRepository] = None,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._financial_repo = financial_repo
        self._conversation_repo = conversation_repo
        self._user_repo = user_repo
        self._max_entries = max_entries
        self._ttl = ttl_s
        self._history_limit = history_limit
        self._sweep_interval = sweep_interval_s
        self._timeout = timeout
        self._clock = clock

        self._entries: OrderedDict[CacheKey, _Entry] = OrderedDict()
        self._locks = KeyedLock()
        self._inflight: set[CacheKey] = set()
        self._stale: set[CacheKey] = set()
        self._sweeper: Optional[asyncio.Task] = None

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def get_or_build(
        self, user_id: str, session_id: str, agent_name: str,
    ) -> AgentContext:
        key = (user_id, session_id, agent_name)
        cached = self._lookup(key)
        if cached is not None:
            return cached

        async with self._locks.hold(key):
            # Another request may have built it while we waited.
            cached = self._lookup(key)
            if cached is not None:
                return cached

            self._misses += 1
            self._inflight.add(key)
            try:
                context = await self._build(user_id, session_id, agent_name)
            except BaseException:
                self._stale.discard(key)
                raise
            finally:
                self._inflight.discard(key)

            if key in self._stale:
                self._stale.discard(key)
                logger.debug("Context for %s invalidated during build, not cached", key)
            else:
                self._store(key, context)
            return context

    def _lookup(self, key: CacheKey) -> Optional[AgentContext]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        now = self._clock()
        if now - entry.built_at >= self._ttl:
            del self._entries[key]
            self._expirations += 1
            return None
        entry.last_access = now
        self._entries.move_to_end(key)
        self._hits += 1
        return entry.context

    async def _build(
        self, user_id: str, session_id: str, agent_name: str,
    ) -> AgentContext:
        snapshot = await bounded(
            self._financial_repo.get_snapshot(user_id),
            self._timeout,
            "getFinancialSnapshot",
        )
        history = await bounded(
            self._conversation_repo.recent(user_id, session_id, self._history_limit),
            self._timeout,
            "queryConversation",
        )
        user = None
        if self._user_repo is not None:
            user = await bounded(
                self._user_repo.get_by_id(user_id), self._timeout, "getUserProfile",
            )
        logger.debug(
            "Built context user=%s session=%s agent=%s (%d turns)",
            user_id, session_id, agent_name, len(history),
        )
        return AgentContext(
            user_id=user_id,
            session_id=session_id,
            agent_name=agent_name,
            snapshot=snapshot,
            history=tuple(history),
            user=user,
        )

    def _store(self, key: CacheKey, context: AgentContext) -> None:
        now = self._clock()
        self._entries[key] = _Entry(context=context, built_at=now, last_access=now)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug("Evicted least recently used context %s", evicted)

    # ------------------------------------------------------------------
    # Invalidation & expiry
    # ------------------------------------------------------------------

    def invalidate(self, user_id: str, session_id: str) -> int:
        """Drop every agent's entry for the session. Returns the count removed."""
        doomed = [k for k in self._entries if k[0] == user_id and k[1] == session_id]
        for key in doomed:
            del self._entries[key]
        for key in self._inflight:
            if key[0] == user_id and key[1] == session_id:
                self._stale.add(key)
        if doomed:
            logger.debug(
                "Invalidated %d context(s) for user=%s session=%s",
                len(doomed), user_id, session_id,
            )
        return len(doomed)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now - e.built_at >= self._ttl]
        for key in expired:
            del self._entries[key]
        self._expirations += len(expired)
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(
                self._sweep_loop(), name="context-cache-sweep",
            )

    async def stop(self) -> None:
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
            purged = self.purge_expired()
            if purged:
                logger.info("Context sweep purged %d expired entr(ies)", purged)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def keys(self) -> list[CacheKey]:
        """Keys from least to most recently used."""
        return list(self._entries.keys())

    def stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._entries),
            max_entries=self._max_entries,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            expirations=self._expirations,
        )
