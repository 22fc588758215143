"""
agents.metrics - Rolling call counters shared by tools and agents.

Counters are updated incrementally (average = total / calls) and guarded
by a threading.Lock so updates stay atomic even from worker threads.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from domain.models import CallStats


@dataclass
class _Counter:
    calls: int = 0
    errors: int = 0
    timeouts: int = 0
    total_duration_ms: float = 0.0
    last_called_at: str = ""

    def freeze(self) -> CallStats:
        return CallStats(
            calls=self.calls,
            errors=self.errors,
            timeouts=self.timeouts,
            total_duration_ms=self.total_duration_ms,
            average_duration_ms=self.total_duration_ms / self.calls if self.calls else 0.0,
            last_called_at=self.last_called_at,
        )


class MetricsRegistry:
    """Per-name counters plus a global aggregate."""

    def __init__(self):
        self._lock = threading.Lock()
        self._by_name: dict[str, _Counter] = {}
        self._totals = _Counter()

    def record(
        self,
        name: Optional[str],
        duration_ms: float,
        success: bool,
        timed_out: bool = False,
    ) -> None:
        """Count one call. `name=None` updates only the global aggregate."""
        duration_ms = max(0.0, duration_ms)
        now = datetime.now().isoformat()
        with self._lock:
            counters = [self._totals]
            if name is not None:
                counters.append(self._by_name.setdefault(name, _Counter()))
            for counter in counters:
                counter.calls += 1
                counter.total_duration_ms += duration_ms
                counter.last_called_at = now
                if not success:
                    counter.errors += 1
                if timed_out:
                    counter.timeouts += 1

    def get(self, name: str) -> CallStats:
        with self._lock:
            counter = self._by_name.get(name)
            return counter.freeze() if counter else CallStats()

    def all(self) -> dict[str, CallStats]:
        with self._lock:
            return {name: c.freeze() for name, c in self._by_name.items()}

    def totals(self) -> CallStats:
        with self._lock:
            return self._totals.freeze()

    def reset(self) -> None:
        with self._lock:
            self._by_name.clear()
            self._totals = _Counter()
