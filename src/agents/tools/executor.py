"""
agents.tools.executor - Validated, time-bounded tool invocation.

execute() never raises for tool problems: unknown tools, schema failures,
tool exceptions and timeouts all come back as a failed
ToolExecutionResult. Every call is counted exactly once, per tool and in
the global aggregate. On timeout the tool coroutine is cancelled.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Any, Optional

import pydantic

from application.context import SessionContext
from domain.exceptions import DomainError
from domain.models import CallStats, ErrorCode, ToolExecutionResult
from agents.metrics import MetricsRegistry
from agents.tools.catalog import ToolCatalog

logger = logging.getLogger(__name__)

# A tool is reported unhealthy below this success rate once it has
# been called at least _HEALTH_MIN_CALLS times.
_HEALTH_MIN_SUCCESS_RATE = 80.0
_HEALTH_MIN_CALLS = 5


def _format_validation_error(exc: pydantic.ValidationError) -> str:
    problems = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ())) or "params"
        problems.append(f"{location}: {err.get('msg', 'invalid')}")
    return "Invalid parameters: " + "; ".join(problems)


class ToolExecutor:
    """Runs catalog tools and keeps their metrics and recent history."""

    def __init__(
        self,
        catalog: ToolCatalog,
        default_timeout_s: float = 30.0,
        history_size: int = 100,
        metrics: Optional[MetricsRegistry] = None,
    ):
        self._catalog = catalog
        self._default_timeout = default_timeout_s
        self._metrics = metrics or MetricsRegistry()
        self._history: deque[ToolExecutionResult] = deque(maxlen=history_size)

    @property
    def metrics(self) -> MetricsRegistry:
        return self._metrics

    async def execute(
        self,
        tool_name: str,
        params: Any,
        ctx: SessionContext,
    ) -> ToolExecutionResult:
        started = time.perf_counter()

        tool = self._catalog.find(tool_name)
        if tool is None:
            logger.warning("Tool not found: %s", tool_name)
            return self._finish(
                None,
                ToolExecutionResult.failure(
                    tool_name, ErrorCode.TOOL_NOT_FOUND, f"tool not found: {tool_name}",
                    _elapsed_ms(started),
                ),
            )

        rejection = self._precheck(tool, params, ctx)
        if rejection is not None:
            return self._finish(tool_name, ToolExecutionResult.failure(
                tool_name, ErrorCode.VALIDATION_ERROR, rejection, _elapsed_ms(started),
            ))

        try:
            validated = tool.get_schema().model_validate(params or {})
        except pydantic.ValidationError as exc:
            return self._finish(tool_name, ToolExecutionResult.failure(
                tool_name, ErrorCode.VALIDATION_ERROR, _format_validation_error(exc),
                _elapsed_ms(started),
            ))

        param_user = getattr(validated, "user_id", None)
        if param_user and param_user != ctx.user_id:
            return self._finish(tool_name, ToolExecutionResult.failure(
                tool_name, ErrorCode.VALIDATION_ERROR,
                "user_id does not match the session user", _elapsed_ms(started),
            ))

        timeout = tool.timeout_s or self._default_timeout
        try:
            output = await asyncio.wait_for(tool.execute(ctx, validated), timeout)
        except asyncio.TimeoutError:
            logger.warning("Tool '%s' timed out after %.1fs", tool_name, timeout)
            result = ToolExecutionResult.failure(
                tool_name, ErrorCode.EXECUTION_TIMEOUT,
                f"tool timed out after {timeout:g}s", _elapsed_ms(started),
            )
        except asyncio.CancelledError:
            self._finish(tool_name, ToolExecutionResult.failure(
                tool_name, ErrorCode.EXECUTION_TIMEOUT, "tool call cancelled",
                _elapsed_ms(started),
            ))
            raise
        except DomainError as exc:
            logger.warning("Tool '%s' rejected the call: %s", tool_name, exc)
            result = ToolExecutionResult.failure(
                tool_name, exc.code, exc.message, _elapsed_ms(started),
            )
        except Exception as exc:
            logger.exception("Tool '%s' failed", tool_name)
            result = ToolExecutionResult.failure(
                tool_name, ErrorCode.EXECUTION_ERROR, f"{type(exc).__name__}: {exc}",
                _elapsed_ms(started),
            )
        else:
            result = ToolExecutionResult.ok(tool_name, output, _elapsed_ms(started))
            if tool.store_as and output is not None:
                ctx.scratch[tool.store_as] = output

        return self._finish(tool_name, result)

    @staticmethod
    def _precheck(tool, params: Any, ctx: SessionContext) -> Optional[str]:
        if params is not None and not isinstance(params, dict):
            return "Invalid parameters: expected an object"
        if tool.requires_auth and not ctx.user_id:
            return f"Tool '{tool.name}' requires an authenticated user"
        return None

    def _finish(self, name: Optional[str], result: ToolExecutionResult) -> ToolExecutionResult:
        self._metrics.record(name, result.duration_ms, result.success, result.timed_out)
        self._history.append(result)
        if result.success:
            logger.debug("Tool %s ok in %.1fms", result.tool_name, result.duration_ms)
        return result

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def stats(self, tool_name: Optional[str] = None) -> CallStats:
        if tool_name is None:
            return self._metrics.totals()
        return self._metrics.get(tool_name)

    def history(
        self, tool_name: Optional[str] = None, limit: int = 20,
    ) -> list[ToolExecutionResult]:
        """Most recent results first."""
        items = [r for r in reversed(self._history)
                 if tool_name is None or r.tool_name == tool_name]
        return items[:limit]

    def health(self) -> dict[str, Any]:
        unhealthy = [
            name for name, stats in self._metrics.all().items()
            if stats.calls >= _HEALTH_MIN_CALLS
            and stats.success_rate < _HEALTH_MIN_SUCCESS_RATE
        ]
        totals = self._metrics.totals()
        return {
            "healthy": not unhealthy,
            "unhealthy_tools": sorted(unhealthy),
            "registered_tools": len(self._catalog.names()),
            "total_calls": totals.calls,
            "success_rate": round(totals.success_rate, 2),
        }


def _elapsed_ms(started: float) -> float:
    return max(0.0, (time.perf_counter() - started) * 1000)
