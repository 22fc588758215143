"""
infrastructure.llm.agent_invoker - LangChain implementation of AgentInvokerPort.

Runs one agent turn as a bounded tool-calling loop:

    system prompt + history + user message
        → llm.bind_tools(agent tools).ainvoke(...)
        → every tool call goes through the ToolExecutor
        → results are fed back as ToolMessages
        → repeat until the model answers in text or max_iterations is hit

The loop is a plain coroutine, so cancelling the task running it
(execution timeout, lifecycle sweep, shutdown drain) stops the model
call and any tool call in flight.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from application.context import SessionContext
from domain.models import AgentDefinition
from agents.prompt import build_system_prompt
from agents.tools.catalog import ToolCatalog
from agents.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)


class LangChainAgentInvoker:
    """Executes AgentDefinitions against a LangChain chat model."""

    def __init__(
        self,
        llm: BaseChatModel,
        tool_catalog: ToolCatalog,
        tool_executor: ToolExecutor,
        max_iterations: int = 5,
    ):
        self._llm = llm
        self._tools = tool_catalog
        self._executor = tool_executor
        self._max_iterations = max(1, max_iterations)

    async def invoke(
        self,
        agent: AgentDefinition,
        message: str,
        ctx: SessionContext,
        timeout: float,
    ) -> str:
        tools = [self._tools.get(name) for name in agent.tools]
        messages: list[BaseMessage] = [
            SystemMessage(content=build_system_prompt(agent, tools, ctx)),
            *_history_messages(ctx),
            HumanMessage(content=message),
        ]

        llm = self._llm
        if agent.tools:
            llm = self._llm.bind_tools(
                self._tools.to_langchain_tools(agent.tools, self._executor, ctx)
            )

        for iteration in range(1, self._max_iterations + 1):
            reply = await llm.ainvoke(messages)
            messages.append(reply)
            calls = list(getattr(reply, "tool_calls", None) or [])

            if not calls:
                raw_call = _parse_raw_tool_call(_text(reply), set(agent.tools))
                if raw_call is None:
                    logger.info(
                        "Agent %s finished after %d iteration(s) (budget %.0fs)",
                        agent.name, iteration, timeout,
                    )
                    return _text(reply)
                # Some Ollama models emit the call as text instead of using
                # the function-calling API.
                logger.warning(
                    "Raw tool-call fallback for '%s'; model lacks native tool calling",
                    raw_call["name"],
                )
                result = await self._executor.execute(raw_call["name"], raw_call["args"], ctx)
                messages.append(HumanMessage(
                    content=f"Result of {raw_call['name']}: {_dump(result.to_dict())}\n"
                            "Answer the user's question using this result."
                ))
                continue

            for call in calls:
                result = await self._executor.execute(call["name"], call.get("args") or {}, ctx)
                logger.info(
                    "Agent %s tool %s success=%s (%.1fms)",
                    agent.name, call["name"], result.success, result.duration_ms,
                )
                messages.append(ToolMessage(
                    content=_dump(result.to_dict()),
                    tool_call_id=call.get("id") or call["name"],
                ))

        logger.warning(
            "Agent %s hit max_iterations=%d; asking for a final answer",
            agent.name, self._max_iterations,
        )
        messages.append(HumanMessage(
            content="Stop calling tools and answer with what you have so far."
        ))
        final = await self._llm.ainvoke(messages)
        return _text(final)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _history_messages(ctx: SessionContext) -> list[BaseMessage]:
    converted: list[BaseMessage] = []
    for entry in ctx.history:
        if entry.role == "user":
            converted.append(HumanMessage(content=entry.content))
        else:
            converted.append(AIMessage(content=entry.content))
    return converted


def _text(message: Any) -> str:
    """Plain text of a model reply; content may be a list of parts."""
    content = getattr(message, "content", message)
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        content = "".join(parts)
    return str(content or "").strip()


def _dump(data: Any) -> str:
    return json.dumps(data, default=str)


def _parse_raw_tool_call(output: str, allowed: set[str]) -> Optional[dict[str, Any]]:
    """Detect a JSON tool call the model wrote as text.

    e.g. {"name": "budget_analysis", "parameters": {"timeframe": "monthly"}}
    Returns {"name", "args"} for a tool this agent may use, else None.
    """
    raw = re.sub(r"^```(?:json)?\s*", "", output.strip())
    raw = re.sub(r"\s*```$", "", raw).strip()
    brace = raw.find("{")
    if brace == -1:
        return None
    try:
        parsed = json.loads(raw[brace:])
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict) or parsed.get("name") not in allowed:
        return None

    # "parameters" (Ollama style) or "arguments" (OpenAI style)
    args = parsed.get("parameters") or parsed.get("arguments") or {}
    if isinstance(args, str):
        try:
            args = json.loads(args)
        except json.JSONDecodeError:
            args = {}
    return {"name": parsed["name"], "args": args if isinstance(args, dict) else {}}
