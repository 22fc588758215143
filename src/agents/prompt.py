"""
agents.prompt - System prompt assembly for a single agent turn.

The prompt is rebuilt per turn from the agent definition, its tools, the
financial snapshot, the user's memory profile and, after a handoff, the
annotation explaining why the conversation was transferred.
"""

from __future__ import annotations

from typing import Iterable, Optional

from application.context import SessionContext
from domain.models import AgentDefinition, MemoryProfile
from agents.tools.base import BaseTool

_BASE_RULES = """RULES:
1. Use tools for numbers. Never invent balances, amounts or dates.
2. Keep answers short and concrete; end with one clear next step.
3. You give coaching, not regulated financial advice. Suggest a professional for
   tax, legal or investment decisions.
4. If another specialist fits the question better, call 'request_handoff' with
   the target agent and a one-sentence reason, then tell the user who will help."""


def build_system_prompt(
    agent: AgentDefinition,
    tools: Iterable[BaseTool],
    ctx: SessionContext,
) -> str:
    """Build the system prompt for `agent` in the given session."""
    sections = [
        f"You are the {agent.display_name or agent.name}.",
        agent.instructions,
        _tools_section(list(tools)),
    ]
    if agent.handoff_targets:
        sections.append(
            "You may hand off to: " + ", ".join(agent.handoff_targets) + "."
        )
    sections.append(_BASE_RULES)
    if ctx.user is not None and ctx.user.name:
        sections.append(
            f"USER: {ctx.user.name} (risk tolerance: {ctx.user.risk_tolerance})"
        )
    sections.append("USER FINANCIAL SNAPSHOT:\n" + ctx.snapshot.summary())

    personal = build_personalization(ctx.memory_profile)
    if personal:
        sections.append(personal)
    if ctx.handoff is not None:
        sections.append("HANDOFF:\n" + ctx.handoff.describe())
    return "\n\n".join(s for s in sections if s)


def _tools_section(tools: list[BaseTool]) -> str:
    if not tools:
        return ""
    lines = ["AVAILABLE TOOLS:"]
    lines.extend(f"- {t.name}: {t.description}" for t in tools)
    return "\n".join(lines)


def build_personalization(profile: Optional[MemoryProfile]) -> str:
    """USER CONTEXT block from remembered preferences; empty for new users."""
    if profile is None:
        return ""
    lines = ["USER CONTEXT (remembered from earlier sessions):"]
    style = profile.preferences.get("communication_style")
    if style:
        lines.append(f"- Preferred communication style: {style}")
    budgeting = profile.preferences.get("budgeting_style")
    if budgeting:
        lines.append(f"- Budgeting style: {budgeting}")
    goals = profile.preferences.get("financial_goals")
    if goals:
        goals = goals if isinstance(goals, list) else [goals]
        lines.append(f"- Goals: {', '.join(str(g) for g in goals)}")
    risk = profile.preferences.get("risk_tolerance")
    if risk:
        lines.append(f"- Risk tolerance: {risk}")
    if profile.current_focus:
        lines.append(f"- Current focus: {profile.current_focus}")
    for insight in profile.recent_insights[:3]:
        lines.append(f"- Noted ({insight.category}): {insight.text}")
    return "\n".join(lines) if len(lines) > 1 else ""
