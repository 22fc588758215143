"""
agents.router - Choose which agent answers an inbound message.

route() is deterministic: an explicit, known agent wins; otherwise the
ROUTING_RULES are tried in order and the first rule with a matching
keyword wins; otherwise the default agent answers. Rule order is the
precedence for ambiguous messages ("budget" beats "spending", which
beats "trend").

suggest_route() is advisory only. It scores every rule, also looks at
urgency words and the user's remembered focus, and breaks ties by agent
priority and then rule order. Suggestions below the confidence
threshold are marked non-authoritative.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from domain.models import AgentDefinition, MemoryProfile, RouteSuggestion
from agents.catalog import AgentCatalog
from agents.definitions import BUDGET_COACH, INSIGHT_GENERATOR, TRANSACTION_ANALYST

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoutingRule:
    """Keywords match at the start of a word, case-insensitively."""
    name: str
    target_agent: str
    keywords: tuple[str, ...]
    focus: str = ""
    _pattern: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        alternatives = "|".join(re.escape(k) for k in self.keywords)
        object.__setattr__(
            self, "_pattern", re.compile(rf"\b(?:{alternatives})", re.IGNORECASE),
        )

    def matches(self, message: str) -> bool:
        return self._pattern.search(message) is not None

    def hits(self, message: str) -> set[str]:
        return {m.group(0).lower() for m in self._pattern.finditer(message)}


ROUTING_RULES: tuple[RoutingRule, ...] = (
    RoutingRule(
        name="budgeting",
        target_agent=BUDGET_COACH,
        focus="budgeting",
        keywords=("budget", "envelope", "allocat", "fund", "distribut", "balance",
                  "overspen", "paycheck"),
    ),
    RoutingRule(
        name="transactions",
        target_agent=TRANSACTION_ANALYST,
        focus="spending",
        keywords=("transaction", "spending", "spent", "expense", "purchase",
                  "categoriz", "categoris", "merchant", "charge"),
    ),
    RoutingRule(
        name="insights",
        target_agent=INSIGHT_GENERATOR,
        focus="insights",
        keywords=("insight", "trend", "pattern", "analysis", "progress", "goal",
                  "recommend", "report", "summary", "forecast", "predict", "opportunit"),
    ),
)

_URGENT = re.compile(
    r"\b(?:urgent|emergency|asap|overdra|can't pay|cannot pay|collections?|evict)",
    re.IGNORECASE,
)

_FOCUS_TO_RULE = {
    "budgeting": "budgeting",
    "spending": "transactions",
    "transactions": "transactions",
    "insights": "insights",
    "goals": "insights",
}


@dataclass(frozen=True)
class RouteDecision:
    agent: AgentDefinition
    routed_by: str
    rule: Optional[str] = None


class Router:
    """Keyword router over an AgentCatalog."""

    def __init__(
        self,
        catalog: AgentCatalog,
        default_agent: str,
        escalation_agent: Optional[str] = None,
        rules: tuple[RoutingRule, ...] = ROUTING_RULES,
        confidence_threshold: float = 0.8,
    ):
        self._catalog = catalog
        self._default = default_agent
        self._escalation = escalation_agent or default_agent
        self._rules = tuple(r for r in rules if r.target_agent in catalog)
        self._threshold = confidence_threshold
        dropped = [r.name for r in rules if r.target_agent not in catalog]
        if dropped:
            logger.warning("Routing rules without a catalog agent ignored: %s", dropped)

    @property
    def rules(self) -> tuple[RoutingRule, ...]:
        return self._rules

    def match_rule(self, message: str) -> Optional[RoutingRule]:
        for rule in self._rules:
            if rule.matches(message):
                return rule
        return None

    def resolve(self, message: str, explicit_agent: Optional[str] = None) -> RouteDecision:
        if explicit_agent:
            return RouteDecision(agent=self._catalog.get(explicit_agent), routed_by="explicit")

        rule = self.match_rule(message)
        if rule is not None:
            return RouteDecision(
                agent=self._catalog.get(rule.target_agent), routed_by="keywords", rule=rule.name,
            )
        return RouteDecision(agent=self._catalog.get(self._default), routed_by="default")

    def route(self, message: str, explicit_agent: Optional[str] = None) -> AgentDefinition:
        return self.resolve(message, explicit_agent).agent

    # ------------------------------------------------------------------
    # Advisory routing
    # ------------------------------------------------------------------

    def suggest_route(
        self,
        message: str,
        current_agent: Optional[str] = None,
        profile: Optional[MemoryProfile] = None,
    ) -> RouteSuggestion:
        if _URGENT.search(message):
            return self._suggest(
                self._escalation, 0.9,
                "Message signals urgency; the escalation handler should take it.",
            )

        focus_rule = _FOCUS_TO_RULE.get(profile.current_focus or "") if profile else None
        candidates = []
        for order, rule in enumerate(self._rules):
            hits = rule.hits(message)
            if not hits:
                continue
            confidence = min(0.95, 0.55 + 0.15 * len(hits))
            reason = f"Matched {rule.name} keywords: {', '.join(sorted(hits))}"
            if rule.name == focus_rule:
                confidence = min(0.95, confidence + 0.1)
                reason += f"; consistent with the user's focus on {profile.current_focus}"
            priority = self._catalog.get(rule.target_agent).priority
            candidates.append((-confidence, -priority, order, rule, reason))

        if candidates:
            candidates.sort(key=lambda c: c[:3])
            neg_conf, _, _, rule, reason = candidates[0]
            if len(candidates) > 1 and candidates[1][0] == neg_conf:
                reason += "; tie broken by agent priority"
            return self._suggest(rule.target_agent, -neg_conf, reason, current_agent)

        if focus_rule:
            rule = next((r for r in self._rules if r.name == focus_rule), None)
            if rule is not None:
                return self._suggest(
                    rule.target_agent, 0.6,
                    f"No keywords matched; the user has recently focused on {profile.current_focus}.",
                    current_agent,
                )

        return self._suggest(
            self._default, 0.5, "No routing keywords matched; using the default agent.",
            current_agent,
        )

    def _suggest(
        self,
        target: str,
        confidence: float,
        reasoning: str,
        current_agent: Optional[str] = None,
    ) -> RouteSuggestion:
        if current_agent and target == current_agent:
            reasoning += " The current agent is already the best fit."
        return RouteSuggestion(
            target_agent=target,
            confidence=confidence,
            reasoning=reasoning,
            authoritative=confidence >= self._threshold,
        )
