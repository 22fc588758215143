"""
application.services.memory_store - Durable per-user preferences and insights.

Preferences are upserted by key (last write wins). Insights are appended
and pruned to a retention bound. A MemoryProfile aggregates both and
derives the user's current focus from recent insight categories.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Optional

from domain.entities import InsightEntry, PreferenceEntry
from domain.exceptions import ValidationError
from domain.models import MemoryProfile, Recommendation
from domain.ports import MemoryRepository
from application.concurrency import KeyedLock, bounded

logger = logging.getLogger(__name__)

_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

# First matching keyword decides the category of an uncategorised preference.
_PREFERENCE_CATEGORIES = [
    ("budgeting", ("budget", "envelope", "allocation", "spending_limit")),
    ("goals", ("goal", "target", "saving", "savings")),
    ("risk", ("risk", "invest")),
    ("communication", ("tone", "style", "language", "detail", "communication")),
    ("notifications", ("notify", "notification", "reminder", "alert")),
]


def categorize_preference(key: str) -> str:
    lowered = key.lower()
    for category, keywords in _PREFERENCE_CATEGORIES:
        if any(k in lowered for k in keywords):
            return category
    return "general"


def _check_confidence(confidence: float) -> float:
    if not 0.0 <= confidence <= 1.0:
        raise ValidationError(f"confidence must be between 0 and 1, got {confidence}")
    return float(confidence)


class MemoryStoreService:
    """Reads and writes the memory profile of a user."""

    def __init__(
        self,
        memory_repo: MemoryRepository,
        max_insights: int = 100,
        profile_insights: int = 20,
        timeout: float = 10.0,
    ):
        self._repo = memory_repo
        self._max_insights = max_insights
        self._profile_insights = profile_insights
        self._timeout = timeout
        self._locks = KeyedLock()

    async def store_preference(
        self,
        user_id: str,
        key: str,
        value: Any,
        category: Optional[str] = None,
        confidence: float = 1.0,
    ) -> PreferenceEntry:
        if not user_id:
            raise ValidationError("user_id is required")
        if not key or not key.strip():
            raise ValidationError("Preference key must not be empty")
        entry = PreferenceEntry(
            user_id=user_id,
            key=key.strip(),
            value=value,
            category=category or categorize_preference(key),
            confidence=_check_confidence(confidence),
        )
        async with self._locks.hold((user_id, entry.key)):
            await bounded(self._repo.upsert_preference(entry), self._timeout, "storePreference")
        logger.info("Stored preference %s=%r for user %s", entry.key, value, user_id)
        return entry

    async def store_insight(
        self,
        user_id: str,
        agent_name: str,
        text: str,
        category: str = "general",
        confidence: float = 0.5,
        metadata: Optional[dict[str, Any]] = None,
    ) -> InsightEntry:
        if not user_id:
            raise ValidationError("user_id is required")
        if not text or not text.strip():
            raise ValidationError("Insight text must not be empty")
        entry = InsightEntry(
            user_id=user_id,
            agent_name=agent_name,
            text=text.strip(),
            category=category or "general",
            confidence=_check_confidence(confidence),
            metadata=metadata or {},
        )
        async with self._locks.hold((user_id, "insights")):
            await bounded(
                self._repo.append_insight(entry, retain=self._max_insights),
                self._timeout,
                "storeInsight",
            )
        logger.debug("Stored %s insight from %s for user %s", entry.category, agent_name, user_id)
        return entry

    async def get_profile(
        self, user_id: str, include_history: bool = False,
    ) -> Optional[MemoryProfile]:
        """Return the user's profile, or None for a user with no memory yet."""
        limit = self._max_insights if include_history else self._profile_insights
        preferences = await bounded(
            self._repo.get_preferences(user_id), self._timeout, "getProfile",
        )
        insights = await bounded(
            self._repo.recent_insights(user_id, limit), self._timeout, "getProfile",
        )
        if not preferences and not insights:
            return None

        timestamps = [p.updated_at for p in preferences] + [i.created_at for i in insights]
        return MemoryProfile(
            user_id=user_id,
            preferences={p.key: p.value for p in preferences},
            preference_categories={p.key: p.category for p in preferences},
            recent_insights=insights,
            current_focus=infer_focus(insights[: self._profile_insights]),
            last_updated=max(timestamps) if timestamps else "",
        )

    async def get_contextual_recommendations(
        self,
        user_id: str,
        focus: Optional[str] = None,
        limit: int = 5,
    ) -> list[Recommendation]:
        """Advisory recommendations derived from the profile. Never writes."""
        profile = await self.get_profile(user_id)
        if profile is None:
            return [Recommendation(
                title="Tell Me About Your Goals",
                description="Share what you are saving for and how you like to budget "
                            "so advice can be tailored to you.",
                priority="medium",
                category="onboarding",
                action_items=("Set a savings goal", "Choose a budgeting style"),
            )][: max(0, limit)]
        return build_recommendations(profile, focus or profile.current_focus, limit)


# ---------------------------------------------------------------------------
# Profile analysis
# ---------------------------------------------------------------------------

def infer_focus(insights: list[InsightEntry]) -> Optional[str]:
    """Most frequent category among recent insights; ties go to the newest.

    `insights` is ordered newest first.
    """
    if not insights:
        return None
    counts = Counter(i.category for i in insights)
    best = max(counts.values())
    for insight in insights:
        if counts[insight.category] == best:
            return insight.category
    return None


def build_recommendations(
    profile: MemoryProfile, focus: Optional[str], limit: int,
) -> list[Recommendation]:
    recommendations: list[Recommendation] = []
    prefs = profile.preferences
    categories = {i.category for i in profile.recent_insights}

    if focus == "budgeting":
        if prefs.get("budgeting_style") == "flexible" and "challenge" in categories:
            recommendations.append(Recommendation(
                title="Consider a More Structured Approach",
                description="Your flexible budgeting style has run into some challenges. "
                            "Fixed envelope limits could give you more control.",
                priority="high",
                category="budgeting",
                action_items=("Set firm limits on your top 3 envelopes",
                              "Review envelopes weekly"),
            ))
        else:
            recommendations.append(Recommendation(
                title="Review Your Envelope Allocations",
                description="Check that each envelope still matches how you actually spend.",
                priority="medium",
                category="budgeting",
                action_items=("Compare budgeted vs spent per envelope",),
            ))

    if focus == "goals" or "financial_goals" in prefs:
        goals = prefs.get("financial_goals") or []
        if isinstance(goals, str):
            goals = [goals]
        if goals:
            recommendations.append(Recommendation(
                title=f"Focus on {goals[0]}",
                description="Put extra money toward your first major goal before spreading "
                            "it across several.",
                priority="high",
                category="goals",
                action_items=("Automate a monthly transfer toward this goal",),
            ))

    if focus == "spending":
        recommendations.append(Recommendation(
            title="Review Spending Patterns",
            description="Look at where your money went recently and flag anything unexpected.",
            priority="medium",
            category="spending",
            action_items=("Categorise uncategorised transactions",
                          "Check for recurring charges"),
        ))

    successes = [i for i in profile.recent_insights if i.category == "success"]
    if successes:
        recommendations.append(Recommendation(
            title="Build on Your Successes",
            description=f"What worked before: {successes[0].text}",
            priority="medium",
            category="motivation",
        ))

    if not recommendations:
        recommendations.append(Recommendation(
            title="Keep Tracking Your Progress",
            description="Regular check-ins make it easier to spot trends early.",
            priority="low",
            category="general",
        ))

    recommendations.sort(key=lambda r: _PRIORITY_ORDER.get(r.priority, 3))
    return recommendations[: max(0, limit)]
