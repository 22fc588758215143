"""
agents.tools.memory - Tools that read and write the user's memory profile.

Thin adapters over MemoryStoreService; the session user is always the
subject, so agents cannot write another user's memory.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from application.context import SessionContext
from application.services.memory_store import MemoryStoreService
from domain.models import RiskLevel, ToolCategory
from agents.tools.base import BaseTool, ToolParams


class StorePreferenceParams(ToolParams):
    key: str = Field(..., min_length=1, description="Preference name, e.g. budgeting_style.")
    value: Any = Field(..., description="Preference value.")
    category: Optional[str] = Field(default=None, description="Optional category; inferred from the key if omitted.")
    confidence: float = Field(default=1.0, ge=0, le=1)


class StoreUserPreferenceTool(BaseTool):
    name = "store_user_preference"
    description = "Remember a user preference. Writing the same key again replaces the old value."
    category = ToolCategory.MEMORY
    risk_level = RiskLevel.MEDIUM
    estimated_duration_ms = 100

    def __init__(self, memory: MemoryStoreService):
        self._memory = memory

    async def execute(self, ctx: SessionContext, params: StorePreferenceParams) -> dict[str, Any]:
        entry = await self._memory.store_preference(
            ctx.user_id, params.key, params.value, params.category, params.confidence,
        )
        return {"stored": True, "key": entry.key, "category": entry.category}

    def get_schema(self) -> type[BaseModel]:
        return StorePreferenceParams


class StoreInsightParams(ToolParams):
    text: str = Field(..., min_length=1, description="What was learned about the user.")
    category: str = Field(default="general", description="e.g. budgeting, spending, goals, challenge, success.")
    confidence: float = Field(default=0.7, ge=0, le=1)


class StoreInsightTool(BaseTool):
    name = "store_insight"
    description = "Record an observation about the user's finances or habits for future sessions."
    category = ToolCategory.MEMORY
    risk_level = RiskLevel.MEDIUM
    estimated_duration_ms = 100

    def __init__(self, memory: MemoryStoreService):
        self._memory = memory

    async def execute(self, ctx: SessionContext, params: StoreInsightParams) -> dict[str, Any]:
        entry = await self._memory.store_insight(
            ctx.user_id, ctx.agent_name, params.text, params.category, params.confidence,
        )
        return {"stored": True, "category": entry.category}

    def get_schema(self) -> type[BaseModel]:
        return StoreInsightParams


class ProfileParams(ToolParams):
    include_history: bool = False


class GetUserMemoryProfileTool(BaseTool):
    name = "get_user_memory_profile"
    description = "Load the user's stored preferences, recent insights and current focus."
    category = ToolCategory.MEMORY
    estimated_duration_ms = 150

    def __init__(self, memory: MemoryStoreService):
        self._memory = memory

    async def execute(self, ctx: SessionContext, params: ProfileParams) -> dict[str, Any]:
        profile = await self._memory.get_profile(ctx.user_id, params.include_history)
        if profile is None:
            return {"new_user": True, "profile": None}
        return {"new_user": False, "profile": profile.to_dict()}

    def get_schema(self) -> type[BaseModel]:
        return ProfileParams


class ContextualRecommendationParams(ToolParams):
    focus: Optional[Literal["budgeting", "goals", "spending", "general"]] = None
    limit: int = Field(default=3, ge=1, le=10)


class GetContextualRecommendationsTool(BaseTool):
    name = "get_contextual_recommendations"
    description = "Suggest next steps tailored to the user's remembered preferences and focus."
    category = ToolCategory.MEMORY
    estimated_duration_ms = 150

    def __init__(self, memory: MemoryStoreService):
        self._memory = memory

    async def execute(
        self, ctx: SessionContext, params: ContextualRecommendationParams,
    ) -> dict[str, Any]:
        recs = await self._memory.get_contextual_recommendations(
            ctx.user_id, params.focus, params.limit,
        )
        return {"recommendations": [r.to_dict() for r in recs]}

    def get_schema(self) -> type[BaseModel]:
        return ContextualRecommendationParams
