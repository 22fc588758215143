"""
agents.tools.handoff - Let an agent ask for the conversation to be transferred.

The tool only records the request on the session context. The
orchestrator performs the transfer through the HandoffCoordinator once
the current agent's turn has finished.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from application.context import PendingHandoff, SessionContext
from domain.exceptions import ValidationError
from domain.models import HandoffPriority, ToolCategory
from agents.tools.base import BaseTool, ToolParams


class RequestHandoffParams(ToolParams):
    target_agent: str = Field(..., min_length=1, description="Name of the agent to transfer to.")
    reason: str = Field(..., min_length=1, description="Why the other agent is better suited.")
    priority: HandoffPriority = HandoffPriority.MEDIUM


class RequestHandoffTool(BaseTool):
    name = "request_handoff"
    description = (
        "Transfer the conversation to a more suitable specialist agent after this turn. "
        "Only agents listed as your handoff targets are accepted."
    )
    category = ToolCategory.HANDOFF
    estimated_duration_ms = 10

    async def execute(self, ctx: SessionContext, params: RequestHandoffParams) -> dict[str, Any]:
        if params.target_agent == ctx.agent_name:
            raise ValidationError("Cannot hand off to the current agent")
        ctx.pending_handoff = PendingHandoff(
            to_agent=params.target_agent,
            reason=params.reason,
            priority=params.priority,
        )
        return {
            "status": "handoff_requested",
            "target_agent": params.target_agent,
            "priority": params.priority.value,
        }

    def get_schema(self) -> type[BaseModel]:
        return RequestHandoffParams
