"""
agents.tools.envelope - Read-only envelope tools.

Moving money between envelopes is owned by the ledger service; these
tools only report balances and propose allocations.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from application.context import SessionContext
from domain.exceptions import ValidationError
from domain.models import ToolCategory
from agents.tools.base import BaseTool, ToolParams
from agents.tools.ledger import money

_PRIORITY_WEIGHT = {"high": 3, "medium": 2, "low": 1}


class EnvelopeBalanceParams(ToolParams):
    envelope: Optional[str] = Field(default=None, description="Envelope name or category; omit for all.")


class EnvelopeBalanceTool(BaseTool):
    name = "envelope_balance"
    description = "Report the current balance and budget of one or all envelopes."
    category = ToolCategory.ENVELOPE
    estimated_duration_ms = 100

    async def execute(self, ctx: SessionContext, params: EnvelopeBalanceParams) -> dict[str, Any]:
        envelopes = ctx.snapshot.envelopes
        if params.envelope:
            wanted = params.envelope.lower()
            envelopes = tuple(
                e for e in envelopes
                if e.name.lower() == wanted or e.category.lower() == wanted
            )
            if not envelopes:
                raise ValidationError(f"No envelope named '{params.envelope}'")
        return {
            "envelopes": [
                {
                    "id": e.id,
                    "name": e.name,
                    "category": e.category,
                    "balance": money(e.balance),
                    "budgeted": money(e.budgeted),
                    "remaining_pct": round(e.balance / e.budgeted * 100, 1) if e.budgeted else None,
                }
                for e in envelopes
            ],
            "total_balance": money(sum(e.balance for e in envelopes)),
        }

    def get_schema(self) -> type[BaseModel]:
        return EnvelopeBalanceParams


class SuggestAllocationParams(ToolParams):
    amount: float = Field(..., gt=0, description="Money to distribute.")
    strategy: Literal["proportional", "priority", "equal"] = Field(
        default="proportional",
        description="proportional to budgets, weighted by envelope priority, or equal split.",
    )


class SuggestAllocationTool(BaseTool):
    """Propose how to split incoming money across envelopes."""

    name = "suggest_allocation"
    description = (
        "Suggest how to distribute an amount (e.g. a paycheck) across the user's "
        "envelopes using a proportional, priority or equal strategy."
    )
    category = ToolCategory.ENVELOPE
    estimated_duration_ms = 100

    async def execute(self, ctx: SessionContext, params: SuggestAllocationParams) -> dict[str, Any]:
        envelopes = ctx.snapshot.envelopes
        if not envelopes:
            return {"allocations": [], "unallocated": money(params.amount),
                    "note": "Create envelopes before allocating funds."}

        if params.strategy == "equal":
            weights = [1.0] * len(envelopes)
        elif params.strategy == "priority":
            weights = [float(_PRIORITY_WEIGHT.get(e.priority, 2)) for e in envelopes]
        else:
            weights = [max(e.budgeted, 0.0) for e in envelopes]
            if not any(weights):
                weights = [1.0] * len(envelopes)

        total_weight = sum(weights)
        allocations = []
        allocated = 0.0
        for envelope, weight in zip(envelopes, weights):
            share = money(params.amount * weight / total_weight)
            allocated += share
            allocations.append({"envelope": envelope.name, "amount": share})
        # Put the rounding remainder on the largest share.
        remainder = money(params.amount - allocated)
        if remainder and allocations:
            largest = max(allocations, key=lambda a: a["amount"])
            largest["amount"] = money(largest["amount"] + remainder)

        return {"strategy": params.strategy, "allocations": allocations, "unallocated": 0.0}

    def get_schema(self) -> type[BaseModel]:
        return SuggestAllocationParams
