"""Runtime metrics."""

from typing import Optional

from fastapi import APIRouter, Depends

from agents.orchestrator import Orchestrator
from adapters.rest.dependencies import get_orchestrator

router = APIRouter(tags=["metrics"])


@router.get("/metrics")
async def get_metrics(
    agent_name: Optional[str] = None,
    tool_name: Optional[str] = None,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    snapshot = orchestrator.get_metrics(agent_name, tool_name)
    return {"ok": True, "metrics": snapshot.to_dict()}
