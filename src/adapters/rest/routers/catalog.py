"""Catalog discovery and advisory routing."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from agents.orchestrator import Orchestrator
from adapters.rest.dependencies import get_orchestrator

router = APIRouter(tags=["catalog"])


@router.get("/agents")
async def list_agents(
    role: Optional[str] = None,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    agents = orchestrator.list_agents(role)
    return {"ok": True, "count": len(agents), "agents": [a.to_dict() for a in agents]}


@router.get("/tools")
async def list_tools(
    category: Optional[str] = None,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    tools = orchestrator.list_tools(category)
    return {"ok": True, "count": len(tools), "tools": [t.to_dict() for t in tools]}


@router.get("/route/suggest")
async def suggest_route(
    message: str = Query(..., min_length=1),
    user_id: Optional[str] = None,
    current_agent: Optional[str] = None,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    suggestion = await orchestrator.suggest_route(message, user_id, current_agent)
    return {"ok": True, "suggestion": suggestion.to_dict()}
