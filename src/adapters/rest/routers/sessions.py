"""Session transcript endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends

from agents.orchestrator import Orchestrator
from adapters.rest.dependencies import get_orchestrator

router = APIRouter(tags=["sessions"])


@router.get("/sessions/{session_id}/history")
async def get_history(
    session_id: str,
    limit: int = 20,
    offset: int = 0,
    user_id: Optional[str] = None,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    page = await orchestrator.get_history(session_id, limit, offset, user_id)
    return {"ok": True, **page.to_dict()}
