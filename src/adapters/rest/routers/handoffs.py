"""Handoff execution, history and statistics."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from agents.orchestrator import Orchestrator
from adapters.rest.dependencies import get_orchestrator
from adapters.rest.errors import status_for
from adapters.rest.schemas import HandoffBody

router = APIRouter(prefix="/handoffs", tags=["handoffs"])


@router.post("")
async def execute_handoff(
    body: HandoffBody,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    record = await orchestrator.execute_handoff(
        body.from_agent,
        body.to_agent,
        body.message,
        body.reason,
        body.user_id,
        body.session_id,
        priority=body.priority,
        escalation_level=body.escalation_level,
    )
    if record.succeeded:
        return {"ok": True, "handoff": record.to_dict()}
    return JSONResponse(
        status_code=status_for(record.error_code),
        content={
            "ok": False,
            "error": {"code": record.error_code.value, "message": record.error},
            "handoff": record.to_dict(),
        },
    )


@router.get("/{user_id}")
async def handoff_history(
    user_id: str,
    limit: int = 10,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    records = orchestrator.handoff_history(user_id, limit)
    return {
        "ok": True,
        "user_id": user_id,
        "handoffs": [r.to_dict() for r in records],
        "statistics": orchestrator.handoff_statistics(user_id),
    }
