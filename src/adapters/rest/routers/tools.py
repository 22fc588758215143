"""Direct tool execution.

The executor reports failures as values; they are returned with a 4xx/5xx
status so HTTP clients can branch on the code without parsing the body.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from agents.orchestrator import Orchestrator
from adapters.rest.dependencies import get_orchestrator
from adapters.rest.errors import status_for
from adapters.rest.schemas import ToolBody

router = APIRouter(tags=["tools"])


@router.post("/tools/{name}")
async def execute_tool(
    name: str,
    body: ToolBody,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.execute_tool(
        name, body.params, body.user_id, body.session_id, body.agent_name,
    )
    if result.success:
        return {"ok": True, "result": result.to_dict()}
    return JSONResponse(
        status_code=status_for(result.error_code),
        content={
            "ok": False,
            "error": {"code": result.error_code.value, "message": result.error},
            "result": result.to_dict(),
        },
    )
