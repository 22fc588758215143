"""Conversational endpoints: routed chat and direct agent runs."""

from fastapi import APIRouter, Depends

from agents.orchestrator import Orchestrator
from adapters.rest.dependencies import get_orchestrator
from adapters.rest.schemas import AgentRunBody, AgentRunOut, ChatBody, ChatOut

router = APIRouter(tags=["chat"])


@router.post("/chat", response_model=ChatOut)
async def chat(
    body: ChatBody,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.route_and_run(
        body.message, body.session_id, body.user_id, body.agent_name,
    )
    return ChatOut(**result.to_dict())


@router.post("/agents/{name}/run", response_model=AgentRunOut)
async def run_agent(
    name: str,
    body: AgentRunBody,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    response = await orchestrator.run_agent(name, body.message, body.user_id, body.session_id)
    return AgentRunOut(agent_name=name, response=response)
