"""Pydantic models for REST API request/response validation."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


# --- Errors ---

class ErrorOut(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    ok: bool = False
    error: ErrorOut


# --- Chat ---

class ChatBody(BaseModel):
    message: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    agent_name: Optional[str] = None


class ChatOut(BaseModel):
    ok: bool = True
    response: str
    agent_name: str
    session_id: str
    routed_by: str
    degraded: bool = False
    handoffs: list[dict[str, Any]] = []
    error_code: Optional[str] = None


class AgentRunBody(BaseModel):
    message: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)


class AgentRunOut(BaseModel):
    ok: bool = True
    agent_name: str
    response: str


# --- Handoffs ---

class HandoffBody(BaseModel):
    from_agent: str
    to_agent: str
    message: str = Field(..., min_length=1)
    reason: str = ""
    priority: str = "medium"
    user_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    escalation_level: int = Field(0, ge=0)


# --- Tools ---

class ToolBody(BaseModel):
    params: dict[str, Any] = {}
    user_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)
    agent_name: Optional[str] = None
