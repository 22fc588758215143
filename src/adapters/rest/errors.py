"""Mapping of domain error codes to HTTP responses."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from domain.exceptions import DomainError
from domain.models import ErrorCode

logger = logging.getLogger(__name__)

_STATUS = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.AGENT_NOT_FOUND: 404,
    ErrorCode.TOOL_NOT_FOUND: 404,
    ErrorCode.INVALID_AGENTS: 409,
    ErrorCode.HANDOFF_DEPTH_EXCEEDED: 409,
    ErrorCode.EXECUTION_TIMEOUT: 504,
    ErrorCode.AGENT_ERROR: 502,
    ErrorCode.EXECUTION_ERROR: 502,
}


def status_for(code: Optional[ErrorCode]) -> int:
    return _STATUS.get(code, 500)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status = status_for(exc.code)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status,
        content={"ok": False, "error": {"code": exc.code.value, "message": exc.message}},
    )
