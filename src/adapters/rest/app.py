"""
adapters.rest.app - FastAPI application for the financial coaching runtime.

Usage:
    python run_api.py

Or directly:
    uvicorn adapters.rest.app:app --host 0.0.0.0 --port 8000 --reload

Every response carries "ok". Failures are {"ok": false, "error": {code, message}}.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Ensure src/ is on sys.path when invoked via uvicorn directly
_src_dir = Path(__file__).resolve().parent.parent.parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

from domain.exceptions import DomainError
from domain.models import ErrorCode
from infrastructure.config import Settings
from factory import ServiceFactory
from adapters.rest.dependencies import get_factory, set_factory
from adapters.rest.errors import domain_error_handler
from adapters.rest.routers import catalog, chat, handoffs, metrics, sessions, tools
from adapters.rest.schemas import ErrorResponse

VERSION = "0.3.0"

logger = logging.getLogger(__name__)

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{where}: {first.get('msg', 'invalid request')}" if where else "invalid request"
    return JSONResponse(
        status_code=400,
        content={"ok": False, "error": {"code": ErrorCode.VALIDATION_ERROR.value, "message": message}},
    )


def create_app(factory: Optional[ServiceFactory] = None) -> FastAPI:
    """Build the API. Tests pass a pre-built (uninitialized) factory."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize ServiceFactory on startup; drain on shutdown."""
        nonlocal factory
        if factory is None:
            config = Settings.from_env(project_root=_src_dir.parent)
            logging.basicConfig(
                level=config.log_level.upper(),
                format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            )
            factory = ServiceFactory(config)
        await factory.initialize()
        set_factory(factory)
        yield
        await factory.shutdown()
        set_factory(None)

    app = FastAPI(
        title="Financial Coaching Agents",
        version=VERSION,
        description="Multi-agent financial coaching: routing, tools, handoffs and memory.",
        lifespan=lifespan,
    )

    # CORS: allow all origins in development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    # Register routers
    for module in (chat, catalog, tools, handoffs, sessions, metrics):
        app.include_router(module.router, responses=_ERROR_RESPONSES)

    @app.get("/health", tags=["health"])
    async def health():
        orchestrator = get_factory().create_orchestrator()
        return {"ok": True, "version": VERSION, **orchestrator.health()}

    return app


app = create_app()
