"""
Shared FastAPI dependencies.

- get_factory(): returns the initialized ServiceFactory (set at startup).
- get_orchestrator(): the shared Orchestrator built by that factory.

Identity is established upstream (gateway); handlers receive user_id in
the request and the runtime validates it against tool parameters.
"""

from __future__ import annotations

from fastapi import Depends

from factory import ServiceFactory
from agents.orchestrator import Orchestrator

# Module-level reference set by app lifespan
_factory: ServiceFactory | None = None


def set_factory(factory: ServiceFactory | None) -> None:
    global _factory
    _factory = factory


def get_factory() -> ServiceFactory:
    if _factory is None:
        raise RuntimeError("ServiceFactory not initialized.")
    return _factory


def get_orchestrator(factory: ServiceFactory = Depends(get_factory)) -> Orchestrator:
    return factory.create_orchestrator()
