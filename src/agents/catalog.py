"""
agents.catalog - Validated, read-only registry of agent definitions.

load() validates the whole graph (agent → tool, agent → handoff target)
before anything is published, so a broken configuration never serves a
partial catalog. Any failure is a CatalogError and aborts startup.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from domain.exceptions import AgentNotFoundError, CatalogError
from domain.models import AgentDefinition, AgentRole, RiskLevel
from agents.tools.catalog import ToolCatalog

logger = logging.getLogger(__name__)

MIN_PRIORITY = 1
MAX_PRIORITY = 10


def validate_agent(definition: AgentDefinition, tools: ToolCatalog) -> None:
    """Check one definition in isolation (handoff targets are checked by load)."""
    name = definition.name
    if not isinstance(name, str) or not name.strip():
        raise CatalogError("Agent definition has an empty name")
    if not isinstance(definition.role, AgentRole):
        raise CatalogError(f"Agent '{name}' has invalid role {definition.role!r}")
    if not isinstance(definition.risk_level, RiskLevel):
        raise CatalogError(f"Agent '{name}' has invalid risk level {definition.risk_level!r}")
    if not MIN_PRIORITY <= definition.priority <= MAX_PRIORITY:
        raise CatalogError(
            f"Agent '{name}' priority {definition.priority} outside "
            f"{MIN_PRIORITY}-{MAX_PRIORITY}"
        )
    if not definition.instructions.strip():
        raise CatalogError(f"Agent '{name}' has no instructions")
    if definition.estimated_duration_ms < 0:
        raise CatalogError(f"Agent '{name}' has a negative estimated duration")
    missing = [t for t in definition.tools if t not in tools]
    if missing:
        raise CatalogError(f"Agent '{name}' references unknown tool(s): {', '.join(missing)}")
    if len(set(definition.tools)) != len(definition.tools):
        raise CatalogError(f"Agent '{name}' lists a tool more than once")
    if name in definition.handoff_targets:
        raise CatalogError(f"Agent '{name}' lists itself as a handoff target")


class AgentCatalog:
    """Agent definitions keyed by name, in load order."""

    def __init__(self, tools: ToolCatalog):
        self._tools = tools
        self._agents: dict[str, AgentDefinition] = {}
        self._loaded = False

    def load(self, definitions: Iterable[AgentDefinition]) -> None:
        """Validate and publish the full set of definitions (all or nothing)."""
        if self._loaded:
            raise CatalogError("Agent catalog already loaded")

        staged: dict[str, AgentDefinition] = {}
        for definition in definitions:
            validate_agent(definition, self._tools)
            if definition.name in staged:
                raise CatalogError(f"Agent '{definition.name}' defined twice")
            staged[definition.name] = definition

        if not staged:
            raise CatalogError("Agent catalog is empty")

        for definition in staged.values():
            dangling = [t for t in definition.handoff_targets if t not in staged]
            if dangling:
                raise CatalogError(
                    f"Agent '{definition.name}' has unknown handoff target(s): "
                    f"{', '.join(dangling)}"
                )

        self._agents = staged
        self._loaded = True
        logger.info("Agent catalog loaded: %s", ", ".join(staged))

    def require(self, *names: str) -> None:
        """Fail startup if a configured agent (default, escalation) is missing."""
        for name in names:
            if name not in self._agents:
                raise CatalogError(f"Configured agent '{name}' is not in the catalog")

    def get(self, name: str) -> AgentDefinition:
        try:
            return self._agents[name]
        except KeyError:
            raise AgentNotFoundError(f"Agent '{name}' not found") from None

    def find(self, name: Optional[str]) -> Optional[AgentDefinition]:
        if not name:
            return None
        return self._agents.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    def list(self, role: Optional[AgentRole | str] = None) -> list[AgentDefinition]:
        """Definitions in load order, optionally filtered by role."""
        if role is None:
            return list(self._agents.values())
        wanted = AgentRole(role)
        return [a for a in self._agents.values() if a.role == wanted]

    def names(self) -> list[str]:
        return list(self._agents.keys())
