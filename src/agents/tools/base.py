"""
agents.tools.base - Base tool interface and parameter model.

All agent tools inherit from BaseTool. Parameters are declared as a
ToolParams (pydantic) model; the executor validates raw input against it
before the tool ever runs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from application.context import SessionContext
from domain.models import RiskLevel, ToolCategory


class ToolParams(BaseModel):
    """Base for tool parameter schemas. Accepts snake_case or camelCase keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class BaseTool(ABC):
    """Abstract base for all agent tools.

    store_as: if set, a successful result is also stored in
              ctx.scratch[store_as] for later tools in the same request.
    timeout_s: per-tool override of the executor's default timeout.
    """

    name: str
    description: str
    category: ToolCategory
    risk_level: RiskLevel = RiskLevel.LOW
    requires_auth: bool = True
    estimated_duration_ms: int = 500
    timeout_s: Optional[float] = None
    store_as: Optional[str] = None

    @abstractmethod
    async def execute(self, ctx: SessionContext, params: Any) -> Any:
        """Execute the tool with validated parameters. Returns JSON-able data."""
        ...

    @abstractmethod
    def get_schema(self) -> type[BaseModel]:
        """Return the Pydantic schema for this tool's input arguments."""
        ...

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "risk_level": self.risk_level.value,
            "requires_auth": self.requires_auth,
            "estimated_duration_ms": self.estimated_duration_ms,
            "parameters": self.get_schema().model_json_schema(),
        }
