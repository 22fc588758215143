"""
agents.tools.catalog - Tool registration, discovery and LangChain export.

Registration happens only during startup. Every definition is validated
when registered, and freeze() closes the catalog; any later registration
is a CatalogError.
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import TYPE_CHECKING, Any, Iterable, Optional

from langchain_core.tools import StructuredTool
from pydantic import BaseModel

from application.context import SessionContext
from domain.exceptions import CatalogError, ToolNotFoundError
from domain.models import RiskLevel, ToolCategory
from agents.tools.base import BaseTool

if TYPE_CHECKING:
    from agents.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)


def validate_tool(tool: BaseTool) -> None:
    """Raise CatalogError if a tool definition is malformed."""
    name = getattr(tool, "name", "")
    if not isinstance(name, str) or not name.strip():
        raise CatalogError(f"Tool {tool!r} has no name")
    if not getattr(tool, "description", ""):
        raise CatalogError(f"Tool '{name}' has no description")
    if not isinstance(getattr(tool, "category", None), ToolCategory):
        raise CatalogError(f"Tool '{name}' has invalid category {getattr(tool, 'category', None)!r}")
    if not isinstance(tool.risk_level, RiskLevel):
        raise CatalogError(f"Tool '{name}' has invalid risk level {tool.risk_level!r}")
    schema = tool.get_schema()
    if not (inspect.isclass(schema) and issubclass(schema, BaseModel)):
        raise CatalogError(f"Tool '{name}' schema must be a pydantic model")
    if tool.timeout_s is not None and tool.timeout_s <= 0:
        raise CatalogError(f"Tool '{name}' timeout must be positive")


class ToolCatalog:
    """Read-only (after startup) registry of callable capabilities."""

    def __init__(self, tools: Optional[Iterable[BaseTool]] = None):
        self._tools: dict[str, BaseTool] = {}
        self._frozen = False
        for tool in tools or ():
            self.register(tool)

    def register(self, tool: BaseTool) -> None:
        """Register a tool by its name."""
        if self._frozen:
            raise CatalogError(f"Tool catalog is frozen; cannot register '{tool.name}'")
        validate_tool(tool)
        if tool.name in self._tools:
            raise CatalogError(f"Tool '{tool.name}' registered twice")
        self._tools[tool.name] = tool
        logger.debug("Registered tool: %s", tool.name)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> BaseTool:
        """Get a tool by name."""
        if name not in self._tools:
            raise ToolNotFoundError(f"Tool '{name}' not found")
        return self._tools[name]

    def find(self, name: str) -> Optional[BaseTool]:
        return self._tools.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def list(self, category: Optional[ToolCategory | str] = None) -> list[BaseTool]:
        """Return tools in registration order, optionally filtered by category."""
        if category is None:
            return list(self._tools.values())
        wanted = ToolCategory(category)
        return [t for t in self._tools.values() if t.category == wanted]

    def names(self) -> list[str]:
        """Return all registered tool names."""
        return list(self._tools.keys())

    def to_langchain_tools(
        self,
        names: Iterable[str],
        executor: ToolExecutor,
        ctx: SessionContext,
    ) -> list[StructuredTool]:
        """Wrap the named tools as LangChain StructuredTools bound to a context.

        Each wrapper routes through the ToolExecutor, so validation, timeouts
        and metrics apply no matter who calls it.
        """
        lc_tools = []
        for name in names:
            tool = self.get(name)

            def _make_coroutine(tool_name: str):
                async def _run(**kwargs: Any) -> str:
                    result = await executor.execute(tool_name, kwargs, ctx)
                    return json.dumps(result.to_dict(), default=str)
                return _run

            lc_tools.append(StructuredTool.from_function(
                coroutine=_make_coroutine(tool.name),
                name=tool.name,
                description=tool.description,
                args_schema=tool.get_schema(),
            ))
        return lc_tools
