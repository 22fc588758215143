"""
domain.exceptions - Custom exception hierarchy for the coaching runtime.

All domain-level errors inherit from DomainError so callers can catch
broad or specific exceptions as needed. Each class carries the stable
ErrorCode reported to API/CLI callers.
"""

from domain.models import ErrorCode


class DomainError(Exception):
    """Base exception for all domain-level errors."""

    code: ErrorCode = ErrorCode.EXECUTION_ERROR

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else self.__class__.__name__


class ValidationError(DomainError):
    """Raised when input does not satisfy a schema or precondition."""
    code = ErrorCode.VALIDATION_ERROR


class NotFoundError(DomainError):
    """Raised when an agent, tool or session cannot be found."""


class AgentNotFoundError(NotFoundError):
    code = ErrorCode.AGENT_NOT_FOUND


class ToolNotFoundError(NotFoundError):
    code = ErrorCode.TOOL_NOT_FOUND


class ExecutionError(DomainError):
    """Raised when a tool or agent failed while running."""
    code = ErrorCode.EXECUTION_ERROR


class AgentExecutionError(ExecutionError):
    code = ErrorCode.AGENT_ERROR


class ExecutionTimeoutError(ExecutionError):
    """Raised when a tool or agent exceeded its time budget."""
    code = ErrorCode.EXECUTION_TIMEOUT


class CatalogError(DomainError):
    """Raised when the agent or tool catalog is inconsistent. Fatal at startup."""
    code = ErrorCode.CATALOG_ERROR


class RepositoryError(DomainError):
    """Raised when a database operation fails."""
    code = ErrorCode.REPOSITORY_ERROR
