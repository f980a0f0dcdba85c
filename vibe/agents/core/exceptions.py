"""
Exception classes for the agent runtime.

This module defines the hierarchy of exceptions used throughout the
agent runtime, providing clear error handling and debugging information.
"""

from typing import Optional, Dict, Any, TYPE_CHECKING
from datetime import datetime, timezone

if TYPE_CHECKING:
    from .models import ToolCallResult


class AgentRuntimeError(Exception):
    """Base exception for all agent runtime errors.

    This is the root exception class that all other exceptions inherit from.
    It provides common functionality for error tracking and debugging.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
            "timestamp": self.timestamp.isoformat()
        }


class ConfigurationError(AgentRuntimeError):
    """Exception raised when a configuration is malformed."""
    pass


# Tool-related exceptions
class ToolError(AgentRuntimeError):
    """Base exception for tool-related errors."""

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        server_name: Optional[str] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, context)
        self.tool_name = tool_name
        self.server_name = server_name


class ServerUnavailableError(ToolError):
    """Exception raised when the target server connection is down."""

    def __init__(self, server_name: str, reason: Optional[str] = None):
        message = f"Server not connected: {server_name}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, server_name=server_name, error_code="SERVER_UNAVAILABLE")
        self.reason = reason


class ToolNotFoundError(ToolError):
    """Exception raised when a server or tool is unknown."""

    def __init__(self, tool_name: str, server_name: Optional[str] = None):
        if server_name:
            message = f"Tool '{tool_name}' not found on server '{server_name}'"
        else:
            message = f"Tool '{tool_name}' not found on any connected server"
        super().__init__(message, tool_name=tool_name, server_name=server_name,
                         error_code="TOOL_NOT_FOUND")


class ToolDisabledError(ToolError):
    """Exception raised when an agent calls a tool its preferences disable."""

    def __init__(self, tool_id: str):
        server_name, _, tool_name = tool_id.partition(":")
        super().__init__(
            f"Tool '{tool_id}' is disabled for this agent",
            tool_name=tool_name or tool_id,
            server_name=server_name if tool_name else None,
            error_code="TOOL_DISABLED"
        )
        self.tool_id = tool_id


class ToolExecutionError(ToolError):
    """Exception raised when a tool reports an application-level failure."""

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        server_name: Optional[str] = None,
        result: Optional["ToolCallResult"] = None
    ):
        super().__init__(message, tool_name=tool_name, server_name=server_name,
                         error_code="TOOL_EXECUTION_ERROR")
        self.result = result


# Agent-related exceptions
class AgentError(AgentRuntimeError):
    """Base exception for agent-related errors."""

    def __init__(
        self,
        message: str,
        agent_id: Optional[str] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, context)
        self.agent_id = agent_id


class AgentNotFoundError(AgentError):
    """Exception raised when a requested agent is not registered."""
    pass


class SupervisorNotSetError(AgentError):
    """Exception raised when messaging a supervisor that was never assigned."""
    pass


class CompletionCycleFailedError(AgentError):
    """Exception raised when a conversation cycle cannot complete."""
    pass


# Sync-related exceptions
class SyncAttemptExhaustedError(AgentRuntimeError):
    """Exception raised when a sync attempt reaches its backoff ceiling."""

    def __init__(
        self,
        message: str,
        agent_id: Optional[str] = None,
        content_kind: Optional[str] = None,
        attempts: int = 0,
        total_delay: float = 0.0
    ):
        super().__init__(
            message,
            error_code="SYNC_EXHAUSTED",
            context={"attempts": attempts, "total_delay": total_delay}
        )
        self.agent_id = agent_id
        self.content_kind = content_kind
        self.attempts = attempts
        self.total_delay = total_delay
