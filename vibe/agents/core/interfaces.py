"""
Core interfaces for the agent runtime.

This module defines the boundaries the runtime consumes but does not
implement, most importantly the conversational completion dependency.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from .models import ChatMessage, ToolCallResult


class CompletionClient(ABC):
    """Opaque "send conversation, receive reply" dependency.

    Implementations wrap whichever completion API the application uses.
    The runtime only relies on this contract: given the ordered history and
    the function definitions the agent may call, return exactly one
    assistant-role message, possibly carrying tool calls.
    """

    @abstractmethod
    async def complete(
        self,
        messages: List[ChatMessage],
        tools: List[Dict[str, Any]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> ChatMessage:
        """Request one assistant reply.

        Args:
            messages: Snapshot of the conversation history
            tools: Function definitions available to the model
            temperature: Optional sampling temperature
            max_tokens: Optional reply length limit

        Returns:
            An assistant message

        Raises:
            Exception: Any failure of the underlying API
        """
        pass


@runtime_checkable
class ToolInvoker(Protocol):
    """Anything that can resolve and run a model-requested tool call."""

    async def invoke_tool(self, function_name: str, arguments: Dict[str, Any]) -> ToolCallResult:
        ...

    def get_function_definitions(self) -> List[Dict[str, Any]]:
        ...
