"""
Core abstractions for the agent runtime.

This module provides the fundamental interfaces, data models, enums and
exceptions shared by every other part of the runtime.
"""

from .interfaces import (
    CompletionClient,
    ToolInvoker,
)

from .models import (
    # Configuration
    MCPServerConfig,
    MCPConfig,
    RuntimeSettings,

    # Tool catalog
    ToolDescriptor,
    ResourceDescriptor,
    PromptDescriptor,
    PromptMessage,
    ContentBlock,
    ToolCallResult,

    # Conversation
    ToolCall,
    ChatMessage,
    InboxMessage,

    # Agent state
    AgentStatusRecord,
    ToolPreferences,
    SyncAttempt,
    AgentRecord,
    make_tool_id,
)

from .enums import (
    AgentProcessingStatus,
    ServerStatus,
    TransportType,
    MessageRole,
    ContentKind,
    SyncContentKind,
    SyncState,
)

from .exceptions import (
    AgentRuntimeError,
    ConfigurationError,
    ToolError,
    ServerUnavailableError,
    ToolNotFoundError,
    ToolDisabledError,
    ToolExecutionError,
    AgentError,
    AgentNotFoundError,
    SupervisorNotSetError,
    CompletionCycleFailedError,
    SyncAttemptExhaustedError,
)

from .status import AgentStatusModel

__all__ = [
    # Interfaces
    "CompletionClient",
    "ToolInvoker",

    # Configuration
    "MCPServerConfig",
    "MCPConfig",
    "RuntimeSettings",

    # Tool catalog
    "ToolDescriptor",
    "ResourceDescriptor",
    "PromptDescriptor",
    "PromptMessage",
    "ContentBlock",
    "ToolCallResult",

    # Conversation
    "ToolCall",
    "ChatMessage",
    "InboxMessage",

    # Agent state
    "AgentStatusRecord",
    "AgentStatusModel",
    "ToolPreferences",
    "SyncAttempt",
    "AgentRecord",
    "make_tool_id",

    # Enums
    "AgentProcessingStatus",
    "ServerStatus",
    "TransportType",
    "MessageRole",
    "ContentKind",
    "SyncContentKind",
    "SyncState",

    # Exceptions
    "AgentRuntimeError",
    "ConfigurationError",
    "ToolError",
    "ServerUnavailableError",
    "ToolNotFoundError",
    "ToolDisabledError",
    "ToolExecutionError",
    "AgentError",
    "AgentNotFoundError",
    "SupervisorNotSetError",
    "CompletionCycleFailedError",
    "SyncAttemptExhaustedError",
]
