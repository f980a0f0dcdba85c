"""
Vibe Agent Runtime

An autonomous-agent runtime where each agent holds a conversation with a
language model, keeps inbox and to-do state, and calls tools exposed by
one or more MCP (Model Context Protocol) servers.

Example usage:
    from vibe.agents import AgentOrchestrator, MCPServerManager

    async with MCPServerManager() as servers:
        await servers.initialize({"mcpServers": {...}})

        agent = AgentOrchestrator(
            name="Alice",
            system_prompt="You coordinate the team.",
            completion_client=my_completion_client,
            server_manager=servers,
        )
        agent.receive_message("Bob", "ping")
        await agent.think()
"""

__version__ = "1.0.0"

# Re-export main components for convenience
from .agents import (
    # Core components
    AgentOrchestrator,
    AgentRegistry,
    ConversationManager,
    ContentSyncEngine,
    MCPServerManager,

    # Core models
    AgentRecord,
    ChatMessage,
    MCPConfig,
    RuntimeSettings,
    ToolCallResult,
    ToolDescriptor,

    # Exceptions
    AgentRuntimeError,
    ServerUnavailableError,
    ToolNotFoundError,
    ToolDisabledError,
    ToolExecutionError,
    SyncAttemptExhaustedError,
    CompletionCycleFailedError,
)

__all__ = [
    # Core components
    "AgentOrchestrator",
    "AgentRegistry",
    "ConversationManager",
    "ContentSyncEngine",
    "MCPServerManager",

    # Core models
    "AgentRecord",
    "ChatMessage",
    "MCPConfig",
    "RuntimeSettings",
    "ToolCallResult",
    "ToolDescriptor",

    # Exceptions
    "AgentRuntimeError",
    "ServerUnavailableError",
    "ToolNotFoundError",
    "ToolDisabledError",
    "ToolExecutionError",
    "SyncAttemptExhaustedError",
    "CompletionCycleFailedError",
]
