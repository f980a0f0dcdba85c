"""
Agent runtime package.

Provides the tool server connection manager, per-agent conversation and
orchestration, the agent status model and the content sync engine.
"""

from .core import *  # noqa: F401,F403
from .core import __all__ as _core_all
from .tools import MCPServerManager, MCPToolRegistry, MCPToolProxy
from .conversation import ConversationManager, TranscriptWriter
from .coordinator import AgentOrchestrator
from .registry import AgentRegistry
from .sync import ContentSyncEngine, ContentSource, RetryPolicy
from .utils import ConfigValidator

__all__ = list(_core_all) + [
    # Tools
    "MCPServerManager",
    "MCPToolRegistry",
    "MCPToolProxy",

    # Conversation
    "ConversationManager",
    "TranscriptWriter",

    # Agents
    "AgentOrchestrator",
    "AgentRegistry",

    # Sync
    "ContentSyncEngine",
    "ContentSource",
    "RetryPolicy",

    # Utilities
    "ConfigValidator",
]
