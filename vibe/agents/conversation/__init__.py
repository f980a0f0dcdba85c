"""
Conversation package: per-agent message history and transcript export.
"""

from .conversation_manager import ConversationManager, DEFAULT_MAX_TOOL_ROUNDS
from .transcript import TranscriptWriter

__all__ = [
    "ConversationManager",
    "DEFAULT_MAX_TOOL_ROUNDS",
    "TranscriptWriter",
]
