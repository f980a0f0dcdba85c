"""
Enumerations for the agent runtime.

This module defines all the enums used throughout the agent runtime,
providing type safety and clear definitions for the various states and kinds.
"""

from enum import Enum


class AgentProcessingStatus(str, Enum):
    """Agent processing status enumeration.

    Defines the runtime status of an agent:
    - IDLE: Not running a completion cycle
    - PROCESSING: A completion cycle or tool sequence is in flight
    - ERROR: The last cycle failed; carries a message until cleared
    """
    IDLE = "idle"
    PROCESSING = "processing"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


class ServerStatus(str, Enum):
    """Tool server connection status enumeration.

    Defines the lifecycle of one server connection:
    - DISCONNECTED: Not connected (initial state, after teardown or failure)
    - CONNECTING: Connection and discovery in progress
    - CONNECTED: Connected and catalog discovered
    - ERROR: Connection or discovery failed; see the retained reason
    - UNSUPPORTED: Transport not supported by this runtime
    - DISABLED: Turned off in configuration, never contacted
    """
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"
    UNSUPPORTED = "unsupported"
    DISABLED = "disabled"

    def __str__(self) -> str:
        return self.value


class TransportType(str, Enum):
    """Transport used to reach a tool server."""
    STDIO = "stdio"
    SSE = "sse"
    STREAMABLE_HTTP = "streamable-http"

    def __str__(self) -> str:
        return self.value


class MessageRole(str, Enum):
    """Conversation message role enumeration."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"

    def __str__(self) -> str:
        return self.value


class ContentKind(str, Enum):
    """Kind tag of a tool result content block."""
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    RESOURCE = "resource"
    RESOURCE_LINK = "resource_link"

    def __str__(self) -> str:
        return self.value


class SyncContentKind(str, Enum):
    """Remote content kinds mirrored onto an agent by the sync engine."""
    NOTEPAD = "notepad"
    TODO = "todo"
    INBOX = "inbox"

    def __str__(self) -> str:
        return self.value


class SyncState(str, Enum):
    """Content sync engine lifecycle state.

    - STOPPED: No timer; terminal until the next start
    - RUNNING: Timer ticking for the active agent
    - PAUSED: Timer suspended, active agent retained
    """
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"

    def __str__(self) -> str:
        return self.value
