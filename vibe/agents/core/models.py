"""
Core data models for the agent runtime.

This module defines the fundamental data structures used throughout
the agent runtime: tool server configuration, tool catalog descriptors,
tool call results, conversation messages and the persisted agent record.
"""

import json
from pathlib import Path
from typing import Dict, Any, List, Optional, Union
from datetime import datetime, timezone
from urllib.parse import urlparse
import uuid as uuid_lib

from pydantic import BaseModel, Field, ConfigDict, ValidationError, model_validator

from .enums import (
    AgentProcessingStatus, ContentKind, MessageRole, SyncContentKind, TransportType
)
from .exceptions import ConfigurationError, ToolExecutionError


TOOL_ID_SEPARATOR = ":"
SERVER_NAME_PATTERN = r"^[a-zA-Z0-9_-]+$"


def make_tool_id(server_name: str, tool_name: str) -> str:
    """Build the fully-qualified ``server:tool`` identifier."""
    return f"{server_name}{TOOL_ID_SEPARATOR}{tool_name}"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class MCPServerConfig(BaseModel):
    """Configuration for one tool server."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    name: str = Field(
        ...,
        description="Unique server name; prefixes tool ids and function names",
        min_length=1,
        max_length=100,
        pattern=SERVER_NAME_PATTERN
    )
    description: Optional[str] = Field(None, description="Server description", max_length=500)
    transport: Optional[TransportType] = Field(
        None, description="Transport type; inferred from command/url when omitted"
    )

    # stdio transport
    command: Optional[str] = Field(None, description="Executable to launch")
    args: List[str] = Field(default_factory=list, description="Command arguments")
    env: Dict[str, str] = Field(default_factory=dict, description="Extra environment variables")
    cwd: Optional[str] = Field(None, description="Working directory for the process")

    # network transports
    url: Optional[str] = Field(None, description="Server URL for sse/streamable-http")
    headers: Dict[str, str] = Field(default_factory=dict, description="HTTP headers")

    enabled: bool = Field(default=True, description="Whether to connect to this server")

    @model_validator(mode="after")
    def _check_endpoint(self) -> "MCPServerConfig":
        if not self.command and not self.url:
            raise ValueError(f"Server '{self.name}' needs either 'command' or 'url'")
        if self.command and self.url:
            raise ValueError(f"Server '{self.name}' cannot set both 'command' and 'url'")
        return self

    def get_transport(self) -> TransportType:
        """Return the explicit transport or infer it from the endpoint."""
        if self.transport is not None:
            return self.transport
        if self.command:
            return TransportType.STDIO
        path = urlparse(self.url or "").path.rstrip("/")
        if path.endswith("/sse"):
            return TransportType.SSE
        return TransportType.STREAMABLE_HTTP

    def to_fastmcp_entry(self) -> Dict[str, Any]:
        """Render this server as an entry of a FastMCP ``mcpServers`` mapping."""
        transport = self.get_transport()
        if transport == TransportType.STDIO:
            entry: Dict[str, Any] = {"command": self.command, "args": list(self.args)}
            if self.env:
                entry["env"] = dict(self.env)
            if self.cwd:
                entry["cwd"] = self.cwd
            return entry

        entry = {"url": self.url, "transport": transport.value}
        if self.headers:
            entry["headers"] = dict(self.headers)
        return entry


class MCPConfig(BaseModel):
    """Set of tool servers, in the conventional ``mcpServers`` layout."""

    model_config = ConfigDict(
        validate_assignment=True,
        extra='forbid',
        populate_by_name=True
    )

    servers: Dict[str, MCPServerConfig] = Field(
        default_factory=dict,
        alias="mcpServers",
        description="Server configurations keyed by name"
    )

    @model_validator(mode="before")
    @classmethod
    def _fill_names(cls, data: Any) -> Any:
        # Server entries are keyed by name; the entry itself may omit it.
        if isinstance(data, dict):
            key = "mcpServers" if "mcpServers" in data else "servers"
            servers = data.get(key)
            if isinstance(servers, dict):
                filled = {}
                for name, entry in servers.items():
                    if isinstance(entry, dict) and "name" not in entry:
                        entry = {**entry, "name": name}
                    filled[name] = entry
                data = {**data, key: filled}
        return data

    @model_validator(mode="after")
    def _check_keys(self) -> "MCPConfig":
        for key, server in self.servers.items():
            if key != server.name:
                raise ValueError(f"Server key '{key}' does not match server name '{server.name}'")
        return self

    @classmethod
    def load(cls, data: Union["MCPConfig", Dict[str, Any]]) -> "MCPConfig":
        """Coerce a dict or model into a validated configuration.

        Raises:
            ConfigurationError: If the configuration is malformed
        """
        if isinstance(data, MCPConfig):
            return data
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"MCP configuration must be a mapping, got {type(data).__name__}",
                error_code="INVALID_CONFIG"
            )
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid MCP configuration: {e}",
                error_code="INVALID_CONFIG",
                context={"errors": e.errors(include_url=False)}
            ) from e

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "MCPConfig":
        """Load configuration from a JSON file."""
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Cannot read MCP configuration from {path}: {e}",
                error_code="INVALID_CONFIG"
            ) from e
        return cls.load(raw)

    def enabled_servers(self) -> List[MCPServerConfig]:
        """Servers that should be connected, in configuration order."""
        return [server for server in self.servers.values() if server.enabled]


class RuntimeSettings(BaseModel):
    """Tunable limits and intervals for the runtime."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    max_tool_rounds: int = Field(
        default=10,
        description="Maximum completion requests per conversation cycle",
        ge=1,
        le=50
    )
    poll_interval_seconds: float = Field(
        default=5.0,
        description="Delay between content sync ticks",
        gt=0
    )
    min_refresh_interval_seconds: float = Field(
        default=0.0,
        description="Skip a sync fetch when the last success is younger than this",
        ge=0
    )
    sync_base_delay_seconds: float = Field(
        default=1.0,
        description="First retry delay of a sync attempt",
        gt=0
    )
    sync_backoff_multiplier: float = Field(
        default=2.0,
        description="Growth factor between consecutive retry delays",
        ge=1.0
    )
    sync_backoff_ceiling_seconds: float = Field(
        default=30.0,
        description="Maximum total time a sync attempt may spend retrying",
        gt=0
    )
    sync_max_attempts: Optional[int] = Field(
        None,
        description="Optional hard cap on attempts per sync operation",
        ge=1
    )
    transcript_dir: str = Field(default="logs", description="Directory for transcript dumps")


# ---------------------------------------------------------------------------
# Tool catalog
# ---------------------------------------------------------------------------

class ToolDescriptor(BaseModel):
    """A callable tool discovered on one server."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    server_name: str = Field(..., description="Owning server", min_length=1)
    name: str = Field(..., description="Tool name as exposed by the server", min_length=1)
    title: Optional[str] = Field(None, description="Human-readable title")
    description: str = Field(default="", description="Tool description")
    input_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON Schema for tool arguments"
    )
    annotations: Dict[str, Any] = Field(default_factory=dict, description="Tool annotations")

    @property
    def tool_id(self) -> str:
        """Fully-qualified ``server:tool`` identifier."""
        return make_tool_id(self.server_name, self.name)

    def __hash__(self) -> int:
        # Schema and annotation dicts are unhashable; the id is unique per catalog.
        return hash(self.tool_id)


class ResourceDescriptor(BaseModel):
    """A readable resource discovered on one server."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    server_name: str = Field(..., description="Owning server")
    uri: str = Field(..., description="Resource URI")
    name: str = Field(..., description="Resource name")
    description: Optional[str] = Field(None, description="Resource description")
    mime_type: Optional[str] = Field(None, description="Resource MIME type")

    @property
    def resource_id(self) -> str:
        return make_tool_id(self.server_name, self.uri)


class PromptDescriptor(BaseModel):
    """A prompt template discovered on one server."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    server_name: str = Field(..., description="Owning server")
    name: str = Field(..., description="Prompt name")
    description: Optional[str] = Field(None, description="Prompt description")
    arguments: List[Dict[str, Any]] = Field(default_factory=list, description="Prompt arguments")

    @property
    def prompt_id(self) -> str:
        return make_tool_id(self.server_name, self.name)


class PromptMessage(BaseModel):
    """One message rendered from a server prompt."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    role: str = Field(..., description="Message role")
    content: "ContentBlock" = Field(..., description="Message content")


class ContentBlock(BaseModel):
    """A single tagged block of tool, resource or prompt content."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    kind: ContentKind = Field(..., description="Content kind tag")
    text: Optional[str] = Field(None, description="Text payload")
    data: Optional[str] = Field(None, description="Base64 payload for binary kinds")
    mime_type: Optional[str] = Field(None, description="MIME type of binary payloads")
    uri: Optional[str] = Field(None, description="URI of resource payloads")

    @classmethod
    def text_block(cls, text: str) -> "ContentBlock":
        return cls(kind=ContentKind.TEXT, text=text)

    @property
    def payload(self) -> Optional[str]:
        """Primary payload regardless of kind."""
        if self.text is not None:
            return self.text
        if self.data is not None:
            return self.data
        return self.uri

    def to_dict(self) -> Dict[str, Any]:
        """Protocol-style dict: ``{"type": kind, ...payload}``."""
        result: Dict[str, Any] = {"type": self.kind.value}
        for key, value in (("text", self.text), ("data", self.data),
                           ("mimeType", self.mime_type), ("uri", self.uri)):
            if value is not None:
                result[key] = value
        return result


PromptMessage.model_rebuild()


class ToolCallResult(BaseModel):
    """Outcome of one tool invocation."""

    model_config = ConfigDict(validate_assignment=True, extra='forbid')

    content: List[ContentBlock] = Field(default_factory=list, description="Ordered content blocks")
    is_error: bool = Field(default=False, description="Whether the tool reported a failure")
    server_name: Optional[str] = Field(None, description="Server that handled the call")
    tool_name: Optional[str] = Field(None, description="Tool that was called")

    @classmethod
    def error(cls, message: str, server_name: Optional[str] = None,
              tool_name: Optional[str] = None) -> "ToolCallResult":
        """Build an error result carrying a single text block."""
        return cls(
            content=[ContentBlock.text_block(message)],
            is_error=True,
            server_name=server_name,
            tool_name=tool_name
        )

    @property
    def text(self) -> str:
        """All text blocks joined by newlines."""
        return "\n".join(block.text for block in self.content if block.text is not None)

    def raise_for_error(self) -> "ToolCallResult":
        """Raise ToolExecutionError if the tool reported failure, else return self."""
        if self.is_error:
            raise ToolExecutionError(
                self.text or "Tool reported an error",
                tool_name=self.tool_name,
                server_name=self.server_name,
                result=self
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Protocol-style dict: ``{"content": [...], "isError": bool}``."""
        return {
            "content": [block.to_dict() for block in self.content],
            "isError": self.is_error
        }


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------

class ToolCall(BaseModel):
    """A tool call requested by the model in an assistant message."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    id: str = Field(
        default_factory=lambda: f"call_{uuid_lib.uuid4().hex[:24]}",
        description="Call identifier echoed by the tool response"
    )
    name: str = Field(..., description="Function name as sent to the model", min_length=1)
    arguments: str = Field(default="{}", description="JSON-encoded arguments")

    def parse_arguments(self) -> Dict[str, Any]:
        """Decode the JSON arguments.

        Raises:
            ValueError: If the arguments are not a JSON object
        """
        if not self.arguments or not self.arguments.strip():
            return {}
        parsed = json.loads(self.arguments)
        if not isinstance(parsed, dict):
            raise ValueError(f"Tool arguments must be a JSON object, got {type(parsed).__name__}")
        return parsed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments}
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCall":
        """Accept both the nested function shape and the flat shape."""
        function = data.get("function")
        if isinstance(function, dict):
            arguments = function.get("arguments", "{}")
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            return cls(id=data["id"], name=function["name"], arguments=arguments)
        return cls.model_validate(data)


class ChatMessage(BaseModel):
    """One message of an agent conversation."""

    model_config = ConfigDict(validate_assignment=True, extra='forbid')

    role: MessageRole = Field(..., description="Message role")
    content: str = Field(default="", description="Message text")
    tool_calls: Optional[List[ToolCall]] = Field(None, description="Calls requested by the assistant")
    tool_call_id: Optional[str] = Field(None, description="Call answered by a tool message")
    name: Optional[str] = Field(None, description="Function name for tool messages")
    is_error: bool = Field(default=False, description="Whether a tool message reports a failure")
    context_id: Optional[str] = Field(None, description="Key of a replaceable context message")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Message creation time"
    )

    @model_validator(mode="after")
    def _check_role_fields(self) -> "ChatMessage":
        if self.role == MessageRole.TOOL and not self.tool_call_id:
            raise ValueError("Tool messages require a tool_call_id")
        if self.tool_calls and self.role != MessageRole.ASSISTANT:
            raise ValueError("Only assistant messages may carry tool calls")
        return self

    @classmethod
    def system(cls, content: str, context_id: Optional[str] = None) -> "ChatMessage":
        return cls(role=MessageRole.SYSTEM, content=content, context_id=context_id)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str = "", tool_calls: Optional[List[ToolCall]] = None) -> "ChatMessage":
        return cls(role=MessageRole.ASSISTANT, content=content, tool_calls=tool_calls or None)

    @classmethod
    def tool(cls, tool_call_id: str, content: str, name: Optional[str] = None,
             is_error: bool = False) -> "ChatMessage":
        return cls(role=MessageRole.TOOL, content=content, tool_call_id=tool_call_id,
                   name=name, is_error=is_error)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_completion_dict(self) -> Dict[str, Any]:
        """Render the message in the shape completion APIs accept."""
        result: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            result["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        if self.tool_call_id:
            result["tool_call_id"] = self.tool_call_id
        if self.name and self.role == MessageRole.TOOL:
            result["name"] = self.name
        return result


class InboxMessage(BaseModel):
    """A message waiting in an agent's inbox."""

    model_config = ConfigDict(validate_assignment=True, extra='forbid')

    sender: str = Field(..., description="Name of the sending agent or user", min_length=1)
    content: str = Field(..., description="Message body")
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Arrival time"
    )


# ---------------------------------------------------------------------------
# Agent state
# ---------------------------------------------------------------------------

class AgentStatusRecord(BaseModel):
    """Serialized shape of an agent's processing status."""

    model_config = ConfigDict(validate_assignment=True, extra='forbid')

    status: AgentProcessingStatus = Field(default=AgentProcessingStatus.IDLE)
    error_message: Optional[str] = Field(None, description="Last error, when status is error")
    last_status_change: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_activity: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ToolPreferences(BaseModel):
    """Per-agent enable/disable flags for servers and individual tools.

    Servers and tools default to enabled. A disabled server hides every one
    of its tools regardless of the tool-level flags.
    """

    model_config = ConfigDict(validate_assignment=True, extra='forbid')

    servers: Dict[str, bool] = Field(default_factory=dict, description="server name -> enabled")
    tools: Dict[str, bool] = Field(default_factory=dict, description="server:tool -> enabled")

    def is_server_enabled(self, server_name: str) -> bool:
        return self.servers.get(server_name, True)

    def is_tool_enabled(self, tool_id: str) -> bool:
        """Effective flag for a tool id, including its server's flag."""
        server_name = tool_id.split(TOOL_ID_SEPARATOR, 1)[0]
        if not self.is_server_enabled(server_name):
            return False
        return self.tools.get(tool_id, True)

    def allows(self, tool: ToolDescriptor) -> bool:
        return self.is_tool_enabled(tool.tool_id)


class SyncAttempt(BaseModel):
    """Bookkeeping for one in-flight sync operation. Never persisted."""

    model_config = ConfigDict(validate_assignment=True, extra='forbid')

    agent_id: str = Field(..., description="Target agent")
    content_kind: SyncContentKind = Field(..., description="Content being fetched")
    attempt: int = Field(default=0, description="Attempts made so far", ge=0)
    next_delay: float = Field(default=0.0, description="Delay before the next attempt", ge=0)
    total_delay: float = Field(default=0.0, description="Backoff spent so far", ge=0)
    deadline: float = Field(..., description="Monotonic time after which retries stop")
    last_error: Optional[str] = Field(None, description="Most recent failure")


class AgentRecord(BaseModel):
    """Persisted shape of an agent."""

    model_config = ConfigDict(validate_assignment=True, extra='forbid')

    id: str = Field(default_factory=lambda: str(uuid_lib.uuid4()), description="Agent identifier")
    name: str = Field(..., description="Agent display name", min_length=1, max_length=100)
    system_prompt: str = Field(..., description="Agent system prompt")
    notepad: str = Field(default="", description="Mirrored notepad content")
    status: AgentStatusRecord = Field(default_factory=AgentStatusRecord)
    tool_preferences: ToolPreferences = Field(default_factory=ToolPreferences)
    context_files: List[str] = Field(default_factory=list, description="Context file names")
    inbox: List[InboxMessage] = Field(default_factory=list)
    to_do_list: List[str] = Field(default_factory=list)
    conversation_history: List[ChatMessage] = Field(default_factory=list)
    supervisor: Optional[str] = Field(None, description="Supervisor agent name")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, ge=100, le=32000)
