"""
MCP Server Manager for owning tool server connections and their catalogs.

This module provides centralized management of MCP server connections using
FastMCP clients (one per server), tool/resource/prompt discovery, and routing
of tool calls to the owning server.
"""

import asyncio
import logging
import os
import shutil
from contextlib import AsyncExitStack
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from fastmcp import Client
from mcp import types as mcp_types
from mcp.shared.exceptions import McpError

from ..core.enums import ContentKind, ServerStatus, TransportType
from ..core.exceptions import ServerUnavailableError, ToolNotFoundError
from ..core.models import (
    ContentBlock, MCPConfig, MCPServerConfig, PromptDescriptor, PromptMessage,
    ResourceDescriptor, ToolCallResult, ToolDescriptor
)
from ..utils.config_validator import ConfigValidator
from .mcp_tool_registry import MCPToolRegistry, ServerCatalog

logger = logging.getLogger(__name__)

ClientFactory = Callable[[MCPServerConfig], Client]


def default_client_factory(server: MCPServerConfig) -> Client:
    """Create a FastMCP client for a single configured server.

    A one-entry ``mcpServers`` mapping makes FastMCP connect directly to that
    server without prefixing tool names.
    """
    return Client({"mcpServers": {server.name: server.to_fastmcp_entry()}})


def content_block_from_mcp(content: Any) -> ContentBlock:
    """Convert one MCP content item into the internal ContentBlock."""
    kind = getattr(content, "type", None)
    if kind == "text":
        return ContentBlock(kind=ContentKind.TEXT, text=content.text)
    if kind == "image":
        return ContentBlock(kind=ContentKind.IMAGE, data=content.data, mime_type=content.mimeType)
    if kind == "audio":
        return ContentBlock(kind=ContentKind.AUDIO, data=content.data, mime_type=content.mimeType)
    if kind == "resource":
        return resource_block_from_mcp(content.resource)
    if kind == "resource_link":
        return ContentBlock(
            kind=ContentKind.RESOURCE_LINK,
            uri=str(content.uri),
            mime_type=getattr(content, "mimeType", None),
            text=getattr(content, "name", None)
        )
    # Unknown kinds are carried as text so nothing is silently dropped.
    return ContentBlock(kind=ContentKind.TEXT, text=str(content))


def resource_block_from_mcp(resource: Any) -> ContentBlock:
    """Convert text or blob resource contents into a ContentBlock."""
    return ContentBlock(
        kind=ContentKind.RESOURCE,
        uri=str(resource.uri),
        mime_type=getattr(resource, "mimeType", None),
        text=getattr(resource, "text", None),
        data=getattr(resource, "blob", None)
    )


def tool_descriptor_from_mcp(server_name: str, tool: mcp_types.Tool) -> ToolDescriptor:
    annotations = getattr(tool, "annotations", None)
    return ToolDescriptor(
        server_name=server_name,
        name=tool.name,
        title=getattr(tool, "title", None),
        description=tool.description or "",
        input_schema=tool.inputSchema or {"type": "object", "properties": {}},
        annotations=annotations.model_dump(exclude_none=True) if annotations else {}
    )


class ServerConnection:
    """One live or attempted connection to a tool server."""

    def __init__(self, config: MCPServerConfig):
        self.config = config
        self.status = ServerStatus.DISCONNECTED
        self.last_error: Optional[str] = None
        self.client: Optional[Client] = None
        self.catalog: Optional[ServerCatalog] = None
        self.connected_at: Optional[datetime] = None
        self._exit_stack: Optional[AsyncExitStack] = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def is_connected(self) -> bool:
        return self.status == ServerStatus.CONNECTED and self.client is not None

    async def open(self, client: Client) -> None:
        """Enter the client's session and keep it open until ``close``."""
        stack = AsyncExitStack()
        try:
            await stack.enter_async_context(client)
        except BaseException:
            await stack.aclose()
            raise
        self.client = client
        self._exit_stack = stack

    async def close(self) -> None:
        stack, self._exit_stack = self._exit_stack, None
        self.client = None
        self.catalog = None
        if stack is not None:
            try:
                await stack.aclose()
            except Exception as e:
                logger.warning(f"Error while closing server {self.name}: {e}")

    def mark(self, status: ServerStatus, error: Optional[str] = None) -> None:
        self.status = status
        self.last_error = error
        if status == ServerStatus.CONNECTED:
            self.connected_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        catalog = self.catalog
        return {
            "name": self.name,
            "status": self.status.value,
            "transport": self.config.get_transport().value,
            "last_error": self.last_error,
            "connected_at": self.connected_at.isoformat() if self.connected_at else None,
            "tools": len(catalog.tools) if catalog else 0,
            "resources": len(catalog.resources) if catalog else 0,
            "prompts": len(catalog.prompts) if catalog else 0,
        }


class MCPServerManager:
    """
    Owner of every tool server connection and the shared tool catalog.

    This class handles:
    - Connecting to every configured server, tolerating partial failure
    - Tool, resource and prompt discovery into the tool registry
    - Routing tool calls, resource reads and prompt renders to a server
    - Teardown of all connections

    Catalog reads never block and always see a complete snapshot; only
    ``initialize``, ``refresh_all``/``refresh_server`` and ``close_all``
    change it. There is no automatic reconnect: call ``refresh_all``.

    Usage:
        config = {
            "mcpServers": {
                "notepad": {
                    "command": "python",
                    "args": ["./notepad_mcp_server.py"]
                },
                "weather": {
                    "url": "https://weather-api.example.com/mcp"
                }
            }
        }
        async with MCPServerManager() as manager:
            await manager.initialize(config)
            result = await manager.call_tool("notepad", "notepad_read", {})
    """

    def __init__(
        self,
        client_factory: Optional[ClientFactory] = None,
        registry: Optional[MCPToolRegistry] = None
    ):
        self._client_factory = client_factory or default_client_factory
        self._registry = registry or MCPToolRegistry()
        self._config = MCPConfig()
        self._connections: Dict[str, ServerConnection] = {}
        self._lifecycle_lock = asyncio.Lock()
        self._initialized = False

        # Metrics
        self._total_requests = 0
        self._total_errors = 0

    @property
    def registry(self) -> MCPToolRegistry:
        return self._registry

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def __aenter__(self) -> "MCPServerManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close_all()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self, configuration: Union[MCPConfig, Dict[str, Any]]) -> Dict[str, ServerStatus]:
        """
        Connect to every configured server.

        Servers that fail to connect are recorded with their failure reason
        and left out of the catalog; the others are unaffected.

        Args:
            configuration: MCPConfig or ``{"mcpServers": {...}}`` dict

        Returns:
            Mapping of server name to resulting status

        Raises:
            ConfigurationError: If the configuration itself is malformed
        """
        config = MCPConfig.load(configuration)
        for problem in ConfigValidator().validate_mcp_config(config):
            logger.warning(f"MCP configuration: {problem}")

        async with self._lifecycle_lock:
            if self._connections:
                await self._close_connections()

            self._config = config
            self._connections = {
                name: ServerConnection(server) for name, server in config.servers.items()
            }
            for connection in self._connections.values():
                if not connection.config.enabled:
                    connection.mark(ServerStatus.DISABLED)

            await self._connect_in_order(
                [c for c in self._connections.values() if c.config.enabled]
            )
            self._initialized = True

        connected = sum(1 for c in self._connections.values() if c.is_connected)
        logger.info(
            f"MCPServerManager initialized: {connected}/{len(self._connections)} servers connected, "
            f"{len(self.get_all_tools())} tools available"
        )
        return {name: c.status for name, c in self._connections.items()}

    async def refresh_all(self) -> Dict[str, bool]:
        """
        Re-run discovery on every enabled server.

        Disconnected servers are reconnected. Each server's catalog is
        replaced on its own, so one failure does not undo another server's
        successful refresh.

        Returns:
            Mapping of server name to whether it is connected afterwards
        """
        async with self._lifecycle_lock:
            connections = [c for c in self._connections.values() if c.config.enabled]
            await self._connect_in_order(connections)

        results = {c.name: c.is_connected for c in connections}
        logger.info(f"Refreshed {len(results)} servers: {sum(results.values())} connected")
        return results

    async def refresh_server(self, server_name: str) -> bool:
        """Re-run discovery on one server. Returns whether it is connected afterwards."""
        connection = self._connections.get(server_name)
        if connection is None:
            raise ToolNotFoundError("*", server_name)
        if not connection.config.enabled:
            return False
        async with self._lifecycle_lock:
            await self._connect_in_order([connection])
        return connection.is_connected

    async def close_all(self) -> None:
        """Release every connection and clear the catalog. Idempotent."""
        async with self._lifecycle_lock:
            await self._close_connections()
            self._connections = {}
            self._config = MCPConfig()
            self._initialized = False
        logger.info("MCPServerManager closed all connections")

    async def _close_connections(self) -> None:
        await asyncio.gather(*(c.close() for c in self._connections.values()))
        for connection in self._connections.values():
            if connection.status != ServerStatus.DISABLED:
                connection.mark(ServerStatus.DISCONNECTED)
        self._registry.clear()

    async def _connect_in_order(self, connections: List[ServerConnection]) -> None:
        # Connect concurrently, but register catalogs in configuration order
        # so first-registered resolution does not depend on timing.
        catalogs = await asyncio.gather(*(self._connect(c) for c in connections))
        for connection, catalog in zip(connections, catalogs):
            if catalog is None:
                self._registry.remove(connection.name)
            else:
                self._registry.replace(catalog)

    async def _connect(self, connection: ServerConnection) -> Optional[ServerCatalog]:
        """Connect if needed and discover; returns the new catalog or None on failure."""
        if not connection.is_connected:
            reason = self._unsupported_reason(connection.config)
            if reason:
                connection.mark(ServerStatus.UNSUPPORTED, reason)
                logger.warning(f"Server {connection.name} unsupported: {reason}")
                return None

            connection.mark(ServerStatus.CONNECTING)
            try:
                await connection.open(self._client_factory(connection.config))
            except Exception as e:
                connection.mark(ServerStatus.ERROR, f"Connection failed: {e}")
                logger.warning(f"Failed to connect to server {connection.name}: {e}")
                return None

        try:
            catalog = await self._discover(connection.name, connection.client)
        except Exception as e:
            await connection.close()
            connection.mark(ServerStatus.ERROR, f"Discovery failed: {e}")
            logger.warning(f"Discovery failed on server {connection.name}: {e}")
            return None

        connection.catalog = catalog
        connection.mark(ServerStatus.CONNECTED)
        logger.info(f"Connected to server {connection.name} ({len(catalog.tools)} tools)")
        return catalog

    @staticmethod
    def _unsupported_reason(config: MCPServerConfig) -> Optional[str]:
        if config.get_transport() != TransportType.STDIO:
            return None
        command = config.command or ""
        if shutil.which(command) is None and not os.path.exists(command):
            return f"Command not found: {command}"
        return None

    async def _discover(self, server_name: str, client: Client) -> ServerCatalog:
        tools = await client.list_tools()

        # Resources and prompts are optional capabilities.
        try:
            resources = await client.list_resources()
        except McpError as e:
            logger.debug(f"Server {server_name} does not list resources: {e}")
            resources = []
        try:
            prompts = await client.list_prompts()
        except McpError as e:
            logger.debug(f"Server {server_name} does not list prompts: {e}")
            prompts = []

        return ServerCatalog.build(
            server_name,
            tools=[tool_descriptor_from_mcp(server_name, tool) for tool in tools],
            resources=[
                ResourceDescriptor(
                    server_name=server_name,
                    uri=str(resource.uri),
                    name=resource.name,
                    description=resource.description,
                    mime_type=resource.mimeType
                )
                for resource in resources
            ],
            prompts=[
                PromptDescriptor(
                    server_name=server_name,
                    name=prompt.name,
                    description=prompt.description,
                    arguments=[arg.model_dump(exclude_none=True) for arg in (prompt.arguments or [])]
                )
                for prompt in prompts
            ]
        )

    # ------------------------------------------------------------------
    # Catalog reads
    # ------------------------------------------------------------------

    def get_all_tools(self) -> List[ToolDescriptor]:
        """Snapshot of every tool on every connected server."""
        return self._registry.get_all_tools()

    def get_all_resources(self) -> List[ResourceDescriptor]:
        return self._registry.get_all_resources()

    def get_all_prompts(self) -> List[PromptDescriptor]:
        return self._registry.get_all_prompts()

    def get_tools_by_server(self, server_name: str) -> List[ToolDescriptor]:
        catalog = self._registry.get_catalog(server_name)
        return list(catalog.tools) if catalog else []

    def list_resources(self, server_name: Optional[str] = None) -> List[ResourceDescriptor]:
        """Resources of one server, or of all servers when no name is given."""
        if server_name is None:
            return self.get_all_resources()
        catalog = self._registry.get_catalog(server_name)
        return list(catalog.resources) if catalog else []

    def list_prompts(self, server_name: Optional[str] = None) -> List[PromptDescriptor]:
        """Prompts of one server, or of all servers when no name is given."""
        if server_name is None:
            return self.get_all_prompts()
        catalog = self._registry.get_catalog(server_name)
        return list(catalog.prompts) if catalog else []

    def get_tool(self, tool_id: str) -> Optional[ToolDescriptor]:
        return self._registry.get_tool(tool_id)

    def find_server_for_tool(self, tool_name: str) -> Optional[str]:
        """
        Resolve a bare tool name to its owning server.

        When several servers expose the same name the first registered one
        wins, following configuration order. Address the tool by
        ``server:tool`` to avoid the ambiguity.
        """
        return self._registry.find_server_for_tool(tool_name)

    def get_server(self, server_name: str) -> Optional[ServerConnection]:
        return self._connections.get(server_name)

    def get_servers(self) -> List[ServerConnection]:
        return list(self._connections.values())

    def get_connected_servers(self) -> List[str]:
        return [name for name, c in self._connections.items() if c.is_connected]

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def _require_connection(self, server_name: str, tool_name: str = "*") -> ServerConnection:
        connection = self._connections.get(server_name)
        if connection is None:
            raise ToolNotFoundError(tool_name, server_name)
        if not connection.is_connected or not connection.client.is_connected():
            raise ServerUnavailableError(server_name, connection.last_error)
        return connection

    async def call_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: Optional[Dict[str, Any]] = None
    ) -> ToolCallResult:
        """
        Invoke a tool on the named server.

        Args:
            server_name: Owning server
            tool_name: Bare tool name
            arguments: Tool arguments

        Returns:
            The tool result; an application-level failure has ``is_error=True``

        Raises:
            ToolNotFoundError: If the server or tool is unknown
            ServerUnavailableError: If the connection is down
        """
        connection = self._require_connection(server_name, tool_name)
        catalog = connection.catalog
        if catalog is None or catalog.get_tool(tool_name) is None:
            raise ToolNotFoundError(tool_name, server_name)

        self._total_requests += 1
        logger.debug(f"Calling tool {server_name}:{tool_name} with {arguments}")
        try:
            raw = await connection.client.call_tool_mcp(tool_name, arguments or {})
        except McpError as e:
            # The server answered with a protocol error: still a tool-level failure.
            self._total_errors += 1
            logger.warning(f"Tool {server_name}:{tool_name} returned protocol error: {e}")
            return ToolCallResult.error(str(e), server_name=server_name, tool_name=tool_name)
        except Exception as e:
            self._total_errors += 1
            logger.error(f"Tool call {server_name}:{tool_name} failed in transport: {e}")
            raise ServerUnavailableError(server_name, str(e)) from e

        result = ToolCallResult(
            content=[content_block_from_mcp(item) for item in raw.content],
            is_error=bool(raw.isError),
            server_name=server_name,
            tool_name=tool_name
        )
        if result.is_error:
            self._total_errors += 1
            logger.warning(f"Tool {server_name}:{tool_name} reported an error: {result.text}")
        return result

    async def read_resource(self, server_name: str, uri: str) -> List[ContentBlock]:
        """Read a resource from the named server."""
        connection = self._require_connection(server_name, uri)
        try:
            contents = await connection.client.read_resource(uri)
        except McpError as e:
            raise ToolNotFoundError(uri, server_name) from e
        except Exception as e:
            raise ServerUnavailableError(server_name, str(e)) from e
        return [resource_block_from_mcp(item) for item in contents]

    async def get_prompt(
        self,
        server_name: str,
        prompt_name: str,
        arguments: Optional[Dict[str, Any]] = None
    ) -> List[PromptMessage]:
        """Render a prompt from the named server."""
        connection = self._require_connection(server_name, prompt_name)
        try:
            rendered = await connection.client.get_prompt(prompt_name, arguments or {})
        except McpError as e:
            raise ToolNotFoundError(prompt_name, server_name) from e
        except Exception as e:
            raise ServerUnavailableError(server_name, str(e)) from e
        return [
            PromptMessage(role=str(message.role), content=content_block_from_mcp(message.content))
            for message in rendered.messages
        ]

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_statistics(self) -> Dict[str, Any]:
        """Counts of servers and catalog entries plus per-server status."""
        return {
            "total_servers": len(self._connections),
            "connected_servers": len(self.get_connected_servers()),
            "total_tools": len(self.get_all_tools()),
            "total_resources": len(self.get_all_resources()),
            "total_prompts": len(self.get_all_prompts()),
            "servers": {name: c.to_dict() for name, c in self._connections.items()},
        }

    def get_metrics(self) -> Dict[str, Any]:
        """Get manager metrics."""
        return {
            "total_requests": self._total_requests,
            "total_errors": self._total_errors,
            "error_rate": self._total_errors / max(self._total_requests, 1),
            "total_tools": len(self.get_all_tools()),
            "total_servers": len(self._connections),
            "initialized": self._initialized
        }
