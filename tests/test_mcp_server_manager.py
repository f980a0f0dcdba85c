"""
Test cases for MCPServerManager.

Servers are in-process FastMCP instances connected through the client
factory, so the full protocol path is exercised without subprocesses.
"""

import pytest
from unittest.mock import AsyncMock, Mock

from mcp.shared.exceptions import McpError
from mcp.types import ErrorData

from vibe.agents.core.enums import ContentKind, ServerStatus
from vibe.agents.core.exceptions import (
    ConfigurationError, ServerUnavailableError, ToolNotFoundError
)
from vibe.agents.core.models import MCPServerConfig
from vibe.agents.tools.mcp_server_manager import MCPServerManager, default_client_factory


class TestMCPServerManagerLifecycle:
    """Test cases for connecting, refreshing and closing."""

    async def test_initialize_connects_all(self, server_manager):
        """Test that every reachable server is connected and discovered."""
        assert server_manager.is_initialized
        assert server_manager.get_connected_servers() == ["files", "backup", "notepad", "tasks"]
        tool_ids = {tool.tool_id for tool in server_manager.get_all_tools()}
        assert {"files:read", "files:fail", "backup:read", "backup:write",
                "notepad:notepad_read", "tasks:task_list_list"} <= tool_ids

    async def test_partial_failure(self, client_factory, mcp_config):
        """Test that one unreachable server does not affect the others."""
        mcp_config["mcpServers"]["broken"] = {"url": "http://localhost:9/mcp"}
        manager = MCPServerManager(client_factory=client_factory)
        try:
            statuses = await manager.initialize(mcp_config)
            assert statuses["broken"] == ServerStatus.ERROR
            assert statuses["files"] == ServerStatus.CONNECTED
            assert "connection refused" in manager.get_server("broken").last_error
            assert manager.get_tools_by_server("broken") == []
        finally:
            await manager.close_all()

    async def test_disabled_and_unsupported(self, client_factory):
        """Test that disabled servers are skipped and missing commands are unsupported."""
        manager = MCPServerManager(client_factory=client_factory)
        try:
            statuses = await manager.initialize({
                "mcpServers": {
                    "files": {"url": "http://localhost/files/mcp", "enabled": False},
                    "local": {"command": "vibe-no-such-command-xyz"}
                }
            })
            assert statuses == {"files": ServerStatus.DISABLED, "local": ServerStatus.UNSUPPORTED}
            assert manager.get_all_tools() == []
        finally:
            await manager.close_all()

    async def test_malformed_configuration(self, client_factory):
        """Test that malformed configuration raises ConfigurationError."""
        manager = MCPServerManager(client_factory=client_factory)
        with pytest.raises(ConfigurationError):
            await manager.initialize({"mcpServers": {"files": {}}})

    async def test_server_name_with_separator_rejected(self, client_factory):
        """Test that a server name containing ':' cannot produce ambiguous tool ids."""
        manager = MCPServerManager(client_factory=client_factory)
        with pytest.raises(ConfigurationError):
            await manager.initialize({
                "mcpServers": {
                    "files:backup": {"url": "http://localhost:8000/files/mcp"},
                    "files": {"url": "http://localhost:8000/backup/mcp"}
                }
            })
        assert not manager.is_initialized
        assert manager.get_all_tools() == []

    async def test_refresh_all(self, server_manager):
        """Test that refresh re-discovers every server."""
        results = await server_manager.refresh_all()
        assert results == {"files": True, "backup": True, "notepad": True, "tasks": True}
        assert server_manager.find_server_for_tool("read") == "files"

    async def test_refresh_server(self, server_manager, fake_servers):
        """Test that refreshing one server picks up new tools."""
        @fake_servers["backup"].tool
        def stat(path: str) -> str:
            """Stat a file."""
            return "ok"

        assert server_manager.get_tool("backup:stat") is None
        assert await server_manager.refresh_server("backup")
        assert server_manager.get_tool("backup:stat") is not None

    async def test_refresh_unknown_server(self, server_manager):
        """Test that refreshing an unknown server raises."""
        with pytest.raises(ToolNotFoundError):
            await server_manager.refresh_server("nope")

    async def test_close_all_is_idempotent(self, server_manager):
        """Test that closing twice is safe and empties the catalog."""
        await server_manager.close_all()
        await server_manager.close_all()
        assert server_manager.get_all_tools() == []
        assert not server_manager.is_initialized

    async def test_async_context_manager(self, client_factory, mcp_config):
        """Test that leaving the context closes every connection."""
        async with MCPServerManager(client_factory=client_factory) as manager:
            await manager.initialize(mcp_config)
            assert manager.get_connected_servers()
        assert manager.get_connected_servers() == []


class TestMCPServerManagerCalls:
    """Test cases for tool calls, resources and prompts."""

    async def test_call_tool(self, server_manager):
        """Test a successful tool call."""
        result = await server_manager.call_tool("files", "read", {"path": "a.txt"})
        assert not result.is_error
        assert result.text == "contents of a.txt"
        assert result.content[0].kind == ContentKind.TEXT
        assert result.server_name == "files"

    async def test_call_tool_routes_by_server(self, server_manager):
        """Test that the same bare name reaches the addressed server."""
        result = await server_manager.call_tool("backup", "read", {"path": "a.txt"})
        assert result.text == "backup of a.txt"

    async def test_tool_error_is_result(self, server_manager):
        """Test that a tool failure is returned, not raised."""
        result = await server_manager.call_tool("files", "fail", {"reason": "disk full"})
        assert result.is_error
        assert "disk full" in result.text
        assert server_manager.get_metrics()["total_errors"] == 1

    async def test_unknown_tool(self, server_manager):
        """Test that unknown servers and tools raise ToolNotFoundError."""
        with pytest.raises(ToolNotFoundError):
            await server_manager.call_tool("files", "write", {})
        with pytest.raises(ToolNotFoundError):
            await server_manager.call_tool("nope", "read", {})

    async def test_unavailable_server(self, client_factory, mcp_config):
        """Test that calling a failed server raises ServerUnavailableError."""
        mcp_config["mcpServers"]["broken"] = {"url": "http://localhost:9/mcp"}
        manager = MCPServerManager(client_factory=client_factory)
        try:
            await manager.initialize(mcp_config)
            with pytest.raises(ServerUnavailableError) as exc_info:
                await manager.call_tool("broken", "read", {})
            assert exc_info.value.error_code == "SERVER_UNAVAILABLE"
        finally:
            await manager.close_all()

    async def test_protocol_error_is_result(self, server_manager):
        """Test that an MCP protocol error becomes an error result."""
        connection = server_manager.get_server("files")
        real_client = connection.client
        fake_client = Mock()
        fake_client.is_connected = Mock(return_value=True)
        fake_client.call_tool_mcp = AsyncMock(
            side_effect=McpError(ErrorData(code=-32602, message="Invalid params"))
        )
        connection.client = fake_client
        try:
            result = await server_manager.call_tool("files", "read", {})
        finally:
            connection.client = real_client
        assert result.is_error
        assert "Invalid params" in result.text

    async def test_transport_failure_raises(self, server_manager):
        """Test that a transport failure raises ServerUnavailableError."""
        connection = server_manager.get_server("files")
        real_client = connection.client
        fake_client = Mock()
        fake_client.is_connected = Mock(return_value=True)
        fake_client.call_tool_mcp = AsyncMock(side_effect=RuntimeError("pipe closed"))
        connection.client = fake_client
        try:
            with pytest.raises(ServerUnavailableError):
                await server_manager.call_tool("files", "read", {})
        finally:
            connection.client = real_client

    async def test_resources(self, server_manager):
        """Test resource discovery and reading."""
        resources = server_manager.list_resources("files")
        assert [r.uri for r in resources] == ["file:///docs/readme.md"]
        assert server_manager.list_resources("backup") == []

        blocks = await server_manager.read_resource("files", "file:///docs/readme.md")
        assert blocks[0].kind == ContentKind.RESOURCE
        assert blocks[0].text == "# Readme"

    async def test_prompts(self, server_manager):
        """Test prompt discovery and rendering."""
        assert [p.name for p in server_manager.list_prompts("files")] == ["summarize"]

        messages = await server_manager.get_prompt("files", "summarize", {"text": "hello"})
        assert messages[0].role == "user"
        assert messages[0].content.text == "Please summarize: hello"


class TestMCPServerManagerDiagnostics:
    """Test cases for statistics and metrics."""

    async def test_statistics(self, server_manager):
        """Test per-server statistics."""
        stats = server_manager.get_statistics()
        assert stats["total_servers"] == 4
        assert stats["connected_servers"] == 4
        assert stats["servers"]["files"]["status"] == "connected"
        assert stats["servers"]["files"]["resources"] == 1

    async def test_metrics(self, server_manager):
        """Test request counting."""
        await server_manager.call_tool("files", "read", {"path": "x"})
        metrics = server_manager.get_metrics()
        assert metrics["total_requests"] == 1
        assert metrics["initialized"] is True


class TestDefaultClientFactory:
    """Test cases for the default client factory."""

    def test_builds_client(self):
        """Test that a client is built for a url server."""
        client = default_client_factory(MCPServerConfig(name="weather", url="https://example.com/mcp"))
        assert client is not None
        assert not client.is_connected()
