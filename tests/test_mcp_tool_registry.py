"""
Test cases for the tool registry and server catalogs.
"""

import pytest

from vibe.agents.core.models import PromptDescriptor, ResourceDescriptor, ToolDescriptor
from vibe.agents.tools.mcp_tool_registry import MCPToolRegistry, ServerCatalog


def make_catalog(server_name, *tool_names):
    return ServerCatalog.build(
        server_name,
        tools=[ToolDescriptor(server_name=server_name, name=name) for name in tool_names]
    )


class TestServerCatalog:
    """Test cases for ServerCatalog."""

    def test_duplicate_tool_names_keep_first(self):
        """Test that a server listing a name twice keeps the first entry."""
        catalog = ServerCatalog.build("files", tools=[
            ToolDescriptor(server_name="files", name="read", description="first"),
            ToolDescriptor(server_name="files", name="read", description="second"),
        ])
        assert len(catalog.tools) == 1
        assert catalog.get_tool("read").description == "first"

    def test_foreign_tool_rejected(self):
        """Test that tools from another server are rejected."""
        with pytest.raises(ValueError):
            ServerCatalog.build("files", tools=[ToolDescriptor(server_name="other", name="read")])

    def test_resources_and_prompts(self):
        """Test that resources and prompts are kept."""
        catalog = ServerCatalog.build(
            "files",
            resources=[ResourceDescriptor(server_name="files", uri="file://readme", name="readme")],
            prompts=[PromptDescriptor(server_name="files", name="summarize")]
        )
        assert catalog.resources[0].resource_id == "files:file://readme"
        assert catalog.prompts[0].prompt_id == "files:summarize"


class TestMCPToolRegistry:
    """Test cases for MCPToolRegistry."""

    def test_replace_and_lookup(self):
        """Test registering catalogs and looking up tools."""
        registry = MCPToolRegistry()
        registry.replace(make_catalog("files", "read", "fail"))
        registry.replace(make_catalog("backup", "read", "write"))

        assert len(registry) == 2
        assert "files" in registry
        assert [t.tool_id for t in registry.get_all_tools()] == [
            "files:read", "files:fail", "backup:read", "backup:write"
        ]
        assert registry.get_tool("backup:write").name == "write"
        assert registry.get_tool("write") is None

    def test_first_registered_wins(self):
        """Test that a bare name resolves to the first registered server."""
        registry = MCPToolRegistry()
        registry.replace(make_catalog("files", "read"))
        registry.replace(make_catalog("backup", "read"))

        assert registry.find_server_for_tool("read") == "files"
        assert registry.find_servers_for_tool("read") == ["files", "backup"]

    def test_replace_keeps_position(self):
        """Test that replacing a catalog keeps its registration order."""
        registry = MCPToolRegistry()
        registry.replace(make_catalog("files", "read"))
        registry.replace(make_catalog("backup", "read"))
        registry.replace(make_catalog("files", "read", "stat"))

        assert registry.server_names() == ["files", "backup"]
        assert registry.find_server_for_tool("read") == "files"

    def test_snapshot_is_isolated(self):
        """Test that a snapshot does not change on later updates."""
        registry = MCPToolRegistry()
        registry.replace(make_catalog("files", "read"))
        snapshot = registry.snapshot()

        registry.replace(make_catalog("backup", "write"))
        registry.remove("files")

        assert list(snapshot) == ["files"]
        assert registry.server_names() == ["backup"]

    def test_remove_and_clear(self):
        """Test removing and clearing catalogs."""
        registry = MCPToolRegistry()
        registry.replace(make_catalog("files", "read"))
        assert registry.remove("files")
        assert not registry.remove("files")

        registry.replace(make_catalog("backup", "write"))
        registry.clear()
        assert len(registry) == 0
        assert registry.find_server_for_tool("write") is None
