"""
Test cases for MCPToolProxy.
"""

import pytest

from vibe.agents.core.models import ToolDescriptor
from vibe.agents.tools.mcp_tool_proxy import (
    MCPToolProxy, from_api_function_name, to_api_function_name
)


@pytest.fixture
def read_tool():
    return ToolDescriptor(
        server_name="files",
        name="read",
        description="Read a file",
        input_schema={
            "type": "object",
            "properties": {
                "path": {"type": "string"},
                "limit": {"type": "integer"},
                "encoding": {"type": ["string", "null"]}
            },
            "required": ["path"]
        }
    )


@pytest.fixture
def proxy(read_tool):
    return MCPToolProxy([
        read_tool,
        ToolDescriptor(server_name="backup", name="read", description="Read a backup"),
        ToolDescriptor(server_name="backup", name="write", title="Write file"),
    ])


class TestFunctionNames:
    """Test cases for API function name conversion."""

    def test_to_api_function_name(self):
        """Test that the separator and invalid characters are replaced."""
        assert to_api_function_name("files:read") == "files_read"
        assert to_api_function_name("my.server:get item") == "my_server_get_item"
        assert len(to_api_function_name("s:" + "x" * 100)) == 64

    def test_from_api_function_name(self):
        """Test the best-effort inverse."""
        assert from_api_function_name("files_read") == "files:read"


class TestMCPToolProxy:
    """Test cases for MCPToolProxy."""

    def test_function_definitions(self, proxy):
        """Test conversion into function definitions."""
        definitions = proxy.get_function_definitions()
        names = [d["function"]["name"] for d in definitions]
        assert names == ["files_read", "backup_read", "backup_write"]

        read = definitions[0]
        assert read["type"] == "function"
        assert read["function"]["description"] == "Read a file"
        assert read["function"]["parameters"]["required"] == ["path"]

    def test_description_falls_back_to_title(self, proxy):
        """Test that tools without a description use their title."""
        write = proxy.get_function_definitions()[2]
        assert write["function"]["description"] == "Write file"
        assert write["function"]["parameters"] == {"type": "object", "properties": {}}

    def test_resolve(self, proxy):
        """Test resolving API names, tool ids and unique bare names."""
        assert proxy.resolve("files_read").tool_id == "files:read"
        assert proxy.resolve("backup:read").tool_id == "backup:read"
        assert proxy.resolve("write").tool_id == "backup:write"
        assert proxy.resolve("read") is None
        assert proxy.resolve("unknown") is None

    def test_colliding_function_names_keep_first(self):
        """Test that colliding sanitized names keep the first tool."""
        proxy = MCPToolProxy([
            ToolDescriptor(server_name="a", name="b_c"),
            ToolDescriptor(server_name="a_b", name="c"),
        ])
        assert len(proxy.tools) == 1
        assert proxy.resolve("a_b_c").tool_id == "a:b_c"

    def test_validate_arguments(self, proxy, read_tool):
        """Test schema checks for required keys and primitive types."""
        assert proxy.validate_arguments(read_tool, {"path": "x", "limit": 3}) == []
        assert proxy.validate_arguments(read_tool, {"path": "x", "encoding": None}) == []

        problems = proxy.validate_arguments(read_tool, {"limit": True})
        assert "Missing required field: path" in problems
        assert "Invalid type for field limit: expected integer" in problems
