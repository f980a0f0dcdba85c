"""
Tools package for the agent runtime.

This package provides MCP (Model Context Protocol) server management, the
shared tool registry and the bridge that presents tools to the model.
"""

from .mcp_server_manager import MCPServerManager, ServerConnection, default_client_factory
from .mcp_tool_registry import MCPToolRegistry, ServerCatalog
from .mcp_tool_proxy import MCPToolProxy, to_api_function_name, from_api_function_name

__all__ = [
    "MCPServerManager",
    "ServerConnection",
    "default_client_factory",
    "MCPToolRegistry",
    "ServerCatalog",
    "MCPToolProxy",
    "to_api_function_name",
    "from_api_function_name",
]
