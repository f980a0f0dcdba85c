"""
Pytest configuration and shared fixtures.

This module provides in-process MCP servers, a scripted completion client
and factories for server managers and agents used across the test suite.
"""

import pytest
from typing import Any, Dict, List, Optional

from fastmcp import Client, FastMCP
from fastmcp.exceptions import ToolError

from vibe.agents.core.interfaces import CompletionClient
from vibe.agents.core.models import ChatMessage, MCPServerConfig, RuntimeSettings, ToolCall
from vibe.agents.coordinator.agent_orchestrator import AgentOrchestrator
from vibe.agents.conversation.transcript import TranscriptWriter
from vibe.agents.tools.mcp_server_manager import MCPServerManager


def build_files_server() -> FastMCP:
    server = FastMCP(name="files")

    @server.tool
    def read(path: str) -> str:
        """Read a file."""
        return f"contents of {path}"

    @server.tool
    def fail(reason: str = "boom") -> str:
        """Always fails."""
        raise ToolError(reason)

    @server.resource("file:///docs/readme.md")
    def readme() -> str:
        """Project readme."""
        return "# Readme"

    @server.prompt
    def summarize(text: str) -> str:
        """Summarize text."""
        return f"Please summarize: {text}"

    return server


def build_backup_server() -> FastMCP:
    server = FastMCP(name="backup")

    @server.tool
    def read(path: str) -> str:
        """Read a file from backup."""
        return f"backup of {path}"

    @server.tool
    def write(path: str, content: str) -> str:
        """Write a file to backup."""
        return f"wrote {len(content)} bytes to {path}"

    return server


def build_notepad_server(content: str = "remember the milk") -> FastMCP:
    server = FastMCP(name="notepad")

    @server.tool
    def notepad_read() -> str:
        """Read the notepad."""
        if not content:
            return "Your notepad is empty."
        return f"Notepad contents:\n\n{content}"

    return server


def build_task_server(tasks: Optional[List[str]] = None) -> FastMCP:
    server = FastMCP(name="tasks")
    items = list(tasks or [])

    @server.tool
    def task_list_list(status: str = "all") -> str:
        """List tasks."""
        if not items:
            return "Your task list is empty."
        return "\n".join(items)

    return server


class ScriptedCompletionClient(CompletionClient):
    """Completion client that replays prepared replies and records requests."""

    def __init__(self, replies: Optional[List[Any]] = None):
        self.replies = list(replies or [])
        self.requests: List[Dict[str, Any]] = []

    async def complete(self, messages, tools, temperature=None, max_tokens=None) -> ChatMessage:
        self.requests.append({"messages": messages, "tools": tools})
        if not self.replies:
            raise RuntimeError("No scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def tool_call(name: str, arguments: str = "{}", call_id: Optional[str] = None) -> ToolCall:
    """Build a model-side tool call."""
    if call_id:
        return ToolCall(id=call_id, name=name, arguments=arguments)
    return ToolCall(name=name, arguments=arguments)


@pytest.fixture
def fake_servers() -> Dict[str, FastMCP]:
    """In-process MCP servers keyed by configured server name."""
    return {
        "files": build_files_server(),
        "backup": build_backup_server(),
        "notepad": build_notepad_server(),
        "tasks": build_task_server(["Write report", "Call Bob"]),
    }


@pytest.fixture
def client_factory(fake_servers):
    """Client factory wiring configured servers to in-memory transports."""
    def _factory(config: MCPServerConfig) -> Client:
        if config.name not in fake_servers:
            raise ConnectionError(f"connection refused by {config.url}")
        return Client(fake_servers[config.name])
    return _factory


@pytest.fixture
def mcp_config(fake_servers) -> Dict[str, Any]:
    """Configuration listing every fake server in a fixed order."""
    return {
        "mcpServers": {
            name: {"url": f"http://localhost:8000/{name}/mcp"} for name in fake_servers
        }
    }


@pytest.fixture
async def server_manager(client_factory, mcp_config):
    """Initialized server manager connected to every fake server."""
    manager = MCPServerManager(client_factory=client_factory)
    await manager.initialize(mcp_config)
    yield manager
    await manager.close_all()


@pytest.fixture
def settings(tmp_path) -> RuntimeSettings:
    """Runtime settings writing transcripts into a temporary directory."""
    return RuntimeSettings(max_tool_rounds=4, transcript_dir=str(tmp_path / "logs"))


@pytest.fixture
def completion_client() -> ScriptedCompletionClient:
    return ScriptedCompletionClient()


@pytest.fixture
def agent_factory(server_manager, completion_client, settings):
    """Factory for agents sharing the fixture server manager."""
    def _create_agent(
        name: str = "Alice",
        system_prompt: str = "You keep the project on track.",
        **kwargs: Any
    ) -> AgentOrchestrator:
        kwargs.setdefault("completion_client", completion_client)
        kwargs.setdefault("transcript_writer", TranscriptWriter(settings.transcript_dir))
        return AgentOrchestrator(
            name=name,
            system_prompt=system_prompt,
            server_manager=server_manager,
            settings=settings,
            **kwargs
        )
    return _create_agent
