"""
Tool registry holding per-server catalogs of tools, resources and prompts.

The registry is a leaf component: it knows nothing about agents or
connections. Catalogs are immutable snapshots; every update replaces the
whole mapping so readers never observe a half-updated catalog.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Iterable, List, Optional, Tuple

from ..core.models import PromptDescriptor, ResourceDescriptor, ToolDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServerCatalog:
    """Everything discovered on one server at one point in time."""
    server_name: str
    tools: Tuple[ToolDescriptor, ...] = ()
    resources: Tuple[ResourceDescriptor, ...] = ()
    prompts: Tuple[PromptDescriptor, ...] = ()
    discovered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def build(
        cls,
        server_name: str,
        tools: Iterable[ToolDescriptor] = (),
        resources: Iterable[ResourceDescriptor] = (),
        prompts: Iterable[PromptDescriptor] = ()
    ) -> "ServerCatalog":
        """Build a catalog, dropping repeated tool names after the first."""
        unique_tools: List[ToolDescriptor] = []
        seen = set()
        for tool in tools:
            if tool.server_name != server_name:
                raise ValueError(
                    f"Tool {tool.tool_id} does not belong to server {server_name}"
                )
            if tool.name in seen:
                logger.warning(f"Server {server_name} listed tool {tool.name} twice; keeping the first")
                continue
            seen.add(tool.name)
            unique_tools.append(tool)
        return cls(
            server_name=server_name,
            tools=tuple(unique_tools),
            resources=tuple(resources),
            prompts=tuple(prompts)
        )

    def get_tool(self, tool_name: str) -> Optional[ToolDescriptor]:
        for tool in self.tools:
            if tool.name == tool_name:
                return tool
        return None


class MCPToolRegistry:
    """Registry of server catalogs in registration order.

    A server keeps its original position when its catalog is replaced, so
    resolution of a bare tool name shared by several servers always favors
    the server that was registered first. That ambiguity is a known
    limitation: callers that care should address tools by ``server:tool``.
    """

    def __init__(self):
        self._catalogs: Dict[str, ServerCatalog] = {}
        self._lock = Lock()

    def replace(self, catalog: ServerCatalog) -> None:
        """Insert or atomically replace one server's catalog."""
        with self._lock:
            catalogs = dict(self._catalogs)
            catalogs[catalog.server_name] = catalog
            self._catalogs = catalogs
        logger.debug(
            f"Catalog for {catalog.server_name}: {len(catalog.tools)} tools, "
            f"{len(catalog.resources)} resources, {len(catalog.prompts)} prompts"
        )

    def remove(self, server_name: str) -> bool:
        """Drop a server's catalog. Returns False when it was not registered."""
        with self._lock:
            if server_name not in self._catalogs:
                return False
            catalogs = dict(self._catalogs)
            del catalogs[server_name]
            self._catalogs = catalogs
        return True

    def clear(self) -> None:
        with self._lock:
            self._catalogs = {}

    def snapshot(self) -> Dict[str, ServerCatalog]:
        """Current catalogs; the returned mapping is never mutated afterwards."""
        return self._catalogs

    def get_catalog(self, server_name: str) -> Optional[ServerCatalog]:
        return self._catalogs.get(server_name)

    def server_names(self) -> List[str]:
        return list(self._catalogs.keys())

    def get_all_tools(self) -> List[ToolDescriptor]:
        return [tool for catalog in self._catalogs.values() for tool in catalog.tools]

    def get_all_resources(self) -> List[ResourceDescriptor]:
        return [res for catalog in self._catalogs.values() for res in catalog.resources]

    def get_all_prompts(self) -> List[PromptDescriptor]:
        return [prompt for catalog in self._catalogs.values() for prompt in catalog.prompts]

    def get_tool(self, tool_id: str) -> Optional[ToolDescriptor]:
        """Look up a tool by its ``server:tool`` id."""
        server_name, sep, tool_name = tool_id.partition(":")
        if not sep:
            return None
        catalog = self._catalogs.get(server_name)
        return catalog.get_tool(tool_name) if catalog else None

    def find_server_for_tool(self, tool_name: str) -> Optional[str]:
        """Resolve a bare tool name to the first registered server exposing it."""
        for server_name, catalog in self._catalogs.items():
            if catalog.get_tool(tool_name) is not None:
                return server_name
        return None

    def find_servers_for_tool(self, tool_name: str) -> List[str]:
        """All servers exposing a bare tool name, in registration order."""
        return [
            server_name for server_name, catalog in self._catalogs.items()
            if catalog.get_tool(tool_name) is not None
        ]

    def __len__(self) -> int:
        return len(self._catalogs)

    def __contains__(self, server_name: object) -> bool:
        return server_name in self._catalogs
