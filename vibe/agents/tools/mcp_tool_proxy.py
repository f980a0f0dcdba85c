"""
MCP Tool Proxy for presenting MCP tools to the completion dependency.

This module translates tool descriptors into function definitions that
completion APIs accept, maps function names back to ``server:tool`` ids,
and validates call arguments against each tool's JSON schema.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..core.models import ToolDescriptor

logger = logging.getLogger(__name__)

# Completion APIs only accept [a-zA-Z0-9_-]{1,64} as function names.
_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
_MAX_FUNCTION_NAME_LENGTH = 64


def to_api_function_name(tool_id: str) -> str:
    """Convert ``server:tool`` into an API-safe function name (``server_tool``)."""
    name = _INVALID_NAME_CHARS.sub("_", tool_id.replace(":", "_", 1))
    return name[:_MAX_FUNCTION_NAME_LENGTH]


def from_api_function_name(function_name: str) -> str:
    """Best-effort inverse of ``to_api_function_name``.

    The first underscore becomes the separator, so this is wrong for server
    names that contain underscores. Prefer ``MCPToolProxy.resolve``, which
    looks the name up among the offered tools.
    """
    return function_name.replace("_", ":", 1)


class MCPToolProxy:
    """
    Proxy between an agent's visible tools and the completion dependency.

    The proxy is built from the tools an agent may use; function names sent
    to the model are resolved back only against that set.
    """

    def __init__(self, tools: Iterable[ToolDescriptor] = ()):
        self._by_function_name: Dict[str, ToolDescriptor] = {}
        for tool in tools:
            function_name = to_api_function_name(tool.tool_id)
            if function_name in self._by_function_name:
                existing = self._by_function_name[function_name]
                logger.warning(
                    f"Function name {function_name} maps to both {existing.tool_id} "
                    f"and {tool.tool_id}; keeping {existing.tool_id}"
                )
                continue
            self._by_function_name[function_name] = tool

    @property
    def tools(self) -> List[ToolDescriptor]:
        return list(self._by_function_name.values())

    def convert_tool_definition(self, tool: ToolDescriptor) -> Dict[str, Any]:
        """Convert a tool descriptor to a function definition."""
        schema = dict(tool.input_schema or {})
        schema.setdefault("type", "object")
        schema.setdefault("properties", {})
        return {
            "type": "function",
            "function": {
                "name": to_api_function_name(tool.tool_id),
                "description": tool.description or tool.title or tool.name,
                "parameters": schema
            }
        }

    def get_function_definitions(self) -> List[Dict[str, Any]]:
        return [self.convert_tool_definition(tool) for tool in self._by_function_name.values()]

    def resolve(self, function_name: str) -> Optional[ToolDescriptor]:
        """Find the offered tool a function name refers to.

        Accepts the API name (``server_tool``), the tool id (``server:tool``)
        or, when unambiguous among offered tools, the bare tool name.
        """
        tool = self._by_function_name.get(function_name)
        if tool is not None:
            return tool
        for candidate in self._by_function_name.values():
            if candidate.tool_id == function_name:
                return candidate
        bare = [c for c in self._by_function_name.values() if c.name == function_name]
        if len(bare) == 1:
            return bare[0]
        return None

    def validate_arguments(self, tool: ToolDescriptor, arguments: Dict[str, Any]) -> List[str]:
        """
        Validate arguments against the tool's input schema.

        Only required keys and primitive JSON types are checked; the server
        remains the authority on anything deeper.

        Returns:
            List of problems (empty if valid)
        """
        problems = []
        schema = tool.input_schema or {}

        for field in schema.get("required", []):
            if field not in arguments:
                problems.append(f"Missing required field: {field}")

        properties = schema.get("properties", {})
        for field, value in arguments.items():
            expected_type = properties.get(field, {}).get("type")
            if expected_type and not self._validate_type(value, expected_type):
                problems.append(f"Invalid type for field {field}: expected {expected_type}")

        return problems

    def _validate_type(self, value: Any, expected_type: Any) -> bool:
        """Validate value type against a JSON Schema type (or list of types)."""
        if isinstance(expected_type, list):
            return any(self._validate_type(value, t) for t in expected_type)

        type_mapping: Dict[str, Tuple[type, ...]] = {
            "string": (str,),
            "number": (int, float),
            "integer": (int,),
            "boolean": (bool,),
            "array": (list,),
            "object": (dict,),
            "null": (type(None),),
        }

        expected_python_type = type_mapping.get(expected_type)
        if expected_python_type is None:
            return True  # Unknown type, allow it
        if isinstance(value, bool) and expected_type in ("number", "integer"):
            return False
        return isinstance(value, expected_python_type)
