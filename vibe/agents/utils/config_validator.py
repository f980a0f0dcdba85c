"""
Configuration validator for the agent runtime.

This module provides validation utilities for tool server configurations,
persisted agent records and runtime settings. Validators report problems
as lists of messages instead of raising.
"""

import logging
from typing import Any, Dict, List, Union

from pydantic import ValidationError

from ..core.enums import TransportType
from ..core.models import AgentRecord, MCPConfig, MCPServerConfig, RuntimeSettings

logger = logging.getLogger(__name__)


class ConfigValidator:
    """Validator for agent runtime configurations."""

    def __init__(self):
        # Validation rules
        self._max_agent_name_length = 100
        self._min_temperature = 0.0
        self._max_temperature = 2.0
        self._min_max_tokens = 100
        self._max_max_tokens = 32000

    def validate_mcp_config(self, config: Union[MCPConfig, Dict[str, Any]]) -> List[str]:
        """Validate a tool server configuration.

        Args:
            config: MCPConfig or ``{"mcpServers": {...}}`` dict

        Returns:
            List of validation errors (empty if valid)
        """
        if not isinstance(config, MCPConfig):
            if not isinstance(config, dict):
                return [f"Configuration must be a mapping, got {type(config).__name__}"]
            try:
                config = MCPConfig.model_validate(config)
            except ValidationError as e:
                return [self._format_error(error) for error in e.errors(include_url=False)]

        errors = []
        if not config.servers:
            errors.append("At least one server must be configured")

        for name, server in config.servers.items():
            for error in self.validate_server_config(server):
                errors.append(f"Server {name}: {error}")

        return errors

    def validate_server_config(self, server: MCPServerConfig) -> List[str]:
        """Validate one server entry.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        transport = server.get_transport()
        if transport == TransportType.STDIO:
            if not server.command:
                errors.append("stdio servers require a command")
            if server.headers:
                errors.append("HTTP headers are only used by network transports")
        else:
            if not server.url:
                errors.append(f"{transport} servers require a url")
            elif not server.url.startswith(("http://", "https://")):
                errors.append(f"Server url must be http or https: {server.url}")
            if server.env:
                errors.append("Environment variables are only used by stdio servers")

        return errors

    def validate_agent_record(self, record: AgentRecord) -> List[str]:
        """Validate a persisted agent record.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not record.name or not record.name.strip():
            errors.append("Agent name is required")
        elif len(record.name) > self._max_agent_name_length:
            errors.append(f"Agent name must be {self._max_agent_name_length} characters or less")

        if not record.system_prompt or not record.system_prompt.strip():
            errors.append("System prompt is required")

        if not (self._min_temperature <= record.temperature <= self._max_temperature):
            errors.append(f"Temperature must be between {self._min_temperature} and {self._max_temperature}")

        if not (self._min_max_tokens <= record.max_tokens <= self._max_max_tokens):
            errors.append(f"Max tokens must be between {self._min_max_tokens} and {self._max_max_tokens}")

        if len(set(record.context_files)) != len(record.context_files):
            errors.append("Context files must not contain duplicates")

        for tool_id in record.tool_preferences.tools:
            if ":" not in tool_id:
                errors.append(f"Tool preference key must be server:tool, got {tool_id}")

        return errors

    def validate_runtime_settings(self, settings: RuntimeSettings) -> List[str]:
        """Validate relationships between runtime settings.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        if settings.sync_base_delay_seconds > settings.sync_backoff_ceiling_seconds:
            errors.append("Sync base delay cannot exceed the backoff ceiling")
        if settings.min_refresh_interval_seconds > settings.poll_interval_seconds * 10:
            errors.append("Minimum refresh interval is more than ten poll intervals")
        return errors

    @staticmethod
    def _format_error(error: Dict[str, Any]) -> str:
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        return f"{location}: {message}" if location else message


def validate_mcp_config(config: Union[MCPConfig, Dict[str, Any]]) -> List[str]:
    """Convenience wrapper around ``ConfigValidator.validate_mcp_config``."""
    return ConfigValidator().validate_mcp_config(config)
