"""
Utility helpers for the agent runtime.
"""

from .config_validator import ConfigValidator, validate_mcp_config

__all__ = [
    "ConfigValidator",
    "validate_mcp_config",
]
