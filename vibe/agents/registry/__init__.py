"""
Registry package for looking up the agents of one process.
"""

from .agent_registry import AgentRegistry

__all__ = [
    "AgentRegistry",
]
