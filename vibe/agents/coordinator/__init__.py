"""
Coordinator package containing the per-agent orchestrator.
"""

from .agent_orchestrator import AgentOrchestrator

__all__ = [
    "AgentOrchestrator",
]
