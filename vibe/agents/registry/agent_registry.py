"""
Agent registry for managing the agents of one process.

This module provides a centralized registry for registering, looking up
and disposing agent orchestrators by id or name.
"""

import logging
from threading import Lock
from typing import Any, Dict, List, Optional

from ..coordinator.agent_orchestrator import AgentOrchestrator
from ..core.exceptions import AgentNotFoundError

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Registry for managing agent orchestrators.

    This class provides a centralized way to register and look up agents.
    It supports:
    - Registration and unregistration by agent id
    - Lookup by id or case-insensitive name
    - Disposal of every registered agent
    - Thread-safe operations
    """

    def __init__(self):
        self._agents: Dict[str, AgentOrchestrator] = {}
        self._lock = Lock()

    def register(self, agent: AgentOrchestrator) -> None:
        """Register an agent.

        Args:
            agent: The agent to register

        Raises:
            ValueError: If another agent already uses the same name
        """
        with self._lock:
            existing = self._find_by_name(agent.name)
            if existing is not None and existing.id != agent.id:
                raise ValueError(f"An agent named {agent.name} is already registered")

            if agent.id in self._agents:
                logger.warning(f"Overriding existing agent: {agent.id}")

            self._agents[agent.id] = agent
            logger.info(f"Registered agent: {agent.name} ({agent.id})")

    def unregister(self, agent_id: str, dispose: bool = True) -> bool:
        """Unregister an agent.

        Args:
            agent_id: Id of the agent to unregister
            dispose: Whether to dispose the agent as well

        Returns:
            True if the agent was unregistered, False if not found
        """
        with self._lock:
            agent = self._agents.pop(agent_id, None)
        if agent is None:
            return False
        if dispose:
            agent.dispose()
        logger.info(f"Unregistered agent: {agent.name} ({agent_id})")
        return True

    def get(self, agent_id: str) -> Optional[AgentOrchestrator]:
        return self._agents.get(agent_id)

    def require(self, agent_id: str) -> AgentOrchestrator:
        """Get an agent or raise AgentNotFoundError."""
        agent = self._agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(f"Agent not found: {agent_id}", agent_id=agent_id)
        return agent

    def find_by_name(self, name: str) -> Optional[AgentOrchestrator]:
        with self._lock:
            return self._find_by_name(name)

    def _find_by_name(self, name: str) -> Optional[AgentOrchestrator]:
        if not name:
            return None
        wanted = name.strip().lower()
        for agent in self._agents.values():
            if agent.name.lower() == wanted:
                return agent
        return None

    def list_agents(self) -> List[AgentOrchestrator]:
        return list(self._agents.values())

    def is_registered(self, agent_id: str) -> bool:
        return agent_id in self._agents

    def get_agent_info(self) -> List[Dict[str, Any]]:
        """Summary of every registered agent."""
        return [
            {
                "id": agent.id,
                "name": agent.name,
                "status": agent.status.status.value,
                "error_message": agent.status.error_message,
                "inbox": len(agent.inbox),
                "to_do": len(agent.to_do_list),
            }
            for agent in self._agents.values()
        ]

    def dispose_all(self) -> None:
        with self._lock:
            agents = list(self._agents.values())
            self._agents = {}
        for agent in agents:
            agent.dispose()
        logger.info(f"Disposed {len(agents)} agents")

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents
