"""Agent Registry - agent registration and lookup.

The coordinator owns a single registry and mutates it only between turns;
every listing returns a fresh list so callers never hold a live reference.
"""

from __future__ import annotations

from typing import Any

from agent_delegation.agents.base import Agent
from agent_delegation.models import AgentDescriptor
from agent_delegation.utils.exceptions import (
    AgentAlreadyExistsError,
    AgentNotFoundError,
)


class AgentRegistry:
    """Registry for managing agents keyed by descriptor id."""

    def __init__(self) -> None:
        self._agents: dict[str, Agent] = {}

    def register(self, agent: Agent) -> AgentDescriptor:
        """Register an agent.

        Args:
            agent: The agent to register.

        Returns:
            The registered agent's descriptor.

        Raises:
            AgentAlreadyExistsError: If an agent with the same ID already exists.
        """
        if agent.id in self._agents:
            raise AgentAlreadyExistsError(agent.id)
        self._agents[agent.id] = agent
        return agent.descriptor

    def unregister(self, agent_id: str) -> bool:
        """Unregister an agent.

        Returns:
            True if the agent was unregistered, False if not found.
        """
        if agent_id in self._agents:
            del self._agents[agent_id]
            return True
        return False

    def get(self, agent_id: str) -> Agent:
        """Get an agent by ID.

        Raises:
            AgentNotFoundError: If the agent is not found.
        """
        if agent_id not in self._agents:
            raise AgentNotFoundError(agent_id)
        return self._agents[agent_id]

    def find(self, agent_id: str) -> Agent | None:
        """Get an agent by ID, or None if it is not registered."""
        return self._agents.get(agent_id)

    def list_descriptors(self, active_only: bool = False) -> list[AgentDescriptor]:
        """List descriptors of registered agents in registration order."""
        return [
            agent.descriptor
            for agent in self._agents.values()
            if agent.is_active or not active_only
        ]

    def find_by_role(self, *keywords: str) -> list[AgentDescriptor]:
        """Find active agents whose role contains any of the keywords."""
        return [
            descriptor
            for descriptor in self.list_descriptors(active_only=True)
            if descriptor.has_role_keyword(*keywords)
        ]

    def find_by_tool(self, tool_name: str) -> list[AgentDescriptor]:
        """Find active agents that expose a tool."""
        return [
            descriptor
            for descriptor in self.list_descriptors(active_only=True)
            if descriptor.has_tool(tool_name)
        ]

    async def health_check_all(self) -> dict[str, dict[str, Any]]:
        """Perform health check on all registered agents.

        Returns:
            Dictionary mapping agent IDs to their health check results.
        """
        results: dict[str, dict[str, Any]] = {}
        for agent_id, agent in list(self._agents.items()):
            results[agent_id] = await agent.health_check()
        return results

    def __len__(self) -> int:
        """Return the number of registered agents."""
        return len(self._agents)

    def __contains__(self, agent_id: object) -> bool:
        """Check if an agent is registered."""
        return agent_id in self._agents
