"""Agent module - the agent runtime and its memory collaborator.

This module provides:
- Agent: a descriptor-driven persona that talks to a model backend
- AgentContext: per-call conversation id, prompt override and metadata
- MemoryStore: interface for conversation history storage
- InMemoryMemoryStore: process-local MemoryStore
"""

from agent_delegation.agents.memory import InMemoryMemoryStore, MemoryStore
from agent_delegation.agents.base import Agent, AgentContext

__all__ = [
    "Agent",
    "AgentContext",
    "MemoryStore",
    "InMemoryMemoryStore",
]
