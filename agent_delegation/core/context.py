"""Conversation Context - per-conversation shared state.

Each conversation id owns one :class:`ConversationContext` holding participants,
goals, constraints, a shared knowledge map, the turn history and the
delegation history. Readers always return independent copies.

Nothing here serializes overlapping turns on the same conversation: two
concurrent turns may interleave their mutations at any await point.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from agent_delegation.models import DelegationRecord, Message, Response


class HistoryEntry(BaseModel):
    """One recorded turn: a message, the reply and who produced it."""

    message: Message
    response: Response
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    agent_id: str | None = None

    model_config = {"extra": "forbid"}


class ConversationContext:
    """Mutable state of one conversation."""

    def __init__(self, conversation_id: str) -> None:
        self._conversation_id = conversation_id
        self._init_state()

    def _init_state(self) -> None:
        self._participants: list[str] = []
        self._topic = ""
        self._goals: list[str] = []
        self._constraints: list[str] = []
        self._shared_knowledge: dict[str, Any] = {}
        self._history: list[HistoryEntry] = []
        self._delegations: list[DelegationRecord] = []
        self._metadata: dict[str, Any] = {}

    @property
    def conversation_id(self) -> str:
        return self._conversation_id

    @property
    def topic(self) -> str:
        return self._topic

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def add_participant(self, agent_id: str) -> None:
        if agent_id not in self._participants:
            self._participants.append(agent_id)

    def remove_participant(self, agent_id: str) -> None:
        self._participants = [p for p in self._participants if p != agent_id]

    def set_topic(self, topic: str) -> None:
        self._topic = topic

    def add_goal(self, goal: str) -> None:
        if goal not in self._goals:
            self._goals.append(goal)

    def remove_goal(self, goal: str) -> None:
        self._goals = [g for g in self._goals if g != goal]

    def add_constraint(self, constraint: str) -> None:
        if constraint not in self._constraints:
            self._constraints.append(constraint)

    def remove_constraint(self, constraint: str) -> None:
        self._constraints = [c for c in self._constraints if c != constraint]

    def set_shared_knowledge(self, key: str, value: Any) -> None:
        self._shared_knowledge[key] = copy.deepcopy(value)

    def remove_shared_knowledge(self, key: str) -> bool:
        return self._shared_knowledge.pop(key, _MISSING) is not _MISSING

    def add_message(
        self, message: Message, response: Response, agent_id: str | None = None
    ) -> None:
        """Record a turn in the conversation history."""
        self._history.append(
            HistoryEntry(message=message, response=response, agent_id=agent_id)
        )

    def add_delegation(self, record: DelegationRecord) -> None:
        """Append a delegation record. Records are never modified afterwards."""
        self._delegations.append(record)

    def set_metadata(self, key: str, value: Any) -> None:
        self._metadata[key] = copy.deepcopy(value)

    def remove_metadata(self, key: str) -> bool:
        return self._metadata.pop(key, _MISSING) is not _MISSING

    # ------------------------------------------------------------------
    # Readers (copies only)
    # ------------------------------------------------------------------

    def get_shared_knowledge(self, key: str | None = None) -> Any:
        """Get one shared value, or the whole map when ``key`` is None."""
        if key is None:
            return copy.deepcopy(self._shared_knowledge)
        return copy.deepcopy(self._shared_knowledge.get(key))

    def get_metadata(self, key: str | None = None) -> Any:
        """Get one metadata value, or the whole map when ``key`` is None."""
        if key is None:
            return copy.deepcopy(self._metadata)
        return copy.deepcopy(self._metadata.get(key))

    def get_conversation_history(self) -> list[HistoryEntry]:
        return [entry.model_copy(deep=True) for entry in self._history]

    def get_delegation_history(self) -> list[DelegationRecord]:
        return [record.model_copy(deep=True) for record in self._delegations]

    def get_shared_context(self) -> dict[str, Any]:
        """Snapshot handed to delegated agents as the coordinator context."""
        return {
            "conversation_id": self._conversation_id,
            "participants": list(self._participants),
            "topic": self._topic,
            "goals": list(self._goals),
            "constraints": list(self._constraints),
            "shared_knowledge": copy.deepcopy(self._shared_knowledge),
            "message_count": len(self._history),
        }

    def get_context_summary(self) -> dict[str, Any]:
        return {
            "conversation_id": self._conversation_id,
            "participants": list(self._participants),
            "topic": self._topic,
            "goals": list(self._goals),
            "constraints": list(self._constraints),
            "message_count": len(self._history),
            "delegation_count": len(self._delegations),
            "shared_knowledge_keys": list(self._shared_knowledge.keys()),
        }

    def has_participant(self, agent_id: str) -> bool:
        return agent_id in self._participants

    def get_responding_agents(self) -> list[str]:
        """Agents that produced a recorded reply, in first-seen order."""
        agents = [entry.agent_id for entry in self._history if entry.agent_id]
        return list(dict.fromkeys(agents))

    def get_delegated_agents(self) -> list[str]:
        """Agents that received a delegation, in first-seen order."""
        return list(dict.fromkeys(record.to_agent_id for record in self._delegations))

    def get_conversation_stats(self) -> dict[str, Any]:
        successful = sum(1 for record in self._delegations if record.success)
        response_times = [
            entry.response.metadata["response_time"]
            for entry in self._history
            if isinstance(entry.response.metadata.get("response_time"), (int, float))
        ]
        average = sum(response_times) / len(response_times) if response_times else 0.0
        return {
            "total_messages": len(self._history),
            "total_delegations": len(self._delegations),
            "successful_delegations": successful,
            "failed_delegations": len(self._delegations) - successful,
            "average_response_time": average,
            "participants": list(self._participants),
            "responding_agents": self.get_responding_agents(),
            "delegated_agents": self.get_delegated_agents(),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clear_history(self) -> None:
        """Drop the turn history and the delegation history."""
        self._history = []
        self._delegations = []

    def clear_delegations(self) -> None:
        self._delegations = []

    def clear_shared_knowledge(self) -> None:
        self._shared_knowledge = {}

    def clear_metadata(self) -> None:
        self._metadata = {}

    def reset(self) -> None:
        """Clear everything except the conversation id."""
        self._init_state()

    def export(self) -> dict[str, Any]:
        """Export the full state as plain data."""
        return {
            "conversation_id": self._conversation_id,
            "participants": list(self._participants),
            "topic": self._topic,
            "goals": list(self._goals),
            "constraints": list(self._constraints),
            "shared_knowledge": copy.deepcopy(self._shared_knowledge),
            "history": [entry.model_dump(mode="json") for entry in self._history],
            "delegations": [
                record.model_dump(mode="json") for record in self._delegations
            ],
            "metadata": copy.deepcopy(self._metadata),
        }

    def import_state(self, data: dict[str, Any]) -> None:
        """Restore state produced by :meth:`export`, replacing the current one."""
        self._init_state()
        self._conversation_id = data.get("conversation_id") or self._conversation_id
        self._participants = list(data.get("participants", []))
        self._topic = data.get("topic", "")
        self._goals = list(data.get("goals", []))
        self._constraints = list(data.get("constraints", []))
        self._shared_knowledge = copy.deepcopy(dict(data.get("shared_knowledge", {})))
        self._history = [
            HistoryEntry.model_validate(entry) for entry in data.get("history", [])
        ]
        self._delegations = [
            DelegationRecord.model_validate(record)
            for record in data.get("delegations", [])
        ]
        self._metadata = copy.deepcopy(dict(data.get("metadata", {})))


_MISSING = object()


class ContextStore:
    """Lazily creates and holds one context per conversation id."""

    def __init__(self) -> None:
        self._contexts: dict[str, ConversationContext] = {}

    def get_or_create(self, conversation_id: str) -> ConversationContext:
        context = self._contexts.get(conversation_id)
        if context is None:
            context = ConversationContext(conversation_id)
            self._contexts[conversation_id] = context
        return context

    def get(self, conversation_id: str) -> ConversationContext | None:
        return self._contexts.get(conversation_id)

    def remove(self, conversation_id: str) -> bool:
        return self._contexts.pop(conversation_id, None) is not None

    def conversation_ids(self) -> list[str]:
        return list(self._contexts.keys())

    def __iter__(self) -> Iterator[ConversationContext]:
        return iter(list(self._contexts.values()))

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._contexts
