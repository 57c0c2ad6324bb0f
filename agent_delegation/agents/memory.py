"""Memory collaborator interface.

The core never persists anything itself; agents save and read conversation
turns through a :class:`MemoryStore` supplied by the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import defaultdict

from agent_delegation.models import Message


class MemoryStore(ABC):
    """Storage for conversation messages."""

    @abstractmethod
    async def save_message(self, message: Message) -> None:
        """Persist one message."""
        pass

    @abstractmethod
    async def get_conversation_history(
        self, conversation_id: str, limit: int = 10
    ) -> list[Message]:
        """Return the last ``limit`` messages of a conversation, oldest first."""
        pass


class InMemoryMemoryStore(MemoryStore):
    """Process-local memory store, mainly for tests and single-process use."""

    def __init__(self) -> None:
        self._messages: dict[str, list[Message]] = defaultdict(list)

    async def save_message(self, message: Message) -> None:
        self._messages[message.conversation_id or ""].append(message)

    async def get_conversation_history(
        self, conversation_id: str, limit: int = 10
    ) -> list[Message]:
        if limit <= 0:
            return []
        return list(self._messages.get(conversation_id, [])[-limit:])

    def clear(self, conversation_id: str | None = None) -> None:
        """Drop stored messages for one conversation, or all of them."""
        if conversation_id is None:
            self._messages.clear()
        else:
            self._messages.pop(conversation_id, None)

    def __len__(self) -> int:
        return sum(len(messages) for messages in self._messages.values())
