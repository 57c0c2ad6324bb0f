"""Message, response and tool call models.

A :class:`Message` is created by the caller and never mutated; a
:class:`Response` is produced once per agent invocation.
"""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class MessageSender(str, Enum):
    """Who authored a message."""

    USER = "user"
    AGENT = "agent"


class Message(BaseModel):
    """Incoming message routed through the coordinator."""

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()), description="Message identifier"
    )
    content: str = Field(..., description="Message text")
    sender: MessageSender = Field(default=MessageSender.USER, description="Author")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Creation time"
    )
    conversation_id: str | None = Field(default=None, description="Conversation id")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Extra data")

    model_config = {"extra": "forbid", "frozen": True}

    def with_content(self, content: str, **metadata: Any) -> "Message":
        """Return a copy with new content and merged metadata."""
        return self.model_copy(
            update={"content": content, "metadata": {**self.metadata, **metadata}}
        )


class ToolCall(BaseModel):
    """One tool invocation requested by a model, with its outcome."""

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()), description="Call identifier"
    )
    name: str = Field(..., description="Tool name")
    arguments: dict[str, Any] = Field(default_factory=dict, description="Arguments")
    result: Any = Field(default=None, description="Tool result on success")
    error: str | None = Field(default=None, description="Error text on failure")

    model_config = {"extra": "forbid"}

    @property
    def succeeded(self) -> bool:
        return self.error is None


class Response(BaseModel):
    """Reply produced by an agent or by the coordinator."""

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()), description="Response identifier"
    )
    content: str = Field(default="", description="Reply text")
    tool_calls: list[ToolCall] | None = Field(
        default=None, description="Tool calls made while producing the reply"
    )
    metadata: dict[str, Any] = Field(default_factory=dict, description="Extra data")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Creation time"
    )

    model_config = {"extra": "forbid"}
