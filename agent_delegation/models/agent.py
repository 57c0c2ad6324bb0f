"""Agent descriptor and related models.

An :class:`AgentDescriptor` is the immutable definition of one agent: who it is,
which model it talks to and what it is permitted to touch.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class AgentStatus(str, Enum):
    """Runtime status of an agent."""

    ACTIVE = "active"  # ready to accept a message
    INACTIVE = "inactive"  # deactivated by the caller
    BUSY = "busy"  # a call is in flight
    ERROR = "error"  # last call failed


class AgentPermissions(BaseModel):
    """What an agent is authorized to do.

    ``tools`` is the allow-list consulted by the permission gate and by each
    tool call the agent's reply requests.
    """

    network: bool = Field(default=False, description="May reach the network")
    filesystem: bool = Field(default=False, description="May touch the filesystem")
    tools: frozenset[str] = Field(
        default_factory=frozenset, description="Tool names the agent may invoke"
    )

    model_config = {"extra": "forbid", "frozen": True}


class AgentStyle(BaseModel):
    """Tone and language used when generating the agent's system prompt."""

    tone: str = Field(default="professional", description="Writing tone")
    language: str = Field(default="en", description="Reply language")

    model_config = {"extra": "forbid", "frozen": True}


class AgentDescriptor(BaseModel):
    """Immutable definition of an agent.

    Loaded from YAML or built programmatically; once registered with the
    coordinator it is looked up by ``id`` and never mutated.
    """

    id: str = Field(..., min_length=1, description="Unique agent identifier")
    name: str = Field(..., description="Display name")
    description: str = Field(default="", description="Short description")
    role: str = Field(default="assistant", description="Role used for routing")
    goals: tuple[str, ...] = Field(default=(), description="Agent goals")
    tools: tuple[str, ...] = Field(
        default=(), description="Tools advertised to the model in prompts"
    )
    model: str = Field(
        default="claude-haiku-4-5-20251001", description="Model identifier"
    )
    permissions: AgentPermissions = Field(default_factory=AgentPermissions)
    knowledge_packs: tuple[str, ...] = Field(
        default=(), description="Knowledge pack ids"
    )
    style: AgentStyle = Field(default_factory=AgentStyle)
    system_prompt: str | None = Field(
        default=None, description="Verbatim system prompt, replaces the generated one"
    )
    temperature: float | None = Field(
        default=None, ge=0.0, le=2.0, description="Sampling temperature"
    )
    max_tokens: int | None = Field(default=None, ge=1, description="Max reply tokens")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Extra data")

    model_config = {"extra": "forbid", "frozen": True}

    def can_use_tool(self, tool_name: str) -> bool:
        """Check whether ``tool_name`` is on the agent's allow-list."""
        return tool_name in self.permissions.tools

    def has_role_keyword(self, *keywords: str) -> bool:
        """Check whether the role contains any of the keywords (case-insensitive)."""
        role = self.role.lower()
        return any(keyword in role for keyword in keywords)

    def has_tool(self, *tool_names: str) -> bool:
        """Check whether any of the named tools is advertised or permitted."""
        return any(
            name in self.tools or name in self.permissions.tools
            for name in tool_names
        )
