"""Delegation and policy models."""

from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, computed_field, field_validator

from .message import Message, Response


class DelegationRecord(BaseModel):
    """Outcome of one delegation attempt.

    Exactly one record is appended per attempt, failed attempts included.
    """

    from_agent_id: str = Field(default="coordinator", description="Delegating agent")
    to_agent_id: str = Field(..., description="Target agent")
    message: Message = Field(..., description="Message as received from the caller")
    response: Response | None = Field(default=None, description="Reply on success")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Attempt time"
    )
    success: bool = Field(..., description="Whether the delegation completed")
    error: str | None = Field(default=None, description="Error text on failure")

    model_config = {"extra": "ignore"}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> str:
        """UI-facing status derived from ``success``."""
        return "success" if self.success else "failed"


class DelegationContext(BaseModel):
    """What the delegation manager knows about the surrounding conversation."""

    original_message: Message = Field(..., description="Message being delegated")
    coordinator_context: dict[str, Any] = Field(
        default_factory=dict, description="Snapshot of the shared conversation state"
    )
    delegation_history: list[DelegationRecord] = Field(
        default_factory=list, description="Prior delegations in the conversation"
    )
    required_tools: list[str] = Field(
        default_factory=list,
        description="Tools the caller declares as needed, merged with inferred ones",
    )

    model_config = {"extra": "forbid"}


class TaskClassification(BaseModel):
    """Lightweight label of a message produced by the coordinator's model.

    Accepts the camelCase keys a model tends to emit.
    """

    type: str = Field(default="general", description="Task type / domain")
    complexity: str = Field(default="moderate", description="simple|moderate|complex")
    required_tools: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("required_tools", "requiredTools"),
    )
    expertise: list[str] = Field(default_factory=list)
    requires_specialized_knowledge: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "requires_specialized_knowledge", "requiresSpecializedKnowledge"
        ),
    )

    model_config = {"extra": "ignore", "populate_by_name": True}

    @field_validator("type", "complexity", mode="before")
    @classmethod
    def normalize_label(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("required_tools", "expertise", mode="before")
    @classmethod
    def coerce_list(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


class PolicyEvaluation(BaseModel):
    """Decision returned by the delegation policy."""

    should_delegate: bool = Field(..., description="Whether to delegate")
    target_agent_id: str | None = Field(default=None, description="Chosen agent")
    reason: str = Field(..., description="Human-readable reason")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Trust in the decision")
    matched_rule_ids: list[str] = Field(
        default_factory=list, description="Ids of every matching rule"
    )

    model_config = {"extra": "forbid"}
