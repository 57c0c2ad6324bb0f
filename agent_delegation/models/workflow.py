"""Workflow definition and execution models."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr, model_validator

from ..utils.exceptions import WorkflowStateError
from .message import Response


class WorkflowStatus(str, Enum):
    """Status of a workflow execution."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class WorkflowStep(BaseModel):
    """One unit of work in a workflow."""

    id: str = Field(..., min_length=1, description="Step identifier")
    agent_id: str = Field(..., description="Agent that performs the step")
    task: str = Field(default="", description="Task description")
    input: str | None = Field(
        default=None,
        description="Declared input; may reference $input, $previous and $<step_id>",
    )
    dependencies: list[str] = Field(
        default_factory=list, description="Step ids that must have a result first"
    )
    required_tools: list[str] = Field(
        default_factory=list, description="Tools the step needs"
    )
    expected_output: str = Field(default="", description="Expected output")

    model_config = {"extra": "forbid"}


class Workflow(BaseModel):
    """Ordered multi-agent pipeline. Steps run strictly in declaration order."""

    id: str = Field(..., min_length=1, description="Workflow identifier")
    name: str = Field(..., description="Display name")
    description: str = Field(default="", description="Description")
    steps: list[WorkflowStep] = Field(default_factory=list, description="Steps")
    entry_point: str | None = Field(default=None, description="First step id")
    exit_conditions: list[str] = Field(
        default_factory=list, description="Conditions that end the workflow"
    )

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def validate_steps(self) -> "Workflow":
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise ValueError(f"Duplicate step id: {step.id}")
            seen.add(step.id)
        if self.entry_point is not None and self.entry_point not in seen:
            raise ValueError(f"Entry point {self.entry_point} is not a step")
        return self

    def get_step(self, step_id: str) -> WorkflowStep | None:
        """Get a step by id."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None


class WorkflowExecution(BaseModel):
    """State of one workflow run.

    An execution leaves ``running`` at most once; the ``mark_*`` methods raise
    :class:`WorkflowStateError` on any later transition.
    """

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()), description="Execution identifier"
    )
    workflow_id: str = Field(..., description="Workflow being executed")
    status: WorkflowStatus = Field(default=WorkflowStatus.RUNNING)
    current_step_id: str | None = Field(default=None, description="Step in progress")
    results: dict[str, Response] = Field(
        default_factory=dict, description="Step id -> step result"
    )
    errors: dict[str, str] = Field(default_factory=dict, description="Step id -> error")
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = Field(default=None)
    metadata: dict[str, Any] = Field(default_factory=dict)
    response: Response | None = Field(
        default=None, description="Synthesized response once completed"
    )

    model_config = {"extra": "forbid"}

    _failure: Exception | None = PrivateAttr(default=None)

    @property
    def is_finished(self) -> bool:
        return self.status != WorkflowStatus.RUNNING

    @property
    def failure(self) -> Exception | None:
        """Exception that failed the execution, if any."""
        return self._failure

    def _finish(self, status: WorkflowStatus) -> None:
        if self.is_finished:
            raise WorkflowStateError(self.id, self.status.value, status.value)
        self.status = status
        self.completed_at = datetime.now(UTC)

    def record_result(self, step_id: str, response: Response) -> None:
        """Store a step result."""
        if self.is_finished:
            raise WorkflowStateError(self.id, self.status.value, "step result")
        self.results[step_id] = response

    def mark_completed(self, response: Response) -> None:
        self._finish(WorkflowStatus.COMPLETED)
        self.response = response

    def mark_failed(self, step_id: str | None, error: Exception) -> None:
        """Fail the execution, recording ``error`` against ``step_id``."""
        self._finish(WorkflowStatus.FAILED)
        self.errors[step_id or "workflow"] = str(error)
        self._failure = error

    def mark_cancelled(self) -> None:
        self._finish(WorkflowStatus.CANCELLED)

    def snapshot(self) -> "WorkflowExecution":
        """Independent copy that shares the failure exception."""
        copied = WorkflowExecution.model_validate(self.model_dump())
        copied._failure = self._failure
        return copied
