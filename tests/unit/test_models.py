"""Tests for the data models."""

import pytest
from pydantic import ValidationError

from agent_delegation.models import (
    AgentDescriptor,
    AgentPermissions,
    DelegationRecord,
    Message,
    MessageSender,
    PolicyEvaluation,
    Response,
    TaskClassification,
    ToolCall,
    Workflow,
    WorkflowExecution,
    WorkflowStatus,
    WorkflowStep,
)
from agent_delegation.utils.exceptions import WorkflowStateError


class TestAgentDescriptor:
    """Tests for AgentDescriptor."""

    def test_defaults(self):
        descriptor = AgentDescriptor(id="a1", name="Agent")
        assert descriptor.role == "assistant"
        assert descriptor.tools == ()
        assert descriptor.permissions.network is False
        assert descriptor.permissions.tools == frozenset()
        assert descriptor.style.language == "en"

    def test_is_frozen(self):
        descriptor = AgentDescriptor(id="a1", name="Agent")
        with pytest.raises(ValidationError):
            descriptor.name = "Other"

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            AgentDescriptor(id="a1", name="Agent", unknown="x")

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            AgentDescriptor(id="", name="Agent")

    def test_lists_are_coerced(self):
        descriptor = AgentDescriptor.model_validate(
            {
                "id": "a1",
                "name": "Agent",
                "tools": ["rag.search"],
                "permissions": {"tools": ["rag.search"]},
            }
        )
        assert descriptor.tools == ("rag.search",)
        assert descriptor.can_use_tool("rag.search")
        assert not descriptor.can_use_tool("fs.read")

    def test_role_keyword_is_case_insensitive(self):
        descriptor = AgentDescriptor(id="a1", name="Agent", role="Senior Developer")
        assert descriptor.has_role_keyword("developer")
        assert not descriptor.has_role_keyword("writer")

    def test_has_tool_checks_advertised_and_permitted(self):
        descriptor = AgentDescriptor(
            id="a1",
            name="Agent",
            tools=("rag.search",),
            permissions=AgentPermissions(tools=frozenset({"math.evaluate"})),
        )
        assert descriptor.has_tool("rag.search")
        assert descriptor.has_tool("math.evaluate")
        assert not descriptor.has_tool("fs.write")


class TestMessage:
    """Tests for Message, ToolCall and Response."""

    def test_message_defaults(self):
        message = Message(content="hello")
        assert message.id
        assert message.sender == MessageSender.USER
        assert message.conversation_id is None

    def test_with_content_keeps_identity_and_merges_metadata(self):
        message = Message(content="hello", conversation_id="c1", metadata={"a": 1})
        copy = message.with_content("bye", b=2)
        assert copy.content == "bye"
        assert copy.id == message.id
        assert copy.conversation_id == "c1"
        assert copy.metadata == {"a": 1, "b": 2}
        assert message.content == "hello"

    def test_tool_call_succeeded(self):
        assert ToolCall(name="t", result=1).succeeded
        assert not ToolCall(name="t", error="failed").succeeded

    def test_response_defaults(self):
        response = Response(content="ok")
        assert response.tool_calls is None
        assert response.metadata == {}


class TestDelegationModels:
    """Tests for delegation records and classifications."""

    def test_record_status_is_serialized(self):
        record = DelegationRecord(
            to_agent_id="a1", message=Message(content="x"), success=False, error="nope"
        )
        assert record.status == "failed"
        dumped = record.model_dump(mode="json")
        assert dumped["status"] == "failed"
        assert dumped["from_agent_id"] == "coordinator"

    def test_record_round_trip_ignores_status(self):
        record = DelegationRecord(
            to_agent_id="a1", message=Message(content="x"), success=True
        )
        restored = DelegationRecord.model_validate(record.model_dump(mode="json"))
        assert restored.success is True
        assert restored.status == "success"

    def test_classification_defaults(self):
        classification = TaskClassification()
        assert classification.type == "general"
        assert classification.complexity == "moderate"
        assert classification.required_tools == []

    def test_classification_accepts_camel_case(self):
        classification = TaskClassification.model_validate(
            {
                "type": " Math ",
                "complexity": "COMPLEX",
                "requiredTools": "math.evaluate",
                "requiresSpecializedKnowledge": True,
                "extra": "ignored",
            }
        )
        assert classification.type == "math"
        assert classification.complexity == "complex"
        assert classification.required_tools == ["math.evaluate"]
        assert classification.requires_specialized_knowledge is True

    def test_policy_evaluation_confidence_bounds(self):
        with pytest.raises(ValidationError):
            PolicyEvaluation(should_delegate=False, reason="x", confidence=1.5)


class TestWorkflowModels:
    """Tests for Workflow and WorkflowExecution."""

    def test_duplicate_step_ids_rejected(self):
        with pytest.raises(ValidationError):
            Workflow(
                id="w",
                name="W",
                steps=[
                    WorkflowStep(id="s1", agent_id="a"),
                    WorkflowStep(id="s1", agent_id="b"),
                ],
            )

    def test_entry_point_must_name_a_step(self):
        with pytest.raises(ValidationError):
            Workflow(
                id="w",
                name="W",
                steps=[WorkflowStep(id="s1", agent_id="a")],
                entry_point="missing",
            )

    def test_get_step(self):
        workflow = Workflow(
            id="w", name="W", steps=[WorkflowStep(id="s1", agent_id="a")]
        )
        assert workflow.get_step("s1").agent_id == "a"
        assert workflow.get_step("s2") is None

    def test_execution_single_transition(self):
        execution = WorkflowExecution(workflow_id="w")
        execution.mark_completed(Response(content="done"))
        assert execution.status == WorkflowStatus.COMPLETED
        assert execution.completed_at is not None

        with pytest.raises(WorkflowStateError):
            execution.mark_failed("s1", RuntimeError("late"))
        with pytest.raises(WorkflowStateError):
            execution.mark_cancelled()
        with pytest.raises(WorkflowStateError):
            execution.record_result("s1", Response(content="late"))

    def test_mark_failed_records_error_and_cause(self):
        execution = WorkflowExecution(workflow_id="w")
        error = RuntimeError("boom")
        execution.mark_failed("s2", error)
        assert execution.status == WorkflowStatus.FAILED
        assert execution.errors == {"s2": "boom"}
        assert execution.failure is error

    def test_mark_failed_without_step(self):
        execution = WorkflowExecution(workflow_id="w")
        execution.mark_failed(None, RuntimeError("boom"))
        assert execution.errors == {"workflow": "boom"}

    def test_snapshot_is_independent(self):
        execution = WorkflowExecution(workflow_id="w")
        execution.record_result("s1", Response(content="one"))
        snapshot = execution.snapshot()
        snapshot.results["s2"] = Response(content="two")
        assert "s2" not in execution.results
        assert snapshot.id == execution.id
