"""Tests for workflow registration and execution."""

import asyncio

import pytest

from agent_delegation.models import (
    AgentDescriptor,
    Workflow,
    WorkflowStatus,
    WorkflowStep,
)
from agent_delegation.utils.exceptions import (
    AgentNotFoundError,
    ModelBackendError,
    PermissionDeniedError,
    WorkflowDependencyError,
    WorkflowNotFoundError,
)
from conftest import is_classification_call, make_llm_response


def _agent(agent_id: str) -> AgentDescriptor:
    # The system prompt doubles as a marker in the stub replies
    return AgentDescriptor(id=agent_id, name=agent_id.upper(), system_prompt=agent_id)


def _workflow(*steps: WorkflowStep, workflow_id: str = "pipeline") -> Workflow:
    return Workflow(id=workflow_id, name="Pipeline", steps=list(steps))


def echo_responder(synthesis: str = "Combined answer"):
    """Agents reply "<agent id> output"; synthesis replies ``synthesis``."""

    async def responder(messages, model=None, options=None):
        if is_classification_call(messages):
            return make_llm_response("{}")
        if messages[-1]["content"].startswith("Combine the results"):
            return make_llm_response(synthesis)
        return make_llm_response(f"{messages[0]['content']} output")

    return responder


@pytest.fixture
def wf_coordinator(coordinator, mock_provider):
    mock_provider.generate.side_effect = echo_responder()
    coordinator.add_agent(_agent("alpha"))
    coordinator.add_agent(_agent("beta"))
    return coordinator


def _prompt_of(mock_provider, agent_id: str) -> str:
    for call in mock_provider.generate.call_args_list:
        messages = call.args[0]
        if messages[0]["content"] == agent_id:
            return messages[-1]["content"]
    raise AssertionError(f"{agent_id} was never called")


class TestWorkflowRegistry:
    """Tests for adding and reading workflow definitions."""

    def test_add_and_get(self, coordinator):
        workflow = _workflow(WorkflowStep(id="s1", agent_id="alpha"))
        coordinator.add_workflow(workflow)
        stored = coordinator.get_workflow("pipeline")
        assert stored == workflow
        assert stored is not workflow

    def test_stored_copy_is_isolated(self, coordinator):
        workflow = _workflow(WorkflowStep(id="s1", agent_id="alpha"))
        coordinator.add_workflow(workflow)
        workflow.steps.append(WorkflowStep(id="s2", agent_id="beta"))
        coordinator.get_workflow("pipeline").steps.clear()
        assert len(coordinator.get_workflow("pipeline").steps) == 1

    def test_replace_and_remove(self, coordinator):
        coordinator.add_workflow(_workflow(WorkflowStep(id="s1", agent_id="alpha")))
        coordinator.add_workflow(_workflow(WorkflowStep(id="s9", agent_id="beta")))
        assert [s.id for s in coordinator.get_workflow("pipeline").steps] == ["s9"]
        assert len(coordinator.get_workflows()) == 1
        assert coordinator.remove_workflow("pipeline") is True
        assert coordinator.remove_workflow("pipeline") is False
        assert coordinator.get_workflow("pipeline") is None


class TestExecuteWorkflow:
    """Tests for execute_workflow."""

    async def test_steps_run_in_order(self, wf_coordinator, mock_provider):
        wf_coordinator.add_workflow(
            _workflow(
                WorkflowStep(id="s1", agent_id="alpha"),
                WorkflowStep(id="s2", agent_id="beta", dependencies=["s1"]),
            )
        )
        execution = await wf_coordinator.execute_workflow(
            "pipeline", "Plan a trip", conversation_id="c1"
        )

        assert execution.status == WorkflowStatus.COMPLETED
        assert list(execution.results) == ["s1", "s2"]
        assert execution.results["s1"].content == "alpha output"
        assert execution.results["s2"].content == "beta output"
        assert execution.errors == {}
        assert execution.response.content == (
            "**Workflow Pipeline completed**\n\nCombined answer"
        )
        assert execution.response.metadata["steps"] == ["s1", "s2"]

        # s1 gets the original input, s2 the previous result
        assert "**Original task:** Plan a trip" in _prompt_of(mock_provider, "alpha")
        assert "**Original task:** alpha output" in _prompt_of(mock_provider, "beta")

        history = wf_coordinator.manager.get_delegation_history("c1")
        assert [record.to_agent_id for record in history] == ["alpha", "beta"]

    async def test_synthesis_sees_every_step(self, wf_coordinator, mock_provider):
        wf_coordinator.add_workflow(
            _workflow(
                WorkflowStep(id="s1", agent_id="alpha"),
                WorkflowStep(id="s2", agent_id="beta"),
            )
        )
        await wf_coordinator.execute_workflow("pipeline", "Plan a trip")
        synthesis = mock_provider.generate.call_args.args[0][-1]["content"]
        assert "Original request: Plan a trip" in synthesis
        assert "## Step s1\nalpha output" in synthesis
        assert "## Step s2\nbeta output" in synthesis

    async def test_dependency_declared_later_fails(self, wf_coordinator, mock_provider):
        wf_coordinator.add_workflow(
            _workflow(
                WorkflowStep(id="s2", agent_id="beta", dependencies=["s1"]),
                WorkflowStep(id="s1", agent_id="alpha"),
            )
        )
        execution = await wf_coordinator.execute_workflow("pipeline", "Plan a trip")

        assert execution.status == WorkflowStatus.FAILED
        assert execution.errors == {"s2": "Dependencies not met for step s2: s1"}
        assert execution.results == {}
        assert isinstance(execution.failure, WorkflowDependencyError)
        assert mock_provider.generate.await_count == 0

    async def test_declared_input_template(self, wf_coordinator, mock_provider):
        wf_coordinator.add_workflow(
            _workflow(
                WorkflowStep(id="s1", agent_id="alpha"),
                WorkflowStep(
                    id="s2",
                    agent_id="beta",
                    input="Review $s1 against: $input ($missing)",
                ),
            )
        )
        await wf_coordinator.execute_workflow("pipeline", "Plan a trip")
        prompt = _prompt_of(mock_provider, "beta")
        assert "**Original task:** Review alpha output against: Plan a trip ($missing)" in prompt

    async def test_step_details_in_coordinator_context(
        self, wf_coordinator, mock_provider
    ):
        wf_coordinator.add_workflow(
            _workflow(
                WorkflowStep(
                    id="s1",
                    agent_id="alpha",
                    task="Draft itinerary",
                    expected_output="A day-by-day plan",
                )
            )
        )
        await wf_coordinator.execute_workflow("pipeline", "Plan a trip")
        prompt = _prompt_of(mock_provider, "alpha")
        assert '"task": "Draft itinerary"' in prompt
        assert '"expected_output": "A day-by-day plan"' in prompt

    async def test_step_failure_stops_the_workflow(self, wf_coordinator, mock_provider):
        wf_coordinator.add_workflow(
            _workflow(
                WorkflowStep(id="s1", agent_id="alpha"),
                WorkflowStep(id="s2", agent_id="beta", required_tools=["fs.read"]),
                WorkflowStep(id="s3", agent_id="alpha"),
            )
        )
        execution = await wf_coordinator.execute_workflow("pipeline", "Plan a trip")

        assert execution.status == WorkflowStatus.FAILED
        assert list(execution.results) == ["s1"]
        assert list(execution.errors) == ["s2"]
        assert isinstance(execution.failure, PermissionDeniedError)
        assert execution.response is None

    async def test_unknown_step_agent(self, wf_coordinator):
        wf_coordinator.add_workflow(
            _workflow(WorkflowStep(id="s1", agent_id="ghost"))
        )
        execution = await wf_coordinator.execute_workflow("pipeline", "Plan a trip")
        assert execution.status == WorkflowStatus.FAILED
        assert execution.errors == {"s1": "Agent not found: ghost"}
        assert isinstance(execution.failure, AgentNotFoundError)

    async def test_synthesis_failure(self, wf_coordinator, mock_provider):
        async def responder(messages, model=None, options=None):
            if messages[-1]["content"].startswith("Combine the results"):
                raise RuntimeError("synthesis down")
            return make_llm_response("done")

        mock_provider.generate.side_effect = responder
        wf_coordinator.add_workflow(
            _workflow(
                WorkflowStep(id="s1", agent_id="alpha"),
                WorkflowStep(id="s2", agent_id="beta"),
            )
        )
        execution = await wf_coordinator.execute_workflow("pipeline", "Plan a trip")

        assert execution.status == WorkflowStatus.FAILED
        assert list(execution.results) == ["s1", "s2"]
        assert "synthesis down" in execution.errors["s2"]
        assert isinstance(execution.failure, ModelBackendError)

    async def test_empty_workflow_is_synthesized(self, wf_coordinator):
        wf_coordinator.add_workflow(_workflow())
        execution = await wf_coordinator.execute_workflow("pipeline", "Plan a trip")
        assert execution.status == WorkflowStatus.COMPLETED
        assert execution.results == {}

    async def test_unknown_workflow(self, wf_coordinator):
        with pytest.raises(WorkflowNotFoundError):
            await wf_coordinator.execute_workflow("missing", "Plan a trip")

    async def test_execution_is_tracked(self, wf_coordinator):
        wf_coordinator.add_workflow(_workflow(WorkflowStep(id="s1", agent_id="alpha")))
        execution = await wf_coordinator.execute_workflow("pipeline", "Plan a trip")

        stored = wf_coordinator.get_workflow_execution(execution.id)
        assert stored.status == WorkflowStatus.COMPLETED
        assert stored is not execution
        assert wf_coordinator.get_active_workflows() == []
        assert wf_coordinator.get_workflow_execution("missing") is None

    async def test_prune_keeps_running_executions(self, wf_coordinator, mock_provider):
        wf_coordinator.add_workflow(_workflow(WorkflowStep(id="s1", agent_id="alpha")))
        finished = await wf_coordinator.execute_workflow("pipeline", "Plan a trip")

        started = asyncio.Event()
        release = asyncio.Event()

        async def blocked(messages, model=None, options=None):
            started.set()
            await release.wait()
            return make_llm_response("late output")

        mock_provider.generate.side_effect = blocked
        task = asyncio.create_task(
            wf_coordinator.execute_workflow("pipeline", "Plan a trip")
        )
        await started.wait()
        running_id = wf_coordinator.get_active_workflows()[0].id

        assert wf_coordinator.prune_workflow_executions() == 1
        assert wf_coordinator.get_workflow_execution(finished.id) is None
        assert wf_coordinator.get_workflow_execution(running_id) is not None

        release.set()
        await task
        assert wf_coordinator.prune_workflow_executions() == 1
        assert wf_coordinator.get_workflow_execution(running_id) is None
        assert wf_coordinator.prune_workflow_executions() == 0


class TestCancelWorkflow:
    """Tests for cancelling a running execution."""

    async def test_cancel_discards_in_flight_result(self, wf_coordinator, mock_provider):
        started = asyncio.Event()
        release = asyncio.Event()

        async def blocked(messages, model=None, options=None):
            started.set()
            await release.wait()
            return make_llm_response("late output")

        mock_provider.generate.side_effect = blocked
        wf_coordinator.add_workflow(
            _workflow(
                WorkflowStep(id="s1", agent_id="alpha"),
                WorkflowStep(id="s2", agent_id="beta"),
            )
        )

        task = asyncio.create_task(
            wf_coordinator.execute_workflow("pipeline", "Plan a trip")
        )
        await started.wait()

        active = wf_coordinator.get_active_workflows()
        assert len(active) == 1
        assert active[0].current_step_id == "s1"
        assert wf_coordinator.get_delegation_stats()["active_workflows"] == 1

        assert wf_coordinator.cancel_workflow(active[0].id) is True
        assert wf_coordinator.cancel_workflow(active[0].id) is False

        release.set()
        execution = await task
        assert execution.status == WorkflowStatus.CANCELLED
        assert execution.results == {}
        assert mock_provider.generate.await_count == 1

    def test_cancel_unknown(self, wf_coordinator):
        assert wf_coordinator.cancel_workflow("missing") is False


class TestHandleMessageWithWorkflow:
    """Tests for handle_message in workflow mode."""

    async def test_returns_synthesized_response(self, wf_coordinator):
        wf_coordinator.add_workflow(
            _workflow(
                WorkflowStep(id="s1", agent_id="alpha"),
                WorkflowStep(id="s2", agent_id="beta", dependencies=["s1"]),
            )
        )
        response = await wf_coordinator.handle_message(
            "Plan a trip", conversation_id="c1", workflow_id="pipeline"
        )

        assert response.content.startswith("**Workflow Pipeline completed**")
        summary = wf_coordinator.get_context("c1")
        assert summary["message_count"] == 1
        assert summary["delegation_count"] == 2
        assert "coordinator" in summary["participants"]

    async def test_failure_is_raised(self, wf_coordinator):
        wf_coordinator.add_workflow(
            _workflow(WorkflowStep(id="s2", agent_id="beta", dependencies=["s1"]))
        )
        with pytest.raises(WorkflowDependencyError):
            await wf_coordinator.handle_message("Plan a trip", workflow_id="pipeline")

    async def test_unknown_workflow(self, wf_coordinator):
        with pytest.raises(WorkflowNotFoundError):
            await wf_coordinator.handle_message("Plan a trip", workflow_id="missing")
