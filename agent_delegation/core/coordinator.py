"""Coordinator - central entry point for delegation and workflows.

The coordinator owns the registered agents and workflow definitions. For a
single message it classifies the request, consults the delegation policy and
either delegates or answers with its own persona. For a workflow it runs the
steps in declared order through the same delegation path and synthesizes the
step results into one final response.
"""

from __future__ import annotations

import json
import re
import time
import uuid
from collections import Counter
from string import Template
from typing import Any

from pydantic import ValidationError

from agent_delegation.agents.base import Agent
from agent_delegation.agents.memory import MemoryStore
from agent_delegation.core.context import ContextStore
from agent_delegation.core.delegation import DelegationManager
from agent_delegation.core.policy import DelegationPolicy
from agent_delegation.core.registry import AgentRegistry
from agent_delegation.llm.base import BaseLLMProvider, LLMResponse
from agent_delegation.models import (
    AgentDescriptor,
    DelegationContext,
    Message,
    MessageSender,
    PolicyEvaluation,
    Response,
    TaskClassification,
    Workflow,
    WorkflowExecution,
    WorkflowStatus,
    WorkflowStep,
)
from agent_delegation.tools.registry import ToolRegistry
from agent_delegation.utils.config import AgentDefaults, CoordinatorSettings
from agent_delegation.utils.exceptions import (
    AgentDelegationError,
    ModelBackendError,
    ModelTimeoutError,
    WorkflowDependencyError,
    WorkflowError,
    WorkflowNotFoundError,
)
from agent_delegation.utils.logging import (
    get_conversation_logger,
    get_logger,
    get_workflow_logger,
    turn_context,
)
from agent_delegation.utils.timeouts import run_with_timeout

logger = get_logger(__name__)

CLASSIFICATION_SYSTEM_PROMPT = (
    "You are a task classifier for a team of specialist agents. "
    "Reply with a single JSON object and nothing else."
)

CLASSIFICATION_PROMPT = """Classify the following request.

Request: $content

Reply with JSON using exactly these keys:
{
  "type": "technical | research | creative | math | support | general",
  "complexity": "simple | moderate | complex",
  "requiredTools": ["tool names such as rag.search, fs.read, math.evaluate"],
  "expertise": ["areas of expertise needed"],
  "requiresSpecializedKnowledge": true or false
}"""

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_classification(text: str) -> TaskClassification:
    """Parse a model's classification reply.

    The whole reply is tried as JSON first, then the outermost ``{...}`` block
    (models like to wrap JSON in prose or code fences). Anything unusable
    yields the default classification.
    """
    candidates = [text.strip()]
    match = _JSON_OBJECT.search(text)
    if match:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if not isinstance(data, dict):
            continue
        try:
            return TaskClassification.model_validate(data)
        except ValidationError:
            continue
    return TaskClassification()


class Coordinator:
    """Routes messages to agents and drives workflow executions.

    Registries are mutated only through the public methods and every reader
    returns a copy.
    Finished workflow executions stay available through
    :meth:`get_workflow_execution` until :meth:`prune_workflow_executions`
    drops them.
    """

    COORDINATOR_ID = "coordinator"

    def __init__(
        self,
        settings: CoordinatorSettings | None,
        provider: BaseLLMProvider,
        tool_registry: ToolRegistry,
        memory: MemoryStore,
        policy: DelegationPolicy | None = None,
        manager: DelegationManager | None = None,
        contexts: ContextStore | None = None,
        agent_defaults: AgentDefaults | None = None,
        agent_timeout: float | None = None,
        tool_timeout: float | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            settings: Persona and limits of the coordinator.
            provider: Model backend for classification, synthesis, local
                answers and agents built from descriptors.
            tool_registry: Tools available to delegated agents.
            memory: Conversation memory shared with the agents.
            policy: Delegation policy; the default rules when omitted.
            manager: Delegation manager; built from the registry when omitted.
            contexts: Conversation contexts. Ignored when ``manager`` is given,
                the manager's store is shared instead.
            agent_defaults: Generation defaults for agents built here.
            agent_timeout: Model deadline for agents built here.
            tool_timeout: Tool deadline for the default manager.
        """
        self.settings = settings or CoordinatorSettings()
        self._provider = provider
        self._tools = tool_registry
        self._memory = memory
        self._agent_defaults = agent_defaults or AgentDefaults()
        self._agent_timeout = agent_timeout

        if manager is None:
            manager = DelegationManager(
                tool_registry,
                contexts or ContextStore(),
                tool_timeout=tool_timeout,
                delegator_id=self.COORDINATOR_ID,
            )
        self.manager = manager
        self.policy = policy or DelegationPolicy()
        self._contexts = manager.contexts

        self._agents = AgentRegistry()
        self._workflows: dict[str, Workflow] = {}
        self._executions: dict[str, WorkflowExecution] = {}
        self._active_executions: set[str] = set()
        self._policy_delegations: Counter[str] = Counter()
        self._confidence_total = 0.0
        self._confidence_count = 0

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    def add_agent(self, agent: Agent | AgentDescriptor) -> AgentDescriptor:
        """Register an agent, building it from a descriptor if needed.

        Raises:
            AgentAlreadyExistsError: If the id is already registered.
        """
        if isinstance(agent, AgentDescriptor):
            agent = Agent(
                agent,
                self._provider,
                self._memory,
                defaults=self._agent_defaults,
                timeout_seconds=self._agent_timeout,
            )
        descriptor = self._agents.register(agent)
        logger.info("agent_added", agent_id=descriptor.id, role=descriptor.role)
        return descriptor

    def remove_agent(self, agent_id: str) -> bool:
        removed = self._agents.unregister(agent_id)
        if removed:
            logger.info("agent_removed", agent_id=agent_id)
        return removed

    def get_agent(self, agent_id: str) -> AgentDescriptor | None:
        agent = self._agents.find(agent_id)
        return agent.descriptor if agent else None

    def get_available_agents(self) -> list[AgentDescriptor]:
        """List the descriptors of active agents."""
        return self._agents.list_descriptors(active_only=True)

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def add_workflow(self, workflow: Workflow) -> None:
        """Register a workflow definition, replacing one with the same id."""
        if workflow.id in self._workflows:
            logger.warning("workflow_replaced", workflow_id=workflow.id)
        self._workflows[workflow.id] = workflow.model_copy(deep=True)

    def remove_workflow(self, workflow_id: str) -> bool:
        return self._workflows.pop(workflow_id, None) is not None

    def get_workflow(self, workflow_id: str) -> Workflow | None:
        workflow = self._workflows.get(workflow_id)
        return workflow.model_copy(deep=True) if workflow else None

    def get_workflows(self) -> list[Workflow]:
        return [workflow.model_copy(deep=True) for workflow in self._workflows.values()]

    def get_active_workflows(self) -> list[WorkflowExecution]:
        """List executions that are still running."""
        return [
            self._executions[execution_id].snapshot()
            for execution_id in self._executions
            if execution_id in self._active_executions
        ]

    def get_workflow_execution(self, execution_id: str) -> WorkflowExecution | None:
        execution = self._executions.get(execution_id)
        return execution.snapshot() if execution else None

    # ------------------------------------------------------------------
    # Single message
    # ------------------------------------------------------------------

    async def classify(self, message: Message) -> TaskClassification:
        """Label a message with task type, complexity and required tools.

        Never raises: model failures and unparseable replies fall back to the
        default classification.
        """
        messages = [
            {"role": "system", "content": CLASSIFICATION_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": Template(CLASSIFICATION_PROMPT).safe_substitute(
                    content=message.content
                ),
            },
        ]
        try:
            llm_response = await self._generate(messages, {"temperature": 0.1})
        except AgentDelegationError as e:
            logger.warning("classification_failed", error=str(e))
            return TaskClassification()

        classification = parse_classification(llm_response.content)
        logger.debug(
            "message_classified",
            type=classification.type,
            complexity=classification.complexity,
            required_tools=classification.required_tools,
        )
        return classification

    async def analyze_delegation(
        self, message: Message | str, conversation_id: str | None = None
    ) -> PolicyEvaluation:
        """Classify a message and evaluate the delegation policy for it."""
        message = self._prepare_message(message, conversation_id)
        context = self._contexts.get_or_create(message.conversation_id)
        classification = await self.classify(message)
        available = {
            descriptor.id: descriptor for descriptor in self.get_available_agents()
        }
        evaluation = self.policy.evaluate(message, classification, available, context)
        self._confidence_total += evaluation.confidence
        self._confidence_count += 1
        return evaluation

    async def delegate_task(
        self,
        message: Message | str,
        target_agent_id: str,
        conversation_id: str | None = None,
        required_tools: list[str] | None = None,
        extra_context: dict[str, Any] | None = None,
    ) -> Response:
        """Delegate a message to a specific agent.

        Args:
            message: Message or plain text to delegate.
            target_agent_id: Registered agent id.
            conversation_id: Conversation the delegation belongs to.
            required_tools: Tools the caller declares the task needs.
            extra_context: Merged into the coordinator context shown to the agent.

        Raises:
            AgentNotFoundError: If the agent is not registered.
            PermissionDeniedError: If the agent lacks a required permission.
        """
        message = self._prepare_message(message, conversation_id)
        agent = self._agents.get(target_agent_id)
        context = self._contexts.get_or_create(message.conversation_id)

        delegation_context = DelegationContext(
            original_message=message,
            coordinator_context={**context.get_shared_context(), **(extra_context or {})},
            delegation_history=context.get_delegation_history(),
            required_tools=list(required_tools or []),
        )
        return await self.manager.delegate(agent, message, delegation_context)

    async def handle_message(
        self,
        message: Message | str,
        conversation_id: str | None = None,
        workflow_id: str | None = None,
    ) -> Response:
        """Handle one incoming message.

        Args:
            message: Message or plain text.
            conversation_id: Conversation id; a new one is generated if neither
                this nor the message carries one.
            workflow_id: Run this workflow instead of consulting the policy.

        Returns:
            The delegated, local or synthesized response.

        Raises:
            AgentDelegationError: Whatever made the delegation or the workflow fail.
        """
        message = self._prepare_message(message, conversation_id)
        with turn_context(message.conversation_id, message.id):
            return await self._handle_turn(message, workflow_id)

    async def _handle_turn(self, message: Message, workflow_id: str | None) -> Response:
        conversation_id = message.conversation_id
        context = self._contexts.get_or_create(conversation_id)
        conv_logger = get_conversation_logger(conversation_id)
        conv_logger.info("message_received", message_id=message.id)

        if workflow_id is not None:
            execution = await self.execute_workflow(workflow_id, message)
            if execution.status == WorkflowStatus.FAILED:
                raise execution.failure or WorkflowError(
                    f"Workflow {workflow_id} failed", details={"errors": execution.errors}
                )
            if execution.response is None:
                raise WorkflowError(
                    f"Workflow execution {execution.id} was {execution.status.value}",
                    details={"execution_id": execution.id},
                )
            context.add_participant(self.COORDINATOR_ID)
            context.add_message(message, execution.response, self.COORDINATOR_ID)
            return execution.response

        evaluation = await self.analyze_delegation(message)
        if evaluation.should_delegate and evaluation.target_agent_id:
            if self._delegation_allowed(conversation_id):
                return await self._delegate_by_policy(
                    message, evaluation.target_agent_id, evaluation
                )
            conv_logger.info(
                "delegation_limit_reached",
                limit=self.settings.max_delegations,
                target_agent_id=evaluation.target_agent_id,
            )

        response = await self._respond_locally(message)
        context.add_participant(self.COORDINATOR_ID)
        context.add_message(message, response, self.COORDINATOR_ID)
        conv_logger.info("message_answered_locally", reason=evaluation.reason)
        return response

    def _delegation_allowed(self, conversation_id: str) -> bool:
        limit = self.settings.max_delegations
        return limit is None or self._policy_delegations[conversation_id] < limit

    async def _delegate_by_policy(
        self, message: Message, target_id: str, evaluation: PolicyEvaluation
    ) -> Response:
        self._policy_delegations[message.conversation_id] += 1

        response = await self.delegate_task(message, target_id)
        annotated = response.model_copy(
            update={
                "content": (
                    f"{response.content}\n\n"
                    f"*Delegated to {target_id} ({evaluation.reason})*"
                ),
                "metadata": {
                    **response.metadata,
                    "delegated_to": target_id,
                    "delegation_reason": evaluation.reason,
                    "confidence": evaluation.confidence,
                    "matched_rules": list(evaluation.matched_rule_ids),
                },
            }
        )

        context = self._contexts.get_or_create(message.conversation_id)
        context.add_participant(target_id)
        context.add_message(message, annotated, target_id)
        get_conversation_logger(message.conversation_id).info(
            "message_delegated",
            target_agent_id=target_id,
            confidence=evaluation.confidence,
        )
        return annotated

    async def _respond_locally(self, message: Message) -> Response:
        context = self._contexts.get_or_create(message.conversation_id)
        shared = json.dumps(
            context.get_shared_context(), indent=2, ensure_ascii=False, default=str
        )
        messages = [
            {
                "role": "system",
                "content": (
                    f"{self.settings.system_prompt}\n\n"
                    f"You are {self.settings.name}, {self.settings.description}.\n\n"
                    f"Conversation context: {shared}"
                ),
            }
        ]
        history = await self._memory.get_conversation_history(
            message.conversation_id, self._agent_defaults.history_limit
        )
        for past in history:
            role = "user" if past.sender == MessageSender.USER else "assistant"
            messages.append({"role": role, "content": past.content})
        messages.append({"role": "user", "content": message.content})

        started = time.perf_counter()
        llm_response = await self._generate(messages)
        elapsed = time.perf_counter() - started

        await self._memory.save_message(message)
        await self._memory.save_message(
            Message(
                content=llm_response.content,
                sender=MessageSender.AGENT,
                conversation_id=message.conversation_id,
                metadata={"agent_id": self.COORDINATOR_ID},
            )
        )
        return Response(
            content=llm_response.content,
            metadata={
                "agent_id": self.COORDINATOR_ID,
                "agent_name": self.settings.name,
                "model": llm_response.model,
                "usage": dict(llm_response.usage),
                "response_time": elapsed,
            },
        )

    # ------------------------------------------------------------------
    # Workflow execution
    # ------------------------------------------------------------------

    async def execute_workflow(
        self,
        workflow_id: str,
        message: Message | str,
        conversation_id: str | None = None,
    ) -> WorkflowExecution:
        """Run a workflow's steps in declared order.

        A step whose dependencies have no stored result fails the execution.
        So does any step or synthesis error; the execution is returned either
        way with the error recorded against the step that was running.

        Args:
            workflow_id: Registered workflow id.
            message: Original input of the workflow.
            conversation_id: Conversation the step delegations belong to.

        Returns:
            A copy of the finished execution.

        Raises:
            WorkflowNotFoundError: If the workflow is not registered.
        """
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        message = self._prepare_message(message, conversation_id)

        execution = WorkflowExecution(
            workflow_id=workflow.id,
            metadata={
                "conversation_id": message.conversation_id,
                "input": message.content,
            },
        )
        self._executions[execution.id] = execution
        self._active_executions.add(execution.id)
        wf_logger = get_workflow_logger(workflow.id, execution.id)
        wf_logger.info("workflow_started", steps=len(workflow.steps))

        try:
            await self._run_steps(workflow, execution, message)
        finally:
            self._active_executions.discard(execution.id)

        wf_logger.info(
            "workflow_finished",
            status=execution.status.value,
            errors=execution.errors,
        )
        return execution.snapshot()

    async def _run_steps(
        self, workflow: Workflow, execution: WorkflowExecution, message: Message
    ) -> None:
        previous: Response | None = None
        for step in workflow.steps:
            if execution.is_finished:
                return
            execution.current_step_id = step.id

            missing = [dep for dep in step.dependencies if dep not in execution.results]
            if missing:
                execution.mark_failed(step.id, WorkflowDependencyError(step.id, missing))
                return

            step_message = message.with_content(
                self._step_input(step, message, previous, execution),
                workflow_id=workflow.id,
                execution_id=execution.id,
                step_id=step.id,
            )
            try:
                response = await self.delegate_task(
                    step_message,
                    step.agent_id,
                    required_tools=step.required_tools,
                    extra_context={
                        "workflow": {
                            "id": workflow.id,
                            "name": workflow.name,
                            "step_id": step.id,
                            "task": step.task,
                            "expected_output": step.expected_output,
                        }
                    },
                )
            except Exception as e:
                if not execution.is_finished:
                    execution.mark_failed(step.id, e)
                return

            # cancelled while the step was running
            if execution.is_finished:
                return
            execution.record_result(step.id, response)
            previous = response

        try:
            final = await self._synthesize(workflow, execution, message)
        except Exception as e:
            if not execution.is_finished:
                execution.mark_failed(execution.current_step_id, e)
            return
        if not execution.is_finished:
            execution.mark_completed(final)

    @staticmethod
    def _step_input(
        step: WorkflowStep,
        message: Message,
        previous: Response | None,
        execution: WorkflowExecution,
    ) -> str:
        """Effective input: declared input, else previous result, else original."""
        if step.input:
            values = {step_id: r.content for step_id, r in execution.results.items()}
            values["input"] = message.content
            values["previous"] = previous.content if previous else message.content
            return Template(step.input).safe_substitute(values)
        if previous is not None:
            return previous.content
        return message.content

    async def _synthesize(
        self, workflow: Workflow, execution: WorkflowExecution, message: Message
    ) -> Response:
        sections = "\n\n".join(
            f"## Step {step_id}\n{response.content}"
            for step_id, response in execution.results.items()
        )
        messages = [
            {"role": "system", "content": self.settings.system_prompt},
            {
                "role": "user",
                "content": (
                    f"Combine the results of the workflow '{workflow.name}' into "
                    "one final answer to the original request.\n\n"
                    f"Original request: {message.content}\n\n{sections}"
                ),
            },
        ]
        llm_response = await self._generate(messages)
        return Response(
            content=f"**Workflow {workflow.name} completed**\n\n{llm_response.content}",
            metadata={
                "agent_id": self.COORDINATOR_ID,
                "workflow_id": workflow.id,
                "execution_id": execution.id,
                "steps": list(execution.results),
                "model": llm_response.model,
                "usage": dict(llm_response.usage),
            },
        )

    def cancel_workflow(self, execution_id: str) -> bool:
        """Stop tracking a running execution.

        Model or tool calls already in flight are not interrupted; their
        results are discarded.

        Returns:
            True if a running execution was cancelled.
        """
        if execution_id not in self._active_executions:
            return False
        self._executions[execution_id].mark_cancelled()
        self._active_executions.discard(execution_id)
        logger.info("workflow_cancelled", execution_id=execution_id)
        return True

    def prune_workflow_executions(self) -> int:
        """Forget every execution that is no longer running.

        Returns:
            Number of executions removed.
        """
        finished = [
            execution_id
            for execution_id in self._executions
            if execution_id not in self._active_executions
        ]
        for execution_id in finished:
            del self._executions[execution_id]
        logger.debug("workflow_executions_pruned", count=len(finished))
        return len(finished)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_context(self, conversation_id: str) -> dict[str, Any] | None:
        """Summary of a conversation's context, or None if it is unknown."""
        context = self._contexts.get(conversation_id)
        return context.get_context_summary() if context else None

    def get_delegation_stats(self) -> dict[str, Any]:
        """Aggregate delegation statistics across all conversations."""
        stats = self.manager.get_delegation_stats()
        stats["average_confidence"] = (
            self._confidence_total / self._confidence_count
            if self._confidence_count
            else 0.0
        )
        stats["active_workflows"] = len(self._active_executions)
        stats["registered_agents"] = len(self._agents)
        return stats

    async def health_check(self) -> dict[str, Any]:
        """Report model backend availability and per-agent health."""
        try:
            available = await self._provider.is_available()
        except Exception as e:
            logger.warning("provider_health_check_failed", error=str(e))
            available = False
        return {
            "provider": self._provider.provider_name,
            "provider_available": available,
            "agents": await self._agents.health_check_all(),
            "tools": len(self._tools),
            "workflows": len(self._workflows),
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _prepare_message(message: Message | str, conversation_id: str | None) -> Message:
        if isinstance(message, str):
            message = Message(content=message)
        resolved = conversation_id or message.conversation_id or str(uuid.uuid4())
        if message.conversation_id != resolved:
            message = message.model_copy(update={"conversation_id": resolved})
        return message

    async def _generate(
        self, messages: list[dict[str, str]], options: dict[str, Any] | None = None
    ) -> LLMResponse:
        model = self.settings.model
        timeout = self.settings.timeout_seconds
        try:
            return await run_with_timeout(
                self._provider.generate(messages, model=model, options=options),
                timeout,
                lambda: ModelTimeoutError(timeout or 0, model=model),
            )
        except ModelBackendError:
            raise
        except Exception as e:
            raise ModelBackendError(
                f"Error calling model: {e}",
                provider=self._provider.provider_name,
                model=model,
                cause=e,
            ) from e
