"""Agent - a configured persona backed by a model.

An agent turns one message plus recent conversation history into a reply.
It accepts one call at a time; a second call made while the first is still
awaiting the model is a programming error and raises :class:`AgentBusyError`.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from agent_delegation.agents.memory import MemoryStore
from agent_delegation.llm.base import BaseLLMProvider, LLMResponse
from agent_delegation.models import (
    AgentDescriptor,
    AgentStatus,
    Message,
    MessageSender,
    Response,
    ToolCall,
)
from agent_delegation.utils.config import AgentDefaults
from agent_delegation.utils.exceptions import (
    AgentBusyError,
    AgentDelegationError,
    ModelBackendError,
    ModelTimeoutError,
)
from agent_delegation.utils.logging import get_agent_logger
from agent_delegation.utils.timeouts import run_with_timeout


@dataclass
class AgentContext:
    """Per-call context handed to :meth:`Agent.process`.

    Attributes:
        conversation_id: Conversation whose history is loaded and extended.
        system_prompt: Verbatim system prompt overriding the agent's own.
        metadata: Stored with the user message.
    """

    conversation_id: str | None = None
    system_prompt: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class Agent:
    """Runtime wrapper around an :class:`AgentDescriptor`.

    Attributes:
        descriptor: Immutable agent definition.
        status: Current agent status.
    """

    def __init__(
        self,
        descriptor: AgentDescriptor,
        provider: BaseLLMProvider,
        memory: MemoryStore,
        defaults: AgentDefaults | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        """Initialize the agent.

        Args:
            descriptor: Agent definition.
            provider: Model backend used for generation.
            memory: Store for conversation history.
            defaults: Generation settings used where the descriptor sets none.
            timeout_seconds: Deadline for a model call; None disables it.
        """
        self._descriptor = descriptor
        self._provider = provider
        self._memory = memory
        self._defaults = defaults or AgentDefaults()
        self._timeout_seconds = timeout_seconds
        self._status = AgentStatus.ACTIVE
        self._busy = False
        self._logger = get_agent_logger(descriptor.id, descriptor.name)

    @property
    def descriptor(self) -> AgentDescriptor:
        """Get the agent definition."""
        return self._descriptor

    @property
    def id(self) -> str:
        return self._descriptor.id

    @property
    def status(self) -> AgentStatus:
        """Get the current agent status."""
        return self._status

    @property
    def is_active(self) -> bool:
        """Check if the agent accepts work."""
        return self._status != AgentStatus.INACTIVE

    @property
    def is_busy(self) -> bool:
        return self._busy

    def activate(self) -> None:
        """Activate the agent."""
        self._status = AgentStatus.ACTIVE

    def deactivate(self) -> None:
        """Deactivate the agent."""
        self._status = AgentStatus.INACTIVE

    def build_system_prompt(self) -> str:
        """Return the descriptor's system prompt or one generated from it."""
        descriptor = self._descriptor
        if descriptor.system_prompt and descriptor.system_prompt.strip():
            return descriptor.system_prompt

        goals = "\n".join(f"- {goal}" for goal in descriptor.goals) or "- Help the user"
        tools = ", ".join(descriptor.tools) or "none"
        return (
            f"You are {descriptor.name}, {descriptor.role}.\n\n"
            f"Goals:\n{goals}\n\n"
            f"Communication style: {descriptor.style.tone}\n"
            f"Language: {descriptor.style.language}\n\n"
            f"Available tools: {tools}\n"
            'To use a tool, write @tool.name({"argument": "value"}) in your reply.\n\n'
            "Instructions:\n"
            "1. Be helpful and precise\n"
            "2. Use tools when necessary\n"
            "3. Explain your reasoning\n"
            "4. Respect your security permissions"
        )

    async def process(
        self, content: str, context: AgentContext | None = None
    ) -> Response:
        """Generate a reply to ``content``.

        Args:
            content: Message text.
            context: Conversation id, system prompt override and metadata.

        Returns:
            Response with the model's text; native model tool calls are in
            ``tool_calls`` and token usage in ``metadata``.

        Raises:
            AgentBusyError: If a previous call has not finished.
            ModelBackendError: If the model call fails or times out.
        """
        if self._busy:
            raise AgentBusyError(self.id)
        self._busy = True
        self._status = AgentStatus.BUSY
        context = context or AgentContext()
        started = time.perf_counter()

        try:
            messages = await self._build_messages(content, context)
            llm_response = await self._generate(messages)

            user_message = Message(
                content=content,
                sender=MessageSender.USER,
                conversation_id=context.conversation_id,
                metadata={**context.metadata, "agent_id": self.id},
            )
            reply_message = Message(
                content=llm_response.content,
                sender=MessageSender.AGENT,
                conversation_id=context.conversation_id,
                metadata={"agent_id": self.id},
            )
            await self._memory.save_message(user_message)
            await self._memory.save_message(reply_message)

            self._status = AgentStatus.ACTIVE
            return self._to_response(llm_response, time.perf_counter() - started)
        except ModelBackendError:
            self._status = AgentStatus.ERROR
            raise
        finally:
            self._busy = False
            if self._status == AgentStatus.BUSY:
                self._status = AgentStatus.ACTIVE

    async def _build_messages(
        self, content: str, context: AgentContext
    ) -> list[dict[str, str]]:
        system_prompt = context.system_prompt or self.build_system_prompt()
        messages = [{"role": "system", "content": system_prompt}]

        if context.conversation_id:
            history = await self._memory.get_conversation_history(
                context.conversation_id, self._defaults.history_limit
            )
            for past in history:
                role = "user" if past.sender == MessageSender.USER else "assistant"
                messages.append({"role": role, "content": past.content})

        messages.append({"role": "user", "content": content})
        return messages

    async def _generate(self, messages: list[dict[str, str]]) -> LLMResponse:
        model = self._descriptor.model
        options = {
            "temperature": (
                self._descriptor.temperature
                if self._descriptor.temperature is not None
                else self._defaults.temperature
            ),
            "max_tokens": self._descriptor.max_tokens or self._defaults.max_tokens,
        }
        self._logger.debug("model_call_started", model=model, messages=len(messages))
        try:
            return await run_with_timeout(
                self._provider.generate(messages, model=model, options=options),
                self._timeout_seconds,
                lambda: ModelTimeoutError(self._timeout_seconds or 0, model=model),
            )
        except AgentDelegationError as e:
            if isinstance(e, ModelBackendError):
                self._logger.error("model_call_failed", error=str(e))
                raise
            raise ModelBackendError(str(e), model=model, cause=e) from e
        except Exception as e:
            self._logger.error("model_call_failed", error=str(e))
            raise ModelBackendError(
                f"Error calling model: {e}",
                provider=self._provider.provider_name,
                model=model,
                cause=e,
            ) from e

    def _to_response(self, llm_response: LLMResponse, elapsed: float) -> Response:
        tool_calls = [
            ToolCall(name=call.get("name", ""), arguments=call.get("arguments") or {})
            for call in llm_response.tool_calls
        ]
        return Response(
            content=llm_response.content,
            tool_calls=tool_calls or None,
            metadata={
                "agent_id": self.id,
                "agent_name": self._descriptor.name,
                "model": llm_response.model,
                "usage": dict(llm_response.usage),
                "finish_reason": llm_response.finish_reason,
                "response_time": elapsed,
            },
        )

    async def health_check(self) -> dict[str, Any]:
        """Perform a health check on the agent.

        Returns:
            Dictionary containing health status information.
        """
        return {
            "agent_id": self.id,
            "name": self._descriptor.name,
            "status": "healthy" if self._status != AgentStatus.ERROR else "unhealthy",
            "agent_status": self._status.value,
            "model": self._descriptor.model,
            "tools": list(self._descriptor.tools),
        }
