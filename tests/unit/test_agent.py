"""Tests for Agent and the in-memory memory store."""

import asyncio

import pytest

from agent_delegation.agents import Agent, AgentContext
from agent_delegation.models import (
    AgentDescriptor,
    AgentStatus,
    Message,
    MessageSender,
)
from agent_delegation.utils.config import AgentDefaults
from agent_delegation.utils.exceptions import (
    AgentBusyError,
    DelegationTimeoutError,
    ModelBackendError,
    ModelTimeoutError,
)
from conftest import make_llm_response


class TestInMemoryMemoryStore:
    """Tests for InMemoryMemoryStore."""

    async def test_history_is_limited_and_ordered(self, memory):
        for i in range(5):
            await memory.save_message(Message(content=str(i), conversation_id="c1"))
        history = await memory.get_conversation_history("c1", limit=3)
        assert [m.content for m in history] == ["2", "3", "4"]

    async def test_conversations_are_separate(self, memory):
        await memory.save_message(Message(content="a", conversation_id="c1"))
        await memory.save_message(Message(content="b", conversation_id="c2"))
        assert len(await memory.get_conversation_history("c1")) == 1
        assert await memory.get_conversation_history("missing") == []

    async def test_zero_limit(self, memory):
        await memory.save_message(Message(content="a", conversation_id="c1"))
        assert await memory.get_conversation_history("c1", limit=0) == []

    async def test_clear(self, memory):
        await memory.save_message(Message(content="a", conversation_id="c1"))
        await memory.save_message(Message(content="b", conversation_id="c2"))
        memory.clear("c1")
        assert len(memory) == 1
        memory.clear()
        assert len(memory) == 0


class TestAgentPrompt:
    """Tests for system prompt construction."""

    def test_generated_prompt(self, analyst):
        prompt = analyst.build_system_prompt()
        assert prompt.startswith("You are Analyst, analyst.")
        assert "- Answer numeric questions" in prompt
        assert "Available tools: math.add, broken" in prompt
        assert "@tool.name(" in prompt

    def test_verbatim_prompt(self, mock_provider, memory):
        descriptor = AgentDescriptor(id="a", name="A", system_prompt="Only this.")
        agent = Agent(descriptor, mock_provider, memory)
        assert agent.build_system_prompt() == "Only this."

    def test_blank_prompt_falls_back(self, mock_provider, memory):
        descriptor = AgentDescriptor(id="a", name="A", system_prompt="   ")
        agent = Agent(descriptor, mock_provider, memory)
        assert "You are A" in agent.build_system_prompt()


class TestAgentProcess:
    """Tests for Agent.process."""

    async def test_reply_and_metadata(self, analyst, mock_provider):
        mock_provider.generate.return_value = make_llm_response(
            "Four", finish_reason="end_turn"
        )
        response = await analyst.process("2 + 2?")

        assert response.content == "Four"
        assert response.tool_calls is None
        assert response.metadata["agent_id"] == "analyst"
        assert response.metadata["agent_name"] == "Analyst"
        assert response.metadata["usage"] == {"input_tokens": 10, "output_tokens": 5}
        assert response.metadata["finish_reason"] == "end_turn"
        assert response.metadata["response_time"] >= 0
        assert analyst.status == AgentStatus.ACTIVE

    async def test_generation_options(self, mock_provider, memory):
        descriptor = AgentDescriptor(
            id="a", name="A", model="qwen2.5:7b", temperature=0.0
        )
        agent = Agent(descriptor, mock_provider, memory, AgentDefaults(max_tokens=99))
        await agent.process("hi")

        kwargs = mock_provider.generate.call_args.kwargs
        assert kwargs["model"] == "qwen2.5:7b"
        assert kwargs["options"] == {"temperature": 0.0, "max_tokens": 99}

    async def test_history_is_sent_and_saved(self, analyst, mock_provider, memory):
        context = AgentContext(conversation_id="c1", metadata={"source": "test"})
        await analyst.process("first", context)
        mock_provider.generate.return_value = make_llm_response("second reply")
        await analyst.process("second", context)

        messages = mock_provider.generate.call_args.args[0]
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[1]["content"] == "first"
        assert messages[-1]["content"] == "second"

        history = await memory.get_conversation_history("c1")
        assert len(history) == 4
        assert history[0].sender == MessageSender.USER
        assert history[0].metadata == {"source": "test", "agent_id": "analyst"}
        assert history[-1].sender == MessageSender.AGENT
        assert history[-1].content == "second reply"

    async def test_history_limit(self, analyst_descriptor, mock_provider, memory):
        agent = Agent(
            analyst_descriptor, mock_provider, memory, AgentDefaults(history_limit=1)
        )
        context = AgentContext(conversation_id="c1")
        await agent.process("one", context)
        await agent.process("two", context)

        messages = mock_provider.generate.call_args.args[0]
        assert len(messages) == 3

    async def test_system_prompt_override(self, analyst, mock_provider):
        await analyst.process("hi", AgentContext(system_prompt="Custom"))
        messages = mock_provider.generate.call_args.args[0]
        assert messages[0] == {"role": "system", "content": "Custom"}

    async def test_native_tool_calls(self, analyst, mock_provider):
        mock_provider.generate.return_value = make_llm_response(
            "", tool_calls=[{"name": "math.add", "arguments": {"a": 1, "b": 2}}]
        )
        response = await analyst.process("add")
        assert response.tool_calls[0].name == "math.add"
        assert response.tool_calls[0].arguments == {"a": 1, "b": 2}

    async def test_backend_error_is_wrapped(self, analyst, mock_provider, memory):
        mock_provider.generate.side_effect = RuntimeError("connection reset")
        with pytest.raises(ModelBackendError, match="connection reset"):
            await analyst.process("hi", AgentContext(conversation_id="c1"))
        assert analyst.status == AgentStatus.ERROR
        assert analyst.is_busy is False
        assert len(memory) == 0

    async def test_timeout(self, analyst_descriptor, mock_provider, memory):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)

        mock_provider.generate.side_effect = slow
        agent = Agent(analyst_descriptor, mock_provider, memory, timeout_seconds=0.01)
        with pytest.raises(ModelTimeoutError) as exc_info:
            await agent.process("hi")
        assert exc_info.value.timeout_seconds == 0.01
        assert not isinstance(exc_info.value, DelegationTimeoutError)

    async def test_busy_agent_rejects_second_call(self, analyst, mock_provider):
        release = asyncio.Event()

        async def blocked(*args, **kwargs):
            await release.wait()
            return make_llm_response("done")

        mock_provider.generate.side_effect = blocked
        first = asyncio.create_task(analyst.process("one"))
        await asyncio.sleep(0)
        assert analyst.is_busy

        with pytest.raises(AgentBusyError):
            await analyst.process("two")

        release.set()
        assert (await first).content == "done"
        assert not analyst.is_busy


class TestAgentLifecycle:
    """Tests for activation and health checks."""

    def test_activate_deactivate(self, analyst):
        analyst.deactivate()
        assert not analyst.is_active
        analyst.activate()
        assert analyst.is_active

    async def test_health_check(self, analyst):
        health = await analyst.health_check()
        assert health["agent_id"] == "analyst"
        assert health["status"] == "healthy"
        assert health["tools"] == ["math.add", "broken"]
