"""Shared test fixtures."""

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from agent_delegation.agents import Agent, InMemoryMemoryStore
from agent_delegation.core import ContextStore, Coordinator, DelegationManager
from agent_delegation.core.coordinator import CLASSIFICATION_SYSTEM_PROMPT
from agent_delegation.llm.base import BaseLLMProvider, LLMResponse
from agent_delegation.models import AgentDescriptor, AgentPermissions
from agent_delegation.tools import FunctionTool, ToolRegistry, ToolSecurity
from agent_delegation.utils.config import CoordinatorSettings, reset_config


def make_llm_response(content: str = "Mock reply", **kwargs: Any) -> LLMResponse:
    """Build an LLMResponse with test defaults."""
    kwargs.setdefault("model", "mock-model")
    kwargs.setdefault("usage", {"input_tokens": 10, "output_tokens": 5})
    return LLMResponse(content=content, **kwargs)


def is_classification_call(messages: list[dict[str, str]]) -> bool:
    return bool(messages) and messages[0]["content"] == CLASSIFICATION_SYSTEM_PROMPT


def make_responder(
    classification: dict[str, Any] | str | None = None,
    reply: str = "Agent reply",
    synthesis: str = "Combined answer",
) -> Callable[..., Any]:
    """Build a ``generate`` side effect that answers by call kind.

    Classification calls get ``classification`` (JSON-encoded when a dict),
    workflow synthesis calls get ``synthesis`` and everything else ``reply``.
    """
    if classification is None:
        classification = {"type": "general", "complexity": "simple"}
    classification_text = (
        classification if isinstance(classification, str) else json.dumps(classification)
    )

    async def responder(
        messages: list[dict[str, str]],
        model: str | None = None,
        options: dict[str, Any] | None = None,
    ) -> LLMResponse:
        if is_classification_call(messages):
            return make_llm_response(classification_text)
        if messages[-1]["content"].startswith("Combine the results"):
            return make_llm_response(synthesis)
        return make_llm_response(reply)

    return responder


@pytest.fixture(autouse=True)
def reset_global_config():
    """Reset the global configuration around every test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def mock_provider() -> MagicMock:
    """Model backend whose ``generate`` is an AsyncMock."""
    provider = MagicMock(spec=BaseLLMProvider)
    provider.provider_name = "mock"
    provider.default_model = "mock-model"
    provider.generate = AsyncMock(return_value=make_llm_response())
    provider.is_available = AsyncMock(return_value=True)
    return provider


@pytest.fixture
def memory() -> InMemoryMemoryStore:
    return InMemoryMemoryStore()


@pytest.fixture
def tool_registry() -> ToolRegistry:
    """Registry with a pure tool, a network tool and a failing tool."""
    registry = ToolRegistry()

    def add(a: float, b: float) -> float:
        """Add two numbers."""
        return a + b

    async def fetch(url: str) -> dict[str, Any]:
        return {"url": url, "status": 200}

    def explode() -> None:
        raise RuntimeError("boom")

    registry.register(FunctionTool("math.add", add))
    registry.register(
        FunctionTool("web.get", fetch, security=ToolSecurity(requires_network=True))
    )
    registry.register(FunctionTool("broken", explode))
    return registry


@pytest.fixture
def analyst_descriptor() -> AgentDescriptor:
    """Analyst allowed to use math.add and broken, without network access."""
    return AgentDescriptor(
        id="analyst",
        name="Analyst",
        description="a careful data analyst",
        role="analyst",
        goals=("Answer numeric questions",),
        tools=("math.add", "broken"),
        permissions=AgentPermissions(tools=frozenset({"math.add", "broken"})),
    )


@pytest.fixture
def analyst(
    analyst_descriptor: AgentDescriptor,
    mock_provider: MagicMock,
    memory: InMemoryMemoryStore,
) -> Agent:
    return Agent(analyst_descriptor, mock_provider, memory)


@pytest.fixture
def contexts() -> ContextStore:
    return ContextStore()


@pytest.fixture
def manager(tool_registry: ToolRegistry, contexts: ContextStore) -> DelegationManager:
    return DelegationManager(tool_registry, contexts)


@pytest.fixture
def coordinator(
    mock_provider: MagicMock,
    tool_registry: ToolRegistry,
    memory: InMemoryMemoryStore,
) -> Coordinator:
    """Coordinator with default rules and no registered agents."""
    return Coordinator(
        CoordinatorSettings(max_delegations=None),
        mock_provider,
        tool_registry,
        memory,
    )
