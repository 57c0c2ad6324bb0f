"""Model backend abstraction layer.

This module provides a unified interface for the Anthropic API and a local
Ollama server.
"""

from agent_delegation.llm.base import BaseLLMProvider, LLMResponse
from agent_delegation.llm.anthropic import AnthropicProvider
from agent_delegation.llm.ollama import OllamaProvider
from agent_delegation.llm.factory import LLMProviderFactory, get_provider

__all__ = [
    "BaseLLMProvider",
    "LLMResponse",
    "AnthropicProvider",
    "OllamaProvider",
    "LLMProviderFactory",
    "get_provider",
]
