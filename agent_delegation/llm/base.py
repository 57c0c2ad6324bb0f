"""Model backend interface.

The coordinator and its agents only see :class:`BaseLLMProvider`; swapping the
backend never touches routing or workflow code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LLMResponse:
    """Response from an LLM provider."""

    content: str
    model: str
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    usage: dict[str, int] = field(default_factory=dict)
    finish_reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    raw_response: Any = None

    @property
    def total_tokens(self) -> int:
        return self.usage.get("input_tokens", 0) + self.usage.get("output_tokens", 0)


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers.

    Messages are plain dicts with ``role`` (``system``, ``user`` or
    ``assistant``) and ``content`` keys. Recognized ``options`` are
    ``temperature`` and ``max_tokens``; providers ignore the rest.
    """

    def __init__(self, api_key: str | None = None, **kwargs: Any) -> None:
        """Initialize the LLM provider.

        Args:
            api_key: API key for authentication, if the backend needs one.
            **kwargs: Additional provider-specific configuration.
        """
        self._api_key = api_key or ""
        self._config = kwargs

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'anthropic', 'ollama')."""
        pass

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Return the default model for this provider."""
        pass

    @abstractmethod
    async def generate(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        options: dict[str, Any] | None = None,
    ) -> LLMResponse:
        """Generate a reply for a conversation.

        Args:
            messages: List of message dicts with 'role' and 'content' keys.
            model: Model to use. If None, uses default_model.
            options: Generation options such as temperature and max_tokens.

        Returns:
            LLMResponse containing the model's reply.

        Raises:
            ModelBackendError: If the backend call fails.
        """
        pass

    @abstractmethod
    async def is_available(self) -> bool:
        """Return True when the backend can be reached."""
        pass

    async def list_models(self) -> list[str]:
        """Models this backend can serve."""
        return [self.default_model]

    @staticmethod
    def split_system(
        messages: list[dict[str, str]],
    ) -> tuple[str | None, list[dict[str, str]]]:
        """Separate system messages from the conversation turns."""
        system_parts = [m["content"] for m in messages if m.get("role") == "system"]
        turns = [m for m in messages if m.get("role") != "system"]
        return ("\n\n".join(system_parts) or None), turns
