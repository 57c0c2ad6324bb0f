"""Model backend selection.

A model name decides which backend serves it: exact registrations first, then
the naming conventions of each backend (``claude-*`` for Anthropic,
``name:tag`` for Ollama).
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from agent_delegation.llm.anthropic import AnthropicProvider
from agent_delegation.llm.base import BaseLLMProvider
from agent_delegation.llm.ollama import OllamaProvider
from agent_delegation.utils.exceptions import InvalidConfigurationError

if TYPE_CHECKING:
    from agent_delegation.utils.config import AppConfig

DEFAULT_PROVIDER = "anthropic"


def _looks_like_claude(model: str) -> bool:
    return model.startswith("claude")


def _looks_like_ollama(model: str) -> bool:
    return ":" in model


class LLMProviderFactory:
    """Registry of backends and the models each one serves."""

    _providers: dict[str, type[BaseLLMProvider]] = {
        "anthropic": AnthropicProvider,
        "ollama": OllamaProvider,
    }

    _models: dict[str, str] = {}

    # Checked in order after the exact registrations
    _conventions: list[tuple[str, Callable[[str], bool]]] = [
        ("anthropic", _looks_like_claude),
        ("ollama", _looks_like_ollama),
    ]

    @classmethod
    def register_provider(cls, name: str, provider_class: type[BaseLLMProvider]) -> None:
        cls._providers[name] = provider_class

    @classmethod
    def register_model(cls, model_name: str, provider_name: str) -> None:
        """Route ``model_name`` to ``provider_name`` regardless of its shape."""
        cls._models[model_name] = provider_name

    @classmethod
    def list_providers(cls) -> list[str]:
        return list(cls._providers)

    @classmethod
    def get_provider_for_model(cls, model: str) -> str | None:
        """Name of the backend serving ``model``, or None if no backend claims it."""
        if model in cls._models:
            return cls._models[model]
        for provider_name, matches in cls._conventions:
            if matches(model):
                return provider_name
        return None

    @classmethod
    def create(
        cls,
        provider: str | None = None,
        model: str | None = None,
        **kwargs: Any,
    ) -> BaseLLMProvider:
        """Instantiate a backend by name, or by the model it should serve.

        Falls back to Anthropic when neither names a backend.

        Raises:
            InvalidConfigurationError: If the backend is not registered.
        """
        if provider is None and model:
            provider = cls.get_provider_for_model(model)
        provider = provider or DEFAULT_PROVIDER

        provider_class = cls._providers.get(provider)
        if provider_class is None:
            raise InvalidConfigurationError(
                "provider",
                provider,
                message=(
                    f"Unknown provider: {provider}. "
                    f"Available: {', '.join(cls._providers)}"
                ),
            )
        return provider_class(**kwargs)

    @classmethod
    def from_config(cls, config: AppConfig) -> BaseLLMProvider:
        """Backend for the coordinator's model, configured from ``config``."""
        if cls.get_provider_for_model(config.coordinator.model) == "ollama":
            return cls.create(
                "ollama",
                base_url=config.ollama.base_url,
                default_model=config.ollama.default_model,
                timeout=config.ollama.request_timeout,
            )
        return cls.create(
            "anthropic",
            api_key=config.anthropic.api_key or None,
            base_url=config.anthropic.base_url,
        )


def get_provider(
    provider: str | None = None, model: str | None = None, **kwargs: Any
) -> BaseLLMProvider:
    """Shortcut for :meth:`LLMProviderFactory.create`."""
    return LLMProviderFactory.create(provider=provider, model=model, **kwargs)
