"""Anthropic Messages API backend."""

from __future__ import annotations

import os
from typing import Any

import anthropic

from agent_delegation.llm.base import BaseLLMProvider, LLMResponse
from agent_delegation.utils.exceptions import ModelBackendError

DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.7


class AnthropicProvider(BaseLLMProvider):
    """Claude models through ``anthropic.AsyncAnthropic``.

    System messages become the ``system`` parameter. ``tool_use`` content
    blocks come back as :attr:`LLMResponse.tool_calls` and are never executed
    here.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        client: anthropic.AsyncAnthropic | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Args:
            api_key: API key; ANTHROPIC_API_KEY when omitted.
            base_url: Alternative API endpoint.
            client: Preconfigured client, replaces the one built here.
        """
        api_key = api_key or os.getenv("ANTHROPIC_API_KEY", "")
        super().__init__(api_key=api_key, **kwargs)
        self._client = client or anthropic.AsyncAnthropic(
            api_key=api_key, base_url=base_url
        )

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def default_model(self) -> str:
        return "claude-haiku-4-5-20251001"

    async def generate(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        options: dict[str, Any] | None = None,
    ) -> LLMResponse:
        model = model or self.default_model
        options = options or {}
        system, turns = self.split_system(messages)

        params: dict[str, Any] = {
            "model": model,
            "messages": turns,
            "max_tokens": options.get("max_tokens", DEFAULT_MAX_TOKENS),
            "temperature": options.get("temperature", DEFAULT_TEMPERATURE),
        }
        if system:
            params["system"] = system

        try:
            message = await self._client.messages.create(**params)
        except anthropic.APIError as e:
            raise ModelBackendError(
                f"Anthropic request failed: {e}",
                provider=self.provider_name,
                model=model,
                cause=e,
            ) from e
        return self._to_response(message)

    def _to_response(self, message: Any) -> LLMResponse:
        text = "".join(block.text for block in message.content if block.type == "text")
        tool_calls = [
            {"id": block.id, "name": block.name, "arguments": dict(block.input)}
            for block in message.content
            if block.type == "tool_use"
        ]
        return LLMResponse(
            content=text,
            model=message.model,
            tool_calls=tool_calls,
            usage={
                "input_tokens": message.usage.input_tokens,
                "output_tokens": message.usage.output_tokens,
            },
            finish_reason=message.stop_reason,
            metadata={"provider": self.provider_name, "id": message.id},
            raw_response=message,
        )

    async def list_models(self) -> list[str]:
        """Model ids the account can use.

        Raises:
            ModelBackendError: If the API cannot be reached.
        """
        try:
            page = await self._client.models.list()
        except anthropic.APIError as e:
            raise ModelBackendError(
                f"Cannot list Anthropic models: {e}",
                provider=self.provider_name,
                cause=e,
            ) from e
        return [model.id for model in page.data]

    async def is_available(self) -> bool:
        try:
            await self._client.models.list(limit=1)
        except anthropic.APIError:
            return False
        return True
