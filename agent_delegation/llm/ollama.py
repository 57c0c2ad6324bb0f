"""Ollama LLM Provider implementation.

This module talks to a local Ollama server over its REST API using httpx.
"""

from __future__ import annotations

import os
from typing import Any

import httpx

from agent_delegation.llm.base import BaseLLMProvider, LLMResponse
from agent_delegation.utils.exceptions import ModelBackendError


class OllamaProvider(BaseLLMProvider):
    """Ollama REST API provider.

    Uses ``/api/chat`` (non-streaming) for generation and ``/api/tags`` for
    model discovery.
    """

    DEFAULT_BASE_URL = "http://localhost:11434"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str = "qwen2.5:7b",
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the Ollama provider.

        Args:
            api_key: Unused; Ollama has no authentication.
            base_url: Server URL. If None, reads OLLAMA_BASE_URL or uses localhost.
            default_model: Model used when a call does not name one.
            timeout: HTTP timeout per request in seconds.
            client: Optional preconfigured httpx client (mainly for testing).
            **kwargs: Additional configuration.
        """
        super().__init__(api_key=api_key, **kwargs)
        self._base_url = (
            base_url or os.getenv("OLLAMA_BASE_URL") or self.DEFAULT_BASE_URL
        ).rstrip("/")
        self._default_model = default_model
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url, timeout=timeout
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "ollama"

    @property
    def default_model(self) -> str:
        """Return the default model."""
        return self._default_model

    @property
    def base_url(self) -> str:
        return self._base_url

    async def generate(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        options: dict[str, Any] | None = None,
    ) -> LLMResponse:
        """Send a chat request to Ollama."""
        used_model = model or self.default_model
        options = options or {}

        model_options: dict[str, Any] = {}
        if "temperature" in options:
            model_options["temperature"] = options["temperature"]
        if "max_tokens" in options:
            model_options["num_predict"] = options["max_tokens"]

        payload: dict[str, Any] = {
            "model": used_model,
            "messages": messages,
            "stream": False,
        }
        if model_options:
            payload["options"] = model_options

        try:
            response = await self._client.post("/api/chat", json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ModelBackendError(
                f"Ollama request failed: {e}",
                provider=self.provider_name,
                model=used_model,
                cause=e,
            ) from e

        message = data.get("message") or {}
        tool_calls = [
            {
                "name": call.get("function", {}).get("name", ""),
                "arguments": call.get("function", {}).get("arguments") or {},
            }
            for call in message.get("tool_calls") or []
        ]

        return LLMResponse(
            content=message.get("content", ""),
            model=data.get("model", used_model),
            tool_calls=tool_calls,
            usage={
                "input_tokens": data.get("prompt_eval_count", 0),
                "output_tokens": data.get("eval_count", 0),
            },
            finish_reason=data.get("done_reason"),
            metadata={
                "provider": self.provider_name,
                "total_duration": data.get("total_duration"),
            },
            raw_response=data,
        )

    async def is_available(self) -> bool:
        """Check whether the Ollama server answers."""
        try:
            response = await self._client.get("/api/tags")
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    async def list_models(self) -> list[str]:
        """List models installed on the Ollama server."""
        try:
            response = await self._client.get("/api/tags")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ModelBackendError(
                f"Failed to list Ollama models: {e}",
                provider=self.provider_name,
                cause=e,
            ) from e
        return [model["name"] for model in data.get("models", [])]

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
