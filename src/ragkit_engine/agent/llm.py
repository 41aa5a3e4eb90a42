"""Chat-completion backends for answer generation.

Supports Ollama's native REST API and OpenAI-compatible servers.
Availability is probed per call through ``health_check``.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_OPENAI_URL = "https://api.openai.com/v1"


class ChatBackendError(RuntimeError):
    """The chat backend returned an error or could not be reached."""


class ChatBackend(Protocol):
    """Protocol for chat-completion backends."""

    model: str

    async def chat(self, messages: list[dict[str, str]], **options: Any) -> str: ...

    async def health_check(self) -> bool: ...

    def model_info(self) -> dict[str, str]: ...


# ---------------------------------------------------------------------------
# Ollama
# ---------------------------------------------------------------------------

class OllamaChatBackend:
    """Client for the Ollama REST API (``/api/chat``, ``/api/tags``)."""

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_URL,
        model: str = "deepseek-r1:8b",
        timeout: float = 120.0,
        temperature: float = 0.7,
        top_p: float = 0.9,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.top_p = top_p
        self._transport = transport

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or self.timeout,
            transport=self._transport,
        )

    async def health_check(self) -> bool:
        """True when Ollama answers and lists the configured model."""
        try:
            async with self._client(timeout=10.0) as client:
                response = await client.get("/api/tags")
        except httpx.HTTPError as e:
            logger.warning("Ollama health check error at %s: %s", self.base_url, e)
            return False

        if response.status_code != 200:
            logger.warning("Ollama health check failed with status %d", response.status_code)
            return False

        family = self.model.split(":")[0]
        try:
            models = response.json().get("models") or []
            found = any(
                m.get("name") == self.model
                or m.get("model") == self.model
                or family in (m.get("name") or "")
                for m in models
            )
        except (ValueError, AttributeError, TypeError):
            logger.warning("Ollama health check returned an unexpected model list")
            return False

        if not found:
            logger.warning("Model %r not found among available Ollama models", self.model)
        return found

    async def chat(self, messages: list[dict[str, str]], **options: Any) -> str:
        """Non-streaming chat completion, returns the assistant text."""
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": options.pop("temperature", self.temperature),
                "top_p": options.pop("top_p", self.top_p),
                **options,
            },
        }
        try:
            async with self._client() as client:
                response = await client.post("/api/chat", json=payload)
        except httpx.HTTPError as e:
            raise ChatBackendError(f"Ollama request failed: {e}") from e

        if response.status_code != 200:
            raise ChatBackendError(f"Ollama API error: {response.status_code} - {response.text}")

        data = response.json()
        return (data.get("message") or {}).get("content") or ""

    def model_info(self) -> dict[str, str]:
        return {"baseUrl": self.base_url, "model": self.model}


# ---------------------------------------------------------------------------
# OpenAI-compatible
# ---------------------------------------------------------------------------

class OpenAICompatibleChatBackend:
    """OpenAI-compatible chat client (OpenAI, vLLM, LM Studio, Ollama /v1)."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = DEFAULT_OPENAI_URL,
        model: str = "gpt-4o-mini",
        timeout: float = 120.0,
        temperature: float = 0.7,
        top_p: float = 0.9,
    ) -> None:
        self._api_key = api_key
        self.base_url = base_url
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.top_p = top_p
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazy-create the OpenAI client on first use."""
        if self._client is not None:
            return self._client

        from openai import AsyncOpenAI

        self._client = AsyncOpenAI(
            base_url=self.base_url,
            api_key=self._api_key or "not-needed",
            timeout=self.timeout,
        )
        return self._client

    async def health_check(self) -> bool:
        import openai

        try:
            models = await self._get_client().models.list()
        except openai.OpenAIError as e:
            logger.warning("OpenAI-compatible health check error at %s: %s", self.base_url, e)
            return False
        return any(m.id == self.model for m in models.data)

    async def chat(self, messages: list[dict[str, str]], **options: Any) -> str:
        import openai

        try:
            response = await self._get_client().chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=options.get("temperature", self.temperature),
                top_p=options.get("top_p", self.top_p),
            )
        except openai.OpenAIError as e:
            raise ChatBackendError(f"OpenAI-compatible request failed: {e}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    def model_info(self) -> dict[str, str]:
        return {"baseUrl": self.base_url, "model": self.model}


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_chat_backend(settings: Any) -> ChatBackend:
    """Create the chat backend selected by ``settings.chat_provider``."""
    provider = settings.chat_provider

    if provider == "ollama":
        return OllamaChatBackend(  # type: ignore[return-value]
            base_url=settings.chat_base_url or DEFAULT_OLLAMA_URL,
            model=settings.chat_model,
            timeout=settings.chat_timeout,
            temperature=settings.temperature,
            top_p=settings.top_p,
        )
    elif provider == "openai":
        return OpenAICompatibleChatBackend(  # type: ignore[return-value]
            api_key=settings.chat_api_key,
            base_url=settings.chat_base_url or DEFAULT_OPENAI_URL,
            model=settings.chat_model,
            timeout=settings.chat_timeout,
            temperature=settings.temperature,
            top_p=settings.top_p,
        )
    else:
        raise ValueError(f"Unknown chat provider: {provider}")
