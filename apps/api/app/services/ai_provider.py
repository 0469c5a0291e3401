"""AI Provider abstraction layer.

One single-shot chat call per customer message; OpenAI and Google Gemini are
interchangeable behind `AIProvider.chat`.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"


class ProviderResponseError(RuntimeError):
    """The provider answered 2xx but the body is not a usable completion."""


@dataclass
class ChatMessage:
    role: str  # 'system', 'user', 'assistant'
    content: str


@dataclass
class ChatResponse:
    content: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    model: str


class AIProvider(ABC):
    """Anything that can answer a list of chat messages."""

    @abstractmethod
    async def chat(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 800,
        json_mode: bool = False,
    ) -> ChatResponse:
        """Send a chat completion request."""


class HTTPChatProvider(AIProvider):
    """Shared request/response plumbing for JSON-over-HTTPS chat APIs."""

    def __init__(self, api_key: str, default_model: str, timeout: float = 60.0):
        self.api_key = api_key
        self.default_model = default_model
        self.timeout = timeout

    @abstractmethod
    def _endpoint(self, model: str) -> tuple[str, dict[str, str], dict[str, str]]:
        """URL, query params and headers for one call."""

    @abstractmethod
    def _body(
        self, messages: list[ChatMessage], temperature: float, max_tokens: int, json_mode: bool, model: str
    ) -> dict[str, Any]: ...

    @abstractmethod
    def _completion(self, data: dict[str, Any]) -> tuple[str, int, int]:
        """(content, prompt_tokens, completion_tokens) from the decoded body."""

    async def chat(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 800,
        json_mode: bool = False,
    ) -> ChatResponse:
        model = model or self.default_model
        url, params, headers = self._endpoint(model)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                url,
                params=params,
                headers={"Content-Type": "application/json", **headers},
                json=self._body(messages, temperature, max_tokens, json_mode, model),
            )
            response.raise_for_status()
            data = response.json()

        try:
            content, prompt_tokens, completion_tokens = self._completion(data)
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderResponseError(f"{type(self).__name__}: unexpected response shape") from exc

        return ChatResponse(
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            model=model,
        )


class OpenAIProvider(HTTPChatProvider):
    base_url = "https://api.openai.com/v1"

    def __init__(self, api_key: str, default_model: str = DEFAULT_OPENAI_MODEL, timeout: float = 60.0):
        super().__init__(api_key, default_model, timeout)

    def _endpoint(self, model):
        return (
            f"{self.base_url}/chat/completions",
            {},
            {"Authorization": f"Bearer {self.api_key}"},
        )

    def _body(self, messages, temperature, max_tokens, json_mode, model):
        body: dict[str, Any] = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}
        return body

    def _completion(self, data):
        usage = data.get("usage") or {}
        return (
            data["choices"][0]["message"]["content"],
            usage.get("prompt_tokens", 0),
            usage.get("completion_tokens", 0),
        )


class GeminiProvider(HTTPChatProvider):
    base_url = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(self, api_key: str, default_model: str = DEFAULT_GEMINI_MODEL, timeout: float = 60.0):
        super().__init__(api_key, default_model, timeout)

    def _endpoint(self, model):
        return f"{self.base_url}/models/{model}:generateContent", {"key": self.api_key}, {}

    def _body(self, messages, temperature, max_tokens, json_mode, model):
        # Gemini has no 'system' turn; it goes in systemInstruction.
        system_parts = [{"text": m.content} for m in messages if m.role == "system"]
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
            for m in messages
            if m.role != "system"
        ]
        generation_config: dict[str, Any] = {"temperature": temperature, "maxOutputTokens": max_tokens}
        if json_mode:
            generation_config["responseMimeType"] = "application/json"

        body: dict[str, Any] = {"contents": contents, "generationConfig": generation_config}
        if system_parts:
            body["systemInstruction"] = {"parts": system_parts}
        return body

    def _completion(self, data):
        # A safety block returns a candidate without content.
        parts = data["candidates"][0]["content"]["parts"]
        usage = data.get("usageMetadata") or {}
        return (
            "".join(part.get("text", "") for part in parts),
            usage.get("promptTokenCount", 0),
            usage.get("candidatesTokenCount", 0),
        )


_PROVIDERS: dict[str, type[HTTPChatProvider]] = {
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


def get_provider(
    provider_name: str, api_key: str, model: str | None = None, timeout: float = 60.0
) -> AIProvider:
    provider_cls = _PROVIDERS.get(provider_name)
    if provider_cls is None:
        raise ValueError(f"Unknown provider: {provider_name}")
    if model:
        return provider_cls(api_key, default_model=model, timeout=timeout)
    return provider_cls(api_key, timeout=timeout)


def get_configured_provider() -> AIProvider | None:
    """Provider from settings, or None when no API key is configured."""
    if not settings.ai_configured:
        return None
    try:
        return get_provider(
            settings.AI_PROVIDER,
            settings.AI_API_KEY,
            model=settings.AI_MODEL or None,
            timeout=settings.AI_TRIAGE_TIMEOUT_SECONDS,
        )
    except ValueError as exc:
        logger.warning(f"AI provider misconfigured: {exc}")
        return None
