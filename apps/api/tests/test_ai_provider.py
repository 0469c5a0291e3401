import json

import httpx
import pytest

from app.core.config import settings
from app.services import ai_provider
from app.services.ai_provider import (
    ChatMessage,
    GeminiProvider,
    OpenAIProvider,
    ProviderResponseError,
    get_configured_provider,
    get_provider,
)

MESSAGES = [
    ChatMessage(role="system", content="You are a support assistant."),
    ChatMessage(role="user", content="How do I reset my password?"),
]


@pytest.fixture
def captured(monkeypatch):
    """Route provider HTTP calls to a queue of canned responses."""
    state = {"requests": [], "responses": []}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        return state["responses"].pop(0)

    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        ai_provider.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )
    return state


async def test_openai_request_and_usage(captured):
    captured["responses"].append(
        httpx.Response(
            200,
            json={
                "choices": [{"message": {"content": '{"canResolve": true}'}}],
                "usage": {"prompt_tokens": 12, "completion_tokens": 5},
            },
        )
    )

    result = await OpenAIProvider("sk-test").chat(MESSAGES, json_mode=True)

    request = captured["requests"][0]
    body = json.loads(request.content)
    assert request.url.path == "/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert body["model"] == ai_provider.DEFAULT_OPENAI_MODEL
    assert body["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in body["messages"]] == ["system", "user"]
    assert result.content == '{"canResolve": true}'
    assert (result.prompt_tokens, result.completion_tokens, result.total_tokens) == (12, 5, 17)


async def test_gemini_moves_system_prompt_to_instruction(captured):
    captured["responses"].append(
        httpx.Response(
            200,
            json={
                "candidates": [{"content": {"parts": [{"text": '{"canResolve": '}, {"text": "false}"}]}}],
                "usageMetadata": {"promptTokenCount": 7, "candidatesTokenCount": 3},
            },
        )
    )

    result = await GeminiProvider("g-key", default_model="gemini-test").chat(MESSAGES, json_mode=True)

    request = captured["requests"][0]
    body = json.loads(request.content)
    assert request.url.path == "/v1beta/models/gemini-test:generateContent"
    assert request.url.params["key"] == "g-key"
    assert body["systemInstruction"] == {"parts": [{"text": "You are a support assistant."}]}
    assert body["contents"] == [{"role": "user", "parts": [{"text": "How do I reset my password?"}]}]
    assert body["generationConfig"]["responseMimeType"] == "application/json"
    assert result.content == '{"canResolve": false}'
    assert result.total_tokens == 10


async def test_blocked_gemini_candidate_raises_response_error(captured):
    captured["responses"].append(httpx.Response(200, json={"candidates": [{"finishReason": "SAFETY"}]}))

    with pytest.raises(ProviderResponseError):
        await GeminiProvider("g-key").chat(MESSAGES)


async def test_http_errors_propagate(captured):
    captured["responses"].append(httpx.Response(429, json={"error": "rate limited"}))

    with pytest.raises(httpx.HTTPStatusError):
        await OpenAIProvider("sk-test").chat(MESSAGES)


def test_get_provider_by_name():
    assert isinstance(get_provider("openai", "k"), OpenAIProvider)
    gemini = get_provider("gemini", "k", model="gemini-custom")
    assert isinstance(gemini, GeminiProvider)
    assert gemini.default_model == "gemini-custom"
    with pytest.raises(ValueError):
        get_provider("llama", "k")


def test_configured_provider_follows_settings(monkeypatch):
    monkeypatch.setattr(settings, "AI_API_KEY", "")
    assert get_configured_provider() is None

    monkeypatch.setattr(settings, "AI_API_KEY", "sk-live")
    monkeypatch.setattr(settings, "AI_PROVIDER", "openai")
    provider = get_configured_provider()
    assert isinstance(provider, OpenAIProvider)
    assert provider.timeout == settings.AI_TRIAGE_TIMEOUT_SECONDS

    monkeypatch.setattr(settings, "AI_PROVIDER", "unknown")
    assert get_configured_provider() is None
