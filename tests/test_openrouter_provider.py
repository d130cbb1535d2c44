"""
Tests for the OpenRouter chat-completion client.

``httpx.AsyncClient`` is replaced with a dummy so the request the provider
builds can be inspected and any response or transport failure simulated.
"""

import asyncio
from typing import Any

import httpx
import pytest
from hypothesis import given, settings, strategies as st

from expense_assistant.errors import ErrorCode
from expense_assistant.providers.base import (
    AuthenticationError,
    ProviderError,
    QuotaExceededError,
    RateLimitError,
)
from expense_assistant.providers.openrouter import OpenRouterProvider

ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"
MESSAGES = [
    {"role": "system", "content": "You are a helpful financial assistant."},
    {"role": "user", "content": "How much did I spend?"},
]


def _completion(content: Any = "You spent 870.50.") -> dict[str, Any]:
    return {
        "model": "openai/gpt-4o-mini",
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 120, "completion_tokens": 12},
    }


class DummyClient:
    def __init__(self, response: httpx.Response | None = None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.requests: list[dict[str, Any]] = []
        self.timeout: Any = None

    async def __aenter__(self) -> "DummyClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        self.requests.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


def _install(monkeypatch: pytest.MonkeyPatch, dummy: DummyClient) -> DummyClient:
    def _factory(*args: Any, **kwargs: Any) -> DummyClient:
        dummy.timeout = kwargs.get("timeout")
        return dummy

    monkeypatch.setattr("expense_assistant.providers.openrouter.httpx.AsyncClient", _factory)
    return dummy


def _provider(**overrides: Any) -> OpenRouterProvider:
    values = {
        "api_key": "sk-or-test",
        "referer": "https://expense-tacker-backend.netlify.app",
        "title": "Expense Tracker",
    }
    values.update(overrides)
    return OpenRouterProvider(**values)


class TestRequestFormat:
    def test_posts_chat_completion_with_attribution_headers(self, monkeypatch: pytest.MonkeyPatch):
        dummy = _install(monkeypatch, DummyClient(httpx.Response(200, json=_completion())))

        asyncio.run(_provider().chat_completion(MESSAGES, temperature=0.7, max_tokens=500))

        request = dummy.requests[0]
        assert request["url"] == ENDPOINT
        assert request["headers"]["Authorization"] == "Bearer sk-or-test"
        assert request["headers"]["HTTP-Referer"] == "https://expense-tacker-backend.netlify.app"
        assert request["headers"]["X-Title"] == "Expense Tracker"
        assert request["json"] == {
            "model": "gpt-4o-mini",
            "messages": MESSAGES,
            "temperature": 0.7,
            "max_tokens": 500,
        }
        assert dummy.timeout == 30.0

    def test_custom_base_url_and_model(self, monkeypatch: pytest.MonkeyPatch):
        dummy = _install(monkeypatch, DummyClient(httpx.Response(200, json=_completion())))
        provider = _provider(base_url="http://localhost:9999/api/v1/", model="meta/llama", timeout=None)

        asyncio.run(provider.chat_completion(MESSAGES))

        assert dummy.requests[0]["url"] == "http://localhost:9999/api/v1/chat/completions"
        assert dummy.requests[0]["json"]["model"] == "meta/llama"
        assert dummy.timeout is None

    def test_attribution_headers_are_optional(self):
        headers = _provider(referer=None, title=None)._get_headers()
        assert "HTTP-Referer" not in headers
        assert "X-Title" not in headers

    @given(
        model=st.text(min_size=1, max_size=50).filter(lambda x: x.strip()),
        temperature=st.floats(min_value=0.0, max_value=2.0, allow_nan=False),
        max_tokens=st.one_of(st.none(), st.integers(min_value=1, max_value=4096)),
    )
    @settings(max_examples=100)
    def test_payload_fields(self, model: str, temperature: float, max_tokens):
        payload = OpenRouterProvider.build_request_payload(
            messages=MESSAGES,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        assert payload["model"] == model
        assert payload["messages"] == MESSAGES
        assert payload["temperature"] == temperature
        assert ("max_tokens" in payload) == (max_tokens is not None)

    @pytest.mark.parametrize("api_key", ["", "   ", None])
    def test_api_key_is_required(self, api_key):
        with pytest.raises(AuthenticationError):
            OpenRouterProvider(api_key=api_key)


class TestResponseParsing:
    def test_returns_first_choice_content_and_usage(self, monkeypatch: pytest.MonkeyPatch):
        _install(monkeypatch, DummyClient(httpx.Response(200, json=_completion())))

        response = asyncio.run(_provider().chat_completion(MESSAGES))

        assert response.content == "You spent 870.50."
        assert response.provider == "openrouter"
        assert response.model == "openai/gpt-4o-mini"
        assert response.usage == {"input_tokens": 120, "output_tokens": 12}
        assert response.latency_ms >= 0

    @pytest.mark.parametrize(
        "body",
        [
            _completion(content=None),
            {"choices": []},
            {"choices": [{}]},
            {},
        ],
    )
    def test_missing_content_becomes_empty_string(self, monkeypatch: pytest.MonkeyPatch, body):
        _install(monkeypatch, DummyClient(httpx.Response(200, json=body)))

        response = asyncio.run(_provider().chat_completion(MESSAGES))

        assert response.content == ""
        assert response.model in ("gpt-4o-mini", "openai/gpt-4o-mini")

    def test_non_json_body_is_an_upstream_error(self, monkeypatch: pytest.MonkeyPatch):
        _install(monkeypatch, DummyClient(httpx.Response(200, text="<html>oops</html>")))

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(_provider().chat_completion(MESSAGES))
        assert exc_info.value.code is ErrorCode.UPSTREAM_ERROR


class TestErrorMapping:
    @pytest.mark.parametrize(
        "status_code,error_class",
        [
            (401, AuthenticationError),
            (402, QuotaExceededError),
            (403, QuotaExceededError),
            (429, RateLimitError),
            (400, ProviderError),
            (500, ProviderError),
            (503, ProviderError),
        ],
    )
    def test_status_codes_map_to_errors(self, monkeypatch: pytest.MonkeyPatch, status_code, error_class):
        body = {"error": {"message": "model overloaded", "code": status_code}}
        _install(monkeypatch, DummyClient(httpx.Response(status_code, json=body)))

        with pytest.raises(error_class) as exc_info:
            asyncio.run(_provider().chat_completion(MESSAGES))

        error = exc_info.value
        assert isinstance(error, ProviderError)
        assert error.provider == "openrouter"
        assert error.status_code == status_code
        assert error.detail == "model overloaded"
        assert "model overloaded" in str(error)

    def test_plain_text_error_body_becomes_detail(self, monkeypatch: pytest.MonkeyPatch):
        _install(monkeypatch, DummyClient(httpx.Response(502, text="Bad gateway")))

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(_provider().chat_completion(MESSAGES))

        assert exc_info.value.status_code == 502
        assert exc_info.value.detail == "Bad gateway"

    def test_rate_limit_reads_retry_after(self, monkeypatch: pytest.MonkeyPatch):
        response = httpx.Response(429, json={}, headers={"retry-after": "12"})
        _install(monkeypatch, DummyClient(response))

        with pytest.raises(RateLimitError) as exc_info:
            asyncio.run(_provider().chat_completion(MESSAGES))

        assert exc_info.value.retry_after == 12.0
        assert exc_info.value.detail is None

    @pytest.mark.parametrize(
        "error,fragment",
        [
            (httpx.ReadTimeout("timed out"), "timed out"),
            (httpx.ConnectError("connection refused"), "Failed to connect"),
            (httpx.RemoteProtocolError("peer closed connection"), "request failed"),
        ],
    )
    def test_transport_failures_become_provider_errors(self, monkeypatch: pytest.MonkeyPatch, error, fragment):
        _install(monkeypatch, DummyClient(error=error))

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(_provider().chat_completion(MESSAGES))

        assert fragment in str(exc_info.value)
        assert exc_info.value.__cause__ is error
