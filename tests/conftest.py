from __future__ import annotations

from datetime import date

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from expense_assistant.assistant import ExpenseAssistant
from expense_assistant.config import Settings
from expense_assistant.main import create_app
from expense_assistant.providers.base import AIProvider, AIResponse

FIXED_TODAY = date(2024, 5, 17)


class FakeProvider(AIProvider):
    """Records chat requests and replies with canned content or an error."""

    def __init__(self, content: str = "", error: Exception | None = None):
        self.content = content
        self.error = error
        self.calls: list[dict] = []

    @property
    def name(self) -> str:
        return "fake"

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> AIResponse:
        self.calls.append(
            {
                "messages": messages,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.error is not None:
            raise self.error
        return AIResponse(content=self.content, model="fake-model", provider="fake")


def make_settings(**overrides) -> Settings:
    values = {"openrouter_api_key": "test-key", "_env_file": None}
    values.update(overrides)
    return Settings(**values)


def make_app(
    provider: AIProvider | None = None,
    settings: Settings | None = None,
    today: date = FIXED_TODAY,
) -> FastAPI:
    settings = settings or make_settings()
    app = create_app(settings, provider=provider)
    app.state.assistant = ExpenseAssistant(settings, provider=provider, clock=lambda: today)
    return app


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider(content="You spent the most on Food.")


@pytest.fixture
def client(fake_provider: FakeProvider) -> TestClient:
    with TestClient(make_app(fake_provider)) as test_client:
        yield test_client
