"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - api_key_env: Provider credential and default settings in the environment
    - stub_provider: Scriptable provider standing in for the remote model
    - provider_factory: Factory recording the config each request was served with
    - app: Fresh FastAPI app wired to the stub provider
    - async_client: HTTPX client for API testing
"""

import asyncio
from collections.abc import AsyncGenerator, AsyncIterator, Sequence

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.agent.config import AgentConfig
from src.api.app import create_app
from src.models.schemas import ChatMessage, StreamEvent

ENV_VARS = ("LLM_API_KEY", "OPENAI_API_KEY", "LLM_BASE_URL", "LLM_MODEL", "CHAT_REQUEST_TIMEOUT")


class StubProvider:
    """Provider that replays scripted fragments.

    Attributes:
        calls: Message histories received, one entry per request.
        closed: Whether the most recent stream was closed or finished.
    """

    def __init__(
        self,
        fragments: Sequence[str] = (),
        *,
        error: Exception | None = None,
        hang_after: int | None = None,
    ) -> None:
        self.fragments = list(fragments)
        self.error = error
        self.hang_after = hang_after
        self.calls: list[list[ChatMessage]] = []
        self.closed = False

    async def stream_reply(self, messages: Sequence[ChatMessage]) -> AsyncIterator[StreamEvent]:
        self.calls.append(list(messages))
        self.closed = False
        try:
            for index, fragment in enumerate(self.fragments):
                if index == self.hang_after:
                    await asyncio.Event().wait()
                yield StreamEvent.text_delta(fragment)
            if self.hang_after is not None and self.hang_after >= len(self.fragments):
                await asyncio.Event().wait()
            if self.error is not None:
                raise self.error
            yield StreamEvent.finish()
        finally:
            self.closed = True


class RecordingFactory:
    """Provider factory that records the configuration of each request."""

    def __init__(self, provider: StubProvider) -> None:
        self.provider = provider
        self.configs: list[AgentConfig] = []

    def __call__(self, config: AgentConfig) -> StubProvider:
        self.configs.append(config)
        return self.provider


@pytest.fixture
def api_key_env(monkeypatch: pytest.MonkeyPatch) -> str:
    """Set a test credential and clear other provider settings.

    Returns:
        The API key placed in the environment.
    """
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
    return "sk-test-key"


@pytest.fixture
def stub_provider() -> StubProvider:
    """Default provider answering "Hello" in two fragments."""
    return StubProvider(["Hel", "lo"])


@pytest.fixture
def provider_factory(stub_provider: StubProvider) -> RecordingFactory:
    return RecordingFactory(stub_provider)


@pytest.fixture
def app(provider_factory: RecordingFactory) -> FastAPI:
    """Create an app whose provider is the stub."""
    application = create_app()
    application.state.provider_factory = provider_factory
    return application


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing.

    Yields:
        Configured AsyncClient for making test requests.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
