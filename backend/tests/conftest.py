"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from tutor.config import Settings, get_settings
from tutor.llm.chat import manager as manager_module

OPENROUTER_KEY = "sk-or-v1-test-key"
GEMINI_KEY = "AIza-test-key"


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Each test gets fresh settings, no ambient API key and no leftover manager."""
    monkeypatch.delenv("API_KEY", raising=False)
    get_settings.cache_clear()
    manager_module._manager = None
    yield
    get_settings.cache_clear()
    manager_module._manager = None


@pytest.fixture
def openrouter_settings() -> Settings:
    return Settings(api_key=OPENROUTER_KEY)


@pytest.fixture
def gemini_settings() -> Settings:
    return Settings(api_key=GEMINI_KEY)


@pytest.fixture
def recorded_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def mock_http(
    recorded_requests: list[httpx.Request],
) -> Callable[..., httpx.AsyncClient]:
    """Factory for an AsyncClient whose responses come from a list of handlers.

    Each request pops the next response; every request is recorded.
    """

    def factory(*responses: httpx.Response) -> httpx.AsyncClient:
        queue = list(responses)

        def handler(request: httpx.Request) -> httpx.Response:
            recorded_requests.append(request)
            return queue.pop(0)

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    from tutor.main import app

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
