"""Pytest configuration and fixtures."""

import random
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from chatly.api.dependencies import get_pipeline, get_storage
from chatly.api.main import create_app
from chatly.models import Conversation, WidgetSettings
from chatly.services.conversation.pipeline import MessagePipeline
from chatly.services.conversation.responder import ResponseSelector
from chatly.services.realtime.fanout import RealtimeFanout, get_fanout
from chatly.storage.memory import InMemoryStorage


class FakeConnection:
    """Stands in for a WebSocket; records every event it is sent."""

    def __init__(self, fail: bool = False) -> None:
        self.events: list[dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.events.append(data)

    def event_names(self) -> list[str]:
        return [e["event"] for e in self.events]


class FakeLLMProvider:
    """Configured remote provider with a scripted outcome."""

    is_configured = True

    def __init__(self, reply: str | None = None, error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def complete(self, messages, model=None, temperature=0.7, max_tokens=1000) -> str:
        self.calls.append(
            {"messages": messages, "model": model, "temperature": temperature, "max_tokens": max_tokens}
        )
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def storage():
    """Create in-memory storage for tests."""
    return InMemoryStorage()


@pytest_asyncio.fixture
async def fanout():
    """Create a fanout with its own registry."""
    fanout = RealtimeFanout()
    yield fanout
    fanout.close()


@pytest.fixture
def rule_selector():
    """Selector with no remote provider configured."""
    return ResponseSelector(llm_provider=None, rng=random.Random(7))


@pytest.fixture
def pipeline(storage, fanout, rule_selector):
    """Pipeline wired to in-memory storage and rule-based replies."""
    return MessagePipeline(storage=storage, fanout=fanout, selector=rule_selector)


@pytest_asyncio.fixture
async def conversation(storage):
    """An empty conversation owned by the test tenant."""
    conv = Conversation(id="conv-1", tenant_id="tenant-a")
    await storage.save_conversation(conv)
    return conv


@pytest_asyncio.fixture
async def kb_disabled(storage):
    """Widget settings for the test tenant with the knowledge base switched off."""
    widget = WidgetSettings(tenant_id="tenant-a")
    widget.ai_settings.knowledge_base_enabled = False
    return await storage.save_widget_settings(widget)


@pytest.fixture
def app(storage, pipeline):
    """Create test application bound to the test storage and pipeline."""
    app = create_app()
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_fanout] = lambda: pipeline.fanout
    return app


@pytest_asyncio.fixture
async def client(app):
    """Create test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-Tenant-ID": "tenant-a"},
    ) as ac:
        yield ac


@pytest.fixture
def connection_factory():
    """Build fake socket connections."""
    return FakeConnection


@pytest.fixture
def llm_factory():
    """Build fake remote providers."""
    return FakeLLMProvider
