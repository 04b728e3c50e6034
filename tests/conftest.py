from __future__ import annotations

import io
import json
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib import error, request

import pytest
from fastapi.testclient import TestClient

from report_relay.api.main import create_app
from report_relay.config.settings import Settings
from report_relay.services import agent_client as agent_client_module
from report_relay.services.tasks import TaskManager
from report_relay.storage.memory import InMemoryRecordStore

AGENT_BASE_URL = "http://agent.local:3000"
PUBLIC_BASE_URL = "http://relay.local:8080"


class _FakeHTTPResponse:
    def __init__(self, status: int) -> None:
        self.status = status

    def read(self) -> bytes:
        return json.dumps({"message": "Task accepted"}).encode("utf-8")

    def __enter__(self) -> _FakeHTTPResponse:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        _ = (exc_type, exc, tb)
        return False


@dataclass
class FakeAgent:
    """Stands in for urllib.request.urlopen inside the agent client."""

    status_code: int = 202
    unreachable: bool = False
    calls: list[dict[str, Any]] = field(default_factory=list)
    error_bodies: list[io.BytesIO] = field(default_factory=list)

    def urlopen(self, req: request.Request, timeout: float) -> _FakeHTTPResponse:
        self.calls.append(
            {
                "url": req.full_url,
                "method": req.get_method(),
                "timeout": timeout,
                "payload": json.loads(req.data.decode("utf-8")),
            }
        )
        if self.unreachable:
            raise error.URLError("connection refused")
        if self.status_code >= 400:
            body = io.BytesIO(b'{"error": "agent error"}')
            self.error_bodies.append(body)
            raise error.HTTPError(req.full_url, self.status_code, "agent error", None, body)
        return _FakeHTTPResponse(self.status_code)


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def tasks(store: InMemoryRecordStore, clock: StepClock) -> TaskManager:
    return TaskManager(store, clock=clock)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        store_backend="memory",
        agent_base_url=AGENT_BASE_URL,
        public_base_url=PUBLIC_BASE_URL,
        agent_timeout_s=3.0,
    )


@pytest.fixture
def fake_agent(monkeypatch: pytest.MonkeyPatch) -> FakeAgent:
    agent = FakeAgent()
    monkeypatch.setattr(agent_client_module.request, "urlopen", agent.urlopen)
    return agent


@pytest.fixture
def client(
    store: InMemoryRecordStore,
    settings: Settings,
    fake_agent: FakeAgent,
) -> Iterator[TestClient]:
    _ = fake_agent
    app = create_app(store=store, settings_override=settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def articles() -> list[dict[str, Any]]:
    return [
        {
            "title": "X",
            "url": "http://x",
            "source_name": "Y",
            "published_at": "2024-01-01T00:00:00Z",
        },
        {
            "title": "Open model released",
            "url": "https://news.example.com/open-model",
            "source_name": "Example News",
            "published_at": "2024-01-01T08:30:00Z",
            "summary": "A new open model was released today.",
        },
    ]
