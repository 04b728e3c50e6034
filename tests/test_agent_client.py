from __future__ import annotations

import uuid

import pytest

from report_relay.errors import DispatchError
from report_relay.services.agent_client import AgentClient
from report_relay.services.tasks import TaskManager
from report_relay.storage.models import ReportRecord, TaskStatus

from .conftest import AGENT_BASE_URL, FakeAgent


def _client(tasks: TaskManager) -> AgentClient:
    return AgentClient(
        tasks,
        base_url=f"{AGENT_BASE_URL}/",
        callback_url_for=lambda task_id: f"http://relay.local:8080/api/internal/report-callback/{task_id}",
        timeout_s=4.5,
    )


def test_request_generation_posts_period_and_callback(
    tasks: TaskManager, fake_agent: FakeAgent
) -> None:
    task = tasks.create()

    updated = _client(tasks).request_generation(task.task_id, "7d", "business")

    assert updated.status is TaskStatus.RUNNING
    assert fake_agent.calls == [
        {
            "url": f"{AGENT_BASE_URL}/agent/generate-ai-news",
            "method": "POST",
            "timeout": 4.5,
            "payload": {
                "period": "7d",
                "callbackUrl": (
                    f"http://relay.local:8080/api/internal/report-callback/{task.task_id}"
                ),
            },
        }
    ]


def test_topic_is_not_forwarded(tasks: TaskManager, fake_agent: FakeAgent) -> None:
    task = tasks.create()

    _client(tasks).request_generation(task.task_id, "24h", "technology")

    assert "topic" not in fake_agent.calls[0]["payload"]


@pytest.mark.parametrize("status_code", [200, 202])
def test_ok_and_accepted_count_as_dispatched(
    tasks: TaskManager, fake_agent: FakeAgent, status_code: int
) -> None:
    fake_agent.status_code = status_code
    task = tasks.create()

    _client(tasks).request_generation(task.task_id, "24h", "technology")

    assert tasks.get_status(task.task_id) is TaskStatus.RUNNING


@pytest.mark.parametrize("status_code", [201, 204, 400, 500, 503])
def test_other_status_codes_raise_dispatch_error(
    tasks: TaskManager, fake_agent: FakeAgent, status_code: int
) -> None:
    fake_agent.status_code = status_code
    task = tasks.create()

    with pytest.raises(DispatchError, match=str(status_code)):
        _client(tasks).request_generation(task.task_id, "24h", "technology")

    # Marking the task FAILED is the caller's job.
    assert tasks.get_status(task.task_id) is TaskStatus.PENDING


def test_unreachable_agent_raises_dispatch_error(tasks: TaskManager, fake_agent: FakeAgent) -> None:
    fake_agent.unreachable = True
    task = tasks.create()

    with pytest.raises(DispatchError, match="connection refused"):
        _client(tasks).request_generation(task.task_id, "24h", "technology")


def test_callback_that_overtook_dispatch_is_left_alone(
    tasks: TaskManager, fake_agent: FakeAgent
) -> None:
    _ = fake_agent
    task = tasks.create()
    tasks.transition(task.task_id, TaskStatus.RUNNING)
    report = ReportRecord(report_id=str(uuid.uuid4()), generated_at="2024-01-01T00:00:00Z")
    tasks.complete_with_report(task.task_id, report)

    result = _client(tasks).request_generation(task.task_id, "24h", "technology")

    assert result.status is TaskStatus.COMPLETED
    assert result.report_id == report.report_id


def test_error_response_is_closed(tasks: TaskManager, fake_agent: FakeAgent) -> None:
    fake_agent.status_code = 502
    task = tasks.create()

    with pytest.raises(DispatchError, match="502"):
        _client(tasks).request_generation(task.task_id, "24h", "technology")

    assert [body.closed for body in fake_agent.error_bodies] == [True]
