from __future__ import annotations

import uuid
from datetime import UTC, datetime

import pytest

from report_relay.errors import StoreError
from report_relay.storage.memory import InMemoryRecordStore
from report_relay.storage.models import ReportRecord, TaskRecord, TaskStatus, TaskUpdate


def _task(status: TaskStatus = TaskStatus.RUNNING) -> TaskRecord:
    return TaskRecord(
        task_id=str(uuid.uuid4()),
        status=status,
        requested_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


def _report() -> ReportRecord:
    return ReportRecord(report_id=str(uuid.uuid4()), generated_at="2024-01-01T00:00:00Z")


def test_update_only_writes_fields_that_are_set(store: InMemoryRecordStore) -> None:
    task = store.create_task(_task())
    store.update_task(
        task.task_id,
        TaskUpdate(status=TaskStatus.RUNNING, error_message="first attempt failed"),
    )

    updated = store.update_task(task.task_id, TaskUpdate(status=TaskStatus.RUNNING))

    assert updated.error_message == "first attempt failed"
    assert updated.requested_at == task.requested_at


def test_conditional_update_misses_when_status_differs(store: InMemoryRecordStore) -> None:
    task = store.create_task(_task(TaskStatus.RUNNING))

    result = store.update_task(
        task.task_id,
        TaskUpdate(status=TaskStatus.FAILED),
        expected_status=TaskStatus.PENDING,
    )

    assert result is None
    assert store.get_task(task.task_id).status is TaskStatus.RUNNING


def test_update_of_unknown_task_returns_none(store: InMemoryRecordStore) -> None:
    assert store.update_task(str(uuid.uuid4()), TaskUpdate(status=TaskStatus.FAILED)) is None


def test_complete_task_with_report_is_all_or_nothing(store: InMemoryRecordStore) -> None:
    task = store.create_task(_task(TaskStatus.PENDING))
    report = _report()
    update = TaskUpdate(status=TaskStatus.COMPLETED, report_id=report.report_id)

    missed = store.complete_task_with_report(
        task.task_id, report, update, expected_status=TaskStatus.RUNNING
    )

    assert missed is None
    assert store.get_report(report.report_id) is None
    assert store.get_task(task.task_id).report_id is None

    completed = store.complete_task_with_report(
        task.task_id, report, update, expected_status=TaskStatus.PENDING
    )
    assert completed.report_id == report.report_id
    assert store.get_report(report.report_id) == report


def test_duplicate_ids_are_rejected(store: InMemoryRecordStore) -> None:
    task = store.create_task(_task())
    report = store.create_report(_report())

    with pytest.raises(StoreError):
        store.create_task(task)
    with pytest.raises(StoreError):
        store.create_report(report)


def test_returned_records_are_copies(store: InMemoryRecordStore) -> None:
    task = store.create_task(_task())

    fetched = store.get_task(task.task_id)
    fetched.error_message = "mutated outside"

    assert store.get_task(task.task_id).error_message is None
