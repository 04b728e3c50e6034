"""Task lifecycle: creation, lookup and validated status transitions.

Every status change goes through ``TaskManager``. The allowed edges are:

    PENDING -> RUNNING     agent accepted the generation request
    PENDING -> FAILED      dispatch to the agent failed
    RUNNING -> COMPLETED   callback delivered a report
    RUNNING -> FAILED      callback reported a failure

Writes are conditional on the status that was read, so two actors racing on
the same task (dispatch path and callback path) cannot both win.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from report_relay.errors import InvalidTransitionError, NotFoundError, ValidationError
from report_relay.storage.base import RecordStore
from report_relay.storage.models import (
    TERMINAL_STATUSES,
    ReportRecord,
    TaskRecord,
    TaskStatus,
    TaskUpdate,
    coerce_record_id,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.RUNNING, TaskStatus.FAILED}),
    TaskStatus.RUNNING: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


def utc_now() -> datetime:
    return datetime.now(UTC)


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class TaskManager:
    """Owns the task state machine on top of a RecordStore."""

    def __init__(self, store: RecordStore, *, clock: Callable[[], datetime] = utc_now) -> None:
        self.store = store
        self._clock = clock

    def create(self) -> TaskRecord:
        task = TaskRecord(
            task_id=str(uuid.uuid4()),
            status=TaskStatus.PENDING,
            requested_at=self._clock(),
        )
        created = self.store.create_task(task)
        logger.info("task event=created task_id=%s status=%s", created.task_id, created.status.value)
        return created

    def get(self, task_id: str) -> TaskRecord:
        normalized = coerce_record_id(task_id)
        if normalized is None:
            raise NotFoundError("Task not found")
        task = self.store.get_task(normalized)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    def get_status(self, task_id: str) -> TaskStatus:
        return self.get(task_id).status

    def transition(
        self,
        task_id: str,
        new_status: TaskStatus,
        *,
        report_id: str | None = None,
        error_message: str | None = None,
    ) -> TaskRecord:
        """Move a task to ``new_status`` in a single conditional write."""
        task = self.get(task_id)
        self._check_transition(task, new_status)
        if new_status is TaskStatus.COMPLETED:
            if report_id is None:
                raise ValidationError("A completed task must reference a report")
            if self.store.get_report(report_id) is None:
                raise ValidationError(f"Report {report_id} does not exist")
        elif report_id is not None:
            raise ValidationError("Only a completed task may reference a report")

        update = self.build_update(new_status, report_id=report_id, error_message=error_message)
        updated = self.store.update_task(task.task_id, update, expected_status=task.status)
        return self._confirm(task, new_status, updated)

    def complete_with_report(self, task_id: str, report: ReportRecord) -> TaskRecord:
        """Store ``report`` and mark the task COMPLETED atomically."""
        task = self.get(task_id)
        self._check_transition(task, TaskStatus.COMPLETED)
        update = self.build_update(TaskStatus.COMPLETED, report_id=report.report_id)
        updated = self.store.complete_task_with_report(
            task.task_id,
            report,
            update,
            expected_status=task.status,
        )
        return self._confirm(task, TaskStatus.COMPLETED, updated)

    def build_update(
        self,
        new_status: TaskStatus,
        *,
        report_id: str | None = None,
        error_message: str | None = None,
    ) -> TaskUpdate:
        return TaskUpdate(
            status=new_status,
            completed_at=self._clock() if new_status in TERMINAL_STATUSES else None,
            report_id=report_id,
            error_message=error_message,
        )

    @staticmethod
    def _check_transition(task: TaskRecord, new_status: TaskStatus) -> None:
        if not can_transition(task.status, new_status):
            logger.warning(
                "task event=transition_rejected task_id=%s from=%s to=%s",
                task.task_id,
                task.status.value,
                new_status.value,
            )
            raise InvalidTransitionError(task.task_id, task.status.value, new_status.value)

    def _confirm(
        self,
        before: TaskRecord,
        new_status: TaskStatus,
        updated: TaskRecord | None,
    ) -> TaskRecord:
        if updated is None:
            # Someone else changed the task between our read and our write.
            current = self.store.get_task(before.task_id)
            if current is None:
                raise NotFoundError("Task not found")
            raise InvalidTransitionError(before.task_id, current.status.value, new_status.value)
        logger.info(
            "task event=transition task_id=%s from=%s to=%s report_id=%s",
            updated.task_id,
            before.status.value,
            updated.status.value,
            updated.report_id,
        )
        return updated
