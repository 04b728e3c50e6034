"""In-memory storage backend for tests and local runs."""

from __future__ import annotations

import threading

from report_relay.errors import StoreError
from report_relay.storage.models import ReportRecord, TaskRecord, TaskStatus, TaskUpdate


class InMemoryRecordStore:
    """Dict-backed implementation of RecordStore.

    Records are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, TaskRecord] = {}
        self._reports: dict[str, ReportRecord] = {}
        self._lock = threading.Lock()

    def migrate(self) -> None:
        return None

    def create_task(self, task: TaskRecord) -> TaskRecord:
        with self._lock:
            if task.task_id in self._tasks:
                raise StoreError(f"Task {task.task_id} already exists")
            self._tasks[task.task_id] = task.model_copy(deep=True)
        return task.model_copy(deep=True)

    def get_task(self, task_id: str) -> TaskRecord | None:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.model_copy(deep=True) if task else None

    def update_task(
        self,
        task_id: str,
        update: TaskUpdate,
        *,
        expected_status: TaskStatus | None = None,
    ) -> TaskRecord | None:
        with self._lock:
            return self._apply_update(task_id, update, expected_status)

    def create_report(self, report: ReportRecord) -> ReportRecord:
        with self._lock:
            self._insert_report(report)
        return report.model_copy(deep=True)

    def get_report(self, report_id: str) -> ReportRecord | None:
        with self._lock:
            report = self._reports.get(report_id)
            return report.model_copy(deep=True) if report else None

    def get_latest_report(self) -> ReportRecord | None:
        with self._lock:
            if not self._reports:
                return None
            latest = max(self._reports.values(), key=lambda item: item.generated_at_utc())
            return latest.model_copy(deep=True)

    def complete_task_with_report(
        self,
        task_id: str,
        report: ReportRecord,
        update: TaskUpdate,
        *,
        expected_status: TaskStatus | None = None,
    ) -> TaskRecord | None:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                return None
            if expected_status is not None and current.status != expected_status:
                return None
            self._insert_report(report)
            return self._apply_update(task_id, update, expected_status)

    def _insert_report(self, report: ReportRecord) -> None:
        if report.report_id in self._reports:
            raise StoreError(f"Report {report.report_id} already exists")
        self._reports[report.report_id] = report.model_copy(deep=True)

    def _apply_update(
        self,
        task_id: str,
        update: TaskUpdate,
        expected_status: TaskStatus | None,
    ) -> TaskRecord | None:
        current = self._tasks.get(task_id)
        if current is None:
            return None
        if expected_status is not None and current.status != expected_status:
            return None
        updated = current.model_copy(update=update.changes(), deep=True)
        self._tasks[task_id] = updated
        return updated.model_copy(deep=True)
