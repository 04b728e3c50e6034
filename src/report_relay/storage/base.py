"""Storage interface for tasks and reports."""

from __future__ import annotations

from typing import Protocol

from report_relay.storage.models import ReportRecord, TaskRecord, TaskStatus, TaskUpdate


class RecordStore(Protocol):
    """Keyed record store.

    ``update_task`` and ``complete_task_with_report`` are conditional: when
    ``expected_status`` is given, the write only applies if the task still has
    that status. Both return None when no row matched.
    """

    def migrate(self) -> None: ...

    def create_task(self, task: TaskRecord) -> TaskRecord: ...

    def get_task(self, task_id: str) -> TaskRecord | None: ...

    def update_task(
        self,
        task_id: str,
        update: TaskUpdate,
        *,
        expected_status: TaskStatus | None = None,
    ) -> TaskRecord | None: ...

    def create_report(self, report: ReportRecord) -> ReportRecord: ...

    def get_report(self, report_id: str) -> ReportRecord | None: ...

    def get_latest_report(self) -> ReportRecord | None: ...

    def complete_task_with_report(
        self,
        task_id: str,
        report: ReportRecord,
        update: TaskUpdate,
        *,
        expected_status: TaskStatus | None = None,
    ) -> TaskRecord | None: ...
