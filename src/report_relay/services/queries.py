from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from report_relay.errors import NotFoundError
from report_relay.services.tasks import TaskManager
from report_relay.storage.base import RecordStore
from report_relay.storage.models import Article, ReportRecord, TaskStatus, coerce_record_id


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReportView(CamelModel):
    """Public report shape: ``{reportId, generatedAt, articles}``."""

    report_id: str
    generated_at: str
    articles: list[Article] = Field(default_factory=list)


class TaskStatusView(CamelModel):
    status: TaskStatus
    error_message: str | None = None
    report_id: str | None = None
    requested_at: datetime | None = None
    completed_at: datetime | None = None


def to_report_view(report: ReportRecord) -> ReportView:
    return ReportView(
        report_id=report.report_id,
        generated_at=report.generated_at,
        articles=report.articles,
    )


class ReportQueryService:
    """Read-only access to reports and task status.

    ``get_latest_report`` orders by the parsed ``generated_at`` timestamp.
    Reports sharing the same timestamp come back in whatever order the store
    yields them; callers must not rely on a particular winner.
    """

    def __init__(self, store: RecordStore, tasks: TaskManager) -> None:
        self.store = store
        self.tasks = tasks

    def get_latest_report(self) -> ReportView:
        report = self.store.get_latest_report()
        if report is None:
            raise NotFoundError("No reports found")
        return to_report_view(report)

    def get_report_by_id(self, report_id: str) -> ReportView:
        normalized = coerce_record_id(report_id)
        if normalized is None:
            raise NotFoundError("Report not found")
        report = self.store.get_report(normalized)
        if report is None:
            raise NotFoundError("Report not found")
        return to_report_view(report)

    def get_task_status(self, task_id: str) -> TaskStatusView:
        task = self.tasks.get(task_id)
        return TaskStatusView(
            status=task.status,
            error_message=task.error_message,
            report_id=task.report_id,
            requested_at=task.requested_at,
            completed_at=task.completed_at,
        )

    def get_report_for_task(self, task_id: str) -> ReportView:
        task = self.tasks.get(task_id)
        if task.report_id is None:
            raise NotFoundError("No report associated with this task")
        return self.get_report_by_id(task.report_id)
