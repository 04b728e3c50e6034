"""Reconciles completion notices from the agent with task and report records.

Beginner terms:
- Callback: the agent POSTs the final outcome of a task back to us.
- Compensating write: when storing the outcome fails halfway, the task is
  marked FAILED so it does not stay RUNNING forever. Best effort only.
- Duplicate delivery: the agent may resend a callback it believes was lost.
  A resend with the outcome the task already has is acknowledged without
  writing anything; a resend with a different outcome is rejected.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field, field_validator

from report_relay.errors import (
    InvalidTransitionError,
    RelayError,
    StoreError,
    ValidationError,
)
from report_relay.services.tasks import TaskManager, utc_now
from report_relay.storage.models import (
    TERMINAL_STATUSES,
    Article,
    ReportRecord,
    TaskRecord,
    TaskStatus,
    coerce_record_id,
    parse_utc_timestamp,
)

logger = logging.getLogger(__name__)

MISSING_REPORT_MESSAGE = "Report is missing in the callback"
DEFAULT_FAILURE_MESSAGE = "Report generation failed"
NIL_REPORT_ID = str(uuid.UUID(int=0))


class ReportPayload(BaseModel):
    """Report embedded in a COMPLETED callback. id and timestamp are optional."""

    report_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("id", "report_id", "reportId"),
    )
    generated_at: str | None = Field(
        default=None,
        validation_alias=AliasChoices("generatedAt", "generated_at"),
    )
    articles: list[Article] = Field(default_factory=list)

    @field_validator("report_id")
    @classmethod
    def _check_report_id(cls, value: str | None) -> str | None:
        if not value:
            return None
        normalized = coerce_record_id(value)
        if normalized is None:
            raise ValueError("report id must be a UUID")
        # The nil UUID means "unset"; a fresh id is generated later.
        if normalized == NIL_REPORT_ID:
            return None
        return normalized

    @field_validator("generated_at")
    @classmethod
    def _check_generated_at(cls, value: str | None) -> str | None:
        if not value:
            return None
        parse_utc_timestamp(value)
        return value


class ReportCallback(BaseModel):
    """Body of POST /internal/report-callback/{task_id}."""

    status: str
    report: ReportPayload | None = None
    error: str | None = None


@dataclass(frozen=True)
class CallbackResult:
    task_id: str
    status: TaskStatus
    report_id: str | None = None
    duplicate: bool = False


class CallbackReconciler:
    def __init__(
        self,
        tasks: TaskManager,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.tasks = tasks
        self._clock = clock

    def handle(self, task_id: str, callback: ReportCallback) -> CallbackResult:
        # Unknown tasks are rejected before anything is written.
        task = self.tasks.get(task_id)
        target = self._parse_status(callback.status)
        logger.info(
            "callback event=received task_id=%s current=%s reported=%s",
            task.task_id,
            task.status.value,
            target.value,
        )

        if task.status in TERMINAL_STATUSES:
            return self._handle_redelivery(task, target)

        task = self._ensure_running(task)
        if task.status in TERMINAL_STATUSES:
            return self._handle_redelivery(task, target)
        if target is TaskStatus.COMPLETED:
            return self._complete(task, callback.report)
        return self._fail(task, callback.error)

    def _complete(self, task: TaskRecord, payload: ReportPayload | None) -> CallbackResult:
        if payload is None:
            logger.warning("callback event=missing_report task_id=%s", task.task_id)
            self._mark_failed(task.task_id, MISSING_REPORT_MESSAGE)
            raise ValidationError(MISSING_REPORT_MESSAGE)

        report = ReportRecord(
            report_id=payload.report_id or str(uuid.uuid4()),
            generated_at=payload.generated_at or self._clock().isoformat(),
            articles=payload.articles,
        )
        try:
            updated = self.tasks.complete_with_report(task.task_id, report)
        except StoreError as exc:
            message = f"Failed to save report: {exc.message}"
            self._mark_failed(task.task_id, message)
            raise StoreError(message) from exc

        logger.info(
            "callback event=completed task_id=%s report_id=%s articles=%d",
            updated.task_id,
            report.report_id,
            len(report.articles),
        )
        return CallbackResult(
            task_id=updated.task_id,
            status=updated.status,
            report_id=updated.report_id,
        )

    def _fail(self, task: TaskRecord, error_message: str | None) -> CallbackResult:
        message = error_message or DEFAULT_FAILURE_MESSAGE
        updated = self.tasks.transition(task.task_id, TaskStatus.FAILED, error_message=message)
        logger.info("callback event=failed task_id=%s error=%s", updated.task_id, message)
        return CallbackResult(task_id=updated.task_id, status=updated.status)

    def _handle_redelivery(self, task: TaskRecord, target: TaskStatus) -> CallbackResult:
        if task.status is target:
            logger.info(
                "callback event=duplicate task_id=%s status=%s", task.task_id, task.status.value
            )
            return CallbackResult(
                task_id=task.task_id,
                status=task.status,
                report_id=task.report_id,
                duplicate=True,
            )
        raise InvalidTransitionError(task.task_id, task.status.value, target.value)

    def _ensure_running(self, task: TaskRecord) -> TaskRecord:
        """Promote a PENDING task whose callback overtook the dispatch path."""
        if task.status is not TaskStatus.PENDING:
            return task
        try:
            return self.tasks.transition(task.task_id, TaskStatus.RUNNING)
        except InvalidTransitionError:
            return self.tasks.get(task.task_id)

    def _mark_failed(self, task_id: str, message: str) -> None:
        try:
            self.tasks.transition(task_id, TaskStatus.FAILED, error_message=message)
        except RelayError:
            logger.exception("callback event=mark_failed_error task_id=%s", task_id)

    @staticmethod
    def _parse_status(raw: str) -> TaskStatus:
        try:
            status = TaskStatus(raw)
        except ValueError:
            raise ValidationError("Invalid status") from None
        if status not in TERMINAL_STATUSES:
            raise ValidationError("Invalid status")
        return status

