"""Record models shared by the services, the API and the storage backends."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Task lifecycle states."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})


class Article(BaseModel):
    """One news article inside a report."""

    title: str
    url: str
    source_name: str
    published_at: str
    summary: str | None = None


class TaskRecord(BaseModel):
    """Persisted report-generation task."""

    task_id: str
    status: TaskStatus = TaskStatus.PENDING
    requested_at: datetime
    completed_at: datetime | None = None
    report_id: str | None = None
    error_message: str | None = None


class ReportRecord(BaseModel):
    """Persisted report. Immutable once stored."""

    report_id: str
    generated_at: str
    articles: list[Article] = Field(default_factory=list)

    def generated_at_utc(self) -> datetime:
        return parse_utc_timestamp(self.generated_at)


class TaskUpdate(BaseModel):
    """Partial task update. Fields left as None are not written."""

    status: TaskStatus
    completed_at: datetime | None = None
    report_id: str | None = None
    error_message: str | None = None

    def changes(self) -> dict[str, object]:
        return self.model_dump(exclude_none=True)


def parse_utc_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 / RFC 3339 string, treating naive values as UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def coerce_record_id(value: str) -> str | None:
    """Return the canonical UUID string, or None when value is not a UUID."""
    try:
        return str(uuid.UUID(value))
    except (TypeError, ValueError, AttributeError):
        return None
