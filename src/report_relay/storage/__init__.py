"""Storage backends and models."""

from report_relay.storage.base import RecordStore
from report_relay.storage.memory import InMemoryRecordStore
from report_relay.storage.models import (
    TERMINAL_STATUSES,
    Article,
    ReportRecord,
    TaskRecord,
    TaskStatus,
    TaskUpdate,
)
from report_relay.storage.postgres import PostgresRecordStore

__all__ = [
    "TERMINAL_STATUSES",
    "Article",
    "InMemoryRecordStore",
    "PostgresRecordStore",
    "RecordStore",
    "ReportRecord",
    "TaskRecord",
    "TaskStatus",
    "TaskUpdate",
]
