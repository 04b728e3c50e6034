"""PostgreSQL storage backend for tasks and reports.

Beginner terms:
- Migration: creating/updating database tables before normal reads/writes.
- JSONB: PostgreSQL JSON type used for the article list of a report.
- Conditional update: an UPDATE that also matches on the current status, so
  a concurrent writer that already moved the task on wins and we see no row.
- Row factory: returns query rows as dict-like objects instead of tuples.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from report_relay.errors import StoreError
from report_relay.storage.models import (
    Article,
    ReportRecord,
    TaskRecord,
    TaskStatus,
    TaskUpdate,
)

logger = logging.getLogger(__name__)

# Columns a TaskUpdate may write. Anything else never reaches SQL text.
_UPDATABLE_TASK_COLUMNS = ("status", "completed_at", "report_id", "error_message")


class PostgresRecordStore:
    """Thread-safe PostgreSQL-backed storage for Task and Report records."""

    def __init__(self, database_url: str, *, connect_timeout_s: int = 5) -> None:
        if not database_url:
            raise ValueError("database_url is required")
        self.database_url = database_url
        self.connect_timeout_s = connect_timeout_s
        # Lock guards DB operations done through this storage instance.
        self._lock = threading.Lock()
        # Lazy import helper keeps error message clear if psycopg is missing.
        self._psycopg, self._dict_row, self._json_wrapper = self._load_psycopg()

    def migrate(self) -> None:
        """Create required tables and indexes if they do not already exist."""
        with self._guarded("migrate") as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    task_id UUID PRIMARY KEY,
                    status VARCHAR(20) NOT NULL,
                    requested_at TIMESTAMPTZ NOT NULL,
                    completed_at TIMESTAMPTZ,
                    report_id UUID,
                    error_message TEXT
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_tasks_status
                ON tasks(status)
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS reports (
                    report_id UUID PRIMARY KEY,
                    generated_at TEXT NOT NULL,
                    generated_ts TIMESTAMPTZ NOT NULL,
                    articles_json JSONB NOT NULL DEFAULT '[]'::jsonb
                )
                """)
            # generated_at keeps the caller's string verbatim; ordering uses the parsed copy.
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_reports_generated_ts
                ON reports(generated_ts DESC)
                """)
            conn.commit()

    def create_task(self, task: TaskRecord) -> TaskRecord:
        with self._guarded("create_task") as conn:
            row = conn.execute(
                """
                INSERT INTO tasks (
                    task_id,
                    status,
                    requested_at,
                    completed_at,
                    report_id,
                    error_message
                ) VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    task.task_id,
                    task.status.value,
                    task.requested_at,
                    task.completed_at,
                    task.report_id,
                    task.error_message,
                ),
            ).fetchone()
            conn.commit()
        if row is None:
            raise StoreError("Failed to load created task")
        return self._row_to_task(row)

    def get_task(self, task_id: str) -> TaskRecord | None:
        with self._guarded("get_task") as conn:
            row = conn.execute(
                "SELECT * FROM tasks WHERE task_id::text = %s",
                (task_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def update_task(
        self,
        task_id: str,
        update: TaskUpdate,
        *,
        expected_status: TaskStatus | None = None,
    ) -> TaskRecord | None:
        with self._guarded("update_task") as conn:
            row = self._update_task_row(conn, task_id, update, expected_status)
            conn.commit()
        if row is None:
            return None
        return self._row_to_task(row)

    def create_report(self, report: ReportRecord) -> ReportRecord:
        with self._guarded("create_report") as conn:
            self._insert_report_row(conn, report)
            conn.commit()
        return report

    def get_report(self, report_id: str) -> ReportRecord | None:
        with self._guarded("get_report") as conn:
            row = conn.execute(
                "SELECT * FROM reports WHERE report_id::text = %s",
                (report_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_report(row)

    def get_latest_report(self) -> ReportRecord | None:
        with self._guarded("get_latest_report") as conn:
            row = conn.execute("""
                SELECT *
                FROM reports
                ORDER BY generated_ts DESC
                LIMIT 1
                """).fetchone()
        if row is None:
            return None
        return self._row_to_report(row)

    def complete_task_with_report(
        self,
        task_id: str,
        report: ReportRecord,
        update: TaskUpdate,
        *,
        expected_status: TaskStatus | None = None,
    ) -> TaskRecord | None:
        """Insert the report and update the task inside one transaction."""
        with self._guarded("complete_task_with_report") as conn:
            self._insert_report_row(conn, report)
            row = self._update_task_row(conn, task_id, update, expected_status)
            if row is None:
                # Task vanished or moved on; drop the report insert with it.
                conn.rollback()
                return None
            conn.commit()
        return self._row_to_task(row)

    @contextmanager
    def _guarded(self, operation: str) -> Iterator[Any]:
        """Hold the lock for one connection scope and wrap driver errors in StoreError."""
        with self._lock:
            try:
                with self._connect() as conn:
                    yield conn
            except self._psycopg.Error as exc:
                logger.warning("store event=failed operation=%s reason=%s", operation, exc)
                raise StoreError(f"{operation} failed: {exc}") from exc

    def _connect(self) -> Any:
        """Open a psycopg connection that yields dict-like rows."""
        return self._psycopg.connect(
            self.database_url,
            row_factory=self._dict_row,
            connect_timeout=self.connect_timeout_s,
        )

    def _insert_report_row(self, conn: Any, report: ReportRecord) -> None:
        conn.execute(
            """
            INSERT INTO reports (
                report_id,
                generated_at,
                generated_ts,
                articles_json
            ) VALUES (%s, %s, %s, %s)
            """,
            (
                report.report_id,
                report.generated_at,
                report.generated_at_utc(),
                self._json_wrapper(
                    [article.model_dump(mode="json") for article in report.articles]
                ),
            ),
        )

    @staticmethod
    def _update_task_row(
        conn: Any,
        task_id: str,
        update: TaskUpdate,
        expected_status: TaskStatus | None,
    ) -> Any:
        changes = update.changes()
        columns = [column for column in _UPDATABLE_TASK_COLUMNS if column in changes]
        assignments = ", ".join(f"{column} = %s" for column in columns)
        params: list[Any] = [
            changes[column].value if isinstance(changes[column], TaskStatus) else changes[column]
            for column in columns
        ]
        query = f"UPDATE tasks SET {assignments} WHERE task_id::text = %s"
        params.append(task_id)
        if expected_status is not None:
            query += " AND status = %s"
            params.append(expected_status.value)
        query += " RETURNING *"
        return conn.execute(query, tuple(params)).fetchone()

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any, Any]:
        """Import psycopg and helpers with a friendly install hint on failure."""
        try:
            import psycopg
            from psycopg.rows import dict_row
            from psycopg.types.json import Json
        except ImportError as exc:  # pragma: no cover - exercised only without dependency
            raise RuntimeError(
                "PostgreSQL backend requires psycopg. Install with: "
                'python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row, Json

    @staticmethod
    def _parse_json_list(raw: Any) -> list[Any]:
        if raw is None:
            return []
        parsed = json.loads(raw) if isinstance(raw, str) else raw
        if isinstance(parsed, list):
            return parsed
        return []

    @staticmethod
    def _parse_datetime(raw: Any) -> datetime | None:
        if raw is None or isinstance(raw, datetime):
            return raw
        if isinstance(raw, str):
            return datetime.fromisoformat(raw)
        raise TypeError(f"Unsupported datetime value: {type(raw)!r}")

    @classmethod
    def _row_to_task(cls, row: Any) -> TaskRecord:
        report_id = row.get("report_id")
        return TaskRecord(
            task_id=str(row["task_id"]),
            status=TaskStatus(row["status"]),
            requested_at=cls._parse_datetime(row["requested_at"]),
            completed_at=cls._parse_datetime(row.get("completed_at")),
            report_id=str(report_id) if report_id is not None else None,
            error_message=row.get("error_message"),
        )

    @classmethod
    def _row_to_report(cls, row: Any) -> ReportRecord:
        return ReportRecord(
            report_id=str(row["report_id"]),
            generated_at=row["generated_at"],
            articles=[
                Article.model_validate(item)
                for item in cls._parse_json_list(row["articles_json"])
                if isinstance(item, dict)
            ],
        )

