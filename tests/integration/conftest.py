from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from report_relay.storage.postgres import PostgresRecordStore


@pytest.fixture
def postgres_store() -> Iterator[PostgresRecordStore]:
    if os.getenv("RUN_POSTGRES_INTEGRATION_TESTS") != "1":
        pytest.skip(
            "Set RUN_POSTGRES_INTEGRATION_TESTS=1 and REPORT_RELAY_DATABASE_URL "
            "to run integration tests against PostgreSQL."
        )
    database_url = os.getenv("REPORT_RELAY_DATABASE_URL")
    if not database_url:
        pytest.skip("REPORT_RELAY_DATABASE_URL is required for integration tests.")

    store = PostgresRecordStore(database_url, connect_timeout_s=3)
    store.migrate()
    yield store
