"""Shared fixtures: in-memory storage, UTC day boundaries, no retry waits."""

from datetime import date, timezone

import pytest

from expense_records.audit import AuditLogger
from expense_records.config import EngineSettings
from expense_records.orchestrator import RecordSaveFlow
from expense_records.services.storage import InMemoryAuditStorage, InMemoryRecordStorage


@pytest.fixture
def day() -> date:
    return date(2024, 3, 10)


@pytest.fixture
def engine_settings() -> EngineSettings:
    return EngineSettings(
        timezone="UTC",
        merge_max_attempts=3,
        merge_retry_wait_seconds=0.0,
        undo_stack_capacity=5,
        reject_empty_saves=True,
    )


@pytest.fixture
def record_storage() -> InMemoryRecordStorage:
    return InMemoryRecordStorage(tz=timezone.utc)


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def save_flow(record_storage, audit_storage, engine_settings) -> RecordSaveFlow:
    return RecordSaveFlow(
        record_storage=record_storage,
        audit_logger=AuditLogger(audit_storage),
        settings=engine_settings,
        tz=timezone.utc,
    )
