"""
In-Memory Storage Implementation

Keeps records and audit events in process memory. Used by the test suite
and by applications that embed the engine and persist elsewhere.

Records are copied on the way in and out so callers can never mutate
stored state through a reference they hold.
"""

from datetime import date, tzinfo
from typing import Iterable, Optional
from uuid import UUID

from expense_records.models.audit import AuditEvent
from expense_records.models.record import Record
from expense_records.reconciliation.days import local_zone, to_day
from expense_records.services.storage.interface import (
    AuditStorageInterface,
    ConcurrentModificationError,
    DuplicateError,
    NotFoundError,
    RecordStorageInterface,
    prepare_restored_records,
    sort_newest_masters_first,
)


class InMemoryRecordStorage(RecordStorageInterface):
    """Dictionary-backed record storage with auto-increment ids."""

    def __init__(self, tz: Optional[tzinfo] = None):
        self._records: dict[int, Record] = {}
        self._next_id = 1
        self._tz = tz or local_zone()

    def _day_of(self, record: Record) -> date:
        return to_day(record.record_date, self._tz)

    async def insert_record(self, record: Record) -> Record:
        if record.id is not None and record.id in self._records:
            raise DuplicateError(f"Record already exists: {record.id}")

        record_id = record.id if record.id is not None else self._next_id
        self._next_id = max(self._next_id, record_id + 1)

        stored = record.model_copy(update={"id": record_id, "version": 1}, deep=True)
        self._records[record_id] = stored
        return stored.model_copy(deep=True)

    async def get_record(self, record_id: int) -> Optional[Record]:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record else None

    async def update_record(self, record: Record) -> Record:
        if record.id is None or record.id not in self._records:
            raise NotFoundError(f"Record not found: {record.id}")

        current = self._records[record.id]
        if current.version != record.version:
            raise ConcurrentModificationError(record.id, record.version, current.version)

        stored = record.model_copy(update={"version": current.version + 1}, deep=True)
        self._records[record.id] = stored
        return stored.model_copy(deep=True)

    async def delete_record(self, record_id: int) -> bool:
        return self._records.pop(record_id, None) is not None

    async def list_records_for_day(
        self,
        day: date,
        is_master_save: Optional[bool] = None,
    ) -> list[Record]:
        records = [
            record for record in self._records.values()
            if self._day_of(record) == day
            and (is_master_save is None or record.is_master_save == is_master_save)
        ]
        return [r.model_copy(deep=True) for r in sort_newest_masters_first(records)]

    async def get_master_record(self, day: date) -> Optional[Record]:
        masters = await self.list_records_for_day(day, is_master_save=True)
        return masters[0] if masters else None

    async def list_master_records(self, date_from: date, date_to: date) -> list[Record]:
        records = [
            record for record in self._records.values()
            if record.is_master_save and date_from <= self._day_of(record) <= date_to
        ]
        records.sort(key=lambda r: (r.record_date, -r.timestamp))
        return [r.model_copy(deep=True) for r in records]

    async def list_all_records(self) -> list[Record]:
        return [
            r.model_copy(deep=True)
            for r in sort_newest_masters_first(self._records.values())
        ]

    async def replace_all(self, records: Iterable[Record]) -> int:
        prepared = prepare_restored_records(records)
        self._records = {record.id: record for record in prepared}
        self._next_id = max(self._records, default=0) + 1
        return len(prepared)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
