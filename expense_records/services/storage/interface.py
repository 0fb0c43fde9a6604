"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the reconciliation engine free of any storage concerns
2. Use in-memory storage for testing and embedding
3. Swap Google Sheets for a real database later

The interface is intentionally simple - we're not building a full ORM.
Just the operations the save flow, the editor flow and restore need.

CONCURRENCY: every stored record carries a version counter. update_record
only succeeds when the caller's copy has the stored version, so two
read-modify-write cycles on the same master cannot silently overwrite
each other.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from expense_records.models.audit import AuditEvent
from expense_records.models.record import Record


class RecordStorageInterface(ABC):
    """
    Abstract interface for record storage operations.

    Any storage implementation (in-memory, Google Sheets, SQL, ...)
    must implement these methods.
    """

    @abstractmethod
    async def insert_record(self, record: Record) -> Record:
        """
        Insert a new record.

        Args:
            record: Record without an id

        Returns:
            The stored record, with id assigned and version 1

        Raises:
            DuplicateError: If the record already has an id that exists
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def get_record(self, record_id: int) -> Optional[Record]:
        """
        Retrieve a record by its ID.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def update_record(self, record: Record) -> Record:
        """
        Update an existing record (keyed by id).

        record.version must equal the stored version.

        Returns:
            The stored record with its version incremented

        Raises:
            NotFoundError: If the record doesn't exist
            ConcurrentModificationError: If the stored version differs
            StorageError: If the update fails
        """
        pass

    @abstractmethod
    async def delete_record(self, record_id: int) -> bool:
        """
        Delete a record by ID.

        Returns:
            True if a record was deleted
        """
        pass

    @abstractmethod
    async def list_records_for_day(
        self,
        day: date,
        is_master_save: Optional[bool] = None,
    ) -> list[Record]:
        """
        List records whose record_date falls on day.

        Args:
            day: Calendar day
            is_master_save: Filter by kind (None = both)

        Returns:
            Records, masters first, newest first
        """
        pass

    @abstractmethod
    async def get_master_record(self, day: date) -> Optional[Record]:
        """
        Most recent master record for day, or None.
        """
        pass

    @abstractmethod
    async def list_master_records(
        self,
        date_from: date,
        date_to: date,
    ) -> list[Record]:
        """
        Master records with record_date in [date_from, date_to], oldest day first.
        """
        pass

    @abstractmethod
    async def list_all_records(self) -> list[Record]:
        """All records, masters first, newest first."""
        pass

    @abstractmethod
    async def replace_all(self, records: Iterable[Record]) -> int:
        """
        Replace the whole store with records (used by restore).

        Record ids are preserved when present. Nothing is changed when
        the records are rejected.

        Returns:
            Number of records stored

        Raises:
            DuplicateError: If two records carry the same id
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one save of a working list).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class ConcurrentModificationError(StorageError):
    """The record changed in storage since the caller read it."""

    def __init__(self, record_id: int, expected_version: int, actual_version: int):
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Record {record_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


def sort_newest_masters_first(records: Iterable[Record]) -> list[Record]:
    """Masters first, then newest timestamp first."""
    return sorted(records, key=lambda r: (not r.is_master_save, -r.timestamp))


def prepare_restored_records(records: Iterable[Record]) -> list[Record]:
    """
    Copies of records ready to replace a store.

    Missing ids are assigned after the highest given id and every
    version restarts at 1.

    Raises:
        DuplicateError: If two records carry the same id
    """
    records = list(records)
    seen: set[int] = set()
    for record in records:
        if record.id is None:
            continue
        if record.id in seen:
            raise DuplicateError(f"Record id {record.id} appears more than once")
        seen.add(record.id)

    next_id = max(seen, default=0) + 1
    prepared: list[Record] = []
    for record in records:
        record_id = record.id
        if record_id is None:
            record_id = next_id
            next_id += 1
        prepared.append(record.model_copy(update={"id": record_id, "version": 1}, deep=True))
    return prepared
