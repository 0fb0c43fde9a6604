"""
Main Orchestrator for Expense Records

This module ties the reconciliation engine to storage and the audit log,
and defines the end-to-end flows for:
1. Saving a day (working list -> snapshot record + master record)
2. Editing a saved record (remove / add / update one item)
3. Batch saving over a date range
4. Backup and restore

DESIGN DECISION: The orchestrator enforces the boundaries:
- Snapshots are only created when no identical snapshot exists for the day
- The master record is always merged, independently of the snapshot rule
- "Read master -> merge -> write master" never interleaves for one day
- Every write (and every skipped write) is audited

CONCURRENCY: Within a process, merges for the same day are serialized by
a per-day asyncio.Lock. Across processes, the record version check in
storage detects a stale write; the merge is then retried against the
freshly read master.
"""

import asyncio
from datetime import date, tzinfo
from typing import Awaitable, Callable, Iterable, Optional, Sequence
from uuid import UUID

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_records.audit import AuditLogger, create_correlation_id
from expense_records.config import EngineSettings, get_settings
from expense_records.models.record import LineItem, Record
from expense_records.models.results import BatchSaveSummary, MergeResult, SaveOutcome
from expense_records.reconciliation import editor
from expense_records.reconciliation.aggregates import build_record, unparsable_items
from expense_records.reconciliation.days import DayLike, iter_days, local_zone, start_of_day, to_day
from expense_records.reconciliation.duplicates import find_duplicate
from expense_records.reconciliation.merge import MasterMergeEngine
from expense_records.services.backup import export_from, restore_into
from expense_records.services.storage import (
    ConcurrentModificationError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStorage,
    InMemoryAuditStorage,
    InMemoryRecordStorage,
    NotFoundError,
    RecordStorageInterface,
)


logger = structlog.get_logger(__name__)


class EmptySaveError(ValueError):
    """A save was requested for a working list with no items."""
    pass


ItemLoader = Callable[[date], Awaitable[Sequence[LineItem]]]


class RecordSaveFlow:
    """
    Orchestrates saving and editing of expense records.

    Flow for one save of a day's working list:
    1. Reject empty lists
    2. Snapshot: skip if an identical snapshot exists for the day,
       otherwise insert a new one
    3. Master: under the day's lock, read the master, merge, and write it
       back (insert if new, update if changed, nothing if unchanged),
       retrying on concurrent modification
    """

    def __init__(
        self,
        record_storage: RecordStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        merge_engine: Optional[MasterMergeEngine] = None,
        settings: Optional[EngineSettings] = None,
        tz: Optional[tzinfo] = None,
    ):
        self._storage = record_storage
        self._audit_logger = audit_logger or AuditLogger()
        self._engine = merge_engine or MasterMergeEngine()
        self._settings = settings or get_settings().engine
        self._tz = tz or local_zone(self._settings.timezone)
        self._day_locks: dict[date, asyncio.Lock] = {}

    def _lock_for(self, day: date) -> asyncio.Lock:
        # No await between lookup and insert, so this is race-free on one loop
        lock = self._day_locks.get(day)
        if lock is None:
            lock = asyncio.Lock()
            self._day_locks[day] = lock
        return lock

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    async def save_day(
        self,
        day: DayLike,
        items: Iterable[LineItem],
        correlation_id: Optional[UUID] = None,
    ) -> SaveOutcome:
        """
        Save a day's working list as a snapshot and into the master record.

        Raises:
            EmptySaveError: If items is empty and empty saves are rejected
            ConcurrentModificationError: If the master kept changing
                for every retry attempt
        """
        correlation_id = correlation_id or create_correlation_id()
        day = to_day(day, self._tz)
        items = list(items)

        if not items:
            if self._settings.reject_empty_saves:
                raise EmptySaveError(f"Nothing to save for {day.isoformat()}")
            logger.info("empty_save_ignored", day=day.isoformat())
            return SaveOutcome(day=day)

        for item in unparsable_items(items):
            await self._audit_logger.log_unparsable_price(
                description=item.description,
                price=item.price,
                day=day,
                correlation_id=correlation_id,
            )

        snapshot, duplicate = await self.save_snapshot(day, items, correlation_id)
        result, master, attempts = await self.merge_master(day, items, correlation_id)

        return SaveOutcome(
            day=day,
            snapshot_created=snapshot is not None,
            snapshot=snapshot,
            duplicate_of=duplicate.id if duplicate is not None else None,
            master_created_or_updated=result.should_persist,
            master=master,
            merge_attempts=attempts,
        )

    async def save_snapshot(
        self,
        day: date,
        items: Sequence[LineItem],
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Optional[Record], Optional[Record]]:
        """
        Insert a snapshot unless an identical one exists for the day.

        Returns:
            (new_snapshot, duplicate) - exactly one of them is not None
        """
        existing = await self._storage.list_records_for_day(day, is_master_save=False)
        duplicate = find_duplicate(items, existing)
        if duplicate is not None:
            await self._audit_logger.log_snapshot_skipped(
                duplicate_of=duplicate.id,
                day=day,
                correlation_id=correlation_id,
            )
            return None, duplicate

        record = build_record(
            items,
            record_date=start_of_day(day, self._tz),
            is_master_save=False,
        )
        stored = await self._storage.insert_record(record)
        await self._audit_logger.log_snapshot_created(
            record_id=stored.id,
            day=day,
            item_count=len(stored.items),
            correlation_id=correlation_id,
        )
        return stored, None

    async def merge_master(
        self,
        day: date,
        items: Sequence[LineItem],
        correlation_id: Optional[UUID] = None,
    ) -> tuple[MergeResult, Record, int]:
        """
        Fold items into the day's master record and persist it.

        Returns:
            (merge_result, stored_master, attempts)
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.merge_max_attempts),
            wait=wait_exponential(
                multiplier=self._settings.merge_retry_wait_seconds,
                max=self._settings.merge_retry_wait_seconds * 16,
            ),
            retry=retry_if_exception_type(ConcurrentModificationError),
            reraise=True,
        )

        async with self._lock_for(day):
            async for attempt in retrying:
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    result, stored = await self._merge_once(
                        day, items, correlation_id, attempt_number
                    )
        return result, stored, attempt_number

    async def _merge_once(
        self,
        day: date,
        items: Sequence[LineItem],
        correlation_id: Optional[UUID],
        attempt_number: int,
    ) -> tuple[MergeResult, Record]:
        existing = await self._storage.get_master_record(day)
        result = self._engine.merge_into_master(day, items, existing, self._tz)

        if result.created:
            stored = await self._storage.insert_record(result.record)
            await self._audit_logger.log_master_created(
                record_id=stored.id,
                day=day,
                item_count=len(stored.items),
                correlation_id=correlation_id,
            )
            return result, stored

        if not result.changed:
            await self._audit_logger.log_master_unchanged(
                record_id=existing.id,
                day=day,
                correlation_id=correlation_id,
            )
            return result, existing

        try:
            stored = await self._storage.update_record(result.record)
        except ConcurrentModificationError:
            await self._audit_logger.log_merge_conflict(
                record_id=existing.id,
                day=day,
                attempt=attempt_number,
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_master_updated(
            record_id=stored.id,
            day=day,
            tier_counts=result.tier_counts,
            appended=result.appended_count,
            carried_over=result.carried_over_count,
            correlation_id=correlation_id,
        )
        return result, stored

    async def batch_save_range(
        self,
        start: date,
        end: date,
        load_items: ItemLoader,
        correlation_id: Optional[UUID] = None,
    ) -> BatchSaveSummary:
        """
        Save every day's working list in [start, end].

        Each non-empty day goes through save_day: a snapshot unless an
        identical one exists, and the master merge. Days without items are
        skipped. A failing day is logged and recorded; the batch continues.
        """
        correlation_id = correlation_id or create_correlation_id()
        summary = BatchSaveSummary(start=start, end=end)

        for day in iter_days(start, end):
            summary.days_processed += 1
            try:
                items = list(await load_items(day))
                if not items:
                    summary.empty_days += 1
                    continue
                outcome = await self.save_day(day, items, correlation_id)
                if outcome.snapshot_created:
                    summary.snapshots_written += 1
                if outcome.master_created_or_updated:
                    summary.masters_written += 1
            except Exception as e:
                logger.error("batch_save_day_failed", day=day.isoformat(), error=str(e))
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"day": day.isoformat()},
                    correlation_id=correlation_id,
                )
                summary.failed_days.append(day)

        await self._audit_logger.log_batch_save_completed(
            start=start,
            end=end,
            days_processed=summary.days_processed,
            masters_written=summary.masters_written,
            failed_days=summary.failed_days,
            correlation_id=correlation_id,
        )
        return summary

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    async def _load(self, record_id: int) -> Record:
        record = await self._storage.get_record(record_id)
        if record is None:
            raise NotFoundError(f"Record not found: {record_id}")
        return record

    async def _apply_edit(
        self,
        record_id: int,
        operation: str,
        index: Optional[int],
        edit: Callable[[Record], Record],
        correlation_id: Optional[UUID],
    ) -> Record:
        record = await self._load(record_id)
        day = to_day(record.record_date, self._tz)

        async with self._lock_for(day):
            record = await self._load(record_id)
            edited = edit(record)
            if edited is record:
                # Out-of-range index: nothing to write
                return record
            stored = await self._storage.update_record(edited)

        await self._audit_logger.log_record_edited(
            record_id=stored.id,
            day=day,
            operation=operation,
            index=index,
            correlation_id=correlation_id,
        )
        return stored

    async def remove_item(
        self,
        record_id: int,
        index: int,
        correlation_id: Optional[UUID] = None,
    ) -> Record:
        """Remove one item from a saved record and persist the result."""
        return await self._apply_edit(
            record_id,
            "remove_item",
            index,
            lambda record: editor.remove_item(record, index),
            correlation_id,
        )

    async def add_item(
        self,
        record_id: int,
        description: str,
        price: str,
        quantity: Optional[str] = None,
        categories: Optional[list[str]] = None,
        source_item_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Record:
        """Append an item to a saved record and persist the result."""
        return await self._apply_edit(
            record_id,
            "add_item",
            None,
            lambda record: editor.add_item(
                record, description, price, quantity, categories, source_item_id
            ),
            correlation_id,
        )

    async def update_item(
        self,
        record_id: int,
        index: int,
        description: str,
        price: str,
        quantity: Optional[str] = None,
        categories: Optional[list[str]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Record:
        """Replace one item of a saved record and persist the result."""
        return await self._apply_edit(
            record_id,
            "update_item",
            index,
            lambda record: editor.update_item(
                record, index, description, price, quantity, categories
            ),
            correlation_id,
        )

    async def delete_record(
        self,
        record_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete a whole record (snapshot or master)."""
        deleted = await self._storage.delete_record(record_id)
        if deleted:
            await self._audit_logger.log_record_deleted(
                record_id=record_id,
                correlation_id=correlation_id,
            )
        return deleted

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    async def export_backup(self) -> str:
        return await export_from(self._storage)

    async def restore_backup(
        self,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Replace all stored records with a backup document's records.

        The document is parsed completely before storage is touched.
        """
        count = await restore_into(self._storage, text)
        await self._audit_logger.log_backup_restored(
            record_count=count,
            correlation_id=correlation_id,
        )
        return count


def create_app_components(
    backend: str = "memory",
) -> tuple[RecordSaveFlow, RecordStorageInterface, AuditLogger]:
    """
    Factory function to create the application components.

    Args:
        backend: "memory" or "google_sheets"

    Returns:
        (save_flow, record_storage, audit_logger)
    """
    if backend == "google_sheets":
        sheets_client = GoogleSheetsClient()
        record_storage = GoogleSheetsRecordStorage(sheets_client)
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
    elif backend == "memory":
        record_storage = InMemoryRecordStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    save_flow = RecordSaveFlow(
        record_storage=record_storage,
        audit_logger=audit_logger,
    )
    return save_flow, record_storage, audit_logger
