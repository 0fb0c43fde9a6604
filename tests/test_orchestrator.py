"""Flow tests for RecordSaveFlow against in-memory storage."""

import asyncio
import pytest
from datetime import date, datetime, timezone

from expense_records.audit import AuditLogger
from expense_records.models.audit import AuditEventType
from expense_records.models.record import LineItem
from expense_records.orchestrator import EmptySaveError, RecordSaveFlow, create_app_components
from expense_records.reconciliation import editor
from expense_records.services.backup import BackupFormatError, export_backup
from expense_records.services.storage import (
    ConcurrentModificationError,
    DuplicateError,
    InMemoryRecordStorage,
    NotFoundError,
)


class InterferingStorage(InMemoryRecordStorage):
    """Storage where another writer updates the master right after each read."""

    def __init__(self, interference: int):
        super().__init__(tz=timezone.utc)
        self.remaining = interference

    async def get_master_record(self, day):
        master = await super().get_master_record(day)
        if master is not None and self.remaining > 0:
            self.remaining -= 1
            other = editor.add_item(master, f"Other device {self.remaining}", "5")
            await super().update_record(other)
        return master


def _event_types(audit_storage):
    return [event.event_type for event in audit_storage.events]


class TestSaveDay:
    """Tests for RecordSaveFlow.save_day."""

    @pytest.mark.asyncio
    async def test_first_save_creates_snapshot_and_master(self, save_flow, record_storage, day):
        """Test both records exist after the first save."""
        outcome = await save_flow.save_day(day, [LineItem(description="Tea", price="20")])

        assert outcome.snapshot_created is True
        assert outcome.master_created_or_updated is True
        assert outcome.merge_attempts == 1
        assert outcome.master.is_master_save is True
        assert outcome.snapshot.record_date == datetime(2024, 3, 10, tzinfo=timezone.utc)
        assert len(await record_storage.list_records_for_day(day)) == 2

    @pytest.mark.asyncio
    async def test_duplicate_snapshot_skipped_but_master_merges(
        self, save_flow, record_storage, audit_storage, day
    ):
        """Test saving the same list twice keeps one snapshot."""
        tea = [LineItem(description="Tea", price="20")]
        first = await save_flow.save_day(day, tea)
        second = await save_flow.save_day(day, tea)

        assert second.snapshot_created is False
        assert second.duplicate_of == first.snapshot.id
        assert second.master_created_or_updated is False
        snapshots = await record_storage.list_records_for_day(day, is_master_save=False)
        assert len(snapshots) == 1
        types = _event_types(audit_storage)
        assert AuditEventType.SNAPSHOT_SKIPPED_DUPLICATE in types
        assert AuditEventType.MASTER_UNCHANGED in types

    @pytest.mark.asyncio
    async def test_changed_list_updates_master(self, save_flow, record_storage, day):
        """Test a new snapshot and an in-place master update."""
        await save_flow.save_day(day, [LineItem(description="Tea", price="20", source_item_id=1)])
        outcome = await save_flow.save_day(
            day,
            [
                LineItem(description="Green tea", price="25", source_item_id=1),
                LineItem(description="Biscuits", price="30", source_item_id=2),
            ],
        )

        assert outcome.snapshot_created is True
        assert outcome.master_created_or_updated is True
        master = await record_storage.get_master_record(day)
        assert master.version == 2
        assert sorted(item.description for item in master.items) == ["Biscuits", "Green tea"]
        assert master.total_sum == 55.0

    @pytest.mark.asyncio
    async def test_master_keeps_items_removed_from_list(self, save_flow, record_storage, day):
        """Test deleting from the working list never deletes from the master."""
        await save_flow.save_day(
            day,
            [
                LineItem(description="Tea", price="20", source_item_id=1),
                LineItem(description="Bread", price="40", source_item_id=2),
            ],
        )
        await save_flow.save_day(day, [LineItem(description="Tea", price="20", source_item_id=1)])

        master = await record_storage.get_master_record(day)
        assert len(master.items) == 2

    @pytest.mark.asyncio
    async def test_empty_save_rejected(self, save_flow, day):
        """Test empty lists raise by default."""
        with pytest.raises(EmptySaveError):
            await save_flow.save_day(day, [])

    @pytest.mark.asyncio
    async def test_empty_save_ignored_when_allowed(self, record_storage, audit_storage, engine_settings, day):
        """Test empty lists are a no-op when not rejected."""
        flow = RecordSaveFlow(
            record_storage,
            AuditLogger(audit_storage),
            settings=engine_settings.model_copy(update={"reject_empty_saves": False}),
            tz=timezone.utc,
        )
        outcome = await flow.save_day(day, [])
        assert outcome.snapshot_created is False
        assert await record_storage.list_all_records() == []

    @pytest.mark.asyncio
    async def test_unparsable_price_warned(self, save_flow, audit_storage, day):
        """Test dirty prices are saved and reported."""
        outcome = await save_flow.save_day(
            day,
            [LineItem(description="Tea", price="12.50"), LineItem(description="Tip", price="abc")],
        )
        assert outcome.master.total_sum == 12.5
        assert AuditEventType.UNPARSABLE_PRICE in _event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_datetime_day_normalized(self, save_flow, record_storage):
        """Test a datetime input is saved under its calendar day."""
        outcome = await save_flow.save_day(
            datetime(2024, 3, 10, 18, 45, tzinfo=timezone.utc),
            [LineItem(description="Tea", price="20")],
        )
        assert outcome.day == date(2024, 3, 10)
        assert outcome.master.record_date == datetime(2024, 3, 10, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_events_share_correlation_id(self, save_flow, audit_storage, day):
        """Test one save is traceable as a unit."""
        await save_flow.save_day(day, [LineItem(description="Tea", price="20")])
        correlation_ids = {event.correlation_id for event in audit_storage.events}
        assert len(correlation_ids) == 1
        assert None not in correlation_ids


class TestMergeConcurrency:
    """Tests for serialized and retried master merges."""

    @pytest.mark.asyncio
    async def test_concurrent_saves_lose_nothing(self, save_flow, record_storage, day):
        """Test parallel saves for one day both end up in the master."""
        await asyncio.gather(
            save_flow.save_day(day, [LineItem(description="Tea", price="20")]),
            save_flow.save_day(day, [LineItem(description="Bread", price="40")]),
            save_flow.save_day(day, [LineItem(description="Eggs", price="72")]),
        )

        masters = await record_storage.list_records_for_day(day, is_master_save=True)
        assert len(masters) == 1
        assert sorted(item.description for item in masters[0].items) == ["Bread", "Eggs", "Tea"]

    @pytest.mark.asyncio
    async def test_conflict_retried_against_fresh_master(self, audit_storage, engine_settings, day):
        """Test a stale write is retried and keeps the other writer's item."""
        storage = InterferingStorage(interference=0)
        flow = RecordSaveFlow(storage, AuditLogger(audit_storage), settings=engine_settings, tz=timezone.utc)
        await flow.save_day(day, [LineItem(description="Tea", price="20")])

        storage.remaining = 1
        outcome = await flow.save_day(day, [LineItem(description="Bread", price="40")])

        assert outcome.merge_attempts == 2
        master = await storage.get_master_record(day)
        descriptions = sorted(item.description for item in master.items)
        assert descriptions == ["Bread", "Other device 0", "Tea"]
        assert AuditEventType.MERGE_CONFLICT in _event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_conflict_gives_up_after_max_attempts(self, audit_storage, engine_settings, day):
        """Test persistent conflicts surface to the caller."""
        storage = InterferingStorage(interference=0)
        flow = RecordSaveFlow(storage, AuditLogger(audit_storage), settings=engine_settings, tz=timezone.utc)
        await flow.save_day(day, [LineItem(description="Tea", price="20")])

        storage.remaining = 10
        with pytest.raises(ConcurrentModificationError):
            await flow.save_day(day, [LineItem(description="Bread", price="40")])

        conflicts = [t for t in _event_types(audit_storage) if t == AuditEventType.MERGE_CONFLICT]
        assert len(conflicts) == engine_settings.merge_max_attempts


class TestEditing:
    """Tests for the persisted editor operations."""

    @pytest.mark.asyncio
    async def test_remove_item_persists(self, save_flow, record_storage, day):
        """Test remove_item writes a new version."""
        outcome = await save_flow.save_day(
            day, [LineItem(description="Tea", price="20"), LineItem(description="Bread", price="40")]
        )
        master_id = outcome.master.id

        edited = await save_flow.remove_item(master_id, 0)

        assert len(edited.items) == 1
        assert edited.version == outcome.master.version + 1
        assert (await record_storage.get_record(master_id)).total_sum == edited.total_sum

    @pytest.mark.asyncio
    async def test_out_of_bounds_edit_writes_nothing(self, save_flow, day):
        """Test a no-op edit does not bump the version."""
        outcome = await save_flow.save_day(day, [LineItem(description="Tea", price="20")])
        edited = await save_flow.remove_item(outcome.master.id, 5)
        assert edited.version == outcome.master.version

    @pytest.mark.asyncio
    async def test_add_and_update_item(self, save_flow, day):
        """Test add then update on a snapshot."""
        outcome = await save_flow.save_day(day, [LineItem(description="Tea", price="20")])
        snapshot_id = outcome.snapshot.id

        added = await save_flow.add_item(snapshot_id, "Bread", "40")
        updated = await save_flow.update_item(snapshot_id, 1, "Brown bread", "45")

        assert added.total_sum == 60.0
        assert updated.items[1].description == "Brown bread"
        assert updated.total_sum == 65.0

    @pytest.mark.asyncio
    async def test_edit_missing_record(self, save_flow):
        """Test editing an unknown record fails loudly."""
        with pytest.raises(NotFoundError):
            await save_flow.remove_item(404, 0)

    @pytest.mark.asyncio
    async def test_delete_record(self, save_flow, audit_storage, day):
        """Test whole-record deletion is audited."""
        outcome = await save_flow.save_day(day, [LineItem(description="Tea", price="20")])
        assert await save_flow.delete_record(outcome.snapshot.id) is True
        assert await save_flow.delete_record(outcome.snapshot.id) is False
        assert _event_types(audit_storage).count(AuditEventType.RECORD_DELETED) == 1


class TestBatchSave:
    """Tests for batch_save_range."""

    @pytest.mark.asyncio
    async def test_batch_saves_snapshot_and_master(self, save_flow, record_storage):
        """Test each non-empty day gets a snapshot and a master."""
        lists = {
            date(2024, 3, 1): [LineItem(description="Tea", price="20")],
            date(2024, 3, 3): [LineItem(description="Bread", price="40")],
        }

        async def load_items(day):
            return lists.get(day, [])

        summary = await save_flow.batch_save_range(date(2024, 3, 1), date(2024, 3, 3), load_items)

        assert summary.days_processed == 3
        assert summary.snapshots_written == 2
        assert summary.masters_written == 2
        assert summary.empty_days == 1
        assert summary.failed_days == []
        records = await record_storage.list_all_records()
        assert sorted(record.is_master_save for record in records) == [False, False, True, True]
        assert await record_storage.list_records_for_day(date(2024, 3, 2)) == []

    @pytest.mark.asyncio
    async def test_batch_continues_after_failure(self, save_flow, audit_storage):
        """Test a failing day is recorded and the rest still run."""
        async def load_items(day):
            if day == date(2024, 3, 2):
                raise RuntimeError("working list unavailable")
            return [LineItem(description="Tea", price="20")]

        summary = await save_flow.batch_save_range(date(2024, 3, 1), date(2024, 3, 3), load_items)

        assert summary.failed_days == [date(2024, 3, 2)]
        assert summary.masters_written == 2
        types = _event_types(audit_storage)
        assert AuditEventType.SYSTEM_ERROR in types
        assert AuditEventType.BATCH_SAVE_COMPLETED in types

    @pytest.mark.asyncio
    async def test_batch_rerun_writes_nothing(self, save_flow):
        """Test a repeated batch is a no-op."""
        async def load_items(day):
            return [LineItem(description="Tea", price="20")]

        await save_flow.batch_save_range(date(2024, 3, 1), date(2024, 3, 2), load_items)
        summary = await save_flow.batch_save_range(date(2024, 3, 1), date(2024, 3, 2), load_items)

        assert summary.masters_written == 0
        assert summary.snapshots_written == 0


class TestBackupFlow:
    """Tests for export_backup / restore_backup."""

    @pytest.mark.asyncio
    async def test_restore_replaces_records(self, save_flow, record_storage, day):
        """Test a backup restores exactly what was exported."""
        await save_flow.save_day(
            day,
            [LineItem(description="Tea", price="20", source_item_id=3,
                      categories=["B", "A"], image_refs=[])],
        )
        text = await save_flow.export_backup()
        before = await record_storage.list_all_records()

        await save_flow.save_day(day, [LineItem(description="Bread", price="40")])
        count = await save_flow.restore_backup(text)

        assert count == 2
        assert await record_storage.list_all_records() == before

    @pytest.mark.asyncio
    async def test_backup_with_repeated_ids_leaves_storage_alone(self, save_flow, record_storage, day):
        """Test a restore that fails on ids keeps the current records."""
        await save_flow.save_day(day, [LineItem(description="Tea", price="20")])
        before = await record_storage.list_all_records()
        clashing = [record.model_copy(update={"id": 5}) for record in before]

        with pytest.raises(DuplicateError):
            await save_flow.restore_backup(export_backup(clashing))

        assert await record_storage.list_all_records() == before

    @pytest.mark.asyncio
    async def test_invalid_backup_leaves_storage_alone(self, save_flow, record_storage, day):
        """Test a bad document is rejected before anything is deleted."""
        await save_flow.save_day(day, [LineItem(description="Tea", price="20")])
        with pytest.raises(BackupFormatError):
            await save_flow.restore_backup("{not json")
        assert len(await record_storage.list_all_records()) == 2


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_memory_backend(self):
        """Test the in-memory wiring."""
        save_flow, storage, audit_logger = create_app_components("memory")
        assert isinstance(save_flow, RecordSaveFlow)
        assert isinstance(storage, InMemoryRecordStorage)

    def test_unknown_backend(self):
        """Test unknown backends are rejected."""
        with pytest.raises(ValueError):
            create_app_components("postgres")
