"""Tests for snapshot duplicate detection."""

from datetime import date, datetime, timezone

from expense_records.models.record import LineItem
from expense_records.reconciliation.aggregates import build_record
from expense_records.reconciliation.duplicates import (
    find_duplicate,
    is_duplicate,
    snapshots_for_day,
)


def _record(items, is_master_save=False, day=date(2024, 3, 10), record_id=1):
    record = build_record(
        items,
        record_date=datetime(day.year, day.month, day.day, tzinfo=timezone.utc),
        is_master_save=is_master_save,
    )
    return record.model_copy(update={"id": record_id})


class TestFindDuplicate:
    """Tests for find_duplicate."""

    def test_same_items_other_order_is_duplicate(self):
        """Test a reordered list matches an existing snapshot."""
        milk = LineItem(description="Milk", price="55")
        bread = LineItem(description="Bread", price="40")
        existing = _record([milk, bread], record_id=5)

        duplicate = find_duplicate([bread, milk], [existing])

        assert duplicate is not None
        assert duplicate.id == 5

    def test_price_change_is_not_duplicate(self):
        """Test content differences prevent a match."""
        existing = _record([LineItem(description="Tea", price="10")])
        assert not is_duplicate([LineItem(description="Tea", price="12")], [existing])

    def test_checked_state_is_ignored(self):
        """Test ticking an item does not make the list new."""
        existing = _record([LineItem(description="Tea", price="10")])
        candidate = [LineItem(description="Tea", price="10", is_checked=True)]
        assert is_duplicate(candidate, [existing])

    def test_master_records_are_skipped(self):
        """Test that a master with the same content is not a duplicate."""
        tea = LineItem(description="Tea", price="10")
        master = _record([tea], is_master_save=True)
        assert find_duplicate([tea], [master]) is None

    def test_no_existing_records(self):
        """Test empty history."""
        assert find_duplicate([LineItem(description="Tea", price="10")], []) is None

    def test_first_match_wins(self):
        """Test the first identical snapshot is returned."""
        tea = LineItem(description="Tea", price="10")
        first = _record([tea], record_id=1)
        second = _record([tea], record_id=2)
        assert find_duplicate([tea], [first, second]).id == 1


class TestSnapshotsForDay:
    """Tests for snapshots_for_day."""

    def test_filters_day_and_kind(self):
        """Test only the day's snapshots are kept."""
        tea = LineItem(description="Tea", price="10")
        today = _record([tea], record_id=1)
        master = _record([tea], is_master_save=True, record_id=2)
        yesterday = _record([tea], day=date(2024, 3, 9), record_id=3)

        result = snapshots_for_day(
            [today, master, yesterday], date(2024, 3, 10), timezone.utc
        )

        assert [r.id for r in result] == [1]
