"""Tests for price parsing, aggregates and the record constructors."""

import pytest
from datetime import datetime, timezone

from expense_records.models.record import LineItem
from expense_records.reconciliation.aggregates import (
    aggregates_consistent,
    build_record,
    compute_aggregates,
    parse_price,
    price_value,
    unparsable_items,
    with_items,
)


MIDNIGHT = datetime(2024, 3, 10, tzinfo=timezone.utc)


class TestParsePrice:
    """Tests for parse_price."""

    @pytest.mark.parametrize("text,expected", [
        ("55", 55.0),
        ("12.50", 12.5),
        (" 7.25 ", 7.25),
        ("-5", -5.0),
        ("1e2", 100.0),
    ])
    def test_parses_numbers(self, text, expected):
        """Test decimal text parses to its value."""
        assert parse_price(text) == expected

    @pytest.mark.parametrize("text", [
        "", "   ", "abc", "12,50", "1_000", "nan", "inf", "-Infinity", None,
    ])
    def test_unparsable_returns_none(self, text):
        """Test that unusable text yields None instead of raising."""
        assert parse_price(text) is None

    def test_price_value_defaults_to_zero(self):
        """Test price_value for unparsable text."""
        assert price_value("abc") == 0.0
        assert price_value("3") == 3.0


class TestComputeAggregates:
    """Tests for compute_aggregates."""

    def test_empty_items(self):
        """Test aggregates of nothing are zero."""
        aggregates = compute_aggregates([])
        assert aggregates.total_sum == 0.0
        assert aggregates.checked_count == 0
        assert aggregates.checked_sum == 0.0

    def test_totals_and_checked(self):
        """Test total and checked sums."""
        items = [
            LineItem(description="Milk", price="10", is_checked=True),
            LineItem(description="Bread", price="20"),
        ]
        aggregates = compute_aggregates(items)
        assert aggregates.total_sum == 30.0
        assert aggregates.checked_count == 1
        assert aggregates.checked_sum == 10.0

    def test_unparsable_checked_item_counts_but_adds_nothing(self):
        """Test a checked item with a bad price is counted with value 0."""
        items = [
            LineItem(description="Milk", price="abc", is_checked=True),
            LineItem(description="Bread", price="20", is_checked=True),
        ]
        aggregates = compute_aggregates(items)
        assert aggregates.total_sum == 20.0
        assert aggregates.checked_count == 2
        assert aggregates.checked_sum == 20.0

    def test_unparsable_items(self):
        """Test unparsable_items picks out the bad prices."""
        bad = LineItem(description="Eggs", price="")
        items = [LineItem(description="Milk", price="10"), bad]
        assert unparsable_items(items) == [bad]


class TestRecordConstructors:
    """Tests for build_record and with_items."""

    def test_build_record_sets_aggregates(self):
        """Test build_record derives totals from items."""
        record = build_record(
            [LineItem(description="Milk", price="10", is_checked=True)],
            record_date=MIDNIGHT,
            is_master_save=False,
            timestamp=1000,
        )
        assert record.id is None
        assert record.total_sum == 10.0
        assert record.checked_items_count == 1
        assert record.timestamp == 1000
        assert aggregates_consistent(record)

    def test_with_items_keeps_identity(self):
        """Test with_items keeps id, date, kind and version."""
        record = build_record([], record_date=MIDNIGHT, is_master_save=True, timestamp=1)
        record = record.model_copy(update={"id": 9, "version": 4})

        updated = with_items(record, [LineItem(description="Tea", price="5")])

        assert updated.id == 9
        assert updated.version == 4
        assert updated.record_date == MIDNIGHT
        assert updated.is_master_save is True
        assert updated.total_sum == 5.0
        assert updated.timestamp > 1
        assert record.items == []

    def test_with_items_without_touch(self):
        """Test the timestamp is kept when touch is False."""
        record = build_record([], record_date=MIDNIGHT, is_master_save=False, timestamp=1)
        updated = with_items(record, [LineItem(description="Tea", price="5")], touch=False)
        assert updated.timestamp == 1

    def test_aggregates_consistent_detects_drift(self):
        """Test a record whose totals disagree with its items."""
        record = build_record(
            [LineItem(description="Milk", price="10")],
            record_date=MIDNIGHT,
            is_master_save=False,
        )
        drifted = record.model_copy(update={"total_sum": 99.0})
        assert aggregates_consistent(drifted) is False
