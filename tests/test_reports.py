"""Tests for master record reports."""

import pytest
from datetime import date, datetime, timezone

from expense_records.models.record import LineItem
from expense_records.queries.reports import MasterRecordReports
from expense_records.reconciliation.aggregates import build_record


def _master(day, items, timestamp=None):
    return build_record(
        items,
        record_date=datetime(day.year, day.month, day.day, tzinfo=timezone.utc),
        is_master_save=True,
        timestamp=timestamp,
    )


@pytest.fixture
def reports(record_storage):
    return MasterRecordReports(record_storage, tz=timezone.utc)


class TestMasterRecordReports:
    """Tests for MasterRecordReports."""

    @pytest.mark.asyncio
    async def test_category_totals_for_month(self, record_storage, reports):
        """Test multi-category items count toward each category."""
        await record_storage.insert_record(_master(date(2024, 3, 1), [
            LineItem(description="Milk", price="50", categories=["Grocery", "Dairy"]),
            LineItem(description="Tip", price="abc", categories=["Misc"]),
            LineItem(description="Note", price="10"),
        ]))
        await record_storage.insert_record(_master(date(2024, 3, 31), [
            LineItem(description="Rice", price="80", categories=["Grocery"]),
        ]))
        await record_storage.insert_record(_master(date(2024, 4, 1), [
            LineItem(description="Rice", price="80", categories=["Grocery"]),
        ]))

        totals = await reports.category_totals_for_month(2024, 3)

        assert totals == {"Grocery": 130.0, "Dairy": 50.0}

    @pytest.mark.asyncio
    async def test_snapshots_not_counted(self, record_storage, reports):
        """Test only master records feed the reports."""
        snapshot = build_record(
            [LineItem(description="Milk", price="50", categories=["Grocery"])],
            record_date=datetime(2024, 3, 1, tzinfo=timezone.utc),
            is_master_save=False,
        )
        await record_storage.insert_record(snapshot)
        assert await reports.category_totals_for_month(2024, 3) == {}

    @pytest.mark.asyncio
    async def test_daily_and_month_totals(self, record_storage, reports):
        """Test per-day totals and their sum."""
        await record_storage.insert_record(_master(date(2024, 3, 1), [
            LineItem(description="Milk", price="50"),
        ]))
        await record_storage.insert_record(_master(date(2024, 3, 2), [
            LineItem(description="Bread", price="40"),
        ]))

        daily = await reports.daily_totals(date(2024, 3, 1), date(2024, 3, 31))

        assert daily == {date(2024, 3, 1): 50.0, date(2024, 3, 2): 40.0}
        assert await reports.month_total(2024, 3) == 90.0

    @pytest.mark.asyncio
    async def test_daily_totals_use_newest_master(self, record_storage, reports):
        """Test a day with two masters reports the newest one."""
        await record_storage.insert_record(
            _master(date(2024, 3, 1), [LineItem(description="Milk", price="50")], timestamp=1)
        )
        await record_storage.insert_record(
            _master(date(2024, 3, 1), [LineItem(description="Milk", price="60")], timestamp=2)
        )
        daily = await reports.daily_totals(date(2024, 3, 1), date(2024, 3, 1))
        assert daily == {date(2024, 3, 1): 60.0}

    @pytest.mark.asyncio
    async def test_category_totals_use_newest_master(self, record_storage, reports):
        """Test a day with two masters counts its categories once."""
        for timestamp in (1, 2):
            await record_storage.insert_record(_master(
                date(2024, 3, 10),
                [LineItem(description="Tea", price="20", categories=["Food"])],
                timestamp=timestamp,
            ))

        totals = await reports.category_totals_for_month(2024, 3)

        assert totals == {"Food": 20.0}
        assert await reports.month_total(2024, 3) == 20.0

    @pytest.mark.asyncio
    async def test_master_for_day(self, record_storage, reports):
        """Test the display summary."""
        stored = await record_storage.insert_record(_master(date(2024, 3, 1), [
            LineItem(description="Milk", price="50", is_checked=True),
        ]))
        summary = await reports.master_for_day(date(2024, 3, 1))
        assert summary["id"] == stored.id
        assert summary["item_count"] == 1
        assert summary["checked_items_sum"] == 50.0
        assert await reports.master_for_day(date(2024, 3, 2)) is None
