"""
Reports over Master Records

DESIGN DECISION: Reports read master records only. The master record is
the cumulative ledger for a day; snapshots are point-in-time copies of it
and would double count.

If a day somehow has more than one master, only the newest is counted.

Amounts are derived the same way aggregates are: an unparsable price
counts as nothing. Reports never fail on dirty data.
"""

import calendar
from datetime import date
from typing import Optional

from expense_records.models.record import Record
from expense_records.services.storage import RecordStorageInterface
from expense_records.reconciliation.aggregates import parse_price
from expense_records.reconciliation.days import local_zone, to_day


class MasterRecordReports:
    """
    Aggregations over the master records in storage.
    """

    def __init__(self, storage: RecordStorageInterface, tz=None):
        self._storage = storage
        self._tz = tz or local_zone()

    async def _newest_master_per_day(
        self,
        date_from: date,
        date_to: date,
    ) -> dict[date, Record]:
        records = await self._storage.list_master_records(date_from, date_to)
        masters: dict[date, Record] = {}
        for record in records:
            # Listed newest first within a day; only that one counts
            masters.setdefault(to_day(record.record_date, self._tz), record)
        return masters

    async def category_totals_for_month(self, year: int, month: int) -> dict[str, float]:
        """
        Total spent per category in a month.

        An item with several categories counts toward each of them.
        Uncategorized items and unparsable prices are skipped.
        """
        first = date(year, month, 1)
        last = date(year, month, calendar.monthrange(year, month)[1])
        masters = await self._newest_master_per_day(first, last)

        totals: dict[str, float] = {}
        for record in masters.values():
            for item in record.items:
                if not item.categories:
                    continue
                value = parse_price(item.price)
                if value is None:
                    continue
                for category in item.categories:
                    totals[category] = totals.get(category, 0.0) + value
        return totals

    async def daily_totals(
        self,
        date_from: date,
        date_to: date,
    ) -> dict[date, float]:
        """total_sum of each day's master record in the range."""
        masters = await self._newest_master_per_day(date_from, date_to)
        return {day: record.total_sum for day, record in masters.items()}

    async def month_total(self, year: int, month: int) -> float:
        first = date(year, month, 1)
        last = date(year, month, calendar.monthrange(year, month)[1])
        return sum((await self.daily_totals(first, last)).values())

    async def master_for_day(self, day: date) -> Optional[dict]:
        """Summary of a day's master record for display."""
        record = await self._storage.get_master_record(day)
        if record is None:
            return None
        return {
            "id": record.id,
            "day": day.isoformat(),
            "item_count": len(record.items),
            "total_sum": record.total_sum,
            "checked_items_count": record.checked_items_count,
            "checked_items_sum": record.checked_items_sum,
        }
