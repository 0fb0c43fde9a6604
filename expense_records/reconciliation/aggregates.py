"""
Aggregate Calculator

Pure functions that derive a record's totals from its items, and the only
two constructors that change a record's item list.

CRITICAL: There is no way to update totals on their own. Every item-list
mutation (merge, editor operation, new record) goes through build_record()
or with_items(), which recompute all three aggregates together.
"""

import math
from datetime import datetime
from typing import Iterable, Optional, Sequence

from expense_records.models.record import Aggregates, LineItem, Record, now_millis


def parse_price(price: Optional[str]) -> Optional[float]:
    """
    Parse a price string, returning None when it is not a usable number.

    Surrounding whitespace is ignored. Non-finite values and digit
    separators are rejected. Never raises.
    """
    if price is None:
        return None
    text = price.strip()
    if not text or "_" in text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def price_value(price: Optional[str]) -> float:
    """Parsed price, or 0.0 when unparsable."""
    value = parse_price(price)
    return value if value is not None else 0.0


def compute_aggregates(items: Iterable[LineItem]) -> Aggregates:
    """
    Compute (total_sum, checked_count, checked_sum) over items.

    Unparsable prices contribute zero. Never fails.
    """
    total_sum = 0.0
    checked_count = 0
    checked_sum = 0.0
    for item in items:
        value = price_value(item.price)
        total_sum += value
        if item.is_checked:
            checked_count += 1
            checked_sum += value
    return Aggregates(
        total_sum=total_sum,
        checked_count=checked_count,
        checked_sum=checked_sum,
    )


def unparsable_items(items: Iterable[LineItem]) -> list[LineItem]:
    """Items whose price contributes nothing because it cannot be parsed."""
    return [item for item in items if parse_price(item.price) is None]


def build_record(
    items: Sequence[LineItem],
    record_date: datetime,
    is_master_save: bool,
    timestamp: Optional[int] = None,
) -> Record:
    """Create a new, unsaved record over items with fresh aggregates."""
    items = [item.model_copy(deep=True) for item in items]
    aggregates = compute_aggregates(items)
    return Record(
        items=items,
        total_sum=aggregates.total_sum,
        checked_items_count=aggregates.checked_count,
        checked_items_sum=aggregates.checked_sum,
        record_date=record_date,
        timestamp=timestamp if timestamp is not None else now_millis(),
        is_master_save=is_master_save,
    )


def with_items(
    record: Record,
    items: Sequence[LineItem],
    touch: bool = True,
) -> Record:
    """
    Copy of record with its item list replaced and aggregates recomputed.

    Identity, record_date, version and kind are kept. The timestamp is
    refreshed unless touch is False.
    """
    items = list(items)
    aggregates = compute_aggregates(items)
    update = {
        "items": items,
        "total_sum": aggregates.total_sum,
        "checked_items_count": aggregates.checked_count,
        "checked_items_sum": aggregates.checked_sum,
    }
    if touch:
        update["timestamp"] = now_millis()
    return record.model_copy(update=update)


def aggregates_consistent(record: Record) -> bool:
    """True when the stored totals match the items."""
    expected = compute_aggregates(record.items)
    return (
        math.isclose(record.total_sum, expected.total_sum, abs_tol=1e-9)
        and record.checked_items_count == expected.checked_count
        and math.isclose(record.checked_items_sum, expected.checked_sum, abs_tol=1e-9)
    )
